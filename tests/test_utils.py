import tempfile
import unittest
from pathlib import Path

import cv2
import numpy as np

from core import utils


class TestUtils(unittest.TestCase):
    def setUp(self) -> None:
        rng = np.random.default_rng(7)
        self.image = rng.integers(0, 256, size=(50, 80, 4), dtype=np.uint8)
        self.image[..., 3] = 255

    def test_round_half_up(self) -> None:
        values = np.array([0.5, 1.5, 2.5, 2.49, -0.5])
        self.assertEqual(utils.round_half_up(values).tolist(), [1.0, 2.0, 3.0, 2.0, 0.0])

    def test_luminance_weights(self) -> None:
        pixels = np.array([[[255, 0, 0, 255], [0, 255, 0, 0], [0, 0, 255, 10]]], dtype=np.uint8)
        np.testing.assert_allclose(utils.luminance(pixels)[0], [76.245, 149.685, 29.07])

    def test_footprint_offset(self) -> None:
        self.assertEqual(utils.footprint_offset(1024, 768, 96, 96, 64), (864, 608))
        self.assertEqual(utils.footprint_offset(50, 50, 48, 48, 32), (-30, -30))

    def test_to_rgba_converts_opencv_layouts(self) -> None:
        bgr = np.zeros((2, 3, 3), dtype=np.uint8)
        bgr[..., 0] = 200
        rgba = utils.to_rgba(bgr)
        self.assertEqual(rgba.shape, (2, 3, 4))
        self.assertEqual(rgba[0, 0].tolist(), [0, 0, 200, 255])

        gray = np.full((4, 4), 90, dtype=np.uint8)
        self.assertEqual(utils.to_rgba(gray)[1, 1].tolist(), [90, 90, 90, 255])

        deep = np.full((2, 2), 65535, dtype=np.uint16)
        self.assertEqual(int(utils.to_rgba(deep)[0, 0, 0]), 255)

        with self.assertRaises(ValueError):
            utils.to_rgba(np.zeros((2, 2), dtype=np.float32))

    def test_as_pixel_buffer_accepts_bytes_and_arrays(self) -> None:
        flat = self.image.tobytes()
        buffer = utils.as_pixel_buffer(flat, width=80, height=50)
        self.assertTrue(np.array_equal(buffer, self.image))
        self.assertTrue(buffer.flags.writeable)

        rgb = utils.as_pixel_buffer(self.image[..., :3])
        self.assertEqual(rgb.shape, (50, 80, 4))
        self.assertTrue(np.all(rgb[..., 3] == 255))

        with self.assertRaises(ValueError):
            utils.as_pixel_buffer(flat)
        with self.assertRaises(ValueError):
            utils.as_pixel_buffer(flat[:-1], width=80, height=50)
        with self.assertRaises(ValueError):
            utils.as_pixel_buffer(self.image, width=81)

    def test_decode_image(self) -> None:
        ok, encoded = cv2.imencode(".png", cv2.cvtColor(self.image, cv2.COLOR_RGBA2BGRA))
        self.assertTrue(ok)
        self.assertTrue(np.array_equal(utils.decode_image(encoded.tobytes()), self.image))
        with self.assertRaises(ValueError):
            utils.decode_image(b"")
        with self.assertRaises(ValueError):
            utils.decode_image(b"not an image")

    def test_load_and_save_image_roundtrip(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "nested" / "image.png"
            utils.save_image(path, self.image)
            loaded = utils.load_image(path)
            self.assertTrue(np.array_equal(loaded, self.image))

            with self.assertRaises(FileNotFoundError):
                utils.load_image(Path(tmp_dir) / "missing.png")
            with self.assertRaises(ValueError):
                utils.save_image(path, self.image[..., :3])


if __name__ == "__main__":
    unittest.main()
