import unittest

import numpy as np

from core.detector import DetectionResult, OverlayDetector

from .helpers import (
    composite,
    create_gray_image,
    create_random_image,
    make_ramp_template,
    make_template,
    make_uniform_template,
)


class TestDetectionResult(unittest.TestCase):
    def test_threshold_is_strict(self) -> None:
        at_threshold = DetectionResult.from_brightness(138.0, 128.0)
        above_threshold = DetectionResult.from_brightness(138.0001, 128.0)
        self.assertEqual(at_threshold.diff, 10.0)
        self.assertFalse(at_threshold.present)
        self.assertTrue(above_threshold.present)

    def test_diagnostics_mapping(self) -> None:
        result = DetectionResult.from_brightness(150.0, 100.0)
        self.assertEqual(
            result.diagnostics(),
            {"overlay_brightness": 150.0, "reference_brightness": 100.0, "diff": 50.0},
        )


class TestOverlayDetector(unittest.TestCase):
    def test_composited_overlay_is_detected(self) -> None:
        template = make_ramp_template()
        image = composite(create_gray_image(200, 200), template)

        result = OverlayDetector().detect(image, template)

        self.assertTrue(result.present)
        self.assertAlmostEqual(result.reference_brightness, 128.0, places=6)
        self.assertGreater(result.diff, 10.0)

    def test_plain_image_is_not_detected(self) -> None:
        template = make_ramp_template()
        result = OverlayDetector().detect(create_gray_image(200, 200), template)
        self.assertFalse(result.present)
        self.assertAlmostEqual(result.diff, 0.0, places=6)

    def test_empty_overlay_never_detected(self) -> None:
        template = make_uniform_template(0)
        detector = OverlayDetector()
        for seed in range(3):
            image = create_random_image(160, 120, seed=seed)
            result = detector.detect(image, template)
            self.assertFalse(result.present)
            self.assertEqual(result.overlay_brightness, 0.0)
        self.assertFalse(detector.detect(create_gray_image(160, 120, 255), template).present)

    def test_threshold_boundary_on_measured_diff(self) -> None:
        template = make_ramp_template()
        image = composite(create_gray_image(200, 200, value=60), template)
        measured = OverlayDetector().detect(image, template).diff

        self.assertFalse(OverlayDetector(threshold=measured).detect(image, template).present)
        self.assertTrue(OverlayDetector(threshold=measured - 1e-4).detect(image, template).present)

    def test_near_transparent_pixels_are_ignored(self) -> None:
        # Alpha 25/255 (~0.098) is below the 0.1 cutoff, so only the bright
        # corner pixel under alpha 1.0 contributes.
        opacity = np.full((48, 48), 25)
        opacity[0, 0] = 255
        template = make_template(opacity)
        image = create_gray_image(200, 200, value=100)
        image[120, 120, :3] = 255

        result = OverlayDetector().detect(image, template)

        self.assertAlmostEqual(result.overlay_brightness, 255.0, places=6)
        self.assertTrue(result.present)

    def test_default_reference_when_footprint_touches_origin(self) -> None:
        template = make_uniform_template(200)
        dark = OverlayDetector().detect(create_gray_image(80, 80, value=0), template)
        bright = OverlayDetector().detect(create_gray_image(80, 80, value=255), template)

        self.assertEqual(dark.reference_brightness, 128.0)
        self.assertFalse(dark.present)
        self.assertEqual(bright.reference_brightness, 128.0)
        self.assertTrue(bright.present)

    def test_reference_strips_are_clipped_to_image(self) -> None:
        # Offset (10, 10): strips are 10 pixels thick instead of 48.
        template = make_uniform_template(255)
        image = create_gray_image(90, 90, value=0)
        image[0:10, 10:58, :3] = 40
        image[10:58, 0:10, :3] = 40

        result = OverlayDetector().detect(image, template)

        self.assertAlmostEqual(result.reference_brightness, 40.0, places=6)

    def test_custom_strip_size_and_invalid_values(self) -> None:
        template = make_uniform_template(255)
        image = create_gray_image(200, 200, value=0)
        image[:, 119, :3] = 90  # the column just left of the footprint
        image[119, :, :3] = 90  # the row just above it

        result = OverlayDetector(strip_size=1).detect(image, template)

        self.assertAlmostEqual(result.reference_brightness, 90.0, places=6)
        with self.assertRaises(ValueError):
            OverlayDetector(strip_size=0)
        with self.assertRaises(ValueError):
            OverlayDetector().detect(np.zeros((0, 0, 4), dtype=np.uint8), template)

    def test_from_config(self) -> None:
        detector = OverlayDetector.from_config(
            {"detection": {"threshold": 5, "min_alpha": 0.2, "default_reference": 100}}
        )
        self.assertEqual(detector.threshold, 5.0)
        self.assertEqual(detector.min_alpha, 0.2)
        self.assertEqual(detector.default_reference, 100.0)
        self.assertIsNone(detector.strip_size)


if __name__ == "__main__":
    unittest.main()
