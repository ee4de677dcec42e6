import logging
import os
import tempfile
import unittest
from pathlib import Path

from config import DEFAULT_CONFIG_PATH, config_base_dir, get_section, load_config
from core.detector import OverlayDetector
from core.dispatcher import OffloadedStrategy, ProcessingDispatcher
from core.logger import setup_logging
from core.remover import WatermarkRemover
from core.selector import SelectionRule
from core.unblender import AlphaUnblender


class TestConfigurationAndLogging(unittest.TestCase):
    def test_load_config_returns_expected_sections(self) -> None:
        config = load_config()
        for section in ("templates", "selection", "detection", "unblend", "dispatcher", "logging"):
            self.assertIn(section, config)

    def test_overrides_are_merged(self) -> None:
        config = load_config(overrides={"detection": {"threshold": 25}})
        self.assertEqual(config["detection"]["threshold"], 25)
        self.assertEqual(config["detection"]["min_alpha"], 0.1)

    def test_get_section_returns_copy(self) -> None:
        config = load_config()
        section = get_section(config, "selection")
        section["large_threshold"] = 1
        self.assertEqual(config["selection"]["large_threshold"], 1024)
        self.assertEqual(get_section(config, "missing", {}), {})

    def test_missing_config_raises(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_config("does/not/exist.yaml")

    def test_components_from_config_use_defaults(self) -> None:
        config = load_config()
        detector = OverlayDetector.from_config(config)
        unblender = AlphaUnblender.from_config(config)
        rule = SelectionRule.from_config(config)

        self.assertEqual(detector.threshold, 10.0)
        self.assertEqual(detector.min_alpha, 0.1)
        self.assertEqual(detector.default_reference, 128.0)
        self.assertEqual(unblender.min_alpha, 0.01)
        self.assertEqual(unblender.min_inverse_alpha, 0.01)
        self.assertEqual(rule, SelectionRule(1024, "large", "small"))

    def test_shipped_templates_load(self) -> None:
        config = load_config()
        with WatermarkRemover.from_config(config, base_dir=config_base_dir()) as remover:
            store = remover.store
            self.assertEqual(sorted(store.names), ["large", "small"])
            self.assertEqual((store["large"].width, store["large"].margin), (96, 64))
            self.assertEqual((store["small"].width, store["small"].margin), (48, 32))
            self.assertEqual(store["small"].overlay_color, (255, 255, 255))
            self.assertAlmostEqual(float(store["small"].alpha.max()), 128 / 255)
            self.assertIsInstance(remover.dispatcher, ProcessingDispatcher)
            self.assertIsInstance(remover.dispatcher.strategy, OffloadedStrategy)
        self.assertEqual(config_base_dir(), DEFAULT_CONFIG_PATH.parent)

    def test_setup_logging_creates_file_handler(self) -> None:
        config = load_config()
        logging_settings = config["logging"]

        with tempfile.TemporaryDirectory() as tmp_dir:
            expected_log_path = Path(tmp_dir) / "AlphaUnblend" / "logs" / "unblend.log"
            overrides = logging_settings.copy()
            overrides["file"] = dict(overrides["file"])
            overrides["file"]["filename"] = "$UNBLEND_HOME/AlphaUnblend/logs/unblend.log"
            overrides["file"]["enabled"] = True
            overrides["console"] = {"enabled": False}

            original_home = os.environ.get("UNBLEND_HOME")
            os.environ["UNBLEND_HOME"] = tmp_dir
            try:
                setup_logging(overrides, force=True)
                logger = logging.getLogger("unblend.tests")
                logger.info("log-line")
                logging.shutdown()

                self.assertTrue(expected_log_path.exists(), "Log file was not created.")
                self.assertGreater(expected_log_path.stat().st_size, 0, "Log file is empty.")

                # Reset logging to avoid dangling handlers once the temp directory is removed.
                setup_logging(
                    {"level": "WARNING", "console": {"enabled": False}, "file": {"enabled": False}},
                    force=True,
                )
            finally:
                if original_home is not None:
                    os.environ["UNBLEND_HOME"] = original_home
                else:
                    os.environ.pop("UNBLEND_HOME", None)

    def test_setup_logging_rejects_bad_settings(self) -> None:
        with self.assertRaises(ValueError):
            setup_logging({"level": "CHATTY", "console": {"enabled": False}}, force=True)
        with self.assertRaises(ValueError):
            setup_logging(
                {"level": "INFO", "console": {"enabled": False}, "file": {"enabled": True}},
                force=True,
            )
        setup_logging({"level": "WARNING", "console": {"enabled": False}}, force=True)


if __name__ == "__main__":
    unittest.main()
