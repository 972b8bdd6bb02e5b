"""
Tests for the logging setup.
"""

import logging
import os
import sys
import tempfile
import unittest

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from nps_sync.core.logging import LOGGER_NAME, logger, setup_logging


def package_handlers():
    return [h for h in logging.getLogger().handlers if getattr(h, "_nps_sync", False)]


class TestSetupLogging(unittest.TestCase):
    """Tests for setup_logging."""

    def setUp(self):
        """Set up test fixtures."""
        self.root = logging.getLogger()
        self.original_level = self.root.level
        self.temp_dir = tempfile.TemporaryDirectory()
        self.host_handler = logging.NullHandler()
        self.root.addHandler(self.host_handler)

    def tearDown(self):
        """Tear down test fixtures."""
        for handler in package_handlers():
            self.root.removeHandler(handler)
            handler.close()
        self.root.removeHandler(self.host_handler)
        self.root.setLevel(self.original_level)
        self.temp_dir.cleanup()

    def test_import_installs_no_handlers(self):
        self.assertEqual(logger.name, LOGGER_NAME)
        self.assertEqual(package_handlers(), [])

    def test_creates_log_files(self):
        log_dir = os.path.join(self.temp_dir.name, "logs")

        returned = setup_logging(log_dir=log_dir, level="debug")
        returned.error("disk full")

        self.assertIs(returned, logger)
        self.assertEqual(self.root.level, logging.DEBUG)
        self.assertTrue(os.path.exists(os.path.join(log_dir, "nps_sync.log")))
        self.assertTrue(os.path.exists(os.path.join(log_dir, "error.log")))

    def test_repeated_setup_keeps_host_handlers(self):
        setup_logging(log_dir=self.temp_dir.name)
        setup_logging(log_dir=self.temp_dir.name)

        self.assertEqual(len(package_handlers()), 3)
        self.assertIn(self.host_handler, self.root.handlers)

    def test_quiets_third_party_loggers(self):
        setup_logging(log_dir=self.temp_dir.name)

        for name in ("aiohttp", "sqlalchemy", "schedule"):
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)


if __name__ == '__main__':
    unittest.main()
