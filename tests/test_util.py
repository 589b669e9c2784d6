import json
import logging
import tempfile
import unittest
from pathlib import Path

from mapstudio.util import PACKAGE_LOGGER, setup_logging, topology_cache_key, write_report_json


class SetupLoggingTests(unittest.TestCase):
    def tearDown(self):
        logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)

    def test_repeated_setup_replaces_handlers(self):
        with tempfile.TemporaryDirectory() as tmp:
            log_file = Path(tmp) / "logs" / "mapstudio.log"
            setup_logging(log_file, verbose=True)
            logger = setup_logging(log_file, verbose=True)
            self.assertEqual(len(logger.handlers), 2)
            self.assertEqual(logger.level, logging.DEBUG)
            logging.getLogger("mapstudio.render").debug("drawn")
            for handler in logger.handlers:
                handler.flush()
            self.assertIn("| DEBUG | mapstudio.render | drawn", log_file.read_text(encoding="utf-8"))

    def test_default_level_is_info(self):
        self.assertEqual(setup_logging().level, logging.INFO)


class OutputTests(unittest.TestCase):
    def test_cache_key_follows_content(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "topo.json"
            path.write_text("{}", encoding="utf-8")
            first = topology_cache_key(path)
            self.assertTrue(first.startswith("topology:"))
            self.assertEqual(topology_cache_key(path), first)
            path.write_text('{"type": "Topology"}', encoding="utf-8")
            self.assertNotEqual(topology_cache_key(path), first)

    def test_report_keeps_summary_order(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "out" / "report.json"
            write_report_json(path, {"ok": True, "summary": {"symbols": 1, "features": 2}})
            text = path.read_text(encoding="utf-8")
            self.assertTrue(text.endswith("\n"))
            self.assertEqual(list(json.loads(text)["summary"]), ["symbols", "features"])


if __name__ == "__main__":
    unittest.main()
