import json
import tempfile
import unittest
from pathlib import Path

import yaml

from mapstudio.cli import load_rows, main

from map_fixtures import CUSTOM_SVG, choropleth_settings, states_topology, symbol_settings


class CliTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, name, text):
        path = self.tmp / name
        path.write_text(text, encoding="utf-8")
        return path


class ValidateSvgTests(CliTestCase):
    def test_valid_document_and_closed_copy(self):
        svg = self.write("map.svg", CUSTOM_SVG)
        closed = self.tmp / "out" / "closed.svg"
        self.assertEqual(main(["validate-svg", str(svg), "--write-closed", str(closed)]), 0)
        self.assertIn("L60,50Z", closed.read_text(encoding="utf-8"))

    def test_invalid_document(self):
        svg = self.write("bad.svg", '<svg xmlns="http://www.w3.org/2000/svg"><g id="Other"/></svg>')
        self.assertEqual(main(["validate-svg", str(svg)]), 1)

    def test_missing_file(self):
        self.assertEqual(main(["validate-svg", str(self.tmp / "nope.svg")]), 2)


class RenderCommandTests(CliTestCase):
    def setUp(self):
        super().setUp()
        self.topology = self.write("states.json", json.dumps(states_topology()))
        self.settings = self.write(
            "settings.yaml",
            yaml.safe_dump(
                {
                    "geography": "usa-states",
                    "projection": "albers_usa",
                    "dimensions": [choropleth_settings(), symbol_settings()],
                }
            ),
        )
        self.data = self.write(
            "rows.json",
            json.dumps(
                {
                    "symbol": [{"lat": 37, "lng": -120}],
                    "region": [{"state": "CA", "value": 50}],
                }
            ),
        )

    def test_render_writes_svg_and_report(self):
        out = self.tmp / "out" / "map.svg"
        report = self.tmp / "out" / "report.json"
        code = main(
            [
                "render",
                "--settings",
                str(self.settings),
                "--data",
                str(self.data),
                "--topology",
                str(self.topology),
                "--out",
                str(out),
                "--report",
                str(report),
            ]
        )
        self.assertEqual(code, 0)
        svg = out.read_text(encoding="utf-8")
        self.assertIn('id="State-CA"', svg)
        self.assertIn('id="Symbol-0"', svg)
        payload = json.loads(report.read_text(encoding="utf-8"))
        self.assertTrue(payload["ok"])
        self.assertEqual(payload["summary"]["symbols"], 1)

    def test_render_custom_map(self):
        custom = self.write("custom.svg", CUSTOM_SVG)
        out = self.tmp / "custom-out.svg"
        code = main(["render", "--settings", str(self.settings), "--custom-map", str(custom), "--out", str(out)])
        self.assertEqual(code, 0)
        self.assertIn('id="State-CA"', out.read_text(encoding="utf-8"))

    def test_requires_a_map_source(self):
        out = self.tmp / "map.svg"
        self.assertEqual(main(["render", "--settings", str(self.settings), "--out", str(out)]), 2)
        self.assertFalse(out.exists())

    def test_invalid_settings(self):
        bad = self.write("bad.yaml", "geography: atlantis\n")
        code = main(
            ["render", "--settings", str(bad), "--topology", str(self.topology), "--out", str(self.tmp / "m.svg")]
        )
        self.assertEqual(code, 2)

    def test_render_errors_exit_one(self):
        raw = states_topology()
        del raw["objects"]["nation"]
        broken = self.write("broken.json", json.dumps(raw))
        out = self.tmp / "map.svg"
        code = main(["render", "--settings", str(self.settings), "--topology", str(broken), "--out", str(out)])
        self.assertEqual(code, 1)
        self.assertTrue(out.exists())

    def test_invalid_config(self):
        config = self.write("config.yaml", "canvas:\n  width: wide\n")
        code = main(
            [
                "render",
                "--config",
                str(config),
                "--settings",
                str(self.settings),
                "--topology",
                str(self.topology),
                "--out",
                str(self.tmp / "m.svg"),
            ]
        )
        self.assertEqual(code, 2)


class LoadRowsTests(CliTestCase):
    def test_plain_list_feeds_both_layers(self):
        path = self.write("rows.json", json.dumps([{"a": 1}]))
        self.assertEqual(load_rows(path), (({"a": 1},), ({"a": 1},)))

    def test_bad_shapes(self):
        with self.assertRaises(ValueError):
            load_rows(self.write("rows.json", json.dumps({"symbol": {"a": 1}})))
        with self.assertRaises(ValueError):
            load_rows(self.write("rows2.json", json.dumps([1, 2])))
        with self.assertRaises(ValueError):
            load_rows(self.write("rows3.json", json.dumps("rows")))


if __name__ == "__main__":
    unittest.main()
