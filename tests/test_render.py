import unittest

from mapstudio.config import AppConfig
from mapstudio.models import DrawnPath, LabelOverride, PathPoint
from mapstudio.render import MapRenderer, RenderReport, RenderRequest, format_render_lines
from mapstudio.settings import MapSettings, StylingSettings
from mapstudio.topology import Topology

from map_fixtures import CUSTOM_SVG, boxes_topology, choropleth_settings, states_topology, symbol_settings


def _settings(*dimensions, **extra):
    raw = {"geography": "usa-states", "projection": "albers_usa", "dimensions": list(dimensions)}
    raw.update(extra)
    return MapSettings.from_mapping(raw)


class TopologyRenderTests(unittest.TestCase):
    def setUp(self):
        self.renderer = MapRenderer(AppConfig.default())
        self.topology = Topology(states_topology())

    def test_choropleth_fills_matched_states(self):
        req = RenderRequest(
            settings=_settings(choropleth_settings()),
            region_rows=({"state": "California", "value": 50},),
            topology=self.topology,
        )
        scene, report = self.renderer.render(req)
        self.assertTrue(report.ok, report.errors)
        self.assertEqual(scene.find("State-CA").attr("fill"), "#8080ff")
        self.assertEqual(scene.find("State-NV").attr("fill"), "#e0e0e0")
        self.assertIsNotNone(scene.find("Country-US"))
        self.assertIsNotNone(scene.find("ChoroplethColorLegend"))
        self.assertEqual((scene.height, scene.legend_height), (690, 80))
        self.assertEqual(scene.root.attr("viewBox"), "0 0 975 690")
        self.assertEqual(report.summary["features"], 2)

    def test_base_map_is_drawn_without_layer_failures(self):
        with self.assertNoLogs("mapstudio.render", level="WARNING"):
            scene, report = self.renderer.render(RenderRequest(settings=_settings(), topology=self.topology))
        self.assertEqual(report.errors, [])
        outline = scene.find("Country-US")
        self.assertTrue(outline.attr("d").startswith("M"))
        self.assertTrue(scene.find("State-CA").attr("d").endswith("Z"))

    def test_world_country_without_data_keeps_default_fill(self):
        topology = Topology(
            boxes_topology("countries", [("642", {"name": "Romania"}), ("512", {"name": "Oman"})])
        )
        settings = MapSettings.from_mapping(
            {
                "geography": "world",
                "projection": "equirectangular",
                "dimensions": [choropleth_settings(stateColumn="country")],
            }
        )
        req = RenderRequest(settings=settings, region_rows=({"country": "Romania", "value": 100},), topology=topology)
        scene, report = self.renderer.render(req)
        self.assertTrue(report.ok, report.errors)
        self.assertEqual(scene.find("Region-Romania").attr("fill"), "#0000ff")
        self.assertEqual(scene.find("Region-Oman").attr("fill"), "#e0e0e0")

    def test_world_without_choropleth_uses_nation_styling(self):
        topology = Topology(boxes_topology("countries", [("512", {"name": "Oman"})]))
        settings = MapSettings.from_mapping({"geography": "world", "projection": "equirectangular", "dimensions": []})
        scene, report = self.renderer.render(RenderRequest(settings=settings, topology=topology))
        self.assertTrue(report.ok, report.errors)
        self.assertEqual(scene.find("Region-Oman").attr("fill"), "#f0f0f0")

    def test_counties_sharing_a_name_render_with_unique_ids(self):
        washington = {"name": "Washington"}
        topology = Topology(
            boxes_topology(
                "counties",
                [("41067", washington), ("49053", washington), ("06037", {"name": "Los Angeles"})],
                origin=(-120.0, 38.0),
                with_nation=True,
            )
        )
        settings = MapSettings.from_mapping({"geography": "usa-counties", "projection": "albers_usa", "dimensions": []})
        scene, report = self.renderer.render(RenderRequest(settings=settings, topology=topology))
        self.assertTrue(report.ok, report.errors)
        ids = [child.id for child in scene.find("StatesOrCounties").children]
        self.assertEqual(ids, ["County-41067", "County-49053", "County-06037"])

    def test_out_of_range_symbols_are_dropped(self):
        req = RenderRequest(
            settings=_settings(symbol_settings()),
            symbol_rows=({"lat": 37, "lng": -120}, {"lat": 200, "lng": -100}),
            topology=self.topology,
        )
        scene, report = self.renderer.render(req)
        self.assertTrue(report.ok, report.errors)
        self.assertIsNotNone(scene.find("Symbol-0"))
        self.assertIsNone(scene.find("Symbol-1"))
        self.assertEqual(report.summary["symbols"], 1)
        self.assertEqual(scene.height, 610)

    def test_choropleth_failure_leaves_other_layers(self):
        req = RenderRequest(
            settings=_settings(choropleth_settings(colorMinColor="notacolor"), symbol_settings()),
            symbol_rows=({"lat": 37, "lng": -120},),
            region_rows=({"state": "CA", "value": 50},),
            topology=self.topology,
        )
        scene, report = self.renderer.render(req)
        self.assertEqual(len(report.errors), 1)
        self.assertTrue(report.errors[0].startswith("choropleth layer failed"))
        self.assertEqual(scene.find("State-CA").attr("fill"), "#e0e0e0")
        self.assertIsNotNone(scene.find("Symbol-0"))
        self.assertIsNone(scene.find("Legends"))

    def test_missing_nation_object(self):
        raw = states_topology()
        del raw["objects"]["nation"]
        req = RenderRequest(settings=_settings(), topology=Topology(raw))
        scene, report = self.renderer.render(req)
        self.assertEqual(report.errors, ["US states map data is incomplete."])
        self.assertIsNone(scene.find("Map"))
        self.assertIsNotNone(scene.find("Background"))

    def test_no_map_data(self):
        _, report = self.renderer.render(RenderRequest(settings=_settings()))
        self.assertEqual(report.errors, ["No map data found for usa-states"])

    def test_rendering_is_deterministic(self):
        req = RenderRequest(
            settings=_settings(choropleth_settings(labelTemplate="{value}"), symbol_settings(labelTemplate="{name}")),
            symbol_rows=({"lat": 37, "lng": -120, "name": "Fresno"},),
            region_rows=({"state": "CA", "value": 10}, {"state": "NV", "value": 90}),
            topology=self.topology,
        )
        first, _ = self.renderer.render(req)
        second, _ = MapRenderer(AppConfig.default()).render(req)
        self.assertEqual(first.root, second.root)
        self.assertEqual(first.to_svg(), second.to_svg())

    def test_removing_an_override_restores_the_label(self):
        settings = _settings(choropleth_settings(labelTemplate="{value}"))
        base = RenderRequest(settings=settings, region_rows=({"state": "CA", "value": 10},), topology=self.topology)
        plain, _ = self.renderer.render(base)

        moved_styling = settings.styling.with_label_override(LabelOverride(id="choropleth-CA", x=1, y=2))
        moved, _ = self.renderer.render(
            RenderRequest(
                settings=settings.with_styling(moved_styling),
                region_rows=base.region_rows,
                topology=self.topology,
            )
        )
        self.assertEqual(moved.find("choropleth-CA").attr("x"), "1")

        reset, _ = self.renderer.render(
            RenderRequest(
                settings=settings.with_styling(moved_styling.without_label_override("choropleth-CA")),
                region_rows=base.region_rows,
                topology=self.topology,
            )
        )
        self.assertEqual(reset.root, plain.root)

    def test_drawn_paths_and_markers(self):
        path = DrawnPath(id="p1", points=(PathPoint(0, 0), PathPoint(50, 50)), end_marker="closed-circle")
        settings = _settings().with_styling(StylingSettings(drawn_paths=(path,)))
        scene, report = self.renderer.render(RenderRequest(settings=settings, topology=self.topology))
        self.assertTrue(report.ok, report.errors)
        self.assertIsNotNone(scene.find("DrawnPaths"))
        self.assertIsNotNone(scene.find("marker-end-p1"))
        self.assertEqual(report.summary["paths"], 1)


class CustomMapRenderTests(unittest.TestCase):
    def setUp(self):
        self.renderer = MapRenderer(AppConfig.default())

    def test_custom_map_fills(self):
        req = RenderRequest(
            settings=_settings(choropleth_settings(kind="custom"), symbol_settings()),
            symbol_rows=({"lat": 37, "lng": -120},),
            region_rows=({"state": "CA", "value": 50},),
            custom_map_svg=CUSTOM_SVG,
        )
        scene, report = self.renderer.render(req)
        self.assertTrue(report.ok, report.errors)
        self.assertEqual(scene.find("State-CA").attr("fill"), "#8080ff")
        self.assertEqual(scene.find("State-NV").attr("fill"), "#e0e0e0")
        self.assertEqual(scene.find("Country-US").attr("fill"), "#f0f0f0")
        self.assertEqual(report.summary["custom_features"], 3)
        self.assertEqual(report.summary["symbols"], 0)

    def test_invalid_custom_map(self):
        req = RenderRequest(settings=_settings(), custom_map_svg="<svg><g>")
        scene, report = self.renderer.render(req)
        self.assertEqual(len(report.errors), 1)
        self.assertTrue(report.errors[0].startswith("Custom map error:"))
        self.assertIsNotNone(scene.find("Background"))


class FormatRenderLinesTests(unittest.TestCase):
    def test_lines(self):
        report = RenderReport()
        report.add_warning("careful")
        self.assertEqual(format_render_lines(report), ["[WARN] careful", "[OK] Map rendering completed with no errors."])
        report.add_error("broken")
        self.assertEqual(format_render_lines(report)[-1], "[ERROR] broken")


if __name__ == "__main__":
    unittest.main()
