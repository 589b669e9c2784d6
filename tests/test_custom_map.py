import unittest

from mapstudio.custom_map import (
    CustomMap,
    CustomMapError,
    ensure_paths_closed,
    path_bbox,
    validate_custom_svg,
)

from map_fixtures import CUSTOM_SVG


class ValidateCustomSvgTests(unittest.TestCase):
    def test_valid_document(self):
        self.assertEqual(validate_custom_svg(CUSTOM_SVG), (True, "SVG is valid."))

    def test_empty_and_malformed(self):
        self.assertEqual(validate_custom_svg("  "), (False, "SVG code cannot be empty."))
        ok, message = validate_custom_svg("<svg><g></svg>")
        self.assertFalse(ok)
        self.assertTrue(message.startswith("Invalid SVG format"))

    def test_structural_requirements(self):
        ok, message = validate_custom_svg('<div xmlns="http://www.w3.org/2000/svg"/>')
        self.assertEqual((ok, message), (False, "Root element must be <svg>."))

        ok, message = validate_custom_svg('<svg xmlns="http://www.w3.org/2000/svg"><g id="Other"/></svg>')
        self.assertEqual((ok, message), (False, "Missing required <g id='Map'> group."))

        no_states = CUSTOM_SVG.replace('id="States"', 'id="Layer"')
        ok, message = validate_custom_svg(no_states)
        self.assertFalse(ok)
        self.assertIn("<g id='States'>", message)

        no_outline = CUSTOM_SVG.replace('id="Country-US"', 'id="Outline"')
        ok, message = validate_custom_svg(no_outline)
        self.assertFalse(ok)
        self.assertIn("Country-US", message)


class EnsurePathsClosedTests(unittest.TestCase):
    def test_closes_open_paths(self):
        text, closed = ensure_paths_closed(CUSTOM_SVG)
        self.assertEqual(closed, 1)
        self.assertIn('d="M60,10 L100,10 L100,50 L60,50Z"', text)
        _, closed_again = ensure_paths_closed(text)
        self.assertEqual(closed_again, 0)

    def test_unparseable_document_is_returned_unchanged(self):
        self.assertEqual(ensure_paths_closed("<svg"), ("<svg", 0))


class PathBBoxTests(unittest.TestCase):
    def test_absolute_and_relative_commands(self):
        self.assertEqual(path_bbox("M10,10 L50,10 L50,50 Z"), (10.0, 10.0, 50.0, 50.0))
        self.assertEqual(path_bbox("M10,10 l5,5 h10 v-20 Z"), (10.0, -5.0, 25.0, 15.0))

    def test_implicit_line_to_after_move(self):
        self.assertEqual(path_bbox("M0,0 10,0 10,10"), (0.0, 0.0, 10.0, 10.0))

    def test_curves_include_control_points(self):
        self.assertEqual(path_bbox("M0,0 C0,-10 10,-10 10,0"), (0.0, -10.0, 10.0, 0.0))

    def test_no_data(self):
        self.assertIsNone(path_bbox(""))


class CustomMapTests(unittest.TestCase):
    def test_features_and_keys(self):
        custom = CustomMap.parse(CUSTOM_SVG, "usa-states")
        self.assertEqual(custom.feature_keys(), ("US", "CA", "NV"))
        nation, ca, nv = custom.features
        self.assertTrue(nation.in_nations)
        self.assertFalse(ca.in_nations)
        self.assertEqual(ca.centroid, (30.0, 30.0))
        self.assertTrue(custom.has_nations_group)
        self.assertTrue(custom.has_subdivision_group)

    def test_unnamed_path_inherits_group_id(self):
        svg = (
            '<svg xmlns="http://www.w3.org/2000/svg"><g id="Map"><g id="States">'
            '<g id="TX"><path d="M0,0 L1,1"/></g></g></g></svg>'
        )
        custom = CustomMap.parse(svg, "usa-states")
        self.assertEqual(custom.feature_keys(), ("TX", "TX"))

    def test_document_without_map_group(self):
        svg = '<svg xmlns="http://www.w3.org/2000/svg"><path id="State-WA" d="M0,0 L1,1 Z"/></svg>'
        custom = CustomMap.parse(svg, "usa-states")
        self.assertEqual(custom.feature_keys(), ("WA",))
        self.assertEqual(custom.to_scene(nation_style={}, subdivision_style={}).id, "Map")

    def test_to_scene_applies_styles_and_fills(self):
        custom = CustomMap.parse(CUSTOM_SVG, "usa-states")
        ca = custom.features[1]
        scene = custom.to_scene(
            nation_style={"fill": "#eeeeee"},
            subdivision_style={"fill": "#cccccc", "stroke": "#999999"},
            fills={ca.order: "#ff0000"},
        )
        self.assertEqual(scene.find("Country-US").attr("fill"), "#eeeeee")
        self.assertEqual(scene.find("State-CA").attr("fill"), "#ff0000")
        self.assertEqual(scene.find("State-NV").attr("fill"), "#cccccc")
        self.assertEqual(scene.find("State-NV").attr("stroke"), "#999999")

    def test_parse_errors(self):
        with self.assertRaises(CustomMapError):
            CustomMap.parse("", "usa-states")
        with self.assertRaises(CustomMapError):
            CustomMap.parse("<svg><g>", "usa-states")


if __name__ == "__main__":
    unittest.main()
