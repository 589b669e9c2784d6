import math
import unittest

from mapstudio.projection import MapProjection
from mapstudio.scene import format_number
from mapstudio.settings import SymbolStyle, parse_dimensions
from mapstudio.symbols import (
    build_size_scale,
    build_symbol_color_scale,
    parse_coordinate,
    render_symbols,
    symbol_fill,
    symbol_path,
    valid_symbol_rows,
)

from map_fixtures import symbol_settings


class CoordinateTests(unittest.TestCase):
    def test_strict_parsing(self):
        self.assertEqual(parse_coordinate("37.5"), 37.5)
        self.assertEqual(parse_coordinate(-120), -120.0)
        for cell in (None, "", "37N", True, "nan", float("inf")):
            self.assertIsNone(parse_coordinate(cell), cell)

    def test_out_of_range_rows_are_excluded(self):
        dims = parse_dimensions(symbol_settings())
        rows = [
            {"lat": 37, "lng": -120},
            {"lat": 200, "lng": -100},
            {"lat": 10, "lng": 181},
            {"lat": "", "lng": 5},
            {"lat": -90, "lng": 180},
        ]
        self.assertEqual(valid_symbol_rows(rows, dims), (rows[0], rows[4]))


class ScaleTests(unittest.TestCase):
    def test_size_scale_requires_spread(self):
        dims = parse_dimensions(symbol_settings(sizeBy="pop", sizeMin=5, sizeMax=20))
        self.assertIsNone(build_size_scale([{"pop": 3}, {"pop": 3}], dims))
        scale = build_size_scale([{"pop": 0}, {"pop": 100}], dims)
        self.assertEqual((scale(0), scale(100), scale(500)), (5.0, 20.0, 20.0))

    def test_linear_fill_falls_back_for_non_numeric(self):
        dims = parse_dimensions(
            symbol_settings(colorBy="v", colorMinColor="#000000", colorMidColor="", colorMaxColor="#ffffff")
        )
        rows = [{"v": 0}, {"v": 100}]
        scale = build_symbol_color_scale(rows, dims, "#1f77b4")
        self.assertEqual(symbol_fill({"v": 100}, dims, scale, "#1f77b4"), "#ffffff")
        self.assertEqual(symbol_fill({"v": "?"}, dims, scale, "#1f77b4"), "#1f77b4")


class GlyphTests(unittest.TestCase):
    def test_shapes(self):
        self.assertTrue(symbol_path("symbol", "circle", 5).path_data.startswith("M5,0A5,5"))
        self.assertEqual(symbol_path("symbol", "square", 5).path_data[0], "M")
        self.assertEqual(symbol_path("symbol", "triangle-down", 5).transform, "rotate(180)")
        marker = symbol_path("symbol", "map-marker", 5)
        self.assertEqual(marker.fill_rule, "evenodd")
        self.assertTrue(marker.transform.startswith("translate("))

    def test_spikes_and_arrows_draw_circles(self):
        self.assertEqual(symbol_path("spike", "square", 5), symbol_path("symbol", "circle", 5))

    def test_custom_path(self):
        custom = symbol_path("symbol", "custom-svg", 10, "M0 0 L24 24")
        self.assertEqual(custom.path_data, "M0 0 L24 24")
        scale = math.sqrt(math.pi * 100) / 100.0
        self.assertEqual(custom.transform, f"scale({format_number(scale)}) translate(-12, -12)")
        fallback = symbol_path("symbol", "custom-svg", 10, "junk")
        self.assertEqual(fallback, symbol_path("symbol", "circle", 10))


class RenderSymbolsTests(unittest.TestCase):
    def test_render_skips_invalid_rows_and_keeps_indexes(self):
        dims = parse_dimensions(symbol_settings())
        projection = MapProjection.create("albers_usa", width=975, height=610, scale=1300)
        rows = [
            {"lat": 37, "lng": -120, "name": "A"},
            {"lat": 200, "lng": -100, "name": "Bad"},
            {"lat": 51.5, "lng": 0, "name": "Off-map"},
            {"lat": 40.7, "lng": -74.0, "name": "B"},
        ]
        layer = render_symbols(rows, dims, SymbolStyle(), projection)
        self.assertEqual(len(layer.valid_rows), 3)
        self.assertEqual([symbol.index for symbol in layer.symbols], [0, 2])
        self.assertEqual([child.id for child in layer.group.children], ["Symbol-0", "Symbol-2"])
        self.assertNotIn("Bad", [symbol.row["name"] for symbol in layer.symbols])
        path = layer.group.children[0].children[0]
        self.assertEqual(path.attr("fill"), "#1f77b4")
        self.assertEqual(path.attr("fill-opacity"), "0.8")


if __name__ == "__main__":
    unittest.main()
