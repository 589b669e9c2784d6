import unittest

from mapstudio.choropleth import build_choropleth, build_value_map, custom_fills, topology_fills
from mapstudio.custom_map import CustomMap
from mapstudio.features import resolve_features
from mapstudio.geography import normalize_geo_identifier
from mapstudio.settings import ChoroplethDimensions, parse_dimensions
from mapstudio.topology import Topology

from map_fixtures import CUSTOM_SVG, choropleth_settings, states_topology


def _normalize(value):
    return normalize_geo_identifier(value, "usa-states")


class ValueMapTests(unittest.TestCase):
    def setUp(self):
        self.dims = parse_dimensions(choropleth_settings())

    def test_rows_keyed_by_normalized_identifier(self):
        rows = [
            {"state": "California", "value": "50"},
            {"state": "nv", "value": 10},
            {"state": "", "value": 99},
            {"state": "TX", "value": "n/a"},
        ]
        self.assertEqual(build_value_map(rows, self.dims, _normalize), {"CA": 50.0, "NV": 10.0})

    def test_later_rows_win(self):
        rows = [{"state": "CA", "value": 1}, {"state": "California", "value": 2}]
        self.assertEqual(build_value_map(rows, self.dims, _normalize), {"CA": 2.0})

    def test_categorical_values_are_strings(self):
        dims = parse_dimensions(choropleth_settings(colorScale="categorical"))
        rows = [{"state": "CA", "value": 3.0}, {"state": "NV", "value": None}]
        self.assertEqual(build_value_map(rows, dims, _normalize), {"CA": "3"})


class BuildChoroplethTests(unittest.TestCase):
    def test_unbound_or_empty(self):
        self.assertIsNone(
            build_choropleth([{"state": "CA"}], ChoroplethDimensions(state_column="state"), default_fill="#ccc", normalize=_normalize)
        )
        dims = parse_dimensions(choropleth_settings())
        self.assertIsNone(build_choropleth([{"state": "CA"}], dims, default_fill="#ccc", normalize=_normalize))

    def test_topology_fills_by_feature_index(self):
        dims = parse_dimensions(choropleth_settings())
        result = build_choropleth(
            [{"state": "California", "value": 50}], dims, default_fill="#e0e0e0", normalize=_normalize
        )
        resolved = resolve_features(Topology(states_topology()), "usa-states")
        fills = topology_fills(result, resolved, _normalize)
        self.assertEqual(fills, {0: "#8080ff", 1: "#e0e0e0"})

    def test_custom_fills_keep_unmatched_nations(self):
        dims = parse_dimensions(choropleth_settings())
        result = build_choropleth([{"state": "CA", "value": 100}], dims, default_fill="#e0e0e0", normalize=_normalize)
        custom = CustomMap.parse(CUSTOM_SVG, "usa-states")
        nation, ca, nv = custom.features
        fills = custom_fills(result, custom)
        self.assertNotIn(nation.order, fills)
        self.assertEqual(fills[ca.order], "#0000ff")
        self.assertEqual(fills[nv.order], "#e0e0e0")


if __name__ == "__main__":
    unittest.main()
