"""Choropleth color engine: data rows to per-feature fill colors."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from .custom_map import CustomMap
from .features import ResolvedFeatures, resolve_feature_key
from .models import DataRow
from .scales import CategoricalScale, ColorScale, build_color_scale
from .settings import RegionDimensions
from .values import get_numeric_value, get_unique_values, js_string


_LOGGER = logging.getLogger("mapstudio.choropleth")

Normalizer = Callable[[Any], str]


@dataclass(frozen=True, slots=True)
class ChoroplethResult:
    """Data values keyed by feature key, and the scale that colors them."""

    values: Mapping[str, Any]
    scale: ColorScale | CategoricalScale
    default_fill: str
    unique_values: tuple[str, ...] = field(default_factory=tuple)

    def color_for_key(self, key: str | None) -> str:
        if not key or key not in self.values:
            return self.default_fill
        return self.scale(self.values[key])


def build_value_map(
    rows: Sequence[DataRow],
    dims: RegionDimensions,
    normalize: Normalizer,
) -> dict[str, Any]:
    """Map normalized region key to the row's color value; later rows win."""
    linear = dims.color.is_linear
    out: dict[str, Any] = {}
    for row in rows:
        raw_key = row.get(dims.state_column)
        raw_text = js_string(raw_key) if raw_key else ""
        if not raw_text.strip():
            continue
        if linear:
            value: Any = get_numeric_value(row.get(dims.color.color_by))
            if value is None or math.isnan(value):
                continue
        else:
            cell = row.get(dims.color.color_by)
            if cell is None:
                continue
            value = js_string(cell)
            if value == "":
                continue
        out[normalize(raw_text)] = value
    return out


def build_choropleth(
    rows: Sequence[DataRow],
    dims: RegionDimensions,
    *,
    default_fill: str,
    normalize: Normalizer,
) -> ChoroplethResult | None:
    """Build the choropleth for bound dimensions; None when nothing can be colored."""
    if not dims.is_bound:
        return None
    values = build_value_map(rows, dims, normalize)
    if not values:
        _LOGGER.debug("No usable choropleth values in column %r", dims.color.color_by)
        return None
    unique = tuple(get_unique_values(rows, dims.color.color_by))
    scale = build_color_scale(dims.color, unique_values=unique, fallback_color=default_fill)
    return ChoroplethResult(values=values, scale=scale, default_fill=default_fill, unique_values=unique)


def topology_fills(
    result: ChoroplethResult,
    resolved: ResolvedFeatures,
    normalize: Normalizer,
) -> dict[int, str]:
    """Fill color for every resolved feature, by feature index."""
    fills: dict[int, str] = {}
    matched = 0
    for index, feature in enumerate(resolved.features):
        key = resolve_feature_key(feature, resolved.geography, result.values, normalize)
        if key is not None and key in result.values:
            matched += 1
        fills[index] = result.color_for_key(key)
    _LOGGER.debug("Choropleth matched %d of %d features", matched, len(resolved.features))
    return fills


def custom_fills(result: ChoroplethResult, custom_map: CustomMap) -> dict[int, str]:
    """Fill color for custom-map features, by document order.

    Unmatched elements of the nations group keep their nation styling; every
    other unmatched feature gets the default fill.
    """
    fills: dict[int, str] = {}
    for feature in custom_map.features:
        if feature.key and feature.key in result.values:
            fills[feature.order] = result.color_for_key(feature.key)
        elif not feature.in_nations:
            fills[feature.order] = result.default_fill
    return fills
