"""Base-map layer: projection placement and boundary geometry drawing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from .custom_map import CustomMap
from .features import ResolvedFeatures, feature_element_id
from .geography import NATIONAL_OUTLINE_GEOGRAPHIES
from .projection import MapProjection
from .scene import SceneNode, group, node
from .settings import BaseStyle


_LOGGER = logging.getLogger("mapstudio.basemap")

CLIP_PATH_ID = "clip-path-country"


@dataclass(frozen=True, slots=True)
class BaseMap:
    """Drawn base layer plus the projection every later layer must use."""

    projection: MapProjection
    map_group: SceneNode
    defs: SceneNode | None = None


def nation_element_id(geography: str) -> str:
    if geography.startswith("usa"):
        return "Country-US"
    if geography.startswith("canada"):
        return "Country-CA"
    return "World-Outline"


def unique_element_ids(features: Any, geography: str) -> list[str]:
    """Element ids for `features` in order; repeats get a `-2`, `-3`... suffix."""
    ids: list[str] = []
    counts: dict[str, int] = {}
    for feature in features:
        base = feature_element_id(feature, geography)
        counts[base] = counts.get(base, 0) + 1
        if counts[base] > 1:
            _LOGGER.debug("Duplicate element id %s", base)
            ids.append(f"{base}-{counts[base]}")
        else:
            ids.append(base)
    return ids


def place_projection(
    projection: MapProjection,
    resolved: ResolvedFeatures,
    *,
    clip_to_country: bool,
    width: float,
    map_height: float,
) -> tuple[MapProjection, bool]:
    """Fit the projection to the clip feature or to all features.

    Returns the placed projection and whether a clip region applies. The
    composite projection keeps its fixed placement and is never clipped.
    """
    if projection.is_composite:
        return (projection, False)
    clip = resolved.clip_feature
    if clip_to_country and clip is not None and not clip.is_empty:
        return (projection.fit(clip.geometry, width=width, height=map_height), True)
    if resolved.features:
        collection = _require_shapely_geometry().GeometryCollection(
            [feature.geometry for feature in resolved.features if not feature.is_empty]
        )
        return (projection.fit(collection, width=width, height=map_height), False)
    return (projection, False)


def draw_topology_map(
    resolved: ResolvedFeatures,
    projection: MapProjection,
    style: BaseStyle,
    *,
    clipped: bool,
    fills: Mapping[int, str] | None = None,
) -> BaseMap:
    """Draw the nation outline and every feature of a resolved geography.

    `fills` maps a feature's index in `resolved.features` to its data color;
    other features keep the base fill.
    """
    geography = resolved.geography
    fills = fills or {}
    national = geography in NATIONAL_OUTLINE_GEOGRAPHIES

    nation_children: list[SceneNode] = []
    if resolved.nation_mesh is not None:
        nation_children.append(
            node(
                "path",
                {
                    "id": nation_element_id(geography),
                    "fill": style.nation_fill_color,
                    "stroke": style.nation_stroke_color,
                    "stroke-width": style.nation_stroke_width,
                    "stroke-linejoin": "round",
                    "stroke-linecap": "round",
                    "d": projection.path_data(resolved.nation_mesh),
                },
            )
        )

    feature_nodes: list[SceneNode] = []
    element_ids = unique_element_ids(resolved.features, geography)
    for index, feature in enumerate(resolved.features):
        base_fill = style.nation_fill_color if national else style.default_state_fill_color
        feature_nodes.append(
            node(
                "path",
                {
                    "id": element_ids[index],
                    "fill": fills.get(index, base_fill),
                    "stroke": style.nation_stroke_color if national else style.default_state_stroke_color,
                    "stroke-width": (
                        style.nation_stroke_width if national else style.default_state_stroke_width
                    ),
                    "stroke-linejoin": "round",
                    "stroke-linecap": "round",
                    "d": projection.path_data(feature.geometry),
                },
            )
        )

    defs: SceneNode | None = None
    clip_attr: str | None = None
    if clipped and resolved.clip_feature is not None:
        defs = node(
            "defs",
            children=[
                node(
                    "clipPath",
                    {"id": CLIP_PATH_ID},
                    [node("path", {"d": projection.path_data(resolved.clip_feature.geometry)})],
                )
            ],
        )
        clip_attr = f"url(#{CLIP_PATH_ID})"

    _LOGGER.debug("Drew %d %s features", len(feature_nodes), geography)
    map_group = group(
        "Map",
        [group("Nations", nation_children), group("StatesOrCounties", feature_nodes)],
        clip_path=clip_attr,
    )
    return BaseMap(projection=projection, map_group=map_group, defs=defs)


def draw_custom_map(
    custom_map: CustomMap,
    projection: MapProjection,
    style: BaseStyle,
    *,
    fills: Mapping[int, str] | None = None,
) -> BaseMap:
    """Embed a custom map document with base styling and data fills applied."""
    map_group = custom_map.to_scene(
        nation_style={
            "fill": style.nation_fill_color,
            "stroke": style.nation_stroke_color,
            "stroke-width": style.nation_stroke_width,
        },
        subdivision_style={
            "fill": style.default_state_fill_color,
            "stroke": style.default_state_stroke_color,
            "stroke-width": style.default_state_stroke_width,
        },
        fills=fills,
    )
    return BaseMap(projection=projection, map_group=map_group)


def _require_shapely_geometry() -> Any:
    try:
        from shapely import geometry
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for base map fitting") from exc
    return geometry
