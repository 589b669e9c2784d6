"""Freehand path editor: path model edits, SVG path data, markers, rendering."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Sequence

from .models import DrawnPath, PathPoint
from .scene import SceneNode, format_number, group, node
from .settings import PathStyleDefaults


_LOGGER = logging.getLogger("mapstudio.paths")

TOOLS = ("inspect", "select", "move", "draw")
ANCHOR_RADIUS = 6
MOVE_THRESHOLD = 0.1

_CURSORS = {"select": "pointer", "move": "move", "draw": "crosshair"}


@dataclass(frozen=True, slots=True)
class PathStyle:
    """Fully resolved path styling: path value, then defaults, then built-ins."""

    stroke: str
    stroke_width: float
    stroke_dasharray: str
    stroke_linecap: str
    stroke_linejoin: str
    fill: str
    opacity: float
    stroke_outline: str
    stroke_outline_width: float
    start_marker: str
    end_marker: str
    border_radius: float

    @property
    def has_outline(self) -> bool:
        return self.stroke_outline != "none" and self.stroke_outline_width > 0

    @property
    def outline_width(self) -> float:
        return self.stroke_width + 2.0 * self.stroke_outline_width

    @property
    def marker_size(self) -> float:
        return max(self.stroke_width * 2.0, 8.0)


def resolve_path_style(path: DrawnPath, defaults: PathStyleDefaults) -> PathStyle:
    def pick(value: Any, fallback: Any) -> Any:
        return fallback if value is None else value

    return PathStyle(
        stroke=pick(path.stroke, defaults.stroke or "#000000"),
        stroke_width=float(pick(path.stroke_width, defaults.stroke_width)),
        stroke_dasharray=pick(path.stroke_dasharray, defaults.stroke_dasharray or "none"),
        stroke_linecap=pick(path.stroke_linecap, defaults.stroke_linecap or "round"),
        stroke_linejoin=pick(path.stroke_linejoin, defaults.stroke_linejoin or "round"),
        fill=pick(path.fill, defaults.fill or "none"),
        opacity=float(pick(path.opacity, defaults.opacity)),
        stroke_outline=pick(path.stroke_outline, "none"),
        stroke_outline_width=float(pick(path.stroke_outline_width, 0.0)),
        start_marker=pick(path.start_marker, "none"),
        end_marker=pick(path.end_marker, "none"),
        border_radius=float(pick(path.border_radius, 0.0)),
    )


def path_data(points: Sequence[PathPoint]) -> str:
    """SVG path data: `M` to the first vertex, then C, Q or L per following vertex.

    Two control points make a cubic segment, one makes a quadratic, none a line.
    """
    if not points:
        return ""
    first = points[0]
    parts = [f"M {_n(first.x)} {_n(first.y)}"]
    for point in points[1:]:
        c1 = point.control1
        c2 = point.control2
        if c1 is not None and c2 is not None:
            parts.append(f"C {_n(c1.x)} {_n(c1.y)}, {_n(c2.x)} {_n(c2.y)}, {_n(point.x)} {_n(point.y)}")
        elif c1 is not None:
            parts.append(f"Q {_n(c1.x)} {_n(c1.y)}, {_n(point.x)} {_n(point.y)}")
        else:
            parts.append(f"L {_n(point.x)} {_n(point.y)}")
    return " ".join(parts)


def constrain_angle(
    start_x: float,
    start_y: float,
    end_x: float,
    end_y: float,
    constrain: bool = True,
) -> tuple[float, float]:
    """Snap the end point to the nearest 45-degree direction from the start, keeping distance."""
    if not constrain:
        return (end_x, end_y)
    dx = end_x - start_x
    dy = end_y - start_y
    step = math.pi / 4.0
    angle = round(math.atan2(dy, dx) / step) * step
    distance = math.hypot(dx, dy)
    return (start_x + math.cos(angle) * distance, start_y + math.sin(angle) * distance)


def translate_path(path: DrawnPath, dx: float, dy: float) -> DrawnPath:
    """Move every vertex and every control point by the same delta."""
    return path.with_points(tuple(point.translated(dx, dy) for point in path.points))


def move_point(path: DrawnPath, index: int, x: float, y: float) -> DrawnPath:
    """Move one vertex to (x, y); its own control points follow, neighbours stay put."""
    if not 0 <= index < len(path.points):
        raise IndexError(f"Path {path.id!r} has no point {index}")
    points = list(path.points)
    old = points[index]
    points[index] = replace(old.translated(x - old.x, y - old.y), x=x, y=y)
    return path.with_points(tuple(points))


def append_point(path: DrawnPath, point: PathPoint) -> DrawnPath:
    return path.with_points(path.points + (point,))


def apply_style_to_all(paths: Sequence[DrawnPath], source_id: str) -> tuple[DrawnPath, ...]:
    """Copy the style (not geometry) of `source_id` onto every other path."""
    source = find_path(paths, source_id)
    if source is None:
        raise KeyError(f"Unknown path id: {source_id}")
    return tuple(path if path.id == source_id else path.with_style_of(source) for path in paths)


def find_path(paths: Sequence[DrawnPath], path_id: str) -> DrawnPath | None:
    return next((path for path in paths if path.id == path_id), None)


def replace_path(paths: Sequence[DrawnPath], updated: DrawnPath) -> tuple[DrawnPath, ...]:
    if find_path(paths, updated.id) is None:
        raise KeyError(f"Unknown path id: {updated.id}")
    return tuple(updated if path.id == updated.id else path for path in paths)


def remove_path(paths: Sequence[DrawnPath], path_id: str) -> tuple[DrawnPath, ...]:
    return tuple(path for path in paths if path.id != path_id)


def marker_id(path_id: str, *, start: bool) -> str:
    return f"marker-{'start' if start else 'end'}-{path_id}"


def marker_node(marker: str, *, element_id: str, color: str, size: float, start: bool) -> SceneNode | None:
    """`<marker>` definition; start markers are mirrored to point backwards."""
    if marker == "none":
        return None
    s = size
    half = s / 2.0
    shape: SceneNode | None = None
    if marker == "line-arrow":
        if start:
            d = f"M {_n(s)},{_n(half)} L {_n(s * 0.4)},0 M {_n(s)},{_n(half)} L {_n(s * 0.4)},{_n(s)}"
        else:
            d = f"M 0,{_n(half)} L {_n(s * 0.6)},0 M 0,{_n(half)} L {_n(s * 0.6)},{_n(s)}"
        shape = node(
            "path",
            {"d": d, "stroke": color, "stroke-width": s * 0.15, "fill": "none", "stroke-linecap": "round"},
        )
    elif marker == "triangle-arrow":
        d = f"M {_n(s)},0 L 0,{_n(half)} L {_n(s)},{_n(s)} Z" if start else f"M 0,0 L {_n(s)},{_n(half)} L 0,{_n(s)} Z"
        shape = node("path", {"d": d, "fill": color})
    elif marker == "open-circle":
        shape = node(
            "circle",
            {"cx": half, "cy": half, "r": s * 0.4, "fill": "none", "stroke": color, "stroke-width": s * 0.2},
        )
    elif marker == "closed-circle":
        shape = node("circle", {"cx": half, "cy": half, "r": half, "fill": color})
    elif marker == "square":
        shape = node("rect", {"x": 0, "y": 0, "width": s, "height": s, "fill": color})
    elif marker == "round":
        if start:
            d = f"M {_n(s)},0 A {_n(half)},{_n(half)} 0 0,0 {_n(s)},{_n(s)}"
        else:
            d = f"M 0,0 A {_n(half)},{_n(half)} 0 0,1 0,{_n(s)}"
        shape = node("path", {"d": d, "fill": color})
    if shape is None:
        _LOGGER.warning("Unknown path marker %r ignored", marker)
        return None
    return node(
        "marker",
        {
            "id": element_id,
            "markerWidth": s,
            "markerHeight": s,
            "refX": s if start else half,
            "refY": half,
            "orient": "auto-start-reverse" if start else "auto",
            "markerUnits": "userSpaceOnUse",
        },
        [shape],
    )


def render_paths(
    paths: Sequence[DrawnPath],
    defaults: PathStyleDefaults,
    *,
    active_tool: str = "inspect",
    selected_path_id: str | None = None,
) -> tuple[SceneNode | None, list[SceneNode]]:
    """Return the `DrawnPaths` group (None when there are no paths) and marker defs."""
    if not paths:
        return (None, [])
    markers: list[SceneNode] = []
    groups = [
        _path_group(path, resolve_path_style(path, defaults), active_tool, path.id == selected_path_id, markers)
        for path in paths
    ]
    return (group("DrawnPaths", groups), markers)


def _path_group(
    path: DrawnPath,
    style: PathStyle,
    active_tool: str,
    selected: bool,
    markers: list[SceneNode],
) -> SceneNode:
    d = path_data(path.points)
    stroke_attrs = {
        "stroke-dasharray": style.stroke_dasharray,
        "stroke-linecap": style.stroke_linecap,
        "stroke-linejoin": style.stroke_linejoin,
        "opacity": style.opacity,
    }
    children: list[SceneNode] = []
    if style.has_outline:
        children.append(
            node(
                "path",
                {
                    "d": d,
                    "stroke": style.stroke_outline,
                    "stroke-width": style.outline_width,
                    **stroke_attrs,
                    "fill": "none",
                    "style": "pointer-events: none",
                },
            )
        )

    interactive = active_tool in ("select", "move")
    main_attrs = {
        "d": d,
        "stroke": style.stroke,
        "stroke-width": style.stroke_width,
        **stroke_attrs,
        "fill": style.fill,
        "data-path-id": path.id,
        "style": f"pointer-events: {'all' if interactive else 'none'}; cursor: {_CURSORS.get(active_tool, 'default')}",
    }
    for start, marker in ((True, style.start_marker), (False, style.end_marker)):
        element_id = marker_id(path.id, start=start)
        definition = marker_node(marker, element_id=element_id, color=style.stroke, size=style.marker_size, start=start)
        if definition is not None:
            markers.append(definition)
            main_attrs["marker-start" if start else "marker-end"] = f"url(#{element_id})"
    children.append(node("path", main_attrs))

    if selected:
        for index, point in enumerate(path.points):
            children.append(
                node(
                    "circle",
                    {
                        "id": anchor_id(path.id, index),
                        "class": "anchor-point",
                        "cx": point.x,
                        "cy": point.y,
                        "r": ANCHOR_RADIUS,
                        "fill": style.stroke,
                        "stroke": "#ffffff",
                        "stroke-width": 2,
                        "style": "cursor: move; pointer-events: all",
                    },
                )
            )
    return node("g", {"id": path.id, "class": "path-group", "data-path-id": path.id}, children)


def anchor_id(path_id: str, index: int) -> str:
    return f"anchor-{path_id}-{index}"


def _n(value: float) -> str:
    return format_number(value)
