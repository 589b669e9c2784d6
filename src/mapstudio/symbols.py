"""Symbol scale/color engine and symbol glyph geometry."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Sequence

from .models import DataRow
from .projection import MapProjection
from .scales import CategoricalScale, ColorScale, LinearScale, build_color_scale
from .scene import SceneNode, format_number, group, node
from .settings import SymbolDimensions, SymbolStyle
from .values import get_numeric_value, get_unique_values, js_string


_LOGGER = logging.getLogger("mapstudio.symbols")

_TAU = 2.0 * math.pi
_SQRT3 = math.sqrt(3.0)
_TAN30 = math.sqrt(1.0 / 3.0)
_STAR_KA = 0.89081309152928522810
_STAR_KR = math.sin(math.pi / 10.0) / math.sin(7.0 * math.pi / 10.0)
_STAR_KX = math.sin(_TAU / 10.0) * _STAR_KR
_STAR_KY = -math.cos(_TAU / 10.0) * _STAR_KR

_MARKER_BASE_SIZE = 24.0
_MARKER_MIN_SIZE = 16.0


@dataclass(frozen=True, slots=True)
class SymbolPath:
    path_data: str
    transform: str = ""
    fill_rule: str | None = None


@dataclass(frozen=True, slots=True)
class PlacedSymbol:
    """One drawn symbol; `index` is the row's position among valid rows."""

    index: int
    row: DataRow
    x: float
    y: float
    size: float
    fill: str

    @property
    def element_id(self) -> str:
        return f"Symbol-{self.index}"


@dataclass(frozen=True, slots=True)
class SymbolLayer:
    group: SceneNode
    symbols: tuple[PlacedSymbol, ...]
    valid_rows: tuple[DataRow, ...]
    size_scale: LinearScale | None
    color_scale: ColorScale | CategoricalScale | None


def parse_coordinate(value: Any) -> float | None:
    """Strict numeric reading of a coordinate cell; blanks and junk are None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def valid_symbol_rows(rows: Sequence[DataRow], dims: SymbolDimensions) -> tuple[DataRow, ...]:
    """Rows whose latitude and longitude are present and in range."""
    out: list[DataRow] = []
    for row in rows:
        lat = parse_coordinate(row.get(dims.latitude))
        lng = parse_coordinate(row.get(dims.longitude))
        if lat is None or lng is None:
            continue
        if -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0:
            out.append(row)
    dropped = len(rows) - len(out)
    if dropped:
        _LOGGER.debug("Excluded %d rows with missing or out-of-range coordinates", dropped)
    return tuple(out)


def build_size_scale(valid_rows: Sequence[DataRow], dims: SymbolDimensions) -> LinearScale | None:
    """Linear size scale, or None for an unbound column or a flat data range."""
    if not dims.size_by or not valid_rows:
        return None
    values = [get_numeric_value(row.get(dims.size_by)) or 0.0 for row in valid_rows]
    if min(values) == max(values):
        return None
    return LinearScale(
        domain=(dims.size_min_value, dims.size_max_value),
        range=(dims.size_min, dims.size_max),
    )


def build_symbol_color_scale(
    valid_rows: Sequence[DataRow],
    dims: SymbolDimensions,
    fill_color: str,
) -> ColorScale | CategoricalScale | None:
    if not dims.color.color_by or not valid_rows:
        return None
    return build_color_scale(
        dims.color,
        unique_values=get_unique_values(valid_rows, dims.color.color_by),
        fallback_color=fill_color,
    )


def symbol_size(row: DataRow, dims: SymbolDimensions, size_scale: LinearScale | None, default: float) -> float:
    if size_scale is None:
        return default
    return size_scale(get_numeric_value(row.get(dims.size_by)) or 0.0)


def symbol_fill(
    row: DataRow,
    dims: SymbolDimensions,
    color_scale: ColorScale | CategoricalScale | None,
    fill_color: str,
) -> str:
    if color_scale is None or not dims.color.color_by:
        return fill_color
    if dims.color.is_linear:
        numeric = get_numeric_value(row.get(dims.color.color_by))
        return fill_color if numeric is None else color_scale(numeric)
    return color_scale(js_string(row.get(dims.color.color_by)))


def symbol_path(symbol_type: str, shape: str, size: float, custom_path: str = "") -> SymbolPath:
    """Glyph path for a symbol whose circle-equivalent radius is `size`."""
    area = math.pi * size * size
    if shape == "custom-svg":
        text = custom_path.strip()
        if text.startswith(("M", "m")):
            scale = math.sqrt(area) / 100.0
            return SymbolPath(custom_path, f"scale({format_number(scale)}) translate(-12, -12)")
        _LOGGER.warning("Custom symbol path missing or invalid; drawing a circle instead")
        return SymbolPath(_circle(area))

    if symbol_type != "symbol":
        return SymbolPath(_circle(area))
    if shape == "square":
        return SymbolPath(_square(area))
    if shape == "diamond":
        return SymbolPath(_diamond(area))
    if shape == "triangle":
        return SymbolPath(_triangle(area))
    if shape == "triangle-down":
        return SymbolPath(_triangle(area), "rotate(180)")
    if shape == "hexagon":
        return SymbolPath(_star(area))
    if shape == "map-marker":
        return _map_marker(size)
    return SymbolPath(_circle(area))


def render_symbols(
    rows: Sequence[DataRow],
    dims: SymbolDimensions,
    style: SymbolStyle,
    projection: MapProjection,
) -> SymbolLayer:
    """Project, size, color and draw every valid row as a symbol group."""
    valid = valid_symbol_rows(rows, dims)
    size_scale = build_size_scale(valid, dims)
    color_scale = build_symbol_color_scale(valid, dims, style.fill_color)

    placed: list[PlacedSymbol] = []
    nodes: list[SceneNode] = []
    for index, row in enumerate(valid):
        lat = parse_coordinate(row.get(dims.latitude))
        lng = parse_coordinate(row.get(dims.longitude))
        projected = projection.project(lng, lat) if lat is not None and lng is not None else None
        if projected is None:
            continue
        size = symbol_size(row, dims, size_scale, style.size)
        fill = symbol_fill(row, dims, color_scale, style.fill_color)
        glyph = symbol_path(style.symbol_type, style.shape, size, style.custom_svg_path)
        symbol = PlacedSymbol(index=index, row=row, x=projected[0], y=projected[1], size=size, fill=fill)
        placed.append(symbol)
        nodes.append(_symbol_node(symbol, glyph, style))

    _LOGGER.debug("Placed %d of %d valid symbols", len(placed), len(valid))
    return SymbolLayer(
        group=group("Symbols", nodes),
        symbols=tuple(placed),
        valid_rows=valid,
        size_scale=size_scale,
        color_scale=color_scale,
    )


def _symbol_node(symbol: PlacedSymbol, glyph: SymbolPath, style: SymbolStyle) -> SceneNode:
    base = f"translate({format_number(symbol.x)}, {format_number(symbol.y)})"
    transform = f"{base} {glyph.transform}" if glyph.transform else base
    path = node(
        "path",
        {
            "d": glyph.path_data,
            "stroke": style.stroke_color,
            "stroke-width": style.stroke_width,
            "fill-opacity": style.fill_opacity,
            "stroke-opacity": style.stroke_opacity,
            "fill": symbol.fill,
            "fill-rule": glyph.fill_rule,
        },
    )
    return node("g", {"id": symbol.element_id, "transform": transform}, [path])


def _fmt(*values: float) -> str:
    return ",".join(format_number(value) for value in values)


def _circle(area: float) -> str:
    r = math.sqrt(area / math.pi)
    return f"M{_fmt(r, 0)}A{_fmt(r, r, 0, 1, 1, -r, 0)}A{_fmt(r, r, 0, 1, 1, r, 0)}Z"


def _square(area: float) -> str:
    w = math.sqrt(area)
    x = -w / 2.0
    return f"M{_fmt(x, x)}h{format_number(w)}v{format_number(w)}h{format_number(-w)}Z"


def _diamond(area: float) -> str:
    y = math.sqrt(area / (_TAN30 * 2.0))
    x = y * _TAN30
    return f"M{_fmt(0, -y)}L{_fmt(x, 0)}L{_fmt(0, y)}L{_fmt(-x, 0)}Z"


def _triangle(area: float) -> str:
    y = -math.sqrt(area / (_SQRT3 * 3.0))
    return f"M{_fmt(0, y * 2)}L{_fmt(-_SQRT3 * y, -y)}L{_fmt(_SQRT3 * y, -y)}Z"


def _star(area: float) -> str:
    r = math.sqrt(area * _STAR_KA)
    x = _STAR_KX * r
    y = _STAR_KY * r
    parts = [f"M{_fmt(0, -r)}", f"L{_fmt(x, y)}"]
    for i in range(1, 5):
        a = _TAU * i / 5.0
        c = math.cos(a)
        s = math.sin(a)
        parts.append(f"L{_fmt(s * r, -c * r)}")
        parts.append(f"L{_fmt(c * x - s * y, s * x + c * y)}")
    return "".join(parts) + "Z"


def _map_marker(size: float) -> SymbolPath:
    s = max(size, _MARKER_MIN_SIZE) / _MARKER_BASE_SIZE

    def p(value: float) -> str:
        return format_number(value * s)

    outer = (
        f"M{p(12)} {p(2)}"
        f"C{p(8.13)} {p(2)} {p(5)} {p(5.13)} {p(5)} {p(9)}"
        f"C{p(5)} {p(14.25)} {p(12)} {p(22)} {p(12)} {p(22)}"
        f"C{p(12)} {p(22)} {p(19)} {p(14.25)} {p(19)} {p(9)}"
        f"C{p(19)} {p(5.13)} {p(15.87)} {p(2)} {p(12)} {p(2)}Z"
    )
    hole = f"M{p(12)} {p(9)}m{p(-3)},0a{p(3)},{p(3)} 0 1,0 {p(6)},0a{p(3)},{p(3)} 0 1,0 -{p(6)},0Z"
    return SymbolPath(outer + hole, f"translate({p(-12)}, {p(-22)})", "evenodd")
