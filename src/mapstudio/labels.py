"""Label placement engine: template text, anchor placement, rich-text spans, overrides."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Sequence

from .config import LabelsConfig
from .custom_map import CustomMap
from .features import ResolvedFeatures, resolve_feature_key
from .models import ColumnSchema, DataRow, LabelOverride
from .projection import MapProjection
from .scene import SceneNode, format_number, group, node
from .settings import LabelStyle
from .symbols import PlacedSymbol
from .values import js_string, render_label_text


_LOGGER = logging.getLogger("mapstudio.labels")

_LINE_BREAK_RE = re.compile(r"\n|<br\s*/?>", re.IGNORECASE)
_TAG_RE = re.compile(r"<(/?)([^>]+)>")
_LABEL_STYLE_ATTR = "paint-order: stroke fill; pointer-events: none"

Normalizer = Callable[[Any], str]
_PixelBBox = tuple[float, float, float, float]


@dataclass(frozen=True, slots=True)
class LabelPlacement:
    dx: float
    dy: float
    anchor: str
    baseline: str


@dataclass(frozen=True, slots=True)
class TextStyle:
    font_weight: str = "normal"
    font_style: str = "normal"
    text_decoration: str = ""

    @classmethod
    def from_label_style(cls, style: LabelStyle) -> TextStyle:
        return cls(
            font_weight="bold" if style.bold else "normal",
            font_style="italic" if style.italic else "normal",
            text_decoration=style.text_decoration,
        )


@dataclass(frozen=True, slots=True)
class TextRun:
    text: str
    style: TextStyle


@dataclass(frozen=True, slots=True)
class PlacedLabel:
    """A resolved label before rendering: id, text, anchor point and alignment."""

    label_id: str
    text: str
    x: float
    y: float
    anchor: str
    baseline: str


def explicit_placement(alignment: str, symbol_size: float, cfg: LabelsConfig) -> LabelPlacement:
    """One of nine fixed positions around a symbol; unknown values sit middle-right."""
    o = symbol_size / 2.0 + max(cfg.min_margin_px, symbol_size * cfg.margin_ratio)
    table = {
        "top-left": (-o, -o, "end", "baseline"),
        "top-center": (0.0, -o, "middle", "baseline"),
        "top-right": (o, -o, "start", "baseline"),
        "middle-left": (-o, 0.0, "end", "middle"),
        "center": (0.0, 0.0, "middle", "middle"),
        "middle-right": (o, 0.0, "start", "middle"),
        "bottom-left": (-o, o, "end", "hanging"),
        "bottom-center": (0.0, o, "middle", "hanging"),
        "bottom-right": (o, o, "start", "hanging"),
    }
    dx, dy, anchor, baseline = table.get(alignment, table["middle-right"])
    return LabelPlacement(dx, dy, anchor, baseline)


def auto_placement(
    x: float,
    y: float,
    *,
    symbol_size: float,
    label_width: float,
    label_height: float,
    canvas_width: float,
    canvas_height: float,
    cfg: LabelsConfig,
) -> LabelPlacement:
    """Try right, left, below, then above; take the first that stays inside the edge buffer.

    Falls back to the right-hand candidate when none fits.
    """
    margin = max(cfg.min_margin_px, symbol_size * cfg.margin_ratio)
    reach = symbol_size / 2.0 + margin
    candidates = (
        LabelPlacement(reach, 0.0, "start", "middle"),
        LabelPlacement(-reach, 0.0, "end", "middle"),
        LabelPlacement(-label_width / 2.0, reach + label_height, "start", "hanging"),
        LabelPlacement(-label_width / 2.0, -reach, "start", "baseline"),
    )
    buffer = cfg.edge_buffer_px
    safe_area = (buffer, buffer, canvas_width - buffer, canvas_height - buffer)
    for candidate in candidates:
        bbox = _candidate_bbox(x, y, candidate, label_width, label_height)
        if _contains(safe_area, bbox):
            return candidate
    return candidates[0]


def estimate_text_size(text: str, font_size: float, cfg: LabelsConfig) -> tuple[float, float]:
    """Heuristic (width, height) of a label's widest line."""
    lines = split_lines(text) or [""]
    longest = max(len(plain_text(line)) for line in lines)
    return (longest * font_size * cfg.char_width_ratio, font_size * cfg.line_height_ratio)


def split_lines(text: str) -> list[str]:
    return [line for line in _LINE_BREAK_RE.split(text) if line.strip()]


def plain_text(line: str) -> str:
    return _TAG_RE.sub("", line)


def parse_rich_line(line: str, base: TextStyle) -> list[TextRun]:
    """Split one line into styled runs; only b/strong, i/em, u and s/strike are recognised."""
    runs: list[TextRun] = []
    current = base
    last = 0
    for match in _TAG_RE.finditer(line):
        if match.start() > last:
            runs.append(TextRun(line[last : match.start()], current))
        closing = match.group(1) == "/"
        tag = match.group(2).strip().lower()
        current = _close_tag(tag, current, base) if closing else _open_tag(tag, current)
        last = match.end()
    if last < len(line):
        runs.append(TextRun(line[last:], current))
    return runs


def text_node(
    label: PlacedLabel,
    *,
    style: LabelStyle,
    override: LabelOverride | None,
    line_height_ratio: float,
) -> SceneNode:
    """Build a `<text>` element; override fields always win over computed values."""
    x = label.x
    y = label.y
    anchor = label.anchor
    baseline = label.baseline
    font_family = style.font_family
    font_size = style.font_size
    fill = style.color
    stroke = style.outline_color
    stroke_width = style.outline_thickness
    base = TextStyle.from_label_style(style)

    if override is not None:
        if override.has_position:
            x, y = float(override.x), float(override.y)  # type: ignore[arg-type]
        anchor = override.text_anchor or anchor
        baseline = override.dominant_baseline or baseline
        font_family = override.font_family or font_family
        font_size = override.font_size if override.font_size is not None else font_size
        fill = override.fill or fill
        stroke = override.stroke or stroke
        stroke_width = override.stroke_width if override.stroke_width is not None else stroke_width
        base = TextStyle(
            font_weight=override.font_weight or base.font_weight,
            font_style=override.font_style or base.font_style,
            text_decoration=(
                override.text_decoration if override.text_decoration is not None else base.text_decoration
            ),
        )

    return node(
        "text",
        {
            "id": label.label_id,
            "x": x,
            "y": y,
            "text-anchor": anchor,
            "dominant-baseline": baseline,
            "font-family": font_family,
            "font-size": f"{format_number(font_size)}px",
            "fill": fill,
            "stroke": stroke,
            "stroke-width": stroke_width,
            "style": _LABEL_STYLE_ATTR,
        },
        _tspans(label.text, x=x, base=base, line_height=line_height_ratio),
    )


def symbol_labels(
    symbols: Sequence[PlacedSymbol],
    *,
    template: str,
    style: LabelStyle,
    alignment: str,
    columns: ColumnSchema,
    geography: str,
    overrides: Mapping[str, LabelOverride],
    canvas_width: float,
    canvas_height: float,
    cfg: LabelsConfig,
) -> SceneNode | None:
    """Labels for drawn symbols, ids `symbol-<index>`; None without a template."""
    if not template:
        return None
    nodes: list[SceneNode] = []
    for symbol in symbols:
        text = render_label_text(template, symbol.row, columns, geography)
        if not text:
            continue
        if alignment == "auto":
            width, height = estimate_text_size(text, style.font_size, cfg)
            placement = auto_placement(
                symbol.x,
                symbol.y,
                symbol_size=symbol.size,
                label_width=width,
                label_height=height,
                canvas_width=canvas_width,
                canvas_height=canvas_height,
                cfg=cfg,
            )
        else:
            placement = explicit_placement(alignment, symbol.size, cfg)
        label = PlacedLabel(
            label_id=symbol_label_id(symbol.index),
            text=text,
            x=symbol.x + placement.dx,
            y=symbol.y + placement.dy,
            anchor=placement.anchor,
            baseline=placement.baseline,
        )
        nodes.append(
            text_node(label, style=style, override=overrides.get(label.label_id), line_height_ratio=cfg.line_height_ratio)
        )
    return group("SymbolLabels", nodes)


def choropleth_labels(
    rows: Sequence[DataRow],
    *,
    state_column: str,
    template: str,
    style: LabelStyle,
    columns: ColumnSchema,
    geography: str,
    overrides: Mapping[str, LabelOverride],
    normalize: Normalizer,
    projection: MapProjection,
    resolved: ResolvedFeatures | None = None,
    custom_map: CustomMap | None = None,
    cfg: LabelsConfig,
) -> SceneNode | None:
    """Labels at region centroids, ids `choropleth-<key>`; one label per key."""
    if not template or not rows:
        return None
    rows_by_key = index_rows_by_key(rows, state_column, normalize)

    anchors: list[tuple[str | None, tuple[float, float] | None]] = []
    if custom_map is not None:
        anchors = [(feature.key or None, feature.centroid) for feature in custom_map.features]
    elif resolved is not None:
        for feature in resolved.features:
            key = resolve_feature_key(feature, geography, rows_by_key, normalize)
            centroid = projection.centroid(feature.geometry) if key and key in rows_by_key else None
            anchors.append((key, centroid))

    nodes: list[SceneNode] = []
    seen: set[str] = set()
    for key, centroid in anchors:
        if not key or key in seen or key not in rows_by_key or centroid is None:
            continue
        text = render_label_text(template, rows_by_key[key], columns, geography)
        if not text:
            continue
        seen.add(key)
        label = PlacedLabel(
            label_id=choropleth_label_id(key),
            text=text,
            x=centroid[0],
            y=centroid[1],
            anchor="middle",
            baseline="middle",
        )
        nodes.append(
            text_node(label, style=style, override=overrides.get(label.label_id), line_height_ratio=cfg.line_height_ratio)
        )
    _LOGGER.debug("Placed %d choropleth labels", len(nodes))
    return group("ChoroplethLabels", nodes)


def index_rows_by_key(rows: Sequence[DataRow], column: str, normalize: Normalizer) -> dict[str, DataRow]:
    out: dict[str, DataRow] = {}
    for row in rows:
        raw = row.get(column)
        text = js_string(raw) if raw else ""
        if not text.strip():
            continue
        out[normalize(text)] = row
    return out


def symbol_label_id(index: int) -> str:
    return f"symbol-{index}"


def choropleth_label_id(key: str) -> str:
    return f"choropleth-{key}"


def move_label(override: LabelOverride | None, label_id: str, x: float, y: float) -> LabelOverride:
    """Position override after a drag; other override fields are kept."""
    if override is None:
        return LabelOverride(id=label_id, x=float(x), y=float(y))
    return override.with_position(x, y)


def _tspans(text: str, *, x: float, base: TextStyle, line_height: float) -> list[SceneNode]:
    lines = split_lines(text)
    vertical_offset = -((len(lines) - 1) * line_height * 0.5) if len(lines) > 1 else 0.0
    spans: list[SceneNode] = []
    for line_index, line in enumerate(lines):
        for run_index, run in enumerate(parse_rich_line(line, base)):
            attrs: dict[str, Any] = {}
            if run_index == 0 and line_index == 0 and vertical_offset:
                attrs["dy"] = f"{format_number(vertical_offset)}em"
            elif run_index == 0 and line_index > 0:
                attrs["x"] = x
                attrs["dy"] = f"{format_number(line_height)}em"
            attrs["font-weight"] = run.style.font_weight or None
            attrs["font-style"] = run.style.font_style or None
            attrs["text-decoration"] = run.style.text_decoration or None
            spans.append(node("tspan", attrs, text=run.text))
    return spans


def _open_tag(tag: str, style: TextStyle) -> TextStyle:
    if tag in ("b", "strong"):
        return replace(style, font_weight="bold")
    if tag in ("i", "em"):
        return replace(style, font_style="italic")
    if tag == "u":
        return replace(style, text_decoration=_add_decoration(style.text_decoration, "underline"))
    if tag in ("s", "strike"):
        return replace(style, text_decoration=_add_decoration(style.text_decoration, "line-through"))
    return style


def _close_tag(tag: str, style: TextStyle, base: TextStyle) -> TextStyle:
    if tag in ("b", "strong"):
        return replace(style, font_weight=base.font_weight)
    if tag in ("i", "em"):
        return replace(style, font_style=base.font_style)
    if tag == "u":
        return replace(style, text_decoration=_drop_decoration(style.text_decoration, "underline"))
    if tag in ("s", "strike"):
        return replace(style, text_decoration=_drop_decoration(style.text_decoration, "line-through"))
    return style


def _add_decoration(current: str, value: str) -> str:
    parts = current.split()
    if value not in parts:
        parts.append(value)
    return " ".join(parts)


def _drop_decoration(current: str, value: str) -> str:
    return " ".join(part for part in current.split() if part != value)


def _candidate_bbox(
    x: float,
    y: float,
    placement: LabelPlacement,
    width: float,
    height: float,
) -> _PixelBBox:
    left = x + placement.dx - width if placement.anchor == "end" else x + placement.dx
    top = y + placement.dy - height / 2.0
    return (left, top, left + width, top + height)


def _contains(outer: _PixelBBox, inner: _PixelBBox) -> bool:
    return inner[0] >= outer[0] and inner[1] >= outer[1] and inner[2] <= outer[2] and inner[3] <= outer[3]
