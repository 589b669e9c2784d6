"""Legend panels for the active size and color scales, stacked below the map."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from .config import LegendsConfig
from .models import ColumnSchema, DataRow
from .scales import CategoricalScale, ColorScale
from .scene import SceneNode, format_number, group, node
from .settings import ColorBinding, StylingSettings, SymbolDimensions
from .symbols import symbol_path
from .values import format_column_value, get_unique_values


_LOGGER = logging.getLogger("mapstudio.legends")

_FONT = "Arial, sans-serif"
_PANEL_FILL = "rgba(255, 255, 255, 0.95)"
_PANEL_STROKE = "#ddd"
_TITLE_FILL = "#333"
_LABEL_FILL = "#666"
_PANEL_TOP_GAP = 20.0
_SIZE_LEGEND_SMALL = 8.0
_SIZE_LEGEND_LARGE = 20.0
_SWATCH_SIZE = 12.0
_ARROW_PATH = "M-6,0 L6,0 M3,-2 L6,0 L3,2"


@dataclass(frozen=True, slots=True)
class LegendFlags:
    show_symbol_size: bool = False
    show_symbol_color: bool = False
    show_choropleth_color: bool = False

    @property
    def count(self) -> int:
        return sum((self.show_symbol_size, self.show_symbol_color, self.show_choropleth_color))

    @classmethod
    def for_layers(
        cls,
        *,
        symbol_dims: SymbolDimensions | None,
        symbols_drawn: bool,
        region_binding: ColorBinding | None,
        region_drawn: bool,
    ) -> LegendFlags:
        """Which legends apply, given the layers that actually rendered."""
        show_size = bool(
            symbols_drawn
            and symbol_dims is not None
            and symbol_dims.size_by
            and symbol_dims.size_min_value != symbol_dims.size_max_value
        )
        show_symbol_color = bool(symbols_drawn and symbol_dims is not None and symbol_dims.color.color_by)
        show_region_color = bool(region_drawn and region_binding is not None and region_binding.color_by)
        return cls(show_size, show_symbol_color, show_region_color)


def legend_height(flags: LegendFlags, cfg: LegendsConfig) -> float:
    """Canvas height the legend stack needs below the map."""
    return flags.count * cfg.panel_height_px


def render_legends(
    flags: LegendFlags,
    *,
    width: float,
    map_height: float,
    styling: StylingSettings,
    columns: ColumnSchema,
    geography: str,
    symbol_dims: SymbolDimensions | None = None,
    symbol_rows: Sequence[DataRow] = (),
    symbol_scale: ColorScale | CategoricalScale | None = None,
    region_binding: ColorBinding | None = None,
    region_rows: Sequence[DataRow] = (),
    region_scale: ColorScale | CategoricalScale | None = None,
    cfg: LegendsConfig,
) -> SceneNode | None:
    """Stack size, symbol color and choropleth color panels in that order."""
    if flags.count == 0:
        return None
    panels: list[SceneNode] = []
    top = map_height + _PANEL_TOP_GAP

    if flags.show_symbol_size and symbol_dims is not None:
        panels.append(
            _size_legend(
                symbol_dims,
                styling,
                width=width,
                top=top,
                columns=columns,
                geography=geography,
                panel_width=cfg.panel_width_px,
            )
        )
        top += cfg.panel_height_px

    if flags.show_symbol_color and symbol_dims is not None:
        binding = symbol_dims.color
        if binding.is_linear:
            panels.extend(
                _gradient_legend(
                    "SymbolColorLegend",
                    "symbolColorGradient",
                    binding,
                    fallback_color=styling.symbol.fill_color,
                    width=width,
                    top=top,
                    columns=columns,
                    geography=geography,
                )
            )
        else:
            panels.append(
                _categorical_legend(
                    "SymbolColorLegend",
                    binding,
                    get_unique_values(symbol_rows, binding.color_by),
                    symbol_scale,
                    fallback_color=styling.symbol.fill_color,
                    swatch=_SymbolSwatch(styling),
                    width=width,
                    top=top,
                    swatch_offset=30.0,
                    columns=columns,
                    geography=geography,
                    cap=cfg.categorical_cap,
                )
            )
        top += cfg.panel_height_px

    if flags.show_choropleth_color and region_binding is not None:
        fallback = styling.base.default_state_fill_color
        if region_binding.is_linear:
            panels.extend(
                _gradient_legend(
                    "ChoroplethColorLegend",
                    "choroplethColorGradient",
                    region_binding,
                    fallback_color=fallback,
                    width=width,
                    top=top,
                    columns=columns,
                    geography=geography,
                )
            )
        else:
            panels.append(
                _categorical_legend(
                    "ChoroplethColorLegend",
                    region_binding,
                    get_unique_values(region_rows, region_binding.color_by),
                    region_scale,
                    fallback_color=fallback,
                    swatch=_rect_swatch,
                    width=width,
                    top=top,
                    swatch_offset=25.0,
                    columns=columns,
                    geography=geography,
                    cap=cfg.categorical_cap,
                )
            )

    _LOGGER.debug("Rendered %d legend panels", flags.count)
    return group("Legends", panels)


class _SymbolSwatch:
    """Symbol glyph swatch in the current symbol style."""

    def __init__(self, styling: StylingSettings) -> None:
        self._style = styling.symbol

    def __call__(self, x: float, y: float, color: str) -> SceneNode:
        glyph = symbol_path(self._style.symbol_type, self._style.shape, _SWATCH_SIZE, self._style.custom_svg_path)
        return node(
            "path",
            {
                "d": glyph.path_data,
                "transform": _translate(x, y),
                "fill": color,
                "stroke": _LABEL_FILL,
                "stroke-width": 1,
            },
        )


def _rect_swatch(x: float, y: float, color: str) -> SceneNode:
    half = _SWATCH_SIZE / 2.0
    return node(
        "rect",
        {
            "x": x - half,
            "y": y - half,
            "width": _SWATCH_SIZE,
            "height": _SWATCH_SIZE,
            "fill": color,
            "stroke": _LABEL_FILL,
            "stroke-width": 1,
            "rx": 2,
        },
    )


def _size_legend(
    dims: SymbolDimensions,
    styling: StylingSettings,
    *,
    width: float,
    top: float,
    columns: ColumnSchema,
    geography: str,
    panel_width: float,
) -> SceneNode:
    left = (width - panel_width) / 2.0
    center = width / 2.0
    symbol_y = top + 35.0
    if dims.color.color_by:
        fill = styling.base.nation_fill_color
        stroke = styling.base.nation_stroke_color
    else:
        fill = styling.symbol.fill_color
        stroke = styling.symbol.stroke_color

    style = styling.symbol
    small = symbol_path(style.symbol_type, style.shape, _SIZE_LEGEND_SMALL, style.custom_svg_path)
    large = symbol_path(style.symbol_type, style.shape, _SIZE_LEGEND_LARGE, style.custom_svg_path)
    children = [
        _panel(left, top, panel_width),
        _title(left + 15.0, top, f"Size: {dims.size_by}"),
        _value_label(
            center - 45.0,
            symbol_y + 5.0,
            format_column_value(dims.size_min_value, dims.size_by, columns, geography),
            "middle",
            font_size=11,
        ),
        node(
            "path",
            {"d": small.path_data, "transform": _translate(center - 20.0, symbol_y), "fill": fill, "stroke": stroke, "stroke-width": 1},
        ),
        node(
            "path",
            {
                "d": _ARROW_PATH,
                "transform": _translate(center - 5.0, symbol_y),
                "fill": "none",
                "stroke": _LABEL_FILL,
                "stroke-width": 1.5,
            },
        ),
        node(
            "path",
            {"d": large.path_data, "transform": _translate(center + 25.0, symbol_y), "fill": fill, "stroke": stroke, "stroke-width": 1},
        ),
        _value_label(
            center + 60.0,
            symbol_y + 5.0,
            format_column_value(dims.size_max_value, dims.size_by, columns, geography),
            "middle",
            font_size=11,
        ),
    ]
    return group("SizeLegend", children)


def gradient_stops(binding: ColorBinding, fallback_color: str) -> list[tuple[float, str]]:
    """(offset percent, color) pairs: min, optional mid, max."""
    colors = [binding.min_color or fallback_color]
    if binding.mid_color:
        colors.append(binding.mid_color)
    colors.append(binding.max_color or fallback_color)
    last = len(colors) - 1
    return [(index / last * 100.0, color) for index, color in enumerate(colors)]


def _gradient_legend(
    group_id: str,
    gradient_id: str,
    binding: ColorBinding,
    *,
    fallback_color: str,
    width: float,
    top: float,
    columns: ColumnSchema,
    geography: str,
) -> list[SceneNode]:
    gradient = node(
        "linearGradient",
        {"id": gradient_id, "x1": "0%", "x2": "100%", "y1": "0%", "y2": "0%"},
        [
            node("stop", {"offset": f"{format_number(offset)}%", "stop-color": color})
            for offset, color in gradient_stops(binding, fallback_color)
        ],
    )
    bar_width = width - 200.0
    bar_x = (width - bar_width) / 2.0
    panel = group(
        group_id,
        [
            _panel(20.0, top, width - 40.0),
            _title(35.0, top, f"Color: {binding.color_by}"),
            node(
                "rect",
                {
                    "x": bar_x,
                    "y": top + 25.0,
                    "width": bar_width,
                    "height": 12,
                    "fill": f"url(#{gradient_id})",
                    "stroke": "#ccc",
                    "stroke-width": 1,
                    "rx": 2,
                },
            ),
            _value_label(
                bar_x - 10.0,
                top + 33.0,
                format_column_value(binding.min_value, binding.color_by, columns, geography),
                "end",
                font_size=11,
            ),
            _value_label(
                bar_x + bar_width + 10.0,
                top + 33.0,
                format_column_value(binding.max_value, binding.color_by, columns, geography),
                "start",
                font_size=11,
            ),
        ],
    )
    return [panel, node("defs", children=[gradient])]


def _categorical_legend(
    group_id: str,
    binding: ColorBinding,
    values: Sequence[str],
    scale: ColorScale | CategoricalScale | None,
    *,
    fallback_color: str,
    swatch: Callable[[float, float, str], SceneNode],
    width: float,
    top: float,
    swatch_offset: float,
    columns: ColumnSchema,
    geography: str,
    cap: int,
) -> SceneNode:
    shown = list(values)[:cap]
    if len(values) > cap:
        _LOGGER.debug("Legend for %r truncated to %d of %d values", binding.color_by, cap, len(values))
    panel_width = min(700.0, len(shown) * 90.0 + 100.0)
    left = (width - panel_width) / 2.0
    children = [_panel(left, top, panel_width), _title(left + 15.0, top, f"Color: {binding.color_by}")]

    x = left + 25.0
    y = top + swatch_offset
    for value in shown:
        color = scale(value) if scale is not None else fallback_color
        text = format_column_value(value, binding.color_by, columns, geography)
        children.append(swatch(x, y, color))
        children.append(_value_label(x + 15.0, y + 3.0, text, "start", font_size=10))
        x += max(60.0, len(text) * 6.0 + 35.0)
    return group(group_id, children)


def _panel(x: float, top: float, width: float) -> SceneNode:
    return node(
        "rect",
        {
            "x": x,
            "y": top - 10.0,
            "width": width,
            "height": 60,
            "fill": _PANEL_FILL,
            "stroke": _PANEL_STROKE,
            "stroke-width": 1,
            "rx": 6,
        },
    )


def _title(x: float, top: float, text: str) -> SceneNode:
    return node(
        "text",
        {
            "x": x,
            "y": top + 8.0,
            "font-family": _FONT,
            "font-size": "14px",
            "font-weight": "600",
            "fill": _TITLE_FILL,
        },
        text=text,
    )


def _value_label(x: float, y: float, text: str, anchor: str, *, font_size: int) -> SceneNode:
    return node(
        "text",
        {
            "x": x,
            "y": y,
            "font-family": _FONT,
            "font-size": f"{font_size}px",
            "fill": _LABEL_FILL,
            "text-anchor": anchor,
        },
        text=text,
    )


def _translate(x: float, y: float) -> str:
    return f"translate({format_number(x)}, {format_number(y)})"
