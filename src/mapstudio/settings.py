"""Map settings: tagged dimension variants and styling, loaded from YAML/JSON."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, ClassVar, Mapping, Union

import yaml

from .geography import GEOGRAPHIES
from .models import ColumnSchema, DrawnPath, LabelOverride


PROJECTIONS = ("albers_usa", "albers", "equirectangular", "mercator", "equal_earth")
COLOR_SCALES = frozenset({"linear", "categorical"})
SYMBOL_TYPES = frozenset({"symbol", "spike", "arrow"})
SYMBOL_SHAPES = frozenset(
    {
        "circle",
        "square",
        "diamond",
        "triangle",
        "triangle-down",
        "hexagon",
        "map-marker",
        "custom-svg",
    }
)
LABEL_ALIGNMENTS = (
    "auto",
    "top-left",
    "top-center",
    "top-right",
    "middle-left",
    "center",
    "middle-right",
    "bottom-left",
    "bottom-center",
    "bottom-right",
)


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return value


def _str(value: Any, field_name: str, default: str = "") -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"Expected string for '{field_name}'")
    return value.strip()


def _float(value: Any, field_name: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Expected numeric value for '{field_name}'")
    return float(value)


def _optional_float(value: Any, field_name: str) -> float | None:
    if value is None:
        return None
    return _float(value, field_name, 0.0)


def _bool(value: Any, field_name: str, default: bool = False) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _choice(value: Any, field_name: str, allowed: frozenset[str] | tuple[str, ...], default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or value not in allowed:
        raise ValueError(f"Expected one of {', '.join(sorted(allowed))} for '{field_name}', got {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class CategoricalColor:
    value: str
    color: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], field_name: str) -> CategoricalColor:
        value = raw.get("value")
        return cls(
            value="" if value is None else str(value),
            color=_str(raw.get("color"), f"{field_name}.color"),
        )


@dataclass(frozen=True, slots=True)
class ColorBinding:
    """Binding of a data column to fill color.

    `linear` bindings interpolate between `min_color` and `max_color` over
    `[min_value, max_value]`, through `mid_color` at `mid_value` when a mid color
    is set. `categorical` bindings hand out `categorical_colors` in order of the
    column's distinct values.
    """

    color_by: str = ""
    scale: str = "linear"
    palette: str = "Blues"
    min_value: float = 0.0
    mid_value: float = 50.0
    max_value: float = 100.0
    min_color: str = "#f7fbff"
    mid_color: str = "#6baed6"
    max_color: str = "#08519c"
    categorical_colors: tuple[CategoricalColor, ...] = ()

    @property
    def is_linear(self) -> bool:
        return self.scale == "linear"

    @property
    def palette_colors(self) -> tuple[str, ...]:
        return tuple(item.color for item in self.categorical_colors)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], prefix: str) -> ColorBinding:
        defaults = cls()
        colors_raw = raw.get("categoricalColors") or []
        if not isinstance(colors_raw, list):
            raise ValueError(f"Expected list for '{prefix}.categoricalColors'")
        colors = tuple(
            CategoricalColor.from_mapping(
                _mapping(item, f"{prefix}.categoricalColors[{idx}]"),
                f"{prefix}.categoricalColors[{idx}]",
            )
            for idx, item in enumerate(colors_raw)
        )
        return cls(
            color_by=_str(raw.get("colorBy"), f"{prefix}.colorBy"),
            scale=_choice(raw.get("colorScale"), f"{prefix}.colorScale", COLOR_SCALES, defaults.scale),
            palette=_str(raw.get("colorPalette"), f"{prefix}.colorPalette", defaults.palette),
            min_value=_float(raw.get("colorMinValue"), f"{prefix}.colorMinValue", defaults.min_value),
            mid_value=_float(raw.get("colorMidValue"), f"{prefix}.colorMidValue", defaults.mid_value),
            max_value=_float(raw.get("colorMaxValue"), f"{prefix}.colorMaxValue", defaults.max_value),
            min_color=_str(raw.get("colorMinColor"), f"{prefix}.colorMinColor", defaults.min_color),
            mid_color=_str(raw.get("colorMidColor"), f"{prefix}.colorMidColor", defaults.mid_color),
            max_color=_str(raw.get("colorMaxColor"), f"{prefix}.colorMaxColor", defaults.max_color),
            categorical_colors=colors,
        )


@dataclass(frozen=True, slots=True)
class SymbolDimensions:
    latitude: str
    longitude: str
    size_by: str = ""
    size_min: float = 5.0
    size_max: float = 20.0
    size_min_value: float = 0.0
    size_max_value: float = 100.0
    color: ColorBinding = field(default_factory=ColorBinding)
    label_template: str = ""

    kind: ClassVar[str] = "symbol"

    @property
    def is_bound(self) -> bool:
        return bool(self.latitude and self.longitude)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> SymbolDimensions:
        prefix = "dimensions.symbol"
        defaults = cls(latitude="", longitude="")
        return cls(
            latitude=_str(raw.get("latitude"), f"{prefix}.latitude"),
            longitude=_str(raw.get("longitude"), f"{prefix}.longitude"),
            size_by=_str(raw.get("sizeBy"), f"{prefix}.sizeBy"),
            size_min=_float(raw.get("sizeMin"), f"{prefix}.sizeMin", defaults.size_min),
            size_max=_float(raw.get("sizeMax"), f"{prefix}.sizeMax", defaults.size_max),
            size_min_value=_float(raw.get("sizeMinValue"), f"{prefix}.sizeMinValue", defaults.size_min_value),
            size_max_value=_float(raw.get("sizeMaxValue"), f"{prefix}.sizeMaxValue", defaults.size_max_value),
            color=ColorBinding.from_mapping(raw, prefix),
            label_template=_str(raw.get("labelTemplate"), f"{prefix}.labelTemplate"),
        )


@dataclass(frozen=True, slots=True)
class ChoroplethDimensions:
    state_column: str
    color: ColorBinding = field(default_factory=ColorBinding)
    label_template: str = ""

    kind: ClassVar[str] = "choropleth"

    @property
    def is_bound(self) -> bool:
        return bool(self.state_column and self.color.color_by)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ChoroplethDimensions:
        return cls(**_region_fields(raw, "dimensions.choropleth"))


@dataclass(frozen=True, slots=True)
class CustomDimensions:
    """Region binding for a hand-supplied map document."""

    state_column: str
    color: ColorBinding = field(default_factory=ColorBinding)
    label_template: str = ""

    kind: ClassVar[str] = "custom"

    @property
    def is_bound(self) -> bool:
        return bool(self.state_column and self.color.color_by)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> CustomDimensions:
        return cls(**_region_fields(raw, "dimensions.custom"))


def _region_fields(raw: Mapping[str, Any], prefix: str) -> dict[str, Any]:
    return {
        "state_column": _str(raw.get("stateColumn"), f"{prefix}.stateColumn"),
        "color": ColorBinding.from_mapping(raw, prefix),
        "label_template": _str(raw.get("labelTemplate"), f"{prefix}.labelTemplate"),
    }


RegionDimensions = Union[ChoroplethDimensions, CustomDimensions]
Dimensions = Union[SymbolDimensions, ChoroplethDimensions, CustomDimensions]

_DIMENSION_KINDS: dict[str, type] = {
    "symbol": SymbolDimensions,
    "choropleth": ChoroplethDimensions,
    "custom": CustomDimensions,
}


def parse_dimensions(raw: Mapping[str, Any]) -> Dimensions:
    """Build the dimension variant named by the mapping's `kind` tag."""
    kind = raw.get("kind")
    variant = _DIMENSION_KINDS.get(kind) if isinstance(kind, str) else None
    if variant is None:
        raise ValueError(
            f"Expected one of {', '.join(sorted(_DIMENSION_KINDS))} for 'dimensions[].kind', got {kind!r}"
        )
    return variant.from_mapping(raw)


@dataclass(frozen=True, slots=True)
class BaseStyle:
    map_background_color: str = ""
    nation_fill_color: str = "#f0f0f0"
    nation_stroke_color: str = "#000000"
    nation_stroke_width: float = 1.0
    default_state_fill_color: str = "#e0e0e0"
    default_state_stroke_color: str = "#999999"
    default_state_stroke_width: float = 0.5

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> BaseStyle:
        d = cls()
        p = "styling.base"
        return cls(
            map_background_color=_str(raw.get("mapBackgroundColor"), f"{p}.mapBackgroundColor", d.map_background_color),
            nation_fill_color=_str(raw.get("nationFillColor"), f"{p}.nationFillColor", d.nation_fill_color),
            nation_stroke_color=_str(raw.get("nationStrokeColor"), f"{p}.nationStrokeColor", d.nation_stroke_color),
            nation_stroke_width=_float(raw.get("nationStrokeWidth"), f"{p}.nationStrokeWidth", d.nation_stroke_width),
            default_state_fill_color=_str(
                raw.get("defaultStateFillColor"), f"{p}.defaultStateFillColor", d.default_state_fill_color
            ),
            default_state_stroke_color=_str(
                raw.get("defaultStateStrokeColor"), f"{p}.defaultStateStrokeColor", d.default_state_stroke_color
            ),
            default_state_stroke_width=_float(
                raw.get("defaultStateStrokeWidth"), f"{p}.defaultStateStrokeWidth", d.default_state_stroke_width
            ),
        )


@dataclass(frozen=True, slots=True)
class LabelStyle:
    font_family: str = "Inter"
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strikethrough: bool = False
    color: str = "#333333"
    outline_color: str = "#ffffff"
    font_size: float = 10.0
    outline_thickness: float = 0.0

    @property
    def text_decoration(self) -> str:
        parts = []
        if self.underline:
            parts.append("underline")
        if self.strikethrough:
            parts.append("line-through")
        return " ".join(parts)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], prefix: str) -> LabelStyle:
        d = cls()
        return cls(
            font_family=_str(raw.get("labelFontFamily"), f"{prefix}.labelFontFamily", d.font_family),
            bold=_bool(raw.get("labelBold"), f"{prefix}.labelBold"),
            italic=_bool(raw.get("labelItalic"), f"{prefix}.labelItalic"),
            underline=_bool(raw.get("labelUnderline"), f"{prefix}.labelUnderline"),
            strikethrough=_bool(raw.get("labelStrikethrough"), f"{prefix}.labelStrikethrough"),
            color=_str(raw.get("labelColor"), f"{prefix}.labelColor", d.color),
            outline_color=_str(raw.get("labelOutlineColor"), f"{prefix}.labelOutlineColor", d.outline_color),
            font_size=_float(raw.get("labelFontSize"), f"{prefix}.labelFontSize", d.font_size),
            outline_thickness=_float(
                raw.get("labelOutlineThickness"), f"{prefix}.labelOutlineThickness", d.outline_thickness
            ),
        )


@dataclass(frozen=True, slots=True)
class SymbolStyle:
    symbol_type: str = "symbol"
    shape: str = "circle"
    fill_color: str = "#1f77b4"
    stroke_color: str = "#ffffff"
    size: float = 5.0
    stroke_width: float = 1.0
    fill_transparency: float | None = None
    stroke_transparency: float | None = None
    custom_svg_path: str = ""
    label_alignment: str = "auto"
    label: LabelStyle = field(default_factory=LabelStyle)

    @property
    def fill_opacity(self) -> float:
        # Zero counts as unset.
        return (self.fill_transparency or 80) / 100

    @property
    def stroke_opacity(self) -> float:
        return (self.stroke_transparency or 100) / 100

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> SymbolStyle:
        d = cls()
        p = "styling.symbol"
        return cls(
            symbol_type=_choice(raw.get("symbolType"), f"{p}.symbolType", SYMBOL_TYPES, d.symbol_type),
            shape=_choice(raw.get("symbolShape"), f"{p}.symbolShape", SYMBOL_SHAPES, d.shape),
            fill_color=_str(raw.get("symbolFillColor"), f"{p}.symbolFillColor", d.fill_color),
            stroke_color=_str(raw.get("symbolStrokeColor"), f"{p}.symbolStrokeColor", d.stroke_color),
            size=_float(raw.get("symbolSize"), f"{p}.symbolSize", d.size),
            stroke_width=_float(raw.get("symbolStrokeWidth"), f"{p}.symbolStrokeWidth", d.stroke_width),
            fill_transparency=_optional_float(raw.get("symbolFillTransparency"), f"{p}.symbolFillTransparency"),
            stroke_transparency=_optional_float(
                raw.get("symbolStrokeTransparency"), f"{p}.symbolStrokeTransparency"
            ),
            custom_svg_path=_str(raw.get("customSvgPath"), f"{p}.customSvgPath"),
            label_alignment=_choice(raw.get("labelAlignment"), f"{p}.labelAlignment", LABEL_ALIGNMENTS, "auto"),
            label=LabelStyle.from_mapping(raw, p),
        )


@dataclass(frozen=True, slots=True)
class PathStyleDefaults:
    stroke: str = "#000000"
    stroke_width: float = 2.0
    stroke_dasharray: str | None = None
    stroke_linecap: str = "round"
    stroke_linejoin: str = "round"
    fill: str = "none"
    opacity: float = 1.0

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> PathStyleDefaults:
        d = cls()
        p = "styling.defaultPathStyles"
        dasharray = raw.get("strokeDasharray")
        return cls(
            stroke=_str(raw.get("stroke"), f"{p}.stroke", d.stroke),
            stroke_width=_float(raw.get("strokeWidth"), f"{p}.strokeWidth", d.stroke_width),
            stroke_dasharray=_str(dasharray, f"{p}.strokeDasharray") if dasharray is not None else None,
            stroke_linecap=_choice(
                raw.get("strokeLinecap"), f"{p}.strokeLinecap", ("butt", "round", "square"), d.stroke_linecap
            ),
            stroke_linejoin=_choice(
                raw.get("strokeLinejoin"), f"{p}.strokeLinejoin", ("miter", "round", "bevel"), d.stroke_linejoin
            ),
            fill=_str(raw.get("fill"), f"{p}.fill", d.fill),
            opacity=_float(raw.get("opacity"), f"{p}.opacity", d.opacity),
        )


@dataclass(frozen=True, slots=True)
class StylingSettings:
    base: BaseStyle = field(default_factory=BaseStyle)
    symbol: SymbolStyle = field(default_factory=SymbolStyle)
    choropleth_label: LabelStyle = field(default_factory=LabelStyle)
    label_overrides: Mapping[str, LabelOverride] = field(default_factory=dict)
    drawn_paths: tuple[DrawnPath, ...] = ()
    path_defaults: PathStyleDefaults = field(default_factory=PathStyleDefaults)

    def override_for(self, label_id: str) -> LabelOverride | None:
        return self.label_overrides.get(label_id)

    def with_label_override(self, override: LabelOverride) -> StylingSettings:
        overrides = dict(self.label_overrides)
        overrides[override.id] = override
        return replace(self, label_overrides=overrides)

    def without_label_override(self, label_id: str) -> StylingSettings:
        overrides = {key: value for key, value in self.label_overrides.items() if key != label_id}
        return replace(self, label_overrides=overrides)

    def with_drawn_paths(self, paths: tuple[DrawnPath, ...]) -> StylingSettings:
        return replace(self, drawn_paths=tuple(paths))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> StylingSettings:
        overrides_raw = raw.get("individualLabelOverrides") or {}
        overrides_map = _mapping(overrides_raw, "styling.individualLabelOverrides")
        overrides: dict[str, LabelOverride] = {}
        for label_id, item in overrides_map.items():
            overrides[str(label_id)] = LabelOverride.from_mapping(
                _mapping(item, f"styling.individualLabelOverrides.{label_id}"), str(label_id)
            )

        paths_raw = raw.get("drawnPaths") or []
        if not isinstance(paths_raw, list):
            raise ValueError("Expected list for 'styling.drawnPaths'")
        paths = tuple(
            DrawnPath.from_mapping(_mapping(item, f"styling.drawnPaths[{idx}]"))
            for idx, item in enumerate(paths_raw)
        )
        path_ids = [path.id for path in paths]
        if len(set(path_ids)) != len(path_ids):
            raise ValueError("Duplicate path id in 'styling.drawnPaths'")

        base_raw = raw.get("base")
        symbol_raw = raw.get("symbol")
        choropleth_raw = raw.get("choropleth")
        path_defaults_raw = raw.get("defaultPathStyles")
        return cls(
            base=BaseStyle() if base_raw is None else BaseStyle.from_mapping(_mapping(base_raw, "styling.base")),
            symbol=(
                SymbolStyle()
                if symbol_raw is None
                else SymbolStyle.from_mapping(_mapping(symbol_raw, "styling.symbol"))
            ),
            choropleth_label=(
                LabelStyle()
                if choropleth_raw is None
                else LabelStyle.from_mapping(_mapping(choropleth_raw, "styling.choropleth"), "styling.choropleth")
            ),
            label_overrides=overrides,
            drawn_paths=paths,
            path_defaults=(
                PathStyleDefaults()
                if path_defaults_raw is None
                else PathStyleDefaults.from_mapping(_mapping(path_defaults_raw, "styling.defaultPathStyles"))
            ),
        )


@dataclass(frozen=True, slots=True)
class MapSettings:
    """Everything the renderer needs besides data rows and geometry.

    At most one symbol layer and one region layer (choropleth or custom) are
    active at a time.
    """

    geography: str = "usa-states"
    projection: str = "albers_usa"
    clip_to_country: bool = False
    symbol: SymbolDimensions | None = None
    region: RegionDimensions | None = None
    styling: StylingSettings = field(default_factory=StylingSettings)
    columns: ColumnSchema = field(default_factory=ColumnSchema)

    def with_styling(self, styling: StylingSettings) -> MapSettings:
        return replace(self, styling=styling)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapSettings:
        geography = _choice(raw.get("geography"), "geography", GEOGRAPHIES, "usa-states")
        projection = _choice(raw.get("projection"), "projection", PROJECTIONS, "albers_usa")

        dims_raw = raw.get("dimensions") or []
        if not isinstance(dims_raw, list):
            raise ValueError("Expected list for 'dimensions'")
        symbol: SymbolDimensions | None = None
        region: RegionDimensions | None = None
        for idx, item in enumerate(dims_raw):
            dims = parse_dimensions(_mapping(item, f"dimensions[{idx}]"))
            if isinstance(dims, SymbolDimensions):
                if symbol is not None:
                    raise ValueError("Only one symbol entry is allowed in 'dimensions'")
                symbol = dims
            else:
                if region is not None:
                    raise ValueError("Only one choropleth or custom entry is allowed in 'dimensions'")
                region = dims

        styling_raw = raw.get("styling")
        columns_raw = raw.get("columns")
        return cls(
            geography=geography,
            projection=projection,
            clip_to_country=_bool(raw.get("clipToCountry"), "clipToCountry"),
            symbol=symbol,
            region=region,
            styling=(
                StylingSettings()
                if styling_raw is None
                else StylingSettings.from_mapping(_mapping(styling_raw, "styling"))
            ),
            columns=(
                ColumnSchema()
                if columns_raw is None
                else ColumnSchema.from_mapping(_mapping(columns_raw, "columns"))
            ),
        )


def load_map_settings(path: Path) -> MapSettings:
    """Load a map settings document (YAML or JSON, which YAML parses too)."""
    if not path.exists():
        raise FileNotFoundError(f"Map settings file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        return MapSettings()
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {path}")
    return MapSettings.from_mapping(raw)
