"""Domain models shared across rendering modules."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping


DataRow = Mapping[str, Any]

COLUMN_TYPES = frozenset({"text", "number", "date", "coordinate", "state", "country"})
PATH_POINT_KINDS = frozenset({"line", "curve"})
PATH_MARKERS = frozenset(
    {
        "none",
        "line-arrow",
        "triangle-arrow",
        "open-circle",
        "closed-circle",
        "square",
        "round",
    }
)
LINECAPS = frozenset({"butt", "round", "square"})
LINEJOINS = frozenset({"miter", "round", "bevel"})
TEXT_ANCHORS = frozenset({"start", "middle", "end"})
BASELINES = frozenset({"baseline", "middle", "hanging"})


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Expected string for '{field_name}'")
    return value


def _require_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Expected numeric value for '{field_name}'")
    return float(value)


def _optional_number(value: Any, field_name: str) -> float | None:
    if value is None:
        return None
    return _require_number(value, field_name)


def _optional_choice(value: Any, field_name: str, allowed: frozenset[str]) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or value not in allowed:
        raise ValueError(
            f"Expected one of {', '.join(sorted(allowed))} for '{field_name}', got {value!r}"
        )
    return value


@dataclass(frozen=True, slots=True)
class ColumnSchema:
    """Column type classification and display formats from the ingestion layer."""

    types: Mapping[str, str] = field(default_factory=dict)
    formats: Mapping[str, str] = field(default_factory=dict)

    def type_of(self, column: str) -> str:
        return self.types.get(column, "text")

    def format_of(self, column: str) -> str | None:
        return self.formats.get(column)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ColumnSchema:
        types_raw = data.get("types") or {}
        formats_raw = data.get("formats") or {}
        if not isinstance(types_raw, Mapping):
            raise ValueError("Expected mapping for 'columns.types'")
        if not isinstance(formats_raw, Mapping):
            raise ValueError("Expected mapping for 'columns.formats'")
        types: dict[str, str] = {}
        for column, kind in types_raw.items():
            if kind not in COLUMN_TYPES:
                raise ValueError(f"Unknown column type {kind!r} for column {column!r}")
            types[str(column)] = str(kind)
        formats = {str(column): str(fmt) for column, fmt in formats_raw.items()}
        return cls(types=types, formats=formats)


@dataclass(frozen=True, slots=True)
class ControlPoint:
    x: float
    y: float

    def translated(self, dx: float, dy: float) -> ControlPoint:
        return ControlPoint(self.x + dx, self.y + dy)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], field_name: str) -> ControlPoint:
        return cls(
            x=_require_number(data.get("x"), f"{field_name}.x"),
            y=_require_number(data.get("y"), f"{field_name}.y"),
        )

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True, slots=True)
class PathPoint:
    """One vertex of a drawn path; curve vertices carry one or two control points."""

    x: float
    y: float
    kind: str = "line"
    control1: ControlPoint | None = None
    control2: ControlPoint | None = None

    def translated(self, dx: float, dy: float) -> PathPoint:
        return PathPoint(
            x=self.x + dx,
            y=self.y + dy,
            kind=self.kind,
            control1=self.control1.translated(dx, dy) if self.control1 is not None else None,
            control2=self.control2.translated(dx, dy) if self.control2 is not None else None,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], field_name: str = "point") -> PathPoint:
        kind = _optional_choice(data.get("type"), f"{field_name}.type", PATH_POINT_KINDS) or "line"
        control1_raw = data.get("controlPoint1")
        control2_raw = data.get("controlPoint2")
        return cls(
            x=_require_number(data.get("x"), f"{field_name}.x"),
            y=_require_number(data.get("y"), f"{field_name}.y"),
            kind=kind,
            control1=(
                ControlPoint.from_mapping(control1_raw, f"{field_name}.controlPoint1")
                if isinstance(control1_raw, Mapping)
                else None
            ),
            control2=(
                ControlPoint.from_mapping(control2_raw, f"{field_name}.controlPoint2")
                if isinstance(control2_raw, Mapping)
                else None
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"x": self.x, "y": self.y, "type": self.kind}
        if self.control1 is not None:
            out["controlPoint1"] = self.control1.to_dict()
        if self.control2 is not None:
            out["controlPoint2"] = self.control2.to_dict()
        return out


_PATH_STYLE_FIELDS = (
    "stroke",
    "stroke_width",
    "stroke_dasharray",
    "stroke_linecap",
    "stroke_linejoin",
    "fill",
    "opacity",
    "stroke_outline",
    "stroke_outline_width",
    "start_marker",
    "end_marker",
    "border_radius",
)


@dataclass(frozen=True, slots=True)
class DrawnPath:
    """User-drawn annotation path. Unset style fields inherit the path defaults."""

    id: str
    points: tuple[PathPoint, ...]
    stroke: str | None = None
    stroke_width: float | None = None
    stroke_dasharray: str | None = None
    stroke_linecap: str | None = None
    stroke_linejoin: str | None = None
    fill: str | None = None
    opacity: float | None = None
    stroke_outline: str | None = None
    stroke_outline_width: float | None = None
    start_marker: str | None = None
    end_marker: str | None = None
    border_radius: float | None = None

    def with_points(self, points: tuple[PathPoint, ...]) -> DrawnPath:
        return replace(self, points=points)

    def with_style_of(self, other: DrawnPath) -> DrawnPath:
        """Copy every style field from `other`, keeping this path's id and geometry."""
        return replace(self, **{name: getattr(other, name) for name in _PATH_STYLE_FIELDS})

    def without_style(self) -> DrawnPath:
        return replace(self, **{name: None for name in _PATH_STYLE_FIELDS})

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> DrawnPath:
        path_id = _require_str(data.get("id"), "path.id")
        points_raw = data.get("points", [])
        if not isinstance(points_raw, list):
            raise ValueError(f"Expected list for 'path[{path_id}].points'")
        points: list[PathPoint] = []
        for idx, item in enumerate(points_raw):
            if not isinstance(item, Mapping):
                raise ValueError(f"Expected mapping for 'path[{path_id}].points[{idx}]'")
            points.append(PathPoint.from_mapping(item, f"path[{path_id}].points[{idx}]"))
        prefix = f"path[{path_id}]"
        return cls(
            id=path_id,
            points=tuple(points),
            stroke=_optional_str(data.get("stroke"), f"{prefix}.stroke"),
            stroke_width=_optional_number(data.get("strokeWidth"), f"{prefix}.strokeWidth"),
            stroke_dasharray=_optional_str(data.get("strokeDasharray"), f"{prefix}.strokeDasharray"),
            stroke_linecap=_optional_choice(
                data.get("strokeLinecap"), f"{prefix}.strokeLinecap", LINECAPS
            ),
            stroke_linejoin=_optional_choice(
                data.get("strokeLinejoin"), f"{prefix}.strokeLinejoin", LINEJOINS
            ),
            fill=_optional_str(data.get("fill"), f"{prefix}.fill"),
            opacity=_optional_number(data.get("opacity"), f"{prefix}.opacity"),
            stroke_outline=_optional_str(data.get("strokeOutline"), f"{prefix}.strokeOutline"),
            stroke_outline_width=_optional_number(
                data.get("strokeOutlineWidth"), f"{prefix}.strokeOutlineWidth"
            ),
            start_marker=_optional_choice(data.get("startMarker"), f"{prefix}.startMarker", PATH_MARKERS),
            end_marker=_optional_choice(data.get("endMarker"), f"{prefix}.endMarker", PATH_MARKERS),
            border_radius=_optional_number(data.get("borderRadius"), f"{prefix}.borderRadius"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "points": [point.to_dict() for point in self.points],
        }
        keys = {
            "stroke": self.stroke,
            "strokeWidth": self.stroke_width,
            "strokeDasharray": self.stroke_dasharray,
            "strokeLinecap": self.stroke_linecap,
            "strokeLinejoin": self.stroke_linejoin,
            "fill": self.fill,
            "opacity": self.opacity,
            "strokeOutline": self.stroke_outline,
            "strokeOutlineWidth": self.stroke_outline_width,
            "startMarker": self.start_marker,
            "endMarker": self.end_marker,
            "borderRadius": self.border_radius,
        }
        out.update({key: value for key, value in keys.items() if value is not None})
        return out


@dataclass(frozen=True, slots=True)
class LabelOverride:
    """Per-label position and style override keyed by a stable label id."""

    id: str
    x: float | None = None
    y: float | None = None
    font_family: str | None = None
    font_style: str | None = None
    font_weight: str | None = None
    font_size: float | None = None
    text_anchor: str | None = None
    dominant_baseline: str | None = None
    fill: str | None = None
    stroke: str | None = None
    stroke_width: float | None = None
    text_decoration: str | None = None

    @property
    def has_position(self) -> bool:
        return self.x is not None and self.y is not None

    def with_position(self, x: float, y: float) -> LabelOverride:
        return replace(self, x=float(x), y=float(y))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], label_id: str | None = None) -> LabelOverride:
        resolved_id = _require_str(data.get("id", label_id), "label_override.id")
        prefix = f"label_override[{resolved_id}]"
        return cls(
            id=resolved_id,
            x=_optional_number(data.get("x"), f"{prefix}.x"),
            y=_optional_number(data.get("y"), f"{prefix}.y"),
            font_family=_optional_str(data.get("fontFamily"), f"{prefix}.fontFamily"),
            font_style=_optional_choice(
                data.get("fontStyle"), f"{prefix}.fontStyle", frozenset({"normal", "italic"})
            ),
            font_weight=_optional_choice(
                data.get("fontWeight"), f"{prefix}.fontWeight", frozenset({"normal", "bold"})
            ),
            font_size=_optional_number(data.get("fontSize"), f"{prefix}.fontSize"),
            text_anchor=_optional_choice(data.get("textAnchor"), f"{prefix}.textAnchor", TEXT_ANCHORS),
            dominant_baseline=_optional_choice(
                data.get("dominantBaseline"), f"{prefix}.dominantBaseline", BASELINES
            ),
            fill=_optional_str(data.get("fill"), f"{prefix}.fill"),
            stroke=_optional_str(data.get("stroke"), f"{prefix}.stroke"),
            stroke_width=_optional_number(data.get("strokeWidth"), f"{prefix}.strokeWidth"),
            text_decoration=_optional_str(data.get("textDecoration"), f"{prefix}.textDecoration"),
        )

    def to_dict(self) -> dict[str, Any]:
        keys = {
            "x": self.x,
            "y": self.y,
            "fontFamily": self.font_family,
            "fontStyle": self.font_style,
            "fontWeight": self.font_weight,
            "fontSize": self.font_size,
            "textAnchor": self.text_anchor,
            "dominantBaseline": self.dominant_baseline,
            "fill": self.fill,
            "stroke": self.stroke,
            "strokeWidth": self.stroke_width,
            "textDecoration": self.text_decoration,
        }
        out: dict[str, Any] = {"id": self.id}
        out.update({key: value for key, value in keys.items() if value is not None})
        return out
