"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any] | None:
    value = raw.get(key)
    if value is None:
        return None
    return _mapping(value, key)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _positive(value: float, field_name: str) -> float:
    if value <= 0:
        raise ValueError(f"{field_name} must be > 0")
    return value


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class CanvasConfig:
    width: int
    map_height: int
    background: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> CanvasConfig:
        width = _int(raw.get("width", 975), "canvas.width")
        map_height = _int(raw.get("map_height", 610), "canvas.map_height")
        if width <= 0 or map_height <= 0:
            raise ValueError("canvas.width and canvas.map_height must be > 0")
        return cls(
            width=width,
            map_height=map_height,
            background=_str(raw.get("background", "#ffffff"), "canvas.background"),
        )

    @classmethod
    def default(cls) -> CanvasConfig:
        return cls(width=975, map_height=610, background="#ffffff")


@dataclass(frozen=True, slots=True)
class ProjectionScalesConfig:
    albers_usa: float
    albers: float
    equirectangular: float
    mercator: float
    equal_earth: float

    def scale_for(self, family: str) -> float:
        return float(getattr(self, family))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ProjectionScalesConfig:
        defaults = cls.default()
        values: dict[str, float] = {}
        for key in ("albers_usa", "albers", "equirectangular", "mercator", "equal_earth"):
            field_name = f"projection.scales.{key}"
            values[key] = _positive(_float(raw.get(key, getattr(defaults, key)), field_name), field_name)
        return cls(**values)

    @classmethod
    def default(cls) -> ProjectionScalesConfig:
        return cls(albers_usa=1300.0, albers=1300.0, equirectangular=150.0, mercator=150.0, equal_earth=150.0)


@dataclass(frozen=True, slots=True)
class ProjectionConfig:
    scales: ProjectionScalesConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ProjectionConfig:
        scales_raw = _section(raw, "scales")
        return cls(
            scales=(
                ProjectionScalesConfig.default()
                if scales_raw is None
                else ProjectionScalesConfig.from_mapping(scales_raw)
            )
        )

    @classmethod
    def default(cls) -> ProjectionConfig:
        return cls(scales=ProjectionScalesConfig.default())


@dataclass(frozen=True, slots=True)
class LabelsConfig:
    """Text metric estimates and placement margins for the label engine.

    `char_width_ratio` is a heuristic average glyph width as a fraction of the
    font size. It drives the auto-placement bounding-box estimate and can be
    tuned per font.
    """

    char_width_ratio: float
    line_height_ratio: float
    edge_buffer_px: float
    min_margin_px: float
    margin_ratio: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LabelsConfig:
        return cls(
            char_width_ratio=_positive(
                _float(raw.get("char_width_ratio", 0.6), "labels.char_width_ratio"),
                "labels.char_width_ratio",
            ),
            line_height_ratio=_positive(
                _float(raw.get("line_height_ratio", 1.2), "labels.line_height_ratio"),
                "labels.line_height_ratio",
            ),
            edge_buffer_px=_float(raw.get("edge_buffer_px", 20), "labels.edge_buffer_px"),
            min_margin_px=_float(raw.get("min_margin_px", 8), "labels.min_margin_px"),
            margin_ratio=_float(raw.get("margin_ratio", 0.3), "labels.margin_ratio"),
        )

    @classmethod
    def default(cls) -> LabelsConfig:
        return cls(
            char_width_ratio=0.6,
            line_height_ratio=1.2,
            edge_buffer_px=20.0,
            min_margin_px=8.0,
            margin_ratio=0.3,
        )


@dataclass(frozen=True, slots=True)
class LegendsConfig:
    panel_height_px: float
    categorical_cap: int
    panel_width_px: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LegendsConfig:
        cap = _int(raw.get("categorical_cap", 10), "legends.categorical_cap")
        if cap < 1:
            raise ValueError("legends.categorical_cap must be >= 1")
        return cls(
            panel_height_px=_positive(
                _float(raw.get("panel_height_px", 80), "legends.panel_height_px"),
                "legends.panel_height_px",
            ),
            categorical_cap=cap,
            panel_width_px=_positive(
                _float(raw.get("panel_width_px", 400), "legends.panel_width_px"),
                "legends.panel_width_px",
            ),
        )

    @classmethod
    def default(cls) -> LegendsConfig:
        return cls(panel_height_px=80.0, categorical_cap=10, panel_width_px=400.0)


@dataclass(frozen=True, slots=True)
class CacheConfig:
    max_entries: int
    ttl_s: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> CacheConfig:
        max_entries = _int(raw.get("max_entries", 64), "cache.max_entries")
        if max_entries < 1:
            raise ValueError("cache.max_entries must be >= 1")
        return cls(
            max_entries=max_entries,
            ttl_s=_positive(_float(raw.get("ttl_s", 3600), "cache.ttl_s"), "cache.ttl_s"),
        )

    @classmethod
    def default(cls) -> CacheConfig:
        return cls(max_entries=64, ttl_s=3600.0)


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    log_file: Path | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> LoggingConfig:
        log_file_raw = raw.get("log_file")
        return cls(
            log_file=(
                None if log_file_raw is None else _path_from_cfg(log_file_raw, "logging.log_file", root_dir)
            )
        )

    @classmethod
    def default(cls) -> LoggingConfig:
        return cls(log_file=None)


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path | None
    canvas: CanvasConfig
    projection: ProjectionConfig
    labels: LabelsConfig
    legends: LegendsConfig
    cache: CacheConfig
    logging: LoggingConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path | None = None) -> AppConfig:
        root_dir = source_path.parent.resolve() if source_path is not None else Path.cwd()
        canvas_raw = _section(raw, "canvas")
        projection_raw = _section(raw, "projection")
        labels_raw = _section(raw, "labels")
        legends_raw = _section(raw, "legends")
        cache_raw = _section(raw, "cache")
        logging_raw = _section(raw, "logging")
        return cls(
            source_path=source_path.resolve() if source_path is not None else None,
            canvas=CanvasConfig.default() if canvas_raw is None else CanvasConfig.from_mapping(canvas_raw),
            projection=(
                ProjectionConfig.default()
                if projection_raw is None
                else ProjectionConfig.from_mapping(projection_raw)
            ),
            labels=LabelsConfig.default() if labels_raw is None else LabelsConfig.from_mapping(labels_raw),
            legends=LegendsConfig.default() if legends_raw is None else LegendsConfig.from_mapping(legends_raw),
            cache=CacheConfig.default() if cache_raw is None else CacheConfig.from_mapping(cache_raw),
            logging=(
                LoggingConfig.default()
                if logging_raw is None
                else LoggingConfig.from_mapping(logging_raw, root_dir)
            ),
        )

    @classmethod
    def default(cls) -> AppConfig:
        return cls.from_mapping({})


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
