"""Per-scene render context: settings, config, projection and scoped caches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .cache import TTLCache
from .config import AppConfig
from .features import ResolvedFeatures, resolve_features
from .geography import normalize_geo_identifier
from .models import ColumnSchema
from .projection import MapProjection
from .settings import MapSettings, StylingSettings
from .topology import Topology
from .values import js_string


@dataclass(frozen=True, slots=True)
class RenderContext:
    """Everything one render pass reads, assembled once and passed by reference.

    The cache is owned by the caller (usually a `MapRenderer`) and shared across
    scenes; entries are keyed so a settings change never serves stale data.
    """

    config: AppConfig
    settings: MapSettings
    cache: TTLCache
    topology_key: str | None = None

    @classmethod
    def create(
        cls,
        config: AppConfig,
        settings: MapSettings,
        *,
        cache: TTLCache | None = None,
        topology_key: str | None = None,
    ) -> RenderContext:
        if cache is None:
            cache = TTLCache(config.cache.max_entries, config.cache.ttl_s)
        return cls(config=config, settings=settings, cache=cache, topology_key=topology_key)

    @property
    def geography(self) -> str:
        return self.settings.geography

    @property
    def styling(self) -> StylingSettings:
        return self.settings.styling

    @property
    def columns(self) -> ColumnSchema:
        return self.settings.columns

    @property
    def width(self) -> int:
        return self.config.canvas.width

    @property
    def map_height(self) -> int:
        return self.config.canvas.map_height

    @property
    def background(self) -> str:
        return self.styling.base.map_background_color or self.config.canvas.background

    def normalize(self, value: Any) -> str:
        text = js_string(value)
        return self.cache.get_or_compute(
            ("normalize", self.geography, text),
            lambda: normalize_geo_identifier(text, self.geography),
        )

    def resolve_features(self, topology: Topology) -> ResolvedFeatures:
        """Resolved features for this geography; cached only under a topology key."""
        if self.topology_key is None:
            return resolve_features(topology, self.geography)
        return self.cache.get_or_compute(
            ("features", self.topology_key, self.geography),
            lambda: resolve_features(topology, self.geography),
        )

    def base_projection(self) -> MapProjection:
        family = self.settings.projection
        return MapProjection.create(
            family,
            width=self.width,
            height=self.map_height,
            scale=self.config.projection.scales.scale_for(family),
        )
