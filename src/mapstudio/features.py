"""Resolve renderable boundary features for a geography from a topology object."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .geography import (
    COUNTRY_CANDIDATES,
    NATIONAL_OUTLINE_GEOGRAPHIES,
    find_country_feature,
    normalize_geo_identifier,
    subnational_label,
)
from .topology import Feature, Topology


_LOGGER = logging.getLogger("mapstudio.features")

_CANADA_CODES = frozenset({"CA", "CAN"})
_CANADA_CANDIDATES = ("Canada", "CAN", "124")

Normalizer = Callable[[Any], str]


@dataclass(frozen=True, slots=True)
class ResolvedFeatures:
    """Boundary geometry for one geography.

    `nation_mesh` is drawn first as the enclosing outline; `clip_feature` is the
    single feature a projection may be fitted and clipped to. Messages are
    user-facing and never fatal.
    """

    geography: str
    features: tuple[Feature, ...] = ()
    nation_mesh: Any = None
    clip_feature: Feature | None = None
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.features and self.nation_mesh is None


def resolve_features(topology: Topology, geography: str) -> ResolvedFeatures:
    """Pick the features, nation outline and clip feature `geography` needs."""
    if geography == "usa-states":
        return _resolve_us_subdivisions(topology, geography, "states", "US states map data is incomplete.")
    if geography == "usa-counties":
        return _resolve_us_subdivisions(topology, geography, "counties", "US counties map data is incomplete.")
    if geography == "canada-provinces":
        return _resolve_canada_provinces(topology)
    if geography in ("usa-nation", "canada-nation"):
        return _resolve_single_country(topology, geography)
    if geography == "world":
        return _resolve_world(topology)
    return ResolvedFeatures(geography=geography, errors=(f"Unsupported geography: {geography}",))


def feature_element_id(feature: Feature, geography: str) -> str:
    """Stable scene id of a boundary feature, e.g. `State-CA` or `County-06037`.

    Subdivisions use their normalized key; countries use their name, then id.
    """
    if geography in NATIONAL_OUTLINE_GEOGRAPHIES:
        identifier = feature.prop("name") or feature.id
    else:
        identifier = resolve_feature_key(feature, geography, {}) or feature.prop("name")
    prefix = subnational_label(geography, False)
    return f"{prefix}-{'' if identifier is None else identifier}"


def resolve_feature_key(
    feature: Feature,
    geography: str,
    data_map: Mapping[str, Any],
    normalize: Normalizer | None = None,
) -> str | None:
    """Key under which `feature` looks up its row in `data_map`, or None.

    Subdivisions key by normalized id. Provinces fall back to the normalized
    display name when the id is not in the data. Countries match id, names or
    ISO3 exactly; a feature with no exact match has no key.
    """
    norm = normalize or (lambda value: normalize_geo_identifier(value, geography))

    if geography.startswith(("usa-states", "usa-counties")):
        return norm(str(feature.id)) if _present(feature.id) else None

    if geography.startswith("canada-provinces"):
        abbr_key = norm(str(feature.id)) if _present(feature.id) else None
        name = feature.prop("name")
        name_key = norm(str(name)) if _present(name) else None
        if abbr_key and abbr_key in data_map:
            return abbr_key
        if name_key and name_key in data_map:
            return name_key
        return abbr_key or name_key

    if geography in NATIONAL_OUTLINE_GEOGRAPHIES:
        raw = (
            feature.id,
            feature.prop("name"),
            feature.prop("name_long"),
            feature.prop("admin"),
            feature.prop("iso_a3"),
        )
        candidates = [norm(str(value)) for value in raw if _present(value)]
        candidates = [candidate for candidate in candidates if candidate]
        return next((candidate for candidate in candidates if candidate in data_map), None)

    return None


def _resolve_us_subdivisions(
    topology: Topology,
    geography: str,
    object_name: str,
    incomplete_message: str,
) -> ResolvedFeatures:
    if not topology.has_object("nation") or not topology.has_object(object_name):
        return ResolvedFeatures(geography=geography, errors=(incomplete_message,))
    return ResolvedFeatures(
        geography=geography,
        features=tuple(topology.features(object_name)),
        nation_mesh=topology.mesh("nation"),
        clip_feature=topology.feature("nation"),
    )


def _resolve_canada_provinces(topology: Topology) -> ResolvedFeatures:
    geography = "canada-provinces"
    if topology.has_object("provinces"):
        nation_source = next((name for name in ("nation", "countries") if topology.has_object(name)), None)
        return ResolvedFeatures(
            geography=geography,
            features=tuple(topology.features("provinces")),
            nation_mesh=topology.mesh(nation_source) if nation_source else None,
            clip_feature=topology.feature(nation_source) if nation_source else None,
        )

    if topology.has_object("admin1"):
        provinces = tuple(feature for feature in topology.features("admin1") if _is_canadian_admin1(feature))
        canada = _find_canada(topology)
        warnings: tuple[str, ...] = ()
        if not provinces:
            _LOGGER.debug("admin1 object has no Canadian members")
            warnings = ("Could not find Canadian provinces in the map data. Showing country boundary only.",)
        return ResolvedFeatures(
            geography=geography,
            features=provinces,
            nation_mesh=_outline(canada),
            clip_feature=canada,
            warnings=warnings,
        )

    if topology.has_object("countries"):
        canada = _find_canada(topology)
        if canada is None:
            return ResolvedFeatures(geography=geography)
        return ResolvedFeatures(
            geography=geography,
            nation_mesh=_outline(canada),
            clip_feature=canada,
            warnings=("Province-level data is not available. Showing country boundary only.",),
        )

    return ResolvedFeatures(
        geography=geography,
        errors=("Canada map data is incomplete. Please try a different geography or check your connection.",),
    )


def _resolve_single_country(topology: Topology, geography: str) -> ResolvedFeatures:
    if not topology.has_object("countries"):
        return ResolvedFeatures(geography=geography)
    countries = topology.features("countries")
    country = find_country_feature(countries, COUNTRY_CANDIDATES[geography])
    if country is not None:
        return ResolvedFeatures(
            geography=geography,
            features=(country,),
            nation_mesh=_outline(country),
            clip_feature=country,
        )
    return ResolvedFeatures(
        geography=geography,
        features=tuple(countries),
        nation_mesh=topology.mesh("countries"),
        warnings=("Country outline not found in map data. Showing all countries.",),
    )


def _resolve_world(topology: Topology) -> ResolvedFeatures:
    source = next((name for name in ("countries", "land") if topology.has_object(name)), None)
    if source is None:
        return ResolvedFeatures(geography="world", errors=("The world map data is incomplete.",))
    return ResolvedFeatures(
        geography="world",
        features=tuple(topology.features(source)),
        nation_mesh=topology.interior_mesh(source),
        clip_feature=topology.feature(source),
    )


def _find_canada(topology: Topology) -> Feature | None:
    if not topology.has_object("countries"):
        return None
    return find_country_feature(topology.features("countries"), _CANADA_CANDIDATES)


def _is_canadian_admin1(feature: Feature) -> bool:
    props = feature.properties
    country_code = props.get("iso_a2") or props.get("adm0_a3") or props.get("admin")
    country_name = props.get("adm0_name") or props.get("admin")
    feature_id = str(feature.id)
    return (
        country_code in _CANADA_CODES
        or country_name == "Canada"
        or "CAN" in feature_id
        or "canada" in feature_id
    )


def _outline(feature: Feature | None) -> Any:
    if feature is None or feature.is_empty:
        return None
    return feature.geometry.boundary


def _present(value: Any) -> bool:
    return value is not None and value != "" and value != 0
