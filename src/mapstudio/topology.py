"""Decoding of topology objects (shared-arc boundary encoding) into shapely geometry."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Sequence


_LOGGER = logging.getLogger("mapstudio.topology")

_Position = tuple[float, float]


class TopologyError(ValueError):
    """Raised when a topology object is structurally invalid."""


@dataclass(frozen=True, slots=True)
class Feature:
    """One boundary feature: identifier, attribute properties, and lon/lat geometry."""

    id: Any
    properties: Mapping[str, Any] = field(default_factory=dict)
    geometry: Any = None

    @property
    def is_empty(self) -> bool:
        return self.geometry is None or bool(self.geometry.is_empty)

    def prop(self, key: str) -> Any:
        return self.properties.get(key)


class Topology:
    """Read-only view over a parsed topology document.

    Arcs are decoded once on construction (delta-decoded and de-quantized when
    the document carries a `transform`). Object groups are decoded lazily on
    request and never mutated.
    """

    def __init__(self, raw: Mapping[str, Any]) -> None:
        if not isinstance(raw, Mapping):
            raise TopologyError("Topology must be a mapping")
        if raw.get("type") != "Topology":
            raise TopologyError(f"Expected type 'Topology', got {raw.get('type')!r}")
        objects = raw.get("objects")
        if not isinstance(objects, Mapping):
            raise TopologyError("Topology is missing its 'objects' mapping")
        arcs = raw.get("arcs", [])
        if not isinstance(arcs, list):
            raise TopologyError("Expected list for 'arcs'")
        self._objects: Mapping[str, Any] = objects
        self._arcs: tuple[tuple[_Position, ...], ...] = _decode_arcs(arcs, raw.get("transform"))

    @classmethod
    def from_path(cls, path: Path) -> Topology:
        if not path.exists():
            raise FileNotFoundError(f"Topology file not found: {path}")
        with path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
        return cls(raw)

    @property
    def object_names(self) -> tuple[str, ...]:
        return tuple(self._objects)

    @property
    def arc_count(self) -> int:
        return len(self._arcs)

    def has_object(self, name: str) -> bool:
        return isinstance(self._objects.get(name), Mapping)

    def features(self, name: str) -> list[Feature]:
        """Return the members of an object group as individual features."""
        obj = self._require_object(name)
        if obj.get("type") == "GeometryCollection":
            return [self._to_feature(member) for member in obj.get("geometries") or []]
        return [self._to_feature(obj)]

    def feature(self, name: str) -> Feature:
        """Return a whole object group merged into a single feature."""
        obj = self._require_object(name)
        geometry = self._geometry(obj)
        return Feature(id=obj.get("id"), properties=dict(obj.get("properties") or {}), geometry=geometry)

    def mesh(
        self,
        name: str,
        arc_filter: Callable[[Mapping[str, Any], Mapping[str, Any]], bool] | None = None,
    ) -> Any:
        """Return the deduplicated boundary lines of an object group.

        Without a filter every arc is drawn once. With a filter, an arc is kept
        when `arc_filter(a, b)` holds for the first and last geometries that
        reference it; `a is b` for arcs used by only one geometry.
        """
        obj = self._require_object(name)
        usage: dict[int, list[Mapping[str, Any]]] = {}
        for geometry in _iter_leaf_geometries(obj):
            for index in _iter_arc_indexes(geometry):
                arc_index = index if index >= 0 else ~index
                owners = usage.setdefault(arc_index, [])
                if not owners or owners[-1] is not geometry:
                    owners.append(geometry)

        lines: list[tuple[_Position, ...]] = []
        for arc_index in sorted(usage):
            owners = usage[arc_index]
            if arc_filter is not None and not arc_filter(owners[0], owners[-1]):
                continue
            coords = self._arc(arc_index)
            if len(coords) >= 2:
                lines.append(coords)
        geometry_module = _require_shapely_geometry()
        return geometry_module.MultiLineString(lines)

    def interior_mesh(self, name: str) -> Any:
        """Mesh of arcs shared by two different geometries (internal borders only)."""
        return self.mesh(name, lambda a, b: a is not b)

    def _require_object(self, name: str) -> Mapping[str, Any]:
        obj = self._objects.get(name)
        if not isinstance(obj, Mapping):
            raise TopologyError(f"Topology has no object named '{name}'")
        return obj

    def _to_feature(self, obj: Mapping[str, Any]) -> Feature:
        properties = obj.get("properties") or {}
        if not isinstance(properties, Mapping):
            raise TopologyError(f"Expected mapping for properties of object {obj.get('id')!r}")
        return Feature(id=obj.get("id"), properties=dict(properties), geometry=self._geometry(obj))

    def _arc(self, index: int) -> tuple[_Position, ...]:
        try:
            if index >= 0:
                return self._arcs[index]
            return tuple(reversed(self._arcs[~index]))
        except IndexError as exc:
            raise TopologyError(f"Arc index {index} out of range ({len(self._arcs)} arcs)") from exc

    def _line(self, indexes: Sequence[int]) -> list[_Position]:
        points: list[_Position] = []
        for i, index in enumerate(indexes):
            coords = self._arc(int(index))
            # Consecutive arcs share their junction point.
            points.extend(coords if i == 0 else coords[1:])
        return points

    def _ring(self, indexes: Sequence[int]) -> list[_Position]:
        points = self._line(indexes)
        if points and points[0] != points[-1]:
            points.append(points[0])
        return points

    def _polygon(self, rings: Sequence[Sequence[int]]) -> Any | None:
        geometry_module = _require_shapely_geometry()
        decoded = [self._ring(ring) for ring in rings]
        decoded = [ring for ring in decoded if len(ring) >= 4]
        if not decoded:
            return None
        return geometry_module.Polygon(decoded[0], decoded[1:])

    def _geometry(self, obj: Mapping[str, Any]) -> Any:
        geometry_module = _require_shapely_geometry()
        geom_type = obj.get("type")
        if geom_type is None:
            return geometry_module.GeometryCollection()
        if geom_type == "GeometryCollection":
            parts = [self._geometry(member) for member in obj.get("geometries") or []]
            return _merge_parts([part for part in parts if part is not None and not part.is_empty])
        if geom_type == "Point":
            return geometry_module.Point(_position(obj.get("coordinates")))
        if geom_type == "MultiPoint":
            return geometry_module.MultiPoint([_position(item) for item in obj.get("coordinates") or []])
        arcs = obj.get("arcs")
        if not isinstance(arcs, list):
            raise TopologyError(f"Expected list for arcs of {geom_type} {obj.get('id')!r}")
        if geom_type == "LineString":
            return geometry_module.LineString(self._line(arcs))
        if geom_type == "MultiLineString":
            return geometry_module.MultiLineString([self._line(line) for line in arcs])
        if geom_type == "Polygon":
            polygon = self._polygon(arcs)
            return polygon if polygon is not None else geometry_module.Polygon()
        if geom_type == "MultiPolygon":
            polygons = [self._polygon(rings) for rings in arcs]
            return geometry_module.MultiPolygon([polygon for polygon in polygons if polygon is not None])
        raise TopologyError(f"Unsupported geometry type {geom_type!r}")


def _decode_arcs(arcs: list[Any], transform: Any) -> tuple[tuple[_Position, ...], ...]:
    scale: tuple[float, float] | None = None
    translate: tuple[float, float] = (0.0, 0.0)
    if transform is not None:
        if not isinstance(transform, Mapping):
            raise TopologyError("Expected mapping for 'transform'")
        scale = _position(transform.get("scale"))
        translate = _position(transform.get("translate"))

    decoded: list[tuple[_Position, ...]] = []
    for idx, arc in enumerate(arcs):
        if not isinstance(arc, list):
            raise TopologyError(f"Expected list for 'arcs[{idx}]'")
        if scale is None:
            decoded.append(tuple(_position(point) for point in arc))
            continue
        x = 0.0
        y = 0.0
        points: list[_Position] = []
        for point in arc:
            dx, dy = _position(point)
            x += dx
            y += dy
            points.append((x * scale[0] + translate[0], y * scale[1] + translate[1]))
        decoded.append(tuple(points))
    return tuple(decoded)


def _position(value: Any) -> _Position:
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        raise TopologyError(f"Expected [x, y] position, got {value!r}")
    try:
        return (float(value[0]), float(value[1]))
    except (TypeError, ValueError) as exc:
        raise TopologyError(f"Non-numeric position {value!r}") from exc


def _iter_leaf_geometries(obj: Mapping[str, Any]) -> Iterable[Mapping[str, Any]]:
    if obj.get("type") == "GeometryCollection":
        for member in obj.get("geometries") or []:
            yield from _iter_leaf_geometries(member)
    else:
        yield obj


def _iter_arc_indexes(obj: Mapping[str, Any]) -> Iterable[int]:
    geom_type = obj.get("type")
    arcs = obj.get("arcs") or []
    if geom_type == "LineString":
        yield from (int(i) for i in arcs)
    elif geom_type in ("MultiLineString", "Polygon"):
        for line in arcs:
            yield from (int(i) for i in line)
    elif geom_type == "MultiPolygon":
        for polygon in arcs:
            for ring in polygon:
                yield from (int(i) for i in ring)


def _merge_parts(parts: Sequence[Any]) -> Any:
    geometry_module = _require_shapely_geometry()
    if not parts:
        return geometry_module.GeometryCollection()
    if all(part.geom_type in ("Polygon", "MultiPolygon") for part in parts):
        polygons: list[Any] = []
        for part in parts:
            polygons.extend(part.geoms if part.geom_type == "MultiPolygon" else (part,))
        return geometry_module.MultiPolygon(polygons)
    return geometry_module.GeometryCollection(list(parts))


def _require_shapely_geometry() -> Any:
    try:
        from shapely import geometry
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for topology decoding") from exc
    return geometry
