"""Map projections (lon/lat to canvas pixels), fitting, and SVG path generation."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Any, Iterable, Sequence

from .scene import format_number


_Point = tuple[float, float]
_Bounds = tuple[float, float, float, float]


@dataclass(frozen=True, slots=True)
class _ProjectionPart:
    """One planar projection on the unit sphere, placed relative to the canvas centre."""

    proj: str
    scale_factor: float = 1.0
    offset: _Point = (0.0, 0.0)
    lon_range: tuple[float, float] = (-180.0, 180.0)
    lat_range: tuple[float, float] = (-90.0, 90.0)

    def contains(self, lon: float, lat: float) -> bool:
        return (
            self.lon_range[0] <= lon <= self.lon_range[1]
            and self.lat_range[0] <= lat <= self.lat_range[1]
        )


_ALBERS = "+proj=aea +lat_1=29.5 +lat_2=45.5 +lat_0=38.7 +lon_0=-96.6 +R=1 +no_defs"
_ALASKA = "+proj=aea +lat_1=55 +lat_2=65 +lat_0=58.5 +lon_0=-156 +R=1 +no_defs"
_HAWAII = "+proj=aea +lat_1=8 +lat_2=18 +lat_0=19.9 +lon_0=-160 +R=1 +no_defs"

_FAMILIES: dict[str, tuple[_ProjectionPart, ...]] = {
    # Lower 48 first: it is the fallback part of the composite projection.
    "albers_usa": (
        _ProjectionPart(_ALBERS, lon_range=(-125.0, -66.0), lat_range=(24.0, 50.0)),
        _ProjectionPart(_ALASKA, 0.35, (-0.307, 0.201), lon_range=(-180.0, -129.0), lat_range=(51.0, 72.0)),
        _ProjectionPart(_HAWAII, 1.0, (-0.205, 0.212), lon_range=(-161.0, -154.0), lat_range=(18.0, 23.0)),
    ),
    "albers": (_ProjectionPart(_ALBERS),),
    "equirectangular": (_ProjectionPart("+proj=eqc +lat_ts=0 +lon_0=0 +R=1 +no_defs"),),
    "mercator": (_ProjectionPart("+proj=merc +lon_0=0 +R=1 +no_defs", lat_range=(-85.05113, 85.05113)),),
    "equal_earth": (_ProjectionPart("+proj=eqearth +lon_0=0 +R=1 +no_defs"),),
}
_MERCATOR_MAX_LAT = 85.05113


@dataclass(frozen=True, slots=True)
class MapProjection:
    """Projection family plus canvas placement.

    Screen coordinates are `(tx + scale * x, ty - scale * y)` for unit-sphere
    projected `(x, y)`. The composite `albers_usa` family routes each point to
    its lower-48, Alaska, or Hawaii part and has no output for points outside
    all three.
    """

    family: str
    scale: float
    translate: _Point

    @classmethod
    def create(cls, family: str, *, width: float, height: float, scale: float) -> MapProjection:
        if family not in _FAMILIES:
            raise ValueError(f"Unknown projection family: {family}")
        return cls(family=family, scale=float(scale), translate=(width / 2.0, height / 2.0))

    @property
    def is_composite(self) -> bool:
        return len(_FAMILIES[self.family]) > 1

    def project(self, lon: float, lat: float) -> _Point | None:
        """Project one lon/lat pair; None when the point has no on-canvas image."""
        if not (math.isfinite(lon) and math.isfinite(lat)):
            return None
        parts = _FAMILIES[self.family]
        if self.is_composite:
            part = next((item for item in parts if item.contains(lon, lat)), None)
            if part is None:
                return None
        else:
            part = parts[0]
            if self.family == "mercator" and abs(lat) > _MERCATOR_MAX_LAT:
                return None
        return self._project_with(part, lon, lat)

    def fit(self, geometry: Any, *, width: float, height: float) -> MapProjection:
        """Return a copy scaled and translated so `geometry` fills `width` x `height`."""
        bounds = self.raw_bounds(geometry)
        if bounds is None:
            return self
        x0, y0, x1, y1 = bounds
        dx = x1 - x0
        dy = y1 - y0
        if dx <= 0 and dy <= 0:
            return self
        scale = min(width / dx if dx > 0 else math.inf, height / dy if dy > 0 else math.inf)
        tx = (width - scale * (x0 + x1)) / 2.0
        ty = (height + scale * (y0 + y1)) / 2.0
        return replace(self, scale=scale, translate=(tx, ty))

    def raw_bounds(self, geometry: Any) -> _Bounds | None:
        xs: list[float] = []
        ys: list[float] = []
        for ring in self._raw_lines(geometry):
            for point in ring:
                if point is not None:
                    xs.append(point[0])
                    ys.append(point[1])
        if not xs:
            return None
        return (min(xs), min(ys), max(xs), max(ys))

    def path_data(self, geometry: Any) -> str:
        """SVG path data of a lon/lat geometry on the canvas."""
        if geometry is None:
            return ""
        commands: list[str] = []
        for coords, closed in _iter_lines(geometry):
            part = self._part_for_coords(coords)
            segment: list[_Point] = []
            for lon, lat in coords:
                point = self._screen(part, lon, lat)
                if point is None:
                    commands.append(_segment_data(segment, closed=False))
                    segment = []
                    continue
                segment.append(point)
            commands.append(_segment_data(segment, closed=closed))
        return "".join(commands)

    def centroid(self, geometry: Any) -> _Point | None:
        """Planar centroid of the projected geometry (area-weighted for polygons)."""
        if geometry is None or bool(getattr(geometry, "is_empty", True)):
            return None
        geometry_module = _require_shapely_geometry()
        polygons: list[Any] = []
        for polygon in _iter_polygons(geometry):
            part = self._part_for_coords(list(polygon.exterior.coords))
            rings = [self._screen_ring(part, ring.coords) for ring in (polygon.exterior, *polygon.interiors)]
            if rings[0] is None or len(rings[0]) < 4:
                continue
            holes = [ring for ring in rings[1:] if ring is not None and len(ring) >= 4]
            polygons.append(geometry_module.Polygon(rings[0], holes))
        if polygons:
            shape = geometry_module.MultiPolygon(polygons) if len(polygons) > 1 else polygons[0]
            center = shape.centroid
        else:
            projected = [
                point
                for coords, _ in _iter_lines(geometry)
                for point in (self.project(lon, lat) for lon, lat in coords)
                if point is not None
            ]
            if not projected:
                return None
            center = geometry_module.MultiPoint(projected).centroid
        if center.is_empty or not (math.isfinite(center.x) and math.isfinite(center.y)):
            return None
        return (float(center.x), float(center.y))

    def _project_with(self, part: _ProjectionPart, lon: float, lat: float) -> _Point | None:
        raw = _transform(part.proj, lon, lat)
        if raw is None:
            return None
        k = self.scale * part.scale_factor
        x = self.translate[0] + self.scale * part.offset[0] + k * raw[0]
        y = self.translate[1] + self.scale * part.offset[1] - k * raw[1]
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        return (x, y)

    def _screen(self, part: _ProjectionPart, lon: float, lat: float) -> _Point | None:
        if self.family == "mercator" and abs(lat) > _MERCATOR_MAX_LAT:
            lat = math.copysign(_MERCATOR_MAX_LAT, lat)
        return self._project_with(part, lon, lat)

    def _screen_ring(self, part: _ProjectionPart, coords: Iterable[Sequence[float]]) -> list[_Point] | None:
        out: list[_Point] = []
        for lon, lat in ((c[0], c[1]) for c in coords):
            point = self._screen(part, lon, lat)
            if point is not None:
                out.append(point)
        return out or None

    def _raw_lines(self, geometry: Any) -> Iterable[list[_Point | None]]:
        for coords, _ in _iter_lines(geometry):
            part = self._part_for_coords(coords)
            raw_points: list[_Point | None] = []
            for lon, lat in coords:
                if self.family == "mercator" and abs(lat) > _MERCATOR_MAX_LAT:
                    lat = math.copysign(_MERCATOR_MAX_LAT, lat)
                raw = _transform(part.proj, lon, lat)
                if raw is None:
                    raw_points.append(None)
                    continue
                raw_points.append(
                    (
                        part.offset[0] + part.scale_factor * raw[0],
                        -part.offset[1] + part.scale_factor * raw[1],
                    )
                )
            yield raw_points

    def _part_for_coords(self, coords: Sequence[Sequence[float]]) -> _ProjectionPart:
        parts = _FAMILIES[self.family]
        if len(parts) == 1 or not coords:
            return parts[0]
        lon = sum(c[0] for c in coords) / len(coords)
        lat = sum(c[1] for c in coords) / len(coords)
        return next((item for item in parts if item.contains(lon, lat)), parts[0])


def _segment_data(points: Sequence[_Point], *, closed: bool) -> str:
    if not points:
        return ""
    head = f"M{format_number(points[0][0])},{format_number(points[0][1])}"
    tail = "".join(f"L{format_number(x)},{format_number(y)}" for x, y in points[1:])
    return head + tail + ("Z" if closed else "")


def _iter_lines(geometry: Any) -> Iterable[tuple[list[tuple[float, float]], bool]]:
    """Yield (coordinates, is_closed_ring) for every ring and line of a geometry."""
    if geometry is None or bool(getattr(geometry, "is_empty", True)):
        return
    geom_type = geometry.geom_type
    if geom_type == "Polygon":
        yield ([(c[0], c[1]) for c in geometry.exterior.coords], True)
        for ring in geometry.interiors:
            yield ([(c[0], c[1]) for c in ring.coords], True)
    elif geom_type in ("LineString", "LinearRing"):
        yield ([(c[0], c[1]) for c in geometry.coords], False)
    elif geom_type in ("MultiPolygon", "MultiLineString", "GeometryCollection"):
        for part in geometry.geoms:
            yield from _iter_lines(part)


def _iter_polygons(geometry: Any) -> Iterable[Any]:
    geom_type = geometry.geom_type
    if geom_type == "Polygon":
        yield geometry
    elif geom_type in ("MultiPolygon", "GeometryCollection"):
        for part in geometry.geoms:
            yield from _iter_polygons(part)


def _transform(proj: str, lon: float, lat: float) -> _Point | None:
    x, y = _forward(proj)(lon, lat)
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return (float(x), float(y))


@lru_cache(maxsize=None)
def _forward(proj: str) -> Any:
    """Forward lon/lat projection on the unit sphere named in `proj`."""
    try:
        import pyproj
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for map projections") from exc
    return pyproj.Proj(proj)


def _require_shapely_geometry() -> Any:
    try:
        from shapely import geometry
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for projected centroids") from exc
    return geometry
