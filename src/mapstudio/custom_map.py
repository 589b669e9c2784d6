"""Hand-supplied vector map documents: parsing, validation, and path closing."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from .geography import STRUCTURAL_GROUP_IDS, extract_candidate_from_svg_id, normalize_geo_identifier
from .scene import SVG_NS, XLINK_NS, SceneNode, node


_LOGGER = logging.getLogger("mapstudio.custom_map")

_BBox = tuple[float, float, float, float]

_NATION_GROUP_IDS = ("Nations", "Countries")
_SUBDIVISION_GROUP_IDS = ("States", "Counties", "Provinces", "Regions")
_VALIDATION_SUBDIVISION_IDS = ("States", "Provinces", "Regions")
_US_OUTLINE_IDS = ("Country-US", "Nation-US")
_FEATURE_ID_PREFIXES = ("State-", "Nation-", "Country-", "Province-", "Region-")

_PATH_TOKEN_RE = re.compile(r"[MmLlHhVvCcSsQqTtAaZz]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_PATH_ARITY = {"M": 2, "L": 2, "H": 1, "V": 1, "C": 6, "S": 4, "Q": 4, "T": 2, "A": 7, "Z": 0}


class CustomMapError(ValueError):
    """Raised when a custom map document cannot be parsed."""


@dataclass(frozen=True, slots=True)
class CustomFeature:
    """A path or group element under the map root, with its resolved feature key."""

    order: int
    tag: str
    element_id: str | None
    key: str
    bbox: _BBox | None
    in_nations: bool

    @property
    def centroid(self) -> tuple[float, float] | None:
        if self.bbox is None:
            return None
        x0, y0, x1, y1 = self.bbox
        return ((x0 + x1) / 2.0, (y0 + y1) / 2.0)


class CustomMap:
    """Parsed custom map document.

    The `Map` group (or a synthetic one wrapping every root child when the
    document has none) is the render root. Elements are addressed by their
    document order under that root so color assignments survive serialization.
    """

    def __init__(self, map_group: ET.Element, geography: str) -> None:
        self._map_group = map_group
        self._order: dict[int, int] = {}
        self._nation_members: set[int] = set()
        self._subdivision_paths: set[int] = set()

        for index, element in enumerate(map_group.iter()):
            self._order[id(element)] = index

        nations = _find_group(map_group, _NATION_GROUP_IDS)
        if nations is not None:
            self._nation_members = {id(element) for element in nations.iter()}
        subdivisions = _find_group(map_group, _SUBDIVISION_GROUP_IDS)
        if subdivisions is not None:
            self._subdivision_paths = {
                id(element) for element in subdivisions.iter() if _local(element.tag) == "path"
            }
        self.features = tuple(self._collect_features(geography))
        self.has_nations_group = nations is not None
        self.has_subdivision_group = subdivisions is not None

    @classmethod
    def parse(cls, text: str, geography: str) -> CustomMap:
        root = _parse_document(text)
        map_group = _find_by_id(root, "Map")
        if map_group is None:
            map_group = ET.Element(f"{{{SVG_NS}}}g", {"id": "Map"})
            map_group.extend(list(root))
        return cls(map_group, geography)

    def feature_keys(self) -> tuple[str, ...]:
        return tuple(feature.key for feature in self.features if feature.key)

    def to_scene(
        self,
        *,
        nation_style: Mapping[str, Any],
        subdivision_style: Mapping[str, Any],
        fills: Mapping[int, str] | None = None,
    ) -> SceneNode:
        """Convert the map root into scene nodes with base styling and per-feature fills."""
        return self._convert(self._map_group, nation_style, subdivision_style, fills or {})

    def _convert(
        self,
        element: ET.Element,
        nation_style: Mapping[str, Any],
        subdivision_style: Mapping[str, Any],
        fills: Mapping[int, str],
    ) -> SceneNode:
        tag = _local(element.tag)
        attrs: dict[str, Any] = {_attr_name(key): value for key, value in element.attrib.items()}
        key = id(element)
        if tag == "path" and key in self._nation_members:
            attrs.update(nation_style)
        elif key in self._subdivision_paths:
            attrs.update(subdivision_style)
        order = self._order.get(key)
        if order is not None and order in fills:
            attrs["fill"] = fills[order]
        children = [
            self._convert(child, nation_style, subdivision_style, fills)
            for child in element
            if isinstance(child.tag, str)
        ]
        return node(tag, attrs, children, text=_text_of(element))

    def _collect_features(self, geography: str) -> Iterable[CustomFeature]:
        parents = {id(child): parent for parent in self._map_group.iter() for child in parent}
        for element in self._map_group.iter():
            if element is self._map_group:
                continue
            tag = _local(element.tag)
            if tag not in ("path", "g"):
                continue
            element_id = element.get("id")
            if element_id in STRUCTURAL_GROUP_IDS:
                continue
            effective_id = element_id
            parent = parents.get(id(element))
            if tag == "path" and not effective_id and parent is not None and _local(parent.tag) == "g":
                effective_id = parent.get("id")
            key = ""
            if effective_id:
                candidate = extract_candidate_from_svg_id(effective_id)
                key = normalize_geo_identifier(candidate or effective_id, geography)
            yield CustomFeature(
                order=self._order[id(element)],
                tag=tag,
                element_id=element_id,
                key=key,
                bbox=element_bbox(element),
                in_nations=id(element) in self._nation_members,
            )


def validate_custom_svg(text: str) -> tuple[bool, str]:
    """Check that a document has the structure custom maps require."""
    if not text.strip():
        return (False, "SVG code cannot be empty.")
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        return (False, f"Invalid SVG format: {exc}")

    if _local(root.tag).lower() != "svg":
        return (False, "Root element must be <svg>.")
    map_group = _find_by_id(root, "Map", tag="g")
    if map_group is None:
        return (False, "Missing required <g id='Map'> group.")
    nations = _find_group(map_group, _NATION_GROUP_IDS, tag="g")
    if nations is None:
        return (False, "Missing required <g id='Nations'> or <g id='Countries'> group inside #Map.")
    subdivisions = _find_group(map_group, _VALIDATION_SUBDIVISION_IDS, tag="g")
    if subdivisions is None:
        return (
            False,
            "Missing required <g id='States'>, <g id='Provinces'>, or <g id='Regions'> group inside #Map.",
        )
    if not any(
        _local(element.tag) == "path" and element.get("id") in _US_OUTLINE_IDS for element in nations.iter()
    ):
        return (
            False,
            "Missing required <path id='Country-US'> or <path id='Nation-US'> inside Nations/Countries group.",
        )
    if not any(
        _local(element.tag) == "path" and (element.get("id") or "").startswith(_FEATURE_ID_PREFIXES)
        for element in subdivisions.iter()
    ):
        return (
            False,
            "No <path id='State-XX'>, <path id='Nation-XX'>, <path id='Country-XX'>, "
            "<path id='Province-XX'>, or <path id='Region-XX'> elements found inside "
            "States/Provinces/Regions group.",
        )
    return (True, "SVG is valid.")


def ensure_paths_closed(text: str) -> tuple[str, int]:
    """Append `Z` to every path whose data does not end with a close command.

    Returns the re-serialized document and how many paths were closed. A
    document that does not parse is returned unchanged with a count of 0.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        _LOGGER.warning("Could not parse custom map for path closing: %s", exc)
        return (text, 0)

    closed = 0
    for element in root.iter():
        if not isinstance(element.tag, str) or _local(element.tag) != "path":
            continue
        d = element.get("d")
        if d and not d.strip().lower().endswith("z"):
            element.set("d", f"{d.strip()}Z")
            closed += 1
    ET.indent(root)
    return (ET.tostring(root, encoding="unicode"), closed)


def path_bbox(d: str) -> _BBox | None:
    """Bounding box of the vertices and control points in SVG path data."""
    xs: list[float] = []
    ys: list[float] = []
    x = y = 0.0
    start_x = start_y = 0.0
    command: str | None = None
    args: list[float] = []

    def _emit(cmd: str, values: list[float]) -> None:
        nonlocal x, y, start_x, start_y
        upper = cmd.upper()
        relative = cmd.islower()
        ox, oy = (x, y) if relative else (0.0, 0.0)
        if upper in ("M", "L", "T"):
            x, y = ox + values[0], oy + values[1]
            if upper == "M":
                start_x, start_y = x, y
        elif upper == "H":
            x = ox + values[0]
        elif upper == "V":
            y = oy + values[0]
        elif upper in ("C", "S", "Q"):
            for i in range(0, len(values) - 2, 2):
                xs.append(ox + values[i])
                ys.append(oy + values[i + 1])
            x, y = ox + values[-2], oy + values[-1]
        elif upper == "A":
            x, y = ox + values[5], oy + values[6]
        elif upper == "Z":
            x, y = start_x, start_y
        xs.append(x)
        ys.append(y)

    for token in _PATH_TOKEN_RE.findall(d or ""):
        if token.isalpha():
            command = token
            args = []
            if token.upper() == "Z":
                _emit(token, [])
            continue
        if command is None:
            return None
        args.append(float(token))
        arity = _PATH_ARITY[command.upper()]
        if arity and len(args) == arity:
            _emit(command, args)
            args = []
            # Extra coordinate pairs after a move are implicit line-tos.
            if command == "M":
                command = "L"
            elif command == "m":
                command = "l"

    if not xs:
        return None
    return (min(xs), min(ys), max(xs), max(ys))


def element_bbox(element: ET.Element) -> _BBox | None:
    boxes = [
        box
        for box in (
            path_bbox(item.get("d") or "")
            for item in element.iter()
            if isinstance(item.tag, str) and _local(item.tag) == "path"
        )
        if box is not None
    ]
    if not boxes:
        return None
    return (
        min(box[0] for box in boxes),
        min(box[1] for box in boxes),
        max(box[2] for box in boxes),
        max(box[3] for box in boxes),
    )


def _parse_document(text: str) -> ET.Element:
    if not text or not text.strip():
        raise CustomMapError("Custom map document is empty")
    try:
        return ET.fromstring(text)
    except ET.ParseError as exc:
        raise CustomMapError(f"SVG parsing error: {exc}") from exc


def _find_by_id(root: ET.Element, element_id: str, *, tag: str | None = None) -> ET.Element | None:
    for element in root.iter():
        if not isinstance(element.tag, str):
            continue
        if element.get("id") == element_id and (tag is None or _local(element.tag) == tag):
            return element
    return None


def _find_group(root: ET.Element, ids: Iterable[str], *, tag: str | None = None) -> ET.Element | None:
    for element_id in ids:
        found = _find_by_id(root, element_id, tag=tag)
        if found is not None:
            return found
    return None


def _local(tag: Any) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _attr_name(key: str) -> str:
    if key.startswith(f"{{{XLINK_NS}}}"):
        return "xlink:" + key.rsplit("}", 1)[-1]
    return key.rsplit("}", 1)[-1]


def _text_of(element: ET.Element) -> str | None:
    if element.text is None or not element.text.strip():
        return None
    return element.text
