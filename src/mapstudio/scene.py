"""Immutable scene description, SVG serialization, and scene diffing."""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, replace
from typing import Any, Iterator, Mapping, Sequence


SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)

_Attrs = tuple[tuple[str, str], ...]


@dataclass(frozen=True, slots=True)
class SceneNode:
    """One element of a rendered scene.

    Attributes are stored as an ordered tuple of string pairs so nodes compare
    and hash by value; two renders of the same inputs produce equal trees.
    """

    tag: str
    attrs: _Attrs = ()
    children: tuple[SceneNode, ...] = ()
    text: str | None = None

    @property
    def id(self) -> str | None:
        return self.attr("id")

    def attr(self, name: str) -> str | None:
        for key, value in self.attrs:
            if key == name:
                return value
        return None

    def with_attrs(self, values: Mapping[str, Any]) -> SceneNode:
        """Return a copy with `values` set (None removes an attribute)."""
        merged = dict(self.attrs)
        for key, value in values.items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = format_value(value)
        return replace(self, attrs=tuple(merged.items()))

    def with_children(self, children: Sequence[SceneNode]) -> SceneNode:
        return replace(self, children=tuple(children))

    def iter(self) -> Iterator[SceneNode]:
        yield self
        for child in self.children:
            yield from child.iter()

    def find(self, element_id: str) -> SceneNode | None:
        for node in self.iter():
            if node.id == element_id:
                return node
        return None


@dataclass(frozen=True, slots=True)
class SceneDiff:
    added: tuple[str, ...]
    removed: tuple[str, ...]
    changed: tuple[str, ...]

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


def node(
    tag: str,
    attrs: Mapping[str, Any] | None = None,
    children: Sequence[SceneNode] = (),
    text: str | None = None,
) -> SceneNode:
    """Build a node, formatting attribute values and dropping None ones."""
    pairs: list[tuple[str, str]] = []
    for key, value in (attrs or {}).items():
        if value is None:
            continue
        pairs.append((key, format_value(value)))
    return SceneNode(tag=tag, attrs=tuple(pairs), children=tuple(children), text=text)


def group(group_id: str | None, children: Sequence[SceneNode] = (), **attrs: Any) -> SceneNode:
    values: dict[str, Any] = {"id": group_id}
    values.update({key.replace("_", "-"): value for key, value in attrs.items()})
    return node("g", values, children)


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(float(value))
    return str(value)


def format_number(value: float) -> str:
    if not math.isfinite(value):
        return "0"
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def to_element(scene_node: SceneNode) -> ET.Element:
    element = ET.Element(_qualified(scene_node.tag))
    for key, value in scene_node.attrs:
        element.set(_qualified_attr(key), value)
    if scene_node.text is not None:
        element.text = scene_node.text
    for child in scene_node.children:
        element.append(to_element(child))
    return element


def to_svg(scene_node: SceneNode, *, indent: bool = True) -> str:
    """Serialize a scene to SVG markup."""
    element = to_element(scene_node)
    if indent:
        _indent_structure(element)
    return ET.tostring(element, encoding="unicode")


def diff_scenes(old: SceneNode | None, new: SceneNode) -> SceneDiff:
    """Compare two scenes by element id.

    An id is `changed` when both scenes contain it but its subtree differs, so a
    host can re-apply only those elements.
    """
    old_index = _index_by_id(old) if old is not None else {}
    new_index = _index_by_id(new)
    added = tuple(element_id for element_id in new_index if element_id not in old_index)
    removed = tuple(element_id for element_id in old_index if element_id not in new_index)
    changed = tuple(
        element_id
        for element_id, current in new_index.items()
        if element_id in old_index and old_index[element_id] != current
    )
    return SceneDiff(added=added, removed=removed, changed=changed)


def _index_by_id(root: SceneNode) -> dict[str, SceneNode]:
    out: dict[str, SceneNode] = {}
    for item in root.iter():
        element_id = item.id
        if element_id and element_id not in out:
            out[element_id] = item
    return out


def _qualified(tag: str) -> str:
    if tag.startswith("{"):
        return tag
    return f"{{{SVG_NS}}}{tag}"


def _qualified_attr(name: str) -> str:
    if name.startswith("xlink:"):
        return f"{{{XLINK_NS}}}{name.split(':', 1)[1]}"
    return name


def _indent_structure(element: ET.Element, level: int = 0) -> None:
    # Text-bearing elements keep their content untouched.
    text_tags = (_qualified("text"), _qualified("tspan"))
    if element.tag in text_tags or not len(element):
        return
    pad = "\n" + "  " * (level + 1)
    element.text = pad
    for child in element:
        _indent_structure(child, level + 1)
        child.tail = pad
    element[-1].tail = "\n" + "  " * level
