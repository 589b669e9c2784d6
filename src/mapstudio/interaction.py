"""Pointer drag sessions for labels and paths, plus host-side commit helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from .labels import move_label
from .models import DrawnPath
from .paths import MOVE_THRESHOLD, find_path, move_point, path_data, replace_path, translate_path
from .scene import SceneNode
from .settings import StylingSettings


_LOGGER = logging.getLogger("mapstudio.interaction")


@dataclass(frozen=True, slots=True)
class HostCallbacks:
    """Edit notifications for the host; each is optional."""

    on_label_position_update: Callable[[str, float, float], None] | None = None
    on_path_position_update: Callable[[str, float, float], None] | None = None
    on_path_point_update: Callable[[str, int, float, float], None] | None = None
    on_label_select: Callable[[str], None] | None = None
    on_path_select: Callable[[str], None] | None = None


class _DragSession:
    def __init__(self) -> None:
        self._origin: tuple[float, float] | None = None

    @property
    def active(self) -> bool:
        return self._origin is not None

    def _begin(self, x: float, y: float) -> None:
        if self._origin is not None:
            raise RuntimeError("Drag already started")
        self._origin = (float(x), float(y))

    def _delta(self, x: float, y: float) -> tuple[float, float]:
        if self._origin is None:
            raise RuntimeError("Drag not started")
        return (x - self._origin[0], y - self._origin[1])

    def _finish(self) -> None:
        self._origin = None


class LabelDrag(_DragSession):
    """Drag of one rendered `<text>` label.

    `drag` only returns a repositioned copy of the element; `end` reports the
    final position through `on_label_position_update`.
    """

    def __init__(self, label: SceneNode, callbacks: HostCallbacks) -> None:
        super().__init__()
        if label.id is None:
            raise ValueError("Label element has no id")
        self._label = label
        self._callbacks = callbacks
        self._start = (float(label.attr("x") or 0.0), float(label.attr("y") or 0.0))

    @property
    def label_id(self) -> str:
        return str(self._label.id)

    def start(self, x: float, y: float) -> None:
        self._begin(x, y)
        if self._callbacks.on_label_select is not None:
            self._callbacks.on_label_select(self.label_id)

    def drag(self, x: float, y: float) -> SceneNode:
        return _reposition_text(self._label, *self._target(x, y))

    def end(self, x: float, y: float) -> tuple[float, float]:
        final = self._target(x, y)
        self._finish()
        if self._callbacks.on_label_position_update is not None:
            self._callbacks.on_label_position_update(self.label_id, final[0], final[1])
        return final

    def _target(self, x: float, y: float) -> tuple[float, float]:
        dx, dy = self._delta(x, y)
        return (self._start[0] + dx, self._start[1] + dy)


class PointDrag(_DragSession):
    """Drag of a single anchor point of a drawn path."""

    def __init__(self, path: DrawnPath, index: int, callbacks: HostCallbacks) -> None:
        super().__init__()
        if not 0 <= index < len(path.points):
            raise IndexError(f"Path {path.id!r} has no point {index}")
        self._path = path
        self._index = index
        self._callbacks = callbacks

    def start(self, x: float, y: float) -> None:
        self._begin(x, y)

    def drag(self, x: float, y: float) -> str:
        """Preview path data with the point under the pointer."""
        self._delta(x, y)
        return path_data(move_point(self._path, self._index, x, y).points)

    def end(self, x: float, y: float) -> DrawnPath:
        self._delta(x, y)
        self._finish()
        if self._callbacks.on_path_point_update is not None:
            self._callbacks.on_path_point_update(self._path.id, self._index, x, y)
        return move_point(self._path, self._index, x, y)


class PathDrag(_DragSession):
    """Drag of a whole path; moves under the threshold are not committed."""

    def __init__(self, path: DrawnPath, callbacks: HostCallbacks) -> None:
        super().__init__()
        self._path = path
        self._callbacks = callbacks

    def start(self, x: float, y: float) -> None:
        self._begin(x, y)
        if self._callbacks.on_path_select is not None:
            self._callbacks.on_path_select(self._path.id)

    def drag(self, x: float, y: float) -> str:
        dx, dy = self._delta(x, y)
        return path_data(translate_path(self._path, dx, dy).points)

    def end(self, x: float, y: float) -> DrawnPath | None:
        dx, dy = self._delta(x, y)
        self._finish()
        if abs(dx) <= MOVE_THRESHOLD and abs(dy) <= MOVE_THRESHOLD:
            _LOGGER.debug("Path %s drag below threshold; not committed", self._path.id)
            return None
        if self._callbacks.on_path_position_update is not None:
            self._callbacks.on_path_position_update(self._path.id, dx, dy)
        return translate_path(self._path, dx, dy)


def commit_label_position(styling: StylingSettings, label_id: str, x: float, y: float) -> StylingSettings:
    return styling.with_label_override(move_label(styling.override_for(label_id), label_id, x, y))


def commit_path_translation(styling: StylingSettings, path_id: str, dx: float, dy: float) -> StylingSettings:
    path = _require_path(styling, path_id)
    return styling.with_drawn_paths(replace_path(styling.drawn_paths, translate_path(path, dx, dy)))


def commit_point_move(styling: StylingSettings, path_id: str, index: int, x: float, y: float) -> StylingSettings:
    path = _require_path(styling, path_id)
    return styling.with_drawn_paths(replace_path(styling.drawn_paths, move_point(path, index, x, y)))


def _require_path(styling: StylingSettings, path_id: str) -> DrawnPath:
    path = find_path(styling.drawn_paths, path_id)
    if path is None:
        raise KeyError(f"Unknown path id: {path_id}")
    return path


def _reposition_text(label: SceneNode, x: float, y: float) -> SceneNode:
    children = tuple(
        child.with_attrs({"x": x}) if child.tag == "tspan" and child.attr("x") is not None else child
        for child in label.children
    )
    return label.with_attrs({"x": x, "y": y}).with_children(children)
