import unittest

from mapstudio.interaction import (
    HostCallbacks,
    LabelDrag,
    PathDrag,
    PointDrag,
    commit_label_position,
    commit_path_translation,
    commit_point_move,
)
from mapstudio.models import ControlPoint, DrawnPath, LabelOverride, PathPoint
from mapstudio.paths import path_data
from mapstudio.scene import node
from mapstudio.settings import StylingSettings


def _path(path_id="p1"):
    return DrawnPath(
        id=path_id,
        points=(
            PathPoint(0, 0),
            PathPoint(10, 0),
            PathPoint(20, 10, kind="curve", control1=ControlPoint(15, 0)),
        ),
    )


class Recorder:
    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)


class LabelDragTests(unittest.TestCase):
    def setUp(self):
        self.label = node(
            "text",
            {"id": "symbol-0", "x": 10, "y": 20},
            [node("tspan", text="A"), node("tspan", {"x": 10, "dy": "1.2em"}, text="B")],
        )

    def test_drag_moves_text_and_line_starts(self):
        moved_to = Recorder()
        selected = Recorder()
        drag = LabelDrag(self.label, HostCallbacks(on_label_position_update=moved_to, on_label_select=selected))
        drag.start(100, 100)
        preview = drag.drag(105, 98)
        self.assertEqual((preview.attr("x"), preview.attr("y")), ("15", "18"))
        self.assertIsNone(preview.children[0].attr("x"))
        self.assertEqual(preview.children[1].attr("x"), "15")
        self.assertEqual(drag.end(110, 110), (20.0, 30.0))
        self.assertEqual(selected.calls, [("symbol-0",)])
        self.assertEqual(moved_to.calls, [("symbol-0", 20.0, 30.0)])
        self.assertFalse(drag.active)

    def test_requires_started_session(self):
        drag = LabelDrag(self.label, HostCallbacks())
        with self.assertRaises(RuntimeError):
            drag.drag(1, 1)
        drag.start(0, 0)
        with self.assertRaises(RuntimeError):
            drag.start(0, 0)

    def test_label_without_id(self):
        with self.assertRaises(ValueError):
            LabelDrag(node("text", {"x": 1, "y": 2}), HostCallbacks())


class PointDragTests(unittest.TestCase):
    def test_only_the_dragged_vertex_moves(self):
        updates = Recorder()
        path = _path()
        drag = PointDrag(path, 2, HostCallbacks(on_path_point_update=updates))
        drag.start(20, 10)
        self.assertTrue(drag.drag(25, 15).endswith("Q 20 5, 25 15"))
        moved = drag.end(25, 15)
        self.assertEqual(moved.points[:2], path.points[:2])
        self.assertEqual((moved.points[2].x, moved.points[2].y), (25, 15))
        self.assertEqual(updates.calls, [("p1", 2, 25, 15)])

    def test_bad_index(self):
        with self.assertRaises(IndexError):
            PointDrag(_path(), 3, HostCallbacks())


class PathDragTests(unittest.TestCase):
    def test_whole_path_translates(self):
        updates = Recorder()
        selected = Recorder()
        drag = PathDrag(_path(), HostCallbacks(on_path_position_update=updates, on_path_select=selected))
        drag.start(0, 0)
        self.assertEqual(drag.drag(3, 4), "M 3 4 L 13 4 Q 18 4, 23 14")
        moved = drag.end(3, 4)
        self.assertEqual([(point.x, point.y) for point in moved.points], [(3, 4), (13, 4), (23, 14)])
        self.assertEqual(moved.points[2].control1, ControlPoint(18, 4))
        self.assertEqual(updates.calls, [("p1", 3, 4)])
        self.assertEqual(selected.calls, [("p1",)])

    def test_small_moves_are_not_committed(self):
        updates = Recorder()
        drag = PathDrag(_path(), HostCallbacks(on_path_position_update=updates))
        drag.start(10, 10)
        with self.assertLogs("mapstudio.interaction", level="DEBUG"):
            self.assertIsNone(drag.end(10.05, 9.95))
        self.assertEqual(updates.calls, [])

    def test_end_without_start(self):
        with self.assertRaises(RuntimeError):
            PathDrag(_path(), HostCallbacks()).end(1, 1)


class CommitTests(unittest.TestCase):
    def setUp(self):
        self.styling = StylingSettings(drawn_paths=(_path("a"), _path("b")))

    def test_label_position_keeps_style(self):
        styling = self.styling.with_label_override(LabelOverride(id="symbol-0", fill="#ff0000"))
        updated = commit_label_position(styling, "symbol-0", 1, 2)
        self.assertEqual(updated.override_for("symbol-0"), LabelOverride(id="symbol-0", x=1.0, y=2.0, fill="#ff0000"))
        created = commit_label_position(self.styling, "choropleth-CA", 5, 6)
        self.assertEqual(created.override_for("choropleth-CA"), LabelOverride(id="choropleth-CA", x=5.0, y=6.0))

    def test_path_translation(self):
        updated = commit_path_translation(self.styling, "b", 1, 1)
        self.assertEqual(updated.drawn_paths[0], self.styling.drawn_paths[0])
        self.assertEqual(path_data(updated.drawn_paths[1].points), "M 1 1 L 11 1 Q 16 1, 21 11")

    def test_point_move(self):
        updated = commit_point_move(self.styling, "a", 0, -5, -5)
        self.assertEqual((updated.drawn_paths[0].points[0].x, updated.drawn_paths[0].points[0].y), (-5, -5))

    def test_unknown_path(self):
        with self.assertRaises(KeyError):
            commit_path_translation(self.styling, "missing", 1, 1)
        with self.assertRaises(KeyError):
            commit_point_move(self.styling, "missing", 0, 1, 1)


if __name__ == "__main__":
    unittest.main()
