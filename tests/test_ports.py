"""Tests for port selection in connect gestures."""

from flowgeom.geometry import port_anchor
from flowgeom.models import EntityType, Node, NodeShape, Point, index_nodes
from flowgeom.ports import (
    ConnectionRequest,
    DropTarget,
    PendingConnection,
    begin_port_drag,
    best_port_pair,
    closest_port,
    hit_test,
    resolve_drop,
    resolve_node_click,
    resolve_port_click,
)


def _node(node_id: str, x: float = 0, y: float = 0, **kw) -> Node:
    return Node(id=node_id, type=kw.pop("type", EntityType.PROCESSOR), position=Point(x, y), **kw)


def _graph() -> dict[str, Node]:
    return index_nodes([
        _node("a", 0, 0),
        _node("b", 400, 0),
        _node("gate", 0, 300, type=EntityType.GATE),
        _node("locked", 800, 0, locked=True),
    ])


class TestClosestPort:
    def test_nearest_anchor(self) -> None:
        n = _node("a", 0, 0)
        assert closest_port(n, Point(500, 30)) == 1
        assert closest_port(n, Point(-100, 30)) == 3
        assert closest_port(n, Point(90, -50)) == 0
        assert closest_port(n, Point(90, 200)) == 2

    def test_result_in_candidates(self) -> None:
        n = _node("a", 0, 0)
        for point in [Point(500, 30), Point(-100, 30), Point(90, 900)]:
            assert closest_port(n, point, [0, 3]) in (0, 3)

    def test_tie_goes_to_first_candidate(self) -> None:
        n = _node("a", 0, 0, width=100, height=100)
        # Center is equidistant from every midpoint.
        assert closest_port(n, Point(50, 50)) == 0
        assert closest_port(n, Point(50, 50), [2, 1]) == 2

    def test_diamond_uses_corners(self) -> None:
        n = _node("d", 0, 0, shape=NodeShape.DIAMOND)
        assert closest_port(n, Point(110, 110)) == 2


def test_best_port_pair_left_to_right() -> None:
    assert best_port_pair(_node("a", 0, 0), _node("b", 400, 0)) == (1, 3)


def test_best_port_pair_stacked() -> None:
    assert best_port_pair(_node("a", 0, 0), _node("b", 0, 300)) == (2, 0)


class TestNodeClick:
    def test_first_click_arms_closest_source_port(self) -> None:
        res = resolve_node_click(_graph(), None, "a", Point(175, 30))
        assert res.pending == PendingConnection("a", 1)
        assert res.request is None

    def test_second_click_completes(self) -> None:
        res = resolve_node_click(_graph(), PendingConnection("a", 1), "b", Point(500, 30))
        assert res.pending is None
        assert res.request == ConnectionRequest("a", "b", 1, 3)

    def test_same_node_cancels(self) -> None:
        res = resolve_node_click(_graph(), PendingConnection("a", 1), "a", Point(10, 10))
        assert res.pending is None and res.request is None

    def test_locked_node_cancels(self) -> None:
        res = resolve_node_click(_graph(), PendingConnection("a", 1), "locked", Point(810, 10))
        assert res.pending is None and res.request is None

    def test_gate_arms_only_source_capable_port(self) -> None:
        # Clicking the left edge of a gate must not arm its target-only port.
        res = resolve_node_click(_graph(), None, "gate", Point(0, 318))
        assert res.pending is not None
        assert res.pending.port_idx != 3


class TestPortClick:
    def test_arm_and_complete(self) -> None:
        nodes = _graph()
        armed = resolve_port_click(nodes, None, "a", 1)
        assert armed.pending == PendingConnection("a", 1)
        done = resolve_port_click(nodes, armed.pending, "b", 3)
        assert done.request == ConnectionRequest("a", "b", 1, 3)

    def test_target_only_port_cannot_arm(self) -> None:
        res = resolve_port_click(_graph(), None, "gate", 3)
        assert res.pending is None and res.request is None

    def test_source_only_port_rearms(self) -> None:
        res = resolve_port_click(_graph(), PendingConnection("a", 1), "gate", 1)
        assert res.pending == PendingConnection("gate", 1)
        assert res.request is None

    def test_same_node_other_port_rearms(self) -> None:
        res = resolve_port_click(_graph(), PendingConnection("a", 1), "a", 2)
        assert res.pending == PendingConnection("a", 2)

    def test_locked_target_keeps_pending(self) -> None:
        pending = PendingConnection("a", 1)
        res = resolve_port_click(_graph(), pending, "locked", 3)
        assert res.pending == pending


class TestDragDrop:
    def test_begin_on_source_port(self) -> None:
        assert begin_port_drag(_graph()["a"], 2) == PendingConnection("a", 2)

    def test_begin_rejected(self) -> None:
        nodes = _graph()
        assert begin_port_drag(nodes["gate"], 3) is None
        assert begin_port_drag(nodes["locked"], 1) is None
        assert begin_port_drag(None, 1) is None

    def test_drop_on_port(self) -> None:
        req = resolve_drop(_graph(), PendingConnection("a", 1), DropTarget("b", 0))
        assert req == ConnectionRequest("a", "b", 1, 0)

    def test_drop_on_body_picks_closest(self) -> None:
        req = resolve_drop(_graph(), PendingConnection("a", 1), DropTarget("b"))
        assert req == ConnectionRequest("a", "b", 1, 3)

    def test_drop_on_source_only_port_falls_back(self) -> None:
        req = resolve_drop(_graph(), PendingConnection("a", 2), DropTarget("gate", 1))
        assert req is not None
        assert req.target_port != 1

    def test_drop_cancels(self) -> None:
        nodes = _graph()
        pending = PendingConnection("a", 1)
        assert resolve_drop(nodes, pending, DropTarget()) is None
        assert resolve_drop(nodes, pending, DropTarget("a", 3)) is None
        assert resolve_drop(nodes, pending, DropTarget("locked")) is None


class TestHitTest:
    def test_port_before_body(self) -> None:
        nodes = list(_graph().values())
        anchor = port_anchor(nodes[1], 3)
        assert hit_test(nodes, Point(anchor.x + 4, anchor.y)) == DropTarget("b", 3)

    def test_body(self) -> None:
        nodes = list(_graph().values())
        assert hit_test(nodes, Point(450, 20)) == DropTarget("b")

    def test_empty_space(self) -> None:
        assert hit_test(list(_graph().values()), Point(-500, -500)) == DropTarget()

    def test_topmost_wins(self) -> None:
        low = _node("low", 0, 0, z_index=10)
        high = _node("high", 50, 10, z_index=20)
        assert hit_test([high, low], Point(100, 40)).node_id == "high"
