"""Tests for the editor session."""

from flowgeom.models import Edge, EntityType, Node, PathType, Point, Viewport
from flowgeom.ports import ConnectionRequest
from flowgeom.session import DiagramSession


def _session() -> DiagramSession:
    s = DiagramSession(name="s")
    for node_id, x, y in [("a", 0, 0), ("b", 400, 0), ("c", 0, 700)]:
        s.add_node(Node(id=node_id, type=EntityType.PROCESSOR, position=Point(x, y)))
    s.edges = [
        Edge(id="ab", source_id="a", target_id="b"),
        Edge(id="bc", source_id="b", target_id="c"),
    ]
    return s


def test_connect_uses_default_path_type() -> None:
    s = _session()
    edge = s.connect(ConnectionRequest("a", "c", 2, 0), label="fund")
    assert edge.path_type is PathType.BEZIER
    assert edge.label == "fund"
    assert s.edges[-1] is edge


def test_connect_with_explicit_path_type() -> None:
    s = _session()
    edge = s.connect(ConnectionRequest("a", "c", 2, 0), path_type=PathType.STRAIGHT)
    assert edge.path_type is PathType.STRAIGHT


def test_delete_cascades_edges() -> None:
    s = _session()
    assert s.delete_nodes(["b"]) == (1, 2)
    assert [n.id for n in s.nodes] == ["a", "c"]
    assert s.edges == []


def test_replace_nodes_keeps_order() -> None:
    s = _session()
    s.replace_nodes([s.get_node("a").moved_to(9, 9)])
    assert [n.id for n in s.nodes] == ["a", "b", "c"]
    assert s.get_node("a").position == Point(9, 9)


def test_set_path_type_counts_changes() -> None:
    s = _session()
    assert s.set_path_type(["ab", "missing"], PathType.ORTHOGONAL) == 1
    assert s.set_path_type(["ab"], PathType.ORTHOGONAL) == 0
    assert s.edges[0].path_type is PathType.ORTHOGONAL


def test_copy_keeps_internal_edges() -> None:
    s = _session()
    assert s.copy(["a", "b"]) == 2
    assert [e.id for e in s.clipboard_edges] == ["ab"]
    assert s.copy(["nobody"]) == 0
    assert len(s.clipboard_nodes) == 2


def test_lane_count() -> None:
    s = _session()
    assert s.lane_count() == 3
    assert DiagramSession(name="empty").lane_count() == 1


def test_set_viewport_updates_detail() -> None:
    s = _session()
    s.set_viewport(Viewport(0, 0, 0.3))
    assert s.viewport.zoom == 0.3
    assert s.detail.compact_nodes
    s.set_viewport(Viewport(0, 0, 0.37))
    assert s.detail.compact_nodes
    s.set_viewport(Viewport(0, 0, 1))
    assert not s.detail.compact_nodes


def test_to_dict() -> None:
    d = _session().to_dict()
    assert d["name"] == "s"
    assert len(d["nodes"]) == 3
    assert d["viewport"] == {"pan_x": 0.0, "pan_y": 0.0, "zoom": 1.0}
