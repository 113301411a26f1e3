"""Tests for the MCP server tools (6-tool architecture)."""

import json

from flowgeom.server import (
    _diagrams,
    diagram,
    draw,
    gesture,
    inspect,
    layout,
    layout_preset_catalog,
    node_type_catalog,
    viewport,
)


def setup_function() -> None:
    """Clear diagrams between tests."""
    _diagrams.clear()


def _add(name: str, node_type: str = "Processor", **kw) -> dict:
    return json.loads(draw(action="add_node", diagram_name=name, node_type=node_type, **kw))


def _chain(name: str = "d") -> list[str]:
    diagram(action="create", name=name)
    ids = [_add(name, x=i * 400, y=0)["id"] for i in range(3)]
    draw(action="connect", diagram_name=name, source_id=ids[0], target_id=ids[1])
    draw(action="connect", diagram_name=name, source_id=ids[1], target_id=ids[2])
    return ids


# ===================================================================
# diagram
# ===================================================================

def test_create_list_get_delete() -> None:
    assert "created" in diagram(action="create", name="d1")
    listed = json.loads(diagram(action="list"))
    assert listed == [{"name": "d1", "nodes": 0, "edges": 0}]
    snap = json.loads(diagram(action="get", name="d1"))
    assert snap["frame"] == {"width": 1280, "height": 720}
    assert "deleted" in diagram(action="delete", name="d1")
    assert "not found" in diagram(action="get", name="d1")


def test_load_sanitizes() -> None:
    result = json.loads(diagram(
        action="load",
        name="imp",
        nodes=[
            {"id": "a", "type": "Ledger", "x": 0, "y": 0},
            {"id": "b", "type": "Processor", "position": {"x": 400, "y": 0}},
            {"id": "c", "type": "???", "x": 0, "y": 0},
        ],
        edges=[
            {"id": "e1", "sourceId": "a", "targetId": "b"},
            {"id": "e2", "source_id": "a", "target_id": "c"},
        ],
    ))
    assert result == {"name": "imp", "nodes": 2, "edges": 1, "dropped_nodes": 1, "dropped_edges": 1}


def test_load_strict_rejects() -> None:
    result = diagram(
        action="load",
        name="imp",
        nodes=[{"id": "a", "type": "Ledger", "x": "zero"}],
        strict=True,
    )
    assert result.startswith("Error:")
    assert "imp" not in _diagrams


def test_diagram_errors() -> None:
    assert diagram(action="bogus").startswith("Error:")
    assert diagram(action="create", name="").startswith("Error:")
    assert diagram(action="create", name="x", frame_width=0).startswith("Error:")


# ===================================================================
# draw
# ===================================================================

def test_add_node_defaults_to_frame_center() -> None:
    diagram(action="create", name="d")
    node = _add("d")
    assert node["position"] == {"x": 550, "y": 330}
    assert node["label"] == "Processor"
    assert node["z_index"] == 11


def test_add_node_numbers_labels_and_avoids_overlap() -> None:
    diagram(action="create", name="d")
    first = _add("d")
    second = _add("d")
    assert second["label"] == "Processor (2)"
    assert second["position"] != first["position"]
    overlaps = json.loads(inspect(action="overlaps", diagram_name="d"))
    assert overlaps["count"] == 0


def test_add_node_gate_forced_rectangle() -> None:
    diagram(action="create", name="d")
    node = _add("d", node_type="gate", shape="diamond", x=0, y=0)
    assert node["type"] == "Compliance Gate"
    assert node["shape"] == "rectangle"


def test_add_node_errors() -> None:
    diagram(action="create", name="d")
    assert draw(action="add_node", diagram_name="d", node_type="Nope").startswith("Error:")
    assert draw(action="add_node", diagram_name="d", node_type="Ledger", x=5).startswith("Error:")
    assert draw(action="add_node", diagram_name="nope", node_type="Ledger").startswith("Error:")


def test_drop_node_under_pointer() -> None:
    diagram(action="create", name="d")
    node = json.loads(draw(action="drop_node", diagram_name="d", node_type="Ledger", screen_x=200, screen_y=100))
    assert node["position"] == {"x": 110, "y": 70}


def test_add_connected_node() -> None:
    diagram(action="create", name="d")
    src = _add("d", x=0, y=0)
    result = json.loads(draw(action="add_connected_node", diagram_name="d", node_id=src["id"], node_type="Ledger"))
    assert result["node"]["position"] == {"x": 250, "y": 0}
    assert result["edge"]["source_id"] == src["id"]
    assert result["edge"]["target_port"] == 3


def test_duplicate_copy_paste() -> None:
    diagram(action="create", name="d")
    a = _add("d", x=0, y=0, label="Bank")
    dup = json.loads(draw(action="duplicate", diagram_name="d", node_id=a["id"]))
    assert dup["label"] == "Bank (Copy)"

    b = _add("d", x=0, y=400)
    draw(action="connect", diagram_name="d", source_id=a["id"], target_id=b["id"])
    assert "Copied 2 node(s) and 1 edge(s)" in draw(action="copy", diagram_name="d", node_ids=[a["id"], b["id"]])
    pasted = json.loads(draw(action="paste", diagram_name="d"))
    assert len(pasted["nodes"]) == 2
    assert len(pasted["edges"]) == 1
    new_ids = {n["id"] for n in pasted["nodes"]}
    assert pasted["edges"][0]["source_id"] in new_ids
    assert json.loads(inspect(action="overlaps", diagram_name="d"))["count"] == 0


def test_paste_empty_clipboard() -> None:
    diagram(action="create", name="d")
    assert "clipboard is empty" in draw(action="paste", diagram_name="d")


def test_connect_picks_best_ports() -> None:
    ids = _chain()
    edge = json.loads(draw(action="connect", diagram_name="d", source_id=ids[0], target_id=ids[2], label="x"))
    assert (edge["source_port"], edge["target_port"]) == (1, 3)
    assert edge["label"] == "x"


def test_connect_errors() -> None:
    ids = _chain()
    assert "not found" in draw(action="connect", diagram_name="d", source_id=ids[0], target_id="ghost")
    assert draw(
        action="connect", diagram_name="d", source_id=ids[0], target_id=ids[0], source_port=1, target_port=1,
    ).startswith("Error:")
    assert draw(
        action="connect", diagram_name="d", source_id=ids[0], target_id=ids[1], source_port=5,
    ).startswith("Error:")


def test_connect_honors_port_roles() -> None:
    diagram(action="create", name="d")
    gate = _add("d", node_type="Compliance Gate", x=0, y=0)["id"]
    proc = _add("d", x=400, y=0)["id"]
    result = draw(
        action="connect", diagram_name="d", source_id=gate, target_id=proc, source_port=3, target_port=1,
    )
    assert result.startswith("Error:")
    assert "cannot start" in result
    result = draw(
        action="connect", diagram_name="d", source_id=proc, target_id=gate, source_port=3, target_port=1,
    )
    assert result.startswith("Error:")
    assert "cannot complete" in result
    edge = json.loads(draw(
        action="connect", diagram_name="d", source_id=gate, target_id=proc, source_port=1, target_port=3,
    ))
    assert (edge["source_port"], edge["target_port"]) == (1, 3)
    assert len(json.loads(diagram(action="get", name="d"))["edges"]) == 1


def test_move_settles() -> None:
    ids = _chain()
    moved = json.loads(draw(action="move", diagram_name="d", node_id=ids[2], x=0, y=0))
    assert moved["position"] != {"x": 0, "y": 0}
    assert json.loads(inspect(action="overlaps", diagram_name="d"))["count"] == 0


def test_delete_cascades() -> None:
    ids = _chain()
    assert "Deleted 1 node(s) and 2 edge(s)" in draw(action="delete", diagram_name="d", node_ids=[ids[1]])


def test_bring_to_front_and_path_type() -> None:
    ids = _chain()
    front = json.loads(draw(action="bring_to_front", diagram_name="d", node_id=ids[0]))
    assert front["z_index"] == 14
    snap = json.loads(diagram(action="get", name="d"))
    edge_ids = [e["id"] for e in snap["edges"]]
    assert "Updated 2 edge(s)" in draw(action="set_path_type", diagram_name="d", edge_ids=edge_ids, path_type="orthogonal")
    paths = json.loads(inspect(action="paths", diagram_name="d"))
    assert {p["path_type"] for p in paths} == {"orthogonal"}


# ===================================================================
# layout
# ===================================================================

def test_auto_layout() -> None:
    ids = _chain()
    result = json.loads(layout(action="auto", diagram_name="d", preset="compact", path_type="straight"))
    assert result["ranks"] == {ids[0]: 0, ids[1]: 1, ids[2]: 2}
    xs = [n["position"]["x"] for n in result["nodes"]]
    assert xs == sorted(xs)
    assert {p["path_type"] for p in result["paths"].values()} == {"straight"}


def test_auto_layout_bad_preset() -> None:
    _chain()
    assert layout(action="auto", diagram_name="d", preset="fancy").startswith("Error:")


def test_ranks() -> None:
    ids = _chain()
    assert json.loads(layout(action="ranks", diagram_name="d")) == {ids[0]: 0, ids[1]: 1, ids[2]: 2}


def test_align_and_distribute() -> None:
    diagram(action="create", name="d")
    a = _add("d", x=0, y=0)["id"]
    b = _add("d", x=300, y=200)["id"]
    c = _add("d", x=1000, y=100)["id"]
    aligned = json.loads(layout(action="align", diagram_name="d", node_ids=[a, b, c], alignment="top"))
    assert {p["y"] for p in aligned.values()} == {0}
    assert layout(action="align", diagram_name="d", node_ids=[a], alignment="top").startswith("Error:")
    spread = json.loads(layout(action="distribute", diagram_name="d", node_ids=[a, b, c], axis="horizontal"))
    assert set(spread) == {a, b, c}
    assert layout(action="distribute", diagram_name="d", node_ids=[a, b], axis="horizontal").startswith("Error:")


def test_clamp_lanes() -> None:
    diagram(action="create", name="d")
    n = _add("d", x=0, y=290)["id"]
    result = json.loads(layout(action="clamp_lanes", diagram_name="d", lane_count=2))
    assert result == {"lane_count": 2, "moved": [n]}


# ===================================================================
# viewport
# ===================================================================

def test_viewport_zoom_and_mapping() -> None:
    diagram(action="create", name="d")
    vp = json.loads(viewport(action="zoom", diagram_name="d", zoom=2, screen_x=100, screen_y=50))
    assert vp == {"pan_x": -100, "pan_y": -50, "zoom": 2}
    world = json.loads(viewport(action="to_world", diagram_name="d", screen_x=100, screen_y=50))
    assert world == {"x": 100, "y": 50}
    screen = json.loads(viewport(action="to_screen", diagram_name="d", world_x=100, world_y=50))
    assert screen == {"x": 100, "y": 50}


def test_viewport_fit_and_center() -> None:
    diagram(action="create", name="d")
    assert "no content" in viewport(action="fit", diagram_name="d")
    _add("d", x=0, y=0)
    fitted = json.loads(viewport(action="fit", diagram_name="d"))
    assert fitted["zoom"] > 1
    centered = json.loads(viewport(action="center", diagram_name="d"))
    assert centered["zoom"] == fitted["zoom"]


def test_viewport_wheel_pan_detail() -> None:
    diagram(action="create", name="d")
    out = json.loads(viewport(action="wheel_zoom", diagram_name="d", delta_y=100))
    assert out["zoom"] < 1
    panned = json.loads(viewport(action="pan", diagram_name="d", delta_x=10, delta_y=-10))
    assert (panned["pan_x"], panned["pan_y"]) == (out["pan_x"] + 10, out["pan_y"] - 10)
    scrolled = json.loads(viewport(action="wheel_scroll", diagram_name="d", delta_x=10, delta_y=0))
    assert scrolled["pan_x"] == panned["pan_x"] - 10
    for _ in range(20):
        viewport(action="wheel_zoom", diagram_name="d", delta_y=100)
    detail = json.loads(viewport(action="detail", diagram_name="d"))
    assert detail["compact_nodes"] is True


def test_viewport_visible_and_resize() -> None:
    diagram(action="create", name="d")
    near = _add("d", x=0, y=0)["id"]
    _add("d", x=9000, y=9000)
    assert json.loads(viewport(action="visible", diagram_name="d")) == [near]
    assert "resized" in viewport(action="resize", diagram_name="d", frame_width=800, frame_height=600)
    assert viewport(action="resize", diagram_name="d", frame_width=0, frame_height=600).startswith("Error:")


# ===================================================================
# gesture
# ===================================================================

def test_drag_gesture_flow() -> None:
    diagram(action="create", name="d")
    a = _add("d", x=0, y=0)["id"]
    b = _add("d", x=400, y=0)["id"]
    state = json.loads(gesture(action="begin_drag", diagram_name="d", node_ids=[b], screen_x=400, screen_y=0))
    assert state["kind"] == "drag"
    gesture(action="move", diagram_name="d", screen_x=10, screen_y=5)
    frame = json.loads(gesture(action="flush", diagram_name="d"))
    assert frame["positions"][b] == {"x": 0, "y": 0}
    released = json.loads(gesture(action="release", diagram_name="d", screen_x=10, screen_y=5))
    positions = {n["id"]: n["position"] for n in released["nodes"]}
    assert positions[a] == {"x": 0, "y": 0}
    assert positions[b] != {"x": 0, "y": 0}
    assert json.loads(gesture(action="state", diagram_name="d")) == {"kind": None}


def test_pan_gesture_updates_viewport() -> None:
    diagram(action="create", name="d")
    gesture(action="begin_pan", diagram_name="d", screen_x=0, screen_y=0)
    gesture(action="move", diagram_name="d", screen_x=30, screen_y=40)
    gesture(action="flush", diagram_name="d")
    info = json.loads(inspect(action="info", diagram_name="d"))
    assert info["viewport"]["pan_x"] == 30
    assert info["viewport"]["pan_y"] == 40


def test_marquee_gesture() -> None:
    diagram(action="create", name="d")
    a = _add("d", x=0, y=0)["id"]
    _add("d", x=600, y=0)
    gesture(action="begin_marquee", diagram_name="d", screen_x=-10, screen_y=-10)
    gesture(action="move", diagram_name="d", screen_x=100, screen_y=100)
    frame = json.loads(gesture(action="flush", diagram_name="d"))
    assert frame["selection"] == [a]


def test_click_connect_gesture() -> None:
    diagram(action="create", name="d")
    a = _add("d", x=0, y=0)["id"]
    b = _add("d", x=400, y=0)["id"]
    armed = json.loads(gesture(action="click_node", diagram_name="d", node_id=a, screen_x=175, screen_y=30))
    assert armed == {"kind": "connect", "node_id": a, "port": 1, "port_drag": False}
    done = json.loads(gesture(action="click_node", diagram_name="d", node_id=b, screen_x=410, screen_y=30, label="pay"))
    assert done["edge"]["source_id"] == a
    assert done["edge"]["target_id"] == b
    assert done["edge"]["label"] == "pay"
    assert done["gesture"] == {"kind": None}


def test_port_drag_gesture() -> None:
    diagram(action="create", name="d")
    a = _add("d", x=0, y=0)["id"]
    b = _add("d", x=400, y=0)["id"]
    state = json.loads(gesture(action="begin_port_drag", diagram_name="d", node_id=a, port=1))
    assert state["port_drag"] is True
    done = json.loads(gesture(action="release", diagram_name="d", drop_node_id=b, drop_port=3))
    assert (done["edge"]["source_port"], done["edge"]["target_port"]) == (1, 3)


def test_gesture_cancel_and_errors() -> None:
    diagram(action="create", name="d")
    a = _add("d", x=0, y=0)["id"]
    gesture(action="click_port", diagram_name="d", node_id=a, port=2)
    assert "cancelled" in gesture(action="cancel", diagram_name="d")
    assert json.loads(gesture(action="state", diagram_name="d")) == {"kind": None}
    assert gesture(action="begin_drag", diagram_name="d").startswith("Error:")
    assert gesture(action="click_port", diagram_name="d", node_id=a, port=9).startswith("Error:")


# ===================================================================
# inspect
# ===================================================================

def test_inspect_nodes_bounds_ports() -> None:
    diagram(action="create", name="d")
    a = _add("d", x=10, y=20)["id"]
    nodes = json.loads(inspect(action="nodes", diagram_name="d"))
    assert nodes[0]["bounds"] == {"x": 10, "y": 20, "width": 180, "height": 60}
    assert json.loads(inspect(action="bounds", diagram_name="d")) == {"x": 10, "y": 20, "width": 180, "height": 60}
    ports = json.loads(inspect(action="ports", diagram_name="d", node_id=a))
    assert ports[a][1] == {"port": 1, "role": "both", "x": 190, "y": 50}


def test_inspect_labels() -> None:
    diagram(action="create", name="d")
    a = _add("d", x=0, y=0)["id"]
    b = _add("d", x=500, y=0)["id"]
    edge = json.loads(draw(action="connect", diagram_name="d", source_id=a, target_id=b, label="settlement"))
    labels = json.loads(inspect(action="labels", diagram_name="d"))
    assert set(labels) == {edge["id"]}
    assert labels[edge["id"]]["height"] == 18


def test_inspect_info_and_errors() -> None:
    _chain()
    info = json.loads(inspect(action="info", diagram_name="d"))
    assert info["nodes"] == 3
    assert info["edges"] == 2
    assert info["lanes"] == [1]
    assert inspect(action="nope", diagram_name="d").startswith("Error:")
    assert inspect(action="nodes", diagram_name="zzz").startswith("Error:")


def test_resources() -> None:
    assert "processor: 'Processor' (180x60)" in node_type_catalog()
    assert "gate: 'Compliance Gate' (132x36)" in node_type_catalog()
    assert "branch:" in layout_preset_catalog()
