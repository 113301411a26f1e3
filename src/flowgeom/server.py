"""
flowgeom MCP Server — flow diagram geometry via Model Context Protocol.

Exposes 6 tools that let an LLM agent build a flow diagram in memory and get
back placement, routing and camera geometry for a presentation layer.

Tools:
  1. diagram  — lifecycle: create, load (sanitized import), list, get, delete
  2. draw     — edits: add/drop/duplicate/paste nodes, connect, move, delete
  3. layout   — positioning: auto layout with presets, ranks, align,
                distribute, swimlane clamp
  4. viewport — camera: fit, center, zoom, wheel, pan, coordinate mapping,
                culling, level of detail
  5. gesture  — pointer gestures: drag, marquee, pan, click/drag connect
  6. inspect  — read-only: nodes, edge paths, labels, overlaps, bounds, ports
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import replace
from typing import Any

from mcp.server.fastmcp import FastMCP

from flowgeom.geometry import (
    effective_size,
    node_bounds,
    overlaps,
    port_anchor,
    port_roles,
    to_screen,
    to_world,
    zoom_about,
    pan_by,
)
from flowgeom.interaction import (
    ConnectGesture,
    DragGesture,
    MarqueeGesture,
    PanGesture,
)
from flowgeom.labels import LabelPlacer
from flowgeom.layout_engine import PRESETS, assign_ranks, layout_graph, preset_config
from flowgeom.models import (
    ALL_PORTS,
    EntityType,
    Node,
    NodeShape,
    Point,
    new_id,
)
from flowgeom.paths import build_all_paths
from flowgeom.placement import (
    DEFAULT_PLACEMENT,
    align_nodes,
    bring_to_front,
    clamp_to_lane,
    distribute_nodes,
    drop_position,
    duplicate_node,
    paste_edges,
    paste_nodes,
    place_connected_node,
    place_new_node,
    settle_drag,
    viewport_center_position,
)
from flowgeom.ports import ConnectionRequest, DropTarget, best_port_pair
from flowgeom.session import DiagramSession
from flowgeom.validation import (
    ValidationError,
    sanitize_graph,
    validate_action,
    validate_alignment,
    validate_axis,
    validate_bool,
    validate_edge_dict,
    validate_entity_type,
    validate_int,
    validate_list,
    validate_node_dict,
    validate_non_empty_string,
    validate_number,
    validate_port,
    validate_positive_number,
    validate_path_type,
    validate_preset,
    validate_shape,
    validate_string,
    _DIAGRAM_ACTIONS,
    _DRAW_ACTIONS,
    _GESTURE_ACTIONS,
    _INSPECT_ACTIONS,
    _LAYOUT_ACTIONS,
    _VIEWPORT_ACTIONS,
)
from flowgeom.viewport import (
    center_on_content,
    content_bounds,
    fit_to_content,
    scroll_by_wheel,
    visible_node_ids,
    zoom_by_wheel,
)

# ---------------------------------------------------------------------------
# Logging — suppress routine FastMCP INFO messages that clients show
# as warnings (they go to stderr).
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("flowgeom")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "flowgeom",
    instructions=(
        "MCP server for flow diagram geometry: node placement without overlap,\n"
        "port selection, edge paths with arrow angles, label placement,\n"
        "layered auto layout and camera operations.\n\n"
        "=== 6 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. diagram(action, ...) — create, load, list, get, delete.\n"
        "2. draw(action, ...) — add_node, drop_node, add_connected_node,\n"
        "   duplicate, copy, paste, connect, move, delete, bring_to_front,\n"
        "   set_path_type.\n"
        "3. layout(action, ...) — auto, ranks, align, distribute, clamp_lanes.\n"
        "4. viewport(action, ...) — fit, center, zoom, wheel_zoom,\n"
        "   wheel_scroll, pan, to_world, to_screen, visible, detail, resize.\n"
        "5. gesture(action, ...) — begin_drag, begin_marquee, begin_pan,\n"
        "   begin_port_drag, click_node, click_port, move, flush, release,\n"
        "   cancel, state.\n"
        "6. inspect(action, ...) — nodes, paths, labels, overlaps, bounds,\n"
        "   ports, info.\n\n"
        "=== RULES ===\n"
        "- Node x, y are WORLD coordinates of the top-left corner.\n"
        "- screen_x, screen_y are pixels inside the viewport frame.\n"
        "- Ports: 0=top, 1=right, 2=bottom, 3=left.\n"
        "- Every edit is placed without overlapping existing nodes.\n"
        "- Paths are returned as point lists plus an SVG 'd' string.\n"
    ),
)

# In-memory diagram registry: name -> DiagramSession
# Guarded by _diagrams_lock for thread-safety.
_diagrams: dict[str, DiagramSession] = {}
_diagrams_lock = threading.Lock()


# ===================================================================
# RESOURCES — reference catalogs for the LLM
# ===================================================================

@mcp.resource("flowgeom://catalog/node-types")
def node_type_catalog() -> str:
    """Return all node types with their default sizes."""
    entries: list[str] = []
    for entity in EntityType:
        sample = Node(id="sample", type=entity, position=Point(0, 0))
        w, h = effective_size(sample)
        entries.append(f"  {entity.name.lower()}: '{entity.value}' ({w:g}x{h:g})")
    return "Available node types:\n" + "\n".join(entries)


@mcp.resource("flowgeom://catalog/layout-presets")
def layout_preset_catalog() -> str:
    """Return the layout presets and their spacing values."""
    entries: list[str] = []
    for name, cfg in PRESETS.items():
        entries.append(
            f"  {name}: x_step={cfg.x_step:g} min_gap={cfg.min_gap:g} "
            f"branch_gap={cfg.branch_gap:g} branch_strength={cfg.branch_strength:g}"
        )
    return "Available layout presets:\n" + "\n".join(entries)


# ===================================================================
# TOOL 1: diagram — lifecycle
# ===================================================================

@mcp.tool()
def diagram(
    action: str,
    name: str = "",
    nodes: list[dict[str, Any]] | None = None,
    edges: list[dict[str, Any]] | None = None,
    frame_width: float = 1280,
    frame_height: float = 720,
    strict: bool = False,
) -> str:
    """Diagram lifecycle management.

    Actions:
      create — Create an empty diagram. Params: name, frame_width, frame_height.
      load   — Create or replace a diagram from raw node/edge dicts. Invalid
               records, duplicate ids and dangling edges are dropped
               (strict=true rejects the whole load instead).
               Params: name, nodes, edges, strict?.
      list   — List all in-memory diagrams.
      get    — Full snapshot (nodes, edges, viewport). Params: name.
      delete — Remove a diagram. Params: name.

    Args:
        action: One of: create, load, list, get, delete.
        name: Diagram name.
        nodes: Raw node dicts for load: {id?, type, x, y | position, shape?,
               width?, height?, label?, z_index?, locked?}.
        edges: Raw edge dicts for load: {id?, source_id, target_id,
               source_port?, target_port?, path_type?, label?}.
        frame_width: Visible frame width in pixels.
        frame_height: Visible frame height in pixels.
        strict: Validate every record before loading.

    Returns:
        Result string or JSON depending on action.
    """
    try:
        action = validate_action(action, "diagram", _DIAGRAM_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "list":
        result = [
            {"name": n, "nodes": len(s.nodes), "edges": len(s.edges)}
            for n, s in _diagrams.items()
        ]
        return json.dumps(result, indent=2)

    try:
        name = validate_non_empty_string(name, "name")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action in ("create", "load"):
        try:
            frame_width = validate_positive_number(frame_width, "frame_width")
            frame_height = validate_positive_number(frame_height, "frame_height")
            if action == "load":
                validate_list(nodes or [], "nodes")
                validate_list(edges or [], "edges")
                if strict:
                    for i, n in enumerate(nodes or []):
                        validate_node_dict(n, i)
                    for i, e in enumerate(edges or []):
                        validate_edge_dict(e, i)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        session = DiagramSession(name=name, frame_width=frame_width, frame_height=frame_height)
        if action == "load":
            session.nodes, session.edges = sanitize_graph(nodes or [], edges or [])
        with _diagrams_lock:
            _diagrams[name] = session
        if action == "create":
            return f"Diagram '{name}' created."
        return json.dumps({
            "name": name,
            "nodes": len(session.nodes),
            "edges": len(session.edges),
            "dropped_nodes": len(nodes or []) - len(session.nodes),
            "dropped_edges": len(edges or []) - len(session.edges),
        })

    session = _diagrams.get(name)
    if not session:
        return f"Error: diagram '{name}' not found."

    if action == "get":
        return json.dumps(session.to_dict(), indent=2)

    elif action == "delete":
        with _diagrams_lock:
            _diagrams.pop(name, None)
        return f"Diagram '{name}' deleted."

    else:
        return f"Error: unknown diagram action '{action}'. Use: create, load, list, get, delete."


# ===================================================================
# TOOL 2: draw — content edits
# ===================================================================

@mcp.tool()
def draw(
    action: str,
    diagram_name: str = "",
    node_type: str = "",
    label: str = "",
    shape: str = "rectangle",
    x: float | None = None,
    y: float | None = None,
    width: float | None = None,
    height: float | None = None,
    node_id: str = "",
    node_ids: list[str] | None = None,
    source_id: str = "",
    target_id: str = "",
    source_port: int | None = None,
    target_port: int | None = None,
    path_type: str = "",
    edge_ids: list[str] | None = None,
    screen_x: float = 0,
    screen_y: float = 0,
    frame_left: float = 0,
    jitter: bool = False,
) -> str:
    """Edit diagram content. Every placed node is moved off existing nodes.

    Actions:
      add_node           — New node. Params: node_type, label?, shape?,
                           width?, height?, x? y? (omit both to place in
                           the center of the visible frame; frame_left,
                           jitter spread repeated placements).
      drop_node          — New node centered on a screen point.
                           Params: node_type, screen_x, screen_y, label?.
      add_connected_node — New node 250 units right of node_id, connected
                           right -> left. Params: node_id, node_type, label?.
      duplicate          — Copy of node_id offset by 20,20. Params: node_id.
      copy               — Put node_ids (and edges among them) on the clipboard.
      paste              — Paste the clipboard, staggered per paste.
      connect            — New edge. Params: source_id, target_id,
                           source_port?, target_port? (best pair when
                           omitted), path_type?, label?.
      move               — Move node_id to x, y (settled off overlaps).
      delete             — Delete node_ids and their edges.
      bring_to_front     — Raise node_id above every other node.
      set_path_type      — Change edge_ids to path_type
                           (straight/bezier/orthogonal).

    Returns:
        JSON of created/changed records or a confirmation message.
    """
    try:
        action = validate_action(action, "draw", _DRAW_ACTIONS)
        validate_non_empty_string(diagram_name, "diagram_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    session = _diagrams.get(diagram_name)
    if not session:
        return f"Error: diagram '{diagram_name}' not found."

    # ----- add_node / drop_node -----
    if action in ("add_node", "drop_node"):
        try:
            entity = validate_entity_type(node_type)
            node_shape = validate_shape(shape)
            validate_string(label, "label")
            if width is not None:
                width = validate_positive_number(width, "width")
            if height is not None:
                height = validate_positive_number(height, "height")
            if action == "drop_node":
                validate_number(screen_x, "screen_x")
                validate_number(screen_y, "screen_y")
            elif x is not None or y is not None:
                validate_number(x, "x")
                validate_number(y, "y")
            else:
                validate_bool(jitter, "jitter")
        except ValidationError as exc:
            return f"Error: {exc.message}"

        node = _new_node(session, entity, node_shape, label, width, height)
        size = effective_size(node)
        if action == "drop_node":
            pos = drop_position(screen_x, screen_y, session.viewport, size)
        elif x is not None and y is not None:
            pos = Point(float(x), float(y))
        else:
            pos = viewport_center_position(
                session.viewport,
                session.frame_width - frame_left,
                session.frame_height,
                size,
                frame_left=frame_left,
                jitter=DEFAULT_PLACEMENT.jitter if jitter else 0,
            )
        placed = place_new_node(node.moved_to(pos.x, pos.y), session.nodes)
        session.add_node(placed)
        return json.dumps(placed.to_dict())

    # ----- add_connected_node -----
    elif action == "add_connected_node":
        try:
            validate_non_empty_string(node_id, "node_id")
            entity = validate_entity_type(node_type)
            validate_string(label, "label")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        source = session.get_node(node_id)
        if source is None:
            return f"Error: node '{node_id}' not found."
        node = _new_node(session, entity, NodeShape.RECTANGLE, label, None, None)
        placed, edge = place_connected_node(source, node, session.nodes)
        session.add_node(placed)
        session.edges.append(replace(edge, path_type=session.default_path_type))
        edge = session.edges[-1]
        return json.dumps({"node": placed.to_dict(), "edge": edge.to_dict()})

    # ----- duplicate -----
    elif action == "duplicate":
        try:
            validate_non_empty_string(node_id, "node_id")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        source = session.get_node(node_id)
        if source is None:
            return f"Error: node '{node_id}' not found."
        copy = duplicate_node(source, session.nodes)
        session.add_node(copy)
        return json.dumps(copy.to_dict())

    # ----- copy -----
    elif action == "copy":
        try:
            ids = validate_list(node_ids or [], "node_ids", min_length=1)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        count = session.copy(ids)
        if not count:
            return "Error: none of the given node_ids exist."
        return f"Copied {count} node(s) and {len(session.clipboard_edges)} edge(s)."

    # ----- paste -----
    elif action == "paste":
        if not session.clipboard_nodes:
            return "Error: clipboard is empty. Use draw(action='copy') first."
        session.paste_count += 1
        pasted, id_map = paste_nodes(session.clipboard_nodes, session.nodes, session.paste_count)
        new_edges = paste_edges(session.clipboard_edges, id_map)
        session.nodes.extend(pasted)
        session.edges.extend(new_edges)
        return json.dumps({
            "nodes": [n.to_dict() for n in pasted],
            "edges": [e.to_dict() for e in new_edges],
        })

    # ----- connect -----
    elif action == "connect":
        try:
            validate_non_empty_string(source_id, "source_id")
            validate_non_empty_string(target_id, "target_id")
            validate_string(label, "label")
            if source_port is not None:
                validate_port(source_port, "source_port")
            if target_port is not None:
                validate_port(target_port, "target_port")
            edge_path = validate_path_type(path_type) if path_type else None
        except ValidationError as exc:
            return f"Error: {exc.message}"
        index = session.node_index()
        source, target = index.get(source_id), index.get(target_id)
        if source is None:
            return f"Error: node '{source_id}' not found."
        if target is None:
            return f"Error: node '{target_id}' not found."
        best_src, best_tgt = best_port_pair(source, target)
        src_port = best_src if source_port is None else source_port
        tgt_port = best_tgt if target_port is None else target_port
        if source_id == target_id and src_port == tgt_port:
            return "Error: a node cannot connect a port to itself; use two different ports."
        if not port_roles(source)[src_port].can_start:
            return f"Error: port {src_port} of '{source_id}' cannot start a connection."
        if not port_roles(target)[tgt_port].can_complete:
            return f"Error: port {tgt_port} of '{target_id}' cannot complete a connection."
        edge = session.connect(
            ConnectionRequest(source_id, target_id, src_port, tgt_port),
            label=label,
            path_type=edge_path,
        )
        return json.dumps(edge.to_dict())

    # ----- move -----
    elif action == "move":
        try:
            validate_non_empty_string(node_id, "node_id")
            validate_number(x, "x")
            validate_number(y, "y")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        node = session.get_node(node_id)
        if node is None:
            return f"Error: node '{node_id}' not found."
        if node.locked:
            return f"Error: node '{node_id}' is locked."
        others = [n for n in session.nodes if n.id != node_id]
        moved = settle_drag(node.moved_to(float(x), float(y)), others)
        session.replace_nodes([moved])
        return json.dumps(moved.to_dict())

    # ----- delete -----
    elif action == "delete":
        try:
            ids = validate_list(node_ids or [], "node_ids", min_length=1)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        removed_nodes, removed_edges = session.delete_nodes(ids)
        return f"Deleted {removed_nodes} node(s) and {removed_edges} edge(s)."

    # ----- bring_to_front -----
    elif action == "bring_to_front":
        try:
            validate_non_empty_string(node_id, "node_id")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        if session.get_node(node_id) is None:
            return f"Error: node '{node_id}' not found."
        session.nodes = bring_to_front(session.nodes, node_id)
        return json.dumps(session.get_node(node_id).to_dict())

    # ----- set_path_type -----
    elif action == "set_path_type":
        try:
            ids = validate_list(edge_ids or [], "edge_ids", min_length=1)
            new_type = validate_path_type(path_type)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        changed = session.set_path_type(ids, new_type)
        return f"Updated {changed} edge(s) to {new_type.value}."

    else:
        return f"Error: unknown draw action '{action}'."


# ===================================================================
# TOOL 3: layout — positioning
# ===================================================================

@mcp.tool()
def layout(
    action: str,
    diagram_name: str = "",
    preset: str = "pipeline",
    path_type: str = "",
    node_ids: list[str] | None = None,
    alignment: str = "center",
    axis: str = "horizontal",
    lane_count: int = 0,
) -> str:
    """Layout and positioning operations.

    Actions:
      auto        — Layered left-to-right layout of the whole diagram,
                    scaled to fit the layout frame. Edges are re-ported
                    right -> left. Params: preset (pipeline/branch/compact),
                    path_type?.
      ranks       — Column (rank) of every node without moving anything.
      align       — Align node_ids (>= 2). Params: alignment
                    (left/center/right/top/middle/bottom).
      distribute  — Evenly space node_ids (>= 3). Params: axis
                    (horizontal/vertical).
      clamp_lanes — Keep node_ids (default all) inside their swimlane.
                    Params: lane_count (default: lanes in use).

    Returns:
        JSON results.
    """
    try:
        action = validate_action(action, "layout", _LAYOUT_ACTIONS)
        validate_non_empty_string(diagram_name, "diagram_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    session = _diagrams.get(diagram_name)
    if not session:
        return f"Error: diagram '{diagram_name}' not found."

    # ----- auto -----
    if action == "auto":
        try:
            cfg = preset_config(validate_preset(preset))
            if path_type:
                cfg.path_type = validate_path_type(path_type)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        result = layout_graph(session.nodes, session.edges, cfg)
        session.replace_nodes(result.nodes)
        session.edges = result.edges
        logger.info("Laid out '%s': %d nodes at scale %.3f", diagram_name, len(result.nodes), result.scale)
        return json.dumps(result.to_dict(), indent=2)

    # ----- ranks -----
    elif action == "ranks":
        ids = [n.id for n in session.nodes]
        ranks = assign_ranks(ids, [(e.source_id, e.target_id) for e in session.edges])
        return json.dumps(ranks)

    # ----- align / distribute -----
    elif action in ("align", "distribute"):
        try:
            ids = validate_list(node_ids or [], "node_ids", min_length=2 if action == "align" else 3)
            if action == "align":
                mode = validate_alignment(alignment)
            else:
                mode = validate_axis(axis)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        if action == "align":
            updated = align_nodes(session.nodes, ids, mode)
        else:
            updated = distribute_nodes(session.nodes, ids, mode)
        session.nodes = updated
        wanted = set(ids)
        return json.dumps({n.id: n.position.to_dict() for n in updated if n.id in wanted})

    # ----- clamp_lanes -----
    elif action == "clamp_lanes":
        try:
            lanes = validate_int(lane_count, "lane_count", min_val=0)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        lanes = lanes or session.lane_count()
        wanted = set(node_ids) if node_ids else None
        clamped = [
            clamp_to_lane(n, lanes) if wanted is None or n.id in wanted else n
            for n in session.nodes
        ]
        moved = [c.id for c, n in zip(clamped, session.nodes) if c.position != n.position]
        session.nodes = clamped
        return json.dumps({"lane_count": lanes, "moved": moved})

    else:
        return f"Error: unknown layout action '{action}'."


# ===================================================================
# TOOL 4: viewport — camera
# ===================================================================

@mcp.tool()
def viewport(
    action: str,
    diagram_name: str = "",
    screen_x: float = 0,
    screen_y: float = 0,
    world_x: float = 0,
    world_y: float = 0,
    zoom: float = 1.0,
    delta_x: float = 0,
    delta_y: float = 0,
    frame_width: float = 0,
    frame_height: float = 0,
) -> str:
    """Camera operations. Screen = world * zoom + pan.

    Actions:
      fit          — Zoom and pan so all content fits the frame.
      center       — Center content, keeping the zoom.
      zoom         — Set zoom about screen_x, screen_y.
      wheel_zoom   — One wheel step about screen_x, screen_y; delta_y > 0
                     zooms out.
      wheel_scroll — Scroll by delta_x, delta_y.
      pan          — Move the camera by delta_x, delta_y pixels.
      to_world     — Map screen_x, screen_y to world coordinates.
      to_screen    — Map world_x, world_y to screen coordinates.
      visible      — Ids of nodes in (or near) the visible frame.
      detail       — Level-of-detail flags for the current zoom.
      resize       — Set frame_width, frame_height.

    Returns:
        JSON results.
    """
    try:
        action = validate_action(action, "viewport", _VIEWPORT_ACTIONS)
        validate_non_empty_string(diagram_name, "diagram_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    session = _diagrams.get(diagram_name)
    if not session:
        return f"Error: diagram '{diagram_name}' not found."
    vp = session.viewport

    if action in ("fit", "center"):
        if action == "fit":
            new_vp = fit_to_content(session.nodes, session.frame_width, session.frame_height)
        else:
            new_vp = center_on_content(session.nodes, vp, session.frame_width, session.frame_height)
        if new_vp is None:
            return "Diagram has no content; viewport unchanged."
        session.set_viewport(new_vp)
        return json.dumps(new_vp.to_dict())

    elif action in ("zoom", "wheel_zoom"):
        try:
            validate_number(screen_x, "screen_x")
            validate_number(screen_y, "screen_y")
            if action == "zoom":
                validate_positive_number(zoom, "zoom")
            else:
                validate_number(delta_y, "delta_y")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        if action == "zoom":
            new_vp = zoom_about(vp, zoom, screen_x, screen_y)
        else:
            new_vp = zoom_by_wheel(vp, delta_y, screen_x, screen_y)
        session.set_viewport(new_vp)
        return json.dumps(new_vp.to_dict())

    elif action in ("wheel_scroll", "pan"):
        try:
            validate_number(delta_x, "delta_x")
            validate_number(delta_y, "delta_y")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        if action == "pan":
            new_vp = pan_by(vp, delta_x, delta_y)
        else:
            new_vp = scroll_by_wheel(vp, delta_x, delta_y)
        session.set_viewport(new_vp)
        return json.dumps(new_vp.to_dict())

    elif action == "to_world":
        try:
            validate_number(screen_x, "screen_x")
            validate_number(screen_y, "screen_y")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        return json.dumps(to_world(screen_x, screen_y, vp).to_dict())

    elif action == "to_screen":
        try:
            validate_number(world_x, "world_x")
            validate_number(world_y, "world_y")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        return json.dumps(to_screen(world_x, world_y, vp).to_dict())

    elif action == "visible":
        pending = session.interaction.pending_connection
        keep = [pending.node_id] if pending else []
        ids = visible_node_ids(session.nodes, vp, session.frame_width, session.frame_height, keep)
        return json.dumps(sorted(ids))

    elif action == "detail":
        return json.dumps(session.detail.to_dict())

    elif action == "resize":
        try:
            session.frame_width = validate_positive_number(frame_width, "frame_width")
            session.frame_height = validate_positive_number(frame_height, "frame_height")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        return f"Frame resized to {session.frame_width:g}x{session.frame_height:g}."

    else:
        return f"Error: unknown viewport action '{action}'."


# ===================================================================
# TOOL 5: gesture — pointer interaction
# ===================================================================

@mcp.tool()
def gesture(
    action: str,
    diagram_name: str = "",
    screen_x: float = 0,
    screen_y: float = 0,
    node_id: str = "",
    node_ids: list[str] | None = None,
    port: int = -1,
    alt: bool = False,
    base_selection: list[str] | None = None,
    drop_node_id: str = "",
    drop_port: int = -1,
    lane_count: int = 0,
    label: str = "",
) -> str:
    """Pointer gestures. Only one gesture is active at a time; starting one
    cancels the previous. Moves are coalesced until the next flush.

    Actions:
      begin_drag      — Start dragging node_ids (first id snaps to grid).
      begin_marquee   — Start a selection rectangle at screen_x, screen_y.
                        Params: base_selection? (kept selected).
      begin_pan       — Start panning at screen_x, screen_y.
      begin_port_drag — Press on port of node_id to drag a connection.
      click_node      — Click-click connect on node_id at screen_x, screen_y.
      click_port      — Click on port of node_id.
      move            — Pointer moved to screen_x, screen_y (alt disables snap).
      flush           — Apply the latest move (one animation frame).
      release         — Pointer up at screen_x, screen_y. Params:
                        drop_node_id?, drop_port?, lane_count?, label?.
      cancel          — Escape: drop the active gesture.
      state           — Current gesture.

    Returns:
        JSON results.
    """
    try:
        action = validate_action(action, "gesture", _GESTURE_ACTIONS)
        validate_non_empty_string(diagram_name, "diagram_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    session = _diagrams.get(diagram_name)
    if not session:
        return f"Error: diagram '{diagram_name}' not found."
    ix = session.interaction

    if action in ("begin_drag", "begin_marquee", "begin_pan", "move", "click_node", "release"):
        try:
            validate_number(screen_x, "screen_x")
            validate_number(screen_y, "screen_y")
        except ValidationError as exc:
            return f"Error: {exc.message}"

    if action == "begin_drag":
        ids = list(node_ids or ([node_id] if node_id else []))
        if not ids:
            return "Error: 'node_ids' must name at least one node."
        if not ix.begin_drag(session.nodes, ids, screen_x, screen_y):
            return "Error: no draggable nodes among node_ids."
        return json.dumps(_gesture_state(session))

    elif action == "begin_marquee":
        ix.begin_marquee(screen_x, screen_y, base_selection or [])
        return json.dumps(_gesture_state(session))

    elif action == "begin_pan":
        ix.begin_pan(screen_x, screen_y)
        return json.dumps(_gesture_state(session))

    elif action in ("begin_port_drag", "click_port"):
        try:
            validate_non_empty_string(node_id, "node_id")
            validate_port(port, "port")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        if session.get_node(node_id) is None:
            return f"Error: node '{node_id}' not found."
        if action == "begin_port_drag":
            if not ix.begin_port_drag(session.nodes, node_id, port):
                return f"Error: port {port} of '{node_id}' cannot start a connection."
            return json.dumps(_gesture_state(session))
        resolution = ix.click_port(session.nodes, node_id, port)
        return _connect_result(session, resolution.request, label)

    elif action == "click_node":
        try:
            validate_non_empty_string(node_id, "node_id")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        resolution = ix.click_node(session.nodes, node_id, screen_x, screen_y)
        return _connect_result(session, resolution.request, label)

    elif action == "move":
        ix.pointer_move(screen_x, screen_y, alt=bool(alt))
        return "Pointer sample queued."

    elif action == "flush":
        update = ix.flush_frame(session.nodes)
        if update.positions:
            index = session.node_index()
            session.replace_nodes(
                index[i].moved_to(p.x, p.y) for i, p in update.positions.items() if i in index
            )
        if update.viewport is not None:
            session.set_viewport(update.viewport)
        return json.dumps(update.to_dict())

    elif action == "release":
        drop = None
        if drop_node_id:
            drop = DropTarget(drop_node_id, drop_port if 0 <= drop_port <= 3 else None)
        was_drag = isinstance(ix.gesture, DragGesture)
        result = ix.release(
            session.nodes,
            screen_x,
            screen_y,
            drop=drop,
            lane_count=lane_count if lane_count > 0 else None,
        )
        if result.nodes is not None:
            session.nodes = result.nodes
        if result.request is not None:
            return _connect_result(session, result.request, label)
        if was_drag:
            return json.dumps({"nodes": [n.to_dict() for n in session.nodes]})
        return json.dumps(_gesture_state(session))

    elif action == "cancel":
        ix.cancel()
        return "Gesture cancelled."

    elif action == "state":
        return json.dumps(_gesture_state(session))

    else:
        return f"Error: unknown gesture action '{action}'."


# ===================================================================
# TOOL 6: inspect — read-only
# ===================================================================

@mcp.tool()
def inspect(
    action: str,
    diagram_name: str = "",
    margin: float = 16,
    node_id: str = "",
    font_size: float = 12,
) -> str:
    """Read-only inspection of diagrams.

    Actions:
      nodes    — All nodes with positions, sizes and lanes.
      paths    — Routed path of every edge (points, angles, label anchor).
      labels   — Label boxes for labelled edges, placed clear of nodes.
      overlaps — Pairs of nodes closer than margin.
      bounds   — Bounding box of all content.
      ports    — Port anchors and roles. Params: node_id? (default all).
      info     — Counts, lanes and viewport.

    Returns:
        JSON data.
    """
    try:
        action = validate_action(action, "inspect", _INSPECT_ACTIONS)
        validate_non_empty_string(diagram_name, "diagram_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    session = _diagrams.get(diagram_name)
    if not session:
        return f"Error: diagram '{diagram_name}' not found."

    if action == "nodes":
        entries = []
        for n in session.nodes:
            d = n.to_dict()
            d["bounds"] = node_bounds(n).to_dict()
            entries.append(d)
        return json.dumps(entries, indent=2)

    elif action == "paths":
        paths = build_all_paths(session.nodes, session.edges)
        return json.dumps([p.to_dict() for p in paths.values()], indent=2)

    elif action == "labels":
        try:
            validate_positive_number(font_size, "font_size")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        paths = build_all_paths(session.nodes, session.edges)
        placer = LabelPlacer([node_bounds(n) for n in session.nodes])
        result: dict[str, Any] = {}
        for edge in session.edges:
            path = paths.get(edge.id)
            if path is None or not edge.label:
                continue
            result[edge.id] = placer.place_text(path.label_anchor, edge.label, font_size).to_dict()
        return json.dumps(result, indent=2)

    elif action == "overlaps":
        try:
            margin = validate_number(margin, "margin", min_val=0)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        boxes = [(n.id, node_bounds(n)) for n in session.nodes]
        pairs = [
            [a_id, b_id]
            for i, (a_id, a) in enumerate(boxes)
            for b_id, b in boxes[i + 1:]
            if overlaps(a, b, margin)
        ]
        return json.dumps({"count": len(pairs), "pairs": pairs})

    elif action == "bounds":
        bounds = content_bounds(session.nodes)
        return json.dumps(bounds.to_dict() if bounds else None)

    elif action == "ports":
        targets = session.nodes
        if node_id:
            node = session.get_node(node_id)
            if node is None:
                return f"Error: node '{node_id}' not found."
            targets = [node]
        result = {}
        for n in targets:
            roles = port_roles(n)
            result[n.id] = [
                {"port": idx, "role": roles[idx].value, **port_anchor(n, idx).to_dict()}
                for idx in ALL_PORTS
            ]
        return json.dumps(result, indent=2)

    elif action == "info":
        return json.dumps({
            "name": session.name,
            "nodes": len(session.nodes),
            "edges": len(session.edges),
            "lanes": sorted({n.lane for n in session.nodes}),
            "viewport": session.viewport.to_dict(),
            "detail": session.detail.to_dict(),
            "gesture": _gesture_state(session),
        }, indent=2)

    else:
        return f"Error: unknown inspect action '{action}'."


# ===================================================================
# Helpers
# ===================================================================

def _new_node(
    session: DiagramSession,
    entity: EntityType,
    shape: NodeShape,
    label: str,
    width: float | None,
    height: float | None,
) -> Node:
    """Unplaced node with a unique default label ('Processor (2)')."""
    if not label:
        same = sum(1 for n in session.nodes if n.label.startswith(entity.value))
        label = f"{entity.value} ({same + 1})" if same else entity.value
    if entity is EntityType.GATE:
        shape = NodeShape.RECTANGLE
    return Node(
        id=new_id("node"),
        type=entity,
        position=Point(0, 0),
        shape=shape,
        width=width,
        height=height,
        label=label,
    )


def _connect_result(session: DiagramSession, request: ConnectionRequest | None, label: str) -> str:
    if request is None:
        return json.dumps(_gesture_state(session))
    edge = session.connect(request, label=label)
    return json.dumps({"edge": edge.to_dict(), "gesture": _gesture_state(session)})


def _gesture_state(session: DiagramSession) -> dict[str, Any]:
    g = session.interaction.gesture
    if g is None:
        return {"kind": None}
    if isinstance(g, DragGesture):
        return {"kind": "drag", "node_ids": list(g.node_ids)}
    if isinstance(g, MarqueeGesture):
        return {"kind": "marquee", "rect": g.rect.to_dict(), "base_selection": list(g.base_selection)}
    if isinstance(g, PanGesture):
        return {"kind": "pan"}
    if isinstance(g, ConnectGesture):
        return {
            "kind": "connect",
            "node_id": g.pending.node_id,
            "port": g.pending.port_idx,
            "port_drag": g.port_drag,
        }
    return {"kind": type(g).__name__}


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
