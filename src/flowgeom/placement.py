"""
Collision-avoiding node placement.

:func:`resolve_position` is the bounded search every interactive edit goes
through before a position is committed: creation, paste, duplicate, drag
release and the settling pass after align/distribute.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Optional, Sequence

from flowgeom.geometry import effective_size, node_bounds, overlaps, to_world
from flowgeom.models import (
    DEFAULT_Z_INDEX,
    LANE_HEIGHT,
    Edge,
    Node,
    Point,
    Port,
    Viewport,
    clamp,
    lane_index,
    new_id,
    next_z_index,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class PlacementConfig:
    """Tuning for the placement search and the edits built on it."""
    padding: float = 16             # Overlap padding between node boxes
    gap: float = 20                 # Horizontal gap after a colliding node
    row_step: float = 28            # Vertical step when a row is abandoned
    max_attempts: int = 80          # Hard bound on the search
    paste_stagger: float = 32       # Offset added per paste operation
    duplicate_offset: float = 20    # Offset of a duplicated node
    connected_offset: float = 250   # Distance of an add-connected node
    jitter: float = 20              # Random spread of sidebar placement
    lane_top_margin: float = 20     # Swimlane clamp, from the lane top
    lane_bottom_margin: float = 84  # Swimlane clamp, from the lane bottom


DEFAULT_PLACEMENT = PlacementConfig()

ALIGN_MODES = ("left", "center", "right", "top", "middle", "bottom")
DISTRIBUTE_AXES = ("horizontal", "vertical")


# ---------------------------------------------------------------------------
# Core search
# ---------------------------------------------------------------------------

def resolve_position(
    candidate: Node,
    existing: Iterable[Node],
    config: PlacementConfig = DEFAULT_PLACEMENT,
) -> Point:
    """Nearby position where *candidate* overlaps none of *existing*.

    Each collision moves the candidate just past the colliding node's right
    edge on the same row; every fourth attempt returns to the original x one
    row lower.  The search never fails: once the attempts are spent the last
    computed position is returned.
    """
    others = [n for n in existing if n.id != candidate.id]
    width, height = effective_size(candidate)
    origin = candidate.position
    x, y = origin.x, origin.y

    for attempt in range(config.max_attempts):
        box = node_bounds(candidate.moved_to(x, y))
        collision = next(
            (o for o in others if overlaps(box, node_bounds(o), config.padding)),
            None,
        )
        if collision is None:
            return Point(x, y)

        other_w, _ = effective_size(collision)
        x = collision.position.x + other_w + config.gap
        if attempt % 4 == 3:
            x = origin.x
            y = y + config.row_step

    logger.debug(
        "Placement search exhausted for %s (%sx%s); keeping (%s, %s)",
        candidate.id, width, height, x, y,
    )
    return Point(x, y)


def settle(node: Node, existing: Iterable[Node], config: PlacementConfig = DEFAULT_PLACEMENT) -> Node:
    """*node* moved to its resolved position (lane recomputed)."""
    resolved = resolve_position(node, existing, config)
    return node.moved_to(resolved.x, resolved.y)


# ---------------------------------------------------------------------------
# Initial positions
# ---------------------------------------------------------------------------

def viewport_center_position(
    viewport: Viewport,
    frame_width: float,
    frame_height: float,
    size: tuple[float, float] = (180, 60),
    *,
    frame_left: float = 0,
    jitter: float = 0,
    rng: Optional[random.Random] = None,
) -> Point:
    """Top-left for a node centered in the visible frame.

    *frame_left* is the screen x where the usable frame begins (e.g. next to
    an open side panel).  A non-zero *jitter* spreads successive nodes by up
    to +/- jitter units so repeated clicks do not stack exactly.
    """
    center = to_world(frame_left + frame_width / 2, frame_height / 2, viewport)
    x = center.x - size[0] / 2
    y = center.y - size[1] / 2
    if jitter:
        rng = rng or random.Random()
        x += rng.uniform(-jitter, jitter)
        y += rng.uniform(-jitter, jitter)
    return Point(x, y)


def drop_position(
    screen_x: float,
    screen_y: float,
    viewport: Viewport,
    size: tuple[float, float] = (180, 60),
) -> Point:
    """Top-left for a node dropped with its center under the pointer."""
    world = to_world(screen_x, screen_y, viewport)
    return Point(world.x - size[0] / 2, world.y - size[1] / 2)


# ---------------------------------------------------------------------------
# Node creation
# ---------------------------------------------------------------------------

def place_new_node(node: Node, existing: Sequence[Node], config: PlacementConfig = DEFAULT_PLACEMENT) -> Node:
    """Put a freshly created node on top of the stack at a free spot."""
    stacked = node.with_z(next_z_index(existing))
    return settle(stacked, existing, config)


def place_connected_node(
    source: Node,
    node: Node,
    existing: Sequence[Node],
    edge_id: Optional[str] = None,
    config: PlacementConfig = DEFAULT_PLACEMENT,
) -> tuple[Node, Edge]:
    """Place *node* to the right of *source* and connect them right -> left."""
    candidate = replace(
        node,
        position=Point(source.position.x + config.connected_offset, source.position.y),
        z_index=next_z_index(existing),
    )
    placed = settle(candidate, existing, config)
    edge = Edge(
        id=edge_id or new_id("edge"),
        source_id=source.id,
        target_id=placed.id,
        source_port=Port.RIGHT,
        target_port=Port.LEFT,
    )
    return placed, edge


def duplicate_node(
    source: Node,
    existing: Sequence[Node],
    new_node_id: Optional[str] = None,
    config: PlacementConfig = DEFAULT_PLACEMENT,
) -> Node:
    off = config.duplicate_offset
    label = f"{source.label} (Copy)" if source.label else source.label
    candidate = replace(
        source,
        id=new_node_id or new_id("node"),
        label=label,
        position=source.position.offset(off, off),
        z_index=next_z_index(existing),
    )
    return settle(candidate, existing, config)


def paste_nodes(
    clipboard: Sequence[Node],
    existing: Sequence[Node],
    paste_count: int,
    id_factory: Callable[[], str] = lambda: new_id("node"),
    config: PlacementConfig = DEFAULT_PLACEMENT,
) -> tuple[list[Node], dict[str, str]]:
    """Paste *clipboard* nodes staggered by the paste count.

    Each pasted node is resolved against the existing nodes plus the ones
    pasted before it.  Returns the new nodes and the old -> new id map.
    """
    offset = config.paste_stagger * paste_count
    id_map: dict[str, str] = {}
    pasted: list[Node] = []
    for raw in clipboard:
        new_node_id = id_factory()
        id_map[raw.id] = new_node_id
        candidate = replace(
            raw,
            id=new_node_id,
            position=raw.position.offset(offset, offset),
            z_index=(raw.z_index or DEFAULT_Z_INDEX) + 1,
        )
        pasted.append(settle(candidate, [*existing, *pasted], config))
    return pasted, id_map


def paste_edges(
    clipboard: Sequence[Edge],
    id_map: dict[str, str],
    id_factory: Callable[[], str] = lambda: new_id("edge"),
) -> list[Edge]:
    """Remap clipboard edges onto pasted ids; edges leaving the paste are dropped."""
    edges: list[Edge] = []
    for raw in clipboard:
        source = id_map.get(raw.source_id)
        target = id_map.get(raw.target_id)
        if source is None or target is None:
            continue
        edges.append(replace(raw, id=id_factory(), source_id=source, target_id=target))
    return edges


def bring_to_front(nodes: Sequence[Node], node_id: str) -> list[Node]:
    top = next_z_index(nodes)
    return [n.with_z(top) if n.id == node_id else n for n in nodes]


# ---------------------------------------------------------------------------
# Moves
# ---------------------------------------------------------------------------

def settle_drag(node: Node, others: Iterable[Node], config: PlacementConfig = DEFAULT_PLACEMENT) -> Node:
    """Drag release: nudge the dropped node off anything it landed on."""
    return settle(node, others, config)


def settle_positions(
    nodes: Sequence[Node],
    targets: dict[str, Point],
    config: PlacementConfig = DEFAULT_PLACEMENT,
) -> list[Node]:
    """Commit *targets* without creating overlaps.

    Stationary nodes are placed first; moved nodes then follow in their
    original order, each resolved against everything placed before it.
    The returned list keeps the input order.
    """
    if not targets:
        return list(nodes)
    placed = [n for n in nodes if n.id not in targets]
    resolved: dict[str, Node] = {}
    for node in nodes:
        if node.id not in targets:
            continue
        target = targets[node.id]
        settled = settle(node.moved_to(target.x, target.y), placed, config)
        resolved[node.id] = settled
        placed.append(settled)
    return [resolved.get(n.id, n) for n in nodes]


def _selected(nodes: Sequence[Node], ids: Iterable[str]) -> list[Node]:
    wanted = set(ids)
    return [n for n in nodes if n.id in wanted]


def align_targets(selection: Sequence[Node], mode: str) -> dict[str, Point]:
    """Target positions aligning *selection* on one edge or center line."""
    boxes = [(n.id, node_bounds(n)) for n in selection]
    targets: dict[str, Point] = {}
    if mode == "left":
        x = min(b.x for _, b in boxes)
        targets = {i: Point(x, b.y) for i, b in boxes}
    elif mode == "center":
        cx = sum(b.cx for _, b in boxes) / len(boxes)
        targets = {i: Point(cx - b.width / 2, b.y) for i, b in boxes}
    elif mode == "right":
        right = max(b.right for _, b in boxes)
        targets = {i: Point(right - b.width, b.y) for i, b in boxes}
    elif mode == "top":
        y = min(b.y for _, b in boxes)
        targets = {i: Point(b.x, y) for i, b in boxes}
    elif mode == "middle":
        cy = sum(b.cy for _, b in boxes) / len(boxes)
        targets = {i: Point(b.x, cy - b.height / 2) for i, b in boxes}
    elif mode == "bottom":
        bottom = max(b.bottom for _, b in boxes)
        targets = {i: Point(b.x, bottom - b.height) for i, b in boxes}
    else:
        raise ValueError(f"unknown align mode '{mode}'")
    return targets


def align_nodes(
    nodes: Sequence[Node],
    ids: Iterable[str],
    mode: str,
    config: PlacementConfig = DEFAULT_PLACEMENT,
) -> list[Node]:
    """Align the selected nodes; fewer than two selected is a no-op."""
    selection = _selected(nodes, ids)
    if len(selection) < 2:
        return list(nodes)
    return settle_positions(nodes, align_targets(selection, mode), config)


def distribute_targets(selection: Sequence[Node], axis: str) -> dict[str, Point]:
    """Evenly spaced centers between the two outermost nodes along *axis*."""
    if axis not in DISTRIBUTE_AXES:
        raise ValueError(f"unknown distribute axis '{axis}'")
    horizontal = axis == "horizontal"
    boxes = sorted(
        ((n.id, node_bounds(n)) for n in selection),
        key=lambda item: item[1].cx if horizontal else item[1].cy,
    )
    first = boxes[0][1].cx if horizontal else boxes[0][1].cy
    last = boxes[-1][1].cx if horizontal else boxes[-1][1].cy
    step = (last - first) / (len(boxes) - 1)

    targets: dict[str, Point] = {}
    for index, (node_id, box) in enumerate(boxes):
        if index in (0, len(boxes) - 1):
            targets[node_id] = Point(box.x, box.y)
        elif horizontal:
            targets[node_id] = Point(first + step * index - box.width / 2, box.y)
        else:
            targets[node_id] = Point(box.x, first + step * index - box.height / 2)
    return targets


def distribute_nodes(
    nodes: Sequence[Node],
    ids: Iterable[str],
    axis: str,
    config: PlacementConfig = DEFAULT_PLACEMENT,
) -> list[Node]:
    """Distribute the selected nodes; fewer than three selected is a no-op."""
    selection = _selected(nodes, ids)
    if len(selection) < 3:
        return list(nodes)
    return settle_positions(nodes, distribute_targets(selection, axis), config)


def clamp_to_lane(node: Node, lane_count: int, config: PlacementConfig = DEFAULT_PLACEMENT) -> Node:
    """Keep a released node inside the swimlane it was dropped in."""
    if node.is_auxiliary:
        return node
    lanes = max(1, lane_count)
    index = int(clamp(lane_index(node.position.y) - 1, 0, lanes - 1))
    top = index * LANE_HEIGHT + config.lane_top_margin
    bottom = (index + 1) * LANE_HEIGHT - config.lane_bottom_margin
    y = clamp(node.position.y, top, bottom)
    if abs(y - node.position.y) <= 0.1:
        return node
    return node.moved_to(node.position.x, y)
