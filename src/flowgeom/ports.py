"""
Port selection for connect gestures.

Two gesture shapes resolve to an edge request:

* click-click: the first node click arms a pending port, the second click
  on another node completes it;
* drag-drop: pressing a port arms it, releasing over a port or node body
  completes it.

Every resolver is a pure function of the node snapshot and the pending
state; it returns the next pending state and, when a connection is made,
the request for the caller to commit.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from flowgeom.geometry import (
    node_bounds,
    port_anchor,
    port_roles,
    source_ports,
    target_ports,
)
from flowgeom.models import ALL_PORTS, Node, Point, z_ordered


PORT_HIT_RADIUS = 10


@dataclass(frozen=True)
class PendingConnection:
    node_id: str
    port_idx: int


@dataclass(frozen=True)
class ConnectionRequest:
    source_id: str
    target_id: str
    source_port: int
    target_port: int

    def to_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "source_port": self.source_port,
            "target_port": self.target_port,
        }


@dataclass(frozen=True)
class ConnectResolution:
    pending: Optional[PendingConnection] = None
    request: Optional[ConnectionRequest] = None


@dataclass(frozen=True)
class DropTarget:
    """What lies under the pointer on release: a port, a node body, or nothing."""
    node_id: Optional[str] = None
    port_idx: Optional[int] = None


CANCELLED = ConnectResolution()


# ---------------------------------------------------------------------------
# Port choice
# ---------------------------------------------------------------------------

def closest_port(node: Node, point: Point, candidates: Sequence[int] = ()) -> int:
    """The candidate port whose anchor is nearest *point*.

    An empty candidate set means all four ports.  Ties go to the earlier
    candidate.
    """
    ports = list(candidates) or list(ALL_PORTS)
    best = ports[0]
    best_dist = math.inf
    for idx in ports:
        dist = port_anchor(node, idx).distance_to(point)
        if dist < best_dist:
            best, best_dist = idx, dist
    return best


def best_port_pair(source: Node, target: Node) -> tuple[int, int]:
    """Port pair for an edge created without a gesture.

    The source port faces the target's center and the target port is the
    one closest to that source port.
    """
    target_center = node_bounds(target).center
    src = closest_port(source, target_center, source_ports(source))
    tgt = closest_port(target, port_anchor(source, src), target_ports(target))
    return src, tgt


# ---------------------------------------------------------------------------
# Click-click
# ---------------------------------------------------------------------------

def resolve_node_click(
    nodes_by_id: Mapping[str, Node],
    pending: Optional[PendingConnection],
    node_id: str,
    click_point: Point,
) -> ConnectResolution:
    """Advance the click-click connect flow after a click on *node_id*."""
    clicked = nodes_by_id.get(node_id)
    if clicked is None or clicked.locked:
        return CANCELLED

    if pending is None:
        port = closest_port(clicked, click_point, source_ports(clicked))
        return ConnectResolution(pending=PendingConnection(node_id, port))

    if pending.node_id == node_id:
        return CANCELLED

    source = nodes_by_id.get(pending.node_id)
    if source is None or source.locked:
        return CANCELLED

    anchor = port_anchor(source, pending.port_idx)
    port = closest_port(clicked, anchor, target_ports(clicked))
    return ConnectResolution(
        request=ConnectionRequest(source.id, clicked.id, pending.port_idx, port)
    )


def resolve_port_click(
    nodes_by_id: Mapping[str, Node],
    pending: Optional[PendingConnection],
    node_id: str,
    port_idx: int,
) -> ConnectResolution:
    """Advance the connect flow after a click on a specific port.

    Role rules: only source-capable ports arm a connection, only
    target-capable ports complete one.  Clicking another port on the
    pending node re-arms from that port when it can start a connection.
    """
    node = nodes_by_id.get(node_id)
    if node is None or node.locked:
        return ConnectResolution(pending=pending)
    role = port_roles(node)[port_idx]

    if pending is None:
        if role.can_start:
            return ConnectResolution(pending=PendingConnection(node_id, port_idx))
        return CANCELLED

    source = nodes_by_id.get(pending.node_id)
    if source is None or source.locked:
        return CANCELLED

    if pending.node_id == node_id:
        if role.can_start:
            return ConnectResolution(pending=PendingConnection(node_id, port_idx))
        return CANCELLED

    if role.can_complete:
        return ConnectResolution(
            request=ConnectionRequest(pending.node_id, node_id, pending.port_idx, port_idx)
        )
    if role.can_start:
        return ConnectResolution(pending=PendingConnection(node_id, port_idx))
    return CANCELLED


# ---------------------------------------------------------------------------
# Drag-drop
# ---------------------------------------------------------------------------

def begin_port_drag(node: Optional[Node], port_idx: int) -> Optional[PendingConnection]:
    """Arm the exact pressed port, or None when it cannot start a connection."""
    if node is None or node.locked:
        return None
    if not port_roles(node)[port_idx].can_start:
        return None
    return PendingConnection(node.id, port_idx)


def hit_test(nodes: Sequence[Node], point: Point, port_radius: float = PORT_HIT_RADIUS) -> DropTarget:
    """Topmost port or node body under a world *point*."""
    for node in reversed(z_ordered(nodes)):
        for idx in ALL_PORTS:
            if port_anchor(node, idx).distance_to(point) <= port_radius:
                return DropTarget(node.id, idx)
        if node_bounds(node).contains_point(point.x, point.y):
            return DropTarget(node.id)
    return DropTarget()


def resolve_drop(
    nodes_by_id: Mapping[str, Node],
    pending: PendingConnection,
    drop: DropTarget,
) -> Optional[ConnectionRequest]:
    """Edge request for a port drag released over *drop*, or None to cancel.

    A target-capable port on another unlocked node is used as is.  Failing
    that, a node body picks its target port closest to the pending port's
    anchor.  Empty space, the source node itself and locked nodes cancel.
    """
    source = nodes_by_id.get(pending.node_id)
    if source is None or drop.node_id is None or drop.node_id == pending.node_id:
        return None
    target = nodes_by_id.get(drop.node_id)
    if target is None or target.locked:
        return None

    if drop.port_idx is not None and port_roles(target)[drop.port_idx].can_complete:
        return ConnectionRequest(source.id, target.id, pending.port_idx, drop.port_idx)

    anchor = port_anchor(source, pending.port_idx)
    port = closest_port(target, anchor, target_ports(target))
    return ConnectionRequest(source.id, target.id, pending.port_idx, port)
