"""
Coordinate mapping and per-node geometry.

Screen <-> world conversion under a pan/zoom viewport, effective node
dimensions, padded overlap testing, and port anchor positions.
"""

from __future__ import annotations

import math

from flowgeom.models import (
    ALL_PORTS,
    MAX_ZOOM,
    MIN_ZOOM,
    BoundingBox,
    EntityType,
    Node,
    NodeShape,
    Point,
    Port,
    PortRole,
    Viewport,
    clamp,
)


OVERLAP_PADDING = 16

# Default sizes (width, height) when a node carries no explicit dimensions.
DEFAULT_SIZE = (180.0, 60.0)
GATE_SIZE = (132.0, 36.0)
SHAPE_SIZES: dict[NodeShape, tuple[float, float]] = {
    NodeShape.CIRCLE: (80.0, 80.0),
    NodeShape.DIAMOND: (100.0, 100.0),
}

# Outward unit normal per port index.
PORT_NORMALS: dict[int, tuple[float, float]] = {
    Port.TOP: (0.0, -1.0),
    Port.RIGHT: (1.0, 0.0),
    Port.BOTTOM: (0.0, 1.0),
    Port.LEFT: (-1.0, 0.0),
}

# Compact control chips only emit on the right and accept on the left.
_GATE_ROLES: dict[int, PortRole] = {
    Port.TOP: PortRole.BOTH,
    Port.RIGHT: PortRole.SOURCE,
    Port.BOTTOM: PortRole.BOTH,
    Port.LEFT: PortRole.TARGET,
}


# ---------------------------------------------------------------------------
# Coordinate space
# ---------------------------------------------------------------------------

def to_world(screen_x: float, screen_y: float, viewport: Viewport) -> Point:
    return Point(
        (screen_x - viewport.pan_x) / viewport.zoom,
        (screen_y - viewport.pan_y) / viewport.zoom,
    )


def to_screen(world_x: float, world_y: float, viewport: Viewport) -> Point:
    return Point(
        world_x * viewport.zoom + viewport.pan_x,
        world_y * viewport.zoom + viewport.pan_y,
    )


def zoom_about(viewport: Viewport, new_zoom: float, anchor_x: float, anchor_y: float) -> Viewport:
    """Change zoom while the world point under the screen anchor stays put."""
    zoom = clamp(new_zoom, MIN_ZOOM, MAX_ZOOM)
    world = to_world(anchor_x, anchor_y, viewport)
    return Viewport(
        pan_x=anchor_x - world.x * zoom,
        pan_y=anchor_y - world.y * zoom,
        zoom=zoom,
    )


def pan_by(viewport: Viewport, dx: float, dy: float) -> Viewport:
    return Viewport(viewport.pan_x + dx, viewport.pan_y + dy, viewport.zoom)


# ---------------------------------------------------------------------------
# Node geometry
# ---------------------------------------------------------------------------

def is_control_chip(node: Node) -> bool:
    return node.type is EntityType.GATE


def effective_size(node: Node) -> tuple[float, float]:
    """Explicit dimensions when set, else the type/shape default."""
    if is_control_chip(node):
        default_w, default_h = GATE_SIZE
    else:
        default_w, default_h = SHAPE_SIZES.get(node.shape, DEFAULT_SIZE)
    width = node.width if node.width is not None else default_w
    height = node.height if node.height is not None else default_h
    return width, height


def node_bounds(node: Node) -> BoundingBox:
    width, height = effective_size(node)
    return BoundingBox(node.position.x, node.position.y, width, height)


def overlaps(box_a: BoundingBox, box_b: BoundingBox, padding: float = OVERLAP_PADDING) -> bool:
    """Padded separating-axis test."""
    return box_a.intersects(box_b, margin=padding)


def uses_corner_ports(node: Node) -> bool:
    return node.shape is NodeShape.DIAMOND and not is_control_chip(node)


def port_anchor(node: Node, port_idx: int) -> Point:
    """World position of a port.

    Ports sit at edge midpoints.  Diamonds use the bounding-box corners
    clockwise from top-left instead, except for control chips.
    """
    box = node_bounds(node)
    if uses_corner_ports(node):
        corners = (
            Point(box.x, box.y),
            Point(box.right, box.y),
            Point(box.right, box.bottom),
            Point(box.x, box.bottom),
        )
        return corners[port_idx]
    midpoints = (
        Point(box.cx, box.y),
        Point(box.right, box.cy),
        Point(box.cx, box.bottom),
        Point(box.x, box.cy),
    )
    return midpoints[port_idx]


def port_normal(port_idx: int) -> tuple[float, float]:
    return PORT_NORMALS[port_idx]


def port_axis(port_idx: int) -> str:
    return "horizontal" if port_idx in (Port.LEFT, Port.RIGHT) else "vertical"


def port_roles(node: Node) -> dict[int, PortRole]:
    if is_control_chip(node):
        return dict(_GATE_ROLES)
    return {idx: PortRole.BOTH for idx in ALL_PORTS}


def source_ports(node: Node) -> list[int]:
    return [idx for idx, role in port_roles(node).items() if role.can_start]


def target_ports(node: Node) -> list[int]:
    return [idx for idx, role in port_roles(node).items() if role.can_complete]


def direction_degrees(dx: float, dy: float, default: float = 0.0) -> float:
    """Angle of (dx, dy) in degrees; *default* for a zero-length vector."""
    if math.isclose(dx, 0.0, abs_tol=1e-9) and math.isclose(dy, 0.0, abs_tol=1e-9):
        return default
    return math.degrees(math.atan2(dy, dx))
