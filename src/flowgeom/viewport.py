"""
Camera operations over the node set.

Fit and center on content, wheel zoom and scroll, edge auto-scroll while
dragging, visibility culling and zoom-dependent level of detail.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from flowgeom.geometry import node_bounds, zoom_about
from flowgeom.models import MAX_ZOOM, MIN_ZOOM, BoundingBox, Node, Viewport, clamp


FIT_PADDING = 120
FRAME_INSET = 24
MIN_AVAILABLE = 120
CULL_PADDING = 220
WHEEL_ZOOM_OUT = 0.92
WHEEL_ZOOM_IN = 1.08
AUTOSCROLL_EDGE = 40
AUTOSCROLL_MAX_SPEED = 16


def content_bounds(nodes: Iterable[Node]) -> Optional[BoundingBox]:
    """Bounding box of every content node; auxiliary handles are ignored."""
    return BoundingBox.union(node_bounds(n) for n in nodes if not n.is_auxiliary)


def fit_to_content(
    nodes: Iterable[Node],
    frame_width: float,
    frame_height: float,
    padding: float = FIT_PADDING,
    inset: float = FRAME_INSET,
) -> Optional[Viewport]:
    """Viewport showing all content centered in the frame, or None without content.

    *inset* is taken off the frame before the zoom is chosen.
    """
    bounds = content_bounds(nodes)
    if bounds is None:
        return None
    available_w = max(MIN_AVAILABLE, frame_width - inset)
    available_h = max(MIN_AVAILABLE, frame_height - inset)
    width = max(1.0, bounds.width + padding * 2)
    height = max(1.0, bounds.height + padding * 2)
    zoom = clamp(min(available_w / width, available_h / height), MIN_ZOOM, MAX_ZOOM)
    return Viewport(
        pan_x=frame_width / 2 - bounds.cx * zoom,
        pan_y=frame_height / 2 - bounds.cy * zoom,
        zoom=zoom,
    )


def center_on_content(
    nodes: Iterable[Node],
    viewport: Viewport,
    frame_width: float,
    frame_height: float,
) -> Optional[Viewport]:
    """Like :func:`fit_to_content` but keeps the current zoom."""
    bounds = content_bounds(nodes)
    if bounds is None:
        return None
    zoom = viewport.zoom
    return Viewport(
        pan_x=frame_width / 2 - bounds.cx * zoom,
        pan_y=frame_height / 2 - bounds.cy * zoom,
        zoom=zoom,
    )


def zoom_by_wheel(viewport: Viewport, delta_y: float, anchor_x: float, anchor_y: float) -> Viewport:
    """One zoom step about the pointer: scrolling down zooms out."""
    factor = WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN
    return zoom_about(viewport, viewport.zoom * factor, anchor_x, anchor_y)


def scroll_by_wheel(viewport: Viewport, delta_x: float, delta_y: float) -> Viewport:
    return Viewport(viewport.pan_x - delta_x, viewport.pan_y - delta_y, viewport.zoom)


def autoscroll_delta(
    pointer_x: float,
    pointer_y: float,
    frame: BoundingBox,
    edge: float = AUTOSCROLL_EDGE,
    max_speed: float = AUTOSCROLL_MAX_SPEED,
) -> tuple[float, float]:
    """Pan step while the pointer hovers near a frame edge during a drag.

    Speed grows linearly from 0 at *edge* units inside the frame to
    *max_speed* at the border.
    """
    dx = dy = 0.0
    if pointer_x < frame.x + edge:
        dx = max_speed * (frame.x + edge - pointer_x) / edge
    elif pointer_x > frame.right - edge:
        dx = -max_speed * (pointer_x - (frame.right - edge)) / edge
    if pointer_y < frame.y + edge:
        dy = max_speed * (frame.y + edge - pointer_y) / edge
    elif pointer_y > frame.bottom - edge:
        dy = -max_speed * (pointer_y - (frame.bottom - edge)) / edge
    return dx, dy


# ---------------------------------------------------------------------------
# Culling
# ---------------------------------------------------------------------------

def visible_bounds(
    viewport: Viewport,
    frame_width: float,
    frame_height: float,
    padding: float = CULL_PADDING,
) -> BoundingBox:
    """World rectangle on screen, grown by *padding* on every side."""
    width = frame_width or 1
    height = frame_height or 1
    left = -viewport.pan_x / viewport.zoom
    top = -viewport.pan_y / viewport.zoom
    return BoundingBox(
        left - padding,
        top - padding,
        width / viewport.zoom + 2 * padding,
        height / viewport.zoom + 2 * padding,
    )


def visible_node_ids(
    nodes: Iterable[Node],
    viewport: Viewport,
    frame_width: float,
    frame_height: float,
    keep: Iterable[str] = (),
) -> set[str]:
    """Ids of nodes touching the padded view, plus any ids in *keep*."""
    area = visible_bounds(viewport, frame_width, frame_height)
    keep = set(keep)
    visible: set[str] = set()
    for node in nodes:
        box = node_bounds(node)
        touches = not (
            box.right < area.x
            or box.x > area.right
            or box.bottom < area.y
            or box.y > area.bottom
        )
        if touches or node.id in keep:
            visible.add(node.id)
    return visible


# ---------------------------------------------------------------------------
# Level of detail
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DetailLevel:
    """What the presentation layer should draw at the current zoom.

    Each flag switches at a slightly different zoom going up than going
    down so that small zoom jitter does not make it flicker.
    """
    compact_nodes: bool = False
    show_node_meta: bool = True
    show_node_footer: bool = True
    show_edge_labels: bool = True

    @classmethod
    def for_zoom(cls, zoom: float) -> DetailLevel:
        return cls(
            compact_nodes=zoom < 0.35,
            show_node_meta=zoom >= 0.6,
            show_node_footer=zoom >= 0.45,
            show_edge_labels=zoom >= 0.45,
        )

    def update(self, zoom: float) -> DetailLevel:
        return DetailLevel(
            compact_nodes=zoom < 0.39 if self.compact_nodes else zoom < 0.35,
            show_node_meta=zoom >= 0.6 if self.show_node_meta else zoom >= 0.64,
            show_node_footer=zoom >= 0.45 if self.show_node_footer else zoom >= 0.49,
            show_edge_labels=zoom >= 0.45 if self.show_edge_labels else zoom >= 0.49,
        )

    def to_dict(self) -> dict[str, bool]:
        return {
            "compact_nodes": self.compact_nodes,
            "show_node_meta": self.show_node_meta,
            "show_node_footer": self.show_node_footer,
            "show_edge_labels": self.show_edge_labels,
        }
