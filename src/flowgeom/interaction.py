"""
Pointer gesture session.

Dragging, marquee selection, panning and connecting are mutually
exclusive: the session holds at most one gesture, and starting any gesture
replaces whatever was in flight.  Pointer moves are coalesced: only the
latest sample since the last frame is applied when the frame is flushed.

The session never mutates the node collection.  It returns new positions,
selections, viewports and connection requests for the caller to commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Union

from flowgeom.geometry import node_bounds, to_world
from flowgeom.models import GRID_SIZE, BoundingBox, Node, Point, Viewport, index_nodes, snap_to_grid
from flowgeom.placement import PlacementConfig, clamp_to_lane, settle_positions
from flowgeom.ports import (
    ConnectionRequest,
    ConnectResolution,
    DropTarget,
    PendingConnection,
    begin_port_drag,
    hit_test,
    resolve_drop,
    resolve_node_click,
    resolve_port_click,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Gestures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DragGesture:
    node_ids: tuple[str, ...]
    pointer_start: Point
    initial: dict[str, Point]


@dataclass(frozen=True)
class MarqueeGesture:
    start: Point
    current: Point
    base_selection: tuple[str, ...] = ()

    @property
    def rect(self) -> BoundingBox:
        x = min(self.start.x, self.current.x)
        y = min(self.start.y, self.current.y)
        return BoundingBox(x, y, abs(self.current.x - self.start.x), abs(self.current.y - self.start.y))


@dataclass(frozen=True)
class PanGesture:
    start_x: float
    start_y: float
    base: Viewport


@dataclass(frozen=True)
class ConnectGesture:
    pending: PendingConnection
    port_drag: bool = False


Gesture = Union[DragGesture, MarqueeGesture, PanGesture, ConnectGesture]


@dataclass(frozen=True)
class PointerSample:
    screen_x: float
    screen_y: float
    alt: bool = False


@dataclass
class FrameUpdate:
    """Result of applying one coalesced pointer sample."""
    pointer: Optional[Point] = None
    positions: dict[str, Point] = field(default_factory=dict)
    snap_guide: Optional[Point] = None
    selection: Optional[list[str]] = None
    viewport: Optional[Viewport] = None

    def to_dict(self) -> dict:
        d: dict = {"positions": {k: p.to_dict() for k, p in self.positions.items()}}
        if self.pointer is not None:
            d["pointer"] = self.pointer.to_dict()
        if self.snap_guide is not None:
            d["snap_guide"] = self.snap_guide.to_dict()
        if self.selection is not None:
            d["selection"] = list(self.selection)
        if self.viewport is not None:
            d["viewport"] = self.viewport.to_dict()
        return d


@dataclass
class ReleaseResult:
    nodes: Optional[list[Node]] = None
    request: Optional[ConnectionRequest] = None


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@dataclass
class InteractionSession:
    """Gesture state for one editor view."""
    viewport: Viewport = field(default_factory=Viewport)
    snap: bool = True
    grid_size: int = GRID_SIZE
    placement: PlacementConfig = field(default_factory=PlacementConfig)
    gesture: Optional[Gesture] = None
    _sample: Optional[PointerSample] = field(default=None, repr=False)

    # -- lifecycle ------------------------------------------------------

    def _start(self, gesture: Optional[Gesture]) -> None:
        if self.gesture is not None and gesture is not self.gesture:
            logger.debug("Replacing %s with %s", type(self.gesture).__name__, type(gesture).__name__)
        self.gesture = gesture
        self._sample = None

    def cancel(self) -> None:
        """Escape: drop the in-flight gesture and any unflushed pointer sample."""
        self._start(None)

    @property
    def pending_connection(self) -> Optional[PendingConnection]:
        if isinstance(self.gesture, ConnectGesture):
            return self.gesture.pending
        return None

    # -- gesture starts ---------------------------------------------------

    def begin_drag(self, nodes: Sequence[Node], node_ids: Iterable[str], screen_x: float, screen_y: float) -> bool:
        """Start dragging the given nodes; locked or unknown ids are skipped.

        The first id is the primary node used for grid snapping.
        """
        by_id = index_nodes(nodes)
        ids = tuple(i for i in dict.fromkeys(node_ids) if i in by_id and not by_id[i].locked)
        if not ids:
            return False
        self._start(DragGesture(
            node_ids=ids,
            pointer_start=to_world(screen_x, screen_y, self.viewport),
            initial={i: by_id[i].position for i in ids},
        ))
        return True

    def begin_marquee(self, screen_x: float, screen_y: float, base_selection: Iterable[str] = ()) -> None:
        world = to_world(screen_x, screen_y, self.viewport)
        self._start(MarqueeGesture(world, world, tuple(base_selection)))

    def begin_pan(self, screen_x: float, screen_y: float) -> None:
        self._start(PanGesture(screen_x, screen_y, self.viewport))

    def begin_port_drag(self, nodes: Sequence[Node], node_id: str, port_idx: int) -> bool:
        pending = begin_port_drag(index_nodes(nodes).get(node_id), port_idx)
        if pending is None:
            return False
        self._start(ConnectGesture(pending, port_drag=True))
        return True

    # -- clicks -----------------------------------------------------------

    def _apply_resolution(self, resolution: ConnectResolution) -> ConnectResolution:
        if resolution.pending is not None:
            self._start(ConnectGesture(resolution.pending))
        elif isinstance(self.gesture, ConnectGesture):
            self._start(None)
        return resolution

    def click_node(self, nodes: Sequence[Node], node_id: str, screen_x: float, screen_y: float) -> ConnectResolution:
        """Click-click connect step on a node body."""
        world = to_world(screen_x, screen_y, self.viewport)
        resolution = resolve_node_click(index_nodes(nodes), self.pending_connection, node_id, world)
        return self._apply_resolution(resolution)

    def click_port(self, nodes: Sequence[Node], node_id: str, port_idx: int) -> ConnectResolution:
        resolution = resolve_port_click(index_nodes(nodes), self.pending_connection, node_id, port_idx)
        return self._apply_resolution(resolution)

    # -- pointer moves ----------------------------------------------------

    def pointer_move(self, screen_x: float, screen_y: float, alt: bool = False) -> None:
        """Record a pointer sample; a later sample in the same frame replaces it."""
        self._sample = PointerSample(screen_x, screen_y, alt)

    @property
    def has_pending_frame(self) -> bool:
        return self._sample is not None

    def flush_frame(self, nodes: Sequence[Node]) -> FrameUpdate:
        """Apply the latest pointer sample to the active gesture."""
        sample, self._sample = self._sample, None
        if sample is None:
            return FrameUpdate()

        gesture = self.gesture
        if isinstance(gesture, PanGesture):
            self.viewport = Viewport(
                gesture.base.pan_x + sample.screen_x - gesture.start_x,
                gesture.base.pan_y + sample.screen_y - gesture.start_y,
                self.viewport.zoom,
            )
            return FrameUpdate(viewport=self.viewport)

        world = to_world(sample.screen_x, sample.screen_y, self.viewport)

        if isinstance(gesture, MarqueeGesture):
            gesture = MarqueeGesture(gesture.start, world, gesture.base_selection)
            self.gesture = gesture
            return FrameUpdate(pointer=world, selection=marquee_selection(nodes, gesture))

        if isinstance(gesture, DragGesture):
            return self._drag_frame(gesture, world, sample.alt)

        return FrameUpdate(pointer=world)

    def _drag_frame(self, gesture: DragGesture, world: Point, alt: bool) -> FrameUpdate:
        dx = world.x - gesture.pointer_start.x
        dy = world.y - gesture.pointer_start.y
        guide = None
        if self.snap and not alt:
            primary = gesture.initial[gesture.node_ids[0]]
            snapped_x = snap_to_grid(primary.x + dx, self.grid_size)
            snapped_y = snap_to_grid(primary.y + dy, self.grid_size)
            dx, dy = snapped_x - primary.x, snapped_y - primary.y
            guide = Point(snapped_x, snapped_y)
        positions = {i: p.offset(dx, dy) for i, p in gesture.initial.items()}
        return FrameUpdate(pointer=world, positions=positions, snap_guide=guide)

    # -- release ----------------------------------------------------------

    def release(
        self,
        nodes: Sequence[Node],
        screen_x: Optional[float] = None,
        screen_y: Optional[float] = None,
        drop: Optional[DropTarget] = None,
        lane_count: Optional[int] = None,
    ) -> ReleaseResult:
        """Finish the active gesture.

        A drag returns the node list with the dragged nodes clamped to their
        swimlane (when *lane_count* is given) and settled off any overlap.
        A port drag resolves against *drop*, or hit-tests the release point
        when no drop target is given.  Every gesture ends here.
        """
        gesture = self.gesture
        self._start(None)
        result = ReleaseResult()

        if isinstance(gesture, DragGesture):
            by_id = index_nodes(nodes)
            targets: dict[str, Point] = {}
            for node_id in gesture.node_ids:
                node = by_id.get(node_id)
                if node is None:
                    continue
                if lane_count is not None:
                    node = clamp_to_lane(node, lane_count, self.placement)
                targets[node_id] = node.position
            result.nodes = settle_positions(nodes, targets, self.placement)

        elif isinstance(gesture, ConnectGesture):
            if gesture.port_drag:
                if drop is None and screen_x is not None and screen_y is not None:
                    drop = hit_test(nodes, to_world(screen_x, screen_y, self.viewport))
                if drop is not None:
                    result.request = resolve_drop(index_nodes(nodes), gesture.pending, drop)
            else:
                # Click-click connections stay armed across pointer-up.
                self.gesture = gesture

        return result


def marquee_selection(nodes: Sequence[Node], marquee: MarqueeGesture) -> list[str]:
    """Base selection plus every content node touching the marquee rectangle."""
    rect = marquee.rect
    selected = list(marquee.base_selection)
    for node in nodes:
        if node.is_auxiliary:
            continue
        box = node_bounds(node)
        touches = (
            box.right >= rect.x
            and box.x <= rect.right
            and box.bottom >= rect.y
            and box.y <= rect.bottom
        )
        if touches and node.id not in selected:
            selected.append(node.id)
    return selected
