"""
Edge path geometry.

Builds straight, bezier and orthogonal paths between two port anchors,
with start/end tangent angles for arrowheads and a label anchor.  Edges
that share an unordered node pair are fanned out into parallel lanes.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from flowgeom.geometry import direction_degrees, port_anchor, port_axis, port_normal
from flowgeom.models import Edge, Node, PathType, Point, index_nodes

logger = logging.getLogger(__name__)


@dataclass
class PathConfig:
    parallel_gap: float = 24    # Distance between neighbouring parallel lanes
    exit_distance: float = 24   # Orthogonal stub length out of / into a port


DEFAULT_PATH_CONFIG = PathConfig()


@dataclass
class EdgePath:
    """Geometry of one routed edge.

    ``points`` is the polyline for straight and orthogonal paths, and
    ``[start, control1, control2, end]`` for bezier paths.  Angles are the
    travel direction in degrees (screen axes, y down) at each end.
    """
    path_type: PathType
    points: list[Point]
    start_angle: float
    end_angle: float
    label_anchor: Point
    edge_id: str = ""

    @property
    def start(self) -> Point:
        return self.points[0]

    @property
    def end(self) -> Point:
        return self.points[-1]

    @property
    def control_points(self) -> Optional[tuple[Point, Point]]:
        if self.path_type is PathType.BEZIER:
            return self.points[1], self.points[2]
        return None

    def segments(self) -> list[tuple[Point, Point]]:
        """Straight segments of a polyline path (empty for bezier)."""
        if self.path_type is PathType.BEZIER:
            return []
        return list(zip(self.points, self.points[1:]))

    @property
    def svg_d(self) -> str:
        def fmt(p: Point) -> str:
            return f"{p.x:g} {p.y:g}"

        if self.path_type is PathType.BEZIER:
            p0, c1, c2, p3 = self.points
            return f"M {fmt(p0)} C {fmt(c1)}, {fmt(c2)}, {fmt(p3)}"
        head, *rest = self.points
        return f"M {fmt(head)}" + "".join(f" L {fmt(p)}" for p in rest)

    def to_dict(self) -> dict:
        d = {
            "path_type": self.path_type.value,
            "points": [p.to_dict() for p in self.points],
            "start_angle": self.start_angle,
            "end_angle": self.end_angle,
            "label_anchor": self.label_anchor.to_dict(),
            "d": self.svg_d,
        }
        if self.edge_id:
            d["edge_id"] = self.edge_id
        return d


# ---------------------------------------------------------------------------
# Parallel groups
# ---------------------------------------------------------------------------

def parallel_offset(index: int, count: int, gap: float) -> float:
    """Lane offset of the *index*-th of *count* parallel edges, centered on 0."""
    return index * gap - (count - 1) * gap / 2


def parallel_groups(edges: Iterable[Edge]) -> dict[str, tuple[int, int]]:
    """Map edge id -> (index within its parallel group, group size).

    Groups are keyed by the unordered endpoint pair; order within a group is
    edge-list order.
    """
    groups: OrderedDict[tuple[str, str], list[str]] = OrderedDict()
    for edge in edges:
        groups.setdefault(edge.parallel_key, []).append(edge.id)
    meta: dict[str, tuple[int, int]] = {}
    for ids in groups.values():
        for index, edge_id in enumerate(ids):
            meta[edge_id] = (index, len(ids))
    return meta


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def _midpoint(a: Point, b: Point) -> Point:
    return Point((a.x + b.x) / 2, (a.y + b.y) / 2)


def _straight(start: Point, end: Point) -> EdgePath:
    angle = direction_degrees(end.x - start.x, end.y - start.y)
    return EdgePath(PathType.STRAIGHT, [start, end], angle, angle, _midpoint(start, end))


def _bezier_point(p0: Point, c1: Point, c2: Point, p3: Point, t: float) -> Point:
    u = 1 - t
    a, b, c, d = u ** 3, 3 * u * u * t, 3 * u * t * t, t ** 3
    return Point(
        a * p0.x + b * c1.x + c * c2.x + d * p3.x,
        a * p0.y + b * c1.y + c * c2.y + d * p3.y,
    )


def _tangent_angle(dx: float, dy: float, chord_dx: float, chord_dy: float) -> float:
    # Falls back to the chord, then to 0 degrees, for degenerate control points.
    return direction_degrees(dx, dy, default=direction_degrees(chord_dx, chord_dy))


def _bezier(start: Point, end: Point, offset: float) -> EdgePath:
    dx, dy = end.x - start.x, end.y - start.y
    mid = _midpoint(start, end)
    if abs(dx) >= abs(dy):
        c1 = Point(mid.x, start.y + offset)
        c2 = Point(mid.x, end.y + offset)
    else:
        c1 = Point(start.x + offset, mid.y)
        c2 = Point(end.x + offset, mid.y)

    start_angle = _tangent_angle(3 * (c1.x - start.x), 3 * (c1.y - start.y), dx, dy)
    end_angle = _tangent_angle(3 * (end.x - c2.x), 3 * (end.y - c2.y), dx, dy)
    label = _bezier_point(start, c1, c2, end, 0.5)
    return EdgePath(PathType.BEZIER, [start, c1, c2, end], start_angle, end_angle, label)


def simplify_polyline(points: Sequence[Point]) -> list[Point]:
    """Drop repeated points and interior points on a straight run."""
    deduped: list[Point] = []
    for p in points:
        if not deduped or (abs(p.x - deduped[-1].x) > 1e-9 or abs(p.y - deduped[-1].y) > 1e-9):
            deduped.append(p)
    if len(deduped) < 3:
        return deduped

    result = [deduped[0]]
    for i in range(1, len(deduped) - 1):
        a, b, c = result[-1], deduped[i], deduped[i + 1]
        cross = (b.x - a.x) * (c.y - b.y) - (b.y - a.y) * (c.x - b.x)
        dot = (b.x - a.x) * (c.x - b.x) + (b.y - a.y) * (c.y - b.y)
        if abs(cross) < 1e-9 and dot >= 0:
            continue
        result.append(b)
    result.append(deduped[-1])
    return result


def _longest_segment_midpoint(points: Sequence[Point]) -> Point:
    best = _midpoint(points[0], points[-1])
    best_len = -1.0
    for a, b in zip(points, points[1:]):
        length = a.distance_to(b)
        if length > best_len:
            best, best_len = _midpoint(a, b), length
    return best


def _orthogonal(
    start: Point,
    end: Point,
    source_port: int,
    target_port: int,
    offset: float,
    exit_distance: float,
) -> EdgePath:
    snx, sny = port_normal(source_port)
    tnx, tny = port_normal(target_port)
    exit_pt = Point(start.x + snx * exit_distance, start.y + sny * exit_distance)
    entry_pt = Point(end.x + tnx * exit_distance, end.y + tny * exit_distance)

    source_axis = port_axis(source_port)
    target_axis = port_axis(target_port)
    if source_axis == target_axis == "horizontal":
        jog_x = (exit_pt.x + entry_pt.x) / 2 + offset
        middle = [Point(jog_x, exit_pt.y), Point(jog_x, entry_pt.y)]
    elif source_axis == target_axis == "vertical":
        jog_y = (exit_pt.y + entry_pt.y) / 2 + offset
        middle = [Point(exit_pt.x, jog_y), Point(entry_pt.x, jog_y)]
    elif source_axis == "horizontal":
        middle = [Point(entry_pt.x, exit_pt.y)]
    else:
        middle = [Point(exit_pt.x, entry_pt.y)]

    raw = [start, exit_pt, *middle, entry_pt, end]
    points = simplify_polyline(raw)
    if len(points) < 2:
        points = [start, end]

    first, second = points[0], points[1]
    before_last, last = points[-2], points[-1]
    start_angle = direction_degrees(second.x - first.x, second.y - first.y, default=direction_degrees(snx, sny))
    end_angle = direction_degrees(last.x - before_last.x, last.y - before_last.y, default=direction_degrees(-tnx, -tny))
    return EdgePath(
        PathType.ORTHOGONAL,
        points,
        start_angle,
        end_angle,
        _longest_segment_midpoint(points),
    )


def build_path(
    path_type: PathType,
    start: Point,
    end: Point,
    source_port: int,
    target_port: int,
    index: int = 0,
    count: int = 1,
    config: PathConfig = DEFAULT_PATH_CONFIG,
) -> EdgePath:
    """Route one edge between two anchors.

    *index* and *count* place the edge within its parallel group; straight
    paths ignore them, so parallel straight edges are drawn on top of each
    other rather than fanned.
    """
    offset = parallel_offset(index, count, config.parallel_gap)
    if path_type is PathType.STRAIGHT:
        return _straight(start, end)
    if path_type is PathType.ORTHOGONAL:
        return _orthogonal(start, end, source_port, target_port, offset, config.exit_distance)
    return _bezier(start, end, offset)


def build_edge_path(
    edge: Edge,
    nodes_by_id: Mapping[str, Node],
    index: int = 0,
    count: int = 1,
    config: PathConfig = DEFAULT_PATH_CONFIG,
) -> Optional[EdgePath]:
    """Path for *edge*, or None when an endpoint is missing from the snapshot."""
    source = nodes_by_id.get(edge.source_id)
    target = nodes_by_id.get(edge.target_id)
    if source is None or target is None:
        logger.debug("Skipping edge %s: dangling endpoint", edge.id)
        return None
    path = build_path(
        edge.path_type,
        port_anchor(source, edge.source_port),
        port_anchor(target, edge.target_port),
        edge.source_port,
        edge.target_port,
        index,
        count,
        config,
    )
    path.edge_id = edge.id
    return path


def build_all_paths(
    nodes: Iterable[Node],
    edges: Sequence[Edge],
    config: PathConfig = DEFAULT_PATH_CONFIG,
) -> dict[str, EdgePath]:
    """Paths for every renderable edge, keyed by edge id, in edge order."""
    nodes_by_id = index_nodes(nodes)
    groups = parallel_groups(edges)
    paths: dict[str, EdgePath] = {}
    for edge in edges:
        index, count = groups.get(edge.id, (0, 1))
        path = build_edge_path(edge, nodes_by_id, index, count, config)
        if path is not None:
            paths[edge.id] = path
    return paths
