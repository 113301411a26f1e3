"""
Core data model for flow diagrams.

Nodes, edges, bounding boxes and the viewport record that every geometry
operation reads.  Records are plain dataclasses; operations return new
records instead of mutating the ones they receive.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Iterable, Optional


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

LANE_HEIGHT = 300
MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
GRID_SIZE = 20
DEFAULT_Z_INDEX = 10


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class EntityType(Enum):
    """Node type tags (the diagram's entity vocabulary)."""
    SPONSOR_BANK = "Sponsor Bank"
    ISSUING_BANK = "Issuing Bank"
    ACQUIRING_BANK = "Acquiring Bank"
    CENTRAL_BANK = "Central Bank"
    CORRESPONDENT_BANK = "Correspondent Bank"
    CREDIT_UNION = "Credit Union"
    PROGRAM_MANAGER = "Program Manager"
    PROCESSOR = "Processor"
    GATEWAY = "Payment Gateway"
    NETWORK = "Card Network"
    SWITCH = "Switch / Clearing"
    WALLET_PROVIDER = "Wallet Provider"
    LEDGER = "Ledger"
    RECONCILIATION = "Reconciliation"
    FUNDING_SOURCE = "Funding Source"
    GATE = "Compliance Gate"
    LIQUIDITY_PROVIDER = "Liquidity Provider"
    END_POINT = "End-Point"
    TEXT_BOX = "Text Box"
    ANCHOR = "Anchor Point"


class NodeShape(Enum):
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    CYLINDER = "cylinder"
    DIAMOND = "diamond"


class PathType(Enum):
    """Edge routing topology."""
    STRAIGHT = "straight"
    BEZIER = "bezier"
    ORTHOGONAL = "orthogonal"


class PortRole(Enum):
    SOURCE = "source"
    TARGET = "target"
    BOTH = "both"

    @property
    def can_start(self) -> bool:
        return self in (PortRole.SOURCE, PortRole.BOTH)

    @property
    def can_complete(self) -> bool:
        return self in (PortRole.TARGET, PortRole.BOTH)


class Port(IntEnum):
    """The four fixed connection points, clockwise from the top."""
    TOP = 0
    RIGHT = 1
    BOTTOM = 2
    LEFT = 3


ALL_PORTS: tuple[int, ...] = tuple(int(p) for p in Port)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def snap_to_grid(value: float, grid_size: int = GRID_SIZE) -> float:
    """Round *value* to the nearest multiple of *grid_size*."""
    return round(value / grid_size) * grid_size


def lane_index(y: float) -> int:
    """1-based swimlane index for a vertical world position."""
    return math.floor(max(0.0, y) / LANE_HEIGHT) + 1


def new_id(prefix: str = "node") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Point:
    """A 2-D coordinate."""
    x: float
    y: float

    def offset(self, dx: float, dy: float) -> Point:
        return Point(self.x + dx, self.y + dy)

    def distance_to(self, other: Point) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle used for overlap tests."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2

    @property
    def center(self) -> Point:
        return Point(self.cx, self.cy)

    def intersects(self, other: BoundingBox, margin: float = 0) -> bool:
        """True unless the boxes are separated on x or y by at least *margin*."""
        return not (
            self.right + margin <= other.x
            or other.right + margin <= self.x
            or self.bottom + margin <= other.y
            or other.bottom + margin <= self.y
        )

    def contains_point(self, px: float, py: float) -> bool:
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def inflate(self, amount: float) -> BoundingBox:
        return BoundingBox(
            self.x - amount,
            self.y - amount,
            self.width + 2 * amount,
            self.height + 2 * amount,
        )

    @classmethod
    def union(cls, boxes: Iterable[BoundingBox]) -> Optional[BoundingBox]:
        """Smallest box enclosing all *boxes*, or None when there are none."""
        boxes = list(boxes)
        if not boxes:
            return None
        min_x = min(b.x for b in boxes)
        min_y = min(b.y for b in boxes)
        max_x = max(b.right for b in boxes)
        max_y = max(b.bottom for b in boxes)
        return cls(min_x, min_y, max_x - min_x, max_y - min_y)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class Node:
    """A diagram entity.

    ``lane`` is derived from the vertical position and is recomputed on
    construction, so a node moved through :meth:`moved_to` always carries
    a consistent lane index.
    """
    id: str
    type: EntityType
    position: Point
    shape: NodeShape = NodeShape.RECTANGLE
    width: Optional[float] = None
    height: Optional[float] = None
    z_index: int = DEFAULT_Z_INDEX
    label: str = ""
    locked: bool = False
    lane: int = field(init=False)

    def __post_init__(self) -> None:
        if self.width is not None and self.width <= 0:
            raise ValueError(f"node '{self.id}' width must be > 0, got {self.width}")
        if self.height is not None and self.height <= 0:
            raise ValueError(f"node '{self.id}' height must be > 0, got {self.height}")
        object.__setattr__(self, "lane", lane_index(self.position.y))

    @property
    def is_auxiliary(self) -> bool:
        """Anchor points are connector handles, not content."""
        return self.type is EntityType.ANCHOR

    def moved_to(self, x: float, y: float) -> Node:
        return replace(self, position=Point(x, y))

    def with_z(self, z_index: int) -> Node:
        return replace(self, z_index=z_index)

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "type": self.type.value,
            "shape": self.shape.value,
            "position": self.position.to_dict(),
            "z_index": self.z_index,
            "lane": self.lane,
        }
        if self.width is not None:
            d["width"] = self.width
        if self.height is not None:
            d["height"] = self.height
        if self.label:
            d["label"] = self.label
        if self.locked:
            d["locked"] = True
        return d


@dataclass(frozen=True)
class Edge:
    """A directed connection between two node ports."""
    id: str
    source_id: str
    target_id: str
    source_port: int = Port.RIGHT
    target_port: int = Port.LEFT
    path_type: PathType = PathType.BEZIER
    label: str = ""

    def __post_init__(self) -> None:
        for name in ("source_port", "target_port"):
            value = getattr(self, name)
            if value not in ALL_PORTS:
                raise ValueError(f"edge '{self.id}' {name} must be 0..3, got {value!r}")
            object.__setattr__(self, name, int(value))

    @property
    def parallel_key(self) -> tuple[str, str]:
        """Unordered endpoint pair shared by every edge in a parallel group."""
        a, b = sorted((self.source_id, self.target_id))
        return a, b

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "source_port": self.source_port,
            "target_port": self.target_port,
            "path_type": self.path_type.value,
        }
        if self.label:
            d["label"] = self.label
        return d


@dataclass(frozen=True)
class Viewport:
    """Camera state: screen = world * zoom + pan."""
    pan_x: float = 0.0
    pan_y: float = 0.0
    zoom: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "zoom", clamp(self.zoom, MIN_ZOOM, MAX_ZOOM))

    def to_dict(self) -> dict[str, float]:
        return {"pan_x": self.pan_x, "pan_y": self.pan_y, "zoom": self.zoom}


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

def index_nodes(nodes: Iterable[Node]) -> dict[str, Node]:
    """Build the id -> node lookup for one pass.  The first occurrence wins."""
    index: dict[str, Node] = {}
    for node in nodes:
        index.setdefault(node.id, node)
    return index


def z_ordered(nodes: Iterable[Node]) -> list[Node]:
    """Nodes in draw order; equal z-indexes keep their insertion order."""
    return sorted(nodes, key=lambda n: n.z_index)


def next_z_index(nodes: Iterable[Node]) -> int:
    """A z-index above every existing node."""
    return max((n.z_index for n in nodes), default=DEFAULT_Z_INDEX) + 1
