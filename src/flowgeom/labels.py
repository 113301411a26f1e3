"""
Edge label placement.

Labels are tried at a ranked list of offsets around their anchor and take
the first spot that clears every node and every label placed before them.
When nothing is free the label still gets the centered spot: labels are
never dropped.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from flowgeom.models import BoundingBox, Point


LABEL_HEIGHT = 18
LABEL_PADDING = 12

_WIDE_CHARS = "MW@#%&"


def estimate_text_width(text: str, font_size: float = 12) -> float:
    """Rough rendered width of *text* from per-character class widths."""
    width = 0.0
    for ch in text:
        if ch == " ":
            width += font_size * 0.28
        elif ch in _WIDE_CHARS:
            width += font_size * 0.75
        elif "A" <= ch <= "Z":
            width += font_size * 0.62
        else:
            width += font_size * 0.56
    return width


def estimate_label_size(text: str, font_size: float = 12) -> tuple[float, float]:
    """(width, height) of a label pill for *text*."""
    return float(math.ceil(estimate_text_width(text, font_size) + LABEL_PADDING)), LABEL_HEIGHT


def default_offsets(width: float, height: float, gap: float = 4) -> list[tuple[float, float]]:
    """Ranked center offsets: center, above, below, right, left, diagonals, farther above/below."""
    up = height + gap
    side = width / 2 + gap
    far = 2 * (height + gap)
    return [
        (0, 0),
        (0, -up),
        (0, up),
        (side, 0),
        (-side, 0),
        (side, -up),
        (-side, -up),
        (side, up),
        (-side, up),
        (0, -far),
        (0, far),
    ]


@dataclass
class LabelPlacementConfig:
    node_padding: float = 4     # Clearance required around node boxes
    label_padding: float = 2    # Clearance required around other labels
    gap: float = 4              # Spacing used to build the offset ladder


DEFAULT_LABEL_CONFIG = LabelPlacementConfig()


def place_label(
    anchor: Point,
    width: float,
    height: float,
    node_boxes: Iterable[BoundingBox],
    placed: list[BoundingBox],
    config: LabelPlacementConfig = DEFAULT_LABEL_CONFIG,
    offsets: Optional[Sequence[tuple[float, float]]] = None,
) -> Point:
    """Top-left corner for a *width* x *height* label near *anchor*.

    The accepted box is appended to *placed*.  The fallback centered
    position is returned without being recorded.
    """
    node_boxes = list(node_boxes)
    candidates = offsets if offsets is not None else default_offsets(width, height, config.gap)
    for dx, dy in candidates:
        box = BoundingBox(anchor.x + dx - width / 2, anchor.y + dy - height / 2, width, height)
        if any(box.intersects(b, config.node_padding) for b in node_boxes):
            continue
        if any(box.intersects(b, config.label_padding) for b in placed):
            continue
        placed.append(box)
        return Point(box.x, box.y)
    return Point(anchor.x - width / 2, anchor.y - height / 2)


@dataclass
class LabelPlacer:
    """Places labels one after another against a fixed set of node boxes."""
    node_boxes: list[BoundingBox]
    config: LabelPlacementConfig = field(default_factory=LabelPlacementConfig)
    placed: list[BoundingBox] = field(default_factory=list)

    def place(self, anchor: Point, width: float, height: float) -> Point:
        return place_label(anchor, width, height, self.node_boxes, self.placed, self.config)

    def place_text(self, anchor: Point, text: str, font_size: float = 12) -> BoundingBox:
        width, height = estimate_label_size(text, font_size)
        top_left = self.place(anchor, width, height)
        return BoundingBox(top_left.x, top_left.y, width, height)
