"""
Input validation for flowgeom MCP server tool parameters.

Two layers:

- strict validators that raise :class:`ValidationError` with a clear
  message for parameters received from LLM callers;
- a lenient sanitizer for bulk graph input (imports, generated diagrams)
  that repairs what it can and drops what it cannot, so the geometry core
  only ever sees well-formed records.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

from flowgeom.models import (
    DEFAULT_Z_INDEX,
    Edge,
    EntityType,
    Node,
    NodeShape,
    PathType,
    Point,
    Port,
    new_id,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_string(value: Any, field_name: str, *, allow_empty: bool = True) -> str:
    """Ensure *value* is a string (optionally non-empty)."""
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a string, got {type(value).__name__}.")
    if not allow_empty and not value.strip():
        raise ValidationError(f"'{field_name}' must not be empty.")
    return value


def validate_number(
    value: Any,
    field_name: str,
    *,
    min_val: float | None = None,
    max_val: float | None = None,
) -> float:
    """Validate a numeric value and optional range."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    val = float(value)
    if min_val is not None and val < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {val}."
        )
    if max_val is not None and val > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {val}."
        )
    return val


def validate_int(
    value: Any,
    field_name: str,
    *,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """Validate an integer value and optional range."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be an integer, got {type(value).__name__}."
        )
    if min_val is not None and value < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {value}."
        )
    if max_val is not None and value > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {value}."
        )
    return value


def validate_bool(value: Any, field_name: str) -> bool:
    """Ensure *value* is a boolean."""
    if not isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a boolean, got {type(value).__name__}."
        )
    return value


def validate_enum(value: Any, field_name: str, allowed: set[str]) -> str:
    """Validate that a string value is one of the allowed choices (case-insensitive)."""
    if not isinstance(value, str):
        raise ValidationError(
            f"'{field_name}' must be a string, got {type(value).__name__}."
        )
    normalized = value.strip().upper()
    if normalized not in {a.upper() for a in allowed}:
        choices = ", ".join(sorted(allowed))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return normalized


def validate_list(value: Any, field_name: str, *, min_length: int = 0) -> list:
    """Ensure *value* is a list with at least *min_length* items."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    if len(value) < min_length:
        raise ValidationError(
            f"'{field_name}' must have at least {min_length} item(s), got {len(value)}."
        )
    return value


def validate_positive_number(value: Any, field_name: str) -> float:
    """Validate that a number is positive (> 0)."""
    return validate_number(value, field_name, min_val=0.001)


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_VALID_ALIGNMENTS = {"LEFT", "CENTER", "RIGHT", "TOP", "MIDDLE", "BOTTOM"}
_VALID_AXES = {"HORIZONTAL", "VERTICAL"}
_VALID_PATH_TYPES = {p.value.upper() for p in PathType}
_VALID_SHAPES = {s.value.upper() for s in NodeShape}
_VALID_PRESETS = {"PIPELINE", "BRANCH", "COMPACT"}

_DIAGRAM_ACTIONS = {"CREATE", "LOAD", "LIST", "GET", "DELETE"}
_DRAW_ACTIONS = {
    "ADD_NODE", "DROP_NODE", "ADD_CONNECTED_NODE", "DUPLICATE", "COPY",
    "PASTE", "CONNECT", "MOVE", "DELETE", "BRING_TO_FRONT", "SET_PATH_TYPE",
}
_LAYOUT_ACTIONS = {"AUTO", "RANKS", "ALIGN", "DISTRIBUTE", "CLAMP_LANES"}
_VIEWPORT_ACTIONS = {
    "FIT", "CENTER", "ZOOM", "WHEEL_ZOOM", "WHEEL_SCROLL", "PAN",
    "TO_WORLD", "TO_SCREEN", "VISIBLE", "DETAIL", "RESIZE",
}
_GESTURE_ACTIONS = {
    "BEGIN_DRAG", "BEGIN_MARQUEE", "BEGIN_PAN", "BEGIN_PORT_DRAG",
    "CLICK_NODE", "CLICK_PORT", "MOVE", "FLUSH", "RELEASE", "CANCEL", "STATE",
}
_INSPECT_ACTIONS = {"NODES", "PATHS", "LABELS", "OVERLAPS", "BOUNDS", "PORTS", "INFO"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


def validate_alignment(value: Any) -> str:
    """Validate an alignment mode."""
    return validate_enum(value, "alignment", _VALID_ALIGNMENTS).lower()


def validate_axis(value: Any) -> str:
    """Validate a distribute axis."""
    return validate_enum(value, "axis", _VALID_AXES).lower()


def validate_path_type(value: Any) -> PathType:
    return PathType(validate_enum(value, "path_type", _VALID_PATH_TYPES).lower())


def validate_shape(value: Any) -> NodeShape:
    return NodeShape(validate_enum(value, "shape", _VALID_SHAPES).lower())


def validate_preset(value: Any) -> str:
    return validate_enum(value, "preset", _VALID_PRESETS).lower()


def validate_port(value: Any, field_name: str) -> int:
    """Validate a port index (0=top, 1=right, 2=bottom, 3=left)."""
    return validate_int(value, field_name, min_val=0, max_val=3)


def validate_entity_type(value: Any) -> EntityType:
    """Accept an entity type by value ('Processor') or name ('PROCESSOR')."""
    entity = parse_entity_type(value)
    if entity is None:
        choices = ", ".join(t.name.lower() for t in EntityType)
        raise ValidationError(f"'node_type' must be one of [{choices}], got '{value}'.")
    return entity


def validate_node_dict(n: dict, index: int) -> None:
    """Validate a single node dict from a nodes list."""
    if not isinstance(n, dict):
        raise ValidationError(f"Node at index {index} must be a dict/object.")
    if "type" not in n:
        raise ValidationError(f"Node at index {index} missing required key 'type'.")
    if parse_entity_type(n["type"]) is None:
        raise ValidationError(f"Node at index {index}: unknown type '{n['type']}'.")
    if "id" in n and (not isinstance(n["id"], str) or not n["id"].strip()):
        raise ValidationError(f"Node at index {index}: 'id' must be a non-empty string.")
    for key in ("x", "y"):
        if key in n and (not isinstance(n[key], (int, float)) or isinstance(n[key], bool)):
            raise ValidationError(f"Node at index {index}: '{key}' must be a number.")
    for key in ("width", "height"):
        if key in n:
            if not isinstance(n[key], (int, float)) or isinstance(n[key], bool):
                raise ValidationError(f"Node at index {index}: '{key}' must be a number.")
            if n[key] <= 0:
                raise ValidationError(f"Node at index {index}: '{key}' must be > 0.")
    if "label" in n and not isinstance(n["label"], str):
        raise ValidationError(f"Node at index {index}: 'label' must be a string.")


def validate_edge_dict(e: dict, index: int) -> None:
    """Validate a single edge dict from an edges list."""
    if not isinstance(e, dict):
        raise ValidationError(f"Edge at index {index} must be a dict/object.")
    if "source_id" not in e:
        raise ValidationError(f"Edge at index {index} missing required key 'source_id'.")
    if "target_id" not in e:
        raise ValidationError(f"Edge at index {index} missing required key 'target_id'.")
    if not isinstance(e["source_id"], str) or not e["source_id"].strip():
        raise ValidationError(f"Edge at index {index}: 'source_id' must be a non-empty string.")
    if not isinstance(e["target_id"], str) or not e["target_id"].strip():
        raise ValidationError(f"Edge at index {index}: 'target_id' must be a non-empty string.")
    for key in ("source_port", "target_port"):
        if key in e:
            value = e[key]
            if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 3:
                raise ValidationError(f"Edge at index {index}: '{key}' must be an integer 0..3.")
    if "path_type" in e and str(e["path_type"]).upper() not in _VALID_PATH_TYPES:
        raise ValidationError(f"Edge at index {index}: unknown path_type '{e['path_type']}'.")
    if "label" in e and not isinstance(e["label"], str):
        raise ValidationError(f"Edge at index {index}: 'label' must be a string.")


# ---------------------------------------------------------------------------
# Sanitizer (lenient)
# ---------------------------------------------------------------------------

def _get(raw: dict, *keys: str) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _to_number(value: Any, fallback: float = 0.0) -> float:
    return float(value) if _is_number(value) else fallback


def _positive_or_none(value: Any) -> Optional[float]:
    return float(value) if _is_number(value) and value > 0 else None


def parse_entity_type(value: Any) -> Optional[EntityType]:
    if isinstance(value, EntityType):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    for entity in EntityType:
        if text == entity.value or text.upper() == entity.name:
            return entity
    return None


def to_port_index(value: Any, fallback: int) -> int:
    """Port index 0..3 from loosely typed input, else *fallback*."""
    if isinstance(value, bool):
        return fallback
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        value = int(value.strip())
    if isinstance(value, int) and 0 <= value <= 3:
        return value
    return fallback


def _to_path_type(value: Any) -> PathType:
    if isinstance(value, PathType):
        return value
    if isinstance(value, str):
        try:
            return PathType(value.strip().lower())
        except ValueError:
            pass
    return PathType.BEZIER


def _clean_id(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def sanitize_node(raw: Any, index: int) -> Optional[Node]:
    """Node from a loosely shaped dict, or None when it cannot be repaired.

    A node needs a known type and a position (either a ``position`` object
    or top-level ``x``/``y``).  Missing ids are generated; bad sizes fall
    back to the type default; control chips are forced to rectangles.
    """
    if not isinstance(raw, dict):
        return None
    entity = parse_entity_type(raw.get("type"))
    if entity is None:
        return None

    position = raw.get("position")
    if isinstance(position, dict):
        point = Point(_to_number(position.get("x")), _to_number(position.get("y")))
    elif "x" in raw or "y" in raw:
        point = Point(_to_number(raw.get("x")), _to_number(raw.get("y")))
    else:
        return None

    shape = NodeShape.RECTANGLE
    raw_shape = raw.get("shape")
    if isinstance(raw_shape, str):
        try:
            shape = NodeShape(raw_shape.strip().lower())
        except ValueError:
            shape = NodeShape.RECTANGLE

    width = _positive_or_none(raw.get("width"))
    height = _positive_or_none(raw.get("height"))
    if entity is EntityType.GATE:
        shape = NodeShape.RECTANGLE
        width = width or 132.0
        height = height or 36.0

    label = raw.get("label")
    locked = _get(raw, "locked", "is_locked", "isLocked")
    z_index = _get(raw, "z_index", "zIndex")
    return Node(
        id=_clean_id(raw.get("id")) or new_id(f"node-{index}"),
        type=entity,
        position=point,
        shape=shape,
        width=width,
        height=height,
        z_index=int(z_index) if _is_number(z_index) else DEFAULT_Z_INDEX,
        label=label if isinstance(label, str) else entity.value,
        locked=locked is True,
    )


def sanitize_edge(raw: Any, index: int) -> Optional[Edge]:
    """Edge from a loosely shaped dict, or None without both endpoint ids.

    Ports outside 0..3 fall back to right (source) and left (target);
    unknown path types become bezier.
    """
    if not isinstance(raw, dict):
        return None
    source_id = _clean_id(_get(raw, "source_id", "sourceId", "source"))
    target_id = _clean_id(_get(raw, "target_id", "targetId", "target"))
    if source_id is None or target_id is None:
        return None
    label = raw.get("label")
    return Edge(
        id=_clean_id(raw.get("id")) or new_id(f"edge-{index}"),
        source_id=source_id,
        target_id=target_id,
        source_port=to_port_index(_get(raw, "source_port", "sourcePortIdx"), Port.RIGHT),
        target_port=to_port_index(_get(raw, "target_port", "targetPortIdx"), Port.LEFT),
        path_type=_to_path_type(_get(raw, "path_type", "pathType")),
        label=label if isinstance(label, str) else "",
    )


def sanitize_graph(raw_nodes: Any, raw_edges: Any) -> tuple[list[Node], list[Edge]]:
    """Clean a whole graph.

    Unrepairable records and duplicate ids are dropped (first one wins), and
    so is every edge that references a node id not in the cleaned set.
    """
    nodes: dict[str, Node] = {}
    for i, raw in enumerate(raw_nodes if isinstance(raw_nodes, list) else []):
        node = sanitize_node(raw, i)
        if node is not None and node.id not in nodes:
            nodes[node.id] = node

    edges: dict[str, Edge] = {}
    dropped = 0
    for i, raw in enumerate(raw_edges if isinstance(raw_edges, list) else []):
        edge = sanitize_edge(raw, i)
        if edge is None or edge.source_id not in nodes or edge.target_id not in nodes:
            dropped += 1
            continue
        edges.setdefault(edge.id, edge)

    if dropped:
        logger.info("Dropped %d invalid or dangling edge(s) during sanitize", dropped)
    return list(nodes.values()), list(edges.values())
