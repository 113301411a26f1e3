"""
Editor session: the one authoritative copy of a diagram.

Holds the node and edge collections, the gesture session (which owns the
viewport), the clipboard and the paste counter.  Geometry functions work on
snapshots of these collections; the session commits what they return.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from flowgeom.interaction import InteractionSession
from flowgeom.models import Edge, Node, PathType, Viewport, index_nodes, new_id
from flowgeom.ports import ConnectionRequest
from flowgeom.viewport import DetailLevel


@dataclass
class DiagramSession:
    name: str
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    frame_width: float = 1280
    frame_height: float = 720
    interaction: InteractionSession = field(default_factory=InteractionSession)
    detail: DetailLevel = field(default_factory=DetailLevel)
    clipboard_nodes: list[Node] = field(default_factory=list)
    clipboard_edges: list[Edge] = field(default_factory=list)
    paste_count: int = 0
    default_path_type: PathType = PathType.BEZIER

    # -- lookups ------------------------------------------------------------

    @property
    def viewport(self) -> Viewport:
        return self.interaction.viewport

    def set_viewport(self, viewport: Viewport) -> None:
        self.interaction.viewport = viewport
        self.detail = self.detail.update(viewport.zoom)

    def node_index(self) -> dict[str, Node]:
        return index_nodes(self.nodes)

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.node_index().get(node_id)

    def lane_count(self) -> int:
        return max((n.lane for n in self.nodes), default=1)

    # -- commits ------------------------------------------------------------

    def add_node(self, node: Node) -> Node:
        self.nodes.append(node)
        return node

    def replace_nodes(self, nodes: Iterable[Node]) -> None:
        """Commit updated node records, matched by id; order is preserved."""
        updated = {n.id: n for n in nodes}
        self.nodes = [updated.get(n.id, n) for n in self.nodes]

    def connect(self, request: ConnectionRequest, label: str = "",
                path_type: Optional[PathType] = None) -> Edge:
        edge = Edge(
            id=new_id("edge"),
            source_id=request.source_id,
            target_id=request.target_id,
            source_port=request.source_port,
            target_port=request.target_port,
            path_type=path_type or self.default_path_type,
            label=label,
        )
        self.edges.append(edge)
        return edge

    def delete_nodes(self, node_ids: Iterable[str]) -> tuple[int, int]:
        """Remove nodes and every edge touching them.  Returns (nodes, edges) removed."""
        doomed = set(node_ids)
        before_nodes, before_edges = len(self.nodes), len(self.edges)
        self.nodes = [n for n in self.nodes if n.id not in doomed]
        self.edges = [
            e for e in self.edges
            if e.source_id not in doomed and e.target_id not in doomed
        ]
        return before_nodes - len(self.nodes), before_edges - len(self.edges)

    def set_path_type(self, edge_ids: Iterable[str], path_type: PathType) -> int:
        wanted = set(edge_ids)
        changed = 0
        edges: list[Edge] = []
        for edge in self.edges:
            if edge.id in wanted and edge.path_type is not path_type:
                edge = replace(edge, path_type=path_type)
                changed += 1
            edges.append(edge)
        self.edges = edges
        return changed

    # -- clipboard ----------------------------------------------------------

    def copy(self, node_ids: Iterable[str]) -> int:
        """Copy nodes plus the edges running between them.  Returns the node count."""
        wanted = set(node_ids)
        selected = [n for n in self.nodes if n.id in wanted]
        if not selected:
            return 0
        self.clipboard_nodes = selected
        self.clipboard_edges = [
            e for e in self.edges if e.source_id in wanted and e.target_id in wanted
        ]
        return len(selected)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "viewport": self.viewport.to_dict(),
            "frame": {"width": self.frame_width, "height": self.frame_height},
        }
