"""
Id-indexed arena over a WorkflowDefinition.

Nodes and edges are stored by id; edges never hold node objects, so While
back-edges need no special ownership handling.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from workflow_codegen.errors import MalformedGraph
from workflow_codegen.schema.models import Edge, Node, WorkflowDefinition


@dataclass(frozen=True)
class WorkflowGraph:
    definition: WorkflowDefinition
    nodes: Dict[str, Node]
    outgoing: Dict[str, List[Edge]]

    @classmethod
    def build(cls, definition: WorkflowDefinition) -> "WorkflowGraph":
        nodes: Dict[str, Node] = {}
        duplicates: List[str] = []
        for node in definition.nodes:
            if node.id in nodes:
                duplicates.append(f"Duplicate node id '{node.id}'")
            nodes[node.id] = node
        if duplicates:
            raise MalformedGraph(duplicates)

        outgoing: Dict[str, List[Edge]] = {node_id: [] for node_id in nodes}
        for edge in definition.edges:
            outgoing.setdefault(edge.source, []).append(edge)
        return cls(definition=definition, nodes=nodes, outgoing=outgoing)

    @property
    def entry_id(self) -> str:
        return self.definition.entry_node_id

    def node(self, node_id: str) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError as exc:
            raise MalformedGraph(f"Unknown node id '{node_id}'", node_id=node_id) from exc

    def edges_from(self, node_id: str) -> List[Edge]:
        return list(self.outgoing.get(node_id, []))

    def edge(self, node_id: str, branch: str) -> Optional[Edge]:
        for edge in self.outgoing.get(node_id, []):
            if edge.branch == branch:
                return edge
        return None

    def successor(self, node_id: str, branch: str) -> Optional[str]:
        edge = self.edge(node_id, branch)
        return edge.target if edge is not None else None
