"""
Structural re-validation of a parsed workflow graph.

Every problem is collected first and reported in one MalformedGraph so the
editor can surface all offending nodes and edges at once. The graph is never
repaired.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from typing import Dict, List, Set

from workflow_codegen.compiler.graph import WorkflowGraph
from workflow_codegen.errors import MalformedGraph
from workflow_codegen.schema.jsonschema_adapter import check_schema
from workflow_codegen.schema.models import (
    BranchTag,
    IfNode,
    Node,
    NodeKind,
    case_tag,
)

logger = logging.getLogger(__name__)

_LINEAR_KINDS = {
    NodeKind.start.value,
    NodeKind.agent.value,
    NodeKind.function_tool.value,
    NodeKind.transform.value,
    NodeKind.set_state.value,
    NodeKind.file_search.value,
    NodeKind.mcp_tool.value,
    NodeKind.guardrail.value,
}


def validate_graph(graph: WorkflowGraph) -> None:
    problems: List[str] = []
    definition = graph.definition

    entry = graph.nodes.get(graph.entry_id)
    if entry is None:
        problems.append(f"Entry node '{graph.entry_id}' does not exist")
    elif entry.kind != NodeKind.start.value:
        problems.append(f"Entry node '{entry.id}' must be a start node, found '{entry.kind}'")

    if definition.input_text_field not in definition.input_fields():
        problems.append(
            f"input_text_field '{definition.input_text_field}' is not declared in input_schema"
        )

    for edge in definition.edges:
        if edge.source not in graph.nodes:
            problems.append(f"Edge {edge.describe()} starts at unknown node '{edge.source}'")
        if edge.target not in graph.nodes:
            problems.append(f"Edge {edge.describe()} points to unknown node '{edge.target}'")

    for node in definition.nodes:
        problems.extend(_check_branch_tags(node, graph))

    if entry is not None:
        reachable = _reachable_from(graph, entry.id)
        for node in definition.nodes:
            if node.id not in reachable:
                problems.append(f"Node '{node.id}' is not reachable from entry node '{entry.id}'")

    problems.extend(_find_unlabeled_cycles(graph))

    if problems:
        logger.debug("workflow graph rejected with %d problem(s)", len(problems))
        raise MalformedGraph(problems)

    check_schema(definition.input_schema, context="input_schema")


def required_branch_tags(node: Node) -> Set[str]:
    """Branch tags a node's outgoing edges must cover exactly."""

    if node.kind == NodeKind.end.value:
        return set()
    if node.kind in _LINEAR_KINDS:
        return {BranchTag.none.value}
    if node.kind == NodeKind.while_.value:
        return {BranchTag.loop_body.value, BranchTag.loop_exit.value}
    if node.kind == NodeKind.user_approval.value:
        return {BranchTag.approve.value, BranchTag.reject.value}
    if isinstance(node, IfNode):
        tags = {case_tag(index) for index in range(len(node.config.cases))}
        tags.add(BranchTag.false.value)
        return tags
    raise MalformedGraph(f"Node '{node.id}' has unsupported kind '{node.kind}'", node_id=node.id)


def _check_branch_tags(node: Node, graph: WorkflowGraph) -> List[str]:
    problems: List[str] = []
    edges = graph.edges_from(node.id)
    tags = [_normalized_tag(node, edge.branch) for edge in edges]

    for tag, count in sorted(Counter(tags).items()):
        if count > 1:
            problems.append(f"Node '{node.id}' has {count} outgoing edges tagged '{tag}'")

    if isinstance(node, IfNode) and not node.config.cases:
        problems.append(f"If node '{node.id}' has no cases")
        return problems

    required = required_branch_tags(node)
    present = set(tags)

    # Linear chains may dangle; the walk returns at their last node.
    if node.kind in _LINEAR_KINDS and not present:
        return problems

    for tag in sorted(required - present):
        problems.append(f"Node '{node.id}' ({node.kind}) is missing an outgoing '{tag}' edge")
    for edge in edges:
        if _normalized_tag(node, edge.branch) not in required:
            problems.append(f"Edge {edge.describe()} has tag '{edge.branch}' not valid for {node.kind} node")
    return problems


def _normalized_tag(node: Node, tag: str) -> str:
    # A single-case If may label its case edge 'true'.
    if isinstance(node, IfNode) and len(node.config.cases) == 1 and tag == BranchTag.true.value:
        return case_tag(0)
    return tag


def _reachable_from(graph: WorkflowGraph, start: str) -> Set[str]:
    seen: Set[str] = {start}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for edge in graph.edges_from(current):
            if edge.target in graph.nodes and edge.target not in seen:
                seen.add(edge.target)
                queue.append(edge.target)
    return seen


def _find_unlabeled_cycles(graph: WorkflowGraph) -> List[str]:
    """Cycles left once every loopBody edge is removed are not sanctioned."""

    white, grey, black = 0, 1, 2
    color: Dict[str, int] = {node_id: white for node_id in graph.nodes}
    problems: List[str] = []

    def successors(node_id: str) -> List[str]:
        return [
            edge.target
            for edge in graph.edges_from(node_id)
            if edge.branch != BranchTag.loop_body.value and edge.target in graph.nodes
        ]

    for root in graph.nodes:
        if color[root] != white:
            continue
        stack = [(root, iter(successors(root)))]
        path = [root]
        color[root] = grey
        while stack:
            node_id, children = stack[-1]
            advanced = False
            for child in children:
                if color[child] == grey:
                    cycle = path[path.index(child):] + [child]
                    problems.append("Unlabeled cycle: " + " -> ".join(cycle))
                elif color[child] == white:
                    color[child] = grey
                    stack.append((child, iter(successors(child))))
                    path.append(child)
                    advanced = True
                    break
            if not advanced:
                color[node_id] = black
                stack.pop()
                path.pop()
    return problems
