"""
Stage 3: Linearize the workflow graph into a nested statement tree.

The walk starts at the entry node and follows linear chains iteratively,
recursing into If arms, While bodies and guarded continuations. Each
reachable node is emitted once; only End may be reached along several paths
and only While headers may be re-entered, through their loop body.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Set

from workflow_codegen.compiler.context import WORKFLOW, EmitContext, NodeEmission, PathState
from workflow_codegen.compiler.statements import Branch, Guard, Loop, Return, Sequence
from workflow_codegen.emitters import emit_node
from workflow_codegen.errors import MalformedGraph
from workflow_codegen.schema.models import BranchTag, IfNode, Node, NodeKind, case_tag

logger = logging.getLogger(__name__)


class Linearizer:
    def __init__(self, ctx: EmitContext) -> None:
        self.ctx = ctx
        self.graph = ctx.graph
        self.emitted: Set[str] = set()

    def run(self) -> Sequence:
        body = Sequence()
        self.walk(self.graph.entry_id, PathState(), body)
        return body

    def walk(self, node_id: Optional[str], path: PathState, target: Sequence) -> None:
        while True:
            if node_id is None:
                target.append(Return(path.last_result or WORKFLOW))
                return

            if node_id in path.open_loops:
                if node_id == path.open_loops[-1]:
                    return
                raise MalformedGraph(
                    f"Node '{node_id}' is re-entered from inside a nested loop body; "
                    "only the innermost While may be continued",
                    node_id=node_id,
                )

            node = self.graph.node(node_id)
            self._mark_visited(node)
            logger.debug("linearizing node %s (%s)", node.id, node.kind)
            emission = emit_node(node, self.ctx, path)
            target.extend(emission.statements)

            if node.kind == NodeKind.end.value:
                return
            if isinstance(node, IfNode):
                self._branch(node, emission, path, target)
                return
            if node.kind == NodeKind.while_.value:
                loop = Loop(condition=emission.conditions[0])
                self.walk(
                    self.graph.successor(node.id, BranchTag.loop_body.value),
                    path.entering_loop(node.id),
                    loop.body,
                )
                target.append(loop)
                # Code after the loop sees the path as it was before the loop.
                node_id = self.graph.successor(node.id, BranchTag.loop_exit.value)
                continue
            if emission.guard is not None:
                self._guard(node, emission, path, target)
                return

            path = path.after(emission)
            node_id = self.graph.successor(node.id, BranchTag.none.value)

    def _mark_visited(self, node: Node) -> None:
        if node.kind == NodeKind.end.value:
            return
        if node.id in self.emitted:
            raise MalformedGraph(
                f"Node '{node.id}' is reached along more than one path; "
                "branches may only converge on an end node",
                node_id=node.id,
            )
        self.emitted.add(node.id)

    def _branch(self, node: IfNode, emission: NodeEmission, path: PathState, target: Sequence) -> None:
        arms = []
        for index, condition in enumerate(emission.conditions):
            body = Sequence()
            self.walk(self._case_target(node, index), path, body)
            arms.append((condition, body))
        orelse = Sequence()
        self.walk(self.graph.successor(node.id, BranchTag.false.value), path, orelse)
        target.append(Branch(arms=arms, orelse=orelse))

    def _case_target(self, node: IfNode, index: int) -> Optional[str]:
        target = self.graph.successor(node.id, case_tag(index))
        if target is None and index == 0 and len(node.config.cases) == 1:
            target = self.graph.successor(node.id, BranchTag.true.value)
        return target

    def _guard(self, node: Node, emission: NodeEmission, path: PathState, target: Sequence) -> None:
        guard = emission.guard
        continuation = Sequence()
        fallback = Sequence()

        if node.kind == NodeKind.user_approval.value:
            self.walk(self.graph.successor(node.id, BranchTag.approve.value), path.after(emission), continuation)
            reject = self.graph.successor(node.id, BranchTag.reject.value)
            if reject is not None and self.graph.node(reject).kind == NodeKind.end.value:
                # A rejected run ends with the raw workflow input.
                self.walk(reject, replace(path, last_result=None, guardrail_text=None), fallback)
            else:
                self.walk(reject, path, fallback)
        else:
            self.walk(self.graph.successor(node.id, BranchTag.none.value), path.after(emission), continuation)
            fallback.append(Return(guard.fallback_value or WORKFLOW))

        target.append(
            Guard(
                condition=guard.condition,
                continuation=continuation,
                fallback=fallback,
                continue_when=guard.continue_when,
            )
        )


def linearize(ctx: EmitContext) -> Sequence:
    return Linearizer(ctx).run()
