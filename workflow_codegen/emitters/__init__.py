"""
Closed registry of node emitters, one per node kind.
"""

from __future__ import annotations

from typing import Callable, Dict

from workflow_codegen.compiler.context import EmitContext, NodeEmission, PathState
from workflow_codegen.emitters.agent import emit_agent
from workflow_codegen.emitters.data import emit_set_state, emit_transform
from workflow_codegen.emitters.flow import (
    emit_end,
    emit_if,
    emit_start,
    emit_user_approval,
    emit_while,
)
from workflow_codegen.emitters.guardrails import emit_guardrail
from workflow_codegen.emitters.tools import emit_file_search, emit_function_tool, emit_mcp_tool
from workflow_codegen.errors import UnknownNodeKind
from workflow_codegen.schema.models import Node, NodeKind

Emitter = Callable[[Node, EmitContext, PathState], NodeEmission]

EMITTERS: Dict[NodeKind, Emitter] = {
    NodeKind.start: emit_start,
    NodeKind.end: emit_end,
    NodeKind.agent: emit_agent,
    NodeKind.function_tool: emit_function_tool,
    NodeKind.transform: emit_transform,
    NodeKind.set_state: emit_set_state,
    NodeKind.if_: emit_if,
    NodeKind.while_: emit_while,
    NodeKind.user_approval: emit_user_approval,
    NodeKind.file_search: emit_file_search,
    NodeKind.mcp_tool: emit_mcp_tool,
    NodeKind.guardrail: emit_guardrail,
}

_missing = [kind.value for kind in NodeKind if kind not in EMITTERS]
if _missing:
    raise RuntimeError(f"No emitter registered for node kinds: {', '.join(_missing)}")


def emitter_for(node: Node) -> Emitter:
    try:
        return EMITTERS[NodeKind(node.kind)]
    except (KeyError, ValueError) as exc:
        raise UnknownNodeKind(str(node.kind), node_id=node.id) from exc


def emit_node(node: Node, ctx: EmitContext, path: PathState) -> NodeEmission:
    emission = emitter_for(node)(node, ctx, path)
    ctx.module.absorb(emission)
    return emission


__all__ = ["EMITTERS", "Emitter", "emit_node", "emitter_for"]
