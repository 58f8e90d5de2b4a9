from __future__ import annotations

from workflow_codegen.compiler.context import STATE, EmitContext, NodeEmission, PathState
from workflow_codegen.compiler.statements import Raw
from workflow_codegen.errors import InvalidExpression
from workflow_codegen.expr.python import render_literal
from workflow_codegen.schema.models import SetStateNode, TransformNode


def emit_transform(node: TransformNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    source = node.config.expression
    value = ctx.expression(source, path, node.id) if source.strip() else "{}"
    result = ctx.symbols.allocate("transform_result")
    return NodeEmission(statements=[Raw.of(f"{result} = {value}")], result=result)


def emit_set_state(node: SetStateNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    declared = ctx.graph.definition.state
    lines = []
    for assignment in node.config.assignments:
        if not assignment.expression.strip():
            continue
        if assignment.name not in declared:
            raise InvalidExpression(
                f"State variable '{assignment.name}' is not declared",
                expression=assignment.expression,
                node_id=node.id,
            )
        value = ctx.expression(assignment.expression, path, node.id)
        lines.append(f"{STATE}[{render_literal(assignment.name)}] = {value}")
    return NodeEmission(statements=[Raw(tuple(lines))] if lines else [])
