"""
Emitters for the control nodes: start, end, if, while and user approval.

Branching itself is assembled by the linearizer; these emitters only supply
the compiled conditions and the statements that run at the node.
"""

from __future__ import annotations

from typing import Any, Dict, List

from workflow_codegen.compiler.context import (
    HISTORY,
    STATE,
    WORKFLOW,
    WORKFLOW_INPUT,
    Declaration,
    EmitContext,
    GuardSpec,
    NodeEmission,
    PathState,
    Section,
)
from workflow_codegen.compiler.statements import Raw, Return
from workflow_codegen.emitters.literals import PyExpr, assignment, format_literal
from workflow_codegen.expr.python import render_literal
from workflow_codegen.schema.jsonschema_adapter import check_schema
from workflow_codegen.schema.models import (
    EndNode,
    IfNode,
    StartNode,
    StateType,
    UserApprovalNode,
    WhileNode,
)


def emit_start(node: StartNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    unit = ctx.indent
    definition = ctx.graph.definition

    initial: Dict[str, Any] = {}
    for name, declaration in definition.state.items():
        if declaration.type == StateType.list:
            initial[name] = []
        else:
            initial[name] = declaration.default

    history = [
        {
            "role": "user",
            "content": [
                {
                    "type": "input_text",
                    "text": PyExpr(f"{WORKFLOW}[{render_literal(definition.input_text_field)}]"),
                }
            ],
        }
    ]

    statements = [
        Raw(assignment(STATE, format_literal(initial, unit))),
        Raw.of(f"{WORKFLOW} = {WORKFLOW_INPUT}.model_dump()"),
        Raw(assignment(f"{HISTORY}: list[TResponseInputItem]", format_literal(history, unit))),
    ]
    return NodeEmission(statements=statements, imports=[("agents", "TResponseInputItem")])


def emit_end(node: EndNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    config = node.config
    if not config.output and not config.output_schema:
        return NodeEmission(statements=[Return(path.last_result or WORKFLOW)])

    record: Dict[str, Any] = {}
    if config.output_schema:
        check_schema(config.output_schema, context=f"{node.id}.output_schema")
        properties = config.output_schema.get("properties") or {}
        for key in properties:
            record[key] = None
    for key, source in config.output.items():
        record[key] = PyExpr(ctx.expression(source, path, node.id))

    result = ctx.symbols.allocate("end_result")
    return NodeEmission(
        statements=[Raw(assignment(result, format_literal(record, ctx.indent))), Return(result)],
        result=result,
    )


def emit_if(node: IfNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    conditions: List[str] = [ctx.expression(case.condition, path, node.id) for case in node.config.cases]
    return NodeEmission(conditions=conditions)


def emit_while(node: WhileNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    return NodeEmission(conditions=[ctx.expression(node.config.condition, path, node.id)])


def emit_user_approval(node: UserApprovalNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    unit = ctx.indent
    stub = ctx.symbols.allocate("approval_request")
    message = ctx.symbols.allocate("approval_message")

    declaration = Declaration(
        key=f"approval:{node.id}",
        section=Section.tools,
        lines=(
            f"def {stub}(message: str):",
            f"{unit}# Replace with a real approval prompt; approves by default.",
            f"{unit}return True",
            "",
        ),
    )
    return NodeEmission(
        statements=[Raw.of(f"{message} = {render_literal(node.config.message)}", "")],
        declarations=[declaration],
        guard=GuardSpec(condition=f"{stub}({message})", continue_when=True),
    )
