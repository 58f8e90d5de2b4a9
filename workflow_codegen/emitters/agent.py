"""
Agent node emission: the hoisted ``Agent(...)`` declaration, optional output
schema classes, and the call site that runs the agent over the conversation.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from workflow_codegen.compiler.context import (
    HISTORY,
    Declaration,
    EmitContext,
    Import,
    NodeEmission,
    PathState,
    Section,
)
from workflow_codegen.compiler.statements import Raw
from workflow_codegen.emitters.literals import (
    PyExpr,
    assignment,
    format_call,
    format_literal,
)
from workflow_codegen.emitters.tools import (
    function_tool_declaration,
    function_tool_imports,
    web_search_declaration,
)
from workflow_codegen.errors import InvalidSchema
from workflow_codegen.expr.python import render_literal
from workflow_codegen.schema.jsonschema_adapter import check_schema, python_type_name
from workflow_codegen.schema.models import (
    AgentConfig,
    AgentNode,
    FunctionToolDefinition,
    JsonSchema,
    WebSearchToolDefinition,
)


def _pascal(text: str) -> str:
    words = "".join(char if char.isalnum() else " " for char in text).split()
    name = "".join(word[:1].upper() + word[1:] for word in words)
    if not name or not name[0].isalpha():
        name = f"Agent{name}"
    return name


class _SchemaClassBuilder:
    """Turns a JSON object schema into pydantic model class declarations."""

    def __init__(self, unit: str, context: str) -> None:
        self.unit = unit
        self.context = context
        self.classes: List[Tuple[str, ...]] = []
        self.needs_any = False

    def build(self, class_name: str, schema: JsonSchema) -> str:
        properties = schema.get("properties") or {}
        required = set(schema.get("required") or [])
        fields: List[str] = []
        for field_name, field_schema in properties.items():
            if not field_name.isidentifier() or field_name.startswith("_"):
                raise InvalidSchema(
                    f"{self.context}: property '{field_name}' cannot be used as a model field"
                )
            annotation = self.annotation(f"{class_name}__{_pascal(field_name)}", field_schema)
            if field_name in required:
                fields.append(f"{self.unit}{field_name}: {annotation}")
            else:
                fields.append(f"{self.unit}{field_name}: {annotation} | None = None")
        if not fields:
            fields.append(f"{self.unit}pass")
        self.classes.append((f"class {class_name}(BaseModel):", *fields, "", ""))
        return class_name

    def annotation(self, nested_name: str, schema: Any) -> str:
        if isinstance(schema, dict):
            if schema.get("type") == "object" and schema.get("properties"):
                return self.build(nested_name, schema)
            if schema.get("type") == "array":
                items = schema.get("items")
                if isinstance(items, dict):
                    return f"list[{self.annotation(nested_name, items)}]"
                return "list"
        name = python_type_name(schema)
        if name == "Any":
            self.needs_any = True
        return name


def _reasoning(config: AgentConfig, ctx: EmitContext) -> Optional[str]:
    effort = config.reasoning.effort or ctx.settings.default_reasoning_effort
    summary = config.reasoning.summary or ctx.settings.default_reasoning_summary
    arguments = []
    if effort:
        arguments.append(("effort", render_literal(effort)))
    if summary:
        arguments.append(("summary", render_literal(summary)))
    if not arguments:
        return None
    return format_call("Reasoning", arguments, ctx.indent)


def emit_agent(node: AgentNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    unit = ctx.indent
    config = node.config
    imports: List[Import] = [("agents", "Agent"), ("agents", "ModelSettings"), ("agents", "Runner")]
    declarations: List[Declaration] = []

    agent = ctx.symbols.allocate("agent")

    # Tools bound to the agent.
    tool_sources: List[str] = []
    for tool in config.tools:
        if isinstance(tool, FunctionToolDefinition):
            definition = ctx.function_tools[tool.name]
            declarations.append(function_tool_declaration(definition, unit))
            imports.extend(function_tool_imports(definition))
            imports.append(("agents", "function_tool"))
            tool_sources.append(f"function_tool({definition.name})")
        elif isinstance(tool, WebSearchToolDefinition):
            symbol = ctx.symbols.allocate("web_search_preview")
            declarations.append(web_search_declaration(symbol, tool, unit))
            imports.append(("agents", "WebSearchTool"))
            tool_sources.append(symbol)

    # Structured output.
    output_class: Optional[str] = None
    schema_classes: List[str] = []
    output_format = config.output_format
    if output_format.type == "json_schema" and output_format.json_schema:
        check_schema(output_format.json_schema, context=f"{node.id}.output_format.schema")
        builder = _SchemaClassBuilder(unit, context=f"{node.id}.output_format.schema")
        output_class = builder.build(
            ctx.symbols.allocate(f"{_pascal(config.name)}Schema"), output_format.json_schema
        )
        for lines in builder.classes:
            schema_classes.extend(lines)
        if builder.needs_any:
            imports.append(("typing", "Any"))

    settings_args: List[Tuple[Optional[str], str]] = []
    if tool_sources:
        settings_args.append(("parallel_tool_calls", render_literal(config.parallel_tool_calls)))
    settings_args.append(("store", render_literal(config.store)))
    reasoning = _reasoning(config, ctx)
    if reasoning is not None:
        imports.append(("openai.types.shared.reasoning", "Reasoning"))
        settings_args.append(("reasoning", reasoning))

    agent_args: List[Tuple[Optional[str], str]] = [
        ("name", render_literal(config.name)),
        ("instructions", render_literal(config.instructions)),
        ("model", render_literal(config.model or ctx.settings.default_model)),
    ]
    if tool_sources:
        agent_args.append(("tools", format_literal([PyExpr(source) for source in tool_sources], unit)))
    if output_class is not None:
        agent_args.append(("output_type", output_class))
    agent_args.append(("model_settings", format_call("ModelSettings", settings_args, unit)))

    declaration_lines = list(schema_classes)
    declaration_lines.extend(assignment(agent, format_call("Agent", agent_args, unit)))
    declaration_lines.extend(["", ""])
    declarations.append(Declaration(key=f"agent:{node.id}", section=Section.agents, lines=tuple(declaration_lines)))

    # Call site.
    temp = ctx.symbols.allocate(f"{agent}_result_temp")
    result = ctx.symbols.allocate(f"{agent}_result")

    run_input: List[Any] = [PyExpr(f"*{HISTORY}")]
    for message in config.messages:
        item: Dict[str, Any] = {
            "role": message.role,
            "content": [{"type": part.type, "text": part.text} for part in message.content],
        }
        if message.id is not None:
            item["id"] = message.id
        run_input.append(item)

    call = format_call(
        "await Runner.run",
        [(None, agent), ("input", format_literal(run_input, unit))],
        unit,
    )
    if output_class is not None:
        record = {
            "output_text": PyExpr(f"{temp}.final_output.model_dump_json()"),
            "output_parsed": PyExpr(f"{temp}.final_output.model_dump()"),
        }
    else:
        record = {"output_text": PyExpr(f"{temp}.final_output_as(str)")}

    lines: List[str] = list(assignment(temp, call))
    lines.append("")
    lines.append(f"{HISTORY}.extend([item.to_input_item() for item in {temp}.new_items])")
    lines.append("")
    lines.extend(assignment(result, format_literal(record, unit)))

    return NodeEmission(
        statements=[Raw(tuple(lines))],
        result=result,
        imports=imports,
        declarations=declarations,
    )
