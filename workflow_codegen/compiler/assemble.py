"""
Stage 4: Assemble imports, global declarations, the input model and the
entrypoint body into the final module text.
"""

from __future__ import annotations

import keyword
import logging
from typing import Dict, List

from shared.config import CodegenSettings
from workflow_codegen.compiler.context import (
    CLIENT,
    GUARDRAIL_CTX,
    HISTORY,
    SECTION_HEADERS,
    STATE,
    WORKFLOW,
    WORKFLOW_INPUT,
    Declaration,
    EmitContext,
    Import,
    Section,
)
from workflow_codegen.compiler.graph import WorkflowGraph
from workflow_codegen.compiler.linearize import linearize
from workflow_codegen.compiler.render import CodeWriter, render_statements
from workflow_codegen.compiler.statements import Sequence
from workflow_codegen.compiler.symbols import SymbolTable
from workflow_codegen.emitters.guardrails import HELPER_NAMES
from workflow_codegen.emitters.tools import collect_function_tools
from workflow_codegen.errors import InvalidSchema, MalformedGraph
from workflow_codegen.schema.jsonschema_adapter import python_type_name

logger = logging.getLogger(__name__)

RUNTIME_NAMES = (
    "Agent",
    "ModelSettings",
    "TResponseInputItem",
    "Runner",
    "WebSearchTool",
    "function_tool",
    "Reasoning",
    "BaseModel",
    "AsyncOpenAI",
    "SimpleNamespace",
    "load_config_bundle",
    "instantiate_guardrails",
    "run_guardrails",
    "Client",
    "SSEClientTransport",
    "StdioClientTransport",
    "Any",
)

# Comprehension variables used inside generated statements.
LOCAL_NAMES = ("result", "item")

BASE_IMPORTS: List[Import] = [("pydantic", "BaseModel"), ("agents", "TResponseInputItem")]


def reserved_names(settings: CodegenSettings) -> List[str]:
    return [
        WORKFLOW,
        STATE,
        HISTORY,
        WORKFLOW_INPUT,
        CLIENT,
        GUARDRAIL_CTX,
        settings.entrypoint_name,
        settings.input_class_name,
        *RUNTIME_NAMES,
        *HELPER_NAMES,
        *LOCAL_NAMES,
    ]


def build_context(graph: WorkflowGraph, settings: CodegenSettings) -> EmitContext:
    reserved = reserved_names(settings)
    symbols = SymbolTable(reserved)
    tools = collect_function_tools(graph)
    for name in tools:
        if name in reserved or keyword.iskeyword(name):
            raise MalformedGraph(f"Function tool name '{name}' clashes with a generated name")
        symbols.reserve(name)
    return EmitContext(graph=graph, settings=settings, symbols=symbols, function_tools=tools)


def generate_source(graph: WorkflowGraph, settings: CodegenSettings) -> str:
    ctx = build_context(graph, settings)
    body = linearize(ctx)
    source = assemble_module(ctx, body)
    logger.info(
        "compiled workflow %s: %d nodes, %d symbols, %d declarations",
        graph.definition.name or graph.entry_id,
        len(graph.nodes),
        len(ctx.symbols.allocated()),
        len(ctx.module.declarations),
    )
    return source


def _input_class(ctx: EmitContext) -> List[str]:
    unit = ctx.indent
    schema = ctx.graph.definition.input_schema
    properties = schema.get("properties") or {}
    required_names = set(schema.get("required") or [])

    lines = [f"class {ctx.settings.input_class_name}(BaseModel):"]
    for name, property_schema in properties.items():
        if not name.isidentifier() or keyword.iskeyword(name) or name.startswith("_"):
            raise InvalidSchema(f"input_schema: property '{name}' cannot be used as a model field")
        annotation = python_type_name(property_schema)
        if annotation == "Any":
            ctx.module.add_import("typing", "Any")
        if name in required_names:
            lines.append(f"{unit}{name}: {annotation}")
        else:
            lines.append(f"{unit}{name}: {annotation} | None = None")
    if len(lines) == 1:
        lines.append(f"{unit}pass")
    return lines


def _import_lines(imports: List[Import]) -> List[str]:
    grouped: Dict[str, List[str]] = {}
    for module, name in imports:
        names = grouped.setdefault(module, [])
        if name not in names:
            names.append(name)
    return [f"from {module} import {', '.join(names)}" for module, names in grouped.items()]


def _defines_block(lines: List[str]) -> bool:
    return any(line.startswith(("def ", "async def ", "class ", "@")) for line in lines)


def _declaration_lines(declarations: List[Declaration]) -> List[str]:
    """One blank line between declarations, two around functions and classes."""
    lines: List[str] = []
    previous: List[str] = []
    for declaration in declarations:
        current = list(declaration.lines)
        while current and not current[-1].strip():
            current.pop()
        if lines:
            lines.extend([""] * (2 if _defines_block(previous) or _defines_block(current) else 1))
        lines.extend(current)
        previous = current
    lines.append("")
    return lines


def assemble_module(ctx: EmitContext, body: Sequence) -> str:
    settings = ctx.settings
    input_class = _input_class(ctx)

    for module, name in BASE_IMPORTS:
        ctx.module.add_import(module, name)

    lines: List[str] = _import_lines(ctx.module.imports)
    lines.append("")

    for section in Section:
        declarations = ctx.module.section(section)
        if not declarations:
            continue
        header = SECTION_HEADERS[section]
        if header:
            lines.append(header)
        lines.extend(_declaration_lines(declarations))

    lines.extend(input_class)
    lines.extend(["", ""])
    lines.append("# Main code entrypoint")
    lines.append(
        f"async def {settings.entrypoint_name}({WORKFLOW_INPUT}: {settings.input_class_name}):"
    )
    writer = CodeWriter(unit=ctx.indent, indent=1)
    render_statements(body, writer)
    if not any(line.strip() for line in writer.lines()):
        writer.writeln("pass")
    lines.extend(writer.lines())

    return "\n".join(line.rstrip() for line in lines) + "\n"
