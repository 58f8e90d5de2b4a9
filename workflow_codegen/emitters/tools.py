"""
Emitters for tool-style nodes (function tools, file search, MCP) and the
module-scope tool declarations agents bind to.
"""

from __future__ import annotations

import keyword
from typing import Dict, List, Optional, Tuple

from workflow_codegen.compiler.context import (
    CLIENT,
    GUARDRAIL_CTX,
    Declaration,
    EmitContext,
    NodeEmission,
    PathState,
    Section,
)
from workflow_codegen.compiler.graph import WorkflowGraph
from workflow_codegen.compiler.statements import Raw
from workflow_codegen.emitters.literals import format_call, format_literal
from workflow_codegen.errors import MalformedGraph
from workflow_codegen.expr.python import render_literal
from workflow_codegen.schema.jsonschema_adapter import check_schema, python_type_name
from workflow_codegen.schema.models import (
    AgentNode,
    FileSearchNode,
    FunctionToolDefinition,
    FunctionToolNode,
    McpToolNode,
    WebSearchToolDefinition,
)

SHARED_CLIENT_IMPORTS = [("openai", "AsyncOpenAI"), ("types", "SimpleNamespace")]


def shared_client_declaration() -> Declaration:
    return Declaration(
        key="shared_client",
        section=Section.clients,
        lines=(
            f"{CLIENT} = AsyncOpenAI()",
            f"{GUARDRAIL_CTX} = SimpleNamespace(guardrail_llm={CLIENT})",
        ),
    )


# -----------------------------
# Function tools
# -----------------------------
def _definition_key(definition: FunctionToolDefinition) -> Tuple[Optional[str], str]:
    return definition.description, repr(sorted(definition.parameters.items()))


def collect_function_tools(graph: WorkflowGraph) -> Dict[str, FunctionToolDefinition]:
    """
    Gather every function tool the workflow defines, from FunctionTool nodes
    and from agent tool lists, in node order. One name maps to one signature.
    """

    tools: Dict[str, FunctionToolDefinition] = {}
    for node in graph.definition.nodes:
        candidates: List[FunctionToolDefinition] = []
        if isinstance(node, FunctionToolNode):
            candidates.append(FunctionToolDefinition(
                name=node.config.name,
                description=node.config.description,
                parameters=node.config.parameters,
            ))
        elif isinstance(node, AgentNode):
            candidates.extend(
                tool for tool in node.config.tools if isinstance(tool, FunctionToolDefinition)
            )
        for tool in candidates:
            existing = tools.get(tool.name)
            if existing is None:
                check_schema(tool.parameters or {"type": "object"}, context=f"{node.id}.{tool.name}.parameters")
                tools[tool.name] = tool
            elif _definition_key(existing) != _definition_key(tool):
                raise MalformedGraph(
                    f"Function tool '{tool.name}' is defined with different signatures",
                    node_id=node.id,
                )
    return tools


def _tool_parameters(tool: FunctionToolDefinition) -> List[Tuple[str, str, bool]]:
    properties = tool.parameters.get("properties") or {}
    required = set(tool.parameters.get("required") or [])
    params = []
    for name, schema in properties.items():
        if not name.isidentifier() or keyword.iskeyword(name):
            raise MalformedGraph(f"Function tool '{tool.name}' has invalid parameter name '{name}'")
        params.append((name, python_type_name(schema), name in required))
    # Parameters with defaults must follow the required ones.
    return [p for p in params if p[2]] + [p for p in params if not p[2]]


def function_tool_declaration(tool: FunctionToolDefinition, unit: str) -> Declaration:
    signature = ", ".join(
        f"{name}: {annotation}" if is_required else f"{name}: {annotation} = None"
        for name, annotation, is_required in _tool_parameters(tool)
    )
    lines = [f"def {tool.name}({signature}):"]
    if tool.description:
        lines.append(f"{unit}{render_literal(tool.description)}")
    lines.append(f"{unit}pass")
    lines.append("")
    return Declaration(key=f"function_tool:{tool.name}", section=Section.tools, lines=tuple(lines))


def function_tool_imports(tool: FunctionToolDefinition) -> List[Tuple[str, str]]:
    if any(annotation == "Any" for _, annotation, _ in _tool_parameters(tool)):
        return [("typing", "Any")]
    return []


def emit_function_tool(node: FunctionToolNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    tool = ctx.function_tools[node.config.name]
    parameter_names = {name for name, _, _ in _tool_parameters(tool)}

    arguments = []
    for name, source in node.config.arguments.items():
        if name not in parameter_names:
            raise MalformedGraph(
                f"Function tool '{tool.name}' has no parameter '{name}'", node_id=node.id
            )
        arguments.append(f"{name}={ctx.expression(source, path, node.id)}")

    result = ctx.symbols.allocate("function_tool_result")
    call = f"{tool.name}({', '.join(arguments)})"
    return NodeEmission(
        statements=[Raw.of(f"{result} = {{\"output\": {call}}}")],
        result=result,
        declarations=[function_tool_declaration(tool, ctx.indent)],
        imports=function_tool_imports(tool),
    )


def web_search_declaration(symbol: str, tool: WebSearchToolDefinition, unit: str) -> Declaration:
    call = format_call(
        "WebSearchTool",
        [
            ("search_context_size", render_literal(tool.search_context_size)),
            ("user_location", format_literal(tool.user_location, unit)),
        ],
        unit,
    )
    lines = f"{symbol} = {call}".split("\n")
    return Declaration(key=f"web_search:{symbol}", section=Section.tools, lines=tuple(lines))


# -----------------------------
# File search
# -----------------------------
def emit_file_search(node: FileSearchNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    unit = ctx.indent
    config = node.config
    limit = config.max_results or ctx.settings.file_search_max_results
    result = ctx.symbols.allocate("filesearch_result")

    search = (
        f"(await {CLIENT}.vector_stores.search("
        f"vector_store_id={render_literal(config.vector_store_id)}, "
        f"query={render_literal(config.query)}, "
        f"max_num_results={limit})).data"
    )
    lines = (
        f"{result} = {{\"results\": [",
        f"{unit}{{",
        f"{unit}{unit}\"id\": result.file_id,",
        f"{unit}{unit}\"filename\": result.filename,",
        f"{unit}{unit}\"score\": result.score,",
        f"{unit}}} for result in {search}",
        "]}",
    )
    return NodeEmission(
        statements=[Raw(lines)],
        result=result,
        imports=list(SHARED_CLIENT_IMPORTS),
        declarations=[shared_client_declaration()],
    )


# -----------------------------
# MCP
# -----------------------------
def _auth_headers(node: McpToolNode) -> Dict[str, str]:
    auth = node.config.auth
    headers: Dict[str, str] = {}
    if auth.type == "api_key" and auth.api_key:
        headers["Authorization"] = f"Api-Key {auth.api_key}"
    elif auth.type == "bearer" and auth.bearer_token:
        headers["Authorization"] = f"Bearer {auth.bearer_token}"
    elif auth.type == "custom":
        headers.update(auth.headers)
    return headers


def emit_mcp_tool(node: McpToolNode, ctx: EmitContext, path: PathState) -> NodeEmission:
    unit = ctx.indent
    config = node.config
    transport = ctx.symbols.allocate("mcp_transport")
    client = ctx.symbols.allocate("mcp_client")

    if config.transport == "stdio":
        transport_class = "StdioClientTransport"
        comment = "# MCP Client initialization (stdio)"
        transport_args = [
            ("command", render_literal(config.command)),
            ("args", format_literal(list(config.args), unit)),
        ]
    else:
        transport_class = "SSEClientTransport"
        comment = "# MCP Client initialization (HTTP/SSE)"
        transport_args = [("url", render_literal(config.url))]
        headers = _auth_headers(node)
        if headers:
            transport_args.append(("headers", format_literal(headers, unit)))

    lines: List[str] = [comment]
    lines.extend(f"{transport} = {format_call(transport_class, transport_args, unit)}".split("\n"))
    lines.append(f"{client} = Client(transport={transport})")
    lines.append(f"await {client}.initialize()")

    for call in config.calls:
        call_result = ctx.symbols.allocate("mcp_result")
        invocation = format_call(
            f"await {client}.call_tool",
            [
                ("name", render_literal(call.tool)),
                ("arguments", format_literal(dict(call.arguments), unit)),
            ],
            unit,
        )
        lines.append("")
        lines.append("# Call MCP tool")
        lines.extend(f"{call_result} = {invocation}".split("\n"))

    lines.append("")
    lines.append("# Close connection")
    lines.append(f"await {client}.close()")

    return NodeEmission(
        statements=[Raw(tuple(lines))],
        imports=[("mcp.client", "Client"), ("mcp.client", transport_class)],
    )
