"""
Pydantic models describing the workflow graph handed over by the editor.

Nodes form a closed discriminated union on ``kind`` so that every consumer
(validator, linearizer, emitter registry) deals with a fixed set of variants.
Edges refer to nodes by id only; see ``compiler.graph`` for the arena built on
top of these models.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union, Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# -----------------------------
# JSON-ish values
# -----------------------------
JSONPrimitive = Union[str, int, float, bool, None]
JSONValue = Union[JSONPrimitive, Dict[str, Any], List[Any]]
JsonSchema = Dict[str, Any]

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StrictModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        frozen=True,
    )


class ConfigModel(BaseModel):
    # Editors attach presentation fields to node configs; those are not ours to reject.
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )


# -----------------------------
# Kinds and branch tags
# -----------------------------
class NodeKind(str, Enum):
    start = "start"
    end = "end"
    agent = "agent"
    function_tool = "function_tool"
    transform = "transform"
    set_state = "set_state"
    if_ = "if"
    while_ = "while"
    user_approval = "user_approval"
    file_search = "file_search"
    mcp_tool = "mcp_tool"
    guardrail = "guardrail"


class BranchTag(str, Enum):
    none = "none"
    true = "true"
    false = "false"
    loop_body = "loopBody"
    loop_exit = "loopExit"
    approve = "approve"
    reject = "reject"


CASE_TAG_PATTERN = re.compile(r"^case(0|[1-9][0-9]*)$")


def case_tag(index: int) -> str:
    return f"case{index}"


def is_known_branch_tag(tag: str) -> bool:
    if CASE_TAG_PATTERN.match(tag):
        return True
    return tag in {member.value for member in BranchTag}


# -----------------------------
# State declarations
# -----------------------------
class StateType(str, Enum):
    string = "string"
    number = "number"
    bool = "bool"
    list = "list"


class StateDeclaration(StrictModel):
    type: Optional[StateType] = None
    default: Optional[JSONValue] = None


# -----------------------------
# Node configs
# -----------------------------
class StartConfig(ConfigModel):
    pass


class EndConfig(ConfigModel):
    output: Dict[str, str] = Field(default_factory=dict)
    output_schema: Optional[JsonSchema] = None


class ReasoningOptions(ConfigModel):
    effort: Optional[str] = None
    summary: Optional[str] = None


class MessageContent(ConfigModel):
    type: Literal["input_text", "output_text"] = "input_text"
    text: str = ""


class AgentMessage(ConfigModel):
    role: Literal["user", "assistant", "system", "developer"] = "user"
    content: List[MessageContent] = Field(default_factory=list)
    id: Optional[str] = None


class FunctionToolDefinition(ConfigModel):
    type: Literal["function"] = "function"
    name: str
    description: Optional[str] = None
    parameters: JsonSchema = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _name_is_identifier(cls, value: str) -> str:
        if not IDENTIFIER_PATTERN.match(value):
            raise ValueError(f"tool name {value!r} is not a valid Python identifier")
        return value


class WebSearchToolDefinition(ConfigModel):
    type: Literal["web_search"] = "web_search"
    search_context_size: str = "medium"
    user_location: Dict[str, Any] = Field(default_factory=lambda: {"type": "approximate"})


AgentTool = Annotated[
    Union[FunctionToolDefinition, WebSearchToolDefinition],
    Field(discriminator="type"),
]


class OutputFormat(ConfigModel):
    type: Literal["text", "json_schema"] = "text"
    json_schema: Optional[JsonSchema] = Field(default=None, alias="schema")

    @model_validator(mode="after")
    def _check_schema_when_json(self) -> "OutputFormat":
        if self.type == "json_schema" and not self.json_schema:
            raise ValueError('output_format: schema is required when type="json_schema"')
        return self


class AgentConfig(ConfigModel):
    name: str = "Agent"
    instructions: str = ""
    model: Optional[str] = None
    tools: List[AgentTool] = Field(default_factory=list)
    reasoning: ReasoningOptions = Field(default_factory=ReasoningOptions)
    parallel_tool_calls: bool = False
    store: bool = True
    messages: List[AgentMessage] = Field(default_factory=list)
    output_format: OutputFormat = Field(default_factory=OutputFormat)


class FunctionToolConfig(FunctionToolDefinition):
    arguments: Dict[str, str] = Field(default_factory=dict)


class TransformConfig(ConfigModel):
    expression: str = ""


class StateAssignment(ConfigModel):
    name: str
    expression: str = ""


class SetStateConfig(ConfigModel):
    assignments: List[StateAssignment] = Field(default_factory=list)


class IfCase(ConfigModel):
    condition: str = ""


class IfConfig(ConfigModel):
    cases: List[IfCase] = Field(default_factory=list)


class WhileConfig(ConfigModel):
    condition: str = ""


class UserApprovalConfig(ConfigModel):
    message: str = ""


class FileSearchConfig(ConfigModel):
    vector_store_id: str = ""
    query: str = ""
    max_results: Optional[int] = Field(default=None, ge=1)


class McpAuth(ConfigModel):
    type: Literal["none", "api_key", "bearer", "custom"] = "none"
    api_key: Optional[str] = None
    bearer_token: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)


class McpCall(ConfigModel):
    tool: str = Field(min_length=1)
    arguments: Dict[str, JSONValue] = Field(default_factory=dict)


class McpToolConfig(ConfigModel):
    transport: Literal["http", "sse", "stdio"] = "http"
    url: str = ""
    command: str = "python"
    args: List[str] = Field(default_factory=list)
    auth: McpAuth = Field(default_factory=McpAuth)
    calls: List[McpCall] = Field(default_factory=list)

    @model_validator(mode="after")
    def _requires_a_call(self) -> "McpToolConfig":
        if not self.calls:
            raise ValueError("mcp_tool requires at least one entry in 'calls'")
        return self


class GuardrailPolicy(ConfigModel):
    type: str = Field(min_length=1)
    config: Dict[str, Any] = Field(default_factory=dict)


class GuardrailConfig(ConfigModel):
    input: Optional[str] = None
    guardrails: List[GuardrailPolicy] = Field(default_factory=list)
    continue_on_error: bool = False


# -----------------------------
# Nodes
# -----------------------------
class NodeBase(StrictModel):
    # Canvas position and similar editor metadata ride along on nodes.
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str = Field(min_length=1)
    label: Optional[str] = None


class StartNode(NodeBase):
    kind: Literal["start"] = "start"
    config: StartConfig = Field(default_factory=StartConfig)


class EndNode(NodeBase):
    kind: Literal["end"] = "end"
    config: EndConfig = Field(default_factory=EndConfig)


class AgentNode(NodeBase):
    kind: Literal["agent"] = "agent"
    config: AgentConfig = Field(default_factory=AgentConfig)


class FunctionToolNode(NodeBase):
    kind: Literal["function_tool"] = "function_tool"
    config: FunctionToolConfig


class TransformNode(NodeBase):
    kind: Literal["transform"] = "transform"
    config: TransformConfig = Field(default_factory=TransformConfig)


class SetStateNode(NodeBase):
    kind: Literal["set_state"] = "set_state"
    config: SetStateConfig = Field(default_factory=SetStateConfig)


class IfNode(NodeBase):
    kind: Literal["if"] = "if"
    config: IfConfig = Field(default_factory=IfConfig)


class WhileNode(NodeBase):
    kind: Literal["while"] = "while"
    config: WhileConfig = Field(default_factory=WhileConfig)


class UserApprovalNode(NodeBase):
    kind: Literal["user_approval"] = "user_approval"
    config: UserApprovalConfig = Field(default_factory=UserApprovalConfig)


class FileSearchNode(NodeBase):
    kind: Literal["file_search"] = "file_search"
    config: FileSearchConfig = Field(default_factory=FileSearchConfig)


class McpToolNode(NodeBase):
    kind: Literal["mcp_tool"] = "mcp_tool"
    config: McpToolConfig


class GuardrailNode(NodeBase):
    kind: Literal["guardrail"] = "guardrail"
    config: GuardrailConfig = Field(default_factory=GuardrailConfig)


Node = Annotated[
    Union[
        StartNode,
        EndNode,
        AgentNode,
        FunctionToolNode,
        TransformNode,
        SetStateNode,
        IfNode,
        WhileNode,
        UserApprovalNode,
        FileSearchNode,
        McpToolNode,
        GuardrailNode,
    ],
    Field(discriminator="kind"),
]


# -----------------------------
# Edges and the workflow
# -----------------------------
class Edge(StrictModel):
    source: str = Field(min_length=1, alias="from")
    target: str = Field(min_length=1, alias="to")
    branch: str = BranchTag.none.value

    @field_validator("branch")
    @classmethod
    def _known_tag(cls, value: str) -> str:
        if not is_known_branch_tag(value):
            raise ValueError(f"unknown branch tag {value!r}")
        return value

    def describe(self) -> str:
        return f"{self.source} -[{self.branch}]-> {self.target}"


def _default_input_schema() -> JsonSchema:
    return {
        "type": "object",
        "properties": {"input_as_text": {"type": "string"}},
        "required": ["input_as_text"],
    }


class WorkflowDefinition(StrictModel):
    name: Optional[str] = None
    entry_node_id: str = Field(min_length=1)
    state: Dict[str, StateDeclaration] = Field(default_factory=dict)
    input_schema: JsonSchema = Field(default_factory=_default_input_schema)
    input_text_field: str = "input_as_text"
    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)

    @field_validator("state")
    @classmethod
    def _state_names_are_strings(cls, value: Dict[str, StateDeclaration]) -> Dict[str, StateDeclaration]:
        for name in value:
            if not name:
                raise ValueError("state variable names cannot be empty")
        return value

    def input_fields(self) -> Dict[str, JsonSchema]:
        properties = self.input_schema.get("properties") or {}
        return dict(properties)


NODE_KINDS = frozenset(member.value for member in NodeKind)
