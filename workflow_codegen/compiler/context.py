"""
Shared state threaded through one compilation: symbols, settings, the module
being assembled and the per-path facts the linearizer carries.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Dict, List, Optional, Tuple

from shared.config import CodegenSettings
from workflow_codegen.compiler.graph import WorkflowGraph
from workflow_codegen.compiler.statements import Statement
from workflow_codegen.compiler.symbols import SymbolTable
from workflow_codegen.errors import MalformedGraph
from workflow_codegen.expr.python import ExpressionScope, compile_expression
from workflow_codegen.schema.models import FunctionToolDefinition

WORKFLOW = "workflow"
STATE = "state"
HISTORY = "conversation_history"
WORKFLOW_INPUT = "workflow_input"
CLIENT = "client"
GUARDRAIL_CTX = "ctx"


class Section(IntEnum):
    """Global declaration blocks, in module order."""

    clients = 1
    tools = 2
    guardrail_bundles = 3
    agents = 4
    guardrail_helpers = 5


SECTION_HEADERS: Dict[Section, Optional[str]] = {
    Section.clients: "# Shared client for guardrails and file search",
    Section.tools: "# Tool definitions",
    Section.guardrail_bundles: "# Guardrails definitions",
    Section.agents: None,
    Section.guardrail_helpers: "# Guardrails utils",
}

Import = Tuple[str, str]


@dataclass(frozen=True)
class Declaration:
    key: str
    section: Section
    lines: Tuple[str, ...]


@dataclass(frozen=True)
class GuardSpec:
    """How a node gates the rest of its path."""

    condition: str
    continue_when: bool
    fallback_value: Optional[str] = None


@dataclass
class NodeEmission:
    statements: List[Statement] = field(default_factory=list)
    result: Optional[str] = None
    imports: List[Import] = field(default_factory=list)
    declarations: List[Declaration] = field(default_factory=list)
    conditions: List[str] = field(default_factory=list)
    guard: Optional[GuardSpec] = None
    checked_text: Optional[str] = None


@dataclass(frozen=True)
class PathState:
    last_result: Optional[str] = None
    guardrail_text: Optional[str] = None
    open_loops: Tuple[str, ...] = ()

    def after(self, emission: NodeEmission) -> "PathState":
        last = emission.result if emission.result is not None else self.last_result
        return replace(self, last_result=last, guardrail_text=emission.checked_text)

    def entering_loop(self, node_id: str) -> "PathState":
        return replace(self, open_loops=self.open_loops + (node_id,))


class ModuleBuilder:
    """Imports and global declarations collected across every emission."""

    def __init__(self) -> None:
        self.imports: List[Import] = []
        self.declarations: Dict[str, Declaration] = {}

    def add_import(self, module: str, name: str) -> None:
        if (module, name) not in self.imports:
            self.imports.append((module, name))

    def declare(self, declaration: Declaration) -> None:
        existing = self.declarations.get(declaration.key)
        if existing is None:
            self.declarations[declaration.key] = declaration
            return
        if existing != declaration:
            raise MalformedGraph(f"Conflicting global declarations for '{declaration.key}'")

    def absorb(self, emission: NodeEmission) -> None:
        for module, name in emission.imports:
            self.add_import(module, name)
        for declaration in emission.declarations:
            self.declare(declaration)

    def section(self, section: Section) -> List[Declaration]:
        return [decl for decl in self.declarations.values() if decl.section == section]


@dataclass
class EmitContext:
    graph: WorkflowGraph
    settings: CodegenSettings
    symbols: SymbolTable
    module: ModuleBuilder = field(default_factory=ModuleBuilder)
    function_tools: Dict[str, FunctionToolDefinition] = field(default_factory=dict)

    @property
    def indent(self) -> str:
        return self.settings.indent_unit

    def scope(self, path: PathState, node_id: Optional[str] = None) -> ExpressionScope:
        definition = self.graph.definition
        return ExpressionScope(
            input_fields=frozenset(definition.input_fields()),
            state_fields=frozenset(definition.state),
            input_alias=path.last_result or WORKFLOW,
            node_id=node_id,
        )

    def expression(self, source: str, path: PathState, node_id: Optional[str] = None) -> str:
        return compile_expression(source, self.scope(path, node_id))
