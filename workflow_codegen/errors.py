"""
Shared exception hierarchy for the workflow code generator.

Every error is raised while compiling, never while the generated module runs,
and the same input graph always reproduces the same error.
"""

from __future__ import annotations

from typing import Iterable, List, Optional


class WorkflowCompilerError(Exception):
    """Base class for all compiler related errors."""


class MalformedGraph(WorkflowCompilerError):
    """Raised when the workflow graph fails structural checks."""

    def __init__(self, problems: Iterable[str] | str, *, node_id: Optional[str] = None) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems: List[str] = list(problems)
        self.node_id = node_id
        super().__init__("\n".join(self.problems))


class UnknownNodeKind(WorkflowCompilerError):
    """Raised when a node kind has no emitter."""

    def __init__(self, kind: str, *, node_id: Optional[str] = None) -> None:
        self.kind = kind
        self.node_id = node_id
        where = f" (node '{node_id}')" if node_id else ""
        super().__init__(f"Unknown node kind '{kind}'{where}")


class InvalidExpression(WorkflowCompilerError):
    """Raised when a condition or value expression cannot be compiled."""

    def __init__(
        self,
        message: str,
        *,
        expression: Optional[str] = None,
        node_id: Optional[str] = None,
    ) -> None:
        self.reason = message
        self.expression = expression
        self.node_id = node_id
        prefix = f"{node_id}: " if node_id else ""
        suffix = f" in expression {expression!r}" if expression is not None else ""
        super().__init__(f"{prefix}{message}{suffix}")


class InvalidSchema(WorkflowCompilerError):
    """Raised when an embedded JSON schema is not valid JSON Schema."""
