"""
Turn a statement tree into indented source lines.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Iterator, List

from workflow_codegen.compiler.statements import (
    Branch,
    Guard,
    Loop,
    Raw,
    Return,
    Sequence,
    Statement,
    Try,
)


class CodeWriter:
    """Collects source lines at a current depth; empty lines carry no indent."""

    def __init__(self, unit: str = "  ", indent: int = 0) -> None:
        self.unit = unit
        self.depth = indent
        self._lines: List[str] = []

    def writeln(self, line: str = "") -> None:
        self._lines.append(self.unit * self.depth + line if line else "")

    def extend(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.writeln(line)

    @contextmanager
    def indented(self) -> Iterator[None]:
        self.depth += 1
        try:
            yield
        finally:
            self.depth -= 1

    def lines(self) -> List[str]:
        return list(self._lines)

    def source(self) -> str:
        return "\n".join(self._lines)


def render_statements(statement: Statement, writer: CodeWriter) -> CodeWriter:
    if isinstance(statement, Sequence):
        for child in statement.body:
            render_statements(child, writer)
    elif isinstance(statement, Raw):
        writer.extend(statement.lines)
    elif isinstance(statement, Return):
        writer.writeln(f"return {statement.value}")
    elif isinstance(statement, Branch):
        for index, (condition, body) in enumerate(statement.arms):
            keyword = "if" if index == 0 else "elif"
            writer.writeln(f"{keyword} {condition}:")
            _block(body, writer)
        if statement.orelse is not None:
            writer.writeln("else:")
            _block(statement.orelse, writer)
    elif isinstance(statement, Loop):
        writer.writeln(f"while {statement.condition}:")
        _block(statement.body, writer)
    elif isinstance(statement, Guard):
        first, second = statement.continuation, statement.fallback
        if not statement.continue_when:
            first, second = second, first
        writer.writeln(f"if {statement.condition}:")
        _block(first, writer)
        writer.writeln("else:")
        _block(second, writer)
    elif isinstance(statement, Try):
        writer.writeln("try:")
        _block(statement.body, writer)
        writer.writeln(f"except Exception as {statement.error_name}:")
        _block(statement.handler, writer)
    else:
        raise TypeError(f"Unsupported statement {type(statement).__name__}")
    return writer


def _block(body: Sequence, writer: CodeWriter) -> None:
    with writer.indented():
        render_statements(body, writer)
        if not _has_code(body):
            writer.writeln("pass")


def _has_code(statement: Statement) -> bool:
    if isinstance(statement, Sequence):
        return any(_has_code(child) for child in statement.body)
    if isinstance(statement, Raw):
        return any(line.strip() and not line.strip().startswith("#") for line in statement.lines)
    return True
