"""
Formatting helpers for Python literals and calls in generated code.

Containers are laid out one item per line; nested lines are indented relative
to the first line so callers can splice the text at any depth.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple

from workflow_codegen.expr.python import render_literal


class PyExpr(str):
    """Python source that is spliced into a literal verbatim."""


def indent_tail(text: str, unit: str) -> str:
    """Indent every line but the first."""
    lines = text.split("\n")
    return "\n".join([lines[0]] + [unit + line if line else line for line in lines[1:]])


def format_literal(value: Any, unit: str) -> str:
    if isinstance(value, PyExpr):
        return str(value)
    if isinstance(value, dict):
        if not value:
            return "{}"
        items = [
            f"{unit}{render_literal(str(key))}: {indent_tail(format_literal(item, unit), unit)}"
            for key, item in value.items()
        ]
        return "{\n" + ",\n".join(items) + "\n}"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        items = [f"{unit}{indent_tail(format_literal(item, unit), unit)}" for item in value]
        return "[\n" + ",\n".join(items) + "\n]"
    return render_literal(value)


def format_call(func: str, arguments: Sequence[Tuple[Optional[str], str]], unit: str) -> str:
    """
    Render ``func(...)`` with one argument per line. Each argument is a
    ``(keyword, source)`` pair; a ``None`` keyword makes it positional.
    """

    if not arguments:
        return f"{func}()"
    rendered: List[str] = []
    for keyword, source in arguments:
        text = indent_tail(source, unit)
        rendered.append(f"{unit}{keyword}={text}" if keyword else f"{unit}{text}")
    return f"{func}(\n" + ",\n".join(rendered) + "\n)"


def assignment(target: str, source: str) -> Tuple[str, ...]:
    """Split ``target = source`` into lines for a Raw statement."""
    return tuple(f"{target} = {source}".split("\n"))
