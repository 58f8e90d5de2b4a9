"""
Render parsed expressions as Python source for the generated entrypoint.

Names resolve against three ambient roots: ``workflow`` (the input record),
``state`` (the state record) and ``input`` (the previous node's result on the
current path). Rendered text is re-parsed with ``ast`` and walked by a
whitelisting visitor before it is handed to an emitter.
"""

from __future__ import annotations

import ast
import json
import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional

from workflow_codegen.errors import InvalidExpression
from workflow_codegen.expr.parser import (
    Binary,
    Call,
    Compare,
    Expr,
    Index,
    ListLiteral,
    Literal,
    Logical,
    Member,
    Name,
    ObjectLiteral,
    Unary,
    parse_expression,
)

WORKFLOW_ROOT = "workflow"
STATE_ROOT = "state"
INPUT_ROOT = "input"

# Expression-language helper name -> Python builtin emitted for it.
SAFE_FUNCTIONS: Dict[str, str] = {
    "size": "len",
    "len": "len",
    "string": "str",
    "str": "str",
    "int": "int",
    "double": "float",
    "float": "float",
}

# Python operator precedence, lowest first.
_OR, _AND, _NOT, _CMP, _ADD, _MUL, _UNARY, _POSTFIX, _ATOM = range(1, 10)

_BINARY_PRECEDENCE = {"+": _ADD, "-": _ADD, "*": _MUL, "/": _MUL, "%": _MUL}


@dataclass(frozen=True)
class ExpressionScope:
    """Names an expression may reference at one point of the generated body."""

    input_fields: FrozenSet[str] = frozenset()
    state_fields: FrozenSet[str] = frozenset()
    input_alias: str = WORKFLOW_ROOT
    node_id: Optional[str] = None

    @property
    def allowed_names(self) -> FrozenSet[str]:
        return frozenset({WORKFLOW_ROOT, STATE_ROOT, self.input_alias})


class _Renderer:
    def __init__(self, source: str, scope: ExpressionScope) -> None:
        self.source = source
        self.scope = scope

    def fail(self, message: str) -> InvalidExpression:
        return InvalidExpression(message, expression=self.source, node_id=self.scope.node_id)

    def render(self, expr: Expr) -> str:
        text, _ = self.visit(expr)
        return text

    def wrap(self, expr: Expr, minimum: int) -> str:
        text, precedence = self.visit(expr)
        if precedence < minimum:
            return f"({text})"
        return text

    def visit(self, expr: Expr) -> tuple[str, int]:
        if isinstance(expr, Literal):
            if isinstance(expr.value, float) and not math.isfinite(expr.value):
                raise self.fail(f"Number {expr.value!r} is out of range")
            return render_literal(expr.value), _ATOM

        if isinstance(expr, Name):
            return self.visit_name(expr), _ATOM

        if isinstance(expr, Member):
            return self.visit_member(expr), _POSTFIX

        if isinstance(expr, Index):
            target = self.wrap(expr.target, _POSTFIX)
            return f"{target}[{self.render(expr.index)}]", _POSTFIX

        if isinstance(expr, Call):
            func = SAFE_FUNCTIONS.get(expr.func)
            if func is None:
                raise self.fail(f"Unknown function '{expr.func}'")
            if len(expr.args) != 1:
                raise self.fail(f"'{expr.func}' takes exactly one argument")
            return f"{func}({self.render(expr.args[0])})", _POSTFIX

        if isinstance(expr, Unary):
            if expr.op == "!":
                return f"not {self.wrap(expr.operand, _NOT)}", _NOT
            return f"{expr.op}{self.wrap(expr.operand, _UNARY)}", _UNARY

        if isinstance(expr, Binary):
            precedence = _BINARY_PRECEDENCE[expr.op]
            left = self.wrap(expr.left, precedence)
            right = self.wrap(expr.right, precedence + 1)
            return f"{left} {expr.op} {right}", precedence

        if isinstance(expr, Compare):
            # Python chains comparisons, so both operands bind tighter.
            left = self.wrap(expr.left, _CMP + 1)
            right = self.wrap(expr.right, _CMP + 1)
            return f"{left} {expr.op} {right}", _CMP

        if isinstance(expr, Logical):
            if expr.op == "&&":
                return f"{self.wrap(expr.left, _AND)} and {self.wrap(expr.right, _AND + 1)}", _AND
            return f"{self.wrap(expr.left, _OR)} or {self.wrap(expr.right, _OR + 1)}", _OR

        if isinstance(expr, ListLiteral):
            return "[" + ", ".join(self.render(item) for item in expr.items) + "]", _ATOM

        if isinstance(expr, ObjectLiteral):
            pairs = [f"{render_literal(key)}: {self.render(value)}" for key, value in expr.entries]
            return "{" + ", ".join(pairs) + "}", _ATOM

        raise self.fail(f"Unsupported expression element {type(expr).__name__}")

    def visit_name(self, expr: Name) -> str:
        if expr.id == WORKFLOW_ROOT:
            return WORKFLOW_ROOT
        if expr.id == STATE_ROOT:
            return STATE_ROOT
        if expr.id == INPUT_ROOT:
            return self.scope.input_alias
        raise self.fail(
            f"Unknown name '{expr.id}'; expressions may reference workflow, state or input"
        )

    def visit_member(self, expr: Member) -> str:
        if isinstance(expr.target, Name):
            if expr.target.id == WORKFLOW_ROOT and expr.key not in self.scope.input_fields:
                raise self.fail(f"Workflow input has no field '{expr.key}'")
            if expr.target.id == STATE_ROOT and expr.key not in self.scope.state_fields:
                raise self.fail(f"State variable '{expr.key}' is not declared")
        target = self.wrap(expr.target, _POSTFIX)
        return f"{target}[{render_literal(expr.key)}]"


def render_literal(value: object) -> str:
    """Render a scalar the way the generated module spells it."""

    if value is None:
        return "None"
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Non-finite number has no Python literal: {value!r}")
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    raise TypeError(f"Not a scalar literal: {value!r}")


class _ExpressionValidator(ast.NodeVisitor):
    ALLOWED_NODES = (
        ast.Expression,
        ast.BoolOp,
        ast.BinOp,
        ast.UnaryOp,
        ast.Compare,
        ast.Call,
        ast.Name,
        ast.Load,
        ast.Constant,
        ast.Subscript,
        ast.List,
        ast.Dict,
    )

    ALLOWED_BINOPS = (ast.Add, ast.Sub, ast.Mult, ast.Div, ast.Mod)

    ALLOWED_UNARY = (ast.Not, ast.USub, ast.UAdd)

    ALLOWED_CMPS = (
        ast.Eq,
        ast.NotEq,
        ast.Lt,
        ast.Gt,
        ast.LtE,
        ast.GtE,
        ast.In,
    )

    def __init__(self, allowed_names: Iterable[str]) -> None:
        self.allowed_names = set(allowed_names)
        self.builtins = set(SAFE_FUNCTIONS.values())

    def generic_visit(self, node: ast.AST) -> None:
        if isinstance(node, (ast.cmpop, ast.operator, ast.boolop, ast.unaryop)):
            return
        if not isinstance(node, self.ALLOWED_NODES):
            raise ValueError(f"Disallowed expression node: {type(node).__name__}")
        super().generic_visit(node)

    def visit_Call(self, node: ast.Call) -> None:
        if not isinstance(node.func, ast.Name) or node.func.id not in self.builtins:
            raise ValueError("Only whitelisted helper functions can be called")
        if node.keywords:
            raise ValueError("Keyword arguments are not allowed")
        for arg in node.args:
            self.visit(arg)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id not in self.allowed_names and node.id not in self.builtins:
            raise ValueError(f"Unknown variable '{node.id}' in expression")

    def visit_BinOp(self, node: ast.BinOp) -> None:
        if not isinstance(node.op, self.ALLOWED_BINOPS):
            raise ValueError(f"Operator '{type(node.op).__name__}' is not allowed")
        self.generic_visit(node)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> None:
        if not isinstance(node.op, self.ALLOWED_UNARY):
            raise ValueError(f"Unary op '{type(node.op).__name__}' is not allowed")
        self.generic_visit(node)

    def visit_Compare(self, node: ast.Compare) -> None:
        for op in node.ops:
            if not isinstance(op, self.ALLOWED_CMPS):
                raise ValueError(f"Comparator '{type(op).__name__}' is not allowed")
        self.generic_visit(node)


def compile_expression(source: str, scope: ExpressionScope) -> str:
    """Compile one expression into Python source, or raise InvalidExpression."""

    if source is None or not source.strip():
        raise InvalidExpression("Expression is empty", expression=source, node_id=scope.node_id)
    try:
        tree = parse_expression(source)
    except InvalidExpression as exc:
        raise InvalidExpression(
            exc.reason,
            expression=source,
            node_id=scope.node_id,
        ) from exc

    rendered = _Renderer(source, scope).render(tree)
    check_python_expression(rendered, scope.allowed_names, source=source, node_id=scope.node_id)
    return rendered


def check_python_expression(
    rendered: str,
    allowed_names: Iterable[str],
    *,
    source: Optional[str] = None,
    node_id: Optional[str] = None,
) -> None:
    try:
        parsed = ast.parse(rendered, mode="eval")
        _ExpressionValidator(allowed_names).visit(parsed)
    except (SyntaxError, ValueError) as exc:
        raise InvalidExpression(
            f"Compiled expression {rendered!r} was rejected: {exc}",
            expression=source if source is not None else rendered,
            node_id=node_id,
        ) from exc
