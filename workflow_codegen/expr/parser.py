"""
Tokenizer and recursive-descent parser for the CEL-style expressions that the
editor stores on If / While / Transform / SetState / Guardrail nodes.

The parser only builds a syntax tree; turning it into Python source (and
checking which names it may reference) happens in ``expr.python``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from workflow_codegen.errors import InvalidExpression


# -----------------------------
# Syntax tree
# -----------------------------
@dataclass(frozen=True)
class Expr:
    pass


@dataclass(frozen=True)
class Literal(Expr):
    value: Union[str, int, float, bool, None]


@dataclass(frozen=True)
class Name(Expr):
    id: str


@dataclass(frozen=True)
class Member(Expr):
    target: Expr
    key: str


@dataclass(frozen=True)
class Index(Expr):
    target: Expr
    index: Expr


@dataclass(frozen=True)
class Call(Expr):
    func: str
    args: Tuple[Expr, ...]


@dataclass(frozen=True)
class Unary(Expr):
    op: str
    operand: Expr


@dataclass(frozen=True)
class Binary(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Compare(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Logical(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class ListLiteral(Expr):
    items: Tuple[Expr, ...]


@dataclass(frozen=True)
class ObjectLiteral(Expr):
    entries: Tuple[Tuple[str, Expr], ...]


# -----------------------------
# Tokens
# -----------------------------
@dataclass(frozen=True)
class Token:
    kind: str  # "number" | "string" | "ident" | "op" | "eof"
    text: str
    value: object
    pos: int


_OPERATORS: Sequence[str] = (
    "&&", "||", "==", "!=", "<=", ">=",
    "<", ">", "!", "+", "-", "*", "/", "%",
    "(", ")", "[", "]", "{", "}", ",", ":", ".",
)

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "0": "\0",
    "\\": "\\",
    "'": "'",
    '"': '"',
    "/": "/",
}

_WORD_OPERATORS = {"and": "&&", "or": "||", "not": "!"}
_KEYWORD_LITERALS = {
    "true": True,
    "false": False,
    "null": None,
    "True": True,
    "False": False,
    "None": None,
}


def tokenize(source: str) -> List[Token]:
    tokens: List[Token] = []
    idx = 0
    length = len(source)

    while idx < length:
        char = source[idx]
        if char.isspace():
            idx += 1
            continue

        if char in {'"', "'"}:
            value, idx_after = _read_string(source, idx)
            tokens.append(Token("string", source[idx:idx_after], value, idx))
            idx = idx_after
            continue

        if char.isdigit():
            start = idx
            while idx < length and source[idx].isdigit():
                idx += 1
            is_float = False
            if idx + 1 < length and source[idx] == "." and source[idx + 1].isdigit():
                is_float = True
                idx += 1
                while idx < length and source[idx].isdigit():
                    idx += 1
            text = source[start:idx]
            tokens.append(Token("number", text, float(text) if is_float else int(text), start))
            continue

        if char.isalpha() or char == "_":
            start = idx
            while idx < length and (source[idx].isalnum() or source[idx] == "_"):
                idx += 1
            word = source[start:idx]
            if word in _WORD_OPERATORS:
                tokens.append(Token("op", _WORD_OPERATORS[word], None, start))
            else:
                tokens.append(Token("ident", word, word, start))
            continue

        for op in _OPERATORS:
            if source.startswith(op, idx):
                tokens.append(Token("op", op, None, idx))
                idx += len(op)
                break
        else:
            raise InvalidExpression(f"Unexpected character {char!r} at column {idx + 1}", expression=source)

    tokens.append(Token("eof", "", None, length))
    return tokens


def _read_string(source: str, start: int) -> Tuple[str, int]:
    quote = source[start]
    idx = start + 1
    chars: List[str] = []
    while idx < len(source):
        char = source[idx]
        if char == quote:
            return "".join(chars), idx + 1
        if char == "\\":
            if idx + 1 >= len(source):
                break
            escape = source[idx + 1]
            if escape == "u":
                digits = source[idx + 2 : idx + 6]
                if len(digits) != 4 or any(d not in "0123456789abcdefABCDEF" for d in digits):
                    raise InvalidExpression(
                        f"Malformed \\u escape at column {idx + 1}", expression=source
                    )
                chars.append(chr(int(digits, 16)))
                idx += 6
                continue
            if escape not in _ESCAPES:
                raise InvalidExpression(
                    f"Unknown escape '\\{escape}' at column {idx + 1}", expression=source
                )
            chars.append(_ESCAPES[escape])
            idx += 2
            continue
        chars.append(char)
        idx += 1
    raise InvalidExpression(f"Unterminated string starting at column {start + 1}", expression=source)


# -----------------------------
# Parser
# -----------------------------
_COMPARISONS = {"==", "!=", "<", "<=", ">", ">="}


class _Parser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = tokenize(source)
        self.pos = 0

    # token helpers -------------------------------------------------------
    def peek(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def at_op(self, *ops: str) -> bool:
        token = self.peek()
        return token.kind == "op" and token.text in ops

    def at_ident(self, word: str) -> bool:
        token = self.peek()
        return token.kind == "ident" and token.text == word

    def expect_op(self, op: str) -> Token:
        if not self.at_op(op):
            self.fail(f"Expected '{op}'")
        return self.advance()

    def fail(self, message: str) -> None:
        token = self.peek()
        found = "end of expression" if token.kind == "eof" else repr(token.text)
        raise InvalidExpression(
            f"{message} at column {token.pos + 1}, found {found}", expression=self.source
        )

    # grammar -------------------------------------------------------------
    def parse(self) -> Expr:
        if self.peek().kind == "eof":
            raise InvalidExpression("Expression is empty", expression=self.source)
        expr = self.parse_or()
        if self.peek().kind != "eof":
            self.fail("Unexpected trailing input")
        return expr

    def parse_or(self) -> Expr:
        left = self.parse_and()
        while self.at_op("||"):
            self.advance()
            left = Logical("||", left, self.parse_and())
        return left

    def parse_and(self) -> Expr:
        left = self.parse_comparison()
        while self.at_op("&&"):
            self.advance()
            left = Logical("&&", left, self.parse_comparison())
        return left

    def parse_comparison(self) -> Expr:
        left = self.parse_additive()
        while True:
            token = self.peek()
            if token.kind == "op" and token.text in _COMPARISONS:
                self.advance()
                left = Compare(token.text, left, self.parse_additive())
            elif self.at_ident("in"):
                self.advance()
                left = Compare("in", left, self.parse_additive())
            else:
                return left

    def parse_additive(self) -> Expr:
        left = self.parse_multiplicative()
        while self.at_op("+", "-"):
            op = self.advance().text
            left = Binary(op, left, self.parse_multiplicative())
        return left

    def parse_multiplicative(self) -> Expr:
        left = self.parse_unary()
        while self.at_op("*", "/", "%"):
            op = self.advance().text
            left = Binary(op, left, self.parse_unary())
        return left

    def parse_unary(self) -> Expr:
        if self.at_op("!", "-", "+"):
            op = self.advance().text
            return Unary(op, self.parse_unary())
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        expr = self.parse_primary()
        while True:
            if self.at_op("."):
                self.advance()
                token = self.peek()
                if token.kind != "ident":
                    self.fail("Expected a field name after '.'")
                self.advance()
                expr = Member(expr, token.text)
            elif self.at_op("["):
                self.advance()
                index = self.parse_or()
                self.expect_op("]")
                expr = Index(expr, index)
            else:
                return expr

    def parse_primary(self) -> Expr:
        token = self.peek()
        if token.kind in {"number", "string"}:
            self.advance()
            return Literal(token.value)  # type: ignore[arg-type]
        if token.kind == "ident":
            self.advance()
            if token.text in _KEYWORD_LITERALS:
                return Literal(_KEYWORD_LITERALS[token.text])
            if self.at_op("("):
                return Call(token.text, self.parse_arguments())
            return Name(token.text)
        if self.at_op("("):
            self.advance()
            inner = self.parse_or()
            self.expect_op(")")
            return inner
        if self.at_op("["):
            return self.parse_list()
        if self.at_op("{"):
            return self.parse_object()
        self.fail("Expected a value")
        raise AssertionError("unreachable")

    def parse_arguments(self) -> Tuple[Expr, ...]:
        self.expect_op("(")
        args: List[Expr] = []
        if not self.at_op(")"):
            args.append(self.parse_or())
            while self.at_op(","):
                self.advance()
                args.append(self.parse_or())
        self.expect_op(")")
        return tuple(args)

    def parse_list(self) -> ListLiteral:
        self.expect_op("[")
        items: List[Expr] = []
        while not self.at_op("]"):
            items.append(self.parse_or())
            if not self.at_op(","):
                break
            self.advance()
        self.expect_op("]")
        return ListLiteral(tuple(items))

    def parse_object(self) -> ObjectLiteral:
        self.expect_op("{")
        entries: List[Tuple[str, Expr]] = []
        while not self.at_op("}"):
            token = self.peek()
            if token.kind == "string":
                key = str(token.value)
            elif token.kind == "ident":
                key = token.text
            else:
                self.fail("Expected an object key")
            self.advance()
            if not key:
                self.fail("Object keys cannot be empty")
            self.expect_op(":")
            entries.append((key, self.parse_or()))
            if not self.at_op(","):
                break
            self.advance()
        self.expect_op("}")
        return ObjectLiteral(tuple(entries))


def parse_expression(source: str) -> Expr:
    return _Parser(source).parse()


def root_name(expr: Expr) -> Optional[str]:
    """Return the identifier at the base of a member/index chain, if any."""
    while isinstance(expr, (Member, Index)):
        expr = expr.target
    if isinstance(expr, Name):
        return expr.id
    return None
