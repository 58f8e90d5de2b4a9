"""
Statement tree produced by the linearizer and consumed by the renderer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union


@dataclass
class Raw:
    """Pre-formatted lines, indented relative to the enclosing block."""

    lines: Tuple[str, ...]

    @classmethod
    def of(cls, *lines: str) -> "Raw":
        return cls(tuple(lines))


@dataclass
class Sequence:
    body: List["Statement"] = field(default_factory=list)

    def append(self, statement: "Statement") -> None:
        self.body.append(statement)

    def extend(self, statements: "List[Statement]") -> None:
        self.body.extend(statements)

    def is_empty(self) -> bool:
        return not self.body


@dataclass
class Branch:
    """``if`` / ``elif`` ... / ``else`` chain."""

    arms: List[Tuple[str, Sequence]]
    orelse: Optional[Sequence] = None


@dataclass
class Loop:
    condition: str
    body: Sequence = field(default_factory=Sequence)


@dataclass
class Guard:
    """
    Guarded continuation: ``continuation`` runs when ``condition`` evaluates
    to ``continue_when``, otherwise ``fallback`` runs (normally an early
    return).
    """

    condition: str
    continuation: Sequence
    fallback: Sequence
    continue_when: bool = True


@dataclass
class Return:
    value: str


@dataclass
class Try:
    body: Sequence
    error_name: str
    handler: Sequence


Statement = Union[Raw, Sequence, Branch, Loop, Guard, Return, Try]
