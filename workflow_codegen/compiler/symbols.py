"""
Deterministic identifier allocation for generated code.
"""

from __future__ import annotations

import keyword
import logging
from typing import Dict, Iterable, List, Set

from workflow_codegen.schema.models import IDENTIFIER_PATTERN

logger = logging.getLogger(__name__)


class SymbolTable:
    """
    Hands out unique identifiers per base name.

    The first allocation of a base returns it unsuffixed, later ones append
    ``1``, ``2``, ... in call order. Candidates already taken (reserved names or
    another base's suffixed form) are skipped without rewinding the counter.
    """

    def __init__(self, reserved: Iterable[str] = ()) -> None:
        self._taken: Set[str] = set()
        self._counters: Dict[str, int] = {}
        self._allocated: List[str] = []
        for name in reserved:
            self.reserve(name)

    def reserve(self, name: str) -> None:
        self._taken.add(name)

    def allocate(self, base: str) -> str:
        if not IDENTIFIER_PATTERN.match(base) or keyword.iskeyword(base):
            raise ValueError(f"Symbol base {base!r} is not a valid identifier")

        counter = self._counters.get(base)
        if counter is None:
            counter = 0
            if base not in self._taken:
                return self._take(base, base, 0)
        while True:
            counter += 1
            candidate = f"{base}{counter}"
            if candidate not in self._taken:
                return self._take(base, candidate, counter)

    def allocated(self) -> List[str]:
        return list(self._allocated)

    def _take(self, base: str, name: str, counter: int) -> str:
        self._counters[base] = counter
        self._taken.add(name)
        self._allocated.append(name)
        logger.debug("allocated symbol %s", name)
        return name
