"""
@file matcher.py
@brief Literal/regex matching with ordinal selection and cross-scroll dedup.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Hashable, Iterable, List, Optional, Pattern, Set

from .model import ElementSnapshot, Query


class DedupTracker:
    """
    Identities already counted during one resolution call.

    Scrolling re-reveals elements that were on screen before; counting by
    identity keeps each physical element at exactly one ordinal.
    """

    def __init__(self) -> None:
        self._ids: Set[Hashable] = set()

    def contains(self, identity: Hashable) -> bool:
        return identity in self._ids

    def add(self, identity: Hashable) -> bool:
        """@return True when identity was not tracked before"""
        if identity in self._ids:
            return False
        self._ids.add(identity)
        return True

    def clear(self) -> None:
        self._ids.clear()

    def size(self) -> int:
        return len(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, identity: Hashable) -> bool:
        return identity in self._ids


class OutcomeKind(Enum):
    NO_MATCH = "no_match"
    MATCHED = "matched"
    DUPLICATE = "duplicate"
    ANCHOR_FOUND = "anchor_found"


@dataclass(frozen=True)
class MatchOutcome:
    kind: OutcomeKind
    ordinal: Optional[int] = None
    selected: bool = False


NO_MATCH = MatchOutcome(OutcomeKind.NO_MATCH)
DUPLICATE = MatchOutcome(OutcomeKind.DUPLICATE)
ANCHOR_FOUND = MatchOutcome(OutcomeKind.ANCHOR_FOUND)


@dataclass
class ScanState:
    """Per-call scan bookkeeping that must survive scrolling."""
    anchor_found: bool = False
    excluded: Set[Hashable] = field(default_factory=set)
    seen: Dict[Hashable, str] = field(default_factory=dict)

    def observe(self, snapshot: ElementSnapshot) -> None:
        if snapshot.identity not in self.seen:
            self.seen[snapshot.identity] = snapshot.text or ""

    @property
    def seen_texts(self) -> List[str]:
        return [text for text in self.seen.values() if text]


class Matcher:
    """
    Evaluates snapshots against one Query.

    An element is counted the first time its identity matches; the element
    whose running count reaches the requested ordinal is selected. With an
    anchor, nothing is counted until the anchor text has been seen, and
    elements seen before it stay excluded for the rest of the call.
    """

    def __init__(self, query: Query):
        self.query = query.validate()
        self._pattern = self._compile(query.pattern)
        self._anchor = self._compile(query.anchor)

    def _compile(self, expr: Optional[str]) -> Optional[Pattern[str]]:
        if expr is None or not self.query.regex:
            return None
        return re.compile(expr)

    def _matches(self, text: str, literal: Optional[str], compiled: Optional[Pattern[str]]) -> bool:
        if compiled is not None:
            return compiled.fullmatch(text) is not None
        return text == literal

    def text_matches(self, text: Optional[str]) -> bool:
        if self.query.pattern is None:
            return True
        return self._matches(text or "", self.query.pattern, self._pattern)

    def evaluate(self, snapshot: ElementSnapshot, dedup: DedupTracker, state: ScanState) -> MatchOutcome:
        state.observe(snapshot)
        text = snapshot.text or ""

        if self.query.anchor is not None and not state.anchor_found:
            state.excluded.add(snapshot.identity)
            if self._matches(text, self.query.anchor, self._anchor):
                state.anchor_found = True
                dedup.clear()
                return ANCHOR_FOUND
            return NO_MATCH

        if snapshot.identity in state.excluded:
            return NO_MATCH
        if not self.text_matches(text):
            return NO_MATCH
        if not dedup.add(snapshot.identity):
            return DUPLICATE

        ordinal = len(dedup)
        return MatchOutcome(OutcomeKind.MATCHED, ordinal, ordinal == self.query.ordinal)

    def scan(
        self,
        snapshots: Iterable[ElementSnapshot],
        dedup: DedupTracker,
        state: ScanState,
    ) -> Optional[ElementSnapshot]:
        """Return the element reaching the requested ordinal, or None."""
        for snapshot in snapshots:
            if self.evaluate(snapshot, dedup, state).selected:
                return snapshot
        return None
