"""
@file engine.py
@brief Resolution engine: polling, scrolling, ordinal matching and index drift.

Every public call owns one Deadline and one DedupTracker. Polling and
scrolling are explicit loops; the engine suspends only in poll sleeps and
in the scroller's settle pause.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional

from .config import TimeConfig
from .exceptions import (ElementNotFoundError, IndexOutOfRangeError,
                         InvalidQueryError, PartialMatchError,
                         ResolutionTimeoutError, TimeoutError,
                         TransientSnapshotError)
from .interfaces import ISnapshotProvider
from .matcher import DedupTracker, Matcher, ScanState
from .model import Direction, ElementSnapshot, ElementType, Query
from .scroller import ScrollController
from .timinglogger import TIMING_LOGGER
from .visibility import VisibilityFilter, index_by_identity
from .waits import Deadline, wait_until_passes


@dataclass
class SearchResult:
    """Outcome of one scan/scroll sweep."""
    element: Optional[ElementSnapshot] = None
    found: int = 0
    seen_texts: List[str] = field(default_factory=list)
    scroll_steps: int = 0
    timed_out: bool = False
    scrolling: bool = False

    @property
    def matched(self) -> bool:
        return self.element is not None


class ResolutionEngine:
    """
    Resolves queries against a live, mutable element tree.

    @param provider Snapshot source
    @param scroller Scroll controller acting on the same tree
    @param visibility Optional fixed visibility filter; by default one is
                      built from the provider's current screen bounds
    """

    def __init__(
        self,
        provider: ISnapshotProvider,
        scroller: ScrollController,
        visibility: Optional[VisibilityFilter] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.provider = provider
        self.scroller = scroller
        self._visibility = visibility
        self.log = logger or logging.getLogger("uiseek")

    # ------------------------------------------------------------------
    # snapshots
    # ------------------------------------------------------------------

    def visibility(self) -> VisibilityFilter:
        if self._visibility is not None:
            return self._visibility
        return VisibilityFilter(self.provider.screen_bounds())

    def fetch(
        self,
        element_type: ElementType = ElementType.VIEW,
        root: Optional[Hashable] = None,
        only_visible: bool = True,
    ) -> List[ElementSnapshot]:
        """
        Enumerate once and return elements of element_type in document order.

        Visibility is judged against the full enumeration so that ancestors
        of other types still define the viewport.
        """
        snapshots = self.provider.enumerate(root, only_visible=only_visible)
        if only_visible:
            snapshots = self.visibility().apply(snapshots, index_by_identity(snapshots))
        return [s for s in snapshots if s.element_type.is_a(element_type)]

    def _fetch(
        self,
        element_type: ElementType,
        root: Optional[Hashable],
        only_visible: bool,
        deadline: Optional[Deadline] = None,
    ) -> List[ElementSnapshot]:
        cfg = TimeConfig.current()
        timeout = deadline.remaining() if deadline is not None else cfg.snapshot_retry.timeout
        try:
            return wait_until_passes(
                self.fetch,
                timeout,
                cfg.snapshot_retry.interval,
                (TransientSnapshotError,),
                "stable snapshot",
                element_type,
                root,
                only_visible,
                stage="snapshot",
            )
        except TimeoutError as e:
            self.log.warning("Snapshot kept changing, treating poll as empty: %s", e.original_exception)
            return []

    def _scroll(self, direction: Direction, root: Optional[Hashable]) -> bool:
        try:
            return self.scroller.scroll(direction, root)
        except TransientSnapshotError as e:
            # Tree moved under the scroller; report progress so the caller polls again.
            self.log.debug("Scroll step hit a changing tree: %s", e)
            return True

    # ------------------------------------------------------------------
    # sweeps
    # ------------------------------------------------------------------

    def search(
        self,
        query: Query,
        matcher: Matcher,
        dedup: DedupTracker,
        state: ScanState,
        deadline: Deadline,
        scrolling_hint: bool = True,
    ) -> SearchResult:
        """
        Scan, then scroll down and scan again, until matched, exhausted or
        out of time. Always scans at least once.

        @param scrolling_hint Whether scrolling was still progressing before
                              this sweep; used when the deadline passes
                              before the sweep itself could scroll
        """
        steps = 0
        while True:
            candidates = self._fetch(query.element_type, query.root, query.only_visible, deadline)
            element = matcher.scan(candidates, dedup, state)
            if TIMING_LOGGER.is_enabled():
                TIMING_LOGGER.log(
                    event="poll",
                    description=query.describe(),
                    metadata={"candidates": len(candidates), "distinct": len(dedup), "step": steps},
                )
            if element is not None:
                return SearchResult(element, len(dedup), state.seen_texts, steps)
            if not query.scroll:
                return SearchResult(None, len(dedup), state.seen_texts, steps)
            if deadline.expired():
                return SearchResult(
                    None, len(dedup), state.seen_texts, steps,
                    timed_out=True, scrolling=steps > 0 or scrolling_hint,
                )
            if steps >= self.scroller.max_steps:
                self.log.warning("Giving up on %s after %d scroll steps", query.describe(), steps)
                return SearchResult(None, len(dedup), state.seen_texts, steps)
            if not self._scroll(Direction.DOWN, query.root):
                return SearchResult(None, len(dedup), state.seen_texts, steps)
            steps += 1

    def _observe_type(
        self,
        element_type: ElementType,
        dedup: DedupTracker,
        root: Optional[Hashable],
        deadline: Deadline,
    ) -> int:
        for snapshot in self._fetch(element_type, root, True, deadline):
            dedup.add(snapshot.identity)
        return len(dedup)

    # ------------------------------------------------------------------
    # timeout-style waits
    # ------------------------------------------------------------------

    def wait_for_text(
        self,
        pattern: str,
        minimum_matches: int = 0,
        timeout: Optional[float] = None,
        scroll: bool = True,
        only_visible: bool = True,
        regex: bool = False,
        element_type: ElementType = ElementType.TEXT,
        root: Optional[Hashable] = None,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """
        Poll until at least minimum_matches distinct elements show pattern.

        Each poll is a fresh sweep with its own dedup set.

        @return False if the deadline passes first
        """
        settings = TimeConfig.current().text_wait
        deadline = deadline or Deadline(settings.timeout if timeout is None else timeout)
        query = Query(
            element_type=element_type,
            pattern=pattern,
            regex=regex,
            match=minimum_matches,
            only_visible=only_visible,
            scroll=scroll,
            root=root,
        )
        return self._poll_text(query, deadline, settings.interval).matched

    def search_text(
        self,
        pattern: str,
        minimum_matches: int = 0,
        scroll: bool = True,
        only_visible: bool = True,
        regex: bool = False,
        element_type: ElementType = ElementType.TEXT,
        timeout: Optional[float] = None,
    ) -> bool:
        """One scan/scroll sweep without polling; the text_wait timeout only bounds it."""
        settings = TimeConfig.current().text_wait
        deadline = Deadline(settings.timeout if timeout is None else timeout)
        query = Query(
            element_type=element_type,
            pattern=pattern,
            regex=regex,
            match=minimum_matches,
            only_visible=only_visible,
            scroll=scroll,
        )
        return self.search(query, Matcher(query), DedupTracker(), ScanState(), deadline).matched

    def _poll_text(self, query: Query, deadline: Deadline, interval: float) -> SearchResult:
        matcher = Matcher(query)
        description = f"wait_for_text {query.describe()}"
        self._log_wait("wait_start", description, deadline, interval)

        polls = 0
        scrolling = True
        while True:
            polls += 1
            result = self.search(query, matcher, DedupTracker(), ScanState(), deadline, scrolling)
            if result.matched:
                self._log_wait("wait_success", description, deadline, polls=polls)
                return result
            if deadline.expired():
                self._log_wait("wait_timeout", description, deadline, polls=polls)
                return result
            scrolling = result.scrolling
            deadline.sleep(interval)

    def wait_for_type(
        self,
        element_type: ElementType,
        index: int = 0,
        timeout: Optional[float] = None,
        scroll: bool = True,
        root: Optional[Hashable] = None,
    ) -> bool:
        """
        Poll until index + 1 distinct elements of element_type have been
        seen, scrolling between polls. One dedup set spans the whole wait.
        """
        if index < 0:
            raise InvalidQueryError(f"Index must be >= 0, got {index}")
        settings = TimeConfig.current().view_wait
        deadline = Deadline(settings.timeout if timeout is None else timeout)
        dedup = DedupTracker()
        while True:
            if index < self._observe_type(element_type, dedup, root, deadline):
                return True
            if deadline.expired():
                return False
            if not (scroll and self._scroll(Direction.DOWN, root)):
                deadline.sleep(settings.interval)

    def wait_for_either(
        self,
        first: ElementType,
        second: ElementType,
        timeout: Optional[float] = None,
        root: Optional[Hashable] = None,
    ) -> bool:
        """Poll until an element of either type is shown, scrolling between polls."""
        settings = TimeConfig.current().either_wait
        deadline = Deadline(settings.timeout if timeout is None else timeout)
        while True:
            for element_type in (first, second):
                if self._fetch(element_type, root, True, deadline):
                    return True
            if deadline.expired():
                return False
            self._scroll(Direction.DOWN, root)
            deadline.sleep(settings.interval)

    # ------------------------------------------------------------------
    # resolution
    # ------------------------------------------------------------------

    def resolve(self, query: Query) -> ElementSnapshot:
        """
        Resolve a text/type query to exactly one element.

        First waits (bounded by the same deadline) for any occurrence, then
        scans and scrolls with a dedup set that persists across scroll steps.
        With an anchor, the first wait is for the anchor: it precedes every
        acceptable match, so the scan must start where the anchor is shown.

        @throws ResolutionTimeoutError deadline hit while scrolling still progressed
        @throws PartialMatchError fewer distinct matches than the requested ordinal
        @throws ElementNotFoundError no match at all (or anchor never seen)
        """
        query.validate()
        deadline = query.deadline or Deadline(TimeConfig.current().text_resolve.timeout)
        matcher = Matcher(query)

        scrolling = True
        if query.pattern is not None:
            any_occurrence = Query(
                element_type=query.element_type,
                pattern=query.anchor if query.anchor is not None else query.pattern,
                regex=query.regex,
                only_visible=query.only_visible,
                scroll=query.scroll,
                root=query.root,
            )
            first = self._poll_text(any_occurrence, deadline, TimeConfig.current().text_wait.interval)
            scrolling = first.matched or first.scrolling

        dedup = DedupTracker()
        state = ScanState()
        result = self.search(query, matcher, dedup, state, deadline, scrolling)
        if result.matched:
            self.log.debug("Resolved %s to %s", query.describe(), result.element.describe())
            return result.element

        description = query.describe()
        if result.timed_out and result.scrolling:
            raise ResolutionTimeoutError(description, result.found, deadline.timeout)
        if query.anchor is not None and not state.anchor_found:
            raise ElementNotFoundError(
                description,
                seen_texts=result.seen_texts,
                timeout=deadline.timeout,
                anchor=query.anchor,
                anchor_found=False,
            )
        if result.found > 0:
            raise PartialMatchError(description, result.found, query.ordinal)
        self.log.debug("%s not found. Have found: %s", description, result.seen_texts)
        raise ElementNotFoundError(description, seen_texts=result.seen_texts, timeout=deadline.timeout)

    def resolve_by_index(
        self,
        element_type: ElementType,
        index: int,
        deadline: Optional[Deadline] = None,
    ) -> ElementSnapshot:
        """
        Resolve the index-th shown element of element_type.

        While polling, elements are counted by identity across scroll steps.
        If fewer elements are live afterwards than were counted, the index
        is shifted down by the difference, provided it stays >= 0.

        @throws IndexOutOfRangeError if the (shifted) index addresses nothing
        """
        if index < 0:
            raise InvalidQueryError(f"Index must be >= 0, got {index}")
        settings = TimeConfig.current().index_wait
        deadline = deadline or Deadline(settings.timeout)

        dedup = DedupTracker()
        while True:
            if index < self._observe_type(element_type, dedup, None, deadline):
                break
            if deadline.expired():
                break
            if not self._scroll(Direction.DOWN, None):
                deadline.sleep(settings.interval)

        live = self._fetch(element_type, None, True)
        distinct = len(dedup)
        selected = index
        if len(live) < distinct:
            shifted = index - (distinct - len(live))
            if shifted >= 0:
                selected = shifted
            if TIMING_LOGGER.is_enabled():
                TIMING_LOGGER.log(
                    event="index_shift",
                    description=element_type.value,
                    metadata={"index": index, "distinct": distinct, "live": len(live), "selected": selected},
                )

        if selected >= len(live):
            raise IndexOutOfRangeError(index, element_type.value, len(live), selected=selected)
        return live[selected]

    def collect_all(
        self,
        root: Optional[Hashable] = None,
        element_type: ElementType = ElementType.VIEW,
    ) -> List[ElementSnapshot]:
        """
        Collect every element of a scrollable screen: scroll to the top,
        then walk down, keeping the first snapshot of each identity.
        """
        self.scroller.scroll_to_top(root)
        ordered: Dict[Hashable, ElementSnapshot] = {}
        steps = 0
        while True:
            for snapshot in self._fetch(element_type, root, True):
                ordered.setdefault(snapshot.identity, snapshot)
            if steps >= self.scroller.max_steps or not self._scroll(Direction.DOWN, root):
                break
            steps += 1
        return list(ordered.values())

    def children_of(
        self,
        parent: Hashable,
        element_type: ElementType = ElementType.VIEW,
    ) -> List[ElementSnapshot]:
        """Shown direct children of parent, in document order."""
        return [s for s in self._fetch(element_type, parent, True) if s.parent == parent]

    def _log_wait(
        self,
        event: str,
        description: str,
        deadline: Deadline,
        interval: Optional[float] = None,
        polls: Optional[int] = None,
    ) -> None:
        if not TIMING_LOGGER.is_enabled():
            return
        metadata = {"timeout_s": deadline.timeout, "elapsed_s": deadline.elapsed()}
        if interval is not None:
            metadata["interval_s"] = interval
        if polls is not None:
            metadata["polls"] = polls
        TIMING_LOGGER.log(
            event=event,
            description=description,
            status="error" if event == "wait_timeout" else "info",
            metadata=metadata,
        )
