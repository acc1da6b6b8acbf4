# uiseek/exceptions.py
"""
@file exceptions.py
@brief Exception hierarchy for element resolution and UI actions.
"""

from __future__ import annotations
from typing import List, Optional, Sequence


class UISeekError(Exception):
    """Base exception for the framework."""
    pass


class ConfigError(UISeekError):
    """Raised when YAML/JSON configuration is invalid."""
    pass


class InvalidQueryError(UISeekError):
    """Raised before any polling when a query cannot be evaluated."""
    pass


class TransientSnapshotError(UISeekError):
    """
    Raised by snapshot providers when the tree changed mid-enumeration.

    The engine treats this as a retryable condition and polls again.
    """
    pass


class TimeoutError(UISeekError):
    """
    Raised when a wait/retry times out.

    Attributes:
        original_exception: The last exception raised before the timeout
        description: Human-readable description of what was being waited for
        timeout: The timeout value in seconds
        attempt_count: Number of attempts made (if applicable)
        elapsed_time: Actual elapsed time in seconds (if applicable)
        stage: Logical stage of the wait (poll, scroll, index, ...)
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.original_exception: Optional[BaseException] = None
        self.description: Optional[str] = None
        self.timeout: Optional[float] = None
        self.attempt_count: Optional[int] = None
        self.elapsed_time: Optional[float] = None
        self.stage: Optional[str] = None

    def __str__(self) -> str:
        base_msg = super().__str__()

        details = []
        if self.original_exception is not None:
            details.append(f"Original exception: {type(self.original_exception).__name__}")
        if self.attempt_count is not None:
            details.append(f"Attempts: {self.attempt_count}")
        if self.elapsed_time is not None:
            details.append(f"Elapsed: {self.elapsed_time:.2f}s")
        if self.stage is not None:
            details.append(f"Stage: {self.stage}")

        if details:
            return f"{base_msg} [{', '.join(details)}]"
        return base_msg

    def get_root_cause(self) -> Optional[BaseException]:
        """
        Get the root cause exception by traversing the chain.

        @return The deepest original_exception in the chain, or None
        """
        current = self.original_exception
        while current is not None:
            nested = getattr(current, "original_exception", None)
            if nested is None:
                return current
            current = nested
        return None


class ResolutionTimeoutError(TimeoutError):
    """
    Raised when the deadline expired while scrolling was still revealing content.

    Distinct from a not-found outcome: the search space was never exhausted.
    """

    def __init__(self, query: str, found: int, timeout: Optional[float], scrolling: bool = True):
        self.query = query
        self.found = found
        self.scrolling = scrolling
        message = f"Timed out resolving {query}"
        if timeout is not None:
            message += f" after {timeout}s"
        if scrolling:
            message += " while scrolling was still revealing content"
        if found:
            message += f" ({found} distinct match(es) seen)"
        super().__init__(message)
        self.description = query
        self.timeout = timeout
        self.stage = "scroll" if scrolling else "poll"


class ElementNotFoundError(UISeekError):
    """
    Raised when no element satisfies a query within its deadline.

    Carries the texts that were actually observed for the requested type,
    which usually explains a typo or a wrong ordinal at a glance.
    """

    def __init__(
        self,
        query: str,
        seen_texts: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        anchor: Optional[str] = None,
        anchor_found: bool = True,
    ):
        self.query = query
        self.seen_texts: List[str] = list(seen_texts or [])
        self.timeout = timeout
        self.anchor = anchor
        self.anchor_found = anchor_found
        super().__init__(self.__str__())

    def __str__(self) -> str:
        head = f"ElementNotFoundError: {self.query}"
        if self.timeout is not None:
            head += f" timeout={self.timeout}s"
        lines = [head]
        if self.anchor is not None and not self.anchor_found:
            lines.append(f"Anchor '{self.anchor}' was never found")
        if self.seen_texts:
            lines.append("Seen:")
            for text in self.seen_texts:
                lines.append(f"  - '{text}'")
        else:
            lines.append("Seen: nothing")
        return "\n".join(lines)


class PartialMatchError(UISeekError):
    """Raised when fewer distinct matches than the requested ordinal were seen."""

    def __init__(self, query: str, found: int, required: int):
        self.query = query
        self.found = found
        self.required = required
        super().__init__(
            f"There are only {found} matches of {query}, match {required} was requested"
        )


class IndexOutOfRangeError(UISeekError):
    """
    Raised when an ordinal index does not address a live element.

    index is the index the caller asked for; selected is the index actually
    tried after drift correction, when that differs.
    """

    def __init__(self, index: int, type_name: str, available: int, selected: Optional[int] = None):
        self.index = index
        self.type_name = type_name
        self.available = available
        self.selected = index if selected is None else selected
        shifted = f", tried as {self.selected} after content shifted" if self.selected != index else ""
        super().__init__(
            f"No {type_name} with index {index} is available "
            f"({available} currently shown{shifted})"
        )


class ActionError(UISeekError):
    """
    Raised when a UI action fails.

    Contains information about the action, its target and the underlying cause.
    """

    def __init__(
        self,
        action: str,
        target: Optional[str] = None,
        details: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.action = action
        self.target = target
        self.details = details
        self.cause = cause
        super().__init__(self.__str__())

    def __str__(self) -> str:
        base = f"ActionError: action='{self.action}'"
        if self.target:
            base += f" target='{self.target}'"
        if self.details:
            base += f" details='{self.details}'"
        if self.cause:
            base += f" cause='{type(self.cause).__name__}: {self.cause}'"
        return base

    def get_cause_traceback(self) -> str:
        """
        Get a formatted traceback string from the cause exception.

        @return Formatted traceback string or empty string if no cause
        """
        if self.cause is None:
            return ""

        import traceback
        return "".join(traceback.format_exception(
            type(self.cause),
            self.cause,
            self.cause.__traceback__
        ))


def describe_error(error: BaseException) -> str:
    """Short one-line rendering for reports."""
    text = str(error).splitlines()[0] if str(error) else ""
    return f"{type(error).__name__}: {text}"
