# uiseek/context.py
"""
@file context.py
@brief Per-thread stack of the caller-API calls in flight, so a failure
       report can show which lookup inside which action gave up.
"""

from __future__ import annotations
import functools
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generator, List, Optional
from uuid import uuid4


@dataclass(eq=False)
class ActionContext:
    """One tracked call: what ran, on which target, and who called it."""
    action_name: str = ""
    target: Optional[str] = None
    parent_context: Optional[ActionContext] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    action_id: str = field(default_factory=lambda: uuid4().hex[:8])
    start_time: float = field(default_factory=time.monotonic)

    @property
    def description(self) -> str:
        return f"{self.action_name} '{self.target}'" if self.target else self.action_name

    @property
    def elapsed_time(self) -> float:
        return time.monotonic() - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action_id": self.action_id,
            "action_name": self.action_name,
            "target": self.target,
            "elapsed_time": round(self.elapsed_time, 3),
            "metadata": self.metadata,
        }

    def get_full_trace(self) -> List[ActionContext]:
        """This context followed by its callers, innermost first."""
        trace: List[ActionContext] = []
        ctx: Optional[ActionContext] = self
        while ctx is not None:
            trace.append(ctx)
            ctx = ctx.parent_context
        return trace

    def format_trace(self) -> str:
        lines = ["Action trace (most recent first):"]
        lines += [
            f"  {'X' if depth == 0 else '->'} {ctx.description} [{ctx.elapsed_time:.2f}s]"
            for depth, ctx in enumerate(self.get_full_trace())
        ]
        return "\n".join(lines)


class _Frames(threading.local):
    def __init__(self) -> None:
        self.stack: List[ActionContext] = []
        self.failed: Optional[ActionContext] = None


class ActionContextManager:
    """Tracks ActionContexts for the current thread."""

    _frames = _Frames()

    @classmethod
    def current(cls) -> Optional[ActionContext]:
        stack = cls._frames.stack
        return stack[-1] if stack else None

    @classmethod
    def last_failed(cls) -> Optional[ActionContext]:
        """The innermost context an exception escaped from, until clear()."""
        return cls._frames.failed

    @classmethod
    @contextmanager
    def action(cls, action_name: str, target: Optional[str] = None, **metadata: Any) -> Generator[ActionContext, None, None]:
        frames = cls._frames
        context = ActionContext(action_name, target, cls.current(), metadata)
        frames.stack.append(context)
        try:
            yield context
        except BaseException:
            # Outer frames see the same exception; only the first (deepest) one is kept.
            if frames.failed is None or context not in frames.failed.get_full_trace():
                frames.failed = context
            raise
        finally:
            frames.stack.pop()

    @classmethod
    def clear(cls) -> None:
        cls._frames.stack = []
        cls._frames.failed = None


def _track(name: str, func: Callable, args: tuple, kwargs: Dict[str, Any]) -> Any:
    from .actionlogger import ACTION_LOGGER

    # Methods are tracked against their first positional argument after self.
    target = str(args[1]) if len(args) > 1 and args[1] is not None else None
    with ActionContextManager.action(name, target=target) as context:
        record = dict(action=name, target=target, metadata=kwargs, action_id=context.action_id, event="action_finish")
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            ACTION_LOGGER.log(status="error", duration_ms=int(context.elapsed_time * 1000), exception=exc, **record)
            raise
        ACTION_LOGGER.log(status="ok", duration_ms=int(context.elapsed_time * 1000), **record)
        return result


def tracked_action(action_name: Optional[str] = None):
    """
    Decorator: run the method inside an ActionContext and report its outcome
    to ACTION_LOGGER.
    """
    def decorator(func):
        name = action_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return _track(name, func, args, kwargs)

        return wrapper

    return decorator
