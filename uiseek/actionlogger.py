"""
@file actionlogger.py
@brief One record per caller-API call or input action, printed as a
       pipe-separated line or as JSON Lines, optionally appended to a file.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
import traceback
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SENSITIVE_KEYS = ("password", "passwd", "secret", "token")
FORMATS = ("line", "jsonl")

log = logging.getLogger("uiseek")


@dataclass(frozen=True)
class _Output:
    console: bool = True
    file_path: Optional[str] = None
    format: str = "line"
    run_id: str = "default"
    max_traceback_chars: int = 4000


class ActionLogger:
    """Thread-safe action logger; disabled until enable() is called."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._enabled = False
        self._output = _Output()

    def configure(
        self,
        *,
        console: bool = True,
        file_path: Optional[str] = None,
        run_id: Optional[str] = None,
        format: str = "line",
        max_traceback_chars: int = 4000,
    ) -> None:
        fmt = (format or "line").lower()
        if fmt not in FORMATS:
            raise ValueError(f"ActionLogger format must be one of {FORMATS}, got {format!r}")
        with self._lock:
            self._output = _Output(
                console=bool(console),
                file_path=file_path,
                format=fmt,
                run_id=run_id or self._output.run_id,
                max_traceback_chars=max(256, int(max_traceback_chars)),
            )

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def is_enabled(self) -> bool:
        return self._enabled

    def set_run_id(self, run_id: str) -> None:
        if run_id:
            with self._lock:
                self._output = replace(self._output, run_id=run_id)

    def log(
        self,
        *,
        action: str,
        target: Optional[str] = None,
        status: str = "ok",
        duration_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        exception: Optional[BaseException] = None,
        action_id: Optional[str] = None,
        event: Optional[str] = None,
    ) -> None:
        if not self._enabled:
            return
        out = self._output
        record: Dict[str, Any] = {
            "timestamp": time.strftime("%H:%M:%S"),
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "event": event or "action",
            "action": action,
            "action_id": action_id,
            "target": target,
            "status": status,
            "duration_ms": duration_ms,
            "metadata": _redact(metadata or {}),
            "run_id": out.run_id,
        }
        if exception is not None:
            record["exception"] = _describe_exception(exception, out.max_traceback_chars)

        if out.format == "jsonl":
            text = json.dumps(record, ensure_ascii=False, separators=(",", ":"), default=str)
        else:
            text = _as_line(record)

        with self._lock:
            if out.console:
                print(text, flush=True)
            if out.file_path:
                _append(out.file_path, text)


def _append(path: str, text: str) -> None:
    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(text + "\n")
    except OSError as e:
        # A broken log target must not fail the action being logged.
        log.warning("Cannot write action log %s: %s", path, e)


def _as_line(record: Dict[str, Any]) -> str:
    parts = [record["timestamp"], record["action"], f"event={record['event']}"]
    if record["action_id"]:
        parts.append(f"action_id={record['action_id']}")
    if record["target"]:
        parts.append(f"target='{record['target']}'")
    parts.append(f"status={record['status']}")
    if record["duration_ms"] is not None:
        parts.append(f"duration_ms={record['duration_ms']}")
    parts.append(f"run_id={record['run_id']}")
    parts += [f"{k}={v}" for k, v in record["metadata"].items()]
    exc = record.get("exception")
    if exc:
        parts += [f"exc_type={exc['type']}", f"exc_message={exc['message']}"]
    return " | ".join(parts)


def _describe_exception(exception: BaseException, limit: int) -> Dict[str, Any]:
    tb = "".join(traceback.format_exception(type(exception), exception, exception.__traceback__)).strip()
    if len(tb) > limit:
        tb = tb[:limit] + "...<truncated>"
    message = str(exception)
    cause = exception.__cause__
    return {
        "type": type(exception).__name__,
        "message": message.splitlines()[0] if message else "",
        "traceback": tb,
        "cause_type": type(cause).__name__ if cause is not None else None,
    }


def _redact(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Mask values whose key mentions a secret, including in nested mappings."""
    masked: Dict[str, Any] = {}
    for key, value in metadata.items():
        if any(word in str(key).lower() for word in SENSITIVE_KEYS):
            masked[key] = "***"
        elif isinstance(value, dict):
            masked[key] = _redact(value)
        else:
            masked[key] = value
    return masked


ACTION_LOGGER = ActionLogger()
