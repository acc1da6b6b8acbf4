# tests/test_logging.py
"""
Tests for action/timing loggers, the action context stack and error rendering.
"""

import json

import pytest

from uiseek.actionlogger import ACTION_LOGGER, ActionLogger
from uiseek.context import ActionContextManager, tracked_action
from uiseek.exceptions import (ActionError, ElementNotFoundError,
                               IndexOutOfRangeError, PartialMatchError,
                               ResolutionTimeoutError, describe_error)
from uiseek.timinglogger import TimingLogger


class Widget:
    @tracked_action("outer")
    def outer(self, name):
        return self.inner(name)

    @tracked_action("inner")
    def inner(self, name):
        if name == "boom":
            raise ValueError("boom")
        return name.upper()


class TestActionContext:
    """Tests for the action context stack."""

    def test_nested_failure_keeps_innermost(self):
        with pytest.raises(ValueError):
            Widget().outer("boom")
        failed = ActionContextManager.last_failed()
        assert failed.action_name == "inner"
        assert [c.action_name for c in failed.get_full_trace()] == ["inner", "outer"]
        trace = failed.format_trace()
        assert "X inner 'boom'" in trace
        assert "-> outer 'boom'" in trace

    def test_success_leaves_stack_empty(self):
        assert Widget().outer("ok") == "OK"
        assert ActionContextManager.current() is None
        assert ActionContextManager.last_failed() is None

    def test_tracked_action_keeps_name(self):
        assert Widget.outer.__name__ == "outer"


class TestActionLogger:
    """Tests for ActionLogger."""

    def test_disabled_by_default(self, capsys):
        logger = ActionLogger()
        logger.log(action="tap")
        assert capsys.readouterr().out == ""

    def test_jsonl_to_file_with_redaction(self, tmp_path):
        path = tmp_path / "logs" / "actions.jsonl"
        logger = ActionLogger()
        logger.configure(console=False, file_path=str(path), format="jsonl", run_id="r1")
        logger.enable()
        logger.log(action="type", target="login", metadata={"password": "hunter2", "field": "pw"})

        event = json.loads(path.read_text(encoding="utf-8").splitlines()[0])
        assert event["run_id"] == "r1"
        assert event["metadata"] == {"password": "***", "field": "pw"}

    def test_nested_and_compound_keys_redacted(self, capsys):
        logger = ActionLogger()
        logger.configure(format="jsonl")
        logger.enable()
        logger.log(action="login", metadata={"auth": {"api_token": "abc", "user": "ada"}})
        event = json.loads(capsys.readouterr().out)
        assert event["metadata"] == {"auth": {"api_token": "***", "user": "ada"}}

    def test_line_format_with_exception(self, capsys):
        logger = ActionLogger()
        logger.configure(console=True)
        logger.enable()
        try:
            raise ActionError("click_on_text", target="OK") from KeyError("x")
        except ActionError as e:
            logger.log(action="click_on_text", status="error", exception=e)
        line = capsys.readouterr().out
        assert "exc_type=ActionError" in line
        assert "status=error" in line

    def test_bad_format(self):
        with pytest.raises(ValueError):
            ActionLogger().configure(format="xml")

    def test_tracked_actions_logged(self, capsys):
        ACTION_LOGGER.configure(console=True)
        ACTION_LOGGER.enable()
        try:
            Widget().outer("ok")
        finally:
            ACTION_LOGGER.disable()
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 2
        assert "inner" in lines[0] and "status=ok" in lines[0]


class TestTimingLogger:
    """Tests for TimingLogger."""

    def test_history_kept_without_console(self, capsys):
        logger = TimingLogger(history=2)
        logger.configure(console=False)
        logger.enable()
        for i in range(3):
            logger.log(event="poll", metadata={"step": i})
        assert [e["metadata"]["step"] for e in logger.recent("poll")] == [1, 2]
        assert capsys.readouterr().out == ""

    def test_console_line(self, capsys):
        logger = TimingLogger()
        logger.enable()
        logger.log(event="wait_success", description="ready", metadata={"elapsed_s": 0.12345})
        line = capsys.readouterr().out
        assert "event=wait_success" in line
        assert "elapsed_s=0.123" in line


class TestErrorRendering:
    """Tests for exception messages."""

    def test_not_found_lists_seen(self):
        error = ElementNotFoundError("text 'Save'", seen_texts=["Open", "Close"], timeout=5)
        text = str(error)
        assert "timeout=5s" in text
        assert "  - 'Open'" in text

    def test_not_found_nothing_seen(self):
        assert "Seen: nothing" in str(ElementNotFoundError("text 'Save'"))

    def test_partial_and_index(self):
        assert "only 1 matches" in str(PartialMatchError("text 'A'", 1, 2))
        error = IndexOutOfRangeError(4, "button", 2)
        assert "index 4" in str(error)

    def test_resolution_timeout(self):
        error = ResolutionTimeoutError("text 'A'", 0, 10)
        assert error.stage == "scroll"
        assert "still revealing content" in str(error)

    def test_action_error_cause_traceback(self):
        try:
            raise KeyError("missing")
        except KeyError as e:
            error = ActionError("click_on_type", target="button[0]", cause=e)
        assert "KeyError" in error.get_cause_traceback()
        assert ActionError("x").get_cause_traceback() == ""

    def test_describe_error_first_line(self):
        error = ElementNotFoundError("text 'Save'", seen_texts=["Open"])
        rendered = describe_error(error)
        assert rendered.startswith("ElementNotFoundError: ")
        assert "\n" not in rendered
        assert "Open" not in rendered
