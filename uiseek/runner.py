# uiseek/runner.py
"""
@file runner.py
@brief Scenario runner for YAML-based test execution.
"""

from __future__ import annotations

import json
import logging
import os
import re
import time
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

import yaml
from jsonschema import Draft202012Validator

from .actionlogger import ACTION_LOGGER
from .actions import LOCATION_ABOVE, Actions
from .config import RunSettings, TimeConfig
from .context import ActionContextManager
from .engine import ResolutionEngine
from .interfaces import IInputDispatcher, IScrollPrimitive, ISnapshotProvider
from .model import ElementSnapshot
from .resolver import Resolver
from .scroller import ScrollController
from .waits import sleep

SCENARIO_SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schemas", "scenario.schema.json")

_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _substitute(value: Any, variables: Dict[str, Any]) -> Any:
    """Substitute variables in step arguments."""
    if isinstance(value, str):

        def repl(m):
            key = m.group(1)
            if key not in variables:
                return m.group(0)
            return str(variables[key])

        return _VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_substitute(v, variables) for v in value]
    if isinstance(value, dict):
        return {k: _substitute(v, variables) for k, v in value.items()}
    return value


def scenario_validator(schema_path: str = SCENARIO_SCHEMA_PATH) -> Draft202012Validator:
    """Load the scenario JSON schema into a validator."""
    with open(schema_path, "r", encoding="utf-8") as f:
        return Draft202012Validator(json.load(f))


def validate_scenario(scenario: Dict[str, Any], validator: Optional[Draft202012Validator] = None) -> None:
    """
    Validate a parsed scenario.

    @throws ValueError listing every schema violation
    """
    validator = validator or scenario_validator()
    errors = sorted(validator.iter_errors(scenario), key=lambda e: list(e.path))
    if errors:
        lines = ["Scenario schema validation failed:"]
        for e in errors:
            lines.append(f"- {list(e.path)}: {e.message}")
        raise ValueError("\n".join(lines))


def _jsonable(value: Any) -> Any:
    if isinstance(value, ElementSnapshot):
        return value.to_dict()
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


class Runner:
    """
    Loads scenario.yaml, validates, runs steps, emits report JSON.

    The runner owns nothing platform specific: the snapshot provider, scroll
    primitive and input dispatcher are handed in, and a fresh scroller,
    engine, resolver and actions stack is built for every run.
    """

    def __init__(
        self,
        provider: ISnapshotProvider,
        scroll_primitive: IScrollPrimitive,
        dispatcher: IInputDispatcher,
        schema_path: str = SCENARIO_SCHEMA_PATH,
        logger: Optional[logging.Logger] = None,
    ):
        """
        @param provider Snapshot source for the device under test
        @param scroll_primitive Scroll mutations on the same device
        @param dispatcher Input-event synthesizer
        @param schema_path Path to JSON schema for scenario validation
        """
        self.provider = provider
        self.scroll_primitive = scroll_primitive
        self.dispatcher = dispatcher
        self.schema_path = os.path.abspath(schema_path)
        self._validator = scenario_validator(self.schema_path)
        self.log = logger or logging.getLogger("uiseek")

    @staticmethod
    def _load_yaml(path: str) -> Dict[str, Any]:
        """Load and parse YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError("Scenario must be a mapping at root")
        return data

    def validate(self, scenario: Dict[str, Any]) -> None:
        """Validate scenario against JSON schema."""
        validate_scenario(scenario, self._validator)

    def build(self, settings: Optional[RunSettings] = None) -> Tuple[Resolver, Actions]:
        """Wire a resolver and actions stack over the runner's collaborators."""
        settings = settings or RunSettings()
        scroller = ScrollController(
            self.provider,
            self.scroll_primitive,
            max_steps=settings.max_scroll_steps,
            logger=self.log,
        )
        engine = ResolutionEngine(self.provider, scroller, logger=self.log)
        resolver = Resolver(engine)
        return resolver, Actions(resolver, self.dispatcher)

    def run(
        self,
        scenario_path: str,
        variables: Optional[Dict[str, Any]] = None,
        report_path: Optional[str] = None,
        settings: Optional[RunSettings] = None,
    ) -> Dict[str, Any]:
        """
        Run a scenario file.

        @param scenario_path YAML scenario
        @param variables Values for ${VAR} placeholders; override the
                         scenario's own vars
        @param report_path Optional JSON report output path
        @param settings Timing preset, overrides and scroll bound for the run
        @return Report dict (also written to report_path when given)
        """
        settings = settings or RunSettings()
        scenario_path = os.path.abspath(scenario_path)

        start_ts = time.time()
        run_id = str(uuid4())
        ACTION_LOGGER.set_run_id(run_id)
        report: Dict[str, Any] = {
            "run_id": run_id,
            "scenario": os.path.basename(scenario_path),
            "started_at": time.strftime("%Y-%m-%d %H:%M:%S"),
            "status": "unknown",
            "steps": [],
            "errors": [],
        }

        try:
            scenario = self._load_yaml(scenario_path)
            self.validate(scenario)

            merged_vars = dict(scenario.get("vars", {}) or {})
            merged_vars.update(variables or {})
            steps: List[Dict[str, Any]] = _substitute(scenario.get("steps", []), merged_vars)

            TimeConfig.install_run_config(settings.build_time_config())
            resolver, actions = self.build(settings)
            self.log.info("Running scenario %s (%d steps)", report["scenario"], len(steps))

            for idx, step in enumerate(steps, start=1):
                if not isinstance(step, dict) or len(step) != 1:
                    raise ValueError(f"Invalid step format at index {idx}: {step}")

                keyword, args = next(iter(step.items()))
                args = args or {}
                if not isinstance(args, dict):
                    raise ValueError(f"Step args must be a mapping at index {idx}: {step}")

                step_rec: Dict[str, Any] = {
                    "index": idx,
                    "keyword": keyword,
                    "args": args,
                    "status": "running",
                    "started_at": time.time(),
                }
                report["steps"].append(step_rec)

                try:
                    ActionContextManager.clear()
                    result = self._execute(keyword, args, resolver, actions)
                    if result is not None:
                        step_rec["result"] = _jsonable(result)
                    step_rec["status"] = "passed"
                except Exception as e:
                    step_rec["status"] = "failed"
                    step_rec["error"] = f"{type(e).__name__}: {e}"

                    ctx = ActionContextManager.last_failed()
                    if ctx:
                        step_rec["action_trace"] = ctx.format_trace()

                    raise
                finally:
                    step_rec["duration_sec"] = round(time.time() - step_rec["started_at"], 3)
                    step_rec.pop("started_at", None)

            report["status"] = "passed"
            return report

        except Exception as e:
            self.log.error("Scenario %s failed: %s", report["scenario"], e)
            report["status"] = "failed"
            report["errors"].append(f"{type(e).__name__}: {e}")
            return report
        finally:
            report["duration_sec"] = round(time.time() - start_ts, 3)

            ActionContextManager.clear()
            TimeConfig.clear_run_config()

            if report_path:
                os.makedirs(os.path.dirname(os.path.abspath(report_path)) or ".", exist_ok=True)
                with open(report_path, "w", encoding="utf-8") as f:
                    json.dump(report, f, indent=2)

    def _execute(
        self,
        keyword: str,
        args: Dict[str, Any],
        resolver: Resolver,
        actions: Actions,
    ) -> Any:
        """Execute single scenario step; returns a JSON-friendly result or None."""
        if keyword == "wait_for_text":
            resolver.expect_text(
                args["text"],
                minimum_matches=int(args.get("minimum_matches", 0)),
                timeout=args.get("timeout"),
                scroll=bool(args.get("scroll", True)),
                regex=bool(args.get("regex", False)),
            )
            return None

        if keyword == "assert_text":
            present = bool(args.get("present", True))
            shown = resolver.exists(
                args["text"],
                regex=bool(args.get("regex", False)),
                timeout=args.get("timeout"),
            )
            if shown != present:
                expected = "shown" if present else "absent"
                raise AssertionError(f"Expected '{args['text']}' to be {expected}")
            return shown

        if keyword == "click_on_text":
            element = actions.click_on_text(
                args["text"],
                match=int(args.get("match", 0)),
                scroll=bool(args.get("scroll", True)),
                long_press=bool(args.get("long_press", False)),
                regex=bool(args.get("regex", False)),
                element_type=args.get("type", "text"),
                timeout=args.get("timeout"),
            )
            return element

        if keyword == "click_on_type":
            return actions.click_on_type(
                args["type"],
                index=int(args.get("index", 0)),
                long_press=bool(args.get("long_press", False)),
                timeout=args.get("timeout"),
            )

        if keyword == "click_in_list":
            return actions.click_in_list(
                line=int(args.get("line", 1)),
                list_index=int(args.get("list_index", 0)),
                long_press=bool(args.get("long_press", False)),
                scroll=bool(args.get("scroll", True)),
            )

        if keyword == "click_unattached":
            return actions.click_unattached(
                args["type"],
                args["text"],
                location=args.get("location", LOCATION_ABOVE),
                regex=bool(args.get("regex", False)),
            )

        if keyword == "find_by_text":
            if args.get("after"):
                return resolver.find_by_text_after(
                    args["text"],
                    args["after"],
                    element_type=args.get("type", "text"),
                    match=int(args.get("match", 0)),
                    regex=bool(args.get("regex", False)),
                    scroll=bool(args.get("scroll", True)),
                    timeout=args.get("timeout"),
                )
            return resolver.find_by_text(
                args["text"],
                element_type=args.get("type", "text"),
                match=int(args.get("match", 0)),
                regex=bool(args.get("regex", False)),
                scroll=bool(args.get("scroll", True)),
                timeout=args.get("timeout"),
            )

        if keyword == "find_by_index":
            return resolver.find_by_index(
                args["type"],
                int(args.get("index", 0)),
                timeout=args.get("timeout"),
            )

        if keyword == "scroll":
            return resolver.scroll(args.get("direction", "down"))

        if keyword == "scroll_list":
            return resolver.scroll_list(
                int(args.get("index", 0)),
                args.get("direction", "down"),
                timeout=args.get("timeout"),
            )

        if keyword == "scroll_to_top":
            return resolver.scroll_to_top()

        if keyword == "scroll_to_bottom":
            return resolver.scroll_to_bottom()

        if keyword == "sleep":
            sleep(float(args.get("seconds", 1)))
            return None

        raise ValueError(f"Unknown keyword: {keyword}")
