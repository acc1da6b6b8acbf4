# uiseek/cli.py
"""
@file cli.py
@brief Command-line interface for uiseek.
"""

from __future__ import annotations

import argparse
import importlib.util
import json
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .actionlogger import ACTION_LOGGER
from .backends import (AdbDevice, AdbDumpProvider, AdbInputDispatcher,
                       AdbScrollPrimitive, RecordingDispatcher,
                       StaticScrollPrimitive, UiautomatorDumpProvider)
from .config import (RunSettings, TimeConfig, available_presets,
                     load_run_settings)
from .context import ActionContextManager
from .exceptions import ConfigError, UISeekError, describe_error
from .interfaces import IInputDispatcher, IScrollPrimitive, ISnapshotProvider
from .model import ElementType
from .runner import (SCENARIO_SCHEMA_PATH, Runner, scenario_validator,
                     validate_scenario)
from .timinglogger import TIMING_LOGGER

_TRUTHY = {"1", "true", "yes", "on"}


def _resolve_run_settings(args: argparse.Namespace) -> RunSettings:
    """Merge the --config file with preset flags and --timeout; flags win."""
    settings = load_run_settings(getattr(args, "config", None))
    if getattr(args, "ci", False):
        settings.preset = "ci"
    elif getattr(args, "fast", False):
        settings.preset = "fast"
    elif getattr(args, "slow", False):
        settings.preset = "slow"

    timeout = getattr(args, "timeout", None)
    if timeout is not None:
        settings.timeout = timeout
    max_steps = getattr(args, "max_scroll_steps", None)
    if max_steps is not None:
        settings.max_scroll_steps = max_steps
    return settings


def _build_backend(args: argparse.Namespace) -> Tuple[ISnapshotProvider, IScrollPrimitive, IInputDispatcher]:
    """Pick provider, scroll primitive and dispatcher from the device options."""
    if args.dump:
        provider: ISnapshotProvider = UiautomatorDumpProvider.from_file(args.dump)
        return provider, StaticScrollPrimitive(), RecordingDispatcher()

    if args.uia:
        if importlib.util.find_spec("pywinauto") is None:
            raise ConfigError("--uia requires pywinauto. Install with: pip install uiseek[windows]")
        from .backends.uia import (UIAInputDispatcher, UIAScrollPrimitive,
                                   UIASnapshotProvider)

        uia_provider = UIASnapshotProvider(window_title_re=args.window_title_re)
        dispatcher: IInputDispatcher = RecordingDispatcher() if args.dry_run else UIAInputDispatcher()
        return uia_provider, UIAScrollPrimitive(uia_provider), dispatcher

    device = AdbDevice(serial=args.serial, adb=args.adb)
    dispatcher = RecordingDispatcher() if args.dry_run else AdbInputDispatcher(device)
    return AdbDumpProvider(device), AdbScrollPrimitive(device), dispatcher


def _resolve_scenario_paths(single_scenario: Optional[str], scenarios_dir: Optional[str]) -> List[str]:
    """Resolve scenarios for single or bulk execution."""
    if single_scenario:
        return [os.path.abspath(single_scenario)]
    if not scenarios_dir:
        return []

    base = Path(scenarios_dir).resolve()
    if not base.exists() or not base.is_dir():
        return []

    scenario_files = list(base.rglob("*.yaml")) + list(base.rglob("*.yml"))
    return sorted({str(path.resolve()) for path in scenario_files})


def _build_report_path(base_report_path: str, scenario_path: str, index: int, bulk_mode: bool) -> str:
    """One report per scenario in bulk mode, named after the scenario."""
    if not bulk_mode:
        return base_report_path

    base = Path(base_report_path)
    suffix = base.suffix or ".json"
    filename = f"{base.stem}__{index:03d}_{Path(scenario_path).stem}{suffix}"
    return str((base.parent / filename).resolve())


def _build_combined_summary(results: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Build machine-readable combined summary."""
    passed = sum(1 for item in results if item.get("status") == "passed")
    failed = len(results) - passed
    return {
        "total": len(results),
        "passed": passed,
        "failed": failed,
        "status": "passed" if failed == 0 else "failed",
        "results": results,
    }


def _print_bulk_summary(results: List[Dict[str, Any]]) -> None:
    print("\nBulk Summary")
    print("-" * 80)
    print(f"{'#':<4} {'Status':<8} {'Duration':<10} Scenario (Report)")
    for idx, result in enumerate(results, start=1):
        status = str(result.get("status", "unknown")).upper()
        duration = float(result.get("duration_sec", 0))
        print(f"{idx:<4} {status:<8} {duration:<10.2f} {result.get('scenario_path', '')} ({result.get('report_path', '')})")
    summary = _build_combined_summary(results)
    print("-" * 80)
    print(
        f"Total: {summary['total']}  Passed: {summary['passed']}  "
        f"Failed: {summary['failed']}  Exit code: {0 if summary['failed'] == 0 else 2}"
    )


def _print_report(report: Dict[str, Any], scenario_path: str, verbose: bool) -> None:
    print("\n" + "=" * 60)
    print(f"Scenario: {report.get('scenario', os.path.basename(scenario_path))}")
    print(f"Status:   {report.get('status', 'unknown').upper()}")
    print(f"Duration: {report.get('duration_sec', 0):.2f}s")

    if verbose or report.get("status") == "failed":
        print("\nStep Details:")
        for step in report.get("steps", []):
            status_icon = "+" if step["status"] == "passed" else "X"
            print(f"  {status_icon} [{step['index']}] {step['keyword']}: {step['status']} ({step.get('duration_sec', 0):.2f}s)")
            if step["status"] == "failed" and "error" in step:
                print(f"      Error: {step['error']}")
            if step.get("action_trace"):
                for line in step["action_trace"].splitlines():
                    print(f"      {line}")

    if report.get("errors"):
        print("\nErrors:")
        for error in report["errors"]:
            print(f"  - {error}")

    print("=" * 60)

    if verbose:
        print("\nFull Report (JSON):")
        print(json.dumps(report, indent=2, ensure_ascii=False))


def _configure_action_logger_from_env() -> None:
    """Configure action logging from environment variables."""
    enabled = os.getenv("UISEEK_ACTION_LOGGING", "").lower() in _TRUTHY
    if not enabled:
        ACTION_LOGGER.disable()
        return

    ACTION_LOGGER.configure(
        console=True,
        file_path=os.getenv("UISEEK_ACTION_LOG_FILE"),
        format=os.getenv("UISEEK_ACTION_LOG_FORMAT", "line"),
        max_traceback_chars=int(os.getenv("UISEEK_ACTION_LOG_MAX_TRACEBACK", "4000")),
    )
    ACTION_LOGGER.enable()


def _configure_timing_logger_from_env() -> None:
    """Configure timing logging from environment variables."""
    enabled = os.getenv("UISEEK_TIMING_LOGGING", "").lower() in _TRUTHY
    if not enabled:
        TIMING_LOGGER.disable()
        return

    TIMING_LOGGER.configure(console=True, file_path=os.getenv("UISEEK_TIMING_LOG_FILE"))
    TIMING_LOGGER.enable()


def _add_device_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("device")
    group.add_argument("--dump", default=None, help="Read the screen from a saved `uiautomator dump` XML file")
    group.add_argument("--serial", default=None, help="adb device serial (default: the only attached device)")
    group.add_argument("--adb", default="adb", help="Path to the adb executable")
    group.add_argument("--uia", action="store_true", help="Use the Windows UI Automation backend (needs pywinauto)")
    group.add_argument("--window-title-re", default=None, help="UIA only: attach to the window whose title matches")
    group.add_argument("--dry-run", action="store_true", help="Record taps instead of sending them")


def _add_timing_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("timing")
    group.add_argument("--config", "-c", default=None, help="Run settings YAML (preset, timeout, overrides, max_scroll_steps)")
    group.add_argument("--timeout", "-t", type=float, default=None, help="Override base timeouts in seconds (intervals stay from preset)")
    group.add_argument("--ci", action="store_true", help="Use CI-optimized timeout settings")
    group.add_argument("--fast", action="store_true", help="Use fast timeout settings for local development")
    group.add_argument("--slow", action="store_true", help="Use slow timeout settings for unstable environments")
    group.add_argument("--max-scroll-steps", type=int, default=None, help="Upper bound on scroll steps per sweep")


def _cmd_inspect(args: argparse.Namespace) -> int:
    provider, _, _ = _build_backend(args)
    snapshots = provider.enumerate(only_visible=not args.include_invisible)
    if args.type:
        tag = ElementType.parse(args.type)
        snapshots = [s for s in snapshots if s.element_type.is_a(tag)]
    if args.query:
        snapshots = [s for s in snapshots if s.text and args.query.lower() in s.text.lower()]

    result = {
        "status": "ok",
        "screen": asdict(provider.screen_bounds()),
        "count": len(snapshots),
        "elements": [s.to_dict() for s in snapshots],
    }
    text = json.dumps(result, indent=2, ensure_ascii=False)
    if args.out:
        os.makedirs(os.path.dirname(os.path.abspath(args.out)) or ".", exist_ok=True)
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(text)
        print(json.dumps({"status": "ok", "output": args.out, "elements": len(snapshots)}, indent=2))
    else:
        print(text)
    return 0


def _cmd_find(args: argparse.Namespace) -> int:
    settings = _resolve_run_settings(args)
    provider, primitive, dispatcher = _build_backend(args)
    runner = Runner(provider, primitive, dispatcher)
    resolver, _ = runner.build(settings)

    TimeConfig.install_run_config(settings.build_time_config())
    try:
        if args.index is not None:
            element = resolver.find_by_index(args.type or "view", args.index)
        elif args.after:
            element = resolver.find_by_text_after(
                args.text, args.after,
                element_type=args.type or "text",
                match=args.match,
                regex=args.regex,
                scroll=not args.no_scroll,
            )
        else:
            element = resolver.find_by_text(
                args.text,
                element_type=args.type or "text",
                match=args.match,
                regex=args.regex,
                scroll=not args.no_scroll,
            )
    except UISeekError as e:
        print(json.dumps({"status": "error", "error": describe_error(e)}, indent=2), file=sys.stderr)
        return 2
    finally:
        TimeConfig.clear_run_config()

    print(json.dumps({"status": "ok", "element": element.to_dict()}, indent=2, ensure_ascii=False))
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    if args.scenario and args.scenarios_dir:
        print("Error: --scenario and --scenarios-dir are mutually exclusive", file=sys.stderr)
        return 1
    if not args.scenario and not args.scenarios_dir:
        print("Error: one of --scenario or --scenarios-dir is required", file=sys.stderr)
        return 1

    ActionContextManager.clear()

    try:
        settings = _resolve_run_settings(args)
        provider, primitive, dispatcher = _build_backend(args)
    except Exception as e:
        print(f"Error preparing run: {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    runner = Runner(provider, primitive, dispatcher, schema_path=args.schema)

    variables: Dict[str, Any] = {}
    if args.vars:
        with open(args.vars, "r", encoding="utf-8") as f:
            variables = json.load(f)
        if not isinstance(variables, dict):
            print("Error: --vars must be a JSON object mapping", file=sys.stderr)
            return 1
    for var_spec in args.var or []:
        if "=" in var_spec:
            key, value = var_spec.split("=", 1)
            variables[key.strip()] = value.strip()

    scenario_paths = _resolve_scenario_paths(args.scenario, args.scenarios_dir)
    if not scenario_paths:
        print("Error: no scenario files found", file=sys.stderr)
        return 1

    bulk_mode = len(scenario_paths) > 1 or bool(args.scenarios_dir)
    scenario_results: List[Dict[str, Any]] = []

    for idx, scenario_path in enumerate(scenario_paths, start=1):
        per_report_path = _build_report_path(args.report, scenario_path, idx, bulk_mode)
        report = runner.run(
            scenario_path=scenario_path,
            variables=variables,
            report_path=per_report_path,
            settings=settings,
        )
        scenario_results.append({
            "scenario_path": scenario_path,
            "status": report.get("status", "unknown"),
            "duration_sec": report.get("duration_sec", 0),
            "report_path": per_report_path,
            "errors": report.get("errors", []),
        })
        _print_report(report, scenario_path, args.verbose)

    if bulk_mode:
        _print_bulk_summary(scenario_results)

    combined_summary = _build_combined_summary(scenario_results)
    if args.summary_json:
        os.makedirs(os.path.dirname(os.path.abspath(args.summary_json)) or ".", exist_ok=True)
        with open(args.summary_json, "w", encoding="utf-8") as f:
            json.dump(combined_summary, f, indent=2, ensure_ascii=False)

    return 0 if combined_summary["failed"] == 0 else 2


def _cmd_validate(args: argparse.Namespace) -> int:
    errors: List[str] = []

    if args.config:
        try:
            settings = load_run_settings(args.config)
            settings.build_time_config()
            print(f"+ Config file is valid: {args.config}")
            print(f"  - Preset: {settings.preset}")
        except UISeekError as e:
            errors.append(f"Config file invalid: {e}")
            print(f"X Config file is invalid: {e}", file=sys.stderr)

    scenario_paths = _resolve_scenario_paths(args.scenario, args.scenarios_dir)
    if not scenario_paths and not args.config:
        print("Error: nothing to validate; pass --scenario, --scenarios-dir or --config", file=sys.stderr)
        return 1

    validator = scenario_validator(args.schema)
    for scenario_path in scenario_paths:
        try:
            with open(scenario_path, "r", encoding="utf-8") as f:
                scenario = yaml.safe_load(f)
            if not isinstance(scenario, dict):
                raise ValueError("Scenario must be a mapping at root")
            validate_scenario(scenario, validator)
            print(f"+ Scenario file is valid: {scenario_path}")
            print(f"  - Steps: {len(scenario.get('steps', []))}")
        except (OSError, ValueError, yaml.YAMLError) as e:
            errors.append(f"Scenario file invalid: {scenario_path}: {e}")
            print(f"X Scenario file is invalid: {scenario_path}: {e}", file=sys.stderr)

    return 2 if errors else 0


def _cmd_presets(args: argparse.Namespace) -> int:
    print(json.dumps(available_presets(), indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    argv = argv if argv is not None else sys.argv[1:]
    _configure_action_logger_from_env()
    _configure_timing_logger_from_env()

    p = argparse.ArgumentParser(
        prog="uiseek",
        description="uiseek - find and tap UI elements by text, type and position",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # -------------------------
    # inspect
    # -------------------------
    insp = sub.add_parser("inspect", help="Dump the elements currently on screen as JSON")
    _add_device_args(insp)
    insp.add_argument("--type", default=None, help="Only elements of this type (e.g. button, text, list)")
    insp.add_argument("--query", "-q", default=None, help="Only elements whose text contains this (case-insensitive)")
    insp.add_argument("--include-invisible", action="store_true", help="Include elements the platform reports as hidden")
    insp.add_argument("--out", "-o", default=None, help="Write JSON to this file instead of stdout")

    # -------------------------
    # find
    # -------------------------
    findp = sub.add_parser("find", help="Resolve one element and print it as JSON")
    _add_device_args(findp)
    _add_timing_args(findp)
    findp.add_argument("text", nargs="?", default=None, help="Text (or regex with --regex) to find")
    findp.add_argument("--type", default=None, help="Element type (default: text, or view with --index)")
    findp.add_argument("--match", type=int, default=0, help="1-based match ordinal")
    findp.add_argument("--after", default=None, help="Only consider elements after the one showing this text")
    findp.add_argument("--index", type=int, default=None, help="Resolve the index-th element of --type instead of text")
    findp.add_argument("--regex", action="store_true", help="Treat text as a regular expression")
    findp.add_argument("--no-scroll", action="store_true", help="Only look at what is on screen")

    # -------------------------
    # run
    # -------------------------
    runp = sub.add_parser("run", help="Run a YAML scenario")
    _add_device_args(runp)
    _add_timing_args(runp)
    runp.add_argument("--scenario", "-s", default=None, help="Path to scenario.yaml")
    runp.add_argument("--scenarios-dir", default=None, help="Run all scenarios under directory (recursively searches for *.yaml/*.yml)")
    runp.add_argument("--schema", default=SCENARIO_SCHEMA_PATH, help="Path to scenario schema JSON")
    runp.add_argument("--vars", default=None, help="Optional vars JSON file")
    runp.add_argument("--var", "-v", action="append", help="Variable in KEY=VALUE format (can be used multiple times)")
    runp.add_argument("--report", "-r", default="report.json", help="Report output path (JSON)")
    runp.add_argument("--verbose", action="store_true", help="Show detailed step output")
    runp.add_argument("--summary-json", default=None, help="Optional output path for combined bulk summary (JSON)")

    # -------------------------
    # validate
    # -------------------------
    valp = sub.add_parser("validate", help="Validate scenario and config files")
    valp.add_argument("--scenario", "-s", default=None, help="Path to scenario YAML file")
    valp.add_argument("--scenarios-dir", default=None, help="Validate all scenarios under directory")
    valp.add_argument("--config", "-c", default=None, help="Path to run settings YAML file")
    valp.add_argument("--schema", default=SCENARIO_SCHEMA_PATH, help="Path to scenario JSON schema")

    # -------------------------
    # presets
    # -------------------------
    sub.add_parser("presets", help="List timing presets")

    args = p.parse_args(argv)

    if args.cmd == "find" and args.text is None and args.index is None:
        p.error("find needs a text or --index")

    commands = {
        "inspect": _cmd_inspect,
        "find": _cmd_find,
        "run": _cmd_run,
        "validate": _cmd_validate,
        "presets": _cmd_presets,
    }
    try:
        return commands[args.cmd](args)
    except UISeekError as e:
        print(json.dumps({"status": "error", "error": describe_error(e)}, indent=2), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
