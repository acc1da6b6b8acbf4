# uiseek/config.py
"""
@file config.py
@brief Timeout configuration and YAML run settings for the resolution engine.

A TimeConfig is an immutable-by-convention bag of wait settings and pauses.
Which one applies is decided per thread:
  per-call override -> installed run config -> process default
"""

from __future__ import annotations

import json
import os
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Generator, Mapping, Optional

import yaml
from jsonschema import Draft202012Validator

from .exceptions import ConfigError
from .timings import (PAUSE_DEFAULTS, WAIT_DEFAULTS, build_preset_values,
                      list_presets, merge_values, timeout_overrides_for)

CONFIG_SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schemas", "config.schema.json")

DEFAULT_MAX_SCROLL_STEPS = 100


@dataclass
class WaitSetting:
    """How long one kind of wait may take and how often it polls."""
    timeout: float
    interval: float


class _Scope(threading.local):
    run_config: Optional["TimeConfig"] = None
    override: Optional["TimeConfig"] = None


class TimeConfig:
    """
    Wait and pause values used by the engine, scroller and actions.

    Attributes are named after the fields in timings.WAIT_DEFAULTS (each a
    WaitSetting) and timings.PAUSE_DEFAULTS (seconds).
    """

    _scope = _Scope()
    _default: Optional[TimeConfig] = None
    _default_lock = threading.Lock()

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        values = values if values is not None else build_preset_values("default")
        for name in WAIT_DEFAULTS:
            setattr(self, name, WaitSetting(**values[name]))
        for name in PAUSE_DEFAULTS:
            setattr(self, name, values[name])

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: asdict(getattr(self, name)) for name in WAIT_DEFAULTS}
        data.update({name: getattr(self, name) for name in PAUSE_DEFAULTS})
        return data

    def clone(self) -> TimeConfig:
        return TimeConfig(self.to_dict())

    def merged(self, changes: Mapping[str, Any]) -> TimeConfig:
        """
        Copy of this config with changes applied.

        @throws ValueError on unknown fields or malformed values
        """
        return TimeConfig(merge_values(self.to_dict(), changes))

    @classmethod
    def build_from(
        cls,
        *,
        preset: str = "default",
        overrides: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> TimeConfig:
        """Layer preset, then file overrides, then a base timeout."""
        cfg = cls(build_preset_values(preset))
        if overrides:
            cfg = cfg.merged(overrides)
        if timeout is not None:
            cfg = cfg.merged(timeout_overrides_for(timeout))
        return cfg

    @classmethod
    def default(cls) -> TimeConfig:
        with cls._default_lock:
            if cls._default is None:
                cls._default = cls()
            return cls._default

    @classmethod
    def current(cls) -> TimeConfig:
        scope = cls._scope
        return scope.override or scope.run_config or cls.default()

    @classmethod
    def install_run_config(cls, config: TimeConfig) -> None:
        cls._scope.run_config = config

    @classmethod
    def clear_run_config(cls) -> None:
        cls._scope.run_config = None

    @classmethod
    def apply_preset(cls, preset: str) -> None:
        """Install the named preset as this thread's run config."""
        cls.install_run_config(cls(build_preset_values(preset)))

    @classmethod
    def apply_timeout_override(cls, timeout: float) -> None:
        """Rescale the resolution timeouts of this thread's run config."""
        base = cls._scope.run_config or cls.default()
        cls.install_run_config(base.merged(timeout_overrides_for(timeout)))

    @classmethod
    @contextmanager
    def override(cls, **changes: Any) -> Generator[TimeConfig, None, None]:
        """
        Apply changes on top of the current config for the duration of the
        block. Nested overrides stack; the previous one is restored on exit.
        """
        previous = cls._scope.override
        cls._scope.override = cls.current().merged(changes)
        try:
            yield cls._scope.override
        finally:
            cls._scope.override = previous

    @classmethod
    def reset_to_defaults(cls) -> None:
        """Rebuild the process default and drop this thread's run config and override."""
        with cls._default_lock:
            cls._default = cls()
        cls._scope.run_config = None
        cls._scope.override = None


def available_presets() -> Dict[str, Dict[str, Any]]:
    return list_presets()


@dataclass
class RunSettings:
    """
    Settings loaded from a uiseek YAML configuration file.

    Example:
        preset: ci
        timeout: 15
        max_scroll_steps: 50
        overrides:
          text_wait: {interval: 0.25}
          scroll_settle_pause: 0.2
    """
    preset: str = "default"
    timeout: Optional[float] = None
    max_scroll_steps: int = DEFAULT_MAX_SCROLL_STEPS
    overrides: Dict[str, Any] = field(default_factory=dict)

    def build_time_config(self) -> TimeConfig:
        try:
            return TimeConfig.build_from(preset=self.preset, overrides=self.overrides, timeout=self.timeout)
        except ValueError as e:
            raise ConfigError(str(e)) from e


def load_run_settings(path: Optional[str], schema_path: str = CONFIG_SCHEMA_PATH) -> RunSettings:
    """
    Load and validate a run settings file.

    @param path YAML file path; None yields defaults
    @param schema_path JSON schema used for validation
    @throws ConfigError if the file is unreadable, not a mapping, fails the
            schema, or names an unknown timing field
    """
    if path is None:
        return RunSettings()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must be a mapping at root")

    problems = [
        f"- {'/'.join(str(p) for p in e.path) or '<root>'}: {e.message}"
        for e in sorted(Draft202012Validator(schema).iter_errors(data), key=lambda e: list(e.path))
    ]
    if problems:
        raise ConfigError("\n".join([f"Config schema validation failed: {path}"] + problems))

    settings = RunSettings(
        preset=data.get("preset", "default"),
        timeout=data.get("timeout"),
        max_scroll_steps=int(data.get("max_scroll_steps", DEFAULT_MAX_SCROLL_STEPS)),
        overrides=dict(data.get("overrides") or {}),
    )
    settings.build_time_config()
    return settings
