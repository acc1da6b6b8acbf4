# uiseek/timings.py
"""
@file timings.py
@brief Wait and pause defaults, named presets, and the merge rule shared by
       presets, config files and per-call overrides.

Wait fields hold a {"timeout", "interval"} pair; pause fields hold seconds.
"""

from __future__ import annotations
from copy import deepcopy
from typing import Any, Dict, Mapping


WAIT_DEFAULTS: Dict[str, Dict[str, float]] = {
    "text_wait": {"timeout": 20.0, "interval": 0.5},
    "view_wait": {"timeout": 20.0, "interval": 0.5},
    "index_wait": {"timeout": 10.0, "interval": 0.5},
    "either_wait": {"timeout": 10.0, "interval": 0.5},
    "text_resolve": {"timeout": 10.0, "interval": 0.5},
    "exists_wait": {"timeout": 2.0, "interval": 0.1},
    "snapshot_retry": {"timeout": 2.0, "interval": 0.1},
}

PAUSE_DEFAULTS: Dict[str, float] = {
    "scroll_settle_pause": 0.1,
    "spin_wait_pause": 0.1,
    "tap_pause": 0.1,
    "long_press_duration": 1.25,
}

# Every resolution wait of a preset shares one (timeout, interval) pair; the
# cheaper waits derive from it in _preset().
_PRESET_BASES: Dict[str, Dict[str, float]] = {
    "fast": {"timeout": 10.0, "interval": 0.25, "pause": 0.05, "settle": 0.05},
    "slow": {"timeout": 40.0, "interval": 0.75, "pause": 0.15, "settle": 0.2},
    "ci": {"timeout": 60.0, "interval": 1.0, "pause": 0.2, "settle": 0.3},
}


def _preset(base: Dict[str, float]) -> Dict[str, Any]:
    timeout, interval = base["timeout"], base["interval"]
    changes: Dict[str, Any] = {
        "text_wait": {"timeout": timeout, "interval": interval},
        "view_wait": {"timeout": timeout, "interval": interval},
        "index_wait": {"timeout": timeout / 2, "interval": interval},
        "either_wait": {"timeout": timeout / 2, "interval": interval},
        "text_resolve": {"timeout": timeout / 2, "interval": interval},
        "exists_wait": {"timeout": timeout / 10, "interval": interval / 5},
        "scroll_settle_pause": base["settle"],
        "spin_wait_pause": min(base["settle"], 0.2),
        "tap_pause": base["pause"],
    }
    if timeout > WAIT_DEFAULTS["text_wait"]["timeout"]:
        # Slow devices also get longer to settle a changing tree.
        changes["snapshot_retry"] = {"timeout": timeout / 10, "interval": interval / 4}
    return changes


PRESETS: Dict[str, Dict[str, Any]] = {name: _preset(base) for name, base in _PRESET_BASES.items()}


def list_presets() -> Dict[str, Dict[str, Any]]:
    return {"default": {}, **deepcopy(PRESETS)}


def merge_values(values: Mapping[str, Any], changes: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of values with changes laid over it.

    A wait field accepts a partial {"timeout", "interval"} mapping; a pause
    field accepts a number.

    @throws ValueError on unknown fields or malformed values
    """
    merged = deepcopy(dict(values))
    for key, value in changes.items():
        if key in WAIT_DEFAULTS:
            if not isinstance(value, Mapping) or not set(value) <= {"timeout", "interval"}:
                raise ValueError(f"Invalid wait setting for {key}: {value!r}")
            merged[key].update({k: float(v) for k, v in value.items() if v is not None})
        elif key in PAUSE_DEFAULTS:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Invalid pause setting for {key}: {value!r}")
            merged[key] = float(value)
        else:
            raise ValueError(f"Unknown timing field: {key}")
    return merged


def build_preset_values(preset: str) -> Dict[str, Any]:
    """Flat wait and pause values of a named preset."""
    values = merge_values(WAIT_DEFAULTS, {})
    values.update(PAUSE_DEFAULTS)
    preset_key = (preset or "default").lower()
    if preset_key == "default":
        return values
    if preset_key not in PRESETS:
        raise ValueError(f"Unknown timing preset: {preset}")
    return merge_values(values, PRESETS[preset_key])


def timeout_overrides_for(timeout: float) -> Dict[str, Any]:
    """Scale every resolution timeout from one base value (CLI --timeout)."""
    return {
        "text_wait": {"timeout": timeout},
        "view_wait": {"timeout": timeout},
        "index_wait": {"timeout": timeout / 2},
        "either_wait": {"timeout": timeout / 2},
        "text_resolve": {"timeout": timeout / 2},
        "exists_wait": {"timeout": max(timeout / 10, 0.1)},
    }
