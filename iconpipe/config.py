"""
Step configuration for the optimizer and its per-run overrides.
"""
import os
import copy
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .optimizer import STEPS
from .svg_transforms import DEFAULT_CANVAS_PADDING, DEFAULT_CANVAS_SIZE

logger = logging.getLogger(__name__)

CONFIG_FILE = "iconpipe.config.json"
CANVAS_SIZE_ENV = "ICONPIPE_CANVAS_SIZE"
CANVAS_PADDING_ENV = "ICONPIPE_CANVAS_PADDING"

DEFAULT_STEPS = [
    {"name": "remove_full_white_clip_paths"},
    {"name": "preset_default", "params": {"precision": 5}},
    {"name": "remove_useless_defs"},
    {"name": "rescale_canvas", "params": {"size": DEFAULT_CANVAS_SIZE, "padding": DEFAULT_CANVAS_PADDING}},
    {"name": "cleanup_ids", "params": {"force": True}},
    {"name": "remove_attrs", "params": {"attrs": "data.*"}},
    {"name": "remove_dimensions"},
    {"name": "add_classes_to_svg_element", "params": {"class_names": ["icon"]}},
]


class ConfigError(ValueError):
    pass


def normalize_step(entry: Any) -> Dict[str, Any]:
    """
    Accept a bare step name or a {"name", "params", "enabled"} object.
    """
    if isinstance(entry, str):
        entry = {"name": entry}
    if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
        raise ConfigError(f"Invalid step entry: {entry!r}")

    name = entry["name"]
    if name not in STEPS:
        raise ConfigError(f"Unknown step: {name}")

    params = entry.get("params") or {}
    if not isinstance(params, dict):
        raise ConfigError(f"Params for step {name} must be an object")

    return {"name": name, "params": dict(params), "enabled": bool(entry.get("enabled", True))}


def load_steps(path: str = CONFIG_FILE) -> List[Dict[str, Any]]:
    """
    Read the step list from `path`, falling back to DEFAULT_STEPS when the
    file does not exist.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug(f"No config at {path}, using default steps")
        return [normalize_step(entry) for entry in DEFAULT_STEPS]
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}")

    entries = data.get("steps") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ConfigError(f"{path} must hold a list of steps")
    return [normalize_step(entry) for entry in entries]


def parse_number(value: Any, label: str, allow_zero: bool = False) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{label} must be a number, got {value!r}")
    if number < 0 or (number == 0 and not allow_zero):
        raise ConfigError(f"{label} must be {'non-negative' if allow_zero else 'positive'}, got {value!r}")
    return number


def canvas_from_env(environ: Optional[Mapping[str, str]] = None) -> Tuple[Optional[float], Optional[float]]:
    """Canvas size and padding set in the environment, None where unset."""
    environ = os.environ if environ is None else environ
    size = environ.get(CANVAS_SIZE_ENV)
    padding = environ.get(CANVAS_PADDING_ENV)
    return (
        parse_number(size, CANVAS_SIZE_ENV) if size else None,
        parse_number(padding, CANVAS_PADDING_ENV, allow_zero=True) if padding else None,
    )


def with_overrides(
    steps: List[Dict[str, Any]],
    canvas_size: Optional[float] = None,
    canvas_padding: Optional[float] = None,
    class_name: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Return a copy of `steps` specialized for one run. The input list is not changed.
    """
    steps = copy.deepcopy(steps)
    for step in steps:
        params = step.setdefault("params", {})
        if step["name"] == "rescale_canvas":
            if canvas_size is not None:
                params["size"] = canvas_size
            if canvas_padding is not None:
                params["padding"] = canvas_padding
            size = params["size"] = parse_number(params.get("size", DEFAULT_CANVAS_SIZE), "canvas size")
            padding = params["padding"] = parse_number(
                params.get("padding", DEFAULT_CANVAS_PADDING), "canvas padding", allow_zero=True
            )
            if size <= 2 * padding:
                raise ConfigError(f"Canvas padding {padding} leaves no room in size {size}")
        elif step["name"] == "add_classes_to_svg_element" and class_name:
            params["class_names"] = [class_name]
    return steps
