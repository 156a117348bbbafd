"""JSON config file loading utilities."""

import json
from pathlib import Path
from typing import Any

from poseforge.constants import BIOMECH_CONFIG_DIR


def load_json(path: Path) -> Any:
    """Load and return parsed JSON from a file."""
    with open(path) as f:
        return json.load(f)


def load_biomech_config(name: str) -> Any:
    """Load a biomechanics config from assets/config/biomech/."""
    return load_json(BIOMECH_CONFIG_DIR / name)


def is_bilateral(template: str) -> bool:
    return "{s}" in template or "{side}" in template


def fill_side(template: str, side: str) -> str:
    """Substitute ``{s}`` (r/l) and ``{side}`` (right/left) in *template*."""
    if not side:
        return template
    return template.replace("{s}", side[0]).replace("{side}", side)


def expand_bilateral(key: str) -> list[tuple[str, str]]:
    """Expand a ``{s}`` / ``{side}`` template key into per-side keys.

    Returns ``[(side, expanded_key), ...]`` where side is ``"right"`` or
    ``"left"``; keys without a template come back once with side ``""``.
    """
    if not is_bilateral(key):
        return [("", key)]
    return [(side, fill_side(key, side)) for side in ("right", "left")]
