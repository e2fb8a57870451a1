"""JSON config file loading utilities."""

import json
from pathlib import Path
from typing import Any

from posepuppet.constants import CONFIG_DIR, RIG_CONFIG

_BONE_LISTS = ("bodyBones", "faceBones")
_PAIR_KEYS = ("faceReference", "earReference", "noseBone")


def load_json(path: Path) -> Any:
    """Load and return parsed JSON from a file."""
    with open(path) as f:
        return json.load(f)


def load_config(name: str) -> Any:
    """Load a config file from assets/config/."""
    return load_json(CONFIG_DIR / name)


def validate_rig_config(config: dict) -> dict:
    """Check the rig topology is self-consistent; returns it unchanged.

    Raises ValueError naming the first problem found.
    """
    if not isinstance(config, dict):
        raise ValueError("Rig config must be a JSON object")
    bone_names = set()
    for key in _BONE_LISTS:
        for pair in config.get(key, []):
            if not (isinstance(pair, list) and len(pair) == 2 and all(isinstance(n, str) for n in pair)):
                raise ValueError(f"{key}: bone {pair!r} is not a pair of keypoint names")
            bone_names.add(f"{pair[0]}-{pair[1]}")
    for group, members in config.get("boneGroups", {}).items():
        if members in _BONE_LISTS:
            continue
        unknown = [m for m in members if m not in bone_names]
        if unknown:
            raise ValueError(f"boneGroups.{group}: unknown bones {unknown}")
    for key in _PAIR_KEYS:
        value = config.get(key)
        if value is not None and not (isinstance(value, list) and len(value) == 2):
            raise ValueError(f"{key} must name exactly two keypoints")
    return config


def load_rig_config(name: str = RIG_CONFIG) -> dict:
    """Load and validate the rig topology (bones, groups, reference keypoints)."""
    return validate_rig_config(load_config(name))
