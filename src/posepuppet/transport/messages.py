"""Tagged, versioned JSON messages exchanged with peers.

Wire format (version 1)::

    {"v": 1, "type": "skeleton",
     "pose": {"score": 0.9, "keypoints": [{"part": "leftHip", "x": .., "y": .., "score": ..}]},
     "face": {"confidence": 0.95, "positions": [{"x": .., "y": ..}, ...]}}

``pose`` and ``face`` are optional (null or absent).  Points are objects
with ``x``/``y``; ``decode_point`` also accepts the older array encodings
``[typeTag, x, y]`` and ``[x, y]``.  The engine never performs I/O itself;
these helpers only build and parse payload strings.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from posepuppet.constants import MESSAGE_VERSION
from posepuppet.core.math_utils import Vec2, vec2
from posepuppet.estimation.pose import FaceFrame, Keypoint, Pose

SKELETON = "skeleton"


class MessageDecodeError(ValueError):
    """A peer payload could not be decoded."""


@dataclass
class SkeletonMessage:
    pose: Optional[Pose] = None
    face: Optional[FaceFrame] = None
    version: int = MESSAGE_VERSION
    type: str = SKELETON


def encode_point(p: Vec2) -> dict[str, float]:
    return {"x": float(p[0]), "y": float(p[1])}


def decode_point(value: Any) -> Vec2:
    """Decode ``{"x", "y"}``, ``[typeTag, x, y]`` or ``[x, y]`` into a Vec2."""
    if isinstance(value, dict):
        try:
            return vec2(float(value["x"]), float(value["y"]))
        except (KeyError, TypeError, ValueError) as e:
            raise MessageDecodeError(f"Bad point object: {value!r}") from e
    if isinstance(value, (list, tuple)):
        if len(value) == 3 and isinstance(value[0], str):
            value = value[1:]
        if len(value) == 2:
            try:
                return vec2(float(value[0]), float(value[1]))
            except (TypeError, ValueError) as e:
                raise MessageDecodeError(f"Bad point array: {value!r}") from e
    raise MessageDecodeError(f"Unrecognized point encoding: {value!r}")


def _encode_pose(pose: Pose) -> dict:
    return {
        "score": float(pose.score),
        "keypoints": [
            {"part": kp.part, **encode_point(kp.position), "score": float(kp.score)}
            for kp in pose.keypoints
        ],
    }


def _decode_pose(data: dict) -> Pose:
    try:
        keypoints = []
        for kp in data.get("keypoints", []):
            position = decode_point(kp["position"]) if "position" in kp else decode_point(kp)
            keypoints.append(Keypoint(str(kp["part"]), position, float(kp.get("score", 0.0))))
        return Pose(keypoints, float(data.get("score", 0.0)))
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        if isinstance(e, MessageDecodeError):
            raise
        raise MessageDecodeError(f"Bad pose payload: {e}") from e


def _encode_face(face: FaceFrame) -> dict:
    return {
        "confidence": float(face.confidence),
        "positions": [encode_point(p) for p in face.positions],
    }


def _decode_face(data: dict) -> FaceFrame:
    try:
        positions = [decode_point(p) for p in data.get("positions", [])]
        arr = np.array(positions, dtype=np.float64).reshape(-1, 2)
        return FaceFrame(arr, float(data.get("confidence", 0.0)))
    except (TypeError, AttributeError, ValueError) as e:
        if isinstance(e, MessageDecodeError):
            raise
        raise MessageDecodeError(f"Bad face payload: {e}") from e


def to_dict(msg: SkeletonMessage) -> dict:
    return {
        "v": msg.version,
        "type": msg.type,
        "pose": _encode_pose(msg.pose) if msg.pose is not None else None,
        "face": _encode_face(msg.face) if msg.face is not None else None,
    }


def from_dict(data: Any) -> SkeletonMessage:
    if not isinstance(data, dict):
        raise MessageDecodeError("Message must be a JSON object")
    version = data.get("v")
    if version != MESSAGE_VERSION:
        raise MessageDecodeError(f"Unsupported message version: {version!r}")
    kind = data.get("type")
    if kind != SKELETON:
        raise MessageDecodeError(f"Unknown message type: {kind!r}")
    pose = data.get("pose")
    face = data.get("face")
    return SkeletonMessage(
        pose=_decode_pose(pose) if pose is not None else None,
        face=_decode_face(face) if face is not None else None,
        version=version,
        type=kind,
    )


def encode_message(msg: SkeletonMessage) -> str:
    return json.dumps(to_dict(msg), separators=(",", ":"))


def decode_message(text: str) -> SkeletonMessage:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MessageDecodeError(f"Invalid JSON: {e}") from e
    return from_dict(data)
