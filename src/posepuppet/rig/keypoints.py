"""Keypoint name tables shared by the skeleton, estimators and loaders.

Face keypoints are a 68-point subset of the face-mesh landmarks; the
``FACE_PART_INDEX`` table maps each name to its vertex index in the mesh
returned by the face oracle.  ``FACE_PART_NAMES`` fixes the order of the
compact ``FaceFrame.positions`` array.
"""

from typing import Optional

# Body parts tracked directly by the pose oracle.
POSE_PART_NAMES = [
    "leftHip",
    "leftWrist",
    "leftElbow",
    "leftShoulder",
    "rightHip",
    "rightWrist",
    "rightElbow",
    "rightShoulder",
    "leftEar",
    "rightEar",
]

# Synthesized below the hips every frame.
LEG_PART_NAMES = ["leftKnee", "leftAnkle", "rightKnee", "rightAnkle"]

FACE_PART_INDEX: dict[str, int] = {
    "topMid": 10,
    "rightTop0": 67,
    "rightTop1": 54,
    "leftTop0": 297,
    "leftTop1": 284,
    "rightJaw0": 21,
    "rightJaw1": 162,
    "rightJaw2": 127,
    "rightJaw3": 234,
    "rightJaw4": 132,
    "rightJaw5": 172,
    "rightJaw6": 150,
    "rightJaw7": 176,
    "jawMid": 152,
    "leftJaw7": 400,
    "leftJaw6": 379,
    "leftJaw5": 397,
    "leftJaw4": 361,
    "leftJaw3": 454,
    "leftJaw2": 356,
    "leftJaw1": 389,
    "leftJaw0": 251,
    "rightBrow0": 46,
    "rightBrow1": 53,
    "rightBrow2": 52,
    "rightBrow3": 65,
    "rightBrow4": 55,
    "leftBrow4": 285,
    "leftBrow3": 295,
    "leftBrow2": 282,
    "leftBrow1": 283,
    "leftBrow0": 276,
    "nose0": 6,
    "nose1": 197,
    "nose2": 195,
    "nose3": 5,
    "rightNose0": 48,
    "rightNose1": 220,
    "nose4": 4,
    "leftNose1": 440,
    "leftNose0": 278,
    "rightEye0": 33,
    "rightEye1": 160,
    "rightEye2": 158,
    "rightEye3": 133,
    "rightEye4": 153,
    "rightEye5": 144,
    "leftEye3": 362,
    "leftEye2": 385,
    "leftEye1": 387,
    "leftEye0": 263,
    "leftEye5": 373,
    "leftEye4": 380,
    "rightMouthCorner": 61,
    "rightUpperLipTop0": 40,
    "rightUpperLipTop1": 37,
    "upperLipTopMid": 0,
    "leftUpperLipTop1": 267,
    "leftUpperLipTop0": 270,
    "leftMouthCorner": 291,
    "leftLowerLipBottom0": 321,
    "leftLowerLipBottom1": 314,
    "lowerLipBottomMid": 17,
    "rightLowerLipBottom1": 84,
    "rightLowerLipBottom0": 91,
    "rightMiddleLip": 78,
    "rightUpperLipBottom1": 81,
    "upperLipBottomMid": 13,
    "leftUpperLipBottom1": 311,
    "leftMiddleLip": 308,
    "leftLowerLipTop0": 402,
    "lowerLipTopMid": 14,
    "rightLowerLipTop0": 178,
}

FACE_PART_NAMES = list(FACE_PART_INDEX)

ALL_PART_NAMES = POSE_PART_NAMES + FACE_PART_NAMES + LEG_PART_NAMES


def match_part_name(item_name: Optional[str]) -> Optional[str]:
    """Return the first known part name that ``item_name`` starts with."""
    if not item_name:
        return None
    for part_name in ALL_PART_NAMES:
        if item_name.startswith(part_name):
            return part_name
    return None


def mirrored_name(name: str) -> str:
    """Swap a ``left``/``right`` prefix; other names are returned unchanged."""
    if name.startswith("left"):
        return "right" + name[len("left"):]
    if name.startswith("right"):
        return "left" + name[len("right"):]
    return name
