"""Shared constants and paths for posepuppet."""

from pathlib import Path

# Package paths
PACKAGE_ROOT = Path(__file__).parent
ASSETS_DIR = PACKAGE_ROOT / "assets"
CONFIG_DIR = ASSETS_DIR / "config"

# Rig config file (bone topology, groups, reference keypoints)
RIG_CONFIG = "rig.json"

# Asset naming conventions
SKELETON_PREFIX = "skeleton"
ILLUSTRATION_PREFIX = "illustration"

# Frame gating
MIN_POSE_SCORE = 0.1
MIN_FACE_SCORE = 0.8

# Synthesized legs hang straight down from the hips
KNEE_OFFSET = 100.0
ANKLE_OFFSET = 100.0  # below the knee

# Inferred face keypoints are trusted placeholders
INFERRED_FACE_SCORE = 1.0

# Skinning
WEIGHT_DISTANCE_EPSILON = 1e-6  # floor for 1/d^2 when a point sits on a bone
COLLINEAR_THRESHOLD = 0.01
MIN_CONFIDENCE_PATH_SCORE = 0.3

# Degenerate geometry
LENGTH_EPSILON = 1e-10

# Diagnostics colouring
SATURATION_BOOST = 0.5

# Output framing (applied by drawing backends, never by the engine)
OUTPUT_SCALE = 0.3
OUTPUT_OFFSET = (50.0, 80.0)

# Wire format
MESSAGE_VERSION = 1

# Frame timing
MAX_DELTA_TIME = 0.1  # clamp for the delta clock, seconds
