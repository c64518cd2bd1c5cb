"""Shared constants and paths for PointForge."""

from pathlib import Path

# Package paths
PACKAGE_ROOT = Path(__file__).parent
ASSETS_DIR = PACKAGE_ROOT / "assets"
CONFIG_DIR = ASSETS_DIR / "config"
DEFAULT_MODEL_CONFIG = "default_model.json"

# Anthropometric reference body (metres)
REFERENCE_HEIGHT = 1.835

# Segment lengths of the reference body; scaled by body_height / REFERENCE_HEIGHT
SHOULDER_HEIGHT_RATIO = 1.47
SHOULDER_TO_NECK_RATIO = 0.18
SHOULDER_TO_EYES_RATIO = 0.22
SHOULDER_TO_WRIST_RATIO = 0.51
WRIST_TO_FINGER_RATIO = 0.18

# Handedness sign applied to the lateral (Y) shoulder offset
LEFT_HAND_SIGN = 1.0
RIGHT_HAND_SIGN = -1.0

# Numerical guards
DEGENERATE_RAY_EPSILON = 1e-9   # min eye-to-finger distance for a valid ray
PARALLEL_EPSILON = 1e-9         # min |dir . normal| for a plane hit
NORMALIZE_EPSILON = 1e-10
