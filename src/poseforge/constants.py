"""Shared constants and paths for PoseForge."""

import math
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
ASSETS_DIR = PROJECT_ROOT / "assets"
CONFIG_DIR = ASSETS_DIR / "config"
BIOMECH_CONFIG_DIR = CONFIG_DIR / "biomech"

# Config file names (under BIOMECH_CONFIG_DIR)
RHYTHM_CONFIG = "rhythm_coupling.json"
OVERRIDES_CONFIG = "coordinate_overrides.json"

# Host rig defaults
DEFAULT_RIG_PREFIX = "mixamorig1"

# Frame timing
MAX_DELTA_TIME = 0.1  # Clamp dt to avoid large jumps

# Numeric tolerances
COORD_EPSILON = 1e-9  # Below this a rhythm target is treated as already met
ROM_TOLERANCE = 1e-9  # Slack before a raw sample counts as a ROM violation

# Scapulohumeral rhythm: pure glenohumeral motion up to the threshold,
# then GH:ST = 2:1 above it.
RHYTHM_THRESHOLD_DEG = 30.0
RHYTHM_RATIO = 2.0

RAD_TO_DEG = 180.0 / math.pi
