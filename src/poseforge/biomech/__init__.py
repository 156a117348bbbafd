"""Generalized-coordinate joint kinematics over a humanoid rig."""

from poseforge.biomech.joints import default_model, load_model
from poseforge.biomech.segment_registry import SegmentRegistry
from poseforge.biomech.state import BiomechState, BiomechStateError

__all__ = ["default_model", "load_model", "SegmentRegistry", "BiomechState", "BiomechStateError"]
