"""Shared fixtures: a three-bone chain rig and small models over it."""

import pytest

from poseforge.core.math_utils import deg_to_rad
from poseforge.core.scene_graph import Rig, SceneNode
from poseforge.biomech.rhythm import RhythmCoupling
from poseforge.biomech.types import (
    Axis, BiomechModel, Coordinate, Joint, JointKind, RotationOrder, Segment,
)


def _coord(joint_id, coord_id, axis, index, lo_deg, hi_deg, **kwargs) -> Coordinate:
    return Coordinate(
        id=coord_id, joint_id=joint_id, display_name=coord_id,
        axis=Axis(axis), index=index,
        range_min=deg_to_rad(lo_deg), range_max=deg_to_rad(hi_deg),
        **kwargs,
    )


def chain_segments() -> dict[str, Segment]:
    return {
        "base": Segment(id="base", display_name="Base", node_name="base"),
        "upper": Segment(id="upper", display_name="Upper", node_name="upper"),
        "lower": Segment(id="lower", display_name="Lower", node_name="lower"),
    }


@pytest.fixture
def chain_rig() -> Rig:
    """rig → base → upper → lower, each bone 10 units along +Y."""
    rig = Rig(name="chain")
    base = SceneNode(name="base")
    upper = SceneNode(name="upper")
    lower = SceneNode(name="lower")
    upper.set_position(0, 10, 0)
    lower.set_position(0, 10, 0)
    rig.add(base)
    base.add(upper)
    upper.add(lower)
    rig.update()
    return rig


@pytest.fixture
def hinge_model() -> BiomechModel:
    """Ball joint base→upper, then a 0..150° hinge upper→lower with flexion at index 2."""
    proximal = Joint(
        id="proximal", display_name="Proximal",
        parent_segment="base", child_segment="upper",
        kind=JointKind.BALL, order=RotationOrder.XYZ,
        coordinates=(
            _coord("proximal", "proximal_x", "X", 0, -90, 90),
            _coord("proximal", "proximal_y", "Y", 1, -90, 90),
            _coord("proximal", "proximal_z", "Z", 2, -90, 90),
        ),
    )
    hinge = Joint(
        id="hinge", display_name="Hinge",
        parent_segment="upper", child_segment="lower",
        kind=JointKind.HINGE, order=RotationOrder.YZX,
        coordinates=(_coord("hinge", "hinge_flexion", "X", 2, 0, 150),),
    )
    return BiomechModel(
        id="chain", segments=chain_segments(),
        joints={"proximal": proximal, "hinge": hinge}, root_segment="base",
    )


@pytest.fixture
def rhythm_model() -> BiomechModel:
    """Girdle base→upper and limb upper→lower, both elevating about Z."""
    girdle = Joint(
        id="girdle", display_name="Girdle",
        parent_segment="base", child_segment="upper",
        kind=JointKind.BALL, order=RotationOrder.XYZ,
        coordinates=(
            _coord("girdle", "girdle_tilt", "X", 0, -20, 20),
            _coord("girdle", "girdle_upward", "Z", 2, -10, 60),
        ),
    )
    limb = Joint(
        id="limb", display_name="Limb",
        parent_segment="upper", child_segment="lower",
        kind=JointKind.BALL, order=RotationOrder.XYZ,
        coordinates=(
            _coord("limb", "limb_flexion", "X", 0, -40, 160),
            _coord("limb", "limb_rotation", "Y", 1, -90, 90),
            _coord("limb", "limb_elevation", "Z", 2, -90, 170),
        ),
    )
    return BiomechModel(
        id="rhythm", segments=chain_segments(),
        joints={"girdle": girdle, "limb": limb}, root_segment="base",
    )


@pytest.fixture
def girdle_limb_coupling() -> RhythmCoupling:
    return RhythmCoupling(
        name="girdle_limb",
        proximal_joint="girdle", proximal_coordinate="girdle_upward",
        distal_joint="limb", distal_coordinate="limb_elevation",
        threshold=deg_to_rad(30.0), ratio=2.0,
    )
