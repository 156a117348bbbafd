"""Q-space math: orientations ↔ generalized coordinates.

Stateless functions.  The pipeline for one joint is::

    q_rel     = inv(q_parent_world) · q_child_world
    q_neutral = q_rel captured at calibration
    q_delta   = inv(q_neutral) · q_rel
    angles    = decompose(q_delta, joint.order)      # by order position
    value[c]  = ±angles[c.index]                     # invert at the boundary

and the reverse for writes.  Value vectors handed to ``to_orientation`` and
``apply_coordinates_to_rig`` are indexed by rotation-order position and are
in display space, i.e. with ``invert`` already applied.
"""

import logging
from typing import Optional, Sequence

from poseforge.constants import ROM_TOLERANCE
from poseforge.core.math_utils import (
    Quat, clamp, lerp, quat_from_euler_sequence, quat_inverse, quat_multiply,
    quat_normalize, quat_to_euler_sequence,
)
from poseforge.biomech.segment_registry import SegmentRegistry
from poseforge.biomech.types import (
    Coordinate, CoordinateState, Joint, JointState, RotationOrder,
)

logger = logging.getLogger(__name__)


def relative_orientation(q_parent: Optional[Quat], q_child: Optional[Quat]) -> Optional[Quat]:
    """Child orientation expressed in the parent's frame."""
    if q_parent is None or q_child is None:
        return None
    return quat_normalize(quat_multiply(quat_inverse(q_parent), q_child))


def compute_relative_orientation(
    parent_id: str, child_id: str, registry: SegmentRegistry,
) -> Optional[Quat]:
    return relative_orientation(
        registry.get_world_orientation(parent_id),
        registry.get_world_orientation(child_id),
    )


def calibrate_neutral(joint: Joint, registry: SegmentRegistry) -> Optional[Quat]:
    """The joint's relative orientation right now, to be stored as its zero."""
    return compute_relative_orientation(joint.parent_segment, joint.child_segment, registry)


def deviation(q_neutral: Quat, q_rel: Quat) -> Quat:
    """Rotation taking the neutral pose to the current pose."""
    return quat_normalize(quat_multiply(quat_inverse(q_neutral), q_rel))


def decompose(q: Quat, order: RotationOrder) -> tuple[float, float, float]:
    return quat_to_euler_sequence(q, order.value)


def compose(angles: Sequence[float], order: RotationOrder) -> Quat:
    return quat_normalize(quat_from_euler_sequence(angles, order.value))


def clamp_coordinate(value: float, lo: float, hi: float) -> tuple[float, bool]:
    """Clamp to [lo, hi]; also report whether the value changed."""
    clamped = clamp(value, lo, hi)
    return clamped, clamped != value


def is_coordinate_valid(coord: Coordinate, value: float) -> bool:
    return coord.in_range(value)


def lerp_coordinate(coord: Coordinate, a: float, b: float, t: float) -> float:
    """Interpolate between two coordinate values, respecting the ROM if clamped."""
    value = lerp(a, b, t)
    if coord.clamped:
        value, _ = clamp_coordinate(value, coord.range_min, coord.range_max)
    return value


def to_coordinates(q_delta: Quat, joint: Joint, timestamp: float = 0.0) -> dict[str, CoordinateState]:
    """Decompose a deviation into per-coordinate states."""
    angles = decompose(q_delta, joint.order)
    states: dict[str, CoordinateState] = {}
    for c in joint.coordinates:
        raw = angles[c.index]
        if c.invert:
            raw = -raw
        value, was_clamped = raw, False
        if c.clamped:
            value, was_clamped = clamp_coordinate(raw, c.range_min, c.range_max)
        states[c.id] = CoordinateState(
            value=value,
            locked=c.locked,
            clamped=was_clamped,
            out_of_range=not c.range_min - ROM_TOLERANCE <= raw <= c.range_max + ROM_TOLERANCE,
            raw_value=raw,
            timestamp=timestamp,
        )
    return states


def _locked_value(coord: Coordinate) -> float:
    return coord.default if coord.default is not None else coord.neutral


def to_orientation(
    values: Sequence[float], joint: Joint, q_neutral: Quat, clamp_to_rom: bool = False,
) -> tuple[Quat, Quat]:
    """Rebuild ``(q_delta, q_rel)`` from a display-space value triple.

    Locked coordinates ignore their input and hold their locked value.
    Order positions with no coordinate are forced to zero.
    """
    if len(values) != 3:
        raise ValueError(f"Joint {joint.id!r}: expected 3 values, got {len(values)}")
    angles = [0.0, 0.0, 0.0]
    for c in joint.coordinates:
        v = _locked_value(c) if c.locked else float(values[c.index])
        if clamp_to_rom and c.clamped:
            v, _ = clamp_coordinate(v, c.range_min, c.range_max)
        angles[c.index] = -v if c.invert else v
    q_delta = compose(angles, joint.order)
    q_rel = quat_normalize(quat_multiply(q_neutral, q_delta))
    return q_delta, q_rel


def values_from_state(joint: Joint, state: JointState) -> list[float]:
    """Index-ordered display values of a snapshot, ready to re-apply."""
    values = [0.0, 0.0, 0.0]
    for c in joint.coordinates:
        cs = state.coordinates.get(c.id)
        if cs is not None:
            values[c.index] = cs.value
    return values


def compute_joint_state(
    joint: Joint, registry: SegmentRegistry, q_neutral: Quat, timestamp: float = 0.0,
) -> Optional[JointState]:
    """Full read path for one joint.  None if either segment is unresolved."""
    q_rel = compute_relative_orientation(joint.parent_segment, joint.child_segment, registry)
    if q_rel is None:
        return None
    q_delta = deviation(q_neutral, q_rel)
    return JointState(
        joint_id=joint.id,
        coordinates=to_coordinates(q_delta, joint, timestamp),
        q_rel=q_rel,
        q_neutral=q_neutral.copy(),
        q_delta=q_delta,
    )


def apply_coordinates_to_rig(
    joint: Joint,
    values: Sequence[float],
    q_neutral: Quat,
    registry: SegmentRegistry,
    clamp_to_rom: bool = False,
) -> bool:
    """Write a value triple onto the child segment's rig node.

    The target is expressed against the parent segment's *current* world
    orientation, so edits compose under a moving parent chain.  Returns
    False when the child is virtual or either segment is unresolved.
    """
    _, q_rel = to_orientation(values, joint, q_neutral, clamp_to_rom)

    q_parent = registry.get_world_orientation(joint.parent_segment)
    node = registry.get_node(joint.child_segment)
    if q_parent is None or node is None:
        logger.debug("Cannot apply %s: segment unresolved or virtual", joint.id)
        return False

    node.set_world_quaternion(quat_multiply(q_parent, q_rel))
    node.update_world_matrix()
    return True
