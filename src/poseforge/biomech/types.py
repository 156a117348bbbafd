"""Biomechanics model types: segments, joints, coordinates and runtime state.

Follows the OpenSim/Simbody split:

* Segments are rigid bodies (pelvis, femur, scapula, humerus, ...), each bound
  to a rig node or to a virtual frame.
* Joints connect a parent and a child segment.  The child's orientation in
  the parent frame is decomposed with a body-fixed rotation order.
* Coordinates are the generalized DOFs of a joint.  A coordinate's ``index``
  is its position in the joint's rotation order, *not* its position in the
  joint's coordinate list, and ``order.axis_at(index)`` must equal its axis.

Static records are frozen dataclasses validated on construction so a bad
joint table fails at import time rather than mid-frame.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from poseforge.core.math_utils import Quat, quat_identity


class Axis(Enum):
    X = "X"
    Y = "Y"
    Z = "Z"


class RotationOrder(Enum):
    """The six body-fixed (intrinsic) orderings of X, Y, Z."""
    XYZ = "XYZ"
    XZY = "XZY"
    YXZ = "YXZ"
    YZX = "YZX"
    ZXY = "ZXY"
    ZYX = "ZYX"

    def axis_at(self, index: int) -> Axis:
        return Axis(self.value[index])

    def index_of(self, axis: Axis) -> int:
        return self.value.index(axis.value)


class JointKind(Enum):
    BALL = "ball"                # up to 3 DOF: GH, ST, hip
    HINGE = "hinge"              # 1 DOF: MTP
    UNIVERSAL = "universal"      # 2 DOF: elbow + forearm, finger MCP
    CUSTOM_3DOF = "custom_3dof"  # 3 DOF with a non-standard decomposition
    FIXED = "fixed"              # 0 DOF: welded


# (min, max) coordinate count per joint kind
DOF_BY_KIND: dict[JointKind, tuple[int, int]] = {
    JointKind.BALL: (1, 3),
    JointKind.HINGE: (1, 1),
    JointKind.UNIVERSAL: (2, 2),
    JointKind.CUSTOM_3DOF: (3, 3),
    JointKind.FIXED: (0, 0),
}


class SegmentSource(Enum):
    RIG_BOUND = "rig_bound"
    VIRTUAL = "virtual"


class Side(Enum):
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


class Lifecycle(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CALIBRATED = "calibrated"
    RUNNING = "running"


@dataclass(frozen=True)
class Segment:
    """Anatomical rigid segment mapped onto a rig node or a virtual frame."""
    id: str
    display_name: str
    source: SegmentSource = SegmentSource.RIG_BOUND
    node_name: Optional[str] = None

    # Virtual segments: frame relative to the parent segment (or to the
    # world when there is no parent).
    parent_segment_id: Optional[str] = None
    offset: tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)

    def __post_init__(self):
        if self.source is SegmentSource.RIG_BOUND:
            if not self.node_name:
                raise ValueError(f"Rig-bound segment {self.id!r} needs a node_name")
            if self.parent_segment_id is not None:
                raise ValueError(f"Rig-bound segment {self.id!r} cannot have a parent segment")
        elif self.node_name is not None:
            raise ValueError(f"Virtual segment {self.id!r} cannot name a rig node")
        if self.parent_segment_id == self.id:
            raise ValueError(f"Segment {self.id!r} cannot be its own parent")

    @property
    def is_virtual(self) -> bool:
        return self.source is SegmentSource.VIRTUAL

    @property
    def side(self) -> Side:
        if self.id.endswith("_right"):
            return Side.RIGHT
        if self.id.endswith("_left"):
            return Side.LEFT
        return Side.CENTER


@dataclass(frozen=True)
class Coordinate:
    """One generalized rotational DOF of a joint (radians)."""
    id: str
    joint_id: str
    display_name: str
    axis: Axis
    index: int
    range_min: float
    range_max: float
    neutral: float = 0.0
    clamped: bool = True
    locked: bool = False
    # Sign flip applied only when reading/writing the coordinate value
    invert: bool = False
    default: Optional[float] = None

    def __post_init__(self):
        if self.index not in (0, 1, 2):
            raise ValueError(f"Coordinate {self.id!r}: index must be 0, 1 or 2, got {self.index}")
        if self.range_min > self.range_max:
            raise ValueError(
                f"Coordinate {self.id!r}: range min {self.range_min} > max {self.range_max}"
            )

    @property
    def range(self) -> tuple[float, float]:
        return self.range_min, self.range_max

    def in_range(self, value: float) -> bool:
        return self.range_min <= value <= self.range_max


@dataclass(frozen=True)
class Joint:
    """Rotational relationship between a parent and a child segment."""
    id: str
    display_name: str
    parent_segment: str
    child_segment: str
    kind: JointKind
    order: RotationOrder
    coordinates: tuple[Coordinate, ...] = ()
    side: Side = Side.CENTER
    notes: str = ""

    def __post_init__(self):
        # Accept lists from callers but store an immutable tuple
        object.__setattr__(self, "coordinates", tuple(self.coordinates))

        if self.parent_segment == self.child_segment:
            raise ValueError(f"Joint {self.id!r}: parent and child segment are both "
                             f"{self.parent_segment!r}")

        lo, hi = DOF_BY_KIND[self.kind]
        n = len(self.coordinates)
        if not lo <= n <= hi:
            raise ValueError(
                f"Joint {self.id!r}: {self.kind.value} joint takes {lo}-{hi} coordinates, got {n}"
            )

        seen_ids: set[str] = set()
        seen_idx: set[int] = set()
        for c in self.coordinates:
            if c.joint_id != self.id:
                raise ValueError(f"Coordinate {c.id!r} belongs to {c.joint_id!r}, not {self.id!r}")
            if c.id in seen_ids:
                raise ValueError(f"Joint {self.id!r}: duplicate coordinate id {c.id!r}")
            if c.index in seen_idx:
                raise ValueError(f"Joint {self.id!r}: two coordinates share index {c.index}")
            expected = self.order.axis_at(c.index)
            if expected is not c.axis:
                raise ValueError(
                    f"Joint {self.id!r}: coordinate {c.id!r} declares axis {c.axis.value} "
                    f"at index {c.index}, but {self.order.value}[{c.index}] is {expected.value}"
                )
            seen_ids.add(c.id)
            seen_idx.add(c.index)

    @property
    def dof(self) -> int:
        return len(self.coordinates)

    @property
    def coordinate_ids(self) -> list[str]:
        return [c.id for c in self.coordinates]

    def coordinate(self, coordinate_id: str) -> Optional[Coordinate]:
        for c in self.coordinates:
            if c.id == coordinate_id:
                return c
        return None

    def coordinate_at(self, index: int) -> Optional[Coordinate]:
        """The coordinate sitting at *index* of the rotation order, if any."""
        for c in self.coordinates:
            if c.index == index:
                return c
        return None


# ── Runtime state ────────────────────────────────────────────────────


@dataclass
class CoordinateState:
    value: float
    locked: bool = False
    clamped: bool = False       # clamping changed the value this sample
    out_of_range: bool = False  # raw sample fell outside [min, max]
    raw_value: Optional[float] = None  # display value before clamping
    timestamp: float = 0.0


@dataclass
class JointState:
    """Per-joint snapshot produced each tick; owned by BiomechState."""
    joint_id: str
    coordinates: dict[str, CoordinateState] = field(default_factory=dict)
    q_rel: Quat = field(default_factory=quat_identity)
    q_neutral: Quat = field(default_factory=quat_identity)
    q_delta: Quat = field(default_factory=quat_identity)

    def value(self, coordinate_id: str) -> Optional[float]:
        cs = self.coordinates.get(coordinate_id)
        return cs.value if cs is not None else None


@dataclass
class ModelState:
    """Whole-model snapshot; rebuilt wholesale every update."""
    timestamp: float = 0.0
    q: dict[str, float] = field(default_factory=dict)
    joints: dict[str, JointState] = field(default_factory=dict)


@dataclass
class BiomechModel:
    """Complete segment + joint model.  Joint dict order is evaluation order."""
    id: str
    segments: dict[str, Segment]
    joints: dict[str, Joint]
    root_segment: str

    def __post_init__(self):
        if self.root_segment not in self.segments:
            raise ValueError(f"Model {self.id!r}: unknown root segment {self.root_segment!r}")
        for sid, seg in self.segments.items():
            if sid != seg.id:
                raise ValueError(f"Segment keyed {sid!r} has id {seg.id!r}")
            if seg.parent_segment_id is not None and seg.parent_segment_id not in self.segments:
                raise ValueError(f"Segment {sid!r}: unknown parent {seg.parent_segment_id!r}")
        coord_ids: set[str] = set()
        for jid, joint in self.joints.items():
            if jid != joint.id:
                raise ValueError(f"Joint keyed {jid!r} has id {joint.id!r}")
            for seg_id in (joint.parent_segment, joint.child_segment):
                if seg_id not in self.segments:
                    raise ValueError(f"Joint {jid!r}: unknown segment {seg_id!r}")
            for c in joint.coordinates:
                if c.id in coord_ids:
                    raise ValueError(f"Coordinate id {c.id!r} used by more than one joint")
                coord_ids.add(c.id)

    def segment(self, segment_id: str) -> Optional[Segment]:
        return self.segments.get(segment_id)

    def joint(self, joint_id: str) -> Optional[Joint]:
        return self.joints.get(joint_id)

    def all_joints(self) -> list[Joint]:
        return list(self.joints.values())

    def child_joints(self, segment_id: str) -> list[Joint]:
        """Joints where *segment_id* is the parent."""
        return [j for j in self.joints.values() if j.parent_segment == segment_id]

    def parent_joint(self, segment_id: str) -> Optional[Joint]:
        """The joint where *segment_id* is the child."""
        for j in self.joints.values():
            if j.child_segment == segment_id:
                return j
        return None

    def joints_for_side(self, side: Side) -> list[Joint]:
        return [j for j in self.joints.values() if j.side is side]

    def coordinate(self, coordinate_id: str) -> Optional[Coordinate]:
        for j in self.joints.values():
            c = j.coordinate(coordinate_id)
            if c is not None:
                return c
        return None


def as_quat(values) -> Quat:
    return np.asarray(values, dtype=np.float64)
