"""Biomech state: calibration lifecycle and per-tick coordinate snapshots.

One ``BiomechState`` per active rig.  It owns every mutable cache of the
engine (neutral orientations, the per-bone rest pose, the latest snapshot)
and moves through::

    UNINITIALIZED --initialize(rig)--> INITIALIZED
        --calibrate_neutral()--> CALIBRATED --update(dt)--> RUNNING

``reset()`` returns to UNINITIALIZED and drops all caches.  Reads of data
that does not exist yet (unknown joint, not calibrated, no tick run) return
None.  Only caller ordering bugs raise: ``update()`` / ``apply_coordinates()``
before ``initialize()``, and ``update()`` re-entered from inside a tick.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from poseforge.constants import COORD_EPSILON, MAX_DELTA_TIME
from poseforge.core.events import EventBus, EventType
from poseforge.core.math_utils import Quat, clamp, quat_inverse, quat_multiply, quat_normalize
from poseforge.core.scene_graph import Rig
from poseforge.biomech import qspace
from poseforge.biomech.joints import load_model
from poseforge.biomech.rhythm import RhythmCoupling, RhythmSplit, load_couplings
from poseforge.biomech.segment_registry import SegmentRegistry
from poseforge.biomech.types import (
    BiomechModel, Coordinate, JointState, Lifecycle, ModelState,
)

logger = logging.getLogger(__name__)


class BiomechStateError(RuntimeError):
    """Raised when the engine is driven out of lifecycle order."""


@dataclass
class RomViolation:
    """A coordinate whose raw sample fell outside its range this tick."""
    joint_id: str
    coordinate: Coordinate
    raw_value: float
    value: float  # what the snapshot reports (clamped if the coordinate is)

    @property
    def coordinate_id(self) -> str:
        return self.coordinate.id


@dataclass
class InitializationResult:
    success: bool
    ready_joints: list[str] = field(default_factory=list)
    failed_joints: dict[str, list[str]] = field(default_factory=dict)  # joint → missing segments
    missing_segments: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.ready_joints) and bool(self.failed_joints)


@dataclass
class CalibrationResult:
    success: bool
    calibrated_count: int = 0
    label: str = ""
    failed_joints: list[str] = field(default_factory=list)


@dataclass
class UpdateResult:
    violations: list[RomViolation] = field(default_factory=list)
    rhythm: list[tuple[RhythmCoupling, RhythmSplit]] = field(default_factory=list)
    joints_updated: int = 0
    timestamp: float = 0.0


def _raw(js: JointState, coordinate_id: str) -> float:
    cs = js.coordinates[coordinate_id]
    return cs.raw_value if cs.raw_value is not None else cs.value


class BiomechState:
    """Joint kinematics engine bound to one rig."""

    def __init__(
        self,
        model: Optional[BiomechModel] = None,
        couplings: Optional[Sequence[RhythmCoupling]] = None,
        events: Optional[EventBus] = None,
    ):
        self.model = model if model is not None else load_model()
        self.events = events
        self.couplings: list[RhythmCoupling] = []
        for coupling in (couplings if couplings is not None else load_couplings()):
            problems = coupling.problems(self.model)
            if problems:
                logger.warning("Rhythm coupling %s disabled: %s", coupling.name, "; ".join(problems))
            else:
                self.couplings.append(coupling)

        self._lifecycle = Lifecycle.UNINITIALIZED
        self._rig: Optional[Rig] = None
        self._registry: Optional[SegmentRegistry] = None
        self._ready: list[str] = []
        self._node_to_joint: dict[str, str] = {}
        self._neutral: dict[str, Quat] = {}
        self._rest_pose: dict[str, Quat] = {}
        self._snapshot: Optional[ModelState] = None
        self._calibration_label = ""
        self._clock = 0.0
        self._last_update_wall: Optional[float] = None
        self._updating = False
        self._warned_uncalibrated = False

    # ── Lifecycle ─────────────────────────────────────────────────────

    @property
    def lifecycle(self) -> Lifecycle:
        return self._lifecycle

    @property
    def registry(self) -> Optional[SegmentRegistry]:
        return self._registry

    @property
    def ready_joints(self) -> list[str]:
        """Joints whose segments both resolved at initialize, in declaration order."""
        return list(self._ready)

    def is_initialized(self) -> bool:
        return self._lifecycle is not Lifecycle.UNINITIALIZED

    def is_calibrated(self) -> bool:
        return self._lifecycle in (Lifecycle.CALIBRATED, Lifecycle.RUNNING)

    def initialize(self, rig: Rig) -> InitializationResult:
        """Bind to *rig* and resolve every joint's segments.

        Never raises for a missing bone: joints with an unresolved segment
        are left out and listed in the result.
        """
        if self.is_initialized():
            logger.info("Re-initializing biomech state on a new rig")
            self.reset()

        self._rig = rig
        self._registry = SegmentRegistry(rig, self.model.segments)
        self._registry.update_virtual_frames()

        failed: dict[str, list[str]] = {}
        for joint in self.model.all_joints():
            missing = [
                sid for sid in (joint.parent_segment, joint.child_segment)
                if not self._registry.has(sid)
            ]
            if missing:
                failed[joint.id] = missing
                continue
            self._ready.append(joint.id)
            node = self._registry.get_node(joint.child_segment)
            if node is not None:
                self._node_to_joint.setdefault(node.name, joint.id)

        self._lifecycle = Lifecycle.INITIALIZED
        result = InitializationResult(
            success=bool(self._ready),
            ready_joints=list(self._ready),
            failed_joints=failed,
            missing_segments=self._registry.missing_segments(),
        )
        logger.info("Biomech initialized: %d/%d joints ready",
                    len(self._ready), len(self.model.joints))
        if failed:
            logger.warning("Joints unavailable on this rig: %s", ", ".join(failed))
        self._publish(EventType.RIG_INITIALIZED, result=result)
        return result

    def calibrate_neutral(self, label: str = "neutral") -> CalibrationResult:
        """Capture the current pose as every joint's zero reference.

        Recalibrating simply overwrites the previous neutral.
        """
        if not self.is_initialized():
            logger.warning("calibrate_neutral(%r) before initialize(); ignored", label)
            return CalibrationResult(success=False, label=label)

        self._registry.update_virtual_frames()
        neutral: dict[str, Quat] = {}
        failed = []
        for jid in self._ready:
            q = qspace.calibrate_neutral(self.model.joints[jid], self._registry)
            if q is None:
                failed.append(jid)
            else:
                neutral[jid] = q
        self._neutral = neutral
        self._capture_rest_pose()
        self._snapshot = None
        self._calibration_label = label
        self._warned_uncalibrated = False

        result = CalibrationResult(
            success=bool(neutral),
            calibrated_count=len(neutral),
            label=label,
            failed_joints=failed,
        )
        if result.success:
            self._lifecycle = Lifecycle.CALIBRATED
            logger.info("Neutral pose %r calibrated for %d joints", label, len(neutral))
        else:
            logger.warning("Neutral calibration %r failed: no joint could be measured", label)
        self._publish(EventType.NEUTRAL_CALIBRATED, result=result)
        return result

    def reset(self) -> None:
        """Unbind the rig and clear every cache."""
        self._lifecycle = Lifecycle.UNINITIALIZED
        self._rig = None
        self._registry = None
        self._ready = []
        self._node_to_joint = {}
        self._neutral = {}
        self._rest_pose = {}
        self._snapshot = None
        self._calibration_label = ""
        self._clock = 0.0
        self._last_update_wall = None
        self._warned_uncalibrated = False
        logger.info("Biomech state reset")
        self._publish(EventType.BIOMECH_RESET)

    # ── Per-tick update ───────────────────────────────────────────────

    def update(self, dt: float = 0.0) -> UpdateResult:
        """Recompute every calibrated joint's coordinates, then apply rhythm coupling."""
        if not self.is_initialized():
            raise BiomechStateError("update() called before initialize()")
        if self._updating:
            raise BiomechStateError("update() re-entered while a tick is in progress")
        if not self.is_calibrated():
            if not self._warned_uncalibrated:
                logger.warning("update() before calibrate_neutral(); no joint data yet")
                self._warned_uncalibrated = True
            return UpdateResult()

        self._updating = True
        try:
            self._clock += clamp(dt, 0.0, MAX_DELTA_TIME)
            ts = self._clock
            self._registry.update_virtual_frames()

            joints: dict[str, JointState] = {}
            for jid in self._ready:
                q_neutral = self._neutral.get(jid)
                if q_neutral is None:
                    continue
                js = qspace.compute_joint_state(self.model.joints[jid], self._registry, q_neutral, ts)
                if js is not None:
                    joints[jid] = js

            rhythm = self._apply_rhythm(joints, ts)
            violations = self._collect_violations(joints)

            self._snapshot = ModelState(
                timestamp=ts,
                q={cid: cs.value for js in joints.values() for cid, cs in js.coordinates.items()},
                joints=joints,
            )
            self._lifecycle = Lifecycle.RUNNING
            self._last_update_wall = time.monotonic()

            result = UpdateResult(
                violations=violations,
                rhythm=rhythm,
                joints_updated=len(joints),
                timestamp=ts,
            )
            if violations:
                logger.debug("ROM violations: %s",
                             ", ".join(v.coordinate_id for v in violations))
                self._publish(EventType.ROM_VIOLATION, violations=violations)
            self._publish(EventType.JOINTS_UPDATED, result=result, state=self._snapshot)
        finally:
            self._updating = False
        return result

    def _collect_violations(self, joints: dict[str, JointState]) -> list[RomViolation]:
        violations = []
        for jid, js in joints.items():
            joint = self.model.joints[jid]
            for c in joint.coordinates:
                cs = js.coordinates[c.id]
                if cs.out_of_range:
                    violations.append(RomViolation(
                        joint_id=jid, coordinate=c, raw_value=cs.raw_value, value=cs.value,
                    ))
        return violations

    def _apply_rhythm(
        self, joints: dict[str, JointState], ts: float,
    ) -> list[tuple[RhythmCoupling, RhythmSplit]]:
        """Redistribute distal elevation onto the proximal joint.

        The proximal joint is written through the normal apply path.  Moving
        it would carry the distal segment along, so that segment's world
        orientation is written back afterwards: the total elevation stays
        put and only its split between the two joints changes.
        """
        applied = []
        for coupling in self.couplings:
            prox_state = joints.get(coupling.proximal_joint)
            dist_state = joints.get(coupling.distal_joint)
            if prox_state is None or dist_state is None:
                continue
            prox_joint = self.model.joints[coupling.proximal_joint]
            dist_joint = self.model.joints[coupling.distal_joint]
            prox_coord = prox_joint.coordinate(coupling.proximal_coordinate)
            if prox_coord.locked:
                continue

            # Unclamped samples, so a distal joint past its limit still counts in full
            current = _raw(prox_state, prox_coord.id)
            total = _raw(dist_state, coupling.distal_coordinate) + current
            split = coupling.split(total, prox_coord.range if prox_coord.clamped else None)
            if abs(split.proximal - current) <= COORD_EPSILON:
                continue

            held = self._registry.get_world_orientation(dist_joint.child_segment)
            values = qspace.values_from_state(prox_joint, prox_state)
            values[prox_coord.index] = split.proximal
            if not qspace.apply_coordinates_to_rig(
                prox_joint, values, self._neutral[prox_joint.id], self._registry,
            ):
                continue
            distal_node = self._registry.get_node(dist_joint.child_segment)
            if held is not None and distal_node is not None:
                distal_node.set_world_quaternion(held)
                distal_node.update_world_matrix()

            self._refresh(joints, {prox_joint.child_segment, dist_joint.child_segment}, ts)
            applied.append((coupling, split))
            logger.debug("Rhythm %s: total %.4f → proximal %.4f, distal %.4f",
                         coupling.name, split.total, split.proximal, split.distal)
            self._publish(EventType.RHYTHM_APPLIED, coupling=coupling, split=split)
        return applied

    def _refresh(self, joints: dict[str, JointState], moved: set[str], ts: float) -> None:
        """Recompute snapshot entries of joints touching a moved segment."""
        for jid in list(joints):
            joint = self.model.joints[jid]
            if joint.parent_segment in moved or joint.child_segment in moved:
                js = qspace.compute_joint_state(joint, self._registry, self._neutral[jid], ts)
                if js is not None:
                    joints[jid] = js

    # ── Writes ────────────────────────────────────────────────────────

    def apply_coordinates(
        self, joint_id: str, values: Sequence[float], clamp_to_rom: bool = False,
    ) -> bool:
        """Pose a joint's child segment from an index-ordered value triple.

        Values are in display space.  Locked coordinates keep their locked
        value whatever is passed.  Returns False if the joint is unknown,
        unavailable on this rig, or not calibrated.
        """
        if not self.is_initialized():
            raise BiomechStateError("apply_coordinates() called before initialize()")
        if len(values) != 3:
            raise ValueError(f"apply_coordinates({joint_id!r}): expected 3 values, got {len(values)}")

        joint = self.model.joint(joint_id)
        if joint is None:
            logger.warning("apply_coordinates: unknown joint %s", joint_id)
            return False
        q_neutral = self._neutral.get(joint_id)
        if q_neutral is None:
            logger.warning("apply_coordinates: joint %s is not calibrated", joint_id)
            return False

        ok = qspace.apply_coordinates_to_rig(joint, values, q_neutral, self._registry, clamp_to_rom)
        if ok:
            self._publish(EventType.COORDINATES_APPLIED, joint_id=joint_id, values=tuple(values))
        return ok

    def validate_joint(self, joint_id: str) -> bool:
        """Re-apply the joint's last snapshot, clamped to its ROM."""
        js = self.get_joint_state(joint_id)
        if js is None:
            return False
        joint = self.model.joints[joint_id]
        return self.apply_coordinates(joint_id, qspace.values_from_state(joint, js), clamp_to_rom=True)

    # ── Rest pose ─────────────────────────────────────────────────────

    def _capture_rest_pose(self) -> None:
        self._rest_pose = {}
        for sid in self._registry.segments:
            node = self._registry.get_node(sid)
            if node is not None:
                self._rest_pose[node.name] = node.quaternion.copy()

    def rotation_from_neutral(self, segment_id: str) -> Optional[Quat]:
        """Local rotation of a segment's bone relative to its calibrated rest pose."""
        if self._registry is None:
            return None
        node = self._registry.get_node(segment_id)
        if node is None or node.name not in self._rest_pose:
            return None
        return quat_normalize(quat_multiply(quat_inverse(self._rest_pose[node.name]), node.quaternion))

    def reset_to_neutral(self, joint_id: Optional[str] = None) -> int:
        """Restore bones to the calibrated rest pose.

        With *joint_id*, only that joint's child bone; otherwise every
        captured bone.  Returns the number of bones restored.
        """
        if not self._rest_pose:
            return 0
        if joint_id is not None:
            joint = self.model.joint(joint_id)
            node = self._registry.get_node(joint.child_segment) if joint is not None else None
            if node is None or node.name not in self._rest_pose:
                return 0
            node.set_quaternion(self._rest_pose[node.name])
            node.update_world_matrix()
            return 1

        restored = 0
        for sid in self._registry.segments:
            node = self._registry.get_node(sid)
            if node is not None and node.name in self._rest_pose:
                node.set_quaternion(self._rest_pose[node.name])
                restored += 1
        self._rig.update()
        return restored

    # ── Queries ───────────────────────────────────────────────────────

    def get_model_state(self) -> Optional[ModelState]:
        return self._snapshot if self.is_calibrated() else None

    def get_joint_state(self, joint_id: str) -> Optional[JointState]:
        snapshot = self.get_model_state()
        if snapshot is None:
            return None
        return snapshot.joints.get(joint_id)

    def get_coordinate_value(self, coordinate_id: str) -> Optional[float]:
        snapshot = self.get_model_state()
        if snapshot is None:
            return None
        return snapshot.q.get(coordinate_id)

    def get_neutral_orientation(self, joint_id: str) -> Optional[Quat]:
        q = self._neutral.get(joint_id)
        return q.copy() if q is not None else None

    def joint_for_node(self, node_name: str) -> Optional[str]:
        """The joint whose child segment is bound to *node_name*."""
        return self._node_to_joint.get(node_name)

    def time_since_last_update(self) -> Optional[float]:
        if self._last_update_wall is None:
            return None
        return time.monotonic() - self._last_update_wall

    def get_diagnostics(self) -> dict[str, Any]:
        return {
            "lifecycle": self._lifecycle.value,
            "calibration_label": self._calibration_label,
            "joints_total": len(self.model.joints),
            "joints_ready": len(self._ready),
            "joints_calibrated": len(self._neutral),
            "missing_segments": self._registry.missing_segments() if self._registry else [],
            "couplings": [c.name for c in self.couplings],
            "rest_pose_bones": len(self._rest_pose),
            "timestamp": self._clock,
            "time_since_last_update": self.time_since_last_update(),
        }

    def _publish(self, event_type: EventType, **data: Any) -> None:
        if self.events is not None:
            self.events.publish(event_type, **data)
