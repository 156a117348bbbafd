"""Segment registry: resolves anatomical segments to live world frames.

One registry is built per loaded rig.  Rig-bound segments are looked up by
node name in the rig's node index; virtual segments carry a frame that is
either set explicitly (``set_virtual_frame``) or derived from a parent
segment (``update_virtual_frames``).

Reads never raise for an unresolved segment: they return ``None``, because
a missing bone is an expected transient condition while a rig is loading.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from poseforge.core.math_utils import (
    Quat, Vec3, quat_multiply, quat_normalize, quat_rotate_vec3, vec3,
)
from poseforge.core.scene_graph import Rig, SceneNode
from poseforge.biomech.segments import SEGMENTS
from poseforge.biomech.types import Segment, SegmentSource, as_quat

logger = logging.getLogger(__name__)


@dataclass
class VirtualFrame:
    """World-space frame of a virtual segment."""
    position: Vec3
    orientation: Quat


@dataclass
class ResolvedSegment:
    """A segment bound to its current source of orientation."""
    segment: Segment
    node: Optional[SceneNode] = None
    frame: Optional[VirtualFrame] = None

    @property
    def source(self) -> SegmentSource:
        return self.segment.source

    def world_orientation(self) -> Quat:
        if self.node is not None:
            return self.node.get_world_quaternion()
        return self.frame.orientation.copy()

    def world_position(self) -> Vec3:
        if self.node is not None:
            return self.node.get_world_position()
        return self.frame.position.copy()


class SegmentRegistry:
    """Maps segment ids onto rig nodes and virtual frames of one rig."""

    def __init__(self, rig: Rig, segments: Optional[dict[str, Segment]] = None):
        self.rig = rig
        self.segments: dict[str, Segment] = dict(segments if segments is not None else SEGMENTS)
        self._nodes: dict[str, SceneNode] = {}
        self._frames: dict[str, VirtualFrame] = {}
        self.rebuild()

    def rebuild(self) -> None:
        """Re-index the rig.  Call after bones are added, removed or renamed."""
        index = self.rig.node_index()
        self._nodes.clear()
        missing = []
        for seg in self.segments.values():
            if seg.is_virtual:
                if seg.parent_segment_id is None and seg.id not in self._frames:
                    # Root virtual frames are world-fixed
                    self._frames[seg.id] = VirtualFrame(
                        position=vec3(*seg.offset),
                        orientation=quat_normalize(as_quat(seg.rotation)),
                    )
                continue
            node = index.get(seg.node_name)
            if node is None:
                missing.append(seg.id)
            else:
                self._nodes[seg.id] = node

        if missing:
            logger.warning("Unresolved segments (%d): %s", len(missing), ", ".join(missing))
        logger.debug("Segment registry indexed %d/%d rig-bound segments",
                     len(self._nodes), len(self._nodes) + len(missing))

    # ── Lookup ────────────────────────────────────────────────────────

    def resolve(self, segment_id: str) -> Optional[ResolvedSegment]:
        """Current source for *segment_id*, or None if unresolved / frame not set."""
        seg = self.segments.get(segment_id)
        if seg is None:
            return None
        if seg.is_virtual:
            frame = self._frames.get(segment_id)
            if frame is None:
                return None
            return ResolvedSegment(segment=seg, frame=frame)
        node = self._nodes.get(segment_id)
        if node is None:
            return None
        return ResolvedSegment(segment=seg, node=node)

    def has(self, segment_id: str) -> bool:
        return self.resolve(segment_id) is not None

    def get_node(self, segment_id: str) -> Optional[SceneNode]:
        """The rig node behind a rig-bound segment (None for virtual segments)."""
        return self._nodes.get(segment_id)

    def get_world_orientation(self, segment_id: str) -> Optional[Quat]:
        resolved = self.resolve(segment_id)
        if resolved is None:
            return None
        return resolved.world_orientation()

    def get_world_position(self, segment_id: str) -> Optional[Vec3]:
        resolved = self.resolve(segment_id)
        if resolved is None:
            return None
        return resolved.world_position()

    def list_segments(self) -> list[str]:
        """Ids of all segments that currently resolve."""
        return [sid for sid in self.segments if self.has(sid)]

    def missing_segments(self) -> list[str]:
        """Ids of rig-bound segments whose node is absent from the rig."""
        return [
            sid for sid, seg in self.segments.items()
            if not seg.is_virtual and sid not in self._nodes
        ]

    # ── Virtual frames ────────────────────────────────────────────────

    def set_virtual_frame(self, segment_id: str, position, orientation) -> None:
        """Register the world frame of a virtual segment.  Last write wins."""
        seg = self.segments.get(segment_id)
        if seg is None:
            raise ValueError(f"Unknown segment {segment_id!r}")
        if not seg.is_virtual:
            raise ValueError(f"Segment {segment_id!r} is rig-bound; its frame comes from the rig")
        self._frames[segment_id] = VirtualFrame(
            position=np.asarray(position, dtype=np.float64).copy(),
            orientation=quat_normalize(as_quat(orientation)),
        )

    def clear_virtual_frame(self, segment_id: str) -> None:
        self._frames.pop(segment_id, None)

    def update_virtual_frames(self) -> int:
        """Derive parented virtual frames from their parent's world frame.

        Segments are visited in declaration order, so a virtual segment may
        hang off another virtual segment declared before it.  Returns the
        number of frames updated.
        """
        updated = 0
        for seg in self.segments.values():
            if not seg.is_virtual or seg.parent_segment_id is None:
                continue
            parent = self.resolve(seg.parent_segment_id)
            if parent is None:
                continue
            q_parent = parent.world_orientation()
            offset = quat_rotate_vec3(q_parent, vec3(*seg.offset))
            self._frames[seg.id] = VirtualFrame(
                position=parent.world_position() + offset,
                orientation=quat_normalize(quat_multiply(q_parent, as_quat(seg.rotation))),
            )
            updated += 1
        return updated
