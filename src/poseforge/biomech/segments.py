"""Segment definitions.

Maps anatomical segments to Mixamo bone names.  Key corrections from the
default Mixamo reading of the rig:

* the scapula is the ``<Side>Shoulder`` bone, so the scapulothoracic (ST) and
  glenohumeral (GH) joints are separate;
* the humerus is ``<Side>Arm`` and never connects straight to the thorax;
* ``<Side>ForeArm`` stands for the radius-ulna unit.

``ground`` is a virtual, world-fixed frame used as the parent of the pelvis.
"""

from typing import Optional

from poseforge.constants import DEFAULT_RIG_PREFIX
from poseforge.biomech.types import Segment, SegmentSource, Side

# (segment id, display name, bone suffix) for the axial skeleton
_AXIAL = [
    ("pelvis", "Pelvis", "Hips"),
    ("lumbar", "Lumbar Spine", "Spine"),
    ("thoracic_lower", "Lower Thoracic Spine", "Spine1"),
    ("thorax", "Thorax", "Spine2"),  # upper thoracic, reference for the shoulder
    ("neck", "Neck", "Neck"),
    ("head", "Head", "Head"),
]

# (segment stem, display stem, bone stem) per side; bone = prefix + Side + stem
_LIMB = [
    ("scapula", "Scapula", "Shoulder"),
    ("humerus", "Humerus", "Arm"),
    ("radius", "Radius", "ForeArm"),
    ("hand", "Hand", "Hand"),
    ("thumb_prox", "Thumb Metacarpal", "HandThumb1"),
    ("index_prox", "Index Proximal", "HandIndex1"),
    ("middle_prox", "Middle Proximal", "HandMiddle1"),
    ("ring_prox", "Ring Proximal", "HandRing1"),
    ("pinky_prox", "Pinky Proximal", "HandPinky1"),
    ("femur", "Femur", "UpLeg"),
    ("tibia", "Tibia", "Leg"),
    ("foot", "Foot", "Foot"),
    ("toes", "Toes", "ToeBase"),
]


def build_segments(prefix: str = DEFAULT_RIG_PREFIX) -> dict[str, Segment]:
    """Build the segment table for a rig whose bones carry *prefix*."""
    segments: dict[str, Segment] = {
        "ground": Segment(
            id="ground",
            display_name="Ground",
            source=SegmentSource.VIRTUAL,
        ),
    }
    for seg_id, name, bone in _AXIAL:
        segments[seg_id] = Segment(id=seg_id, display_name=name, node_name=f"{prefix}{bone}")

    for side in ("right", "left"):
        side_label = side.capitalize()
        for stem, name, bone in _LIMB:
            seg_id = f"{stem}_{side}"
            segments[seg_id] = Segment(
                id=seg_id,
                display_name=f"{side_label} {name}",
                node_name=f"{prefix}{side_label}{bone}",
            )
    return segments


SEGMENTS: dict[str, Segment] = build_segments()


def get_segment(segment_id: str) -> Optional[Segment]:
    return SEGMENTS.get(segment_id)


def get_segments_by_side(side: Side) -> list[Segment]:
    return [seg for seg in SEGMENTS.values() if seg.side is side]


def get_segment_by_node_name(node_name: str) -> Optional[Segment]:
    for seg in SEGMENTS.values():
        if seg.node_name == node_name:
            return seg
    return None
