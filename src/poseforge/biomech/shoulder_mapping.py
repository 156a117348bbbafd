"""Clinical interpretation of shoulder coordinates.

Turns the generalized coordinates of the glenohumeral (GH) and
scapulothoracic (ST) joints into the angles a clinician reads, in degrees:

GH
    elevation (0 = arm at side), plane of elevation (-90 adduction,
    0 scapular plane, +90 abduction/frontal) and axial rotation
    (negative = internal, positive = external).
ST
    anterior/posterior tilt, internal/external rotation and upward rotation.

Normal scapulohumeral rhythm is about 2:1 GH:ST; 1.5 to 2.5 counts as normal.
"""

import math
from dataclasses import dataclass, field
from typing import Optional

from poseforge.constants import RAD_TO_DEG

# Plane-of-elevation class boundaries (degrees)
_PLANE_ADDUCTION = -30.0
_PLANE_ABDUCTION = 30.0

NORMAL_RHYTHM_RANGE = (1.5, 2.5)


@dataclass
class ClinicalAngles:
    joint_id: str
    angles: dict[str, float]
    metrics: dict[str, float] = field(default_factory=dict)


@dataclass
class RhythmMetrics:
    ratio: float
    is_normal: bool
    total_elevation: float
    gh_contribution: float  # percent
    st_contribution: float  # percent


def _plane_code(plane_deg: float) -> int:
    if plane_deg < _PLANE_ADDUCTION:
        return -1
    if plane_deg < _PLANE_ABDUCTION:
        return 0
    return 1


def classify_elevation_plane(plane_deg: float) -> str:
    code = _plane_code(plane_deg)
    if code < 0:
        return "Adduction"
    if code == 0:
        return "Scapular Plane"
    return "Abduction/Frontal"


def gh_to_clinical(rotation: float, plane: float, elevation: float) -> ClinicalAngles:
    """GH coordinates (radians) to clinical angles (degrees)."""
    elevation_deg = elevation * RAD_TO_DEG
    plane_deg = plane * RAD_TO_DEG
    return ClinicalAngles(
        joint_id="gh",
        angles={
            "elevation": elevation_deg,
            "plane": plane_deg,
            "rotation": rotation * RAD_TO_DEG,
        },
        metrics={
            "total_elevation": elevation_deg,
            "plane_classification": float(_plane_code(plane_deg)),
        },
    )


def st_to_clinical(tilt: float, rotation: float, upward: float) -> ClinicalAngles:
    """ST coordinates (radians) to clinical angles (degrees)."""
    return ClinicalAngles(
        joint_id="st",
        angles={
            "tilt": tilt * RAD_TO_DEG,
            "internal_rotation": rotation * RAD_TO_DEG,
            "upward_rotation": upward * RAD_TO_DEG,
        },
        metrics={
            "total_st_motion": math.sqrt(tilt * tilt + rotation * rotation + upward * upward) * RAD_TO_DEG,
        },
    )


def compute_scapulohumeral_rhythm(gh_elevation: float, st_upward_rotation: float) -> RhythmMetrics:
    """Rhythm metrics from GH elevation and ST upward rotation (degrees)."""
    total = gh_elevation + st_upward_rotation
    gh_pct = gh_elevation / total * 100.0 if total > 0 else 0.0
    st_pct = st_upward_rotation / total * 100.0 if total > 0 else 0.0
    ratio = gh_elevation / st_upward_rotation if st_upward_rotation != 0 else 0.0
    lo, hi = NORMAL_RHYTHM_RANGE
    return RhythmMetrics(
        ratio=ratio,
        is_normal=lo <= ratio <= hi,
        total_elevation=total,
        gh_contribution=gh_pct,
        st_contribution=st_pct,
    )


def expected_st_upward_rotation(gh_elevation: float) -> float:
    """ST upward rotation expected at a 2:1 rhythm (degrees)."""
    return gh_elevation / 2.0


def is_safe_shoulder_rom(
    gh_elevation: float, gh_rotation: float, gh_plane: float,
) -> tuple[bool, list[str]]:
    """Flag shoulder positions that are risky to hold (degrees)."""
    warnings = []
    if gh_elevation > 170:
        warnings.append("Excessive elevation (>170°)")
    if gh_elevation < -45:
        warnings.append("Excessive extension (<-45°)")
    if gh_elevation > 60 and gh_rotation < -45:
        warnings.append("Internal rotation with elevated arm (impingement risk)")
    if gh_elevation > 90 and gh_plane < -30:
        warnings.append("High elevation in adduction (AC joint stress)")
    return not warnings, warnings


def describe_shoulder_position(gh_elevation: float, gh_plane: float, gh_rotation: float) -> str:
    if abs(gh_elevation) < 15:
        text = "Arm at side"
    elif gh_elevation < 0:
        text = "Extension"
    elif gh_elevation < 60:
        text = "Low elevation"
    elif gh_elevation < 120:
        text = "Mid-range elevation"
    else:
        text = "High elevation"

    if abs(gh_elevation) >= 15:
        if abs(gh_plane) < 30:
            text += " in scapular plane"
        elif gh_plane >= 30:
            text += " in abduction/frontal plane"
        else:
            text += " in adduction"

    if abs(gh_rotation) > 20:
        text += ", externally rotated" if gh_rotation > 0 else ", internally rotated"
    return text


def shoulder_clinical_angles(state, side: str = "right") -> Optional[tuple[ClinicalAngles, ClinicalAngles]]:
    """Clinical (GH, ST) angles for one side from a BiomechState snapshot.

    GH elevation is the abduction coordinate and the plane is the flexion
    coordinate.  None until both joints have been measured.
    """
    s = side[0]
    gh = state.get_joint_state(f"gh_{side}")
    st = state.get_joint_state(f"st_{side}")
    if gh is None or st is None:
        return None
    return (
        gh_to_clinical(
            gh.value(f"gh_{s}_rotation"),
            gh.value(f"gh_{s}_flexion"),
            gh.value(f"gh_{s}_abduction"),
        ),
        st_to_clinical(
            st.value(f"st_{s}_tilt"),
            st.value(f"st_{s}_rotation"),
            st.value(f"st_{s}_upward"),
        ),
    )
