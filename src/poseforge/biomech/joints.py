"""Joint definitions.

Every joint of the default humanoid model, declared in evaluation order.
Bilateral joints are built from one template per side so left and right can
never drift apart; the few places where the sides genuinely differ (sign
conventions) are explicit arguments.

Shoulder complex: ST (thorax → scapula) and GH (scapula → humerus) are two
separate 3-DOF joints, so scapular and humeral motion can be reported and
coupled independently.

Sign conventions (``invert``) are pinned here and may be overridden from
``assets/config/biomech/coordinate_overrides.json``; nothing about a
coordinate's clinical sign is inferred at runtime.
"""

import logging
from dataclasses import replace
from typing import Any, Optional

from poseforge.constants import DEFAULT_RIG_PREFIX, OVERRIDES_CONFIG
from poseforge.core.config_loader import expand_bilateral, load_biomech_config
from poseforge.core.math_utils import deg_to_rad
from poseforge.biomech.segments import build_segments
from poseforge.biomech.types import (
    Axis, BiomechModel, Coordinate, Joint, JointKind, RotationOrder, Side,
)

logger = logging.getLogger(__name__)


def _coord(
    joint_id: str, coord_id: str, name: str, axis: str, index: int,
    lo_deg: float, hi_deg: float, **kwargs: Any,
) -> Coordinate:
    return Coordinate(
        id=coord_id,
        joint_id=joint_id,
        display_name=name,
        axis=Axis(axis),
        index=index,
        range_min=deg_to_rad(lo_deg),
        range_max=deg_to_rad(hi_deg),
        **kwargs,
    )


def _axial_joint(
    joint_id: str, name: str, parent: str, child: str, stem: str, label: str,
    flex: tuple[float, float], bend: tuple[float, float], rot: tuple[float, float],
) -> Joint:
    """Spine/neck/head level: XYZ = flexion, axial rotation, lateral bending."""
    return Joint(
        id=joint_id, display_name=name,
        parent_segment=parent, child_segment=child,
        kind=JointKind.BALL, order=RotationOrder.XYZ, side=Side.CENTER,
        coordinates=(
            _coord(joint_id, f"{stem}_flexion", f"{label} Flexion/Extension", "X", 0, *flex),
            _coord(joint_id, f"{stem}_bending", f"{label} Lateral Bending", "Z", 2, *bend),
            _coord(joint_id, f"{stem}_rotation", f"{label} Axial Rotation", "Y", 1, *rot),
        ),
    )


def _axial_joints() -> list[Joint]:
    pelvis = Joint(
        id="pelvis", display_name="Pelvis (Global)",
        parent_segment="ground", child_segment="pelvis",
        kind=JointKind.BALL, order=RotationOrder.YXZ, side=Side.CENTER,
        notes="Yaw first so heading never couples into tilt/list; tilt near "
              "±90° is outside any standing posture.",
        coordinates=(
            _coord("pelvis", "pelvis_rotation", "Pelvic Rotation", "Y", 0, -180, 180, clamped=False),
            _coord("pelvis", "pelvis_tilt", "Pelvic Tilt", "X", 1, -45, 45, clamped=False),
            _coord("pelvis", "pelvis_list", "Pelvic List (Obliquity)", "Z", 2, -45, 45, clamped=False),
        ),
    )
    return [
        pelvis,
        _axial_joint("lumbar_spine", "Lumbar Spine", "pelvis", "lumbar",
                     "lumbar", "Lumbar", (-30, 60), (-25, 25), (-10, 10)),
        _axial_joint("thoracic_spine", "Lower Thoracic Spine", "lumbar", "thoracic_lower",
                     "thoracic", "Lower Thoracic", (-20, 45), (-25, 25), (-35, 35)),
        _axial_joint("thoracic_upper_spine", "Upper Thoracic Spine", "thoracic_lower", "thorax",
                     "thoracic_upper", "Upper Thoracic", (-10, 20), (-15, 15), (-20, 20)),
        _axial_joint("cervical_spine", "Lower Cervical Spine", "thorax", "neck",
                     "cervical", "Neck", (-40, 40), (-35, 35), (-45, 45)),
        _axial_joint("head", "Upper Cervical (Head)", "neck", "head",
                     "head", "Head", (-25, 25), (-10, 10), (-45, 45)),
    ]


def _upper_limb_joints(side: str) -> list[Joint]:
    s = side[0]
    label = side.capitalize()
    side_enum = Side(side)

    st = f"st_{side}"
    gh = f"gh_{side}"
    elbow = f"elbow_{side}"
    wrist = f"wrist_{side}"
    joints = [
        Joint(
            id=st, display_name=f"{label} Scapulothoracic",
            parent_segment="thorax", child_segment=f"scapula_{side}",
            kind=JointKind.BALL, order=RotationOrder.XYZ, side=side_enum,
            coordinates=(
                _coord(st, f"st_{s}_tilt", "ST Tilt (Anterior/Posterior)", "X", 0, -20, 20),
                _coord(st, f"st_{s}_rotation", "ST Internal/External Rotation", "Y", 1, -30, 30),
                # Same rotation sense as GH abduction so the two can be summed
                _coord(st, f"st_{s}_upward", "ST Upward/Downward Rotation", "Z", 2, -10, 60,
                       invert=True),
            ),
        ),
        Joint(
            id=gh, display_name=f"{label} Glenohumeral",
            parent_segment=f"scapula_{side}", child_segment=f"humerus_{side}",
            kind=JointKind.BALL, order=RotationOrder.ZXY, side=side_enum,
            notes="ZXY: abduction first keeps the arm-at-side rest pose away "
                  "from the middle-angle singularity.",
            coordinates=(
                _coord(gh, f"gh_{s}_abduction", "GH Abduction/Adduction", "Z", 0, -90, 90,
                       invert=True),
                _coord(gh, f"gh_{s}_flexion", "GH Flexion/Extension", "Y", 2, -40, 160),
                _coord(gh, f"gh_{s}_rotation", "GH Axial Rotation (IR/ER)", "X", 1, -90, 90),
            ),
        ),
        Joint(
            id=elbow, display_name=f"{label} Elbow",
            parent_segment=f"humerus_{side}", child_segment=f"radius_{side}",
            kind=JointKind.UNIVERSAL, order=RotationOrder.ZXY, side=side_enum,
            notes="Flexion about the bone's Z axis; the X slot carries no DOF.",
            coordinates=(
                _coord(elbow, f"elbow_{s}_flexion", "Elbow Flexion", "Z", 0, 0, 145),
                _coord(elbow, f"elbow_{s}_pronation", "Forearm Pronation/Supination", "Y", 2, -90, 90),
            ),
        ),
        Joint(
            id=wrist, display_name=f"{label} Wrist",
            parent_segment=f"radius_{side}", child_segment=f"hand_{side}",
            kind=JointKind.BALL, order=RotationOrder.XYZ, side=side_enum,
            coordinates=(
                _coord(wrist, f"wrist_{s}_flexion", "Wrist Flexion/Extension", "X", 0, -70, 80),
                _coord(wrist, f"wrist_{s}_deviation", "Radial/Ulnar Deviation", "Z", 2, -20, 30),
                _coord(wrist, f"wrist_{s}_rotation", "Wrist Rotation (Passive)", "Y", 1, -10, 10),
            ),
        ),
    ]

    # (finger, joint suffix, display, flexion range, abduction range)
    fingers = [
        ("thumb", "cmc", "Thumb CMC", (-20, 50), (-20, 40)),
        ("index", "mcp", "Index MCP", (-10, 90), (-15, 15)),
        ("middle", "mcp", "Middle MCP", (-10, 90), (-10, 10)),
        ("ring", "mcp", "Ring MCP", (-10, 90), (-10, 10)),
        ("pinky", "mcp", "Pinky MCP", (-10, 90), (-15, 15)),
    ]
    for finger, suffix, name, flex, abd in fingers:
        jid = f"{finger}_{side}_{suffix}"
        joints.append(Joint(
            id=jid, display_name=f"{label} {name}",
            parent_segment=f"hand_{side}", child_segment=f"{finger}_prox_{side}",
            kind=JointKind.UNIVERSAL, order=RotationOrder.XYZ, side=side_enum,
            coordinates=(
                _coord(jid, f"{finger}_{s}_flex", "Flexion", "X", 0, *flex),
                _coord(jid, f"{finger}_{s}_abd", "Abduction", "Z", 2, *abd),
            ),
        ))
    return joints


def _lower_limb_joints(side: str) -> list[Joint]:
    s = side[0]
    label = side.capitalize()
    side_enum = Side(side)

    hip = f"hip_{side}"
    knee = f"knee_{side}"
    ankle = f"ankle_{side}"
    mtp = f"mtp_{side}"
    return [
        Joint(
            id=hip, display_name=f"{label} Hip",
            parent_segment="pelvis", child_segment=f"femur_{side}",
            kind=JointKind.BALL, order=RotationOrder.XZY, side=side_enum,
            coordinates=(
                _coord(hip, f"hip_{s}_flexion", "Hip Flexion/Extension", "X", 0, -30, 120),
                _coord(hip, f"hip_{s}_adduction", "Hip Adduction/Abduction", "Z", 1, -30, 45,
                       invert=(side == "right")),
                _coord(hip, f"hip_{s}_rotation", "Hip Internal/External Rotation", "Y", 2, -45, 45),
            ),
        ),
        Joint(
            id=knee, display_name=f"{label} Knee",
            parent_segment=f"femur_{side}", child_segment=f"tibia_{side}",
            kind=JointKind.BALL, order=RotationOrder.XZY, side=side_enum,
            notes="Grood & Suntay style: flexion first, varus/valgus, then tibial rotation.",
            coordinates=(
                _coord(knee, f"knee_{s}_flexion", "Knee Flexion", "X", 0, -140, 10),
                _coord(knee, f"knee_{s}_varus", "Knee Varus/Valgus", "Z", 1, -10, 10),
                _coord(knee, f"knee_{s}_tibial_rotation", "Tibial Internal/External Rotation",
                       "Y", 2, -30, 30),
            ),
        ),
        Joint(
            id=ankle, display_name=f"{label} Ankle Complex",
            parent_segment=f"tibia_{side}", child_segment=f"foot_{side}",
            kind=JointKind.BALL, order=RotationOrder.XYZ, side=side_enum,
            coordinates=(
                _coord(ankle, f"ankle_{s}_flexion", "Talocrural Dorsi/Plantarflexion", "X", 0, -50, 20),
                _coord(ankle, f"ankle_{s}_inversion", "Subtalar Inversion/Eversion", "Z", 2, -35, 15),
                _coord(ankle, f"ankle_{s}_rotation", "Foot Int/Ext Rotation", "Y", 1, -20, 20),
            ),
        ),
        Joint(
            id=mtp, display_name=f"{label} Toes (MTP)",
            parent_segment=f"foot_{side}", child_segment=f"toes_{side}",
            kind=JointKind.HINGE, order=RotationOrder.XYZ, side=side_enum,
            coordinates=(
                _coord(mtp, f"mtp_{s}_flexion", "Toe Flexion/Extension", "X", 0, -45, 90),
            ),
        ),
    ]


def build_joints() -> dict[str, Joint]:
    joints = _axial_joints()
    for side in ("right", "left"):
        joints.extend(_upper_limb_joints(side))
    for side in ("right", "left"):
        joints.extend(_lower_limb_joints(side))
    return {j.id: j for j in joints}


JOINTS: dict[str, Joint] = build_joints()


def get_joint(joint_id: str) -> Optional[Joint]:
    return JOINTS.get(joint_id)


def get_all_joints() -> list[Joint]:
    return list(JOINTS.values())


def get_child_joints(segment_id: str) -> list[Joint]:
    """Joints where *segment_id* is the parent."""
    return [j for j in JOINTS.values() if j.parent_segment == segment_id]


def get_parent_joint(segment_id: str) -> Optional[Joint]:
    """The joint where *segment_id* is the child."""
    for j in JOINTS.values():
        if j.child_segment == segment_id:
            return j
    return None


def get_shoulder_joints() -> list[Joint]:
    return [JOINTS["st_right"], JOINTS["gh_right"], JOINTS["st_left"], JOINTS["gh_left"]]


def default_model(prefix: str = DEFAULT_RIG_PREFIX) -> BiomechModel:
    """The built-in humanoid model for a Mixamo-style rig."""
    return BiomechModel(
        id="humanoid",
        segments=build_segments(prefix),
        joints=build_joints(),
        root_segment="pelvis",
    )


_OVERRIDE_FIELDS = ("invert", "locked", "clamped")


def apply_coordinate_overrides(
    model: BiomechModel, overrides: dict[str, dict[str, Any]],
) -> BiomechModel:
    """Return a copy of *model* with per-coordinate overrides applied.

    Keys are coordinate ids and may use the ``{s}`` (r/l) bilateral
    template.  Supported fields: ``invert``, ``locked``, ``clamped``,
    ``min_deg``, ``max_deg``, ``neutral_deg``.
    """
    expanded: dict[str, dict[str, Any]] = {}
    for key, fields_ in overrides.items():
        for _, coord_id in expand_bilateral(key):
            expanded[coord_id] = fields_

    joints: dict[str, Joint] = {}
    applied: set[str] = set()
    for jid, joint in model.joints.items():
        coords = []
        for c in joint.coordinates:
            fields_ = expanded.get(c.id)
            if fields_ is None:
                coords.append(c)
                continue
            changes: dict[str, Any] = {k: bool(fields_[k]) for k in _OVERRIDE_FIELDS if k in fields_}
            if "min_deg" in fields_:
                changes["range_min"] = deg_to_rad(float(fields_["min_deg"]))
            if "max_deg" in fields_:
                changes["range_max"] = deg_to_rad(float(fields_["max_deg"]))
            if "neutral_deg" in fields_:
                changes["neutral"] = deg_to_rad(float(fields_["neutral_deg"]))
            coords.append(replace(c, **changes))
            applied.add(c.id)
        joints[jid] = replace(joint, coordinates=tuple(coords)) if coords != list(joint.coordinates) else joint

    for coord_id in expanded.keys() - applied:
        logger.warning("Coordinate override for unknown coordinate %s ignored", coord_id)

    return BiomechModel(
        id=model.id, segments=model.segments, joints=joints, root_segment=model.root_segment,
    )


def load_model(prefix: str = DEFAULT_RIG_PREFIX) -> BiomechModel:
    """Default model with coordinate overrides from config.  Graceful on failure."""
    model = default_model(prefix)
    try:
        data = load_biomech_config(OVERRIDES_CONFIG)
    except (FileNotFoundError, ValueError) as e:
        logger.warning("Coordinate overrides config not found, using built-in model: %s", e)
        return model
    return apply_coordinate_overrides(model, data.get("coordinates", {}))
