"""Procedural Mixamo-style humanoid rig.

Stands in for a loaded character: the bone names and hierarchy match what
the default segment model expects, with rough adult proportions in
centimetres (Y up, character facing +Z, left side on +X).  All bones start
with identity local rotation.
"""

from typing import Iterable

from poseforge.constants import DEFAULT_RIG_PREFIX
from poseforge.core.scene_graph import Rig, SceneNode

# (bone, parent bone or None, local offset).  In limb bones "{S}" expands to
# Right/Left and the X offset is mirrored for the right side.
_AXIAL_BONES = [
    ("Hips", None, (0.0, 100.0, 0.0)),
    ("Spine", "Hips", (0.0, 10.0, 0.0)),
    ("Spine1", "Spine", (0.0, 12.0, 0.0)),
    ("Spine2", "Spine1", (0.0, 13.0, 0.0)),
    ("Neck", "Spine2", (0.0, 15.0, 0.0)),
    ("Head", "Neck", (0.0, 10.0, 0.0)),
]

_LIMB_BONES = [
    ("{S}Shoulder", "Spine2", (6.0, 10.0, 0.0)),
    ("{S}Arm", "{S}Shoulder", (12.0, 0.0, 0.0)),
    ("{S}ForeArm", "{S}Arm", (28.0, 0.0, 0.0)),
    ("{S}Hand", "{S}ForeArm", (26.0, 0.0, 0.0)),
    ("{S}HandThumb1", "{S}Hand", (3.0, -2.0, 3.0)),
    ("{S}HandIndex1", "{S}Hand", (9.0, 0.0, 2.0)),
    ("{S}HandMiddle1", "{S}Hand", (9.5, 0.0, 0.5)),
    ("{S}HandRing1", "{S}Hand", (9.0, 0.0, -1.0)),
    ("{S}HandPinky1", "{S}Hand", (8.0, 0.0, -2.5)),
    ("{S}UpLeg", "Hips", (9.0, -5.0, 0.0)),
    ("{S}Leg", "{S}UpLeg", (0.0, -42.0, 0.0)),
    ("{S}Foot", "{S}Leg", (0.0, -40.0, 0.0)),
    ("{S}ToeBase", "{S}Foot", (0.0, -6.0, 12.0)),
]


def humanoid_bone_names() -> list[str]:
    """Bone names (without prefix) in parent-before-child order."""
    names = [bone for bone, _, _ in _AXIAL_BONES]
    for side in ("Right", "Left"):
        names.extend(bone.replace("{S}", side) for bone, _, _ in _LIMB_BONES)
    return names


def build_humanoid_rig(prefix: str = DEFAULT_RIG_PREFIX, omit: Iterable[str] = ()) -> Rig:
    """Build the rig.  Bones named in *omit* (unprefixed) and their subtrees are left out."""
    skip = set(omit)
    rig = Rig(name="humanoid")
    nodes: dict[str, SceneNode] = {}

    def _add(bone: str, parent: str, offset: tuple[float, float, float]):
        if bone in skip:
            return
        parent_node = rig if parent is None else nodes.get(parent)
        if parent_node is None:
            return
        node = SceneNode(name=f"{prefix}{bone}")
        node.set_position(*offset)
        parent_node.add(node)
        nodes[bone] = node

    for bone, parent, offset in _AXIAL_BONES:
        _add(bone, parent, offset)
    for side, sign in (("Right", -1.0), ("Left", 1.0)):
        for bone, parent, (x, y, z) in _LIMB_BONES:
            _add(bone.replace("{S}", side), parent.replace("{S}", side), (sign * x, y, z))

    rig.update()
    return rig
