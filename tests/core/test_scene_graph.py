"""Tests for the host rig scene graph."""

import numpy as np

from poseforge.core.scene_graph import SceneNode, Rig
from poseforge.core.math_utils import (
    vec3, quat_identity, quat_from_axis_angle, quat_angle_between, quat_multiply,
)


def _chain(*names: str) -> list[SceneNode]:
    nodes = [SceneNode(name=n) for n in names]
    for parent, child in zip(nodes, nodes[1:]):
        parent.add(child)
    return nodes


def test_add_and_remove():
    hip, knee = _chain("hip", "knee")
    assert knee.parent is hip and hip.children == [knee]
    hip.remove(knee)
    assert knee.parent is None and hip.children == []


def test_add_moves_child_between_parents():
    left, right, bone = SceneNode("l"), SceneNode("r"), SceneNode("bone")
    left.add(bone)
    right.add(bone)
    assert bone.parent is right
    assert left.children == []


def test_find_searches_descendants():
    root, _, tip = _chain("root", "mid", "tip")
    assert root.find("tip") is tip
    assert root.find("root") is root
    assert tip.find("root") is None


def test_walk_is_preorder_and_ancestors_go_up():
    root, mid, tip = _chain("root", "mid", "tip")
    root.add(SceneNode(name="side"))
    assert [n.name for n in root.walk()] == ["root", "mid", "tip", "side"]
    assert list(tip.ancestors()) == [mid, root]


def test_world_matrix_propagation():
    root = SceneNode(name="root")
    root.set_position(10, 0, 0)
    child = SceneNode(name="child")
    child.set_position(5, 0, 0)
    root.add(child)
    root.update_world_matrix(force=True)
    np.testing.assert_array_almost_equal(child.get_world_position(), [15, 0, 0])


def test_rotation_propagates_to_child_position():
    root = SceneNode(name="root")
    root.set_quaternion(quat_from_axis_angle(vec3(0, 0, 1), np.pi / 2))
    child = SceneNode(name="child")
    child.set_position(1, 0, 0)
    root.add(child)
    root.update_world_matrix()
    np.testing.assert_array_almost_equal(child.get_world_position(), [0, 1, 0])


def test_traverse():
    root = SceneNode(name="root")
    root.add(SceneNode(name="a"))
    root.add(SceneNode(name="b"))
    visited = []
    root.traverse(lambda n: visited.append(n.name))
    assert visited == ["root", "a", "b"]


def test_world_quaternion_is_current_without_matrix_update():
    root = SceneNode(name="root")
    child = SceneNode(name="child")
    root.add(child)
    qa = quat_from_axis_angle(vec3(1, 0, 0), 0.4)
    qb = quat_from_axis_angle(vec3(0, 1, 0), 0.3)
    root.set_quaternion(qa)
    child.set_quaternion(qb)
    assert quat_angle_between(child.get_world_quaternion(), quat_multiply(qa, qb)) < 1e-6


def test_set_world_quaternion_under_rotated_parent():
    root = SceneNode(name="root")
    root.set_quaternion(quat_from_axis_angle(vec3(0, 0, 1), 0.8))
    child = SceneNode(name="child")
    root.add(child)
    target = quat_from_axis_angle(vec3(1, 0, 0), -0.6)
    child.set_world_quaternion(target)
    assert quat_angle_between(child.get_world_quaternion(), target) < 1e-6
    # Parent untouched
    assert quat_angle_between(root.quaternion, quat_from_axis_angle(vec3(0, 0, 1), 0.8)) < 1e-6


def test_parent_world_quaternion_of_root():
    np.testing.assert_array_equal(SceneNode(name="root").parent_world_quaternion(), quat_identity())


def test_rig_node_index_first_occurrence_wins():
    rig = Rig()
    a = SceneNode(name="bone")
    b = SceneNode(name="bone")
    rig.add(a)
    a.add(b)
    index = rig.node_index()
    assert index["bone"] is a
    assert index["rig"] is rig


def test_scale_propagation():
    root = SceneNode(name="root")
    root.set_scale(2, 2, 2)
    child = SceneNode(name="child")
    child.set_position(1, 0, 0)
    root.add(child)
    root.update_world_matrix(force=True)
    np.testing.assert_array_almost_equal(child.get_world_position(), [2, 0, 0])
