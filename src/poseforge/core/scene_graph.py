"""Host rig: a bone hierarchy with Three.js-style local transforms.

The kinematics engine treats this as an external collaborator: it looks
bones up by name, reads their world orientation/position and writes their
local orientation.  Each node keeps a local TRS transform; the cached world
matrix is refreshed by ``update_world_matrix``.  World *orientation* is
composed from local quaternions up the chain, so it is current even between
matrix refreshes.
"""

from typing import Callable, Iterator, Optional

import numpy as np

from poseforge.core.math_utils import (
    Mat4, Quat, Vec3,
    mat4_compose, mat4_identity, quat_identity, quat_inverse,
    quat_multiply, quat_normalize, vec3,
)


class SceneNode:
    """One bone.  ``world_matrix = parent.world_matrix @ local_matrix``."""

    def __init__(self, name: str = ""):
        self.name = name
        self.parent: Optional["SceneNode"] = None
        self.children: list["SceneNode"] = []

        self.position: Vec3 = vec3()
        self.quaternion: Quat = quat_identity()
        self.scale: Vec3 = vec3(1, 1, 1)

        self.local_matrix: Mat4 = mat4_identity()
        self.world_matrix: Mat4 = mat4_identity()
        self._local_stale = True

    def __repr__(self) -> str:
        return f"SceneNode({self.name!r}, children={len(self.children)})"

    # Hierarchy

    def add(self, child: "SceneNode") -> "SceneNode":
        """Attach *child*, detaching it from any previous parent."""
        if child.parent is not None:
            child.parent.remove(child)
        child.parent = self
        self.children.append(child)
        child._local_stale = True
        return self

    def remove(self, child: "SceneNode") -> "SceneNode":
        if child in self.children:
            self.children.remove(child)
            child.parent = None
        return self

    def walk(self) -> Iterator["SceneNode"]:
        """Depth-first, pre-order iteration starting at this node."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def traverse(self, callback: Callable[["SceneNode"], None]) -> None:
        for node in self.walk():
            callback(node)

    def find(self, name: str) -> Optional["SceneNode"]:
        """First node named *name* in depth-first order, including self."""
        return next((n for n in self.walk() if n.name == name), None)

    def ancestors(self) -> Iterator["SceneNode"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    # Local transform

    def set_position(self, x: float, y: float, z: float) -> "SceneNode":
        self.position = vec3(x, y, z)
        self._local_stale = True
        return self

    def set_quaternion(self, q: Quat) -> "SceneNode":
        self.quaternion = np.array(q, dtype=np.float64)
        self._local_stale = True
        return self

    def set_scale(self, x: float, y: float, z: float) -> "SceneNode":
        self.scale = vec3(x, y, z)
        self._local_stale = True
        return self

    def update_local_matrix(self) -> None:
        self.local_matrix = mat4_compose(self.position, self.quaternion, self.scale)
        self._local_stale = False

    # World transform

    def update_world_matrix(self, force: bool = False) -> None:
        """Refresh world matrices of this subtree (parent's must be current)."""
        for node in self.walk():
            if node._local_stale or force:
                node.update_local_matrix()
            if node.parent is None:
                node.world_matrix = node.local_matrix.copy()
            else:
                node.world_matrix = node.parent.world_matrix @ node.local_matrix

    def get_world_position(self) -> Vec3:
        """Translation of the cached world matrix."""
        return self.world_matrix[:3, 3].copy()

    def get_world_quaternion(self) -> Quat:
        q = self.quaternion
        for node in self.ancestors():
            q = quat_multiply(node.quaternion, q)
        return quat_normalize(q)

    def parent_world_quaternion(self) -> Quat:
        if self.parent is None:
            return quat_identity()
        return self.parent.get_world_quaternion()

    def set_world_quaternion(self, q_world: Quat) -> "SceneNode":
        """Write the local rotation that yields *q_world* under the current parent."""
        local = quat_multiply(quat_inverse(self.parent_world_quaternion()), q_world)
        return self.set_quaternion(quat_normalize(local))


class Rig(SceneNode):
    """Root of a loaded character rig."""

    def __init__(self, name: str = "rig"):
        super().__init__(name=name)

    def update(self) -> None:
        self.update_world_matrix()

    def node_index(self) -> dict[str, SceneNode]:
        """Name → node for every named node (first in depth-first order wins)."""
        index: dict[str, SceneNode] = {}
        for node in self.walk():
            if node.name:
                index.setdefault(node.name, node)
        return index
