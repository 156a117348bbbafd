"""Vector, quaternion and matrix helpers on plain numpy arrays.

Quaternions are ``[x, y, z, w]``.  4x4 matrices act on column vectors and
carry translation in the last column.

Euler angles come in two flavours:

* ``quat_from_euler(x, y, z, order)`` takes one angle per *axis* and applies
  them in the given body-fixed order (Three.js ``Euler`` semantics).
* ``quat_from_euler_sequence(angles, order)`` / ``quat_to_euler_sequence``
  take and return angles by *position* in the order, so ``angles[0]`` is the
  rotation about ``order[0]``.  Joint coordinates use this form.

Both are intrinsic (body-fixed) rotations, e.g. ``"ZXY"`` means
``R = Rz(a0) @ Rx(a1) @ Ry(a2)``.
"""

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation

Vec3 = NDArray[np.float64]
Mat4 = NDArray[np.float64]
Quat = NDArray[np.float64]  # [x, y, z, w]

EULER_ORDERS = ("XYZ", "XZY", "YXZ", "YZX", "ZXY", "ZYX")


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> Vec3:
    return np.array([x, y, z], dtype=np.float64)


def mat4_identity() -> Mat4:
    return np.eye(4, dtype=np.float64)


def mat4_from_quaternion(q: Quat) -> Mat4:
    m = mat4_identity()
    m[:3, :3] = Rotation.from_quat(quat_normalize(np.asarray(q, dtype=np.float64))).as_matrix()
    return m


def mat4_compose(position: Vec3, quaternion: Quat, scale: Vec3) -> Mat4:
    """Translation @ rotation @ scale."""
    m = mat4_from_quaternion(quaternion)
    m[:3, :3] *= np.asarray(scale, dtype=np.float64)  # scales columns
    m[:3, 3] = position
    return m


def transform_point(m: Mat4, p: Vec3) -> Vec3:
    return m[:3, :3] @ np.asarray(p, dtype=np.float64) + m[:3, 3]


# Quaternions

def quat_identity() -> Quat:
    return np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)


def quat_from_axis_angle(axis: Vec3, angle: float) -> Quat:
    xyz = normalize(np.asarray(axis, dtype=np.float64)) * np.sin(angle * 0.5)
    return np.append(xyz, np.cos(angle * 0.5))


def quat_multiply(a: Quat, b: Quat) -> Quat:
    """Hamilton product ``a * b`` (apply b, then a)."""
    av, aw = np.asarray(a[:3], dtype=np.float64), float(a[3])
    bv, bw = np.asarray(b[:3], dtype=np.float64), float(b[3])
    xyz = aw * bv + bw * av + np.cross(av, bv)
    return np.append(xyz, aw * bw - float(np.dot(av, bv)))


def quat_conjugate(q: Quat) -> Quat:
    return np.asarray(q, dtype=np.float64) * np.array([-1.0, -1.0, -1.0, 1.0])


def quat_inverse(q: Quat) -> Quat:
    """Inverse of a (not necessarily unit) quaternion."""
    n2 = float(np.dot(q, q))
    if n2 < 1e-20:
        return quat_identity()
    return quat_conjugate(q) / n2


def quat_normalize(q: Quat) -> Quat:
    n = np.linalg.norm(q)
    if n < 1e-10:
        return quat_identity()
    return q / n


def quat_angle(q: Quat) -> float:
    """Rotation angle (radians, 0..pi) encoded by a unit quaternion."""
    w = abs(float(quat_normalize(q)[3]))
    return 2.0 * float(np.arccos(min(1.0, w)))


def quat_angle_between(a: Quat, b: Quat) -> float:
    """Smallest rotation angle taking orientation *a* to *b*."""
    return quat_angle(quat_multiply(quat_inverse(a), b))


def quat_rotate_vec3(q: Quat, v: Vec3) -> Vec3:
    u = np.asarray(q[:3], dtype=np.float64)
    t = 2.0 * np.cross(u, v)
    return v + q[3] * t + np.cross(u, t)


def _check_order(order: str) -> str:
    if order not in EULER_ORDERS:
        raise ValueError(f"Unsupported Euler order: {order}")
    return order


def quat_from_euler_sequence(angles, order: str = "XYZ") -> Quat:
    """Quaternion from three angles given in rotation-order position."""
    return Rotation.from_euler(_check_order(order), np.asarray(angles, dtype=np.float64)).as_quat()


def quat_to_euler_sequence(q: Quat, order: str = "XYZ") -> tuple[float, float, float]:
    """Decompose a quaternion into three angles by rotation-order position.

    The first and last angles lie in [-pi, pi], the middle one in
    [-pi/2, pi/2].  Near the middle-angle singularity scipy warns and pins
    the last angle to zero; callers pick orders that keep their working
    range away from it.
    """
    _check_order(order)
    a = Rotation.from_quat(quat_normalize(np.asarray(q, dtype=np.float64))).as_euler(order)
    return float(a[0]), float(a[1]), float(a[2])


def quat_from_euler(x: float, y: float, z: float, order: str = "XYZ") -> Quat:
    """Per-axis Euler angles (radians) applied in *order*."""
    by_axis = {"X": x, "Y": y, "Z": z}
    return quat_from_euler_sequence([by_axis[c] for c in _check_order(order)], order)


# Scalars and vectors

def normalize(v: Vec3) -> Vec3:
    n = np.linalg.norm(v)
    return v / n if n >= 1e-10 else np.zeros_like(v)


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def deg_to_rad(degrees: float) -> float:
    return float(np.deg2rad(degrees))


def rad_to_deg(radians: float) -> float:
    return float(np.rad2deg(radians))
