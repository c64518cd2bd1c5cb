"""NumPy-backed math utilities: Vec3, Quaternion, Mat3 operations.

Vectors are plain numpy arrays; quaternions are [x, y, z, w] arrays.
Rotation matrices are 3x3 numpy arrays acting on column vectors.
"""

import numpy as np
from numpy.typing import NDArray

from pointforge.constants import NORMALIZE_EPSILON

# Type aliases
Vec3 = NDArray[np.float64]
Mat3 = NDArray[np.float64]
Mat4 = NDArray[np.float64]
Quat = NDArray[np.float64]  # [x, y, z, w]


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> Vec3:
    return np.array([x, y, z], dtype=np.float64)


def as_vec3(v) -> Vec3:
    """Coerce a sequence of three numbers to a float64 vector."""
    arr = np.asarray(v, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {arr.shape}")
    return arr.copy()


def mat3_identity() -> Mat3:
    return np.eye(3, dtype=np.float64)


def mat3_rotation_z(angle_rad: float) -> Mat3:
    c, s = np.cos(angle_rad), np.sin(angle_rad)
    m = np.eye(3, dtype=np.float64)
    m[0, 0] = c
    m[0, 1] = -s
    m[1, 0] = s
    m[1, 1] = c
    return m


def mat3_from_quaternion(q: Quat) -> Mat3:
    """Convert quaternion [x,y,z,w] to 3x3 rotation matrix."""
    x, y, z, w = q
    m = np.eye(3, dtype=np.float64)
    m[0, 0] = 1 - 2 * (y * y + z * z)
    m[0, 1] = 2 * (x * y - z * w)
    m[0, 2] = 2 * (x * z + y * w)
    m[1, 0] = 2 * (x * y + z * w)
    m[1, 1] = 1 - 2 * (x * x + z * z)
    m[1, 2] = 2 * (y * z - x * w)
    m[2, 0] = 2 * (x * z - y * w)
    m[2, 1] = 2 * (y * z + x * w)
    m[2, 2] = 1 - 2 * (x * x + y * y)
    return m


def quat_from_mat3(r: Mat3) -> Quat:
    """Convert a 3x3 rotation matrix to a unit quaternion [x, y, z, w].

    Shepperd's method: branch on the largest diagonal term for stability.
    """
    trace = r[0, 0] + r[1, 1] + r[2, 2]
    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        q = np.array([
            (r[2, 1] - r[1, 2]) * s,
            (r[0, 2] - r[2, 0]) * s,
            (r[1, 0] - r[0, 1]) * s,
            0.25 / s,
        ])
    elif r[0, 0] > r[1, 1] and r[0, 0] > r[2, 2]:
        s = 2.0 * np.sqrt(1.0 + r[0, 0] - r[1, 1] - r[2, 2])
        q = np.array([
            0.25 * s,
            (r[0, 1] + r[1, 0]) / s,
            (r[0, 2] + r[2, 0]) / s,
            (r[2, 1] - r[1, 2]) / s,
        ])
    elif r[1, 1] > r[2, 2]:
        s = 2.0 * np.sqrt(1.0 + r[1, 1] - r[0, 0] - r[2, 2])
        q = np.array([
            (r[0, 1] + r[1, 0]) / s,
            0.25 * s,
            (r[1, 2] + r[2, 1]) / s,
            (r[0, 2] - r[2, 0]) / s,
        ])
    else:
        s = 2.0 * np.sqrt(1.0 + r[2, 2] - r[0, 0] - r[1, 1])
        q = np.array([
            (r[0, 2] + r[2, 0]) / s,
            (r[1, 2] + r[2, 1]) / s,
            0.25 * s,
            (r[1, 0] - r[0, 1]) / s,
        ])
    return quat_normalize(q.astype(np.float64))


# Quaternion operations

def quat_identity() -> Quat:
    return np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)


def quat_from_axis_angle(axis: Vec3, angle: float) -> Quat:
    """Create quaternion from axis-angle."""
    half = angle / 2
    s = np.sin(half)
    a = normalize(axis)
    return np.array([a[0] * s, a[1] * s, a[2] * s, np.cos(half)], dtype=np.float64)


def quat_multiply(a: Quat, b: Quat) -> Quat:
    """Multiply two quaternions (a * b)."""
    ax, ay, az, aw = a
    bx, by, bz, bw = b
    return np.array([
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
        aw * bw - ax * bx - ay * by - az * bz,
    ], dtype=np.float64)


def quat_normalize(q: Quat) -> Quat:
    n = np.linalg.norm(q)
    if n < NORMALIZE_EPSILON:
        return quat_identity()
    return q / n


def quat_rotate_vec3(q: Quat, v: Vec3) -> Vec3:
    """Rotate a vector by a quaternion."""
    qv = q[:3]
    w = q[3]
    t = 2.0 * np.cross(qv, v)
    return v + w * t + np.cross(qv, t)


# Vector operations

def normalize(v: Vec3) -> Vec3:
    n = np.linalg.norm(v)
    if n < NORMALIZE_EPSILON:
        return np.zeros_like(v)
    return v / n


def is_finite(*arrays) -> bool:
    """True when every element of every array is finite."""
    return all(np.all(np.isfinite(a)) for a in arrays)
