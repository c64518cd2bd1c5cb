"""Immutable rigid-body transform (rotation + translation).

Composition follows the scene-graph convention: ``parent @ child`` maps a
point from the child frame into the parent frame, so a chain is written
outermost first (``world @ footprint_to_neck @ ...``).
"""

from __future__ import annotations

import numpy as np

from pointforge.core.math_utils import (
    Mat3, Mat4, Quat, Vec3,
    as_vec3, mat3_from_quaternion, mat3_identity, quat_from_mat3,
    quat_normalize, vec3,
)


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, dtype=np.float64)
    arr.setflags(write=False)
    return arr


class Transform:
    """A rotation matrix and a translation vector; never mutated after creation."""

    __slots__ = ("_rotation", "_translation")

    def __init__(self, rotation=None, translation=None):
        if rotation is None:
            rotation = mat3_identity()
        rotation = np.asarray(rotation, dtype=np.float64)
        if rotation.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got shape {rotation.shape}")
        self._rotation = _frozen(rotation)
        self._translation = _frozen(vec3() if translation is None else as_vec3(translation))

    # ── Constructors ──────────────────────────────────────────────────

    @classmethod
    def identity(cls) -> Transform:
        return cls()

    @classmethod
    def from_translation(cls, x: float = 0.0, y: float = 0.0, z: float = 0.0) -> Transform:
        return cls(mat3_identity(), vec3(x, y, z))

    @classmethod
    def from_quaternion(cls, q: Quat, translation=None) -> Transform:
        """Build from a quaternion [x, y, z, w]; the quaternion is normalized first."""
        q = quat_normalize(np.asarray(q, dtype=np.float64))
        return cls(mat3_from_quaternion(q), translation)

    @classmethod
    def from_matrix(cls, m: Mat4) -> Transform:
        """Build from a 4x4 homogeneous matrix."""
        m = np.asarray(m, dtype=np.float64)
        if m.shape != (4, 4):
            raise ValueError(f"Matrix must be 4x4, got shape {m.shape}")
        return cls(m[:3, :3], m[:3, 3])

    # ── Components ────────────────────────────────────────────────────

    @property
    def rotation(self) -> Mat3:
        return self._rotation.copy()

    @property
    def origin(self) -> Vec3:
        """Translation component (the frame origin in parent coordinates)."""
        return self._translation.copy()

    @property
    def quaternion(self) -> Quat:
        return quat_from_mat3(self._rotation)

    @property
    def x_axis(self) -> Vec3:
        return self._rotation[:, 0].copy()

    @property
    def y_axis(self) -> Vec3:
        return self._rotation[:, 1].copy()

    @property
    def z_axis(self) -> Vec3:
        return self._rotation[:, 2].copy()

    @property
    def matrix(self) -> Mat4:
        m = np.eye(4, dtype=np.float64)
        m[:3, :3] = self._rotation
        m[:3, 3] = self._translation
        return m

    # ── Operations ────────────────────────────────────────────────────

    def __matmul__(self, other: Transform) -> Transform:
        if not isinstance(other, Transform):
            return NotImplemented
        return Transform(
            self._rotation @ other._rotation,
            self._rotation @ other._translation + self._translation,
        )

    def inverse(self) -> Transform:
        rt = self._rotation.T
        return Transform(rt, -(rt @ self._translation))

    def transform_point(self, p: Vec3) -> Vec3:
        return self._rotation @ as_vec3(p) + self._translation

    def transform_direction(self, d: Vec3) -> Vec3:
        """Rotate a direction (ignores translation)."""
        return self._rotation @ as_vec3(d)

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self._rotation)) and np.all(np.isfinite(self._translation)))

    def allclose(self, other: Transform, atol: float = 1e-9) -> bool:
        return (
            np.allclose(self._rotation, other._rotation, atol=atol)
            and np.allclose(self._translation, other._translation, atol=atol)
        )

    def __repr__(self) -> str:
        t = self._translation
        q = self.quaternion if self.is_finite() else np.full(4, np.nan)
        return (
            f"Transform(origin=({t[0]:.4f}, {t[1]:.4f}, {t[2]:.4f}), "
            f"quat=({q[0]:.4f}, {q[1]:.4f}, {q[2]:.4f}, {q[3]:.4f}))"
        )
