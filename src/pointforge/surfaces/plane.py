"""Infinite plane surfaces."""

from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np

from pointforge.constants import NORMALIZE_EPSILON, PARALLEL_EPSILON
from pointforge.core.math_utils import Vec3, as_vec3, mat3_identity, normalize, vec3
from pointforge.core.transform import Transform
from pointforge.surfaces.surface import SurfaceDelegate

logger = logging.getLogger(__name__)


class Plane:
    """Plane through ``point`` with unit ``normal``.

    The ray travels along its X axis from its origin.  No hit is reported
    for rays parallel to the plane or for hits behind the ray origin.  The
    returned pose carries the hit point and an identity rotation.
    """

    def __init__(self, point=None, normal=None):
        self.delegate: Optional[SurfaceDelegate] = None
        self._point = vec3() if point is None else as_vec3(point)
        self._normal = self._unit_normal(vec3(0, 0, 1) if normal is None else normal)

    @staticmethod
    def _unit_normal(normal) -> Vec3:
        n = as_vec3(normal)
        if np.linalg.norm(n) < NORMALIZE_EPSILON:
            raise ValueError("Plane normal must be non-zero")
        return normalize(n)

    @property
    def point(self) -> Vec3:
        return self._point.copy()

    @point.setter
    def point(self, value) -> None:
        self._point = as_vec3(value)
        self._notify("point", self.point)

    @property
    def normal(self) -> Vec3:
        return self._normal.copy()

    @normal.setter
    def normal(self, value) -> None:
        self._normal = self._unit_normal(value)
        self._notify("normal", self.normal)

    def _notify(self, name: str, value: Any) -> None:
        if self.delegate is not None:
            self.delegate.on_parameter_changed(name, value)

    def intersect(self, ray: Transform) -> Optional[Transform]:
        origin = ray.origin
        direction = ray.x_axis
        denom = float(np.dot(direction, self._normal))
        if abs(denom) < PARALLEL_EPSILON:
            logger.debug("Ray parallel to plane")
            return None
        t = float(np.dot(self._point - origin, self._normal)) / denom
        if t < 0.0:
            logger.debug("Plane lies behind the ray (t=%.4f)", t)
            return None
        return Transform(mat3_identity(), origin + t * direction)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(point={self._point.tolist()}, normal={self._normal.tolist()})"


class HorizontalPlane(Plane):
    """Plane with a fixed +Z normal, e.g. the floor or a table top."""

    def __init__(self, point=None):
        super().__init__(point=point, normal=vec3(0, 0, 1))

    @Plane.normal.setter
    def normal(self, value) -> None:
        raise AttributeError("HorizontalPlane normal is fixed to +Z")

    def __repr__(self) -> str:
        return f"HorizontalPlane(point={self._point.tolist()})"


def surface_from_config(config: dict[str, Any]):
    """Build a plane surface from a config mapping.

    ``{"type": "horizontal_plane", "point": [x, y, z]}`` or
    ``{"type": "plane", "point": [...], "normal": [...]}``.
    """
    kind = config.get("type", "horizontal_plane")
    if kind == "horizontal_plane":
        return HorizontalPlane(point=config.get("point"))
    if kind == "plane":
        return Plane(point=config.get("point"), normal=config.get("normal"))
    raise ValueError(f"Unknown surface type: {kind!r}")
