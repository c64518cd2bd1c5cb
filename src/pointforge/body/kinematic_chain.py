"""Footprint-to-fingertip kinematic chain.

Five links, composed in this order for the fingertip::

    footprint_to_neck @ neck_to_shoulder @ shoulder_to_wrist @ wrist_to_finger

and for the eyes::

    footprint_to_neck @ neck_to_eyes

Only ``neck_to_shoulder`` rotates: it takes the full rotation of the latest
orientation sample, so the whole arm is steered rigidly by the IMU.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np

from pointforge.body.kinematic_profile import BodyMeasurements
from pointforge.constants import LEFT_HAND_SIGN, RIGHT_HAND_SIGN
from pointforge.core.math_utils import mat3_identity, vec3
from pointforge.core.transform import Transform


class Handedness(Enum):
    IGNORE = "ignore"
    LEFT_HAND = "left_hand"
    RIGHT_HAND = "right_hand"

    @property
    def sign(self) -> float:
        """Sign of the lateral shoulder offset."""
        if self is Handedness.LEFT_HAND:
            return LEFT_HAND_SIGN
        if self is Handedness.RIGHT_HAND:
            return RIGHT_HAND_SIGN
        return 0.0

    @classmethod
    def coerce(cls, value) -> "Handedness":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(h.value for h in cls)
            raise ValueError(f"Unknown handedness {value!r} (expected one of: {valid})") from None


@dataclass(frozen=True)
class KinematicChain:
    footprint_to_neck: Transform
    neck_to_eyes: Transform
    neck_to_shoulder: Transform
    shoulder_to_wrist: Transform
    wrist_to_finger: Transform

    def finger_pose(self, world: Transform) -> Transform:
        return (world @ self.footprint_to_neck @ self.neck_to_shoulder
                @ self.shoulder_to_wrist @ self.wrist_to_finger)

    def eyes_pose(self, world: Transform) -> Transform:
        return world @ self.footprint_to_neck @ self.neck_to_eyes


def _rotation_of(orientation) -> np.ndarray:
    if orientation is None:
        return mat3_identity()
    if isinstance(orientation, Transform):
        return orientation.rotation
    rot = np.asarray(orientation, dtype=np.float64)
    if rot.shape != (3, 3):
        raise ValueError(f"Orientation must be a Transform or 3x3 matrix, got shape {rot.shape}")
    return rot


def build_chain(
    measurements: BodyMeasurements,
    handedness: Handedness,
    orientation=None,
) -> KinematicChain:
    """Assemble the chain for the given body, hand and orientation sample.

    ``orientation`` may be a Transform (only its rotation is used), a 3x3
    rotation matrix, or None for identity.
    """
    m = measurements
    sign = Handedness.coerce(handedness).sign
    return KinematicChain(
        footprint_to_neck=Transform.from_translation(0.0, 0.0, m.shoulder_height),
        neck_to_eyes=Transform.from_translation(0.0, 0.0, m.shoulder_to_eyes),
        neck_to_shoulder=Transform(_rotation_of(orientation), vec3(0.0, sign * m.shoulder_to_neck, 0.0)),
        shoulder_to_wrist=Transform.from_translation(m.shoulder_to_wrist, 0.0, 0.0),
        wrist_to_finger=Transform.from_translation(m.wrist_to_finger, 0.0, 0.0),
    )
