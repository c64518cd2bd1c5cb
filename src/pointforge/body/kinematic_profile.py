"""Anthropometric segment lengths scaled from a single body height."""

import math
from dataclasses import dataclass

from pointforge.constants import (
    REFERENCE_HEIGHT,
    SHOULDER_HEIGHT_RATIO,
    SHOULDER_TO_EYES_RATIO,
    SHOULDER_TO_NECK_RATIO,
    SHOULDER_TO_WRIST_RATIO,
    WRIST_TO_FINGER_RATIO,
)


class InvalidParameterError(ValueError):
    """Raised for model parameters without physical meaning (e.g. height <= 0)."""


@dataclass(frozen=True)
class BodyMeasurements:
    """Segment lengths in metres, always derived together from one height."""
    shoulder_height: float
    shoulder_to_neck: float
    shoulder_to_eyes: float
    shoulder_to_wrist: float
    wrist_to_finger: float

    def as_dict(self) -> dict[str, float]:
        return {
            "shoulder_height": self.shoulder_height,
            "shoulder_to_neck": self.shoulder_to_neck,
            "shoulder_to_eyes": self.shoulder_to_eyes,
            "shoulder_to_wrist": self.shoulder_to_wrist,
            "wrist_to_finger": self.wrist_to_finger,
        }


def validate_body_height(body_height: float) -> float:
    """Return ``body_height`` as float, or raise InvalidParameterError."""
    try:
        h = float(body_height)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"Body height must be a number, got {body_height!r}") from None
    if not math.isfinite(h) or h <= 0.0:
        raise InvalidParameterError(f"Body height must be positive and finite, got {h}")
    return h


def derive_measurements(body_height: float) -> BodyMeasurements:
    """Scale the reference body's segment lengths to ``body_height``."""
    h = validate_body_height(body_height)
    scale = h / REFERENCE_HEIGHT
    return BodyMeasurements(
        shoulder_height=SHOULDER_HEIGHT_RATIO * scale,
        shoulder_to_neck=SHOULDER_TO_NECK_RATIO * scale,
        shoulder_to_eyes=SHOULDER_TO_EYES_RATIO * scale,
        shoulder_to_wrist=SHOULDER_TO_WRIST_RATIO * scale,
        wrist_to_finger=WRIST_TO_FINGER_RATIO * scale,
    )
