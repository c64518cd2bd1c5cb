"""PointForge: where is a person pointing, from body kinematics and pose streams."""

from pointforge.body.kinematic_chain import Handedness, KinematicChain, build_chain
from pointforge.body.kinematic_profile import (
    BodyMeasurements, InvalidParameterError, derive_measurements,
)
from pointforge.core.stream import PoseStream, Subscription
from pointforge.core.transform import Transform
from pointforge.model.pointing_model import PointingModel, PointingOutput, pointing_ray
from pointforge.surfaces import HorizontalPlane, Plane, Surface, SurfaceDelegate

__all__ = [
    "BodyMeasurements",
    "Handedness",
    "HorizontalPlane",
    "InvalidParameterError",
    "KinematicChain",
    "Plane",
    "PointingModel",
    "PointingOutput",
    "PoseStream",
    "Subscription",
    "Surface",
    "SurfaceDelegate",
    "Transform",
    "build_chain",
    "derive_measurements",
    "pointing_ray",
]
