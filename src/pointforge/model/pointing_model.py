"""Reactive pointing model: body kinematics -> eye/finger ray -> surface hit.

Every input change (body height, handedness, world pose, orientation pose,
surface, surface geometry) runs one recomputation routine.  Recomputations
are serialized: a trigger that arrives while an update is in progress, from
another thread or from an observer reacting to the outputs, only marks the
model dirty and the running update loops once more with the freshest inputs.
Observers therefore always see a complete (ray, pointer, finger) triple.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import numpy as np

from pointforge.body.kinematic_chain import Handedness, KinematicChain, build_chain
from pointforge.body.kinematic_profile import (
    BodyMeasurements, derive_measurements, validate_body_height,
)
from pointforge.constants import DEGENERATE_RAY_EPSILON
from pointforge.core.config_loader import ModelConfig
from pointforge.core.events import EventBus, EventType
from pointforge.core.math_utils import (
    Vec3, is_finite, quat_from_axis_angle, quat_multiply, quat_rotate_vec3, vec3,
)
from pointforge.core.stream import PoseStream, Subscription
from pointforge.core.transform import Transform
from pointforge.surfaces.plane import HorizontalPlane, surface_from_config
from pointforge.surfaces.surface import Surface

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PointingOutput:
    """One published result.  ``ray`` and ``pointer`` are None when undefined."""
    ray: Optional[Transform] = None
    pointer: Optional[Transform] = None
    finger: Optional[Transform] = None

    @property
    def has_pointer(self) -> bool:
        return self.pointer is not None


def pointing_ray(eyes: Vec3, finger: Vec3) -> Optional[Transform]:
    """Ray pose from the eyes through the fingertip.

    The orientation is yaw about Z followed by pitch about the yawed Y axis
    (no roll), so the ray's X axis is the unit eye-to-finger direction.
    Returns None if the two points coincide or are not finite.
    """
    delta = np.asarray(finger, dtype=np.float64) - np.asarray(eyes, dtype=np.float64)
    if not is_finite(eyes, delta):
        logger.warning("Non-finite eye/finger position, no ray this cycle")
        return None
    length = float(np.linalg.norm(delta))
    if length < DEGENERATE_RAY_EPSILON:
        logger.warning("Eye and finger positions coincide, no ray this cycle")
        return None
    direction = delta / length

    yaw_rot = quat_from_axis_angle(vec3(0, 0, 1), math.atan2(direction[1], direction[0]))
    yawed_x = quat_rotate_vec3(yaw_rot, vec3(1, 0, 0))
    pitch = math.atan2(-direction[2], float(np.dot(direction, yawed_x)))
    pitch_rot = quat_from_axis_angle(vec3(0, 1, 0), pitch)

    return Transform.from_quaternion(quat_multiply(yaw_rot, pitch_rot), eyes)


def _check_surface(surface: Any) -> Surface:
    if not callable(getattr(surface, "intersect", None)):
        raise TypeError(f"{type(surface).__name__} does not implement intersect(ray)")
    return surface


def _register_delegate(surface: Surface, delegate: Any) -> None:
    try:
        surface.delegate = delegate
    except AttributeError:
        raise TypeError(f"{type(surface).__name__} does not accept a delegate") from None


class PointingModel:
    """Computes where a person points from body height, hand and two pose streams."""

    def __init__(
        self,
        body_height: float,
        surface: Optional[Surface] = None,
        point_with: Union[Handedness, str] = Handedness.IGNORE,
    ):
        self.events = EventBus()

        self._lock = threading.Lock()
        self._updating = False
        self._dirty = False

        self._body_height = validate_body_height(body_height)
        self._measurements = derive_measurements(self._body_height)
        self._point_with = Handedness.coerce(point_with)

        self._world_pose = Transform.identity()
        self._orientation_pose = Transform.identity()
        self._world_sub = Subscription()
        self._orientation_sub = Subscription()

        self._surface = _check_surface(surface if surface is not None else HorizontalPlane())
        _register_delegate(self._surface, self)

        self._chain = build_chain(self._measurements, self._point_with, self._orientation_pose)
        self._output = PointingOutput()

        self._request_update()

    @classmethod
    def from_config(cls, config: Union[ModelConfig, dict, None] = None) -> PointingModel:
        """Build a model from a ModelConfig (or its dict form); None uses defaults."""
        if config is None:
            config = ModelConfig()
        elif isinstance(config, dict):
            config = ModelConfig.from_dict(config)
        return cls(
            config.body_height,
            surface=surface_from_config(config.surface),
            point_with=config.point_with,
        )

    # ── Inputs ────────────────────────────────────────────────────────

    @property
    def body_height(self) -> float:
        return self._body_height

    @body_height.setter
    def body_height(self, value: float) -> None:
        self.set_body_height(value)

    def set_body_height(self, body_height: float) -> None:
        """Rescale the body.  Raises InvalidParameterError, keeping the old height."""
        measurements = derive_measurements(body_height)
        with self._lock:
            self._body_height = float(body_height)
            self._measurements = measurements
        logger.debug("Body height set to %.3f m", self._body_height)
        self._request_update()
        self.events.publish(EventType.BODY_HEIGHT_CHANGED, body_height=self._body_height)

    @property
    def point_with(self) -> Handedness:
        return self._point_with

    @point_with.setter
    def point_with(self, value: Union[Handedness, str]) -> None:
        self.set_handedness(value)

    def set_handedness(self, point_with: Union[Handedness, str]) -> None:
        handedness = Handedness.coerce(point_with)
        with self._lock:
            self._point_with = handedness
        logger.debug("Pointing with %s", handedness.value)
        self._request_update()
        self.events.publish(EventType.HANDEDNESS_CHANGED, point_with=handedness)

    @property
    def surface(self) -> Surface:
        return self._surface

    @surface.setter
    def surface(self, value: Surface) -> None:
        self.set_surface(value)

    def set_surface(self, surface: Surface) -> None:
        """Swap the target surface and move the delegate registration over."""
        surface = _check_surface(surface)
        _register_delegate(surface, self)
        with self._lock:
            old, self._surface = self._surface, surface
        if old is not surface and getattr(old, "delegate", None) is self:
            old.delegate = None
        logger.info("Target surface set to %r", surface)
        self._request_update()
        self.events.publish(EventType.SURFACE_CHANGED, surface=surface)

    @property
    def world_pose(self) -> Transform:
        return self._world_pose

    def set_world_pose(self, pose: Transform) -> None:
        if not isinstance(pose, Transform):
            raise TypeError(f"World pose must be a Transform, got {type(pose).__name__}")
        with self._lock:
            self._world_pose = pose
        self._request_update()

    @property
    def orientation_pose(self) -> Transform:
        return self._orientation_pose

    def set_orientation_pose(self, pose: Transform) -> None:
        if not isinstance(pose, Transform):
            raise TypeError(f"Orientation pose must be a Transform, got {type(pose).__name__}")
        with self._lock:
            self._orientation_pose = pose
        self._request_update()

    def attach_world_pose_stream(self, stream: Optional[PoseStream]) -> None:
        """Follow ``stream`` for world poses, replacing any previous stream."""
        self._world_sub.cancel()
        if stream is None:
            self._world_sub = Subscription()
            return
        logger.info("Attached world pose stream %r", stream.name)
        self._world_sub = stream.subscribe(self.set_world_pose)

    def attach_orientation_stream(self, stream: Optional[PoseStream]) -> None:
        """Follow ``stream`` for orientation (IMU) poses, replacing any previous stream."""
        self._orientation_sub.cancel()
        if stream is None:
            self._orientation_sub = Subscription()
            return
        logger.info("Attached orientation stream %r", stream.name)
        self._orientation_sub = stream.subscribe(self.set_orientation_pose)

    def on_parameter_changed(self, name: str, value: Any) -> None:
        """Surface delegate hook: the surface geometry changed."""
        logger.debug("Surface parameter %s changed to %r", name, value)
        self._request_update()

    # ── Outputs ───────────────────────────────────────────────────────

    @property
    def output(self) -> PointingOutput:
        return self._output

    @property
    def ray(self) -> Optional[Transform]:
        return self._output.ray

    @property
    def pointer(self) -> Optional[Transform]:
        return self._output.pointer

    @property
    def finger(self) -> Optional[Transform]:
        return self._output.finger

    def subscribe(self, handler: Callable[..., None]) -> None:
        """Call ``handler(output=PointingOutput)`` after every recomputation."""
        self.events.subscribe(EventType.OUTPUT_CHANGED, handler)

    def unsubscribe(self, handler: Callable[..., None]) -> None:
        self.events.unsubscribe(EventType.OUTPUT_CHANGED, handler)

    # ── Kinematics (read-only) ────────────────────────────────────────

    @property
    def measurements(self) -> BodyMeasurements:
        return self._measurements

    @property
    def shoulder_height(self) -> float:
        return self._measurements.shoulder_height

    @property
    def shoulder_to_neck(self) -> float:
        return self._measurements.shoulder_to_neck

    @property
    def shoulder_to_eyes(self) -> float:
        return self._measurements.shoulder_to_eyes

    @property
    def shoulder_to_wrist(self) -> float:
        return self._measurements.shoulder_to_wrist

    @property
    def wrist_to_finger(self) -> float:
        return self._measurements.wrist_to_finger

    @property
    def chain(self) -> KinematicChain:
        return self._chain

    @property
    def footprint_to_neck_tf(self) -> Transform:
        return self._chain.footprint_to_neck

    @property
    def neck_to_eyes_tf(self) -> Transform:
        return self._chain.neck_to_eyes

    @property
    def neck_to_shoulder_tf(self) -> Transform:
        return self._chain.neck_to_shoulder

    @property
    def shoulder_to_wrist_tf(self) -> Transform:
        return self._chain.shoulder_to_wrist

    @property
    def wrist_to_finger_tf(self) -> Transform:
        return self._chain.wrist_to_finger

    # ── Recomputation ─────────────────────────────────────────────────

    def recompute(self) -> PointingOutput:
        """Force a recomputation with the current inputs and return the result."""
        self._request_update()
        return self._output

    def _request_update(self) -> None:
        with self._lock:
            if self._updating:
                self._dirty = True
                return
            self._updating = True

        while True:
            with self._lock:
                self._dirty = False
            try:
                self._update_model()
            except Exception:
                with self._lock:
                    self._updating = False
                raise
            with self._lock:
                if not self._dirty:
                    self._updating = False
                    return

    def _update_model(self) -> None:
        with self._lock:
            world = self._world_pose
            orientation = self._orientation_pose
            measurements = self._measurements
            handedness = self._point_with
            surface = self._surface

        chain = build_chain(measurements, handedness, orientation)
        finger = chain.finger_pose(world)
        eyes = chain.eyes_pose(world)

        ray = pointing_ray(eyes.origin, finger.origin)
        pointer = self._intersect(surface, ray) if ray is not None else None
        if not finger.is_finite():
            finger = None

        output = PointingOutput(ray=ray, pointer=pointer, finger=finger)
        with self._lock:
            self._chain = chain
            self._output = output

        self.events.publish(EventType.RAY_CHANGED, ray=output.ray)
        self.events.publish(EventType.POINTER_CHANGED, pointer=output.pointer)
        self.events.publish(EventType.FINGER_CHANGED, finger=output.finger)
        self.events.publish(EventType.OUTPUT_CHANGED, output=output)

    @staticmethod
    def _intersect(surface: Surface, ray: Transform) -> Optional[Transform]:
        try:
            hit = surface.intersect(ray)
            if hit is not None and not isinstance(hit, Transform):
                # Surfaces may answer with a bare point
                hit = Transform(None, hit)
        except Exception:
            logger.exception("Surface %r failed to intersect ray", surface)
            return None
        if hit is None:
            logger.debug("Ray does not hit %r", surface)
            return None
        if not hit.is_finite():
            logger.warning("Surface %r returned a non-finite hit, dropping it", surface)
            return None
        return hit

    # ── Lifecycle ─────────────────────────────────────────────────────

    def close(self) -> None:
        """Drop stream subscriptions and detach from the surface."""
        self._world_sub.cancel()
        self._orientation_sub.cancel()
        if getattr(self._surface, "delegate", None) is self:
            self._surface.delegate = None

    def __enter__(self) -> PointingModel:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
