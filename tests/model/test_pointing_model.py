"""Tests for the reactive pointing model."""

import math

import numpy as np
import pytest

from pointforge.body.kinematic_chain import Handedness, KinematicChain
from pointforge.body.kinematic_profile import InvalidParameterError
from pointforge.core.events import EventType
from pointforge.core.math_utils import mat3_rotation_z, vec3
from pointforge.core.stream import PoseStream
from pointforge.core.transform import Transform
from pointforge.model.pointing_model import PointingModel, PointingOutput, pointing_ray
from pointforge.surfaces import HorizontalPlane, Plane

# Eyes at 1.69 m, fingertip 0.69 m ahead at shoulder height 1.47 m
REF_EYES = [0.0, 0.0, 1.69]
REF_FINGER = [0.69, 0.0, 1.47]
REF_POINTER_X = 1.69 * 0.69 / 0.22


class MissingSurface:
    """Never intersects."""

    def __init__(self):
        self.delegate = None

    def intersect(self, ray):
        return None


class BrokenSurface:
    def __init__(self):
        self.delegate = None

    def intersect(self, ray):
        raise RuntimeError("mesh not loaded")


class PointSurface:
    """Answers with a bare point instead of a pose."""

    def __init__(self, point):
        self.delegate = None
        self.point = point

    def intersect(self, ray):
        return self.point


def _assert_finite_output(output: PointingOutput):
    for pose in (output.ray, output.pointer, output.finger):
        if pose is not None:
            assert pose.is_finite()


# ── pointing_ray ──────────────────────────────────────────────────────

def test_ray_x_axis_is_direction():
    eyes = vec3(0.3, -0.2, 1.6)
    finger = vec3(0.9, 0.4, 1.2)
    ray = pointing_ray(eyes, finger)
    expected = (finger - eyes) / np.linalg.norm(finger - eyes)
    np.testing.assert_array_almost_equal(ray.x_axis, expected)
    np.testing.assert_array_almost_equal(ray.origin, eyes)


def test_ray_has_no_roll():
    ray = pointing_ray(vec3(0, 0, 1), vec3(1, 1, 0))
    # Without roll the ray's Y axis stays horizontal
    assert ray.y_axis[2] == pytest.approx(0.0, abs=1e-12)


def test_ray_straight_up():
    ray = pointing_ray(vec3(0, 0, 0), vec3(0, 0, 2))
    np.testing.assert_array_almost_equal(ray.x_axis, [0, 0, 1])


def test_ray_degenerate_returns_none():
    assert pointing_ray(vec3(1, 1, 1), vec3(1, 1, 1)) is None
    assert pointing_ray(vec3(0, 0, 0), vec3(math.nan, 0, 0)) is None


# ── Reference scenarios ───────────────────────────────────────────────

def test_reference_run():
    model = PointingModel(1.835)
    assert model.point_with is Handedness.IGNORE
    np.testing.assert_array_almost_equal(model.finger.origin, REF_FINGER)
    np.testing.assert_array_almost_equal(model.ray.origin, REF_EYES)
    assert model.pointer is not None
    np.testing.assert_array_almost_equal(model.pointer.origin, [REF_POINTER_X, 0, 0])


def test_reference_run_is_reproducible():
    a = PointingModel(1.835)
    b = PointingModel(1.835)
    np.testing.assert_array_equal(a.finger.matrix, b.finger.matrix)
    np.testing.assert_array_equal(a.ray.matrix, b.ray.matrix)
    np.testing.assert_array_equal(a.pointer.matrix, b.pointer.matrix)


def test_right_hand_scenario():
    model = PointingModel(1.835, surface=HorizontalPlane(), point_with=Handedness.RIGHT_HAND)
    assert model.shoulder_height == pytest.approx(1.47)
    np.testing.assert_array_almost_equal(model.neck_to_shoulder_tf.origin, [0, -0.18, 0])
    np.testing.assert_array_almost_equal(model.finger.origin, [0.69, -0.18, 1.47])
    assert model.pointer is not None
    scale = 1.69 / 0.22
    np.testing.assert_array_almost_equal(
        model.pointer.origin, [0.69 * scale, -0.18 * scale, 0.0])
    # Forward and down
    assert model.ray.x_axis[0] > 0
    assert model.ray.x_axis[2] < 0


def test_recompute_is_idempotent():
    model = PointingModel(1.72, point_with="left_hand")
    model.set_orientation_pose(Transform(mat3_rotation_z(0.4)))
    first = model.recompute()
    second = model.recompute()
    np.testing.assert_array_equal(first.ray.matrix, second.ray.matrix)
    np.testing.assert_array_equal(first.pointer.matrix, second.pointer.matrix)
    np.testing.assert_array_equal(first.finger.matrix, second.finger.matrix)


def test_surface_without_intersection():
    model = PointingModel(1.835, surface=MissingSurface())
    for angle in (0.0, 0.5, 1.5):
        model.set_orientation_pose(Transform(mat3_rotation_z(angle)))
        assert model.pointer is None
        assert model.ray is not None
        assert model.finger is not None
    assert not model.output.has_pointer


# ── Inputs ────────────────────────────────────────────────────────────

def test_kinematic_properties_exposed():
    model = PointingModel(1.835)
    assert model.body_height == pytest.approx(1.835)
    assert model.shoulder_to_neck == pytest.approx(0.18)
    assert model.shoulder_to_eyes == pytest.approx(0.22)
    assert model.shoulder_to_wrist == pytest.approx(0.51)
    assert model.wrist_to_finger == pytest.approx(0.18)
    np.testing.assert_array_almost_equal(model.footprint_to_neck_tf.origin, [0, 0, 1.47])
    np.testing.assert_array_almost_equal(model.neck_to_eyes_tf.origin, [0, 0, 0.22])
    np.testing.assert_array_almost_equal(model.shoulder_to_wrist_tf.origin, [0.51, 0, 0])
    np.testing.assert_array_almost_equal(model.wrist_to_finger_tf.origin, [0.18, 0, 0])


def test_set_body_height_rescales_and_recomputes():
    model = PointingModel(1.835)
    model.set_body_height(1.835 * 2)
    assert model.shoulder_height == pytest.approx(2.94)
    np.testing.assert_array_almost_equal(model.finger.origin, [1.38, 0, 2.94])


def test_body_height_property_setter():
    model = PointingModel(1.835)
    model.body_height = 1.5
    assert model.measurements.shoulder_height == pytest.approx(1.47 * 1.5 / 1.835)


@pytest.mark.parametrize("height", [0.0, -1.0, math.nan])
def test_invalid_body_height_keeps_state(height):
    model = PointingModel(1.835)
    before = model.output
    with pytest.raises(InvalidParameterError):
        model.set_body_height(height)
    assert model.body_height == pytest.approx(1.835)
    assert model.output is before
    # Still usable
    model.set_body_height(1.6)
    assert model.shoulder_height == pytest.approx(1.47 * 1.6 / 1.835)


def test_invalid_body_height_at_construction():
    with pytest.raises(InvalidParameterError):
        PointingModel(0.0)


def test_set_handedness_recomputes():
    model = PointingModel(1.835)
    model.set_handedness(Handedness.LEFT_HAND)
    np.testing.assert_array_almost_equal(model.finger.origin, [0.69, 0.18, 1.47])
    model.point_with = "right_hand"
    np.testing.assert_array_almost_equal(model.finger.origin, [0.69, -0.18, 1.47])
    with pytest.raises(ValueError):
        model.set_handedness("both_hands")
    assert model.point_with is Handedness.RIGHT_HAND


def test_orientation_steers_arm():
    model = PointingModel(1.835)
    model.set_orientation_pose(Transform(mat3_rotation_z(np.pi / 2), vec3(9, 9, 9)))
    # Arm swings to +Y; orientation translation is ignored
    np.testing.assert_array_almost_equal(model.finger.origin, [0, 0.69, 1.47])
    np.testing.assert_array_almost_equal(model.pointer.origin, [0, REF_POINTER_X, 0])


def test_world_pose_moves_person():
    model = PointingModel(1.835)
    model.set_world_pose(Transform.from_translation(2, -1, 0))
    np.testing.assert_array_almost_equal(model.finger.origin, [2.69, -1, 1.47])
    np.testing.assert_array_almost_equal(model.pointer.origin, [2 + REF_POINTER_X, -1, 0])


def test_pose_setters_type_checked():
    model = PointingModel(1.835)
    with pytest.raises(TypeError):
        model.set_world_pose(np.eye(4))
    with pytest.raises(TypeError):
        model.set_orientation_pose(None)


# ── Streams ───────────────────────────────────────────────────────────

def test_world_stream_drives_model():
    model = PointingModel(1.835)
    stream = PoseStream(name="mocap")
    model.attach_world_pose_stream(stream)
    stream.send(Transform.from_translation(1, 0, 0))
    np.testing.assert_array_almost_equal(model.finger.origin, [1.69, 0, 1.47])
    assert model.world_pose is stream.value


def test_attach_replays_latest_sample():
    stream = PoseStream(initial=Transform(mat3_rotation_z(np.pi)))
    model = PointingModel(1.835)
    model.attach_orientation_stream(stream)
    np.testing.assert_array_almost_equal(model.finger.origin, [-0.69, 0, 1.47])


def test_attach_replaces_previous_stream():
    model = PointingModel(1.835)
    old, new = PoseStream(name="old"), PoseStream(name="new")
    model.attach_orientation_stream(old)
    model.attach_orientation_stream(new)
    assert old.subscriber_count == 0
    old.send(Transform(mat3_rotation_z(np.pi)))
    np.testing.assert_array_almost_equal(model.finger.origin, REF_FINGER)
    new.send(Transform(mat3_rotation_z(np.pi / 2)))
    np.testing.assert_array_almost_equal(model.finger.origin, [0, 0.69, 1.47])


def test_attach_none_detaches():
    model = PointingModel(1.835)
    stream = PoseStream()
    model.attach_world_pose_stream(stream)
    model.attach_world_pose_stream(None)
    stream.send(Transform.from_translation(5, 5, 0))
    np.testing.assert_array_almost_equal(model.finger.origin, REF_FINGER)


def test_close_releases_everything():
    surface = HorizontalPlane()
    world, imu = PoseStream(), PoseStream()
    with PointingModel(1.835, surface=surface) as model:
        model.attach_world_pose_stream(world)
        model.attach_orientation_stream(imu)
        assert surface.delegate is model
    assert world.subscriber_count == 0
    assert imu.subscriber_count == 0
    assert surface.delegate is None


# ── Surface handling ──────────────────────────────────────────────────

def test_registers_as_surface_delegate():
    surface = HorizontalPlane()
    model = PointingModel(1.835, surface=surface)
    assert surface.delegate is model


def test_surface_geometry_change_recomputes():
    surface = HorizontalPlane()
    model = PointingModel(1.835, surface=surface)
    surface.point = (0, 0, 1.0)
    # Ray drops 0.69 m over 0.69 / 0.22 * ... : hit where z = 1.0
    expected_x = 0.69 * (1.69 - 1.0) / 0.22
    np.testing.assert_array_almost_equal(model.pointer.origin, [expected_x, 0, 1.0])


def test_redundant_notifications_are_harmless():
    model = PointingModel(1.835)
    before = model.output
    model.on_parameter_changed("point", vec3())
    model.on_parameter_changed("point", vec3())
    np.testing.assert_array_equal(model.pointer.matrix, before.pointer.matrix)


def test_set_surface_moves_delegate():
    old, new = HorizontalPlane(), HorizontalPlane(point=(0, 0, 1.0))
    model = PointingModel(1.835, surface=old)
    outputs = []
    model.subscribe(lambda output: outputs.append(output))
    model.set_surface(new)
    assert old.delegate is None
    assert new.delegate is model
    assert model.surface is new
    assert len(outputs) == 1
    old.point = (0, 0, 0.3)
    assert len(outputs) == 1
    new.point = (0, 0, 0.5)
    assert len(outputs) == 2


def test_surface_property_setter():
    model = PointingModel(1.835)
    model.surface = MissingSurface()
    assert model.pointer is None


def test_set_surface_rejects_non_surface():
    model = PointingModel(1.835)
    surface = model.surface
    with pytest.raises(TypeError):
        model.set_surface(object())
    assert model.surface is surface


def test_wall_surface():
    model = PointingModel(1.835, surface=Plane(point=(3, 0, 0), normal=(1, 0, 0)))
    assert model.pointer is not None
    assert model.pointer.origin[0] == pytest.approx(3.0)


def test_broken_surface_is_absorbed():
    model = PointingModel(1.835, surface=BrokenSurface())
    assert model.pointer is None
    assert model.ray is not None


def test_surface_may_return_point():
    model = PointingModel(1.835, surface=PointSurface([1.0, 2.0, 0.0]))
    assert isinstance(model.pointer, Transform)
    np.testing.assert_array_equal(model.pointer.origin, [1, 2, 0])


def test_non_finite_hit_dropped():
    model = PointingModel(1.835, surface=PointSurface([math.inf, 0.0, 0.0]))
    assert model.pointer is None


# ── Degenerate geometry ───────────────────────────────────────────────

def test_coinciding_eye_and_finger(monkeypatch):
    def collapsed_chain(measurements, handedness, orientation=None):
        arm = Transform.from_translation(0.69, 0, 0)
        return KinematicChain(
            footprint_to_neck=Transform.from_translation(0, 0, 1.47),
            neck_to_eyes=arm,
            neck_to_shoulder=Transform.identity(),
            shoulder_to_wrist=arm,
            wrist_to_finger=Transform.identity(),
        )

    monkeypatch.setattr("pointforge.model.pointing_model.build_chain", collapsed_chain)
    model = PointingModel(1.835)
    assert model.ray is None
    assert model.pointer is None
    np.testing.assert_array_almost_equal(model.finger.origin, REF_FINGER)
    _assert_finite_output(model.output)


def test_nan_sample_yields_absent_outputs_then_recovers():
    model = PointingModel(1.835)
    published = []
    model.subscribe(lambda output: published.append(output))
    model.set_world_pose(Transform(None, vec3(math.nan, 0, 0)))
    assert model.ray is None
    assert model.pointer is None
    assert model.finger is None
    model.set_world_pose(Transform.identity())
    np.testing.assert_array_almost_equal(model.finger.origin, REF_FINGER)
    for output in published:
        _assert_finite_output(output)


# ── Publication ───────────────────────────────────────────────────────

def test_publication_order():
    model = PointingModel(1.835)
    order = []
    for event_type in (EventType.RAY_CHANGED, EventType.POINTER_CHANGED,
                       EventType.FINGER_CHANGED, EventType.OUTPUT_CHANGED):
        model.events.subscribe(event_type, lambda _t=event_type, **kw: order.append(_t))
    model.recompute()
    assert order == [EventType.RAY_CHANGED, EventType.POINTER_CHANGED,
                     EventType.FINGER_CHANGED, EventType.OUTPUT_CHANGED]


def test_observers_see_complete_triple():
    model = PointingModel(1.835)
    seen = []

    def on_ray(ray):
        # The whole group is already in place when the first event fires
        seen.append((ray, model.pointer, model.finger, model.output))

    model.events.subscribe(EventType.RAY_CHANGED, on_ray)
    model.set_world_pose(Transform.from_translation(1, 0, 0))
    ray, pointer, finger, output = seen[-1]
    assert ray is output.ray
    assert pointer is output.pointer
    assert finger is output.finger
    np.testing.assert_array_almost_equal(finger.origin, [1.69, 0, 1.47])


def test_unsubscribe():
    model = PointingModel(1.835)
    outputs = []
    handler = lambda output: outputs.append(output)
    model.subscribe(handler)
    model.unsubscribe(handler)
    model.recompute()
    assert outputs == []


def test_input_events():
    model = PointingModel(1.835)
    received = []
    model.events.subscribe(EventType.BODY_HEIGHT_CHANGED, lambda **kw: received.append(kw))
    model.events.subscribe(EventType.HANDEDNESS_CHANGED, lambda **kw: received.append(kw))
    model.set_body_height(1.7)
    model.set_handedness("left_hand")
    assert received == [{"body_height": 1.7}, {"point_with": Handedness.LEFT_HAND}]


# ── Configuration ─────────────────────────────────────────────────────

def test_from_default_config():
    model = PointingModel.from_config()
    assert model.body_height == pytest.approx(1.835)
    assert isinstance(model.surface, HorizontalPlane)
    np.testing.assert_array_almost_equal(model.pointer.origin, [REF_POINTER_X, 0, 0])


def test_from_config_dict():
    model = PointingModel.from_config({
        "body_height": 1.67,
        "point_with": "right_hand",
        "surface": {"type": "horizontal_plane", "point": [0, 0, 0.75]},
    })
    assert model.point_with is Handedness.RIGHT_HAND
    assert model.pointer.origin[2] == pytest.approx(0.75)


def test_from_config_invalid_height():
    with pytest.raises(InvalidParameterError):
        PointingModel.from_config({"body_height": -1})


def test_relayed_world_sample_is_not_overwritten_by_older_one():
    stream = PoseStream(name="mocap")
    first = Transform.from_translation(1, 0, 0)
    second = Transform.from_translation(2, 0, 0)

    def relay(pose):
        if pose is first:
            stream.send(second)

    stream.subscribe(relay)
    model = PointingModel(1.835)
    model.attach_world_pose_stream(stream)
    stream.send(first)
    assert model.world_pose is stream.value
    np.testing.assert_array_almost_equal(model.finger.origin, [2.69, 0, 1.47])


class SealedSurface:
    """Intersects but cannot hold a delegate."""
    __slots__ = ()

    def intersect(self, ray):
        return None


def test_set_surface_rejecting_delegate_keeps_old_surface():
    old = HorizontalPlane()
    model = PointingModel(1.835, surface=old)
    before = model.output
    with pytest.raises(TypeError):
        model.set_surface(SealedSurface())
    assert model.surface is old
    assert old.delegate is model
    assert model.output is before
    # Old surface still drives recomputation
    old.point = (0, 0, 1.0)
    assert model.pointer.origin[2] == pytest.approx(1.0)


def test_construct_with_surface_rejecting_delegate():
    with pytest.raises(TypeError):
        PointingModel(1.835, surface=SealedSurface())


def test_input_events_follow_recomputation():
    model = PointingModel(1.835)
    seen = []

    def on_height(body_height):
        seen.append((model.chain.footprint_to_neck.origin[2], model.finger.origin[2]))

    def on_hand(point_with):
        seen.append((model.neck_to_shoulder_tf.origin[1], model.finger.origin[1]))

    model.events.subscribe(EventType.BODY_HEIGHT_CHANGED, on_height)
    model.events.subscribe(EventType.HANDEDNESS_CHANGED, on_hand)
    model.set_body_height(1.835 * 2)
    model.set_handedness("left_hand")
    assert seen[0] == (pytest.approx(2.94), pytest.approx(2.94))
    assert seen[1] == (pytest.approx(0.36), pytest.approx(0.36))
