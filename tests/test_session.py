"""Tests for the live session scaffolding."""

import asyncio
import threading
import time

import numpy as np
import pytest

from conftest import FakePoseModel, make_pose
from live_pose.camera.frame_source import ArrayFrameSource
from live_pose.config import AppConfig, CameraConfig, CameraFacing
from live_pose.errors import PermissionDenied
from live_pose.pipeline.session import STATUS_LOADING, STATUS_READY, LiveSession, open_source
from live_pose.pose.base import Keypoint, Pose
from live_pose.render.skeleton_renderer import POINT_COLOR
from live_pose.tensor.converter import default_tracker


class FakeDisplay:
    """Display surface replaying a fixed sequence of key presses."""

    def __init__(self, keys=()):
        self.keys = list(keys)
        self.shown = []
        self.closed = False

    def show(self, image):
        self.shown.append(image)

    def poll_key(self):
        if self.keys:
            return self.keys.pop(0)
        return None

    def close(self):
        self.closed = True


class DeniedSource(ArrayFrameSource):
    def request_permission(self):
        return False


def images(count=3):
    return [np.full((240, 320, 3), 30 * i, dtype=np.uint8) for i in range(count)]


def make_session(keys, source=None, model=None):
    return LiveSession(
        AppConfig(),
        model=model or FakePoseModel(),
        source=source or ArrayFrameSource(images(), repeat=True),
        display=FakeDisplay(keys),
        display_fps=100,
    )


def test_status_tracks_model_loading():
    session = make_session([])

    assert session.status == STATUS_LOADING
    session.model
    assert session.status == STATUS_READY


def test_run_until_quit():
    session = make_session([None, None, None, "q"])

    with session:
        stats = asyncio.run(session.run())

    assert stats["iterations"] >= 1
    assert stats["poses"] == stats["iterations"]
    assert session.latest.get() is session.model.pose
    assert session.display.shown
    assert session.display.closed


def test_run_ends_with_source():
    session = make_session([], source=ArrayFrameSource(images(2)))

    stats = asyncio.run(session.run())

    assert stats["iterations"] == 2


def test_permission_denied():
    session = make_session([], source=DeniedSource(images()))

    with pytest.raises(PermissionDenied):
        asyncio.run(session.run())


def test_switch_camera_toggles_facing():
    session = make_session([None, "c", None, None, "q"])

    asyncio.run(session.run())

    assert session.facing is CameraFacing.BACK
    assert session.config.camera.facing is CameraFacing.BACK


def test_switch_camera_keeps_latest_pose():
    session = make_session([])

    async def scenario():
        session.start()
        while session.latest.get() is None:
            await asyncio.sleep(0)
        before = session.latest.get()
        facing = await session.switch_camera()
        assert session.latest.get() is before
        await session.stop()
        return facing

    assert asyncio.run(scenario()) is CameraFacing.BACK


def test_compose_draws_on_copy():
    session = make_session([])
    session.latest.set(make_pose(default_score=0.95))
    image = np.zeros((400, 304, 3), dtype=np.uint8)

    output = session.compose(image)

    assert not image.any()
    assert output.any()
    assert len(session.overlay().points) == 17


def test_estimate_image_releases_tensor():
    model = FakePoseModel()
    session = make_session([], model=model)
    live_before = default_tracker.live

    pose = session.estimate_image(np.zeros((480, 640, 3), dtype=np.uint8))

    assert pose is model.pose
    assert default_tracker.live == live_before


def test_estimate_image_unconvertible():
    session = make_session([])

    assert session.estimate_image(np.zeros((10, 10), dtype=np.uint8)) is None


def test_open_source(tmp_path):
    assert open_source(AppConfig()) is None
    source = open_source(AppConfig(), str(tmp_path / "clip.mp4"), loop_video=True)
    assert source.loop is True


def test_compose_follows_center_crop():
    config = AppConfig(camera=CameraConfig(crop_to_aspect=True))
    session = LiveSession(config, model=FakePoseModel(), source=ArrayFrameSource(images()), display=FakeDisplay())
    session.latest.set(Pose.from_keypoints([Keypoint("nose", 10.0, 100.0, 0.9, 0)]))

    output = session.compose(np.zeros((200, 400, 3), dtype=np.uint8))

    assert tuple(output[100, 134]) == POINT_COLOR
    assert not output[60:, :124].any()


class SilentSource(ArrayFrameSource):
    """Source that is open but never delivers a frame until stopped."""

    def __init__(self):
        super().__init__([])
        self._stopped = threading.Event()

    def start(self):
        self._stopped.clear()
        super().start()

    def stop(self):
        super().stop()
        self._stopped.set()

    def frames(self):
        self._stopped.wait(timeout=5.0)
        return
        yield


def test_silent_source_keeps_display_and_keys_alive():
    session = make_session([None, None, None, "q"], source=SilentSource())

    started = time.monotonic()
    stats = asyncio.run(session.run())

    assert time.monotonic() - started < 2.0
    assert stats["iterations"] == 0
    assert session.display.keys == []
