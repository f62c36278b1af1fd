"""Tests for frame sources."""

import asyncio
import threading
import time

import cv2
import numpy as np
import pytest

from live_pose.camera.frame_source import (
    ArrayFrameSource,
    CameraFrameSource,
    Frame,
    VideoFileFrameSource,
)
from live_pose.errors import FrameSourceError
from live_pose.pipeline.inference_loop import InferenceLoop


class FakeCapture:
    """Stand-in for cv2.VideoCapture delivering ``count`` frames, then failing."""

    def __init__(self, device, count=5, opened=True, delay=0.002):
        self.device = device
        self.count = count
        self.opened = opened
        self.delay = delay
        self.reads = 0
        self.released = threading.Event()

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        return True

    def read(self):
        time.sleep(self.delay)
        self.reads += 1
        if self.reads > self.count:
            return False, None
        return True, np.full((48, 64, 3), self.reads, dtype=np.uint8)

    def release(self):
        self.released.set()


@pytest.fixture
def fake_capture(monkeypatch):
    captures = []

    def factory(opened=True, count=5):
        def make(device):
            cap = FakeCapture(device, count=count, opened=opened)
            captures.append(cap)
            return cap

        monkeypatch.setattr(cv2, "VideoCapture", make)
        return captures

    return factory


def test_frame_size():
    frame = Frame(image=np.zeros((200, 152, 3), dtype=np.uint8))

    assert frame.size == (152, 200)


def test_array_source_yields_in_order():
    images = [np.full((4, 4, 3), i, dtype=np.uint8) for i in range(3)]

    with ArrayFrameSource(images) as source:
        frames = list(source.frames())

    assert [f.index for f in frames] == [0, 1, 2]
    assert [int(f.image[0, 0, 0]) for f in frames] == [0, 1, 2]


def test_array_source_repeats_until_stopped():
    source = ArrayFrameSource([np.zeros((4, 4, 3), dtype=np.uint8)], repeat=True)
    source.start()
    frames = source.frames()

    taken = [next(frames) for _ in range(4)]
    source.stop()

    assert [f.index for f in taken] == [0, 1, 2, 3]
    assert list(frames) == []


def test_missing_video_is_rejected(tmp_path):
    source = VideoFileFrameSource(str(tmp_path / "absent.mp4"))

    assert source.request_permission() is False
    with pytest.raises(FrameSourceError):
        source.start()


def test_video_file_roundtrip(tmp_path):
    path = tmp_path / "clip.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10, (64, 48))
    if not writer.isOpened():
        pytest.skip("MJPG writer not available")
    for i in range(4):
        writer.write(np.full((48, 64, 3), 40 * i, dtype=np.uint8))
    writer.release()

    with VideoFileFrameSource(str(path)) as source:
        frames = list(source.frames())

    assert len(frames) == 4
    assert frames[0].size == (64, 48)
    assert [f.index for f in frames] == [0, 1, 2, 3]


def test_camera_permission_denied(fake_capture):
    fake_capture(opened=False)
    source = CameraFrameSource(device_index=1)

    assert source.request_permission() is False
    with pytest.raises(FrameSourceError):
        source.start()


def test_camera_hands_out_newest_frames_then_reports_loss(fake_capture):
    captures = fake_capture(count=20)
    source = CameraFrameSource(device_index=0, max_read_failures=3)
    source.start()

    seen = []
    with pytest.raises(FrameSourceError):
        for frame in source.frames():
            seen.append(frame.index)
            # slow consumer, so some frames are dropped
            time.sleep(0.01)

    source.stop()

    assert seen == sorted(set(seen))
    assert len(seen) < 20
    assert captures[-1].released.is_set()


def test_camera_stop_ends_frames(fake_capture):
    fake_capture(count=10_000)
    source = CameraFrameSource(device_index=0)
    source.start()
    frames = source.frames()

    first = next(frames)
    assert source.latest() is not None
    source.stop()

    assert first.index >= 0
    assert list(frames) == []


def test_silent_camera_does_not_block_the_event_loop(fake_capture, fake_model, converter):
    fake_capture(count=0)
    source = CameraFrameSource(device_index=0, max_read_failures=10**9)
    source.start()
    loop = InferenceLoop(fake_model, converter=converter)

    async def scenario():
        ticks = []
        task = loop.on_frame_ready(source.frames())
        for _ in range(10):
            ticks.append(time.monotonic())
            await asyncio.sleep(0.02)
        assert not task.done()
        loop.request_stop()
        await asyncio.to_thread(source.stop)
        await loop.stop()
        return ticks

    ticks = asyncio.run(scenario())

    gaps = [b - a for a, b in zip(ticks, ticks[1:])]
    assert max(gaps) < 0.5
    assert loop.stats.iterations == 0
