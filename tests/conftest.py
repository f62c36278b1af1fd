"""Shared fixtures for the live pose tests."""

import asyncio
from typing import Dict, Optional

import numpy as np
import pytest

from live_pose.camera.frame_source import Frame
from live_pose.config import ModelConfig
from live_pose.errors import InferenceError
from live_pose.pose.base import PART_NAMES, Keypoint, Pose, PoseModel
from live_pose.tensor.converter import TensorConverter, TensorTracker


def make_pose(scores: Optional[Dict[str, float]] = None, default_score: float = 0.9) -> Pose:
    """Pose with every part at a distinct position and the given scores."""
    scores = scores or {}
    keypoints = [
        Keypoint(
            part=part,
            x=float(5 + 8 * i),
            y=float(10 + 10 * i),
            score=scores.get(part, default_score),
            index=i,
        )
        for i, part in enumerate(PART_NAMES)
    ]
    return Pose.from_keypoints(keypoints)


def make_frame(index: int = 0, width: int = 320, height: int = 240, value: int = 128) -> Frame:
    image = np.full((height, width, 3), value, dtype=np.uint8)
    return Frame(image=image, index=index, timestamp_ms=index * 33.0)


class FakePoseModel(PoseModel):
    """
    In-memory pose model.

    Returns ``pose`` for every call except the call numbers listed in
    ``fail_on`` (raise InferenceError on await). Tracks how many tensors
    were alive during each call.
    """

    def __init__(self, pose: Optional[Pose] = None, fail_on=(), tracker: Optional[TensorTracker] = None):
        super().__init__(ModelConfig())
        self.pose = pose or make_pose()
        self.fail_on = set(fail_on)
        self.tracker = tracker
        self.calls = 0
        self.max_live_tensors = 0
        self.gate: Optional[asyncio.Event] = None

    @property
    def name(self) -> str:
        return "fake"

    def initialize(self) -> None:
        self._is_initialized = True

    async def estimate(self, tensor) -> Pose:
        self.check_input(tensor)
        self.calls += 1
        call = self.calls
        if self.tracker is not None:
            self.max_live_tensors = max(self.max_live_tensors, self.tracker.live)
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if call in self.fail_on:
            raise InferenceError(f"call {call} failed")
        return self.pose


class SyncRaisingModel(FakePoseModel):
    """Model whose first ``estimate`` call raises before returning an awaitable."""

    def estimate(self, tensor):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("numeric error")
        return self._resolve()

    async def _resolve(self) -> Pose:
        return self.pose


@pytest.fixture
def tracker():
    return TensorTracker()


@pytest.fixture
def converter(tracker):
    return TensorConverter(tracker=tracker)


@pytest.fixture
def fake_model(tracker):
    model = FakePoseModel(tracker=tracker)
    model.initialize()
    return model


@pytest.fixture
def frames():
    return [make_frame(i) for i in range(5)]
