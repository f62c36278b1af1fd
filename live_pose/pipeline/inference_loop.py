"""Scheduling loop running pose inference on the newest camera frame."""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Optional

from live_pose.camera.frame_source import Frame
from live_pose.errors import (
    ConversionError,
    FrameSourceError,
    InferenceError,
    LoopBusyError,
)
from live_pose.pose.base import Pose, PoseModel
from live_pose.tensor.converter import TensorConverter
from live_pose.utils.logging_config import FpsMeter

logger = logging.getLogger(__name__)


class LoopState(Enum):
    """Inference loop states."""
    IDLE = "idle"
    BUSY = "busy"


class LatestPoseCell:
    """
    Single-slot holder of the most recent pose.

    Written only by the inference loop, read by the renderer. A new pose
    replaces the previous one; no history is kept.
    """

    def __init__(self, pose: Optional[Pose] = None):
        self._pose = pose

    def get(self) -> Optional[Pose]:
        return self._pose

    def set(self, pose: Pose) -> None:
        self._pose = pose

    def clear(self) -> None:
        self._pose = None


@dataclass
class LoopStats:
    """
    Counters for one inference loop.

    Attributes:
        iterations: Completed Idle -> Busy -> Idle cycles.
        poses: Cycles that produced a new pose.
        conversion_failures: Frames skipped because they could not be converted.
        inference_failures: Cycles where the model call failed.
    """
    iterations: int = 0
    poses: int = 0
    conversion_failures: int = 0
    inference_failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "iterations": self.iterations,
            "poses": self.poses,
            "conversion_failures": self.conversion_failures,
            "inference_failures": self.inference_failures,
        }


class InferenceLoop:
    """
    Idle/Busy state machine that feeds frames to a pose model.

    Only one tensor is ever in flight: a frame is pulled and converted only
    in Idle, and the loop goes back to Idle after the model call resolves
    and the tensor has been released. Frames produced while Busy are never
    queued; the next iteration simply takes whatever frame is newest.
    """

    def __init__(
        self,
        model: PoseModel,
        converter: Optional[TensorConverter] = None,
        latest: Optional[LatestPoseCell] = None,
        autorender: bool = True,
        fps_log_interval: float = 5.0,
    ):
        """
        Initialize the loop.

        Args:
            model: Loaded pose model.
            converter: Frame to tensor converter.
            latest: Cell receiving each new pose.
            autorender: When False, the loop drives preview updates itself by
                calling the display-update callback before each iteration and
                ending the GL frame after it.
            fps_log_interval: Seconds between throughput log lines.
        """
        self.model = model
        self.converter = converter or TensorConverter(
            width=model.config.input_width,
            height=model.config.input_height,
            depth=model.config.depth,
        )
        self.latest = latest or LatestPoseCell()
        self.autorender = autorender
        self.stats = LoopStats()
        self.fps = FpsMeter(logger, description="Pose inference", log_interval=fps_log_interval)

        self._state = LoopState.IDLE
        self._stop_requested = False
        self._fetching = False
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self) -> None:
        """Ask the loop to stop at its next Idle boundary."""
        self._stop_requested = True

    async def _estimate(self, tensor) -> Pose:
        # estimate() may raise before returning an awaitable
        result = self.model.estimate(tensor)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def step(
        self,
        frames: Iterator[Frame],
        update_preview: Optional[Callable[[], None]] = None,
        gl: Any = None,
    ) -> bool:
        """
        Run one Idle -> Busy -> Idle cycle.

        Args:
            frames: Frame iterator of the current camera session.
            update_preview: Display-update callback (manual render mode only).
            gl: Rendering context whose ``end_frame()`` is called after the
                cycle (manual render mode only).

        Returns:
            False when the frame sequence is exhausted, True otherwise.

        Raises:
            LoopBusyError: If called while another cycle is in flight.
        """
        if self._state is LoopState.BUSY or self._fetching:
            raise LoopBusyError("An inference call is already in flight")

        if not self.autorender and update_preview is not None:
            update_preview()

        # Sources may block until a new frame arrives; wait in a worker thread
        self._fetching = True
        try:
            frame = await asyncio.to_thread(next, frames, None)
        except FrameSourceError as e:
            logger.error(f"Frame source failed: {e}")
            return False
        finally:
            self._fetching = False
        if frame is None:
            return False

        self._state = LoopState.BUSY
        tensor = None
        try:
            tensor = self.converter.convert(frame)
            pose = await self._estimate(tensor)
            self.latest.set(pose)
            self.stats.poses += 1
            self.fps.tick()
        except ConversionError as e:
            self.stats.conversion_failures += 1
            logger.warning(f"Skipping frame {getattr(frame, 'index', '?')}: {e}")
        except InferenceError as e:
            self.stats.inference_failures += 1
            logger.warning(f"Inference failed, keeping previous pose: {e}")
        except Exception:
            self.stats.inference_failures += 1
            logger.exception("Unexpected error during inference, keeping previous pose")
        finally:
            if tensor is not None:
                tensor.release()
            self.stats.iterations += 1
            self._state = LoopState.IDLE

        if not self.autorender and gl is not None:
            gl.end_frame()

        return True

    async def run(
        self,
        frames: Iterator[Frame],
        update_preview: Optional[Callable[[], None]] = None,
        gl: Any = None,
    ) -> LoopStats:
        """
        Run cycles until a stop is requested or the frame sequence ends.

        The stop request is checked only between cycles, so an in-flight
        inference always completes and its tensor is released first.
        """
        logger.info(f"Inference loop started with {self.model.name}")

        while not self._stop_requested:
            if not await self.step(frames, update_preview, gl):
                break
            # Re-arm on the next event loop turn
            await asyncio.sleep(0)

        logger.info(f"Inference loop stopped: {self.stats.to_dict()}")
        return self.stats

    def on_frame_ready(
        self,
        frames: Iterator[Frame],
        update_preview: Optional[Callable[[], None]] = None,
        gl: Any = None,
    ) -> asyncio.Task:
        """
        Frame-ready callback: start looping over ``frames`` in a task.

        Must be called from within a running event loop.
        """
        if self._task is not None and not self._task.done():
            raise LoopBusyError("Inference loop is already running")
        self._stop_requested = False
        self._task = asyncio.get_running_loop().create_task(self.run(frames, update_preview, gl))
        return self._task

    async def stop(self) -> None:
        """
        Request a stop and wait for the running task to reach Idle.

        A task waiting for a frame only returns once the frame source yields
        or ends, so stop the source first when it may be silent.
        """
        self.request_stop()
        if self._task is not None:
            await self._task
            self._task = None
