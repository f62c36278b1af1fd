"""Live session wiring camera, model, inference loop and overlay display."""

import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict, Iterator, Optional

import cv2
import numpy as np

from live_pose.camera.frame_source import CameraFrameSource, Frame, FrameSource, VideoFileFrameSource
from live_pose.config import AppConfig, CameraFacing
from live_pose.errors import ConversionError, PermissionDenied
from live_pose.pipeline.inference_loop import InferenceLoop, LatestPoseCell
from live_pose.pose.base import Pose, PoseModel
from live_pose.pose.factory import create_pose_model
from live_pose.render.skeleton_renderer import RenderablePose, draw_overlay, draw_status, render_pose
from live_pose.tensor.converter import TensorConverter

logger = logging.getLogger(__name__)

STATUS_LOADING = "Tensor Loading"
STATUS_READY = "Ready"


class OpenCVDisplay:
    """Window surface backed by cv2.imshow."""

    def __init__(self, window_name: str):
        self.window_name = window_name
        self._opened = False

    def show(self, image: np.ndarray) -> None:
        if not self._opened:
            cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
            self._opened = True
        cv2.imshow(self.window_name, image)

    def poll_key(self) -> Optional[str]:
        key = cv2.waitKey(1) & 0xFF
        if key == 0xFF:
            return None
        return chr(key)

    def close(self) -> None:
        if self._opened:
            cv2.destroyWindow(self.window_name)
            self._opened = False


class LiveSession:
    """
    Application scaffolding around the inference loop.

    Checks camera access, loads the model once, starts the loop on the frame
    source, and polls the latest pose on every display tick to draw the
    skeleton over the newest frame.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        model: Optional[PoseModel] = None,
        source: Optional[FrameSource] = None,
        display: Any = None,
        display_fps: float = 30.0,
    ):
        """
        Initialize the session.

        Args:
            config: Application configuration. Uses defaults if not provided.
            model: Pose model; created from ``config.model`` if not provided.
            source: Frame source; a camera for the configured facing if not provided.
            display: Surface with ``show(image)``, ``poll_key()`` and ``close()``;
                an OpenCV window if not provided.
            display_fps: Display tick rate.
        """
        self.config = config or AppConfig()
        self.facing = self.config.camera.facing
        self.display_fps = display_fps

        self._model = model
        self._source = source
        self._display = display
        self._owns_source = source is None

        self.latest = LatestPoseCell()
        self._converter: Optional[TensorConverter] = None
        self._loop: Optional[InferenceLoop] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._last_frame: Optional[Frame] = None
        self._pending_key: Optional[str] = None
        self._closed = False

    @property
    def is_loading(self) -> bool:
        return self._model is None or not self._model.is_initialized

    @property
    def status(self) -> str:
        return STATUS_LOADING if self.is_loading else STATUS_READY

    @property
    def model(self) -> PoseModel:
        """Get or create and load the pose model."""
        if self._model is None:
            self._model = create_pose_model(self.config.model)
        if not self._model.is_initialized:
            logger.info(f"Loading pose model: {self._model.name}")
            self._model.initialize()
        return self._model

    @property
    def source(self) -> FrameSource:
        """Get or create the frame source."""
        if self._source is None:
            self._source = self._create_camera(self.facing)
        return self._source

    @property
    def display(self):
        if self._display is None:
            self._display = OpenCVDisplay(self.config.render.window_name)
        return self._display

    @property
    def converter(self) -> TensorConverter:
        """Get or create the frame to tensor converter for the model input."""
        if self._converter is None:
            model_config = self.config.model
            self._converter = TensorConverter(
                width=model_config.input_width,
                height=model_config.input_height,
                depth=model_config.depth,
                crop_to_aspect=self.config.camera.crop_to_aspect,
            )
        return self._converter

    @property
    def loop(self) -> InferenceLoop:
        """Get or create the inference loop."""
        if self._loop is None:
            self._loop = InferenceLoop(
                self.model,
                converter=self.converter,
                latest=self.latest,
                autorender=self.config.render.autorender,
            )
        return self._loop

    def _create_camera(self, facing: CameraFacing) -> CameraFrameSource:
        cam = self.config.camera
        return CameraFrameSource(
            device_index=cam.device_index(facing),
            width=cam.texture_width,
            height=cam.texture_height,
        )

    def check_permission(self) -> None:
        """
        Make sure the frame source can be opened.

        Raises:
            PermissionDenied: If access to the camera is not granted.
        """
        if not self.source.request_permission():
            raise PermissionDenied("No access to camera")

    def _tap(self, frames: Iterator[Frame]) -> Iterator[Frame]:
        for frame in frames:
            self._last_frame = frame
            yield frame

    def _update_preview(self) -> None:
        self.display_tick()

    def start(self) -> asyncio.Task:
        """Start the source and arm the inference loop on its frames."""
        self.check_permission()
        loop = self.loop
        self.source.start()
        self._loop_task = loop.on_frame_ready(
            self._tap(self.source.frames()),
            update_preview=self._update_preview,
        )
        return self._loop_task

    async def stop(self) -> None:
        """
        Stop the source and wait for the loop to reach Idle.

        The source is stopped first so a loop waiting for a frame from a
        silent camera is released; an in-flight inference still completes.
        """
        if self._loop is not None:
            self._loop.request_stop()
        if self._source is not None:
            await asyncio.to_thread(self._source.stop)
        if self._loop is not None:
            await self._loop.stop()
        self._loop_task = None

    async def switch_camera(self) -> CameraFacing:
        """
        Toggle between front and back cameras.

        The frame source is restarted on the other device; the loop is re-armed
        on the new frame sequence and keeps its latest pose.
        """
        await self.stop()
        self.facing = self.facing.toggle()
        self.config = replace(self.config, camera=replace(self.config.camera, facing=self.facing))
        if self._owns_source:
            self._source = self._create_camera(self.facing)
        logger.info(f"Switched camera to {self.facing.value}")
        self.start()
        return self.facing

    def current_frame(self) -> Optional[Frame]:
        """Newest frame for the display background."""
        if isinstance(self._source, CameraFrameSource):
            latest = self._source.latest()
            if latest is not None:
                return latest
        return self._last_frame

    def overlay(self) -> RenderablePose:
        """Overlay for the current latest pose."""
        return render_pose(self.latest.get(), min_score=self.config.render.min_score)

    def compose(self, image: np.ndarray) -> np.ndarray:
        """Draw the current overlay and status line onto a copy of ``image``."""
        converter = self.converter
        output = draw_overlay(
            image,
            self.overlay(),
            source_size=(converter.width, converter.height),
            target_box=converter.crop_box(image.shape[1], image.shape[0]),
        )
        text = self.status
        if self._loop is not None and self._loop.fps.fps > 0:
            text = f"{text} {self._loop.fps.fps:.1f} fps"
        return draw_status(output, text)

    def display_tick(self) -> Optional[str]:
        """Show one display frame and return the pressed key, if any."""
        frame = self.current_frame()
        if frame is not None:
            self.display.show(self.compose(frame.image))
        key = self.display.poll_key()
        if key is not None:
            self._pending_key = key
        return key

    def _take_key(self) -> Optional[str]:
        key, self._pending_key = self._pending_key, None
        return key

    async def run(self) -> Dict[str, Any]:
        """
        Run until the window is closed with 'q' or the source ends.

        'c' switches between front and back cameras.

        Returns:
            Loop statistics.
        """
        task = self.start()
        interval = 1.0 / max(1.0, self.display_fps)

        try:
            while True:
                if self.config.render.autorender:
                    self.display_tick()
                key = self._take_key()
                if key == "q":
                    break
                if key == "c":
                    await self.switch_camera()
                    task = self._loop_task
                    continue
                if task.done():
                    break
                await asyncio.sleep(interval)
        finally:
            await self.stop()

        return self.loop.stats.to_dict()

    def estimate_image(self, image: np.ndarray) -> Optional[Pose]:
        """
        Run one inference on a still image outside the live loop.

        Returns:
            The pose, or None if the image could not be converted.
        """
        model = self.model
        try:
            tensor = self.converter.convert(image)
        except ConversionError as e:
            logger.error(f"Could not convert image: {e}")
            return None

        try:
            return asyncio.run(model.estimate(tensor))
        finally:
            tensor.release()

    def cleanup(self) -> None:
        """Clean up resources."""
        if self._closed:
            return
        if self._source is not None:
            self._source.stop()
        if self._model is not None:
            self._model.cleanup()
        if self._display is not None:
            self._display.close()
        self._closed = True
        logger.debug("Session resources cleaned up")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.cleanup()
        return False


def open_source(config: AppConfig, video_path: Optional[str] = None, loop_video: bool = False) -> Optional[FrameSource]:
    """Frame source for a recorded video, or None to use the live camera."""
    if video_path:
        return VideoFileFrameSource(video_path, loop=loop_video)
    return None
