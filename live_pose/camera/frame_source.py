"""Frame sources feeding the inference loop."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

import cv2
import numpy as np

from live_pose.errors import FrameSourceError
from live_pose.utils.logging_config import LoggerMixin

logger = logging.getLogger(__name__)


@dataclass
class Frame:
    """
    One raw image from a frame source.

    Attributes:
        image: Image at native resolution (H, W, C), BGR uint8.
        index: Sequence number within the current session.
        timestamp_ms: Capture time in milliseconds.
    """
    image: np.ndarray
    index: int = 0
    timestamp_ms: float = 0.0

    @property
    def size(self):
        """(width, height) of the image."""
        return int(self.image.shape[1]), int(self.image.shape[0])


class FrameSource(ABC):
    """
    Abstract producer of frames.

    A source is started once per session; ``frames()`` returns a lazy,
    possibly infinite iterator over the session's frames.
    """

    @abstractmethod
    def request_permission(self) -> bool:
        """Return True if the underlying device can be opened."""
        pass

    @abstractmethod
    def start(self) -> None:
        """Start producing frames."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop producing frames and release the device."""
        pass

    @abstractmethod
    def frames(self) -> Iterator[Frame]:
        """Iterator over the frames of the current session."""
        pass

    def restart(self) -> None:
        """Stop and start again, beginning a new session."""
        self.stop()
        self.start()

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.stop()
        return False


class ArrayFrameSource(FrameSource):
    """Frame source over in-memory images, optionally repeating them forever."""

    def __init__(self, images: Sequence[np.ndarray], repeat: bool = False):
        self.images: List[np.ndarray] = list(images)
        self.repeat = repeat
        self._running = False

    def request_permission(self) -> bool:
        return True

    def start(self) -> None:
        self._running = True

    def stop(self) -> None:
        self._running = False

    def frames(self) -> Iterator[Frame]:
        index = 0
        while self._running and self.images:
            for image in self.images:
                if not self._running:
                    return
                yield Frame(image=image, index=index, timestamp_ms=time.monotonic() * 1000.0)
                index += 1
            if not self.repeat:
                return


class VideoFileFrameSource(FrameSource):
    """
    Frame source reading a recorded video file.

    Useful for replaying a capture through the live pipeline.
    """

    def __init__(self, video_path: str, loop: bool = False):
        """
        Initialize the source.

        Args:
            video_path: Path to the video file.
            loop: Rewind to the first frame when the end is reached.
        """
        self.video_path = Path(video_path)
        self.loop = loop
        self._cap = None

    def request_permission(self) -> bool:
        cap = cv2.VideoCapture(str(self.video_path))
        try:
            return cap.isOpened()
        finally:
            cap.release()

    def start(self) -> None:
        if self._cap is not None:
            return

        self._cap = cv2.VideoCapture(str(self.video_path))
        if not self._cap.isOpened():
            self._cap = None
            raise FrameSourceError(f"Could not open video: {self.video_path}")

        logger.debug(f"Opened video: {self.video_path}")

    def stop(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.debug(f"Closed video: {self.video_path}")

    def frames(self) -> Iterator[Frame]:
        if self._cap is None:
            self.start()

        index = 0
        while self._cap is not None:
            ret, image = self._cap.read()
            if not ret:
                if self.loop and index > 0:
                    self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                    continue
                return

            timestamp_ms = self._cap.get(cv2.CAP_PROP_POS_MSEC)
            yield Frame(image=image, index=index, timestamp_ms=timestamp_ms)
            index += 1


class CameraFrameSource(FrameSource, LoggerMixin):
    """
    Live camera source that keeps only the most recent frame.

    Capture runs in a background thread. ``frames()`` always hands out the
    newest captured frame, so frames produced while the consumer is busy are
    dropped instead of queued.
    """

    def __init__(
        self,
        device_index: int = 0,
        width: Optional[int] = None,
        height: Optional[int] = None,
        max_read_failures: int = 30,
        frame_timeout: float = 1.0,
    ):
        """
        Initialize the camera source.

        Args:
            device_index: OpenCV device index.
            width: Requested capture width (driver may ignore it).
            height: Requested capture height (driver may ignore it).
            max_read_failures: Consecutive failed reads before the camera is
                considered lost.
            frame_timeout: Seconds ``frames()`` waits for a new frame.
        """
        self.device_index = device_index
        self.width = width
        self.height = height
        self.max_read_failures = max_read_failures
        self.frame_timeout = frame_timeout

        self._cap = None
        self._thread: Optional[threading.Thread] = None
        self._cond = threading.Condition()
        self._running = False
        self._latest: Optional[Frame] = None
        self._error: Optional[str] = None

    def request_permission(self) -> bool:
        if self._cap is not None:
            return True
        cap = cv2.VideoCapture(self.device_index)
        try:
            granted = cap.isOpened()
        finally:
            cap.release()
        if not granted:
            self.logger.warning(f"Camera {self.device_index} could not be opened")
        return granted

    def start(self) -> None:
        if self._running:
            return

        cap = cv2.VideoCapture(self.device_index)
        if not cap.isOpened():
            cap.release()
            raise FrameSourceError(f"Could not open camera {self.device_index}")

        if self.width:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        self._cap = cap
        with self._cond:
            self._running = True
            self._latest = None
            self._error = None

        self._thread = threading.Thread(
            target=self._capture_loop,
            name=f"camera-{self.device_index}",
            daemon=True,
        )
        self._thread.start()
        self.logger.info(f"Camera {self.device_index} started")

    def stop(self) -> None:
        with self._cond:
            was_running = self._running
            self._running = False
            self._cond.notify_all()

        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None

        if self._cap is not None:
            self._cap.release()
            self._cap = None

        if was_running:
            self.logger.info(f"Camera {self.device_index} stopped")

    def _capture_loop(self) -> None:
        index = 0
        failures = 0
        while True:
            with self._cond:
                if not self._running:
                    return
            ret, image = self._cap.read()
            if not ret:
                failures += 1
                if failures >= self.max_read_failures:
                    with self._cond:
                        self._error = f"Camera {self.device_index} stopped delivering frames"
                        self._running = False
                        self._cond.notify_all()
                    self.logger.error(self._error)
                    return
                time.sleep(0.01)
                continue

            failures = 0
            frame = Frame(image=image, index=index, timestamp_ms=time.monotonic() * 1000.0)
            index += 1
            with self._cond:
                self._latest = frame
                self._cond.notify_all()

    def latest(self) -> Optional[Frame]:
        """Most recent captured frame, if any."""
        with self._cond:
            return self._latest

    def frames(self) -> Iterator[Frame]:
        last_index = -1
        while True:
            with self._cond:
                self._cond.wait_for(
                    lambda: not self._running
                    or (self._latest is not None and self._latest.index > last_index),
                    timeout=self.frame_timeout,
                )
                if self._error:
                    raise FrameSourceError(self._error)
                if not self._running:
                    return
                frame = self._latest
            if frame is None or frame.index <= last_index:
                continue
            last_index = frame.index
            yield frame
