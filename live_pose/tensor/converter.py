"""Conversion of camera frames into model input tensors."""

import logging
import threading
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from live_pose.camera.frame_source import Frame
from live_pose.config import INPUT_TENSOR_DEPTH, INPUT_TENSOR_HEIGHT, INPUT_TENSOR_WIDTH
from live_pose.errors import ConversionError, TensorReleasedError

logger = logging.getLogger(__name__)


class TensorTracker:
    """
    Bookkeeping of input tensor allocations.

    Every tensor created by a converter is counted here and uncounted when it
    is released, so ``live`` is the number of tensors still holding memory.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.created = 0
        self.released = 0

    @property
    def live(self) -> int:
        """Number of tensors created but not yet released."""
        with self._lock:
            return self.created - self.released

    def on_create(self) -> None:
        with self._lock:
            self.created += 1

    def on_release(self) -> None:
        with self._lock:
            self.released += 1

    def reset(self) -> None:
        with self._lock:
            self.created = 0
            self.released = 0


default_tracker = TensorTracker()


class InputTensor:
    """
    Fixed-shape model input owned by exactly one holder until released.

    ``release()`` must be called exactly once. Reading ``data`` or releasing
    again afterwards raises ``TensorReleasedError``.
    """

    def __init__(self, data: np.ndarray, tracker: Optional[TensorTracker] = None):
        self._data: Optional[np.ndarray] = data
        self._tracker = tracker
        self.shape: Tuple[int, ...] = tuple(data.shape)
        if tracker is not None:
            tracker.on_create()

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def data(self) -> np.ndarray:
        """Backing array (H, W, C)."""
        if self._data is None:
            raise TensorReleasedError("Input tensor used after release")
        return self._data

    def release(self) -> None:
        """Free the backing array."""
        if self._data is None:
            raise TensorReleasedError("Input tensor released twice")
        self._data = None
        if self._tracker is not None:
            self._tracker.on_release()

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"InputTensor(shape={self.shape}, {state})"


class TensorConverter:
    """
    Turns raw frames into InputTensors of the model's input shape.

    The caller becomes the sole owner of each returned tensor and must
    release it.
    """

    def __init__(
        self,
        width: int = INPUT_TENSOR_WIDTH,
        height: int = INPUT_TENSOR_HEIGHT,
        depth: int = INPUT_TENSOR_DEPTH,
        crop_to_aspect: bool = False,
        tracker: Optional[TensorTracker] = None,
    ):
        """
        Initialize the converter.

        Args:
            width: Target tensor width.
            height: Target tensor height.
            depth: Required channel count of input frames and output tensors.
            crop_to_aspect: Center-crop frames to width/height aspect before resizing.
            tracker: Allocation tracker; the module-level default when None.
        """
        self.width = width
        self.height = height
        self.depth = depth
        self.crop_to_aspect = crop_to_aspect
        self.tracker = tracker if tracker is not None else default_tracker

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Output tensor shape (H, W, C)."""
        return (self.height, self.width, self.depth)

    def _validate(self, image) -> np.ndarray:
        if image is None:
            raise ConversionError("Frame has no image data")
        image = np.asarray(image)
        if image.ndim != 3:
            raise ConversionError(f"Expected an (H, W, C) image, got shape {image.shape}")
        h, w, c = image.shape
        if h == 0 or w == 0:
            raise ConversionError(f"Frame is empty: {w}x{h}")
        if c != self.depth:
            raise ConversionError(f"Expected {self.depth} channels, got {c}")
        return image

    def crop_box(self, frame_width: int, frame_height: int) -> Tuple[int, int, int, int]:
        """
        Region of a frame that ends up in the tensor.

        Args:
            frame_width: Native frame width.
            frame_height: Native frame height.

        Returns:
            (x0, y0, width, height); the whole frame unless ``crop_to_aspect`` is set.
        """
        if not self.crop_to_aspect:
            return 0, 0, frame_width, frame_height
        target = self.width / self.height
        if frame_width / frame_height > target:
            new_w = max(1, int(round(frame_height * target)))
            return (frame_width - new_w) // 2, 0, new_w, frame_height
        new_h = max(1, int(round(frame_width / target)))
        return 0, (frame_height - new_h) // 2, frame_width, new_h

    def _center_crop(self, image: np.ndarray) -> np.ndarray:
        h, w = image.shape[:2]
        x0, y0, cw, ch = self.crop_box(w, h)
        return image[y0:y0 + ch, x0:x0 + cw]

    def convert(self, frame: Union[Frame, np.ndarray]) -> InputTensor:
        """
        Convert one frame into an InputTensor.

        Args:
            frame: Frame (or bare BGR image) at native resolution.

        Returns:
            InputTensor of shape (height, width, depth), int32 RGB values.

        Raises:
            ConversionError: If the frame is malformed. Nothing is allocated.
        """
        image = frame.image if isinstance(frame, Frame) else frame
        image = self._validate(image)

        if self.crop_to_aspect:
            image = self._center_crop(image)

        try:
            resized = cv2.resize(image, (self.width, self.height), interpolation=cv2.INTER_LINEAR)
            if self.depth == 3:
                resized = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)
        except cv2.error as e:
            raise ConversionError(f"Could not resize frame: {e}")

        data = np.ascontiguousarray(resized, dtype=np.int32).reshape(self.shape)
        return InputTensor(data, tracker=self.tracker)
