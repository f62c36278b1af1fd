"""PoseNet (MobileNetV1) pose estimation backend on TensorFlow Lite."""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from live_pose.config import ModelConfig, validate_model_config
from live_pose.errors import ConfigError, InferenceError
from live_pose.pose.base import NUM_KEYPOINTS, Keypoint, Pose, PoseModel
from live_pose.pose.decode import decode_single_pose, sigmoid
from live_pose.tensor.converter import InputTensor

logger = logging.getLogger(__name__)


def model_filename(config: ModelConfig) -> str:
    """File name of the PoseNet model matching a configuration."""
    multiplier = int(round(config.multiplier * 100))
    return (
        f"posenet_mobilenet_v1_{multiplier:03d}"
        f"_stride{config.output_stride}_q{config.quant_bytes}.tflite"
    )


class PoseNetBackend(PoseModel):
    """
    Single-person PoseNet running in a TFLite interpreter.

    Architecture, stride, resolution, multiplier and quantization are taken
    from the ModelConfig at load time. Inference runs in a worker thread so
    ``estimate`` suspends the caller instead of blocking the event loop.
    """

    def __init__(self, config: Optional[ModelConfig] = None, num_threads: Optional[int] = None):
        """
        Initialize the PoseNet backend.

        Args:
            config: Load-time model configuration.
            num_threads: Interpreter thread count (None lets TFLite decide).
        """
        super().__init__(validate_model_config(config or ModelConfig()))
        self.num_threads = num_threads
        self._interpreter = None
        self._input_detail = None
        self._heatmap_index: Optional[int] = None
        self._offsets_index: Optional[int] = None

    @property
    def name(self) -> str:
        """Name of the pose estimation backend."""
        return "posenet"

    def model_path(self) -> Path:
        """Resolve the model file from the configuration."""
        if self.config.model_path:
            return Path(self.config.model_path)
        return Path(self.config.model_dir) / model_filename(self.config)

    def initialize(self) -> None:
        """Load the TFLite model and locate its heatmap/offset outputs."""
        if self._is_initialized:
            return

        path = self.model_path()
        if not path.exists():
            raise ConfigError(f"PoseNet model not found: {path}")

        try:
            import tensorflow as tf
        except ImportError as e:
            raise ImportError(
                f"tensorflow package error: {e}. "
                "Install with: pip install tensorflow"
            )

        interpreter = tf.lite.Interpreter(model_path=str(path), num_threads=self.num_threads)
        interpreter.allocate_tensors()
        self._attach(interpreter)

        logger.info(
            f"PoseNet loaded from {path} "
            f"({self.config.architecture}, stride {self.config.output_stride}, "
            f"multiplier {self.config.multiplier}, {self.config.quant_bytes}-byte weights)"
        )

    def _attach(self, interpreter) -> None:
        """Bind an allocated interpreter and find the output tensors by channel count."""
        self._input_detail = interpreter.get_input_details()[0]

        for detail in interpreter.get_output_details():
            channels = int(detail["shape"][-1])
            if channels == NUM_KEYPOINTS and self._heatmap_index is None:
                self._heatmap_index = detail["index"]
            elif channels == 2 * NUM_KEYPOINTS and self._offsets_index is None:
                self._offsets_index = detail["index"]

        if self._heatmap_index is None or self._offsets_index is None:
            raise ConfigError("Model does not expose PoseNet heatmap and offset outputs")

        self._interpreter = interpreter
        self._is_initialized = True

    @property
    def model_input_size(self) -> Tuple[int, int]:
        """(width, height) the interpreter expects."""
        shape = self._input_detail["shape"]
        return int(shape[2]), int(shape[1])

    def _preprocess(self, data: np.ndarray) -> np.ndarray:
        model_w, model_h = self.model_input_size
        image = data.astype(np.float32)
        if (model_w, model_h) != (self.config.input_width, self.config.input_height):
            image = cv2.resize(image, (model_w, model_h), interpolation=cv2.INTER_LINEAR)

        if self._input_detail["dtype"] == np.uint8:
            return np.clip(image, 0, 255).astype(np.uint8)[np.newaxis]
        # MobileNet expects [-1, 1]
        return (image / 127.5 - 1.0)[np.newaxis].astype(np.float32)

    def _run(self, batch: np.ndarray) -> Pose:
        self._interpreter.set_tensor(self._input_detail["index"], batch)
        self._interpreter.invoke()
        heatmaps = sigmoid(self._interpreter.get_tensor(self._heatmap_index).astype(np.float32))
        offsets = self._interpreter.get_tensor(self._offsets_index).astype(np.float32)

        model_w, model_h = self.model_input_size
        pose = decode_single_pose(
            heatmaps,
            offsets,
            output_stride=self.config.output_stride,
            input_size=(model_w, model_h),
        )
        return self._to_tensor_space(pose, model_w, model_h)

    def _to_tensor_space(self, pose: Pose, model_w: int, model_h: int) -> Pose:
        scale_x = self.config.input_width / model_w
        scale_y = self.config.input_height / model_h
        width = self.config.input_width
        keypoints = []
        for kp in pose.keypoints:
            x = kp.x * scale_x
            if self.config.flip_horizontal:
                x = (width - 1) - x
            keypoints.append(Keypoint(part=kp.part, x=x, y=kp.y * scale_y, score=kp.score, index=kp.index))
        return Pose(keypoints=tuple(keypoints), score=pose.score)

    async def estimate(self, tensor: InputTensor) -> Pose:
        data = self.check_input(tensor)
        batch = self._preprocess(data)
        try:
            return await asyncio.to_thread(self._run, batch)
        except InferenceError:
            raise
        except (RuntimeError, ValueError, FloatingPointError) as e:
            raise InferenceError(f"PoseNet inference failed: {e}")

    def cleanup(self) -> None:
        """Drop the interpreter."""
        self._interpreter = None
        self._input_detail = None
        self._heatmap_index = None
        self._offsets_index = None
        self._is_initialized = False
        logger.debug("PoseNet interpreter released")
