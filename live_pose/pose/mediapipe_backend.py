"""MediaPipe Pose estimation backend using the Tasks API."""

import asyncio
import logging
from typing import Optional

import numpy as np

from live_pose.config import ModelConfig
from live_pose.errors import InferenceError
from live_pose.pose.base import PART_NAMES, Keypoint, Pose, PoseModel
from live_pose.tensor.converter import InputTensor

logger = logging.getLogger(__name__)

# PoseNet part -> MediaPipe Pose Landmarker landmark index (33-landmark model)
MEDIAPIPE_LANDMARK_INDEX = {
    "nose": 0,
    "leftEye": 2,
    "rightEye": 5,
    "leftEar": 7,
    "rightEar": 8,
    "leftShoulder": 11,
    "rightShoulder": 12,
    "leftElbow": 13,
    "rightElbow": 14,
    "leftWrist": 15,
    "rightWrist": 16,
    "leftHip": 23,
    "rightHip": 24,
    "leftKnee": 25,
    "rightKnee": 26,
    "leftAnkle": 27,
    "rightAnkle": 28,
}


class MediaPipeBackend(PoseModel):
    """
    MediaPipe Pose estimation backend using the Tasks API.

    MediaPipe's 33 landmarks are reduced to the 17 PoseNet parts so the rest
    of the pipeline (skeleton table, renderer) is backend-agnostic.
    """

    MODEL_URLS = {
        0: "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_lite/float16/1/pose_landmarker_lite.task",
        1: "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_full/float16/1/pose_landmarker_full.task",
        2: "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_heavy/float16/1/pose_landmarker_heavy.task",
    }

    def __init__(
        self,
        config: Optional[ModelConfig] = None,
        model_complexity: int = 0,
        min_detection_confidence: float = 0.5,
    ):
        """
        Initialize the MediaPipe backend.

        Args:
            config: Load-time model configuration (input resolution, model path).
            model_complexity: Model complexity (0=lite, 1=full, 2=heavy).
            min_detection_confidence: Minimum confidence for pose detection.
        """
        super().__init__(config)
        self.model_complexity = model_complexity
        self.min_detection_confidence = min_detection_confidence
        self._landmarker = None
        self._mp = None

    @property
    def name(self) -> str:
        """Name of the pose estimation backend."""
        return "mediapipe"

    def initialize(self) -> None:
        """Initialize the MediaPipe Pose Landmarker."""
        if self._is_initialized:
            return

        try:
            import mediapipe as mp
            from mediapipe.tasks import python
            from mediapipe.tasks.python import vision
        except ImportError as e:
            raise ImportError(
                f"mediapipe package error: {e}. "
                "Install with: pip install mediapipe"
            )

        self._mp = mp
        model_path = self._get_model_path()

        base_options = python.BaseOptions(model_asset_path=model_path)
        options = vision.PoseLandmarkerOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.IMAGE,
            num_poses=1,
            min_pose_detection_confidence=self.min_detection_confidence,
            output_segmentation_masks=False,
        )

        self._landmarker = vision.PoseLandmarker.create_from_options(options)
        self._is_initialized = True
        logger.info("MediaPipe Pose Landmarker initialized successfully")

    def _get_model_path(self) -> str:
        """Download and return path to the pose landmarker model."""
        import urllib.request
        from pathlib import Path

        if self.config.model_path:
            return self.config.model_path

        url = self.MODEL_URLS.get(self.model_complexity, self.MODEL_URLS[0])
        cache_dir = Path.home() / ".cache" / "mediapipe"
        cache_dir.mkdir(parents=True, exist_ok=True)
        model_path = cache_dir / url.rsplit("/", 1)[-1]

        if not model_path.exists():
            logger.info(f"Downloading MediaPipe model from {url}...")
            urllib.request.urlretrieve(url, model_path)
            logger.info(f"Model downloaded to {model_path}")

        return str(model_path)

    def _to_pose(self, detection_result) -> Pose:
        if not detection_result.pose_landmarks:
            raise InferenceError("No pose detected")

        landmarks = detection_result.pose_landmarks[0]
        w, h = self.config.input_width, self.config.input_height

        keypoints = []
        for i, part in enumerate(PART_NAMES):
            lm = landmarks[MEDIAPIPE_LANDMARK_INDEX[part]]
            score = getattr(lm, "visibility", None)
            keypoints.append(
                Keypoint(
                    part=part,
                    x=float(lm.x) * w,
                    y=float(lm.y) * h,
                    score=float(score) if score is not None else 0.0,
                    index=i,
                )
            )
        return Pose.from_keypoints(keypoints)

    async def estimate(self, tensor: InputTensor) -> Pose:
        data = self.check_input(tensor)
        rgb = np.ascontiguousarray(np.clip(data, 0, 255).astype(np.uint8))
        mp_image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)

        try:
            detection_result = await asyncio.to_thread(self._landmarker.detect, mp_image)
        except RuntimeError as e:
            raise InferenceError(f"MediaPipe inference failed: {e}")

        return self._to_pose(detection_result)

    def cleanup(self) -> None:
        """Clean up MediaPipe resources."""
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
        self._is_initialized = False
        logger.debug("MediaPipe Pose Landmarker resources cleaned up")
