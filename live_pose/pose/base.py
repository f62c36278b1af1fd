"""Abstract base class for pose estimation backends."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from live_pose.config import ModelConfig
from live_pose.errors import InferenceError, TensorReleasedError
from live_pose.tensor.converter import InputTensor

logger = logging.getLogger(__name__)

# PoseNet part names, in model output order
PART_NAMES = [
    "nose",
    "leftEye",
    "rightEye",
    "leftEar",
    "rightEar",
    "leftShoulder",
    "rightShoulder",
    "leftElbow",
    "rightElbow",
    "leftWrist",
    "rightWrist",
    "leftHip",
    "rightHip",
    "leftKnee",
    "rightKnee",
    "leftAnkle",
    "rightAnkle",
]

NUM_KEYPOINTS = len(PART_NAMES)


@dataclass(frozen=True)
class Keypoint:
    """
    A single detected body part.

    Attributes:
        part: Part name (e.g., "leftShoulder").
        x: X coordinate in tensor space.
        y: Y coordinate in tensor space.
        score: Detection confidence (0-1).
        index: Position of the part in the model's part list.
    """
    part: str
    x: float
    y: float
    score: float
    index: int = -1

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "part": self.part,
            "position": {"x": self.x, "y": self.y},
            "score": self.score,
        }


@dataclass(frozen=True)
class Pose:
    """
    Keypoints estimated for one person in one frame.

    Attributes:
        keypoints: Keypoints in model part order.
        score: Overall pose confidence.
    """
    keypoints: Tuple[Keypoint, ...]
    score: float

    @classmethod
    def from_keypoints(cls, keypoints) -> "Pose":
        """Build a pose whose score is the mean keypoint score."""
        keypoints = tuple(keypoints)
        score = float(np.mean([kp.score for kp in keypoints])) if keypoints else 0.0
        return cls(keypoints=keypoints, score=score)

    def get_keypoint(self, part: str) -> Optional[Keypoint]:
        """Get a keypoint by part name."""
        for kp in self.keypoints:
            if kp.part == part:
                return kp
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "score": self.score,
            "keypoints": [kp.to_dict() for kp in self.keypoints],
        }


class PoseModel(ABC):
    """
    Abstract base class for pose estimation backends.

    A model is configured and loaded once; ``estimate`` then runs on one
    input tensor at a time. The caller keeps ownership of the tensor.
    """

    def __init__(self, config: Optional[ModelConfig] = None):
        """
        Initialize the pose model.

        Args:
            config: Load-time model configuration.
        """
        self.config = config or ModelConfig()
        self._is_initialized = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the pose estimation backend."""
        pass

    @property
    def keypoint_names(self) -> List[str]:
        """List of keypoint names produced by this backend."""
        return list(PART_NAMES)

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def input_shape(self) -> Tuple[int, int, int]:
        """Expected input tensor shape (H, W, C)."""
        return (self.config.input_height, self.config.input_width, self.config.depth)

    @abstractmethod
    def initialize(self) -> None:
        """
        Load the model.

        This should be called once before estimating any poses.
        """
        pass

    @abstractmethod
    async def estimate(self, tensor: InputTensor) -> Pose:
        """
        Estimate a single pose from one input tensor.

        Args:
            tensor: Input tensor of shape ``input_shape``.

        Returns:
            Pose with one keypoint per part.

        Raises:
            InferenceError: If the tensor is malformed or the model fails.
        """
        pass

    def check_input(self, tensor: InputTensor) -> np.ndarray:
        """Return the tensor's array, or raise InferenceError if it cannot be used."""
        if not self._is_initialized:
            raise InferenceError(f"{self.name} model is not loaded")
        try:
            data = tensor.data
        except TensorReleasedError as e:
            raise InferenceError(str(e))
        except AttributeError:
            raise InferenceError(f"Expected an InputTensor, got {type(tensor).__name__}")
        if tuple(data.shape) != self.input_shape:
            raise InferenceError(
                f"Expected input shape {self.input_shape}, got {tuple(data.shape)}"
            )
        return data

    def cleanup(self) -> None:
        """
        Clean up resources.

        Override this method to release any resources held by the backend.
        """
        self._is_initialized = False

    def __enter__(self):
        """Context manager entry."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.cleanup()
        return False
