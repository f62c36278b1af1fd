"""Construction of pose models by backend name."""

from typing import Optional

from live_pose.config import ModelConfig
from live_pose.errors import ConfigError
from live_pose.pose.base import PoseModel

BACKENDS = ("posenet", "mediapipe")


def create_pose_model(config: Optional[ModelConfig] = None) -> PoseModel:
    """
    Create (but do not load) the pose model named by ``config.backend``.

    Raises:
        ConfigError: If the backend name is unknown.
    """
    config = config or ModelConfig()
    if config.backend == "posenet":
        from live_pose.pose.posenet_backend import PoseNetBackend

        return PoseNetBackend(config)
    if config.backend == "mediapipe":
        from live_pose.pose.mediapipe_backend import MediaPipeBackend

        return MediaPipeBackend(config)
    raise ConfigError(f"Unknown pose backend: {config.backend!r}, expected one of {BACKENDS}")
