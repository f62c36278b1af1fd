"""Camera and frame source abstractions."""

from live_pose.camera.frame_source import (
    ArrayFrameSource,
    CameraFrameSource,
    Frame,
    FrameSource,
    VideoFileFrameSource,
)

__all__ = [
    "Frame",
    "FrameSource",
    "ArrayFrameSource",
    "CameraFrameSource",
    "VideoFileFrameSource",
]
