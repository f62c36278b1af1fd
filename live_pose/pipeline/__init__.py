"""Pipeline module: the inference loop and the live session around it."""

from live_pose.pipeline.inference_loop import InferenceLoop, LatestPoseCell, LoopState, LoopStats
from live_pose.pipeline.session import LiveSession

__all__ = ["InferenceLoop", "LatestPoseCell", "LoopState", "LoopStats", "LiveSession"]
