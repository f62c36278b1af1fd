"""Frame-to-tensor conversion and tensor lifecycle."""

from live_pose.tensor.converter import InputTensor, TensorConverter, TensorTracker, default_tracker

__all__ = ["InputTensor", "TensorConverter", "TensorTracker", "default_tracker"]
