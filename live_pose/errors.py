"""Exception types raised by the live pose pipeline."""


class LivePoseError(Exception):
    """Base class for all live pose errors."""


class ConversionError(LivePoseError):
    """A frame could not be converted into a model input tensor."""


class InferenceError(LivePoseError):
    """The pose model failed to produce a pose for a tensor."""


class PermissionDenied(LivePoseError):
    """The camera could not be accessed."""


class FrameSourceError(LivePoseError):
    """The camera stopped delivering frames after it was opened."""


class TensorReleasedError(LivePoseError):
    """An input tensor was used or released after it had been released."""


class LoopBusyError(LivePoseError):
    """An inference step was started while another one was in flight."""


class ConfigError(LivePoseError):
    """Invalid model or application configuration."""
