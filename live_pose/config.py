"""Configuration for the live pose pipeline."""

import logging
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from live_pose.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.yaml"

# Model input resolution used by the camera-to-tensor bridge
INPUT_TENSOR_WIDTH = 152
INPUT_TENSOR_HEIGHT = 200
INPUT_TENSOR_DEPTH = 3

MIN_KEYPOINT_SCORE = 0.7

VALID_ARCHITECTURES = ("MobileNetV1",)
VALID_OUTPUT_STRIDES = (8, 16)
VALID_MULTIPLIERS = (0.5, 0.75, 1.0)
VALID_QUANT_BYTES = (1, 2, 4)


class CameraFacing(Enum):
    """Which camera of the device feeds the pipeline."""
    FRONT = "front"
    BACK = "back"

    def toggle(self) -> "CameraFacing":
        """Return the opposite facing mode."""
        if self is CameraFacing.FRONT:
            return CameraFacing.BACK
        return CameraFacing.FRONT


@dataclass(frozen=True)
class ModelConfig:
    """
    Load-time configuration of the pose model.

    These values are fixed for a loaded model and cannot be changed per call.

    Attributes:
        backend: Pose backend name ("posenet" or "mediapipe").
        architecture: Network architecture identifier.
        output_stride: Output stride of the network.
        input_width: Model input width in pixels.
        input_height: Model input height in pixels.
        depth: Number of input channels.
        multiplier: Depth multiplier of the MobileNet convolutions.
        quant_bytes: Bytes per weight (1, 2 or 4).
        flip_horizontal: Mirror keypoint x coordinates (for front cameras).
        model_path: Explicit path to the model file.
        model_dir: Directory searched for the model file when no path is given.
    """
    backend: str = "posenet"
    architecture: str = "MobileNetV1"
    output_stride: int = 16
    input_width: int = INPUT_TENSOR_WIDTH
    input_height: int = INPUT_TENSOR_HEIGHT
    depth: int = INPUT_TENSOR_DEPTH
    multiplier: float = 0.75
    quant_bytes: int = 2
    flip_horizontal: bool = False
    model_path: Optional[str] = None
    model_dir: str = "models"


@dataclass(frozen=True)
class CameraConfig:
    """
    Camera settings.

    Attributes:
        facing: Initial facing mode.
        front_index: OpenCV device index of the front camera.
        back_index: OpenCV device index of the back camera.
        texture_width: Requested capture width.
        texture_height: Requested capture height.
        crop_to_aspect: Center-crop frames to the model aspect ratio before resizing.
    """
    facing: CameraFacing = CameraFacing.FRONT
    front_index: int = 0
    back_index: int = 1
    texture_width: int = 1080
    texture_height: int = 1920
    crop_to_aspect: bool = False

    def device_index(self, facing: Optional[CameraFacing] = None) -> int:
        """OpenCV device index for a facing mode."""
        facing = facing or self.facing
        if facing is CameraFacing.FRONT:
            return self.front_index
        return self.back_index


@dataclass(frozen=True)
class RenderConfig:
    """Overlay settings."""
    min_score: float = MIN_KEYPOINT_SCORE
    autorender: bool = True
    window_name: str = "Live Pose (q to quit, c to switch camera)"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""
    model: ModelConfig = field(default_factory=ModelConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary (enums as their values)."""
        data = asdict(self)
        data["camera"]["facing"] = self.camera.facing.value
        return data


def validate_model_config(config: ModelConfig) -> ModelConfig:
    """
    Check that a model configuration describes a loadable PoseNet model.

    Args:
        config: Model configuration to check.

    Returns:
        The same configuration.

    Raises:
        ConfigError: If any value is outside the supported set.
    """
    if config.architecture not in VALID_ARCHITECTURES:
        raise ConfigError(
            f"Unsupported architecture {config.architecture!r}, "
            f"expected one of {VALID_ARCHITECTURES}"
        )
    if config.output_stride not in VALID_OUTPUT_STRIDES:
        raise ConfigError(
            f"Invalid output stride {config.output_stride}, "
            f"expected one of {VALID_OUTPUT_STRIDES}"
        )
    if config.multiplier not in VALID_MULTIPLIERS:
        raise ConfigError(
            f"Invalid multiplier {config.multiplier}, "
            f"expected one of {VALID_MULTIPLIERS}"
        )
    if config.quant_bytes not in VALID_QUANT_BYTES:
        raise ConfigError(
            f"Invalid quant bytes {config.quant_bytes}, "
            f"expected one of {VALID_QUANT_BYTES}"
        )
    if config.input_width <= 0 or config.input_height <= 0 or config.depth <= 0:
        raise ConfigError(
            f"Invalid input resolution {config.input_width}x{config.input_height}x{config.depth}"
        )
    return config


def _section(cls, raw: Any, name: str):
    """Build a config dataclass from a YAML mapping, ignoring unknown keys."""
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")

    known = {f.name for f in fields(cls)}
    kwargs = {k: v for k, v in raw.items() if k in known}
    unknown = set(raw) - known
    if unknown:
        logger.debug(f"Ignoring unknown keys in '{name}': {sorted(unknown)}")

    if cls is CameraConfig and "facing" in kwargs:
        try:
            kwargs["facing"] = CameraFacing(str(kwargs["facing"]).lower())
        except ValueError:
            raise ConfigError(f"Invalid camera facing: {kwargs['facing']!r}")

    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigError(f"Invalid config section '{name}': {e}")


def config_from_dict(raw: Dict[str, Any]) -> AppConfig:
    """
    Build an AppConfig from a parsed configuration mapping.

    Args:
        raw: Mapping with optional "model", "camera", "render" and "logging" sections.

    Returns:
        AppConfig with defaults for anything not given.
    """
    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping")

    config = AppConfig(
        model=_section(ModelConfig, raw.get("model"), "model"),
        camera=_section(CameraConfig, raw.get("camera"), "camera"),
        render=_section(RenderConfig, raw.get("render"), "render"),
        logging=_section(LoggingConfig, raw.get("logging"), "logging"),
    )
    validate_model_config(config.model)
    if not 0.0 <= config.render.min_score <= 1.0:
        raise ConfigError(f"render.min_score must be in [0, 1], got {config.render.min_score}")
    return config


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load configuration from a YAML file; defaults when the file does not exist."""
    config_file = Path(config_path)
    if not config_file.exists():
        logger.debug(f"No config file at {config_file}, using defaults")
        return AppConfig()

    with open(config_file) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse {config_file}: {e}")

    return config_from_dict(raw or {})
