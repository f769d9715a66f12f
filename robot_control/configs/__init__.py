"""Machine configuration loading and validation."""

from robot_control.configs.loader import (
    CanvasPlacementConfig,
    ChannelChangeConfig,
    ConfigError,
    FeedsConfig,
    MachineConfig,
    MotionConfig,
    TravelConfig,
    WorkAreaConfig,
    ZStatesConfig,
    load_config,
)

__all__ = [
    "CanvasPlacementConfig",
    "ChannelChangeConfig",
    "ConfigError",
    "FeedsConfig",
    "MachineConfig",
    "MotionConfig",
    "TravelConfig",
    "WorkAreaConfig",
    "ZStatesConfig",
    "load_config",
]
