"""OpenClaw gateway configuration."""

from .config_builder import (
    WORKSPACE_DIR,
    ChannelsConfig,
    UserConfiguration,
    build_environment_variables,
    generate_openclaw_config,
)

__all__ = [
    "WORKSPACE_DIR",
    "ChannelsConfig",
    "UserConfiguration",
    "build_environment_variables",
    "generate_openclaw_config",
]
