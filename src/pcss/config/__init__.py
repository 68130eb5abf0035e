"""Configuration management for pcss."""

from .profile import ConnectionProfile, load_profile, split_address
from .settings import (
    ConnectionConfig,
    JobsConfig,
    LoggingConfig,
    PcssConfig,
    TunnelConfig,
    load_config,
)

__all__ = [
    "ConnectionProfile",
    "load_profile",
    "split_address",
    "PcssConfig",
    "ConnectionConfig",
    "JobsConfig",
    "TunnelConfig",
    "LoggingConfig",
    "load_config",
]
