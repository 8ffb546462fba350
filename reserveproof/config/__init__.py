"""
Configuration management for ReserveProof.

Handles loading and validation of configuration files.
"""

from reserveproof.config.settings import (
    HashConfig,
    LoggingConfig,
    PerformanceConfig,
    ReserveProofConfig,
    StorageConfig,
    get_default_config,
    get_default_config_path,
    load_config,
)

__all__ = [
    "HashConfig",
    "LoggingConfig",
    "PerformanceConfig",
    "ReserveProofConfig",
    "StorageConfig",
    "get_default_config",
    "get_default_config_path",
    "load_config",
]
