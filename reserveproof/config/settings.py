"""
Configuration management for ReserveProof.

Loads YAML configuration from file with sensible defaults and validation.
Supports environment variable substitution using ${ENV_VAR} syntax.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from reserveproof.exceptions import InvalidConfigurationError
from reserveproof.logging_config import get_logger
from reserveproof.merkle.hasher import available_hashers

logger = get_logger(__name__)


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.

    Supports ${ENV_VAR} syntax with optional default values: ${ENV_VAR:default}

    Args:
        value: Configuration value (string, dict, list, or other)

    Returns:
        Value with environment variables expanded

    Examples:
        "${RESERVEPROOF_TREE}" -> value of RESERVEPROOF_TREE env var
        "${RESERVEPROOF_TREE:/tmp/tree.json}" -> value or "/tmp/tree.json" if not set
    """
    if isinstance(value, str):
        # Pattern matches ${VAR} or ${VAR:default}
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


@dataclass
class StorageConfig:
    """Storage configuration for snapshot and proof files."""

    tree_path: str
    proof_dir: str
    backup_count: int = 3


@dataclass
class HashConfig:
    """Hash primitive configuration."""

    function: str = "sha256"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    format: str = "console"  # "console" or "json"


@dataclass
class PerformanceConfig:
    """Performance tuning configuration."""

    parallel_threshold: int = 1024  # Layer size at which pair hashing goes parallel
    max_workers: int = 4
    max_retries: int = 3


@dataclass
class ReserveProofConfig:
    """Main ReserveProof configuration."""

    storage: StorageConfig
    hash: HashConfig = field(default_factory=HashConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)


def get_default_config_path() -> str:
    """Get the default configuration file path."""
    return os.path.expanduser("~/.reserveproof/config.yaml")


def get_default_config() -> ReserveProofConfig:
    """
    Get default configuration with sensible defaults.

    Returns:
        ReserveProofConfig: Default configuration object
    """
    home_dir = os.path.expanduser("~/.reserveproof")

    storage = StorageConfig(
        tree_path=os.path.join(home_dir, "merkle-tree.json"),
        proof_dir=os.path.join(home_dir, "proofs"),
        backup_count=3,
    )

    return ReserveProofConfig(
        storage=storage,
        hash=HashConfig(),
        logging=LoggingConfig(),
        performance=PerformanceConfig(),
    )


def load_config(config_path: Optional[str] = None) -> ReserveProofConfig:
    """
    Load configuration from YAML file with validation.

    If config file is not found, returns default configuration.
    If config file is malformed or invalid, raises InvalidConfigurationError.

    Args:
        config_path: Path to configuration file. If None, uses default path.

    Returns:
        ReserveProofConfig: Loaded and validated configuration

    Raises:
        InvalidConfigurationError: If configuration is invalid or malformed
    """
    if config_path is None:
        config_path = get_default_config_path()

    config_path = os.path.expanduser(config_path)

    if not os.path.exists(config_path):
        logger.info(f"Configuration file not found at {config_path}, using defaults")
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
        logger.debug(f"Loaded configuration from {config_path}")
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration file '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Failed to parse YAML configuration file '{config_path}': {e}"
        ) from e
    except OSError as e:
        logger.error(f"Failed to read configuration file '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Failed to read configuration file '{config_path}': {e}"
        ) from e

    if config_data is None:
        logger.info(f"Configuration file {config_path} is empty, using defaults")
        return get_default_config()

    if not isinstance(config_data, dict):
        raise InvalidConfigurationError(
            f"Configuration file '{config_path}' must contain a mapping at the top level"
        )

    config_data = _expand_env_vars(config_data)
    logger.debug("Expanded environment variables in configuration")

    try:
        config = _build_config_from_dict(config_data)
        _validate_config(config)
    except InvalidConfigurationError as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}")
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': {e}"
        ) from e

    logger.info(f"Successfully loaded and validated configuration from {config_path}")
    return config


def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config_data.get(name) or {}
    if not isinstance(section, dict):
        raise InvalidConfigurationError(f"'{name}' section must be a mapping")
    return section


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}")


def _build_config_from_dict(config_data: Dict[str, Any]) -> ReserveProofConfig:
    """
    Build ReserveProofConfig from dictionary loaded from YAML.

    Merges user configuration with defaults. Environment variable expansion
    yields strings, so numeric fields are coerced here.

    Args:
        config_data: Dictionary loaded from YAML file

    Returns:
        ReserveProofConfig: Configuration object

    Raises:
        InvalidConfigurationError: If a section or value has the wrong type
    """
    default_config = get_default_config()

    storage_data = _section(config_data, 'storage')
    storage = StorageConfig(
        tree_path=os.path.expanduser(
            str(storage_data.get('tree_path', default_config.storage.tree_path))
        ),
        proof_dir=os.path.expanduser(
            str(storage_data.get('proof_dir', default_config.storage.proof_dir))
        ),
        backup_count=_as_int(
            storage_data.get('backup_count', default_config.storage.backup_count),
            "storage backup_count",
        ),
    )

    hash_data = _section(config_data, 'hash')
    hash_config = HashConfig(
        function=str(hash_data.get('function', default_config.hash.function)),
    )

    logging_data = _section(config_data, 'logging')
    log_file = logging_data.get('file', default_config.logging.file)
    logging = LoggingConfig(
        level=str(logging_data.get('level', default_config.logging.level)),
        file=os.path.expanduser(str(log_file)) if log_file else "",
        format=str(logging_data.get('format', default_config.logging.format)),
    )

    performance_data = _section(config_data, 'performance')
    performance = PerformanceConfig(
        parallel_threshold=_as_int(
            performance_data.get('parallel_threshold', default_config.performance.parallel_threshold),
            "performance parallel_threshold",
        ),
        max_workers=_as_int(
            performance_data.get('max_workers', default_config.performance.max_workers),
            "performance max_workers",
        ),
        max_retries=_as_int(
            performance_data.get('max_retries', default_config.performance.max_retries),
            "performance max_retries",
        ),
    )

    return ReserveProofConfig(
        storage=storage,
        hash=hash_config,
        logging=logging,
        performance=performance,
    )


def _validate_config(config: ReserveProofConfig) -> None:
    """
    Validate configuration values.

    Args:
        config: Configuration to validate

    Raises:
        InvalidConfigurationError: If configuration is invalid
    """
    if not config.storage.tree_path:
        raise InvalidConfigurationError("storage tree_path cannot be empty")
    if not config.storage.proof_dir:
        raise InvalidConfigurationError("storage proof_dir cannot be empty")
    if config.storage.backup_count < 0:
        raise InvalidConfigurationError(
            f"storage backup_count must be non-negative, got {config.storage.backup_count}"
        )

    valid_hash_functions = available_hashers()
    if config.hash.function not in valid_hash_functions:
        raise InvalidConfigurationError(
            f"hash function must be one of {valid_hash_functions}, "
            f"got '{config.hash.function}'"
        )

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.logging.level.upper() not in valid_log_levels:
        raise InvalidConfigurationError(
            f"logging level must be one of {valid_log_levels}, "
            f"got '{config.logging.level}'"
        )

    valid_log_formats = ["console", "json"]
    if config.logging.format not in valid_log_formats:
        raise InvalidConfigurationError(
            f"logging format must be one of {valid_log_formats}, "
            f"got '{config.logging.format}'"
        )

    if config.performance.parallel_threshold < 2:
        raise InvalidConfigurationError(
            f"parallel_threshold must be at least 2, got {config.performance.parallel_threshold}"
        )
    if config.performance.max_workers < 1:
        raise InvalidConfigurationError(
            f"max_workers must be at least 1, got {config.performance.max_workers}"
        )
    if config.performance.max_retries < 0:
        raise InvalidConfigurationError(
            f"max_retries must be non-negative, got {config.performance.max_retries}"
        )
