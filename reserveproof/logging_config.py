"""
Logging configuration for ReserveProof.

Provides centralized structured logging setup with JSON output for production
and human-readable output for development. Supports correlation IDs for
tracing a build or verification run across components.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict


# Context variable for correlation ID
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add correlation ID to log events if present in context.

    Args:
        logger: Logger instance
        method_name: Name of the logging method
        event_dict: Event dictionary to modify

    Returns:
        Modified event dictionary with correlation_id if available
    """
    correlation_id = correlation_id_var.get()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for the current context.

    Args:
        correlation_id: Optional correlation ID. If None, generates a new UUID.

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear correlation ID from the current context."""
    correlation_id_var.set(None)


def get_correlation_id() -> Optional[str]:
    """
    Get the current correlation ID from context.

    Returns:
        Current correlation ID or None if not set
    """
    return correlation_id_var.get()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = True,
) -> None:
    """
    Configure structured logging for ReserveProof.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs only to stderr.
        json_format: If True, use JSON format. If False, use human-readable format.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(stderr_handler)

    processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Structured logger instance.
    """
    if name.startswith("reserveproof"):
        return structlog.get_logger(name)
    return structlog.get_logger(f"reserveproof.{name}")


# Convenience functions for common logging patterns

def log_merkle_root_computation(
    logger: structlog.stdlib.BoundLogger,
    entry_count: int,
    depth: int,
    merkle_root: str,
    duration_ms: float,
    **kwargs: Any,
) -> None:
    """
    Log a Merkle root computation.

    Args:
        logger: Logger instance
        entry_count: Number of entries committed in layer 0
        depth: Number of layers in the tree (leaves through root)
        merkle_root: Computed Merkle root (decimal encoded)
        duration_ms: Computation duration in milliseconds
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "merkle_root_computation",
        "entry_count": entry_count,
        "depth": depth,
        "merkle_root": merkle_root,
        "duration_ms": duration_ms,
    }

    log_data.update(kwargs)

    logger.info("merkle_root_computation", **log_data)


def log_merkle_verification(
    logger: structlog.stdlib.BoundLogger,
    identifier: str,
    merkle_path_valid: bool,
    final_root_valid: bool,
    duration_ms: float,
    **kwargs: Any,
) -> None:
    """
    Log a membership proof verification.

    Args:
        logger: Logger instance
        identifier: Identifier whose membership was checked
        merkle_path_valid: Whether the recomputed path matched the proof root
        final_root_valid: Whether the timestamp binding matched the final root
        duration_ms: Verification duration in milliseconds
        **kwargs: Additional context to log
    """
    success = merkle_path_valid and final_root_valid
    log_data: Dict[str, Any] = {
        "event_type": "merkle_verification",
        "identifier": identifier,
        "merkle_path_valid": merkle_path_valid,
        "final_root_valid": final_root_valid,
        "success": success,
        "duration_ms": duration_ms,
    }

    log_data.update(kwargs)

    if success:
        logger.info("merkle_verification", **log_data)
    else:
        logger.warning("merkle_verification", **log_data)


def log_snapshot_operation(
    logger: structlog.stdlib.BoundLogger,
    path: str,
    operation: str,
    entry_count: Optional[int] = None,
    size_bytes: Optional[int] = None,
    status: str = "started",
    **kwargs: Any,
) -> None:
    """
    Log a snapshot operation.

    Args:
        logger: Logger instance
        path: Snapshot file path
        operation: Operation type (save, load)
        entry_count: Number of entries in the snapshot
        size_bytes: Snapshot size in bytes
        status: Operation status (started, completed, failed)
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "snapshot_operation",
        "path": path,
        "operation": operation,
        "status": status,
    }

    if entry_count is not None:
        log_data["entry_count"] = entry_count
    if size_bytes is not None:
        log_data["size_bytes"] = size_bytes

    log_data.update(kwargs)

    if status == "started":
        logger.debug(f"snapshot_{operation}_started", **log_data)
    elif status == "completed":
        logger.info(f"snapshot_{operation}_completed", **log_data)
    elif status == "failed":
        logger.error(f"snapshot_{operation}_failed", **log_data)
    else:
        logger.debug(f"snapshot_{operation}_progress", **log_data)
