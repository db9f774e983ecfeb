"""
Logging configuration for Margay Core.

Provides centralized structured logging setup with JSON output for production
and human-readable output for development. Supports correlation IDs for
tracing a batch of tree operations across components.
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
    Configure structured logging for Margay Core.

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
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Structured logger instance.
    """
    if not name.startswith("margay"):
        name = f"margay.{name}"
    return structlog.get_logger(name)


# Convenience functions for common logging patterns

def log_leaf_insertion(
    logger: structlog.stdlib.BoundLogger,
    leaf_index: int,
    merkle_root: str,
    root_index: int,
    **kwargs: Any,
) -> None:
    """
    Log a successful leaf insertion.

    Args:
        logger: Logger instance
        leaf_index: Index assigned to the inserted leaf
        merkle_root: New Merkle root (hex encoded)
        root_index: History slot the root was written to
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "leaf_insertion",
        "leaf_index": leaf_index,
        "merkle_root": merkle_root,
        "root_index": root_index,
    }

    log_data.update(kwargs)

    logger.debug("leaf_insertion", **log_data)


def log_capacity_exhausted(
    logger: structlog.stdlib.BoundLogger,
    depth: int,
    next_index: int,
    requested: int = 1,
    **kwargs: Any,
) -> None:
    """
    Log a rejected insertion on a full tree.

    Args:
        logger: Logger instance
        depth: Tree depth
        next_index: Index the tree would have assigned next
        requested: Number of leaves the caller tried to insert
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "capacity_exhausted",
        "depth": depth,
        "next_index": next_index,
        "capacity": 2 ** depth,
        "requested": requested,
    }

    log_data.update(kwargs)

    logger.warning("capacity_exhausted", **log_data)


def log_state_persisted(
    logger: structlog.stdlib.BoundLogger,
    path: str,
    leaf_count: int,
    merkle_root: str,
    duration_ms: float,
    **kwargs: Any,
) -> None:
    """
    Log a tree state write.

    Args:
        logger: Logger instance
        path: State file path
        leaf_count: Number of leaves in the persisted tree
        merkle_root: Latest root at the time of the write (hex encoded)
        duration_ms: Write duration in milliseconds
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "state_persisted",
        "path": path,
        "leaf_count": leaf_count,
        "merkle_root": merkle_root,
        "duration_ms": duration_ms,
    }

    log_data.update(kwargs)

    logger.info("state_persisted", **log_data)


def log_checkpoint_signature(
    logger: structlog.stdlib.BoundLogger,
    merkle_root: str,
    leaf_count: int,
    signing_backend: str,
    duration_ms: float,
    **kwargs: Any,
) -> None:
    """
    Log a root checkpoint signature.

    Args:
        logger: Logger instance
        merkle_root: Root that was signed (hex encoded)
        leaf_count: Leaf count covered by the checkpoint
        signing_backend: Backend used for signing
        duration_ms: Signing duration in milliseconds
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "checkpoint_signature",
        "merkle_root": merkle_root,
        "leaf_count": leaf_count,
        "signing_backend": signing_backend,
        "duration_ms": duration_ms,
    }

    log_data.update(kwargs)

    logger.info("checkpoint_signature", **log_data)
