"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across url key resolution, tier price
reconciliation and the import run itself.

Usage:
    from product_import.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    # Log a completed resolution pass
    log_operation(
        logger,
        operation="create_url_keys_for_new_products",
        outcome="success",
        product_count=120,
        generated_count=118,
    )

    # Log a pass that left products in error
    log_operation(
        logger,
        operation="create_url_keys_for_existing_products",
        outcome="product_errors",
        level=logging.WARNING,
        failed_count=2,
    )
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance with the 'product_import.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'product_import.services.url_key_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"product_import.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging,
    so its keys must not clash with LogRecord attributes ("name", "message").

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "update_tier_prices")
        outcome: Outcome description (e.g., "success", "product_errors")
        level: Log level (default: INFO). Use DEBUG for verbose/frequent logs.
        **context: Additional context fields (counts, ids, error details)
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    details = ", ".join(f"{key}={value}" for key, value in context.items())
    message = f"{operation}: {outcome}"
    if details:
        message = f"{message} ({details})"
    logger.log(level, message, extra=extra)
