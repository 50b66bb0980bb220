"""
Observability module: structured logging and reconciliation pass IDs.

Usage:
    import logging

    from focus.observability import PassContext

    logger = logging.getLogger(__name__)

    with PassContext() as ctx:
        logger.info("Reconciling", extra={"user_id": 42})
"""

from .context import PassContext, generate_pass_id, get_pass_id, set_pass_id
from .logging import (
    HumanFormatter,
    JSONFormatter,
    configure_log_file,
    configure_logging,
)

__all__ = [
    # Logging
    "configure_logging",
    "configure_log_file",
    "JSONFormatter",
    "HumanFormatter",
    # Context
    "PassContext",
    "generate_pass_id",
    "get_pass_id",
    "set_pass_id",
]
