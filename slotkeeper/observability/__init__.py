"""
Observability module: structured logging, pass IDs, metrics.

Usage:
    from slotkeeper.observability import get_logger, PassContext

    logger = get_logger(__name__)

    with PassContext("optimize"):
        logger.info("Gap detected", extra={"minutes": 40})
"""

from .context import PassContext, get_pass_id, set_pass_id
from .logging import HumanFormatter, JSONFormatter, configure_logging, get_logger
from .metrics import REGISTRY

__all__ = [
    "get_logger",
    "configure_logging",
    "JSONFormatter",
    "HumanFormatter",
    "PassContext",
    "get_pass_id",
    "set_pass_id",
    "REGISTRY",
]
