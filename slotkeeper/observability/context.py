"""
Pass context management with context variables.
"""

import contextvars
import uuid
from typing import Optional

# Context variable carrying the id of the running pass
_pass_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "pass_id", default=None
)


def get_pass_id() -> Optional[str]:
    """Get the current pass ID from context."""
    return _pass_id_var.get()


def set_pass_id(pass_id: str) -> contextvars.Token:
    """Set the pass ID in context. Returns token for reset."""
    return _pass_id_var.set(pass_id)


def generate_pass_id(name: str = "pass") -> str:
    """Generate a new pass ID."""
    return f"{name}-{uuid.uuid4().hex[:12]}"


class PassContext:
    """
    Context manager for pass-scoped logging.

    Usage:
        with PassContext("conflicts") as ctx:
            logger.info("Scanning")  # log lines carry ctx.pass_id
    """

    def __init__(self, name: str = "pass", pass_id: Optional[str] = None):
        self.pass_id = pass_id or generate_pass_id(name)
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> "PassContext":
        self._token = set_pass_id(self.pass_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _pass_id_var.reset(self._token)
