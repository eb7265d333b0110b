"""Request context for feature-loader.

Carries the correlation id of the load request currently being processed so
that audit records emitted deep inside the retry engine can be tied back to
the ``load_module`` call that caused them.

Example:
    from feature_loader.core.context import correlation_scope, get_correlation_id

    with correlation_scope() as load_id:
        ...  # every audit event emitted here carries load_id
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from ulid import ULID

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
principal_id_var: ContextVar[str] = ContextVar("principal_id", default="anonymous")


def new_correlation_id() -> str:
    """Generate a new ULID-format correlation id."""
    return f"load_{ULID()}"


def get_correlation_id() -> str:
    """Get the correlation id of the current context ('' when unset)."""
    return correlation_id_var.get()


def get_principal_id() -> str:
    """Get the id of the principal the current load runs for."""
    return principal_id_var.get()


@contextmanager
def correlation_scope(
    correlation_id: Optional[str] = None,
    principal_id: Optional[str] = None,
) -> Iterator[str]:
    """Bind a correlation id (and optionally a principal id) for a block.

    Args:
        correlation_id: Id to bind; a fresh ULID is generated when omitted
        principal_id: Principal the work is performed for

    Yields:
        The bound correlation id
    """
    cid = correlation_id or new_correlation_id()
    cid_token = correlation_id_var.set(cid)
    pid_token = principal_id_var.set(principal_id) if principal_id else None
    try:
        yield cid
    finally:
        correlation_id_var.reset(cid_token)
        if pid_token is not None:
            principal_id_var.reset(pid_token)
