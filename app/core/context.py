"""
Per-request context stored in contextvars.

Structured log lines pick these values up automatically, so any
log call inside a request carries the caller and organization.
"""

import contextvars
from typing import Any

_CONTEXT_KEYS = ("request_id", "user_id", "organization_id", "client_ip")

_context_vars: dict[str, contextvars.ContextVar[str | None]] = {
    key: contextvars.ContextVar(key, default=None) for key in _CONTEXT_KEYS
}


def set_request_context(**values: str | None) -> None:
    """
    Set one or more context values.

    Unknown keys are rejected, empty values are ignored.

    Usage:
        set_request_context(request_id=rid, client_ip=request.client.host)
    """
    for key, value in values.items():
        if key not in _context_vars:
            raise KeyError(f"Unknown request context key: {key}")
        if value:
            _context_vars[key].set(str(value))


def get_request_context() -> dict[str, Any]:
    """Return the populated context values."""
    context = {}
    for key, var in _context_vars.items():
        value = var.get()
        if value is not None:
            context[key] = value
    return context


def clear_request_context() -> None:
    """Reset every context value."""
    for var in _context_vars.values():
        var.set(None)
