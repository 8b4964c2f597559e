"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    profile_id: str | None = None,
    org_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (ids only, never emails or phones)."""
    context: dict[str, Any] = {}
    if profile_id:
        context["profile_id"] = profile_id
    if org_id:
        context["org_id"] = org_id
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
