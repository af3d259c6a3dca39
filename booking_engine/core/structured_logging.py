"""Structured logging helpers (PII-safe)."""

import logging
from typing import Any

from booking_engine.core.config import settings


def build_log_context(
    *,
    lawyer_id: str | None = None,
    firm_id: str | None = None,
    appointment_id: str | None = None,
    reason: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict.

    Client name, email and phone never go into log records.
    """
    context: dict[str, Any] = {}
    if lawyer_id:
        context["lawyer_id"] = str(lawyer_id)
    if firm_id:
        context["firm_id"] = str(firm_id)
    if appointment_id:
        context["appointment_id"] = str(appointment_id)
    if reason:
        context["reason"] = reason
    return context


def configure_logging(level: str | None = None) -> None:
    """Apply LOG_LEVEL to the engine's package logger."""
    logging.getLogger("booking_engine").setLevel((level or settings.LOG_LEVEL).upper())
