"""Structured event helpers shared across the sync engine."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


DEFAULT_EVENT_LOGGER = logging.getLogger("lecture_quiz.events")

_MAX_VALUE_LENGTH = 200


def sanitize_context_value(value: Any) -> Any:
    """Return a log-friendly representation for *value*."""

    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return normalize_context(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        text = ", ".join(str(item) for item in value)
    else:
        text = str(value)
    text = text.strip()
    if not text:
        return None
    if len(text) > _MAX_VALUE_LENGTH:
        return text[:_MAX_VALUE_LENGTH] + "…"
    return text


def normalize_context(values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop empty entries and sanitise the remaining values of *values*."""

    if not values:
        return {}
    normalised: Dict[str, Any] = {}
    for key, raw_value in values.items():
        if not key:
            continue
        value = sanitize_context_value(raw_value)
        if value is None or value == "" or value == {}:
            continue
        normalised[str(key)] = value
    return normalised


def emit_structured_event(
    event_type: str,
    message: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    correlation: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[float] = None,
    level: int = logging.INFO,
    logger: logging.Logger | logging.LoggerAdapter = DEFAULT_EVENT_LOGGER,
) -> None:
    """Log *message* tagged with *event_type* and flattened metadata.

    The metadata is rendered into the log line as ``key=value`` pairs and is
    also attached to the record as ``debug_*`` attributes so handlers can
    consume it without parsing the text.
    """

    base_message = str(message).strip()
    normalised_payload = normalize_context(payload)
    normalised_correlation = normalize_context(correlation)
    details = {**normalised_correlation, **normalised_payload}
    if duration_ms is not None:
        details["duration_ms"] = round(float(duration_ms), 1)

    display = f"[{event_type}] {base_message}" if event_type else base_message
    if details:
        rendered = ", ".join(f"{key}={value}" for key, value in details.items())
        display = f"{display} ({rendered})"

    extra: Dict[str, Any] = {
        "debug_event": base_message,
        "debug_event_type": event_type or "",
    }
    if normalised_payload:
        extra["debug_payload"] = normalised_payload
    if normalised_correlation:
        extra["debug_correlation"] = normalised_correlation
    if duration_ms is not None:
        extra["debug_duration_ms"] = float(duration_ms)
    logger.log(level, display, extra=extra)


def emit_request_event(
    method: str,
    path: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[float] = None,
    level: int = logging.DEBUG,
    logger: logging.Logger | logging.LoggerAdapter = DEFAULT_EVENT_LOGGER,
) -> None:
    """Emit an event describing one HTTP exchange with the backend."""

    emit_structured_event(
        "HTTP_REQUEST",
        f"{method.upper()} {path}",
        payload=payload,
        duration_ms=duration_ms,
        level=level,
        logger=logger,
    )


def emit_poll_event(
    job_id: str,
    message: str,
    *,
    generation: Optional[int] = None,
    cycle: Optional[int] = None,
    payload: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[float] = None,
    level: int = logging.INFO,
    logger: logging.Logger | logging.LoggerAdapter = DEFAULT_EVENT_LOGGER,
) -> None:
    """Emit a poll-cycle lifecycle event correlated by job, generation and cycle."""

    emit_structured_event(
        "POLL_CYCLE",
        message,
        payload=payload,
        correlation={"job_id": job_id, "generation": generation, "cycle": cycle},
        duration_ms=duration_ms,
        level=level,
        logger=logger,
    )


def emit_identity_event(
    message: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    level: int = logging.WARNING,
    logger: logging.Logger | logging.LoggerAdapter = DEFAULT_EVENT_LOGGER,
) -> None:
    """Emit an event for a question that fell back to positional identity."""

    emit_structured_event(
        "IDENTITY_FALLBACK",
        message,
        payload=payload,
        level=level,
        logger=logger,
    )


__all__ = [
    "DEFAULT_EVENT_LOGGER",
    "emit_identity_event",
    "emit_poll_event",
    "emit_request_event",
    "emit_structured_event",
    "normalize_context",
    "sanitize_context_value",
]
