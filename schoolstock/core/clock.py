"""Timestamp helpers shared by every table.

All timestamps are stored as ISO-8601 UTC text (``2024-01-31T08:15:00Z``). One
canonical shape means ``max()`` over stored strings is also the latest instant,
which the aggregators rely on.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from .errors import LedgerValidationError

__all__ = ["utcnow_iso", "normalize_timestamp"]


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds") + "Z"


def normalize_timestamp(value: object, *, default_now: bool = True) -> str | None:
    """Coerce caller supplied dates into the canonical UTC text form.

    Accepts ``datetime``/``date`` objects and ISO strings (a trailing ``Z`` is
    fine). Naive values are treated as UTC. Blank input returns "now" unless
    ``default_now`` is off, in which case ``None`` comes back.
    """

    if value is None or (isinstance(value, str) and not value.strip()):
        return utcnow_iso() if default_now else None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z") or raw.endswith("z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise LedgerValidationError(f"invalid timestamp: {value!r}") from exc
    else:
        raise LedgerValidationError(f"invalid timestamp: {value!r}")

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat(timespec="seconds") + "Z"
