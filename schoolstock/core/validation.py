"""Parsers for the numbers and ids that arrive in ledger payloads."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .errors import LedgerValidationError


def normalize_quantity(value: object, field: str) -> int:
    """Ledger quantities are whole, non-negative units."""

    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise LedgerValidationError(f"{field} must be a whole number")
    if isinstance(value, float):
        if not value.is_integer():
            raise LedgerValidationError(f"{field} must be a whole number")
        value = int(value)
    try:
        quantity = int(value)
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError(f"{field} must be a whole number") from exc
    if quantity < 0:
        raise LedgerValidationError(f"{field} must be >= 0")
    return quantity


def normalize_cost(value: object, field: str) -> float:
    """Unit costs and item prices: ``"$1,250.50"`` and ``1250.5`` both parse."""

    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise LedgerValidationError(f"{field} must be a number")
    if isinstance(value, str):
        cleaned = value.strip().replace("$", "").replace(",", "")
        if not cleaned:
            return 0.0
        try:
            value = Decimal(cleaned)
        except InvalidOperation as exc:
            raise LedgerValidationError(f"{field} must be a number") from exc
    try:
        cost = float(value)
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError(f"{field} must be a number") from exc
    if cost < 0:
        raise LedgerValidationError(f"{field} must be >= 0")
    return cost


def normalize_reference(value: object, field: str) -> int:
    """Class, term, item, teacher and student references are required positive ids."""

    if value is None or value == "" or isinstance(value, bool):
        raise LedgerValidationError(f"{field} is required")
    try:
        ref = int(value)
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError(f"{field} must be an id") from exc
    if ref <= 0:
        raise LedgerValidationError(f"{field} must be an id")
    return ref
