"""Domain exceptions and the JSON error envelope the API answers with.

Services raise the typed exceptions below; the handlers at the bottom turn
them (and FastAPI's own HTTP/validation errors) into one response shape::

    {"code": "insufficient_stock", "message": "...", "details": {...}}
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException


class StockLedgerError(Exception):
    """Base class for every error the ledger core raises on purpose."""

    code = "ledger_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class RecordNotFoundError(StockLedgerError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, kind: str, record_id: object) -> None:
        super().__init__(f"{kind} not found", details={"id": record_id})
        self.kind = kind
        self.record_id = record_id


class ItemNotFoundError(RecordNotFoundError):
    def __init__(self, item_id: object) -> None:
        super().__init__("Inventory item", item_id)


class DistributionNotFoundError(RecordNotFoundError):
    def __init__(self, distribution_id: object) -> None:
        super().__init__("Distribution", distribution_id)


class LedgerValidationError(StockLedgerError, ValueError):
    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InsufficientStockError(StockLedgerError):
    """Requested quantity exceeds the stock derived from completed ledger rows."""

    code = "insufficient_stock"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, item_id: int, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock: requested {requested}, available {available}",
            details={"item_id": item_id, "requested": requested, "available": available},
        )
        self.item_id = item_id
        self.requested = requested
        self.available = available


class PartialWriteError(StockLedgerError):
    """A multi-row write could not be committed; nothing from it was kept."""

    code = "partial_failure"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def ledger_exception_handler(request: Request, exc: StockLedgerError):
    return ErrorEnvelope(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return ErrorEnvelope(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message="Validation failed",
        details={"errors": jsonable_encoder(exc.errors())},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StockLedgerError, ledger_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)


__all__ = [
    "DistributionNotFoundError",
    "ErrorEnvelope",
    "InsufficientStockError",
    "ItemNotFoundError",
    "LedgerValidationError",
    "PartialWriteError",
    "RecordNotFoundError",
    "StockLedgerError",
    "install_error_handlers",
]
