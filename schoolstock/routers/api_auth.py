"""Token exchange for office clients.

A client trades the shared API key for a JWT pair. ``clientName`` becomes the
token subject, so ledger rows written with the token carry
``created_by = "jwt:<clientName>"`` and different offices sharing one key can
still be told apart.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, HTTPException, status

from ..core.config import settings
from ..core.logging import log_event
from ..core.security import issue_token_pair, refresh_access_token
from ..schemas.auth import DEFAULT_CLIENT_NAME, RefreshRequest, TokenRequest, TokenResponse

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/token", response_model=TokenResponse, summary="Exchange API key for JWTs")
async def exchange_token(payload: TokenRequest):
    configured_key = (settings.API_KEY or "").strip()
    if not configured_key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="API key authentication is disabled")
    client_name = payload.client_name or DEFAULT_CLIENT_NAME
    if not hmac.compare_digest(payload.api_key.strip(), configured_key):
        log_event(logger, "auth.rejected", level=logging.WARNING, client_name=client_name)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    pair = issue_token_pair(subject=client_name)
    log_event(logger, "auth.token_issued", client_name=client_name)
    return TokenResponse(**pair.model_dump())


@router.post("/refresh", response_model=TokenResponse, summary="Refresh access token")
async def refresh_token(payload: RefreshRequest):
    try:
        pair = refresh_access_token(payload.refresh_token)
    except ValueError as exc:
        log_event(logger, "auth.refresh_rejected", level=logging.WARNING, reason=str(exc))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    log_event(logger, "auth.token_refreshed")
    return TokenResponse(**pair.model_dump())
