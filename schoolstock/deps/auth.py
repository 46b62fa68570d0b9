from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param

from ..core.config import settings
from ..core.security import decode_token
from ..middlewares import principal_ctx_var


class AuthContext:
    def __init__(self, *, subject: str, scheme: str) -> None:
        self.subject = subject
        self.scheme = scheme


def _set_principal(request: Request, principal: str) -> AuthContext:
    principal_ctx_var.set(principal)
    request.state.principal = principal
    scheme = principal.split(":", 1)[0] if ":" in principal else principal
    return AuthContext(subject=principal, scheme=scheme)


async def require_principal(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> AuthContext:
    """Resolve who is calling. The subject is stored as ``created_by`` on writes."""

    api_key = (settings.API_KEY or "").strip()
    provided_key = (x_api_key or "").strip()
    if api_key and provided_key and hmac.compare_digest(api_key, provided_key):
        return _set_principal(request, "api-key")

    if not api_key and not authorization:
        return _set_principal(request, "anonymous")

    if authorization:
        scheme, credentials = get_authorization_scheme_param(authorization)
        if scheme.lower() == "bearer" and credentials:
            try:
                payload = decode_token(credentials, verify_type="access")
            except ValueError as exc:
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
            request.state.token_payload = payload
            return _set_principal(request, f"jwt:{payload.sub}")

    detail = "Invalid API key" if provided_key else "Authorization required"
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)
