from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_CLIENT_NAME = "api-client"


class TokenRequest(BaseModel):
    api_key: str = Field(..., alias="apiKey", min_length=1)
    # Becomes the token subject and so the ``created_by`` of ledger writes.
    client_name: Optional[str] = Field(
        default=None,
        alias="clientName",
        min_length=1,
        max_length=64,
        pattern=r"^[A-Za-z0-9][A-Za-z0-9_.-]*$",
    )

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {"example": {"apiKey": "school-office-key", "clientName": "front-office"}},
    }


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class RefreshRequest(BaseModel):
    refresh_token: str
