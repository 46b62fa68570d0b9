import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from schoolstock import app
from schoolstock.core.config import settings
from schoolstock.core.security import decode_token, issue_token_pair
from schoolstock.db.session import Base, get_db

# Ensure models are imported so metadata is populated
from schoolstock.models import item as item_model  # noqa: F401


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "office-key")
    monkeypatch.setattr(settings, "JWT_SECRET", "test-secret")
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


def test_missing_credentials_rejected(client):
    response = client.get("/api/v1/items")

    assert response.status_code == 401
    assert response.json()["code"] == "http_error"


def test_api_key_header_sets_creator(client):
    response = client.post("/api/v1/items", json={"name": "Map"}, headers={"X-API-Key": "office-key"})

    assert response.status_code == 201
    assert response.json()["created_by"] == "api-key"


def test_wrong_api_key_rejected(client):
    response = client.get("/api/v1/items", headers={"X-API-Key": "nope"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid API key"


def test_token_exchange_and_bearer_access(client):
    tokens = client.post("/api/v1/auth/token", json={"apiKey": "office-key"}).json()

    response = client.post(
        "/api/v1/items",
        json={"name": "Globe"},
        headers={"Authorization": f"Bearer {tokens['access_token']}"},
    )

    assert response.status_code == 201
    assert response.json()["created_by"] == "jwt:api-client"


def test_refresh_token_cannot_be_used_as_access(client):
    tokens = client.post("/api/v1/auth/token", json={"apiKey": "office-key"}).json()

    response = client.get("/api/v1/items", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert response.status_code == 401

    refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    assert decode_token(refreshed.json()["access_token"], verify_type="access").sub == "api-client"


def test_token_exchange_wrong_key(client):
    response = client.post("/api/v1/auth/token", json={"apiKey": "guess"})

    assert response.status_code == 401


def test_decode_rejects_tampered_token(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", "test-secret")
    pair = issue_token_pair("someone")

    with pytest.raises(ValueError):
        decode_token(pair.access_token + "x")


def test_client_name_becomes_creator(client):
    tokens = client.post("/api/v1/auth/token", json={"apiKey": "office-key", "clientName": "front-office"}).json()

    response = client.post(
        "/api/v1/items",
        json={"name": "Compass"},
        headers={"Authorization": f"Bearer {tokens['access_token']}"},
    )

    assert response.status_code == 201
    assert response.json()["created_by"] == "jwt:front-office"
    refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).json()
    assert decode_token(refreshed["access_token"]).sub == "front-office"


def test_client_name_must_be_a_plain_label(client):
    response = client.post("/api/v1/auth/token", json={"apiKey": "office-key", "clientName": "jwt:admin"})

    assert response.status_code == 422


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "office-42"})

    assert response.headers["X-Request-ID"] == "office-42"
    assert response.headers["X-Response-Time"].endswith("ms")
