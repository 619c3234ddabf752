from __future__ import annotations

import os
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient

# Ensure auth mode + secrets are set before app import
os.environ.setdefault("AUTH_MODE", "jwt")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret_32_chars_minimum")
os.environ.setdefault("ENV", "local")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("METRICS_ENABLED", "false")

from evently.api.v1.schemas.events import EventCreate  # noqa: E402
from evently.container import build_container  # noqa: E402
from evently.core.config import settings as base_settings  # noqa: E402
from evently.main import create_app  # noqa: E402
from evently.services.events_service import ImageUpload  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def settings(tmp_path):
    return replace(
        base_settings,
        database_url=f"sqlite:///{tmp_path / 'evently.db'}",
        storage_root=str(tmp_path / "assets"),
        rate_limit_enabled=False,
        metrics_enabled=False,
        auth_mode="jwt",
    )


@pytest.fixture
def container(settings):
    c = build_container(settings, create_schema=True)
    try:
        yield c
    finally:
        c.close()


@pytest.fixture
def store(container):
    return container.store


@pytest.fixture
def app(settings, container):
    return create_app(settings, container)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def issue_token(user_id: str, config, ttl_seconds: int = 900) -> str:
    """Sign a token the way the identity service does."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
        "iss": config.jwt_issuer,
        "aud": config.jwt_audience,
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


@pytest.fixture
def mint_token(settings):
    def _mint(user_id: str, ttl_seconds: int = 900) -> str:
        return issue_token(user_id, settings, ttl_seconds)

    return _mint


@pytest.fixture
def auth_headers(mint_token):
    def _headers(user_id: str) -> dict[str, str]:
        token = mint_token(user_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def png_image() -> ImageUpload:
    return ImageUpload(content=PNG_BYTES, content_type="image/png", filename="cover.png")


@pytest.fixture
def make_event(container, png_image):
    def _make(organizer_id: str = "organizer-1", **overrides):
        fields = {
            "title": "Python Meetup",
            "description": "Talks and pizza",
            "location": "Berlin",
            "date": datetime.now(timezone.utc) + timedelta(days=7),
            "capacity": 10,
            "category": "meetup",
        }
        fields.update(overrides)
        return container.lifecycle.create_event(
            organizer_id, EventCreate.model_validate(fields), png_image
        )

    return _make
