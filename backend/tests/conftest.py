"""Shared pytest fixtures for the vitrine backend tests.

This module provides:
- Environment setup (temporary SQLite database and local storage)
- A fake google-genai client that records calls and returns canned responses
- API client, users/tokens and image factories

The environment is set before any ``vitrine`` import because the config
module reads it at import time.
"""

import json
import os
import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest

_TMP_DIR = Path(tempfile.mkdtemp(prefix="vitrine-tests-"))

os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["STORAGE_DIR"] = str(_TMP_DIR / "storage")
os.environ["GCS_BUCKET"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["BATCH_RUNNER"] = "inline"
os.environ["BATCH_CONCURRENCY"] = "1"
os.environ["RATE_LIMIT_RPM"] = "1000"

import cv2  # noqa: E402
import numpy as np  # noqa: E402


# =============================================================================
# Image helpers
# =============================================================================

def png_bytes(width=64, height=48, color=(40, 120, 200)):
    """Solid BGR image encoded as PNG."""
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, :] = color
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


def image_dims(data):
    img = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    return img.shape[1], img.shape[0]


@pytest.fixture
def make_png():
    return png_bytes


@pytest.fixture
def dims():
    return image_dims


# =============================================================================
# Fake generation provider
# =============================================================================

def image_response(data, mime_type="image/png"):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)
    candidate = SimpleNamespace(content=SimpleNamespace(parts=[part]), finish_reason="STOP")
    return SimpleNamespace(candidates=[candidate], prompt_feedback=None, text=None)


def text_response(text):
    return SimpleNamespace(candidates=[], prompt_feedback=None, text=text)


class _FakeModels:
    def __init__(self, owner):
        self._owner = owner

    def generate_content(self, *, model, contents, config=None):
        return self._owner.respond(model, contents, config)


class FakeGenaiClient:
    """Stands in for ``google.genai.Client``; only ``models.generate_content`` is used."""

    def __init__(self):
        self.models = _FakeModels(self)
        self.calls = []
        self.image = png_bytes(80, 80, (10, 200, 30))
        self.description = {"Tipo de Peça": "Camiseta", "Cores Principais": "Azul"}
        self.differences = {"plan": "Ajustar a gola.", "points": [{"x": 10, "y": 12, "description": "gola"}]}
        self.text = "Pele lisa, postura ereta."
        self.error = None
        self.on_call = None

    @staticmethod
    def kind_of(config):
        if config is None:
            return "text"
        if getattr(config, "response_mime_type", None) == "application/json":
            return "differences" if getattr(config, "response_schema", None) is not None else "describe"
        return "image"

    def calls_of(self, kind):
        return [c for c in self.calls if c.kind == kind]

    def respond(self, model, contents, config):
        kind = self.kind_of(config)
        call = SimpleNamespace(model=model, contents=contents, config=config, kind=kind)
        self.calls.append(call)
        if self.on_call is not None:
            self.on_call(call)
        if self.error is not None:
            raise self.error
        if kind == "image":
            return image_response(self.image)
        if kind == "describe":
            return text_response(json.dumps(self.description, ensure_ascii=False))
        if kind == "differences":
            return text_response(json.dumps(self.differences, ensure_ascii=False))
        return text_response(self.text)


@pytest.fixture
def fake_genai():
    return FakeGenaiClient()


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def clean_database():
    """Fresh tables and an empty rate limiter for every test."""
    from vitrine.api.deps import limiter
    from vitrine.infra.db.database import Base, engine, init_db

    Base.metadata.drop_all(bind=engine)
    init_db()
    limiter.reset()
    yield


@pytest.fixture
def db():
    from vitrine.infra.db.database import SessionLocal

    session = SessionLocal()
    yield session
    session.close()


def _make_user(db, email, role):
    from vitrine.infra.db.crud import create_access_token, create_user

    user = create_user(db, email=email, display_name=email.split("@")[0], role=role)
    token = create_access_token(db, user_id=user.id)
    return SimpleNamespace(user=user, uid=user.id, token=token.token, headers={"Authorization": f"Bearer {token.token}"})


@pytest.fixture
def admin(db):
    return _make_user(db, "admin@loja.com", "admin")


@pytest.fixture
def member(db):
    return _make_user(db, "fotografa@loja.com", "user")


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture
def client(fake_genai):
    from fastapi.testclient import TestClient

    from vitrine.api.deps import get_genai_provider
    from vitrine.api.main import app

    app.dependency_overrides[get_genai_provider] = lambda: fake_genai
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
