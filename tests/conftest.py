"""Summary: Shared fixtures for Autoply tests.

Importance: Gives every test isolated storage and a fully offline configuration.
Alternatives: Build AppConfig inline in each test module.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from autoply.config import AppConfig
from autoply.storage.sqlite_store import SqliteStore


def build_config(tmp_path: Path, **overrides: object) -> AppConfig:
    values = dict(
        db_path=str(tmp_path / "test.db"),
        document_dir=str(tmp_path / "documents"),
        ai_provider="mock",
        openrouter_api_key=None,
        openrouter_base_url="https://openrouter.ai/api/v1",
        light_model="light-model",
        heavy_model="heavy-model",
        telegram_bot_token="bot-token",
        telegram_api_url="https://telegram.test",
        google_client_id="google-client",
        google_client_secret="google-secret",
        google_redirect_uri="http://localhost:3000/oauth/callback",
        google_token_url="https://oauth2.googleapis.com/token",
        gmail_api_base_url="https://gmail.test/gmail/v1",
        token_secret="secret",
    )
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return build_config(tmp_path)


@pytest.fixture
def store(tmp_path: Path) -> SqliteStore:
    sqlite_store = SqliteStore(str(tmp_path / "test.db"))
    sqlite_store.initialize()
    return sqlite_store
