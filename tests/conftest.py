"""Shared fixtures for aihub tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from aihub.backends import BackendAdapter
from aihub.models import Settings
from aihub.sessions import SessionRepository
from aihub.storage import PreferenceStore

MISTRAL_URL = "https://mistral.test"
GEMINI_URL = "https://gemini.test"
IMAGE_URL_TEMPLATE = "https://img.test/prompt/{prompt}?seed={token}&width={width}&height={height}"


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "preferences.db"


@pytest.fixture
def store(db_path: Path) -> Iterator[PreferenceStore]:
    s = PreferenceStore(db_path)
    yield s
    s.close()


@pytest.fixture
def repo(store: PreferenceStore) -> SessionRepository:
    return SessionRepository(store)


@pytest.fixture
def settings() -> Settings:
    return Settings(mistral_key="m-key", gemini_key="g-key")


@pytest.fixture
def make_adapter():
    def _make(settings: Settings) -> BackendAdapter:
        return BackendAdapter(
            settings,
            mistral_base_url=MISTRAL_URL,
            gemini_base_url=GEMINI_URL,
            image_url_template=IMAGE_URL_TEMPLATE,
            token_factory=lambda: 42,
        )

    return _make


@pytest.fixture
def adapter(make_adapter, settings: Settings) -> BackendAdapter:
    return make_adapter(settings)
