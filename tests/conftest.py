# Shared pytest fixtures
from __future__ import annotations

import os
from datetime import date

import pytest

# Environment must be in place before the backend modules import core.logger / core.auth
os.environ.setdefault("LOG_DIR", "off")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("OPERATOR_PASSWORD", "letmein")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:5173")

from core.config import Settings  # noqa: E402
from support.memory_store import MemoryStore  # noqa: E402

TODAY = date(2026, 2, 4)


@pytest.fixture()
def settings() -> Settings:
    return Settings(spreadsheet_id="sheet-123", subjects=("Math", "Reading"))


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore(today=TODAY)


@pytest.fixture()
def today() -> date:
    return TODAY
