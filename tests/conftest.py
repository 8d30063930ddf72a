import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest

from factories import InMemoryEntityStore


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()
