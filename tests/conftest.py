"""Pytest configuration and fixtures for prax tests."""

import pytest

from prax.config import get_settings
from prax.services.parser import parse_schema


# Markers for test categorization
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "sqlcheck: marks tests that parse emitted SQL with sqlglot"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running tests"
    )


@pytest.fixture(scope="session")
def anyio_backend():
    """Set the async backend for anyio."""
    return "asyncio"


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch):
    """Give every test fresh settings, unaffected by the caller's PRAX_ variables."""
    for name in (
        "PRAX_DEFAULT_DIALECT",
        "PRAX_STRICT_VALIDATION",
        "PRAX_EXTRA_RESERVED_WORDS",
        "PRAX_SEARCH_SCORE_ALIAS",
        "PRAX_PIPELINE_MAX_BATCH_SIZE",
        "PRAX_BULK_INSERT_BATCH_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


BLOG_SCHEMA = '''
datasource db {
  provider = "postgresql"
  url = env("DATABASE_URL")
  extensions = [pg_trgm, vector("public", "0.5.0")]
}

/// Application user
model User {
  id        Int      @id @auto
  email     String   @unique
  name      String?
  role      Role     @default(USER)
  posts     Post[]
  createdAt DateTime @default(now())
  updatedAt DateTime @updated_at

  @@map("users")
}

model Post {
  id       Int     @id @auto
  title    String
  body     String
  authorId Int
  author   User    @relation(fields: [authorId], references: [id], onDelete: Cascade)

  @@index([authorId])
  @@search([title, body])
}

enum Role {
  USER
  ADMIN
}

policy ReadOwn on User {
  for SELECT
  to authenticated
  using "id = auth.uid()"
}
'''


@pytest.fixture
def blog_source():
    """Source text of a small but complete schema."""
    return BLOG_SCHEMA


@pytest.fixture
def blog_schema():
    """The parsed blog schema."""
    return parse_schema(BLOG_SCHEMA)
