# prax/models/datasource.py
"""Datasource, generator and raw SQL blocks."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from prax.models.attribute import AttributeValue
from prax.models.common import Span


class DatabaseProvider(str, Enum):
    """Database provider named in a ``datasource`` block."""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"
    MSSQL = "mssql"
    MONGODB = "mongodb"

    @classmethod
    def from_str(cls, value: str) -> Optional["DatabaseProvider"]:
        return {
            "postgresql": cls.POSTGRESQL,
            "postgres": cls.POSTGRESQL,
            "mysql": cls.MYSQL,
            "sqlite": cls.SQLITE,
            "mssql": cls.MSSQL,
            "sqlserver": cls.MSSQL,
            "mongodb": cls.MONGODB,
        }.get(value.lower())

    def supports_extensions(self) -> bool:
        return self == DatabaseProvider.POSTGRESQL

    def database_type(self):
        """The SQL dialect for this provider; None for MongoDB."""
        from prax.query.dialect import DatabaseType

        if self == DatabaseProvider.MONGODB:
            return None
        return DatabaseType(self.value)


class PostgresExtension(BaseModel):
    """A PostgreSQL extension listed under ``extensions``."""

    name: str
    schema_name: Optional[str] = None
    version: Optional[str] = None
    span: Span = Span()

    def to_create_sql(self) -> str:
        sql = f'CREATE EXTENSION IF NOT EXISTS "{self.name}"'
        if self.schema_name:
            sql += f' SCHEMA "{self.schema_name}"'
        if self.version:
            sql += f" VERSION '{self.version}'"
        return sql + ";"

    def to_drop_sql(self) -> str:
        return f'DROP EXTENSION IF EXISTS "{self.name}" CASCADE;'

    def provides_custom_types(self) -> bool:
        return self.name in ("vector", "pgvector", "postgis", "hstore", "ltree", "cube", "citext")


class Datasource(BaseModel):
    """The ``datasource`` block."""

    name: str
    provider: DatabaseProvider
    url: Optional[str] = None
    url_env: Optional[str] = None
    extensions: list[PostgresExtension] = Field(default_factory=list)
    properties: dict[str, AttributeValue] = Field(default_factory=dict)
    span: Span = Span()

    def has_extension(self, name: str) -> bool:
        return self.get_extension(name) is not None

    def get_extension(self, name: str) -> Optional[PostgresExtension]:
        for ext in self.extensions:
            if ext.name == name:
                return ext
        return None

    def has_vector_support(self) -> bool:
        return self.has_extension("vector") or self.has_extension("pgvector")

    def extensions_create_sql(self) -> list[str]:
        if not self.provider.supports_extensions():
            return []
        return [ext.to_create_sql() for ext in self.extensions]


class Generator(BaseModel):
    """A ``generator`` block, consumed by code generators only."""

    name: str
    properties: dict[str, AttributeValue] = Field(default_factory=dict)
    span: Span = Span()

    def provider(self) -> Optional[str]:
        value = self.properties.get("provider")
        return value.as_str() if value else None

    def output(self) -> Optional[str]:
        value = self.properties.get("output")
        return value.as_str() if value else None


class RawSql(BaseModel):
    """A ``rawSql name \"\"\"...\"\"\"`` block."""

    name: str
    sql: str
    span: Span = Span()
