# prax/query/search.py
"""Full-text search queries and index DDL.

The user's search text is always bound as a parameter. PostgreSQL receives
a prepared ``tsquery`` string, MySQL a boolean-mode expression, SQLite an
FTS5 query and SQL Server a ``CONTAINS`` condition.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Union

from prax.config import get_settings
from prax.query.dialect import DatabaseType, DialectLike, SqlBuilder, escape_string, resolve_dialect
from prax.utils.exceptions import InvalidInputError

logger = logging.getLogger("prax.search")


class SearchMode(str, Enum):
    """How search terms combine."""

    ANY = "any"
    ALL = "all"
    PHRASE = "phrase"
    BOOLEAN = "boolean"
    NATURAL = "natural"

    @property
    def postgres_operator(self) -> str:
        if self in (SearchMode.ANY, SearchMode.NATURAL):
            return " | "
        if self == SearchMode.PHRASE:
            return " <-> "
        return " & "


class SearchLanguage(str, Enum):
    """Text search configurations. Any other name is passed through."""

    SIMPLE = "simple"
    ENGLISH = "english"
    SPANISH = "spanish"
    FRENCH = "french"
    GERMAN = "german"


LanguageLike = Union[SearchLanguage, str]


def _language_name(language: LanguageLike) -> str:
    if isinstance(language, SearchLanguage):
        return language.value
    return language


def sqlite_tokenizer(language: LanguageLike) -> str:
    """FTS5 tokenizer; only English gets stemming."""
    if _language_name(language) == SearchLanguage.ENGLISH.value:
        return "porter unicode61"
    return "unicode61"


@dataclass(frozen=True)
class RankingOptions:
    enabled: bool = False
    score_alias: Optional[str] = None
    normalization: int = 0

    @property
    def alias(self) -> str:
        return self.score_alias or get_settings().search_score_alias


@dataclass(frozen=True)
class HighlightOptions:
    enabled: bool = False
    start_tag: str = "<b>"
    end_tag: str = "</b>"
    max_length: Optional[int] = 150
    max_fragments: Optional[int] = 3
    delimiter: str = " ... "


@dataclass(frozen=True)
class FuzzyOptions:
    enabled: bool = False
    max_edits: int = 2
    prefix_length: int = 0
    threshold: float = 0.3


@dataclass(frozen=True)
class SearchSql:
    """Generated search statement with an ORDER BY hint for ranked results."""

    sql: str
    order_by: Optional[str]
    params: list[Any]

    def with_order_by(self) -> str:
        if self.order_by:
            return f"{self.sql} ORDER BY {self.order_by}"
        return self.sql


class _QueryText:
    """Binds the search text once where placeholders are numbered, else per use."""

    def __init__(self, builder: SqlBuilder, text: str):
        self._builder = builder
        self._text = text
        self._placeholder: Optional[str] = None

    def __str__(self) -> str:
        if not self._builder.db_type.uses_numbered_params:
            return self._builder.bind(self._text)
        if self._placeholder is None:
            self._placeholder = self._builder.bind(self._text)
        return self._placeholder


@dataclass(frozen=True)
class SearchQuery:
    """A full-text search over one or more text columns."""

    query: str
    columns: tuple[str, ...]
    mode: SearchMode = SearchMode.ANY
    language: LanguageLike = SearchLanguage.ENGLISH
    ranking: RankingOptions = field(default_factory=RankingOptions)
    highlight: HighlightOptions = field(default_factory=HighlightOptions)
    fuzzy: FuzzyOptions = field(default_factory=FuzzyOptions)
    filters: tuple[tuple[str, Any], ...] = ()

    @staticmethod
    def builder(query: str) -> "SearchQueryBuilder":
        return SearchQueryBuilder(query)

    @property
    def words(self) -> list[str]:
        return self.query.split()

    # === Query text per dialect ===

    def postgres_tsquery(self) -> str:
        return self.mode.postgres_operator.join(
            "'" + w.replace("'", "''") + "'" for w in self.words
        )

    def mysql_against(self) -> str:
        if self.mode == SearchMode.PHRASE:
            return f'"{self.query}"'
        if self.mode == SearchMode.ALL:
            return " ".join(f"+{w}" for w in self.words)
        return self.query

    def sqlite_match(self) -> str:
        if self.mode == SearchMode.PHRASE:
            return '"' + self.query.replace('"', '""') + '"'
        if self.mode == SearchMode.ALL:
            return " AND ".join(self.words)
        if self.mode == SearchMode.ANY:
            return " OR ".join(self.words)
        return self.query

    def mssql_contains(self) -> str:
        if self.mode == SearchMode.PHRASE:
            return f'"{self.query}"'
        if self.mode == SearchMode.BOOLEAN:
            return self.query
        joiner = " AND " if self.mode == SearchMode.ALL else " OR "
        return joiner.join(f'"{w}"' for w in self.words)

    # === Emission ===

    def _write_filters(self, b: SqlBuilder) -> str:
        return "".join(f" AND {col} = {b.bind(value)}" for col, value in self.filters)

    def _order_by(self, ascending: bool = False) -> Optional[str]:
        if not self.ranking.enabled:
            return None
        return self.ranking.alias if ascending else f"{self.ranking.alias} DESC"

    def to_postgres_sql(self, table: str, param_offset: int = 0) -> SearchSql:
        b = SqlBuilder(DatabaseType.POSTGRESQL, param_offset)
        config = escape_string(_language_name(self.language))
        document = " || ' ' || ".join(self.columns)
        tsvector = f"to_tsvector('{config}', {document})"
        query_text = _QueryText(b, self.postgres_tsquery())
        tsquery = f"to_tsquery('{config}', {query_text})"

        select = ["*"]
        if self.ranking.enabled:
            normalization = f", {self.ranking.normalization}" if self.ranking.normalization else ""
            select.append(f"ts_rank({tsvector}, {tsquery}{normalization}) AS {self.ranking.alias}")
        if self.highlight.enabled:
            hl = self.highlight
            options = escape_string(
                f"StartSel={hl.start_tag}, StopSel={hl.end_tag}, "
                f"MaxWords={hl.max_length or 35}, MaxFragments={hl.max_fragments or 0}, "
                f"FragmentDelimiter={hl.delimiter}"
            )
            select.append(
                f"ts_headline('{config}', {self.columns[0]}, {tsquery}, '{options}') AS highlighted"
            )

        where = f"{tsvector} @@ {tsquery}"
        if self.fuzzy.enabled:
            raw = b.bind(self.query)
            where = f"({where} OR similarity({document}, {raw}) > {self.fuzzy.threshold})"
        sql = f"SELECT {', '.join(select)} FROM {table} WHERE {where}{self._write_filters(b)}"
        return SearchSql(sql, self._order_by(), b.build()[1])

    def to_mysql_sql(self, table: str, param_offset: int = 0) -> SearchSql:
        b = SqlBuilder(DatabaseType.MYSQL, param_offset)
        boolean = self.mode in (SearchMode.ALL, SearchMode.BOOLEAN, SearchMode.PHRASE)
        mode = " IN BOOLEAN MODE" if boolean else ""
        columns = ", ".join(self.columns)
        against = self.mysql_against()

        select = ["*"]
        if self.ranking.enabled:
            select.append(f"MATCH({columns}) AGAINST({b.bind(against)}{mode}) AS {self.ranking.alias}")
        if self.highlight.enabled or self.fuzzy.enabled:
            logger.debug("MySQL full-text search has no highlighting or fuzzy matching; ignoring")
        where = f"MATCH({columns}) AGAINST({b.bind(against)}{mode})"
        sql = f"SELECT {', '.join(select)} FROM {table} WHERE {where}{self._write_filters(b)}"
        return SearchSql(sql, self._order_by(), b.build()[1])

    def to_sqlite_sql(self, table: str, fts_table: Optional[str] = None, param_offset: int = 0) -> SearchSql:
        """Search an FTS5 table joined back to its content table by rowid."""
        fts_table = fts_table or f"{table}_fts"
        b = SqlBuilder(DatabaseType.SQLITE, param_offset)
        select = [f"{table}.*"]
        if self.ranking.enabled:
            select.append(f"bm25({fts_table}) AS {self.ranking.alias}")
        if self.highlight.enabled:
            hl = self.highlight
            select.append(
                f"highlight({fts_table}, 0, '{escape_string(hl.start_tag)}', "
                f"'{escape_string(hl.end_tag)}') AS highlighted"
            )
        sql = (
            f"SELECT {', '.join(select)} FROM {table} "
            f"JOIN {fts_table} ON {table}.rowid = {fts_table}.rowid "
            f"WHERE {fts_table} MATCH {b.bind(self.sqlite_match())}{self._write_filters(b)}"
        )
        # bm25 scores are lower for better matches
        return SearchSql(sql, self._order_by(ascending=True), b.build()[1])

    def to_mssql_sql(self, table: str, key_column: str = "id", param_offset: int = 0) -> SearchSql:
        b = SqlBuilder(DatabaseType.MSSQL, param_offset)
        columns = ", ".join(self.columns)
        condition = b.bind(self.mssql_contains())
        if self.ranking.enabled:
            sql = (
                f"SELECT {table}.*, ft.RANK AS {self.ranking.alias} FROM {table} "
                f"INNER JOIN CONTAINSTABLE({table}, ({columns}), {condition}) AS ft "
                f"ON {table}.{key_column} = ft.[KEY]"
            )
            if self.filters:
                sql += " WHERE " + " AND ".join(f"{c} = {b.bind(v)}" for c, v in self.filters)
        else:
            sql = f"SELECT * FROM {table} WHERE CONTAINS(({columns}), {condition}){self._write_filters(b)}"
        return SearchSql(sql, self._order_by(), b.build()[1])

    def to_sql(self, table: str, db_type: DialectLike = None, param_offset: int = 0) -> SearchSql:
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return self.to_postgres_sql(table, param_offset=param_offset)
        if db_type == DatabaseType.MYSQL:
            return self.to_mysql_sql(table, param_offset=param_offset)
        if db_type == DatabaseType.SQLITE:
            return self.to_sqlite_sql(table, param_offset=param_offset)
        return self.to_mssql_sql(table, param_offset=param_offset)


class SearchQueryBuilder:
    """Chainable builder for ``SearchQuery``."""

    def __init__(self, query: str):
        self._query = query
        self._columns: list[str] = []
        self._mode = SearchMode.ANY
        self._language: LanguageLike = SearchLanguage.ENGLISH
        self._ranking = RankingOptions()
        self._highlight = HighlightOptions()
        self._fuzzy = FuzzyOptions()
        self._filters: list[tuple[str, Any]] = []

    def column(self, column: str) -> "SearchQueryBuilder":
        self._columns.append(column)
        return self

    def columns(self, columns: Iterable[str]) -> "SearchQueryBuilder":
        self._columns.extend(columns)
        return self

    def mode(self, mode: SearchMode) -> "SearchQueryBuilder":
        self._mode = mode
        return self

    def match_all(self) -> "SearchQueryBuilder":
        return self.mode(SearchMode.ALL)

    def match_any(self) -> "SearchQueryBuilder":
        return self.mode(SearchMode.ANY)

    def phrase(self) -> "SearchQueryBuilder":
        return self.mode(SearchMode.PHRASE)

    def boolean(self) -> "SearchQueryBuilder":
        return self.mode(SearchMode.BOOLEAN)

    def language(self, language: LanguageLike) -> "SearchQueryBuilder":
        self._language = language
        return self

    def with_ranking(self, alias: Optional[str] = None, normalization: int = 0) -> "SearchQueryBuilder":
        self._ranking = RankingOptions(True, alias, normalization)
        return self

    def with_highlight(
        self,
        start_tag: str = "<b>",
        end_tag: str = "</b>",
        max_length: Optional[int] = 150,
        max_fragments: Optional[int] = 3
    ) -> "SearchQueryBuilder":
        self._highlight = HighlightOptions(True, start_tag, end_tag, max_length, max_fragments)
        return self

    def with_fuzzy(self, max_edits: int = 2, prefix_length: int = 0, threshold: float = 0.3) -> "SearchQueryBuilder":
        self._fuzzy = FuzzyOptions(True, max_edits, prefix_length, threshold)
        return self

    def filter(self, column: str, value: Any) -> "SearchQueryBuilder":
        self._filters.append((column, value))
        return self

    def build(self) -> SearchQuery:
        if not self._query.strip():
            raise InvalidInputError("query", "search text is empty")
        if not self._columns:
            raise InvalidInputError("columns", "at least one column is required")
        return SearchQuery(
            query=self._query,
            columns=tuple(self._columns),
            mode=self._mode,
            language=self._language,
            ranking=self._ranking,
            highlight=self._highlight,
            fuzzy=self._fuzzy,
            filters=tuple(self._filters),
        )


@dataclass(frozen=True)
class FullTextIndex:
    """Full-text index DDL per dialect."""

    name: str
    table: str
    columns: tuple[str, ...]
    language: LanguageLike = SearchLanguage.ENGLISH

    @staticmethod
    def builder(name: str) -> "FullTextIndexBuilder":
        return FullTextIndexBuilder(name)

    @property
    def mssql_catalog(self) -> str:
        return f"{self.table}_catalog"

    def to_postgres_sql(self) -> str:
        config = escape_string(_language_name(self.language))
        document = " || ' ' || ".join(self.columns)
        return f"CREATE INDEX {self.name} ON {self.table} USING GIN (to_tsvector('{config}', {document}));"

    def to_mysql_sql(self) -> str:
        return f"CREATE FULLTEXT INDEX {self.name} ON {self.table} ({', '.join(self.columns)});"

    def to_sqlite_sql(self) -> str:
        return (
            f"CREATE VIRTUAL TABLE {self.table}_fts USING fts5({', '.join(self.columns)}, "
            f"content='{self.table}', tokenize='{sqlite_tokenizer(self.language)}');"
        )

    def to_mssql_sql(self, key_index: Optional[str] = None) -> list[str]:
        key_index = key_index or f"PK_{self.table}"
        return [
            f"CREATE FULLTEXT CATALOG {self.mssql_catalog} AS DEFAULT;",
            f"CREATE FULLTEXT INDEX ON {self.table} ({', '.join(self.columns)}) "
            f"KEY INDEX {key_index} ON {self.mssql_catalog};",
        ]

    def to_sql(self, db_type: DialectLike = None) -> list[str]:
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return [self.to_postgres_sql()]
        if db_type == DatabaseType.MYSQL:
            return [self.to_mysql_sql()]
        if db_type == DatabaseType.SQLITE:
            return [self.to_sqlite_sql()]
        return self.to_mssql_sql()

    def to_drop_sql(self, db_type: DialectLike = None) -> list[str]:
        db_type = resolve_dialect(db_type)
        if db_type == DatabaseType.POSTGRESQL:
            return [f"DROP INDEX IF EXISTS {self.name};"]
        if db_type == DatabaseType.MYSQL:
            return [f"DROP INDEX {self.name} ON {self.table};"]
        if db_type == DatabaseType.SQLITE:
            return [f"DROP TABLE IF EXISTS {self.table}_fts;"]
        return [
            f"DROP FULLTEXT INDEX ON {self.table};",
            f"DROP FULLTEXT CATALOG {self.mssql_catalog};",
        ]


class FullTextIndexBuilder:
    def __init__(self, name: str):
        self._name = name
        self._table: Optional[str] = None
        self._columns: list[str] = []
        self._language: LanguageLike = SearchLanguage.ENGLISH

    def on_table(self, table: str) -> "FullTextIndexBuilder":
        self._table = table
        return self

    def column(self, column: str) -> "FullTextIndexBuilder":
        self._columns.append(column)
        return self

    def columns(self, columns: Iterable[str]) -> "FullTextIndexBuilder":
        self._columns.extend(columns)
        return self

    def language(self, language: LanguageLike) -> "FullTextIndexBuilder":
        self._language = language
        return self

    def build(self) -> FullTextIndex:
        if not self._table:
            raise InvalidInputError("table", "call on_table()")
        if not self._columns:
            raise InvalidInputError("columns", "at least one column is required")
        return FullTextIndex(self._name, self._table, tuple(self._columns), self._language)
