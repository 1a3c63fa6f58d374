"""
Database utilities for schema-per-tenant storage.

Provides the schema lifecycle manager (create, drop, inspect tenant schemas)
and the statement-execution handle handed to tenant migrations.

All tenant schemas live in the main database, so everything here runs on the
Flask-SQLAlchemy session. Supported backends:

- PostgreSQL: one SCHEMA per tenant, transactional DDL
- MySQL / MariaDB: one DATABASE per tenant (schema == database)
- SQLite: one ATTACHed database per tenant (used for tests and local dev)
"""

import os
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import event, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from tenancy.exceptions import SchemaStatsError, UnsupportedDialectError
from tenancy.extensions import db
from tenancy.tenant_db.schema_name import SchemaName

logger = logging.getLogger(__name__)

SCHEMA_PLACEHOLDER = '{schema}'

_IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

# What text() parses as a :name bind parameter
_BIND_PARAM_PATTERN = re.compile(r'(?<![:\w$\\])(:[\w$]+)(?![:\w$])')

POSTGRESQL = 'postgresql'
MYSQL_DIALECTS = ('mysql', 'mariadb')
SQLITE = 'sqlite'

MAIN_DATABASE = 'main'


def _check_identifier(value: str) -> str:
    if not isinstance(value, str) or not _IDENTIFIER_PATTERN.match(value):
        raise ValueError(f"Invalid SQL identifier: {value!r}")
    return value


@dataclass(frozen=True)
class SchemaStats:
    """Size of one tenant schema. total_rows is an estimate on PostgreSQL and MySQL."""
    schema_name: str
    tables: int
    total_rows: int
    size_bytes: int

    @property
    def size_mb(self) -> float:
        return round(self.size_bytes / 1024 / 1024, 2)


@dataclass(frozen=True)
class SchemaHealth:
    """Result of a connectivity check on the main database or on one schema."""
    target: str
    healthy: bool
    error: Optional[str] = None


class SchemaExecutor:
    """
    Statement-execution handle scoped to one tenant schema.

    Migrations receive an instance of this class and never see the raw
    session. Statements reference the tenant schema through the literal
    ``{schema}`` placeholder, which is replaced by the dialect-quoted,
    validated schema name. Everything else must be passed as bound
    parameters.

    Example:
        >>> executor.execute('''
        ...     CREATE TABLE IF NOT EXISTS {schema}.accounts (
        ...         id VARCHAR(191) PRIMARY KEY,
        ...         code VARCHAR(20) NOT NULL
        ...     )
        ... ''')
        >>> executor.create_index('idx_accounts_code', 'accounts', ['code'], unique=True)
    """

    def __init__(self, session: Session, schema_name: str, statement_timeout_ms: int = 0):
        self.session = session
        self.schema_name = SchemaName(schema_name)
        self.statement_timeout_ms = statement_timeout_ms
        self.dialect = session.get_bind().dialect

    @property
    def dialect_name(self) -> str:
        return self.dialect.name

    def quote(self, identifier: str) -> str:
        return self.dialect.identifier_preparer.quote_identifier(identifier)

    @property
    def quoted_schema(self) -> str:
        return self.quote(self.schema_name)

    def render(self, statement: str) -> str:
        """Substitute the quoted schema name for every ``{schema}`` placeholder."""
        return statement.replace(SCHEMA_PLACEHOLDER, self.quoted_schema)

    def qualify(self, table: str) -> str:
        """Return ``<schema>.<table>`` with both parts quoted."""
        return f"{self.quoted_schema}.{self.quote(_check_identifier(table))}"

    def execute(self, statement: str, params: Optional[dict] = None):
        """
        Execute one statement against the tenant schema.

        Without params the statement is sent as written: a ``:word`` inside
        a literal (``DEFAULT ':x'``, ``'{"a":1}'``) stays literal. With params,
        every ``:word`` is a bind parameter and a literal colon must be
        written as ``\\:``.

        Args:
            statement: SQL text using ``{schema}`` to reference the tenant schema
            params: Bound parameters for the statement

        Returns:
            SQLAlchemy result of the statement
        """
        self._apply_statement_timeout()
        sql = self.render(statement)
        logger.debug(f"[{self.schema_name}] {' '.join(sql.split())[:200]}")
        if params is None:
            sql = _BIND_PARAM_PATTERN.sub(r'\\\1', sql)
        return self.session.execute(text(sql), params or {})

    def create_index(self, name: str, table: str, columns: Sequence[str], unique: bool = False):
        """Create an index, placing the schema qualifier where the dialect expects it."""
        index = self.quote(_check_identifier(name))
        column_list = ', '.join(self.quote(_check_identifier(c)) for c in columns)
        kind = 'UNIQUE INDEX' if unique else 'INDEX'

        if self.dialect_name == SQLITE:
            # SQLite qualifies the index, not the table
            sql = (
                f"CREATE {kind} IF NOT EXISTS {self.quoted_schema}.{index} "
                f"ON {self.quote(_check_identifier(table))} ({column_list})"
            )
        elif self.dialect_name in MYSQL_DIALECTS:
            sql = f"CREATE {kind} {index} ON {self.qualify(table)} ({column_list})"
        else:
            sql = f"CREATE {kind} IF NOT EXISTS {index} ON {self.qualify(table)} ({column_list})"

        return self.execute(sql)

    def drop_table(self, table: str):
        return self.execute(f"DROP TABLE IF EXISTS {self.qualify(table)}")

    def table_names(self) -> List[str]:
        return inspect(self.session.connection()).get_table_names(schema=self.schema_name)

    def has_table(self, table: str) -> bool:
        return table in self.table_names()

    def _apply_statement_timeout(self):
        if self.statement_timeout_ms and self.dialect_name == POSTGRESQL:
            # set_config(..., true) is transaction-local, like SET LOCAL
            self.session.execute(
                text("SELECT set_config('statement_timeout', :timeout, true)"),
                {'timeout': str(int(self.statement_timeout_ms))}
            )


class TenantSchemaManager:
    """
    Manages tenant schemas inside the main database.

    Handles schema creation and removal, schema inspection, and hands out
    SchemaExecutor instances for migrations.
    """

    def __init__(self, app=None):
        """
        Initialize the tenant schema manager.

        Args:
            app: Flask application instance (optional, can be set later with init_app)
        """
        self.app = app
        self.statement_timeout_ms = 0
        self.sqlite_schema_dir = None

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """
        Initialize the manager with Flask app configuration.

        Args:
            app: Flask application instance
        """
        self.app = app
        self.statement_timeout_ms = app.config.get('TENANT_MIGRATION_STATEMENT_TIMEOUT_MS', 0)
        self.sqlite_schema_dir = app.config.get('TENANT_SQLITE_SCHEMA_DIR', 'instance/schemas')

        with app.app_context():
            engine = db.engine
            if engine.dialect.name == SQLITE and not self._is_memory_database(engine):
                # Attached databases are per connection: re-attach on every new one
                event.listen(engine, 'connect', self._attach_existing_schema_files)

    @property
    def session(self) -> Session:
        return db.session

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    @property
    def supports_transactional_ddl(self) -> bool:
        """True when CREATE/DROP statements can be rolled back with the surrounding transaction."""
        return self.dialect_name == POSTGRESQL

    def executor(self, schema_name: str, session: Optional[Session] = None) -> SchemaExecutor:
        return SchemaExecutor(
            session or self.session,
            schema_name,
            statement_timeout_ms=self.statement_timeout_ms
        )

    def create_schema(self, schema_name: str) -> bool:
        """
        Create a tenant schema.

        On PostgreSQL the statement joins the session's current transaction,
        so it is undone if the caller rolls back.

        Args:
            schema_name: Name of the schema to create

        Returns:
            True if the schema was created, False if it already exists

        Raises:
            UnsupportedDialectError: If the backend is not supported
        """
        schema = SchemaName(schema_name)

        if self.schema_exists(schema):
            logger.info(f"Schema {schema} already exists")
            return False

        quoted = self._quote(schema)
        dialect = self.dialect_name

        if dialect == POSTGRESQL:
            self.session.execute(text(f"CREATE SCHEMA IF NOT EXISTS {quoted}"))
        elif dialect in MYSQL_DIALECTS:
            self.session.execute(text(f"CREATE DATABASE IF NOT EXISTS {quoted}"))
        elif dialect == SQLITE:
            path = self._sqlite_schema_path(schema)
            if path != ':memory:':
                # Connections opened later attach the files found on disk
                open(path, 'a').close()
            self.session.execute(text(f"ATTACH DATABASE :path AS {quoted}"), {'path': path})
        else:
            raise UnsupportedDialectError(f"Tenant schemas are not supported on {dialect}")

        logger.info(f"Created tenant schema: {schema}")
        return True

    def drop_schema(self, schema_name: str) -> bool:
        """
        Drop a tenant schema and everything in it.

        WARNING: This is a destructive operation that cannot be undone!

        Returns:
            True if a schema was dropped, False if it did not exist
        """
        schema = SchemaName(schema_name)

        if not self.schema_exists(schema):
            return False

        quoted = self._quote(schema)
        dialect = self.dialect_name

        if dialect == POSTGRESQL:
            self.session.execute(text(f"DROP SCHEMA IF EXISTS {quoted} CASCADE"))
        elif dialect in MYSQL_DIALECTS:
            self.session.execute(text(f"DROP DATABASE IF EXISTS {quoted}"))
        elif dialect == SQLITE:
            self.session.execute(text(f"DETACH DATABASE {quoted}"))
            path = self._sqlite_schema_path(schema)
            if path != ':memory:' and os.path.exists(path):
                os.remove(path)
        else:
            raise UnsupportedDialectError(f"Tenant schemas are not supported on {dialect}")

        logger.warning(f"Dropped tenant schema: {schema}")
        return True

    def schema_exists(self, schema_name: str) -> bool:
        """
        Check if a tenant schema exists.

        Args:
            schema_name: Name of the schema to check

        Returns:
            True if schema exists, False otherwise
        """
        schema = SchemaName(schema_name)
        dialect = self.dialect_name

        if dialect == SQLITE:
            rows = self.session.execute(text("PRAGMA database_list")).fetchall()
            return any(row[1] == schema for row in rows)

        if dialect == POSTGRESQL or dialect in MYSQL_DIALECTS:
            result = self.session.execute(
                text("SELECT 1 FROM information_schema.schemata WHERE schema_name = :name"),
                {'name': schema}
            )
            return result.fetchone() is not None

        raise UnsupportedDialectError(f"Tenant schemas are not supported on {dialect}")

    def list_tables(self, schema_name: str) -> List[str]:
        return self.executor(schema_name).table_names()

    def schema_stats(self, schema_name: str) -> SchemaStats:
        """
        Table count, row count and on-disk size of a tenant schema.

        Row counts come from the planner statistics on PostgreSQL and MySQL,
        so they lag behind recent writes. SQLite counts rows exactly.

        Raises:
            SchemaStatsError: If the schema does not exist or cannot be read
            UnsupportedDialectError: If the backend is not supported
        """
        schema = SchemaName(schema_name)

        if not self.schema_exists(schema):
            raise SchemaStatsError(
                f"Schema {schema} does not exist",
                details={'schema_name': str(schema)}
            )

        try:
            tables, total_rows, size_bytes = self._read_schema_stats(schema)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Could not read statistics of schema {schema}: {str(e)}", exc_info=True)
            raise SchemaStatsError(
                f"Could not read statistics of schema {schema}",
                details={'schema_name': str(schema), 'cause': str(e)}
            ) from e

        return SchemaStats(
            schema_name=str(schema),
            tables=int(tables),
            total_rows=int(total_rows),
            size_bytes=int(size_bytes)
        )

    def health_check(self, schema_name: Optional[str] = None) -> SchemaHealth:
        """
        Check that the main database, or one tenant schema, answers queries.

        Args:
            schema_name: Schema to check; the main database when omitted

        Returns:
            SchemaHealth, unhealthy with the error message on failure
        """
        target = MAIN_DATABASE if schema_name is None else str(SchemaName(schema_name))

        try:
            if schema_name is None:
                self.session.execute(text("SELECT 1"))
            elif not self.schema_exists(target):
                return SchemaHealth(target=target, healthy=False, error=f"Schema {target} does not exist")
            else:
                self.executor(target).table_names()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Health check failed for {target}: {str(e)}")
            return SchemaHealth(target=target, healthy=False, error=str(e))

        return SchemaHealth(target=target, healthy=True)

    def _read_schema_stats(self, schema: SchemaName) -> Tuple[int, int, int]:
        dialect = self.dialect_name

        if dialect == POSTGRESQL:
            row = self.session.execute(text("""
                SELECT COUNT(*),
                       COALESCE(SUM(s.n_live_tup), 0),
                       COALESCE(SUM(pg_total_relation_size(c.oid)), 0)
                FROM pg_class c
                JOIN pg_namespace n ON n.oid = c.relnamespace
                LEFT JOIN pg_stat_user_tables s ON s.relid = c.oid
                WHERE n.nspname = :schema AND c.relkind IN ('r', 'p')
            """), {'schema': schema}).fetchone()
            return row[0], row[1], row[2]

        if dialect in MYSQL_DIALECTS:
            row = self.session.execute(text("""
                SELECT COUNT(*),
                       COALESCE(SUM(table_rows), 0),
                       COALESCE(SUM(data_length + index_length), 0)
                FROM information_schema.tables
                WHERE table_schema = :schema AND table_type = 'BASE TABLE'
            """), {'schema': schema}).fetchone()
            return row[0], row[1], row[2]

        if dialect == SQLITE:
            executor = self.executor(schema)
            tables = executor.table_names()
            total_rows = sum(
                self.session.execute(text(f"SELECT COUNT(*) FROM {executor.qualify(table)}")).scalar()
                for table in tables
            )
            quoted = self._quote(schema)
            page_count = self.session.execute(text(f"PRAGMA {quoted}.page_count")).scalar()
            page_size = self.session.execute(text(f"PRAGMA {quoted}.page_size")).scalar()
            return len(tables), total_rows, page_count * page_size

        raise UnsupportedDialectError(f"Tenant schemas are not supported on {dialect}")

    def _quote(self, identifier: str) -> str:
        return self.session.get_bind().dialect.identifier_preparer.quote_identifier(identifier)

    @staticmethod
    def _is_memory_database(engine) -> bool:
        return engine.url.database in (None, '', ':memory:')

    def _sqlite_schema_path(self, schema: SchemaName) -> str:
        if self._is_memory_database(self.session.get_bind()):
            return ':memory:'
        os.makedirs(self.sqlite_schema_dir, exist_ok=True)
        return os.path.join(self.sqlite_schema_dir, f"{schema}.db")

    def _schema_files(self) -> Iterable[str]:
        if not self.sqlite_schema_dir or not os.path.isdir(self.sqlite_schema_dir):
            return []
        return sorted(f for f in os.listdir(self.sqlite_schema_dir) if f.endswith('.db'))

    def _attach_existing_schema_files(self, dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        try:
            for filename in self._schema_files():
                schema = SchemaName(filename[:-3])
                cursor.execute(
                    f'ATTACH DATABASE ? AS "{schema}"',
                    (os.path.join(self.sqlite_schema_dir, filename),)
                )
        finally:
            cursor.close()


# Global instance to be initialized with Flask app
tenant_schema_manager = TenantSchemaManager()


def init_tenant_schema_manager(app):
    """
    Initialize the global tenant schema manager with Flask app.

    Args:
        app: Flask application instance

    Example:
        >>> from tenancy.utils.database import init_tenant_schema_manager
        >>> init_tenant_schema_manager(app)
    """
    tenant_schema_manager.init_app(app)
