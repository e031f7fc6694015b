"""Access to the warehouse.

Everything that talks to Redshift goes through the small `Warehouse`
capability interface so refresh logic can run against a test double.
"""
import re
import threading
from contextlib import contextmanager
from typing import Any, ContextManager, Dict, Iterator, List, Optional, Sequence

import sqlalchemy as sa
from typing_extensions import Protocol

from s3_to_redshift.utils import logger

_CREDENTIALS_REGEX = re.compile(r"CREDENTIALS\s+'[^']*'", re.IGNORECASE)


def mask_credentials(statement: str) -> str:
    return _CREDENTIALS_REGEX.sub("CREDENTIALS '***'", statement)


class Executor(Protocol):
    def execute(self, statement: str, params: Optional[Dict[str, Any]] = None) -> None:
        ...

    def query(
        self, statement: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Sequence[Any]]:
        ...


class Warehouse(Executor, Protocol):
    def transaction(self) -> ContextManager[Executor]:
        """Scope a transaction: committed on exit, rolled back on error."""
        ...

    def autocommit(self) -> ContextManager[Executor]:
        """Scope a connection outside any transaction block, as VACUUM needs."""
        ...

    def cancel(self) -> None:
        ...


class ConnectionExecutor:
    """Runs statements on a single SQLAlchemy connection."""

    def __init__(self, conn: sa.engine.Connection):
        self.conn = conn

    def execute(self, statement, params=None):
        logger.info("Executing Redshift command: %s", mask_credentials(statement))
        self.conn.execute(sa.text(statement), params or {})

    def query(self, statement, params=None):
        return [tuple(row) for row in self.conn.execute(sa.text(statement), params or {})]


class SqlAlchemyWarehouse:
    def __init__(self, engine: sa.engine.Engine, statement_timeout: Optional[int] = None):
        self.engine = engine
        self.statement_timeout = statement_timeout
        self._active = set()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config) -> "SqlAlchemyWarehouse":
        url = sa.engine.URL.create(
            'postgresql+psycopg2',
            username=config.redshift_user,
            password=config.redshift_password,
            host=config.redshift_host,
            port=config.redshift_port,
            database=config.redshift_db,
        )
        logger.info(
            "Connecting to Redshift at %s:%s/%s",
            config.redshift_host,
            config.redshift_port,
            config.redshift_db,
        )
        engine = sa.create_engine(
            url,
            connect_args={'connect_timeout': config.connect_timeout},
            pool_size=config.workers,
            max_overflow=0,
            pool_pre_ping=True,
        )
        return cls(engine, statement_timeout=config.statement_timeout)

    @contextmanager
    def transaction(self) -> Iterator[ConnectionExecutor]:
        with self.engine.begin() as conn:
            dbapi_connection = conn.connection.dbapi_connection
            with self._lock:
                self._active.add(dbapi_connection)
            try:
                executor = ConnectionExecutor(conn)
                if self.statement_timeout:
                    executor.execute(f"SET statement_timeout = {int(self.statement_timeout)}")
                yield executor
            finally:
                with self._lock:
                    self._active.discard(dbapi_connection)

    @contextmanager
    def autocommit(self) -> Iterator[ConnectionExecutor]:
        with self.engine.connect() as conn:
            yield ConnectionExecutor(conn.execution_options(isolation_level='AUTOCOMMIT'))

    def execute(self, statement, params=None):
        with self.transaction() as tx:
            tx.execute(statement, params)

    def query(self, statement, params=None):
        with self.transaction() as tx:
            return tx.query(statement, params)

    def cancel(self):
        """Abort the statements running in every open transaction.

        The interrupted statement raises in its worker, which rolls the
        transaction back on the way out.
        """
        with self._lock:
            connections = list(self._active)
        for dbapi_connection in connections:
            logger.warning("Cancelling running Redshift statement")
            dbapi_connection.cancel()

    def dispose(self):
        self.engine.dispose()
