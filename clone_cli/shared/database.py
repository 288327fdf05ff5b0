"""SQL Server connection helpers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Mapping

import pymssql

from .config import AppConfig
from .exceptions import DatabaseError

APP_NAME = "clone-table"


def _open_connection(
    config: AppConfig,
    database: str,
    env: Mapping[str, str] | None = None,
) -> pymssql.Connection:
    source = config.source
    try:
        return pymssql.connect(
            server=source.server,
            port=source.port,
            user=source.user,
            password=source.password(env),
            database=database,
            login_timeout=source.login_timeout,
            appname=APP_NAME,
            autocommit=False,
        )
    except pymssql.Error as exc:
        raise DatabaseError(
            f"Unable to connect to {source.server}:{source.port}/{database}: {exc}"
        ) from exc


@contextmanager
def connect(
    config: AppConfig,
    *,
    database: str | None = None,
    env: Mapping[str, str] | None = None,
) -> Iterator[pymssql.Connection]:
    """Yield a connection to ``database`` (the configured source by default).

    Uncommitted work is rolled back on close; callers commit explicitly.
    """
    connection = _open_connection(config, database or config.source.database, env)
    try:
        yield connection
    finally:
        connection.close()
