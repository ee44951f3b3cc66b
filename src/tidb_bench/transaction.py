"""Execution of one unit of work under the configured transaction mode."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Tuple

import aiomysql
from pymysql.constants import ER
from pymysql.err import MySQLError

from .connection import is_connection_error
from .constants import STATUS_FAILURE
from .errors import DatabaseConnectionError, SchemaError, TransactionError

logger = logging.getLogger(__name__)

# Server error codes meaning the benchmark schema is gone
SCHEMA_MISSING_ERRNOS = frozenset({ER.NO_SUCH_TABLE, ER.BAD_DB_ERROR})


@dataclass
class UnitResult:
    """Rows returned and rows affected by a unit of work."""

    rows: Tuple[Tuple[Any, ...], ...] = field(default_factory=tuple)
    rowcount: int = 0


def _translate(error: BaseException) -> Exception:
    if is_connection_error(error):
        return DatabaseConnectionError(f"Connection lost: {error}", phase="iterate")
    errno = error.args[0] if error.args and isinstance(error.args[0], int) else STATUS_FAILURE
    if errno in SCHEMA_MISSING_ERRNOS:
        return SchemaError(f"Benchmark schema is missing: {error}", phase="iterate")
    return TransactionError(str(error), errno=errno)


async def _run(conn: aiomysql.Connection, sql: str, args: Optional[Sequence[Any]], fetch: bool) -> UnitResult:
    async with conn.cursor() as cur:
        await cur.execute(sql, args)
        rows = tuple(await cur.fetchall()) if fetch else ()
        return UnitResult(rows=rows, rowcount=cur.rowcount)


async def execute_unit(
    conn: aiomysql.Connection,
    sql: str,
    args: Optional[Sequence[Any]] = None,
    explicit: bool = False,
    fetch: bool = False,
) -> UnitResult:
    """
    Execute a single statement, optionally wrapped in an explicit transaction.

    Optimistic and pessimistic modes share the explicit path; they differ only
    in the session directive applied at connect time.

    Args:
        conn: Worker connection (auto-commit enabled)
        sql: Statement text with %s placeholders
        args: Bound parameters
        explicit: Wrap the statement in BEGIN/COMMIT
        fetch: Fetch and return the result rows

    Returns:
        UnitResult with fetched rows and affected row count

    Raises:
        TransactionError: Statement or commit failed, connection still usable
        SchemaError: The benchmark table or database does not exist
        DatabaseConnectionError: Connection is broken
    """
    if not explicit:
        try:
            return await _run(conn, sql, args, fetch)
        except (MySQLError, OSError) as e:
            raise _translate(e) from e

    try:
        await conn.begin()
        result = await _run(conn, sql, args, fetch)
        await conn.commit()
        return result
    except (MySQLError, OSError) as e:
        error = _translate(e)
        if isinstance(error, TransactionError):
            await _rollback(conn)
        raise error from e


async def _rollback(conn: aiomysql.Connection) -> None:
    try:
        await conn.rollback()
    except (MySQLError, OSError) as e:
        if is_connection_error(e):
            raise DatabaseConnectionError(f"Connection lost during rollback: {e}", phase="iterate") from e
        logger.warning(f"Rollback failed: {e}")
