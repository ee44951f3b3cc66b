"""In-memory stand-in for a TiDB server speaking through an aiomysql-like API."""

import asyncio
import itertools
import re
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import patch

import pytest
from pymysql.err import OperationalError, ProgrammingError

TABLE_RE = re.compile(r"`((?:[^`]|``)+)`")
COLUMNS_RE = re.compile(r"\(([^)]*)\)\s+VALUES", re.IGNORECASE)


class FakeServer:
    def __init__(self):
        self.reachable = True
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.ddl_log: List[tuple] = []
        self.statements: List[tuple] = []
        self.offsets: List[int] = []
        self.connections: List["FakeConnection"] = []
        self._failures: List[list] = []
        self._ids = itertools.count()
        self._auto_id = itertools.count(1)
        self.ddl_delay = 0.01
        self.statement_delay = 0
        self.max_connections: Optional[int] = None
        self.connect_delays: Dict[int, float] = {}
        self._attempts = itertools.count()

    def fail_on(self, prefix: str, error: Exception, times: int = 1) -> None:
        """Make the next `times` statements starting with `prefix` raise `error`."""
        self._failures.append([prefix.upper(), error, times])

    def _maybe_fail(self, sql: str) -> None:
        for failure in self._failures:
            prefix, error, times = failure
            if times > 0 and sql.upper().startswith(prefix):
                failure[2] -= 1
                raise error

    @staticmethod
    def table_name(sql: str) -> str:
        return TABLE_RE.search(sql).group(1).replace("``", "`")

    def _table(self, sql: str) -> List[Dict[str, Any]]:
        name = self.table_name(sql)
        if name not in self.tables:
            raise ProgrammingError(1146, f"Table 'test.{name}' doesn't exist")
        return self.tables[name]

    async def handle(self, conn: "FakeConnection", sql: str, args: Optional[Sequence[Any]]):
        """Execute a statement and return (rows, rowcount)."""
        await asyncio.sleep(0)
        sql = sql.strip()
        self.statements.append((conn.conn_id, sql, tuple(args) if args else ()))
        self._maybe_fail(sql)
        upper = sql.upper()

        if upper.startswith("SET SESSION"):
            conn.session_mode = sql.split("'")[1]
            return (), 0

        if upper.startswith("DROP TABLE IF EXISTS"):
            await asyncio.sleep(self.ddl_delay)
            self.ddl_log.append((conn.conn_id, "DROP"))
            self.tables.pop(self.table_name(sql), None)
            return (), 0

        if upper.startswith("CREATE TABLE"):
            await asyncio.sleep(self.ddl_delay)
            name = self.table_name(sql)
            if name in self.tables:
                raise OperationalError(1050, f"Table '{name}' already exists")
            self.ddl_log.append((conn.conn_id, "CREATE"))
            self.tables[name] = []
            return (), 0

        if upper.startswith("INSERT INTO"):
            await asyncio.sleep(self.statement_delay)
            table = self._table(sql)
            columns = [c.strip() for c in COLUMNS_RE.search(sql).group(1).split(",")]
            args = list(args or ())
            rows = [dict(zip(columns, args[i:i + len(columns)])) for i in range(0, len(args), len(columns))]
            if conn.in_transaction:
                conn.pending.append((table, rows))
            else:
                self._apply(table, rows)
            return (), len(rows)

        if upper.startswith("SELECT"):
            await asyncio.sleep(self.statement_delay)
            table = self._table(sql)
            limit = args[0]
            offset = args[1] if len(args) > 1 else 0
            self.offsets.append(offset)
            rows = tuple((row["id"], row["data"]) for row in table[offset:offset + limit])
            return rows, len(rows)

        raise ProgrammingError(1064, f"Unsupported statement: {sql[:40]}")

    def _apply(self, table: List[Dict[str, Any]], rows: List[Dict[str, Any]]) -> None:
        for row in rows:
            table.append(dict(row, id=next(self._auto_id)))

    async def commit(self, conn: "FakeConnection") -> None:
        await asyncio.sleep(0)
        self._maybe_fail("COMMIT")
        for table, rows in conn.pending:
            self._apply(table, rows)

    def rows(self, table: str = "bench_table") -> List[Dict[str, Any]]:
        return self.tables.get(table, [])


class FakeCursor:
    def __init__(self, conn: "FakeConnection"):
        self._conn = conn
        self._rows = ()
        self.rowcount = -1

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, sql: str, args: Optional[Sequence[Any]] = None):
        if self._conn.closed:
            raise OperationalError(2006, "MySQL server has gone away")
        self._rows, self.rowcount = await self._conn.server.handle(self._conn, sql, args)
        return self.rowcount

    async def fetchall(self):
        return self._rows


class FakeConnection:
    def __init__(self, server: FakeServer, **kwargs):
        self.server = server
        self.kwargs = kwargs
        self.conn_id = next(server._ids)
        self.session_mode: Optional[str] = None
        self.in_transaction = False
        self.pending: List[tuple] = []
        self.closed = False
        self.begins = 0
        self.commits = 0
        self.rollbacks = 0

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    async def begin(self):
        self.begins += 1
        self.in_transaction = True
        self.pending = []

    async def commit(self):
        self.commits += 1
        try:
            await self.server.commit(self)
        finally:
            self.in_transaction = False
            self.pending = []

    async def rollback(self):
        self.rollbacks += 1
        self.in_transaction = False
        self.pending = []

    def close(self):
        self.closed = True


@pytest.fixture
def fake_server():
    server = FakeServer()

    async def fake_connect(**kwargs):
        await asyncio.sleep(server.connect_delays.get(next(server._attempts), 0))
        if not server.reachable or (
            server.max_connections is not None and len(server.connections) >= server.max_connections
        ):
            raise OperationalError(2003, f"Can't connect to MySQL server on '{kwargs.get('host')}'")
        conn = FakeConnection(server, **kwargs)
        server.connections.append(conn)
        return conn

    with patch("tidb_bench.connection.aiomysql.connect", new=fake_connect):
        yield server
