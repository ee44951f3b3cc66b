import asyncio

import pytest
from pymysql.err import InterfaceError, OperationalError, ProgrammingError

from tidb_bench.config import BenchConfig
from tidb_bench.connection import is_connection_error, provision
from tidb_bench.constants import TxMode
from tidb_bench.errors import ConfigurationError, DatabaseConnectionError


def test_connect_uses_config(fake_server):
    config = BenchConfig(host="db", port=4001, user="bench", password="secret", database="sbtest")
    conn = asyncio.run(provision(config))

    assert conn.kwargs["host"] == "db"
    assert conn.kwargs["port"] == 4001
    assert conn.kwargs["user"] == "bench"
    assert conn.kwargs["password"] == "secret"
    assert conn.kwargs["db"] == "sbtest"
    assert conn.kwargs["autocommit"] is True


def test_auto_commit_issues_no_directive(fake_server):
    conn = asyncio.run(provision(BenchConfig(tx_mode=TxMode.AUTO_COMMIT)))

    assert conn.session_mode is None
    assert fake_server.statements == []


@pytest.mark.parametrize("mode", [TxMode.OPTIMISTIC, TxMode.PESSIMISTIC])
def test_directive_issued_once(fake_server, mode):
    conn = asyncio.run(provision(BenchConfig(tx_mode=mode)))

    assert conn.session_mode == mode.value
    directives = [s for s in fake_server.statements if s[1].startswith("SET SESSION")]
    assert len(directives) == 1


def test_unreachable_database(fake_server):
    fake_server.reachable = False
    with pytest.raises(DatabaseConnectionError) as excinfo:
        asyncio.run(provision(BenchConfig()))
    assert excinfo.value.phase == "connect"
    assert excinfo.value.fatal


def test_directive_failure_is_configuration_error(fake_server):
    fake_server.fail_on("SET SESSION", ProgrammingError(1193, "Unknown system variable 'tidb_txn_mode'"))

    with pytest.raises(ConfigurationError):
        asyncio.run(provision(BenchConfig(tx_mode=TxMode.PESSIMISTIC)))
    assert fake_server.connections[0].closed


def test_is_connection_error():
    assert is_connection_error(OperationalError(2013, "Lost connection to MySQL server during query"))
    assert is_connection_error(OperationalError(2006, "MySQL server has gone away"))
    assert is_connection_error(InterfaceError(0, ""))
    assert is_connection_error(ConnectionResetError())
    assert not is_connection_error(OperationalError(9007, "Write conflict"))
    assert not is_connection_error(ProgrammingError(1146, "Table doesn't exist"))
