from click.testing import CliRunner

from tidb_bench.cli import cli


def test_insert_command(fake_server):
    result = CliRunner().invoke(cli, ["--table", "cli_table", "insert", "-c", "2", "-b", "10", "-n", "3"])

    assert result.exit_code == 0, result.output
    assert "PERFORMANCE METRICS: INSERT" in result.output
    assert "Total Iterations:         6" in result.output
    assert "Workload completed" in result.output
    assert "cli_table" not in fake_server.tables


def test_select_command_pessimistic(fake_server):
    result = CliRunner().invoke(
        cli, ["-m", "pessimistic", "select", "--select-count", "50", "--random-offset", "-n", "2"]
    )

    assert result.exit_code == 0, result.output
    assert fake_server.connections[0].session_mode == "pessimistic"
    assert all(0 <= offset <= 50 for offset in fake_server.offsets)


def test_connection_options_from_env(fake_server):
    result = CliRunner().invoke(
        cli, ["insert", "-n", "1"], env={"TIDB_HOST": "tidb.local", "TIDB_PORT": "4001", "TIDB_USER": "bench"}
    )

    assert result.exit_code == 0, result.output
    conn = fake_server.connections[0]
    assert conn.kwargs["host"] == "tidb.local"
    assert conn.kwargs["port"] == 4001
    assert conn.kwargs["user"] == "bench"


def test_unreachable_database_exits_with_phase(fake_server):
    fake_server.reachable = False

    result = CliRunner().invoke(cli, ["insert", "-n", "1"])

    assert result.exit_code == 1
    assert "connect phase failed" in result.output


def test_iterations_and_duration_are_exclusive(fake_server):
    result = CliRunner().invoke(cli, ["insert", "-n", "1", "-d", "5"])

    assert result.exit_code == 2
    assert fake_server.connections == []


def test_invalid_table_name(fake_server):
    result = CliRunner().invoke(cli, ["--table", "bad%name", "insert", "-n", "1"])

    assert result.exit_code == 2
    assert "Invalid table name" in result.output


def test_invalid_tx_mode(fake_server):
    result = CliRunner().invoke(cli, ["-m", "serializable", "insert", "-n", "1"])

    assert result.exit_code == 2


def test_rate_and_warmup_options(fake_server):
    result = CliRunner().invoke(cli, ["insert", "-c", "2", "-r", "200", "-w", "0.05", "-n", "2"])

    assert result.exit_code == 0, result.output
    assert "Total Iterations:         4" in result.output


def test_rate_must_be_positive(fake_server):
    result = CliRunner().invoke(cli, ["insert", "-r", "0", "-n", "1"])

    assert result.exit_code == 2
    assert not fake_server.connections
