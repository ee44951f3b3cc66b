#!/usr/bin/env python3
import logging
import re
import sys
from typing import Any, Callable, Optional

import click
from click_option_group import optgroup, MutuallyExclusiveOptionGroup

from .config import BenchConfig
from .constants import DEFAULT_PORT, DurationUnit, TxMode
from .errors import BenchError
from .runner import Runner
from .workload import InsertWorkload, SelectWorkload, Workload


def setup_logging(log_level_str: str) -> None:
    """Convert a log level name to a numeric level and configure logging."""
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    if log_level_str not in level_map:
        raise click.BadParameter(
            f"Invalid log level: {log_level_str}. Valid values: {list(level_map.keys())}"
        )

    logging.basicConfig(
        level=level_map[log_level_str],
        format="%(asctime)s - PID:%(process)d - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def validate_table(_ctx: Any, _param: Any, table: str) -> str:
    """
    Validate table name before it is quoted into SQL text.
    """
    if not re.match(r"^[a-zA-Z0-9_\-\$]+$", table):
        raise click.BadParameter(
            f"Invalid table name '{table}'. "
            "Only alphanumeric characters, underscores, hyphens and dollar signs are allowed."
        )
    return table


def run_options(func: Callable) -> Callable:
    """Options shared by all workload commands."""
    decorators = [
        click.option(
            "--concurrency",
            "-c",
            type=click.IntRange(min=1),
            default=1,
            help="Number of concurrent workers (default: 1)",
        ),
        click.option(
            "--preheat-duration",
            "--warmup",
            "-P",
            "-w",
            type=click.FloatRange(min=0),
            default=0,
            help="Preheat duration in seconds, not recorded (default: 0)",
        ),
        click.option(
            "--rate",
            "-r",
            type=click.FloatRange(min=0, min_open=True),
            help="Limit of iterations per second across all workers (default: unlimited)",
        ),
        optgroup.group(
            "Run length",
            cls=MutuallyExclusiveOptionGroup,
            help="Specify ONLY one of: number of iterations OR run duration.",
        ),
        optgroup.option(
            "--iterations",
            "-n",
            type=click.IntRange(min=0),
            help="Number of iterations each worker runs",
        ),
        optgroup.option(
            "--duration",
            "-d",
            type=click.IntRange(min=0),
            default=60,
            help="Run duration in seconds (default: 60)",
        ),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def run_workload(
    ctx: click.Context,
    workload_cls: type,
    concurrency: int,
    preheat_duration: float,
    iterations: Optional[int],
    duration: int,
    rate: Optional[float],
    **workload_options: Any,
) -> None:
    """Build the configuration, run the workload and print the metrics summary."""
    try:
        config = BenchConfig(concurrency=concurrency, rate=rate, **ctx.obj["connection"], **workload_options)
    except BenchError as e:
        raise click.BadParameter(str(e))

    workload: Workload = workload_cls(config)

    if iterations is not None:
        length, unit, desc = iterations, DurationUnit.TXN, "iterations per worker"
    else:
        length, unit, desc = duration, DurationUnit.SECOND, "seconds"

    click.echo(
        f"Running {workload.name} workload on {config.host}:{config.port}/{config.database} "
        f"table={config.table}, tx_mode={config.tx_mode.value}, concurrency={concurrency}, "
        f"duration={length} ({desc})"
    )

    runner = Runner(config, workload)
    try:
        metrics = runner.run(length, unit, preheat_duration)
    except BenchError as e:
        raise click.ClickException(f"{e.phase} phase failed: {e}")

    metrics.print_summary(workload.name.upper())
    if runner.teardown_error is not None:
        click.echo(f"Warning: {runner.teardown_error}", err=True)

    click.echo("Workload completed")


@click.group()
@click.option("--host", envvar="TIDB_HOST", default="localhost", help="TiDB server host (default: localhost)")
@click.option(
    "--port", envvar="TIDB_PORT", type=int, default=DEFAULT_PORT, help=f"TiDB server port (default: {DEFAULT_PORT})"
)
@click.option("--user", envvar="TIDB_USER", default="root", help="Username for authentication (default: root)")
@click.option("--password", envvar="TIDB_PASSWORD", default="", help="Password for authentication")
@click.option("--database", envvar="TIDB_DATABASE", default="test", help="Database name (default: test)")
@click.option(
    "--table",
    envvar="TIDB_TABLE",
    default="bench_table",
    callback=validate_table,
    help="Benchmark table name (default: bench_table)",
)
@click.option(
    "--tx-mode",
    "-m",
    type=click.Choice([mode.value for mode in TxMode]),
    default=TxMode.AUTO_COMMIT.value,
    help="Transaction mode (default: auto-commit)",
)
@click.option(
    "--log-level",
    type=str,
    default="INFO",
    help="Logging level. Options: DEBUG, INFO, WARNING, ERROR, CRITICAL. Default: INFO",
)
@click.pass_context
def cli(
    ctx: click.Context,
    host: str,
    port: int,
    user: str,
    password: str,
    database: str,
    table: str,
    tx_mode: str,
    log_level: str,
) -> None:
    """TiDB INSERT/SELECT load generator."""

    setup_logging(log_level)

    ctx.ensure_object(dict)
    ctx.obj["connection"] = {
        "host": host,
        "port": port,
        "user": user,
        "password": password,
        "database": database,
        "table": table,
        "tx_mode": TxMode(tx_mode),
    }


@cli.command()
@click.option(
    "--batch-size",
    "-b",
    type=click.IntRange(min=1),
    default=100,
    help="Number of rows to insert in each batch (default: 100)",
)
@run_options
@click.pass_context
def insert(ctx: click.Context, batch_size: int, **options: Any) -> None:
    """Benchmark multi-row INSERT batches."""
    run_workload(ctx, InsertWorkload, batch_size=batch_size, **options)


@cli.command()
@click.option(
    "--select-count",
    type=click.IntRange(min=1),
    default=1000,
    help="Number of rows to select in each iteration (default: 1000)",
)
@click.option(
    "--random-offset",
    is_flag=True,
    help="Read from a random OFFSET instead of the head of the table",
)
@run_options
@click.pass_context
def select(ctx: click.Context, select_count: int, random_offset: bool, **options: Any) -> None:
    """Benchmark SELECT of a fixed number of rows."""
    run_workload(ctx, SelectWorkload, select_count=select_count, random_offset=random_offset, **options)


if __name__ == "__main__":
    cli()
