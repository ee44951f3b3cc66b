"""Per-worker connection provisioning."""

import asyncio
import logging

import aiomysql
from pymysql.constants import CR
from pymysql.err import InterfaceError, MySQLError, OperationalError

from .config import BenchConfig
from .errors import ConfigurationError, DatabaseConnectionError

logger = logging.getLogger(__name__)

# Client error codes meaning the connection itself is unusable
CONNECTION_LOST_ERRNOS = frozenset(
    {
        CR.CR_CONNECTION_ERROR,
        CR.CR_CONN_HOST_ERROR,
        CR.CR_SERVER_GONE_ERROR,
        CR.CR_SERVER_LOST,
    }
)


def is_connection_error(error: BaseException) -> bool:
    """Tell whether `error` means the connection is broken rather than the statement failed."""
    if isinstance(error, (InterfaceError, OSError, asyncio.TimeoutError)):
        return True
    if isinstance(error, OperationalError) and error.args:
        return error.args[0] in CONNECTION_LOST_ERRNOS
    return False


async def connect(config: BenchConfig) -> aiomysql.Connection:
    """
    Open an auto-commit connection bound to the benchmark database.

    Args:
        config: Benchmark configuration

    Returns:
        Connected aiomysql connection

    Raises:
        DatabaseConnectionError: On network or authentication failure
    """
    try:
        conn = await aiomysql.connect(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            db=config.database,
            connect_timeout=config.connect_timeout,
            autocommit=True,
        )
    except (MySQLError, OSError, asyncio.TimeoutError) as e:
        raise DatabaseConnectionError(
            f"Can't connect to {config.user}@{config.host}:{config.port}/{config.database}: {e}"
        ) from e
    logger.debug(f"Connected to {config.host}:{config.port}/{config.database}")
    return conn


async def init_tx_mode(conn: aiomysql.Connection, config: BenchConfig) -> None:
    """
    Set the TiDB transaction mode for the session (once per connection).

    Raises:
        ConfigurationError: If the directive fails, since iterations would run
            under the wrong mode otherwise
    """
    directive = config.tx_mode.session_directive
    if directive is None:
        return
    try:
        async with conn.cursor() as cur:
            await cur.execute(directive)
    except (MySQLError, OSError) as e:
        raise ConfigurationError(f"Failed to set transaction mode {config.tx_mode.value}: {e}") from e
    logger.debug(f"Session transaction mode set: {directive}")


async def provision(config: BenchConfig) -> aiomysql.Connection:
    """Connect and apply the session transaction mode."""
    conn = await connect(config)
    try:
        await init_tx_mode(conn, config)
    except ConfigurationError:
        conn.close()
        raise
    return conn
