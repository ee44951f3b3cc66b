"""Exactly-once schema setup and teardown of the benchmark table."""

import asyncio
import logging
from typing import Any, List, Optional, Sequence

import aiomysql
from pymysql.err import MySQLError

from .errors import SchemaError, SetupAbortedError, TeardownError
from .workload import Workload

logger = logging.getLogger(__name__)

# Worker that owns all DDL
DDL_OWNER = 0


class SchemaCoordinator:
    """
    Creates, seeds and drops the benchmark table on behalf of all workers.

    Only worker 0 issues DDL. Every worker waits on the shared barrier after
    setup, so no timed iteration starts before the table is ready.
    """

    def __init__(self, workload: Workload, barrier: asyncio.Barrier):
        """
        Args:
            workload: Workload that defines the table shape and seed data
            barrier: Barrier sized to the number of workers
        """
        self._workload = workload
        self._barrier = barrier
        self._table = workload.config.quoted_table

    async def _execute(self, conn: aiomysql.Connection, sql: str, args: Optional[Sequence[Any]] = None) -> None:
        async with conn.cursor() as cur:
            await cur.execute(sql, args)

    async def create_table(self, conn: aiomysql.Connection) -> None:
        """Drop the table if it exists and create it again."""
        try:
            await self._execute(conn, f"DROP TABLE IF EXISTS {self._table}")
            await self._execute(conn, self._workload.create_table_sql())
        except (MySQLError, OSError) as e:
            raise SchemaError(f"Failed to create table {self._table}: {e}") from e
        logger.info(f"Table {self._table} created")

    async def seed(self, conn: aiomysql.Connection) -> int:
        """
        Fill the table with the workload's seed rows in fixed-size chunks.

        Returns:
            Number of rows inserted
        """
        chunks: List = self._workload.seed_chunks()
        inserted = 0
        for i, (sql, args) in enumerate(chunks):
            try:
                await self._execute(conn, sql, args)
            except (MySQLError, OSError) as e:
                raise SchemaError(f"Failed to seed table {self._table} (chunk {i + 1}/{len(chunks)}): {e}") from e
            inserted += len(args)
        if chunks:
            logger.info(f"Seeded {inserted} rows into {self._table}")
        return inserted

    async def setup(self, conn: aiomysql.Connection, worker_id: int) -> None:
        """
        Run one-time setup (worker 0 only) and wait for all workers.

        Raises:
            SchemaError: DDL or seeding failed on worker 0
            SetupAbortedError: Another worker's setup failed while this one waited
        """
        if worker_id == DDL_OWNER:
            try:
                await self.create_table(conn)
                await self.seed(conn)
            except Exception:
                await self._barrier.abort()
                raise

        logger.debug(f"Worker {worker_id} waiting on setup barrier")
        try:
            await self._barrier.wait()
        except asyncio.BrokenBarrierError as e:
            raise SetupAbortedError(f"Worker {worker_id}: schema setup did not complete") from e

    async def teardown(self, conn: aiomysql.Connection, worker_id: int) -> Optional[TeardownError]:
        """
        Drop the benchmark table (worker 0 only).

        The caller must invoke this only after every worker has stopped
        iterating. Failure is logged and returned, never raised.
        """
        if worker_id != DDL_OWNER:
            return None
        try:
            await self._execute(conn, f"DROP TABLE IF EXISTS {self._table}")
        except (MySQLError, OSError) as e:
            error = TeardownError(f"Failed to drop table {self._table}: {e}")
            logger.error(str(error))
            return error
        logger.info(f"Table {self._table} dropped")
        return None
