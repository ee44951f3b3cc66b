"""INSERT and SELECT workloads: schema shape, seeding and timed iterations."""

import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import aiomysql

from .config import BenchConfig
from .constants import BIGINT_SIZE, INSERT_ROW_BYTES, SEED_CHUNK_SIZE, STATUS_FAILURE, STATUS_SUCCESS
from .errors import TransactionError
from .metrics import IterationReport
from .transaction import execute_unit

logger = logging.getLogger(__name__)


@dataclass
class WorkerState:
    """Connection and insert counter owned by a single worker."""

    conn: aiomysql.Connection
    insert_counter: int = 0


def values_clause(row_count: int, columns: int) -> str:
    row = "(" + ", ".join(["%s"] * columns) + ")"
    return ", ".join([row] * row_count)


class Workload(ABC):
    """
    A benchmark workload.

    Subclasses define the table shape, optional seed data, and one timed
    unit of work per iteration.
    """

    name = "workload"

    def __init__(self, config: BenchConfig):
        self._config = config

    @property
    def config(self) -> BenchConfig:
        return self._config

    @abstractmethod
    def create_table_sql(self) -> str:
        ...

    def seed_chunks(self) -> List[Tuple[str, List[Any]]]:
        """Statements that fill the table before the timed loop. None by default."""
        return []

    def init_state(self, conn: aiomysql.Connection, worker_id: int) -> WorkerState:
        return WorkerState(conn=conn)

    @abstractmethod
    async def _execute_unit(self, state: WorkerState) -> Tuple[int, int]:
        """Run the unit of work and return (bytes, items)."""

    async def execute(self, state: WorkerState) -> IterationReport:
        """
        Execute one timed iteration.

        Transaction errors are turned into a failed report. Connection and
        missing-schema errors propagate and terminate the worker.
        """
        start = time.perf_counter()
        try:
            bytes_count, items = await self._execute_unit(state)
        except TransactionError as e:
            duration = time.perf_counter() - start
            logger.debug(f"{self.name} iteration failed: {e}")
            return IterationReport(duration=duration, status=e.errno or STATUS_FAILURE, error_message=str(e))
        duration = time.perf_counter() - start
        return IterationReport(duration=duration, status=STATUS_SUCCESS, bytes=bytes_count, items=items)


class InsertWorkload(Workload):
    """
    Batch INSERT of synthetic rows.

    Worker `w` of `n` starts its counter at `w * batch_size` and advances it by
    `n * batch_size` per committed batch, so counters of different workers never
    overlap and no shared counter is needed.
    """

    name = "insert"

    def create_table_sql(self) -> str:
        return f"""CREATE TABLE {self._config.quoted_table} (
                id BIGINT PRIMARY KEY AUTO_INCREMENT,
                data VARCHAR(255),
                value INT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )"""

    def init_state(self, conn: aiomysql.Connection, worker_id: int) -> WorkerState:
        return WorkerState(conn=conn, insert_counter=worker_id * self._config.batch_size)

    def build_batch(self, counter: int) -> Tuple[str, List[Any]]:
        batch_size = self._config.batch_size
        args: List[Any] = []
        for c in range(counter, counter + batch_size):
            args.append(f"bench_data_{c}")
            args.append(c % 1000)
        sql = f"INSERT INTO {self._config.quoted_table} (data, value) VALUES {values_clause(batch_size, 2)}"
        return sql, args

    async def _execute_unit(self, state: WorkerState) -> Tuple[int, int]:
        sql, args = self.build_batch(state.insert_counter)
        result = await execute_unit(state.conn, sql, args, explicit=self._config.tx_mode.explicit)
        state.insert_counter += self._config.batch_size * self._config.concurrency
        # Approximate bytes: data string + int
        return self._config.batch_size * INSERT_ROW_BYTES, result.rowcount


class SelectWorkload(Workload):
    """SELECT of `select_count` rows from a seeded table."""

    name = "select"

    def create_table_sql(self) -> str:
        return f"""CREATE TABLE {self._config.quoted_table} (
                id BIGINT PRIMARY KEY AUTO_INCREMENT,
                data VARCHAR(255),
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )"""

    def seed_chunks(self) -> List[Tuple[str, List[Any]]]:
        chunks = []
        total = self._config.seed_rows
        for first in range(1, total + 1, SEED_CHUNK_SIZE):
            last = min(first + SEED_CHUNK_SIZE - 1, total)
            args = [f"test_data_{n}" for n in range(first, last + 1)]
            sql = f"INSERT INTO {self._config.quoted_table} (data) VALUES {values_clause(len(args), 1)}"
            chunks.append((sql, args))
        return chunks

    def random_offset(self) -> int:
        """Offset drawn uniformly so that a full `select_count` page always fits."""
        return random.randint(0, max(self._config.seed_rows - self._config.select_count, 0))

    def build_query(self, offset: Optional[int] = None) -> Tuple[str, List[Any]]:
        sql = f"SELECT id, data FROM {self._config.quoted_table} LIMIT %s"
        if offset is None:
            return sql, [self._config.select_count]
        return sql + " OFFSET %s", [self._config.select_count, offset]

    @staticmethod
    def estimate_bytes(rows) -> int:
        """
        Estimated payload of the fetched rows: a BIGINT per id plus the
        length of each data string. Not wire-exact.
        """
        total = 0
        for _, data in rows:
            total += BIGINT_SIZE + (len(data) if data is not None else 0)
        return total

    async def _execute_unit(self, state: WorkerState) -> Tuple[int, int]:
        offset = self.random_offset() if self._config.random_offset else None
        sql, args = self.build_query(offset)
        result = await execute_unit(state.conn, sql, args, explicit=self._config.tx_mode.explicit, fetch=True)
        return self.estimate_bytes(result.rows), len(result.rows)

