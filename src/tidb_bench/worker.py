import asyncio
import logging
import time
from typing import Optional

from .config import BenchConfig
from .connection import provision
from .constants import DurationUnit
from .errors import TeardownError
from .metrics import IterationReport, MetricsCollector
from .schema import SchemaCoordinator
from .workload import WorkerState, Workload

logger = logging.getLogger(__name__)


class Worker:
    """
    One benchmark worker driving its own connection.

    Lifecycle: connect -> setup (barrier) -> timed iterations -> teardown.
    Teardown is driven separately by the caller once all workers stopped.
    """

    def __init__(
        self,
        worker_id: int,
        config: BenchConfig,
        workload: Workload,
        coordinator: SchemaCoordinator,
        metrics_collector: Optional[MetricsCollector] = None,
        stop_event: Optional[asyncio.Event] = None,
    ):
        """
        Initialize a worker.

        Args:
            worker_id: Worker index; worker 0 owns the DDL
            config: Shared read-only configuration
            workload: Workload executed on every iteration
            coordinator: Shared schema coordinator
            metrics_collector: Optional collector receiving every timed report
            stop_event: Optional event checked between iterations
        """
        self._worker_id = worker_id
        self._config = config
        self._workload = workload
        self._coordinator = coordinator
        self._metrics = metrics_collector
        self._stop_event = stop_event
        self._state: Optional[WorkerState] = None
        self._next_at = 0.0

    def _stopped(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def connect(self) -> None:
        conn = await provision(self._config)
        self._state = self._workload.init_state(conn, self._worker_id)

    async def setup(self) -> None:
        await self._coordinator.setup(self._state.conn, self._worker_id)

    async def execute_iteration(self) -> IterationReport:
        """Execute one timed unit of work and return its report."""
        return await self._workload.execute(self._state)

    async def _pace(self) -> None:
        """Sleep until this worker's next iteration slot when a rate limit is set."""
        interval = self._config.iteration_interval
        if interval <= 0:
            return
        now = time.monotonic()
        if self._next_at > now:
            await asyncio.sleep(self._next_at - now)
        self._next_at = max(self._next_at, now) + interval

    async def _iterate(self, record: bool) -> bool:
        await self._pace()
        if self._stopped():
            return False
        report = await self.execute_iteration()
        if record and self._metrics:
            self._metrics.record(self._worker_id, report)
        return True

    async def run_iterations(self, duration: int, duration_unit: DurationUnit, preheat_duration: float = 0) -> int:
        """
        Run iterations until the duration is exhausted or a stop is requested.

        A stop request is honored between iterations only, so an in-flight
        statement always completes.

        Args:
            duration: Number of iterations (DurationUnit.TXN) or seconds (DurationUnit.SECOND)
            duration_unit: Unit of `duration`
            preheat_duration: Seconds of unrecorded iterations before the timed loop

        Returns:
            Number of recorded iterations
        """
        name = f"{self.__class__.__name__} {self._worker_id}"
        self._next_at = time.monotonic()

        if preheat_duration > 0:
            logger.info(f"{name} preheat started")
            preheat_end = time.time() + preheat_duration
            while time.time() < preheat_end and not self._stopped():
                await self._iterate(record=False)
            logger.info(f"{name} preheat completed")

        logger.info(f"{name} workload started")
        count = 0
        if duration_unit == DurationUnit.SECOND:
            workload_end = time.time() + duration
            while time.time() < workload_end and not self._stopped():
                if not await self._iterate(record=True):
                    break
                count += 1
        else:
            for _ in range(duration):
                if self._stopped() or not await self._iterate(record=True):
                    break
                count += 1
        logger.info(f"{name} workload completed ({count} iterations)")
        return count

    async def run(self, duration: int, duration_unit: DurationUnit, preheat_duration: float = 0) -> int:
        """Connect, wait for setup and run the iteration loop."""
        await self.connect()
        await self.setup()
        return await self.run_iterations(duration, duration_unit, preheat_duration)

    async def teardown(self) -> Optional[TeardownError]:
        """Drop the table (worker 0 only) and close the connection."""
        if self._state is None:
            return None
        try:
            return await self._coordinator.teardown(self._state.conn, self._worker_id)
        finally:
            self._state.conn.close()
            self._state = None
