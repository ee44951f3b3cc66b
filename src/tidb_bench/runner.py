import asyncio
import logging
import signal
from typing import List, Optional

from .config import BenchConfig
from .constants import DurationUnit
from .errors import BenchError, SetupAbortedError, TeardownError
from .metrics import MetricsCollector
from .schema import SchemaCoordinator
from .worker import Worker
from .workload import Workload

logger = logging.getLogger(__name__)

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _leaves(group: BaseExceptionGroup) -> List[BaseException]:
    result = []
    for error in group.exceptions:
        if isinstance(error, BaseExceptionGroup):
            result.extend(_leaves(error))
        else:
            result.append(error)
    return result


def primary_error(group: BaseExceptionGroup) -> Optional[BenchError]:
    """
    Pick the error that caused a failed run.

    Workers that only observed an aborted setup barrier are secondary to the
    worker whose setup actually failed.
    """
    errors = [e for e in _leaves(group) if isinstance(e, BenchError) and e.fatal]
    for error in errors:
        if not isinstance(error, SetupAbortedError):
            return error
    return errors[0] if errors else None


class Runner:
    def __init__(self, config: BenchConfig, workload: Workload):
        """
        Initialize Runner with a configuration and a workload.

        Args:
            config: Benchmark configuration
            workload: Workload executed by every worker
        """
        self._config = config
        self._workload = workload
        self._stop_event = asyncio.Event()
        self.teardown_error: Optional[TeardownError] = None

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.warning(f"Received {sig.name}, stopping after current iterations")
        self.stop()

    def stop(self) -> None:
        """Ask all workers to stop after their current iteration."""
        self._stop_event.set()

    def run(self, duration: int, duration_unit: DurationUnit, preheat_duration: float = 0) -> MetricsCollector:
        """Run the workload with `config.concurrency` workers."""
        return asyncio.run(self.execute(duration, duration_unit, preheat_duration))

    async def execute(
        self, duration: int, duration_unit: DurationUnit, preheat_duration: float = 0
    ) -> MetricsCollector:
        """
        Execute the workload in parallel with multiple workers.

        Every worker connects and waits on the setup barrier before iterating.
        Teardown runs after all workers stopped, also when the run failed.
        SIGINT and SIGTERM request a stop between iterations instead of
        cancelling in-flight statements.

        Returns:
            MetricsCollector with every recorded iteration

        Raises:
            BenchError: The fatal error that aborted the run
        """
        metrics = MetricsCollector()
        barrier = asyncio.Barrier(self._config.concurrency)
        coordinator = SchemaCoordinator(self._workload, barrier)
        workers = [
            Worker(i, self._config, self._workload, coordinator, metrics, self._stop_event)
            for i in range(self._config.concurrency)
        ]

        loop = asyncio.get_running_loop()
        for sig in STOP_SIGNALS:
            loop.add_signal_handler(sig, self._on_signal, sig)

        logger.info(
            f"Starting {self._workload.name} workload: concurrency={self._config.concurrency}, "
            f"tx_mode={self._config.tx_mode.value}, table={self._config.quoted_table}"
        )
        try:
            async with asyncio.TaskGroup() as tg:
                for worker in workers:
                    tg.create_task(worker.run(duration, duration_unit, preheat_duration))
        except BaseExceptionGroup as eg:
            error = primary_error(eg)
            if error is None:
                raise
            logger.error(f"Run aborted during {error.phase}: {error}")
            raise error from eg
        finally:
            for sig in STOP_SIGNALS:
                loop.remove_signal_handler(sig)
            await self._teardown(workers)

        logger.info("Done")
        return metrics

    async def _teardown(self, workers: List[Worker]) -> None:
        for worker in workers:
            error = await worker.teardown()
            if error is not None:
                self.teardown_error = error
