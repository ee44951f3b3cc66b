from dataclasses import dataclass
from typing import Optional

from .constants import DEFAULT_PORT, TEST_DATA_MULTIPLIER, TxMode
from .errors import ConfigurationError


@dataclass(frozen=True)
class BenchConfig:
    """
    Immutable benchmark configuration shared read-only by all workers.

    Attributes:
        host: TiDB server host
        port: TiDB server port
        user: Username for authentication
        password: Password for authentication
        database: Database name
        table: Benchmark table name (unquoted)
        tx_mode: Transaction mode applied to every iteration
        batch_size: Rows per INSERT (insert workload)
        select_count: Rows per SELECT (select workload)
        concurrency: Number of concurrent workers
        random_offset: Read from a random OFFSET instead of the table head (select workload)
        connect_timeout: Connection timeout in seconds
        rate: Optional limit of iterations per second across all workers
    """

    host: str = "localhost"
    port: int = DEFAULT_PORT
    user: str = "root"
    password: str = ""
    database: str = "test"
    table: str = "bench_table"
    tx_mode: TxMode = TxMode.AUTO_COMMIT
    batch_size: int = 100
    select_count: int = 1000
    concurrency: int = 1
    random_offset: bool = False
    connect_timeout: float = 10
    rate: Optional[float] = None

    def __post_init__(self):
        if not self.table:
            raise ConfigurationError("Table name can't be empty")
        if self.concurrency < 1:
            raise ConfigurationError(f"`concurrency` must be positive, got {self.concurrency}")
        if self.batch_size < 1:
            raise ConfigurationError(f"`batch_size` must be positive, got {self.batch_size}")
        if self.select_count < 1:
            raise ConfigurationError(f"`select_count` must be positive, got {self.select_count}")
        if self.rate is not None and self.rate <= 0:
            raise ConfigurationError(f"`rate` must be positive, got {self.rate}")
        if not isinstance(self.tx_mode, TxMode):
            raise ConfigurationError(f"Unknown transaction mode: {self.tx_mode!r}")

    @property
    def quoted_table(self) -> str:
        """Table name quoted as a MySQL identifier."""
        return "`{}`".format(self.table.replace("`", "``"))

    @property
    def iteration_interval(self) -> float:
        """Minimum seconds between iterations of one worker, 0 when unlimited."""
        if self.rate is None:
            return 0.0
        return self.concurrency / self.rate

    @property
    def seed_rows(self) -> int:
        """Number of rows seeded for the select workload."""
        return self.select_count * TEST_DATA_MULTIPLIER
