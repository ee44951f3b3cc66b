"""
Constants for the TiDB benchmark harness.

These values must remain consistent between schema setup and workload
execution.
"""

from enum import Enum
from typing import Optional

# TiDB listens on 4000 by default
DEFAULT_PORT = 4000

# Seed 2x more rows than a single SELECT reads
TEST_DATA_MULTIPLIER = 2

# Size of BIGINT column in bytes
BIGINT_SIZE = 8

# Approximate payload of one inserted row: data string + INT
INSERT_ROW_BYTES = 50 + 4

# Rows per INSERT statement while seeding
SEED_CHUNK_SIZE = 1000

# Iteration status codes
STATUS_SUCCESS = 0
STATUS_FAILURE = 1


class DurationUnit(Enum):
    TXN = "txn"
    SECOND = "second"


class TxMode(Enum):
    AUTO_COMMIT = "auto-commit"
    OPTIMISTIC = "optimistic"
    PESSIMISTIC = "pessimistic"

    @property
    def explicit(self) -> bool:
        """Whether each unit of work is wrapped in BEGIN/COMMIT."""
        return self is not TxMode.AUTO_COMMIT

    @property
    def session_directive(self) -> Optional[str]:
        if self is TxMode.AUTO_COMMIT:
            return None
        return f"SET SESSION tidb_txn_mode = '{self.value}'"
