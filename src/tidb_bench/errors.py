"""Error taxonomy of the harness.

Fatal errors (connection, configuration, schema) abort the run. Transaction
errors become failed iteration reports and teardown errors are only logged.
"""

from typing import Optional

PHASE_CONNECT = "connect"
PHASE_SETUP = "setup"
PHASE_ITERATE = "iterate"
PHASE_TEARDOWN = "teardown"


class BenchError(Exception):
    """Base class for harness errors. `phase` names the lifecycle step that failed."""

    phase = PHASE_ITERATE
    fatal = True

    def __init__(self, message: str, phase: Optional[str] = None):
        super().__init__(message)
        if phase is not None:
            self.phase = phase


class DatabaseConnectionError(BenchError):
    """Network or authentication failure, or a connection lost mid-run."""

    phase = PHASE_CONNECT


class ConfigurationError(BenchError):
    """Invalid configuration or a failed session transaction-mode directive."""

    phase = PHASE_CONNECT


class SchemaError(BenchError):
    """DDL or seeding failed. There is no partial-setup recovery."""

    phase = PHASE_SETUP


class SetupAbortedError(SchemaError):
    """Raised in workers waiting on the setup barrier when worker 0 failed."""


class TransactionError(BenchError):
    """Statement or commit failure of a single iteration (e.g. a write conflict)."""

    phase = PHASE_ITERATE
    fatal = False

    def __init__(self, message: str, errno: int = 0):
        super().__init__(message)
        self.errno = errno


class TeardownError(BenchError):
    phase = PHASE_TEARDOWN
    fatal = False
