import asyncpg

# Failures that may succeed on a later attempt
TRANSIENT_ERRORS = (
    OSError,
    TimeoutError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.OperatorInterventionError,
    asyncpg.exceptions.InsufficientResourcesError,
    asyncpg.exceptions.TransactionRollbackError,
)


class ChartError(Exception):
    """Base class for every failure raised by the chart engine"""

    retryable: bool = False


class SourceUnavailable(ChartError):
    """The source of record could not be reached or timed out"""

    retryable = True


class SourceDataError(ChartError):
    """A row or stored value had an unexpected shape"""


class ReductionError(ChartError):
    """A dependency chart does not hold the data needed to cover the window"""

    retryable = True


class ChartNotFound(ChartError):
    pass


class DependencyCycleError(ChartError):
    pass


class UpdateError(ChartError):
    """An update cycle of `chart` failed; persisted state was left untouched"""

    def __init__(self, chart: str, cause: BaseException) -> None:
        super().__init__(f"Update of {chart!r} failed: {cause}")
        self.chart = chart
        self.cause = cause

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        if isinstance(self.cause, ChartError):
            return self.cause.retryable
        return isinstance(self.cause, TRANSIENT_ERRORS)
