"""
Custom exceptions for the Google Sheets delivery client.

Steady-state errors are recoverable: the batch engine retries or logs them.
"""

CELL_LIMIT_MARKER = "would increase the number of cells in the workbook above the limit"


class GSheetOperationalError(Exception):
    """Base operational error for the delivery client."""

    pass


class SinkCallError(GSheetOperationalError):
    """A call against the sink failed (HTTP error, transport error, timeout)."""

    pass


class SinkCapacityError(SinkCallError):
    """The sink refused the write because the workbook cell ceiling was reached."""

    pass


class SheetsAPIError(SinkCallError):
    """Non-2xx response from the Sheets API."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"sheets api error {status_code}: {message}")
        self.status_code = status_code
        self.api_message = message


class RateLimitWaitError(GSheetOperationalError):
    """No rate-limiter token could be granted before the call deadline."""

    pass


class PolicyFetchError(GSheetOperationalError):
    """Reading the policy region failed."""

    pass


class EvictionError(GSheetOperationalError):
    """Sorting, reading the cutoff or deleting aged rows failed."""

    pass


def is_capacity_error(e: BaseException) -> bool:
    return CELL_LIMIT_MARKER in str(e)


def map_sink_error(e: Exception) -> GSheetOperationalError:
    if isinstance(e, RateLimitWaitError):
        return e
    if is_capacity_error(e):
        return SinkCapacityError(str(e))
    if isinstance(e, SinkCallError):
        return e
    return SinkCallError(str(e) or type(e).__name__)
