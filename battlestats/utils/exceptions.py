"""
Custom exceptions for the statistics engine with user-friendly error messages.

Only caller contract violations raise. Dirty record data never does; it is
degraded to safe defaults by the parsers and the event extractor.
"""

class BattleStatsException(Exception):
    """Base exception for engine errors."""
    status_code = 500

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class InvalidParameterError(BattleStatsException):
    """Raised when a caller supplies an invalid query parameter."""
    status_code = 400

    def __init__(self, parameter: str, reason: str):
        super().__init__(
            f"Invalid parameter '{parameter}': {reason}",
            f"Invalid {parameter}"
        )
        self.parameter = parameter
        self.reason = reason

class InvalidCursorError(InvalidParameterError):
    """Raised when a pagination cursor cannot be decoded."""
    def __init__(self, cursor: str, reason: str = "malformed cursor"):
        super().__init__("cursor", reason)
        self.cursor = cursor

class InvalidDateRangeError(InvalidParameterError):
    """Raised when an explicit date range is inverted or empty."""
    def __init__(self, start_millis: int, end_millis: int):
        super().__init__(
            "range",
            f"start {start_millis} must be before end {end_millis}"
        )
        self.start_millis = start_millis
        self.end_millis = end_millis


def error_status(exc: Exception) -> int:
    """Map an exception to the HTTP status class shown at the route boundary."""
    if isinstance(exc, BattleStatsException):
        return exc.status_code
    return 500
