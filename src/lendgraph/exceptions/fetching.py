"""
Data fetching exceptions for the lendgraph package.
"""

from lendgraph.exceptions.base import LendgraphError


class FetchingError(LendgraphError):
    """
    Base exception for data fetching errors.
    """


class LogFetchingTimeout(FetchingError):
    """
    Raised when log fetching operations timeout after multiple retry attempts.
    """

    def __init__(self, max_retries: int) -> None:
        self.max_retries = max_retries
        super().__init__(message=f"Timed out fetching logs after {max_retries} tries.")

    def __reduce__(self) -> tuple[type["LogFetchingTimeout"], tuple[int]]:
        return self.__class__, (self.max_retries,)


class DecodingFailure(FetchingError):
    """
    Raised when a fetched log cannot be decoded into a known event.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(message=f"Could not decode log: {reason}")

    def __reduce__(self) -> tuple[type["DecodingFailure"], tuple[str]]:
        return self.__class__, (self.reason,)
