"""Error conditions raised by the sync, repository and query layers."""
from typing import Optional


class TokenSyncError(Exception):
    """Base class for every application-level error."""


class ValidationError(TokenSyncError):
    """A required input payload is missing or malformed."""


class TokenNotSupported(TokenSyncError):
    """The symbol has no entry in the address table, or the subgraph does not know the token."""

    def __init__(self, symbol: str, message: str = "Token not supported"):
        super().__init__(f"{message}: {symbol}")
        self.symbol = symbol
        self.message = message


class SourceUnavailable(TokenSyncError):
    """The subgraph could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    def __str__(self):
        if self.status_code is None:
            return self.message
        return f"{self.message} (status {self.status_code}): {self.body}"


class RepositoryError(TokenSyncError):
    """A database read or write failed. A failed sync pass attaches its report."""

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report
