"""Domain exceptions for odds ingest and settlement."""

# Mongo error codes that mean "row already present / rejected by a constraint".
DUPLICATE_KEY_CODE = 11000
DOCUMENT_VALIDATION_CODE = 121
CONSTRAINT_ERROR_CODES = frozenset({DUPLICATE_KEY_CODE, DOCUMENT_VALIDATION_CODE})


class SettlementError(Exception):
    """Base class for pipeline errors."""


class ProviderError(SettlementError):
    """Upstream odds provider request failed."""

    def __init__(self, message: str, *, league: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.league = league
        self.status_code = status_code


class StoreWriteError(SettlementError):
    """Non-constraint failure while writing to the store."""
