"""Domain-specific exceptions for the weekly ingestion pipeline.

All exceptions inherit from IngestionError so callers can catch any
pipeline failure in one place. Header misses and invalid rows are not
exceptions: they are reported as diagnostics on the parse result.
"""


class IngestionError(Exception):
    """Base exception for all ingestion errors."""

    pass


class MalformedDocument(IngestionError):
    """Raised when an uploaded payload cannot be opened as a spreadsheet.

    Fatal for that single file only; sibling files in the same upload or
    batch are still processed.
    """

    def __init__(self, message: str, source: str = ""):
        super().__init__(message)
        self.source = source


class NoStoreTotalsProvided(IngestionError):
    """Raised when an ingestion request carries no store-totals workbook.

    Allocator-only uploads have nothing to allocate, so the whole request
    is rejected.
    """

    pass


class PersistenceFailure(IngestionError):
    """Raised when the relational store rejects a dimension or fact write.

    Partitions (ISO weeks) committed before the failure stay committed.
    """

    def __init__(self, message: str, iso_week: str = ""):
        super().__init__(message)
        self.iso_week = iso_week
