"""Exception hierarchy for the import pipeline.

Failures that make a whole operation meaningless are raised; per-record
insert failures are never raised, they are counted by the adapters.
"""


class ImportPipelineError(Exception):
    """Base class for all pipeline failures."""


class DataInsufficientError(ImportPipelineError):
    """The sheet has too few rows or no column that identifies a person."""


class SpreadsheetReadError(ImportPipelineError):
    """The spreadsheet could not be opened or decoded."""


class PersistenceError(ImportPipelineError):
    """A connection, schema or transaction level database operation failed."""


class ConnectionStateError(PersistenceError):
    """An operation was attempted on a connection that is not ready."""
