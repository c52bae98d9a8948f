"""Exceptions raised by the transfer engine."""

from __future__ import annotations


class TransferError(Exception):
    """Base class for transfer failures."""


class StructuralError(TransferError):
    """A column the write needs is missing from the live schema."""

    def __init__(self, table: str, column: str, context: str | None = None):
        self.table = table
        self.column = column
        self.context = context
        message = f"Required column {table}.{column} is missing"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)


class RowError(TransferError):
    """A single row cannot be imported; the row is skipped and counted."""

    def __init__(self, reason: str, *, row_index: int | None = None, identity: object | None = None):
        self.reason = reason
        self.row_index = row_index
        self.identity = identity
        super().__init__(reason)


class PhaseError(TransferError):
    """An unexpected failure aborted a whole import phase."""

    def __init__(self, phase: str, cause: BaseException):
        self.phase = phase
        self.cause = cause
        super().__init__(f"Phase '{phase}' aborted: {cause}")


class ClearDataError(TransferError):
    """Deleting existing data before an import failed."""


class ConflictError(TransferError):
    """
    An incoming row collides with stored rows on a unique key.

    Never raised out of the engine: the resolver logs it and cascades the
    stale rows away.
    """

    def __init__(self, entity: str, identity: object | None, key: tuple, stale: list):
        self.entity = entity
        self.identity = identity
        self.key = key
        self.stale = stale
        super().__init__(f"{entity} row {identity} conflicts on {'+'.join(key)} with stored {stale}")
