"""Run-scoped view of which tables and columns exist in the live schema."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Set, Tuple

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from .errors import StructuralError

logger = logging.getLogger(__name__)


class SchemaIntrospector:
    """
    Memoized column lookups for one transfer run.

    Imports must keep working against stores whose optional migrations have
    not landed yet, so every generated statement asks here first. Results are
    cached per instance; create a new introspector for each run.
    """

    def __init__(self, session: Session):
        self.session = session
        # table -> {lowercased column name: actual column name}
        self._columns: Dict[str, Dict[str, str]] = {}
        self._warned: Set[Tuple[str, str]] = set()

    def _load(self, table: str) -> Dict[str, str]:
        cached = self._columns.get(table)
        if cached is not None:
            return cached
        inspector = sa_inspect(self.session.connection())
        if not inspector.has_table(table):
            logger.warning("Table %s does not exist; its columns are treated as absent", table)
            columns: Dict[str, str] = {}
        else:
            columns = {info["name"].lower(): info["name"] for info in inspector.get_columns(table)}
        self._columns[table] = columns
        return columns

    def has_table(self, table: str) -> bool:
        return bool(self._load(table))

    def column_exists(self, table: str, column: str) -> bool:
        return column.lower() in self._load(table)

    def actual_name(self, table: str, column: str) -> str | None:
        return self._load(table).get(column.lower())

    def resolve_column(self, table: str, candidates: Iterable[str]) -> str | None:
        """Return the first of ``candidates`` present on ``table``."""
        for candidate in candidates:
            name = self.actual_name(table, candidate)
            if name is not None:
                return name
        return None

    def ensure_column(self, table: str, column: str, *, required: bool = False, context: str | None = None) -> bool:
        """
        Return True when ``table.column`` exists.

        A missing required column raises ``StructuralError``; a missing
        optional one is logged once per run and reported as absent.
        """
        if self.column_exists(table, column):
            return True
        if required:
            logger.error("Required column %s.%s is missing (%s)", table, column, context or "write")
            raise StructuralError(table, column, context)
        if (table, column) not in self._warned:
            self._warned.add((table, column))
            logger.warning("Column %s.%s is missing; omitting it from generated statements", table, column)
        return False
