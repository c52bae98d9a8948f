"""Update-else-insert of one record, restricted to columns that exist."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Dict, Mapping

from sqlalchemy import func, insert, literal, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.types import TypeEngine

from lyceum.models.base import utcnow

from .contracts import EntitySpec, FieldSpec, sql_table
from .errors import StructuralError
from .introspection import SchemaIntrospector

logger = logging.getLogger(__name__)


class UpsertOutcome(str, enum.Enum):
    UPDATED = "updated"
    INSERTED = "inserted"
    FAILED = "failed"


@dataclass(frozen=True)
class UpsertResult:
    outcome: UpsertOutcome
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is not UpsertOutcome.FAILED


@dataclass(frozen=True)
class _Column:
    name: str
    spec: FieldSpec


class UpsertExecutor:
    """
    Write one record keyed by its client-supplied identity.

    The UPDATE touches only fields the row supplied. Reference fields use
    ``COALESCE(new, stored)`` so a blank never clears an established link, and
    preserved or audit fields are skipped when blank. When the UPDATE matches
    nothing, an INSERT writes every existing column, filling defaults and the
    current time for audit timestamps. Each statement runs in its own
    SAVEPOINT so a failure leaves the surrounding transaction usable.
    """

    def __init__(self, session: Session, introspector: SchemaIntrospector):
        self.session = session
        self.introspector = introspector
        self._column_cache: Dict[str, Dict[str, _Column]] = {}

    def _columns(self, entity: EntitySpec) -> Dict[str, _Column]:
        cached = self._column_cache.get(entity.key)
        if cached is not None:
            return cached
        columns: Dict[str, _Column] = {}
        for spec in entity.fields:
            name = self.introspector.resolve_column(entity.table, spec.column_candidates())
            if name is None:
                try:
                    self.introspector.ensure_column(
                        entity.table,
                        spec.name,
                        required=spec.required,
                        context=f"{entity.key} upsert",
                    )
                except StructuralError as exc:
                    logger.error("Skipping write of %s: %s", spec.name, exc)
                continue
            columns[spec.name] = _Column(name, spec)
        self._column_cache[entity.key] = columns
        return columns

    def upsert(
        self,
        entity: EntitySpec,
        identity: int,
        values: Mapping[str, object],
        *,
        insert_values: Mapping[str, object] | None = None,
    ) -> UpsertResult:
        """
        Upsert ``values`` (field name -> parsed value) for ``identity``.

        ``values`` holds only the fields the row supplied; ``insert_values``
        supplies fallbacks used only when a new row has to be created.
        """
        columns = self._columns(entity)
        if "id" not in columns:
            return UpsertResult(UpsertOutcome.FAILED, f"{entity.table}.id is missing")

        types: Dict[str, TypeEngine] = {column.name: column.spec.sql_type for column in columns.values()}
        target = sql_table(entity.table, types.items())
        id_column = target.c[columns["id"].name]

        update_error = None
        try:
            matched = self._update(target, id_column, identity, values, columns)
        except SQLAlchemyError as exc:
            logger.warning("%s %s: update failed, trying insert: %s", entity.key, identity, exc)
            update_error = str(exc)
            matched = False
        if matched:
            return UpsertResult(UpsertOutcome.UPDATED)

        row = self._insert_row(identity, values, insert_values or {}, columns)
        try:
            with self.session.begin_nested():
                self.session.execute(insert(target).values(row))
        except SQLAlchemyError as exc:
            logger.warning("%s %s: insert failed: %s", entity.key, identity, exc)
            message = str(getattr(exc, "orig", None) or exc)
            if update_error:
                message = f"update and insert failed: {message}"
            return UpsertResult(UpsertOutcome.FAILED, message)
        return UpsertResult(UpsertOutcome.INSERTED)

    def _update(self, target, id_column, identity, values, columns) -> bool:
        assignments = {}
        for name, value in values.items():
            column = columns.get(name)
            if column is None or name == "id" or column.spec.deferred:
                continue
            if column.spec.is_reference:
                assignments[column.name] = func.coalesce(
                    literal(value, column.spec.sql_type),
                    target.c[column.name],
                )
                continue
            if value is None and column.spec.keeps_stored_value:
                continue
            assignments[column.name] = value

        if not assignments:
            found = self.session.execute(select(id_column).where(id_column == identity).limit(1)).first()
            return found is not None

        with self.session.begin_nested():
            result = self.session.execute(update(target).where(id_column == identity).values(assignments))
        return (result.rowcount or 0) > 0

    def _insert_row(self, identity, values, insert_values, columns) -> Dict[str, object]:
        now = utcnow()
        row: Dict[str, object] = {columns["id"].name: identity}
        for name, column in columns.items():
            if name == "id":
                continue
            spec = column.spec
            value = None if spec.deferred else values.get(name)
            if value is None:
                value = insert_values.get(name)
            if value is None:
                value = spec.default
            if value is None and spec.audit:
                value = now
            row[column.name] = value
        return row
