"""Second-pass wiring of references with non-regressing merge semantics."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Sequence

from sqlalchemy import Integer, func, literal, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .contracts import EntitySpec, FieldSpec, ParsedRow, sql_table
from .introspection import SchemaIntrospector
from .resolver import EntityResolver
from .results import SectionResult

logger = logging.getLogger(__name__)


class AssociationUpdater:
    """
    Point stored rows at the records their references name.

    Every assignment is ``col = COALESCE(:value, col)``: a resolved value
    replaces the stored one, a blank or unresolved token leaves it alone.
    """

    def __init__(self, session: Session, introspector: SchemaIntrospector, resolver: EntityResolver):
        self.session = session
        self.introspector = introspector
        self.resolver = resolver

    def apply(
        self,
        entity: EntitySpec,
        rows: Sequence[ParsedRow],
        *,
        fields: Iterable[FieldSpec] | None = None,
        name: str | None = None,
        max_diagnostics: int = 50,
    ) -> SectionResult:
        result = SectionResult(name or entity.key, max_diagnostics=max_diagnostics)
        specs = tuple(fields) if fields is not None else entity.references
        columns = self._columns(entity, specs)

        for row in rows:
            if row.identity is None:
                result.record_failure("missing ID", row_index=row.index)
                continue
            if not self.resolver.exists(entity.table, row.identity):
                result.record_failure("record not found", row_index=row.index, identity=row.identity)
                continue

            assignments = {}
            for spec in specs:
                column_name = columns.get(spec.name)
                if column_name is None or not row.is_supplied(spec.name):
                    continue
                token = row.references.get(spec.name)
                value = self.resolver.resolve(token, spec.target, prefer=spec.export_via)
                if value is None:
                    if token is not None:
                        logger.warning(
                            "%s %s: %s %r not found; keeping the stored value",
                            entity.key,
                            row.identity,
                            spec.name,
                            token,
                        )
                    continue
                if spec.target == entity.key and value == row.identity:
                    logger.warning("%s %s: ignoring self-reference in %s", entity.key, row.identity, spec.name)
                    continue
                assignments[column_name] = value

            if not assignments:
                result.record_success()
                continue

            target = sql_table(entity.table, [("id", Integer())] + [(column, Integer()) for column in assignments])
            statement = (
                update(target)
                .where(target.c.id == row.identity)
                .values(
                    {
                        column: func.coalesce(literal(value, Integer()), target.c[column])
                        for column, value in assignments.items()
                    }
                )
            )
            try:
                with self.session.begin_nested():
                    self.session.execute(statement)
            except SQLAlchemyError as exc:
                logger.warning("%s %s: association update failed: %s", entity.key, row.identity, exc)
                result.record_failure(
                    str(getattr(exc, "orig", None) or exc),
                    row_index=row.index,
                    identity=row.identity,
                )
                continue
            result.record_success()

        logger.debug("%s associations: %s wired, %s failed", result.name, result.success, result.failure)
        return result

    def _columns(self, entity: EntitySpec, specs: Sequence[FieldSpec]) -> Dict[str, str]:
        columns: Dict[str, str] = {}
        for spec in specs:
            if self.introspector.ensure_column(entity.table, spec.name, context=f"{entity.key} associations"):
                columns[spec.name] = self.introspector.actual_name(entity.table, spec.name)
        return columns
