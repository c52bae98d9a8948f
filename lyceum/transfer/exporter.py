"""Serialize the current store into the sectioned transfer format."""

from __future__ import annotations

import logging
import time
from typing import List, Sequence

from sqlalchemy import Integer, Text, null, select
from sqlalchemy.orm import Session

from lyceum.models.base import db

from . import metrics
from .contracts import ENTITIES, EntitySpec, FieldSpec, get_entity, sql_table
from .introspection import SchemaIntrospector
from .sections import BOM
from .values import DELIMITER, format_bool, format_datetime, quote_field

logger = logging.getLogger(__name__)


def format_value(spec: FieldSpec, value: object | None) -> str:
    """Render one stored value the way the importer reads it back."""
    if spec.kind == "datetime":
        return format_datetime(value)
    if spec.kind == "bool":
        return format_bool(value)
    if value is None:
        return ""
    if spec.kind in ("id", "int") or (spec.kind == "ref" and spec.export_via is None):
        return str(value)
    return quote_field(value)


class Exporter:
    """
    Write every entity section in phase order.

    Each section is its title, the ``ID`` header (except the link section),
    one line per record ordered by identity and a blank line. Columns absent
    from the live schema are exported blank.
    """

    def __init__(self, session: Session | None = None, introspector: SchemaIntrospector | None = None):
        self.session: Session = session or db.session
        self.introspector = introspector or SchemaIntrospector(self.session)

    def export_all(self, *, bom: bool = False) -> str:
        started = time.perf_counter()
        lines: List[str] = []
        for entity in ENTITIES:
            lines.extend(self.export_section(entity))
        text = "\n".join(lines) + "\n"
        metrics.record_run_duration("export", time.perf_counter() - started)
        logger.info("Exported %s sections", len(ENTITIES))
        return BOM + text if bom else text

    def export_section(self, entity: EntitySpec) -> List[str]:
        lines = [entity.title]
        if entity.export_header:
            lines.append(DELIMITER.join(entity.header()))
        if not self.introspector.has_table(entity.table):
            logger.warning("Table %s is missing; exporting %s empty", entity.table, entity.key)
        else:
            for record in self._records(entity):
                lines.append(DELIMITER.join(format_value(spec, value) for spec, value in zip(entity.fields, record)))
        lines.append("")
        return lines

    def _records(self, entity: EntitySpec) -> Sequence[Sequence[object]]:
        columns = []
        for spec in entity.fields:
            name = self.introspector.resolve_column(entity.table, spec.column_candidates())
            if name is None:
                self.introspector.ensure_column(entity.table, spec.name, context=f"{entity.key} export")
            columns.append((spec, name))

        source = sql_table(
            entity.table,
            [(name, spec.sql_type) for spec, name in columns if name is not None],
        )
        selected = []
        joins = []
        for spec, name in columns:
            if name is None:
                selected.append(null())
            elif spec.export_via:
                target = get_entity(spec.target)
                alias = sql_table(target.table, [("id", Integer()), (spec.export_via, Text())]).alias(
                    f"{spec.name}_{target.table}"
                )
                joins.append((alias, source.c[name] == alias.c.id))
                selected.append(alias.c[spec.export_via])
            else:
                selected.append(source.c[name])

        from_clause = source
        for alias, condition in joins:
            from_clause = from_clause.outerjoin(alias, condition)

        statement = select(*selected).select_from(from_clause)
        if entity.keyed and columns[0][1] is not None:
            statement = statement.order_by(source.c[columns[0][1]])
        else:
            statement = statement.order_by(*(source.c[name] for _, name in columns if name is not None))
        return self.session.execute(statement).all()


def export_all(*, bom: bool = False) -> str:
    return Exporter().export_all(bom=bom)
