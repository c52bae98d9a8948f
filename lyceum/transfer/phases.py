"""
Import phases, one per section, in dependency order.

Each phase reads its section's rows against the entity contract, resolves
references, clears unique-key conflicts and upserts the row inside a single
SAVEPOINT, so a failing row rolls back its own cascade and nothing else.
Phases return a fresh ``SectionResult``; the orchestrator owns commits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, MutableMapping, Sequence, Tuple

from sqlalchemy import Integer, Text, and_, insert, select
from sqlalchemy.exc import SQLAlchemyError

from lyceum.models.enums import UserRole
from lyceum.utils.security import hash_secret, looks_hashed

from .context import ImportContext
from .contracts import (
    CONTENTS,
    ENTITIES,
    USERS,
    EntitySpec,
    ParsedRow,
    read_row,
    sql_table,
)
from .errors import RowError
from .results import SectionResult

logger = logging.getLogger(__name__)

Rows = Sequence[Sequence[str]]
PhaseRunner = Callable[[ImportContext, EntitySpec, Rows], SectionResult]
RowPreparer = Callable[[ImportContext, ParsedRow, MutableMapping[str, object], MutableMapping[str, object]], None]


@dataclass(frozen=True)
class Phase:
    """A named step of ``import_all`` reading one section."""

    name: str
    entity: EntitySpec
    runner: PhaseRunner

    def run(self, context: ImportContext, rows: Rows) -> SectionResult:
        return self.runner(context, self.entity, rows)


def _db_error(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


def _resolve_references(context: ImportContext, entity: EntitySpec, row: ParsedRow) -> Dict[str, object]:
    """Resolve every non-deferred reference the row supplied."""
    resolved: Dict[str, object] = {}
    for spec in entity.references:
        if spec.deferred or not row.is_supplied(spec.name):
            continue
        token = row.references.get(spec.name)
        identity = context.resolver.resolve(token, spec.target, prefer=spec.export_via)
        if identity is None:
            if spec.required:
                reason = f"missing {spec.label}" if token is None else f"{spec.label} {token!r} not found"
                raise RowError(reason, row_index=row.index, identity=row.identity)
            if token is not None:
                logger.warning(
                    "%s row %s: %s %r not found; leaving it unset",
                    entity.key,
                    row.index,
                    spec.name,
                    token,
                )
        resolved[spec.name] = identity
    return resolved


def _stored_user(context: ImportContext, identity: int) -> Mapping[str, object]:
    columns = [
        (name, Integer() if name == "assigned_school_id" else Text())
        for name in ("password", "role", "assigned_school_id")
        if context.introspector.column_exists(USERS.table, name)
    ]
    if not columns:
        return {}
    users = sql_table(USERS.table, [("id", Integer())] + columns)
    statement = select(*(users.c[name] for name, _ in columns)).where(users.c.id == identity)
    found = context.session.execute(statement).mappings().first()
    return dict(found) if found is not None else {}


def prepare_user(
    context: ImportContext,
    row: ParsedRow,
    values: MutableMapping[str, object],
    insert_values: MutableMapping[str, object],
) -> None:
    """
    Fill the user fields the row cannot carry verbatim.

    Plain-text passwords are hashed; a missing one keeps the stored hash or,
    for new users, gets the configured default. A moderator row without a
    school keeps the school already assigned to the stored moderator. Stored
    values are read here because the conflict pass replaces the user row.
    """
    stored = _stored_user(context, row.identity) if row.identity is not None else {}

    password = values.get("password")
    if password is not None:
        if not looks_hashed(password):
            values["password"] = hash_secret(password)
    else:
        insert_values["password"] = stored.get("password") or context.default_password_hash()

    if (
        values.get("assigned_school_id") is None
        and values.get("role") == UserRole.MODERATOR.value
        and stored.get("role") == UserRole.MODERATOR.value
        and stored.get("assigned_school_id") is not None
    ):
        logger.debug("Keeping school %s for moderator %s", stored["assigned_school_id"], row.identity)
        values["assigned_school_id"] = stored["assigned_school_id"]


ROW_PREPARERS: Dict[str, RowPreparer] = {
    USERS.key: prepare_user,
}


def import_entity_rows(context: ImportContext, entity: EntitySpec, rows: Rows) -> SectionResult:
    """Upsert every row of a keyed section, then wire its deferred references."""
    result = context.new_section(entity.key)
    imported: List[ParsedRow] = []
    prepare = ROW_PREPARERS.get(entity.key)

    for index, raw in enumerate(rows, start=1):
        try:
            row = read_row(entity, raw, index)
            values = dict(row.values)
            values.update(_resolve_references(context, entity, row))
            insert_values: Dict[str, object] = {}
            if prepare is not None:
                prepare(context, row, values, insert_values)

            with context.session.begin_nested():
                context.conflicts.resolve(entity, row.identity, values)
                outcome = context.upserts.upsert(entity, row.identity, values, insert_values=insert_values)
                if not outcome.ok:
                    raise RowError(outcome.error or "write failed", row_index=index, identity=row.identity)
        except RowError as exc:
            logger.warning("%s row %s skipped: %s", entity.key, index, exc.reason)
            result.record_failure(exc.reason, row_index=exc.row_index or index, identity=exc.identity)
            continue
        except SQLAlchemyError as exc:
            logger.warning("%s row %s failed: %s", entity.key, index, exc)
            result.record_failure(_db_error(exc), row_index=index, identity=raw[0] if raw else None)
            continue

        logger.debug("%s row %s: %s", entity.key, row.identity, outcome.outcome.value)
        result.record_success()
        imported.append(row)

    if entity.deferred_references and imported:
        wiring = context.associations.apply(
            entity,
            imported,
            fields=entity.deferred_references,
            max_diagnostics=context.max_diagnostics,
        )
        if wiring.failure:
            logger.warning("%s: %s deferred references could not be wired", entity.key, wiring.failure)
            for message in wiring.diagnostics:
                result.add_diagnostic(message)
    return result


def _is_header_row(entity: EntitySpec, raw: Sequence[str]) -> bool:
    return bool(raw) and raw[0].strip().lower() in entity.header_labels


def import_link_rows(context: ImportContext, entity: EntitySpec, rows: Rows) -> SectionResult:
    """Insert unkeyed link rows that are not stored yet."""
    result = context.new_section(entity.key)
    columns: List[Tuple[str, str]] = []
    for spec in entity.fields:
        context.introspector.ensure_column(entity.table, spec.name, required=True, context=f"{entity.key} import")
        columns.append((spec.name, context.introspector.actual_name(entity.table, spec.name)))
    link = sql_table(entity.table, [(column, Integer()) for _, column in columns])

    for index, raw in enumerate(rows, start=1):
        if _is_header_row(entity, raw):
            continue
        try:
            row = read_row(entity, raw, index)
            values = _resolve_references(context, entity, row)
            match = and_(*(link.c[column] == values[name] for name, column in columns))
            with context.session.begin_nested():
                stored = context.session.execute(select(*link.c).where(match).limit(1)).first()
                if stored is None:
                    context.session.execute(insert(link).values({column: values[name] for name, column in columns}))
        except RowError as exc:
            logger.warning("%s row %s skipped: %s", entity.key, index, exc.reason)
            result.record_failure(exc.reason, row_index=index)
            continue
        except SQLAlchemyError as exc:
            logger.warning("%s row %s failed: %s", entity.key, index, exc)
            result.record_failure(_db_error(exc), row_index=index)
            continue
        result.record_success()
    return result


def import_content_associations(context: ImportContext, entity: EntitySpec, rows: Rows) -> SectionResult:
    """Re-apply every content reference with COALESCE as its own reported section."""
    parsed: List[ParsedRow] = []
    failures = context.new_section("content_associations")
    for index, raw in enumerate(rows, start=1):
        try:
            parsed.append(read_row(entity, raw, index))
        except RowError as exc:
            failures.record_failure(exc.reason, row_index=index, identity=exc.identity)
    result = context.associations.apply(
        entity,
        parsed,
        fields=entity.references,
        name="content_associations",
        max_diagnostics=context.max_diagnostics,
    )
    return result.merge(failures)


def _runner_for(entity: EntitySpec) -> PhaseRunner:
    return import_entity_rows if entity.keyed else import_link_rows


def build_phases() -> Tuple[Phase, ...]:
    """All phases in execution order; Content associations follow Contents."""
    phases: List[Phase] = []
    for entity in ENTITIES:
        phases.append(Phase(entity.key, entity, _runner_for(entity)))
        if entity is CONTENTS:
            phases.append(Phase("content_associations", CONTENTS, import_content_associations))
    return tuple(phases)


PHASES: Tuple[Phase, ...] = build_phases()
