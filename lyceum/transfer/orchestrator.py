"""
Import orchestration, data clearing and author repair.

``ImportOrchestrator.import_all`` parses the document once, then runs every
phase in dependency order. Each phase commits on its own; an exception that
escapes a phase rolls back only that phase and is reported on its section.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, Iterable, List, Sequence, Tuple

from sqlalchemy import Integer, delete, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lyceum.models.base import db
from lyceum.utils.transfer import get_default_password, get_max_failure_details

from . import metrics
from .context import ImportContext
from .contracts import CONTENTS, ENTITIES, USERS, sql_table
from .errors import ClearDataError, PhaseError
from .introspection import SchemaIntrospector
from .phases import PHASES, Phase
from .resolver import EntityResolver
from .results import ImportResult, RepairResult, SectionResult
from .sections import Rows, find_section, parse_sections, split_fields, strip_bom
from .values import clean, parse_int

logger = logging.getLogger(__name__)

# Children before parents
CLEAR_ORDER: Tuple[str, ...] = tuple(entity.table for entity in reversed(ENTITIES))


class ImportOrchestrator:
    """Run imports, clears and author repairs against one session."""

    def __init__(
        self,
        session: Session | None = None,
        *,
        max_diagnostics: int | None = None,
        default_password: str | None = None,
    ):
        self.session: Session = session or db.session
        self.max_diagnostics = max_diagnostics if max_diagnostics is not None else get_max_failure_details()
        self.default_password = default_password if default_password is not None else get_default_password()

    def _context(self) -> ImportContext:
        return ImportContext(
            self.session,
            max_diagnostics=self.max_diagnostics,
            default_password=self.default_password,
        )

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_all(self, raw_text: str | bytes | None, clear_existing: bool = False) -> ImportResult:
        started = time.perf_counter()
        result = ImportResult()
        try:
            sections = parse_sections(raw_text)
            if not sections:
                result.message = "No sections found in import data"
                logger.warning(result.message)
                return result

            result.parsed_sections = {title: len(rows) for title, rows in sections.items()}
            if all(not rows for rows in sections.values()):
                result.message = "All sections are empty: " + ", ".join(sections)
                logger.warning(result.message)
                return result

            if clear_existing:
                try:
                    self.clear_all()
                except ClearDataError as exc:
                    result.message = f"Clearing existing data failed: {exc}"
                    logger.error(result.message)
                    return result

            self._warn_unrecognized(sections)
            context = self._context()
            for phase in PHASES:
                rows = find_section(sections, phase.entity.all_titles, phase.entity.keyword_sets, phase.entity.exclude)
                if rows is None:
                    continue
                section = self._run_phase(context, phase, rows)
                metrics.record_rows(section.name, succeeded=section.success, failed=section.failure)
                result.add(section)

            if result.total_imported == 0:
                result.message = "No records were imported"
                result.diagnostics = [f"{title}: {count} rows" for title, count in result.parsed_sections.items()]
                logger.warning("%s; parsed sections: %s", result.message, "; ".join(result.diagnostics))
            else:
                result.message = f"Imported {result.total_imported} records, {result.total_failed} failed"
                logger.info(result.message)
            return result
        finally:
            metrics.record_run_duration("import", time.perf_counter() - started)

    def _run_phase(self, context: ImportContext, phase: Phase, rows: Rows) -> SectionResult:
        logger.info("Import phase %s: %s rows", phase.name, len(rows))
        try:
            section = phase.run(context, rows)
            self.session.commit()
        except Exception as exc:
            self.session.rollback()
            error = PhaseError(phase.name, exc)
            logger.error("%s", error, exc_info=True)
            metrics.record_phase_failure(phase.name)
            section = context.new_section(phase.name)
            section.failure = len(rows)
            section.add_diagnostic(f"phase aborted: {exc}")
            return section
        logger.info("Import phase %s finished: %s imported, %s failed", phase.name, section.success, section.failure)
        return section

    def _warn_unrecognized(self, sections: Dict[str, Rows]) -> None:
        matched = set()
        for phase in PHASES:
            rows = find_section(sections, phase.entity.all_titles, phase.entity.keyword_sets, phase.entity.exclude)
            if rows is not None:
                matched.add(id(rows))
        for title, rows in sections.items():
            if id(rows) not in matched:
                logger.warning("Section %r is not recognized and was skipped", title)

    # ------------------------------------------------------------------
    # Clear
    # ------------------------------------------------------------------

    def clear_all(self) -> Dict[str, int]:
        """
        Delete every row of the transfer tables in one transaction.

        Integrity checks are suspended while deleting and restored before the
        transaction ends, including on failure. Unsafe with concurrent writers.
        """
        started = time.perf_counter()
        introspector = SchemaIntrospector(self.session)
        dialect = self.session.get_bind().dialect.name
        removed: Dict[str, int] = {}
        try:
            self._suspend_integrity(dialect)
            try:
                for table_name in CLEAR_ORDER:
                    if not introspector.has_table(table_name):
                        logger.warning("Skipping clear of missing table %s", table_name)
                        continue
                    outcome = self.session.execute(delete(sql_table(table_name, [])))
                    removed[table_name] = max(outcome.rowcount or 0, 0)
            finally:
                self._restore_integrity(dialect)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Clearing transfer tables failed: %s", exc)
            raise ClearDataError(f"Clearing transfer tables failed: {exc}") from exc
        finally:
            metrics.record_run_duration("clear", time.perf_counter() - started)
        logger.info("Cleared transfer tables: %s", removed)
        return removed

    def _suspend_integrity(self, dialect: str) -> None:
        if dialect == "sqlite":
            self.session.execute(text("PRAGMA defer_foreign_keys = ON"))
        elif dialect in ("mysql", "mariadb"):
            self.session.execute(text("SET FOREIGN_KEY_CHECKS = 0"))
        elif dialect == "postgresql":
            self.session.execute(text("SET CONSTRAINTS ALL DEFERRED"))

    def _restore_integrity(self, dialect: str) -> None:
        statement = None
        if dialect == "sqlite":
            statement = "PRAGMA defer_foreign_keys = OFF"
        elif dialect in ("mysql", "mariadb"):
            statement = "SET FOREIGN_KEY_CHECKS = 1"
        elif dialect == "postgresql":
            statement = "SET CONSTRAINTS ALL IMMEDIATE"
        if statement is None:
            return
        try:
            self.session.execute(text(statement))
        except SQLAlchemyError:
            # The rollback that follows also ends the suspension
            logger.error("Could not restore integrity checks with %r", statement, exc_info=True)

    # ------------------------------------------------------------------
    # Author repair
    # ------------------------------------------------------------------

    def repair_authors(self, pairs: Iterable[Sequence[object]]) -> RepairResult:
        """
        Set ``contents.user_id`` from (content id, user id) pairs.

        Only contents without an author are touched. Runs in one transaction.
        """
        started = time.perf_counter()
        result = RepairResult()
        introspector = SchemaIntrospector(self.session)
        resolver = EntityResolver(self.session, introspector)
        contents = sql_table(CONTENTS.table, [("id", Integer()), ("user_id", Integer())])
        try:
            for pair in pairs:
                content_id, user_id = _parse_pair(pair)
                if content_id is None or user_id is None:
                    result.skipped_invalid += 1
                    continue
                if not resolver.exists(USERS.table, user_id):
                    result.skipped_missing_user += 1
                    continue
                if not resolver.exists(CONTENTS.table, content_id):
                    result.skipped_missing_content += 1
                    continue
                outcome = self.session.execute(
                    update(contents)
                    .where(contents.c.id == content_id, contents.c.user_id.is_(None))
                    .values(user_id=user_id)
                )
                if outcome.rowcount:
                    result.updated += 1
                else:
                    result.skipped_already_set += 1
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        finally:
            metrics.record_run_duration("repair", time.perf_counter() - started)
        logger.info("Author repair: %s updated, %s skipped", result.updated, result.skipped)
        return result


def _parse_pair(pair: Sequence[object]) -> Tuple[int | None, int | None]:
    if len(pair) < 2:
        return None, None
    parsed: List[int | None] = []
    for raw in pair[:2]:
        token = clean(raw)
        try:
            parsed.append(parse_int(token) if token is not None else None)
        except ValueError:
            parsed.append(None)
    return parsed[0], parsed[1]


def parse_author_pairs(raw_text: str | bytes | None) -> List[Tuple[str, ...]]:
    """
    Read (content id, user id) pairs from a two-column file.

    The first line is dropped when it is a header, i.e. when its first field
    is not a number.
    """
    pairs: List[Tuple[str, ...]] = []
    if not raw_text:
        return pairs
    first = True
    for line in strip_bom(raw_text).splitlines():
        if not line.strip():
            continue
        fields = split_fields(line)
        if first:
            first = False
            head = fields[0].strip()
            if not head.isdigit():
                continue
        pairs.append(tuple(fields))
    return pairs


def import_all(raw_text: str | bytes | None, clear_existing: bool = False) -> ImportResult:
    return ImportOrchestrator().import_all(raw_text, clear_existing=clear_existing)


def clear_all() -> Dict[str, int]:
    return ImportOrchestrator().clear_all()


def repair_authors(pairs: Iterable[Sequence[object]]) -> RepairResult:
    return ImportOrchestrator().repair_authors(pairs)
