"""
CLI commands for bulk transfers.

``flask transfer import FILE`` loads an export, ``flask transfer export``
writes one, ``repair-authors`` back-fills missing content authors and
``clear`` empties every transfer table. Runs are recorded in
``transfer_runs`` unless ``TRANSFER_RUN_HISTORY`` is off.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click
from flask.cli import AppGroup, ScriptInfo
from sqlalchemy.exc import SQLAlchemyError

from lyceum.models.base import db
from lyceum.models.transfer_run import TransferRun, TransferRunKind, TransferRunStatus
from lyceum.utils.transfer import (
    get_default_password,
    get_max_failure_details,
    is_clear_allowed,
    is_export_bom_enabled,
    is_run_history_enabled,
)

from .errors import ClearDataError
from .exporter import Exporter
from .orchestrator import ImportOrchestrator, parse_author_pairs
from .results import ImportResult


@click.group(name="transfer", cls=AppGroup)
@click.pass_context
def transfer_cli(ctx):
    """Bulk import and export of platform data."""
    info = ctx.ensure_object(ScriptInfo)
    info.load_app()


def _orchestrator(app) -> ImportOrchestrator:
    return ImportOrchestrator(
        db.session,
        max_diagnostics=get_max_failure_details(app),
        default_password=get_default_password(app),
    )


def _start_run(app, kind: TransferRunKind, *, source_name: str | None = None, clear_existing: bool = False):
    if not is_run_history_enabled(app):
        return None
    run = TransferRun(kind=kind, source_name=source_name, clear_existing=clear_existing, counts_json={})
    run.mark_running()
    db.session.add(run)
    db.session.commit()
    return run.id


def _finish_run(run_id, status: TransferRunStatus, *, counts=None, error_summary: str | None = None) -> None:
    if run_id is None:
        return
    run = db.session.get(TransferRun, run_id)
    if run is None:
        return
    if counts is not None:
        run.counts_json = counts
    run.mark_finished(status, error_summary=error_summary)
    db.session.commit()


def _fail_run(run_id, exc: Exception) -> None:
    db.session.rollback()
    _finish_run(run_id, TransferRunStatus.FAILED, error_summary=str(exc))


def _import_status(result: ImportResult) -> TransferRunStatus:
    if not result.success:
        return TransferRunStatus.FAILED
    if result.total_failed:
        return TransferRunStatus.PARTIALLY_FAILED
    return TransferRunStatus.SUCCEEDED


def _format_summary(run_id, result: ImportResult) -> str:
    heading = f"Run {run_id}: {result.message}" if run_id is not None else result.message
    lines = [heading]
    width = max((len(name) for name in result.sections), default=0)
    for name, section in result.sections.items():
        lines.append(f"  {name.ljust(width)} : {section.success} imported, {section.failure} failed")
        for message in section.diagnostics:
            lines.append(f"      - {message}")
    for message in result.diagnostics:
        lines.append(f"  {message}")
    lines.append(f"  total imported: {result.total_imported}")
    lines.append(f"  total failed  : {result.total_failed}")
    return "\n".join(lines)


@transfer_cli.command("import")
@click.argument("file_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--clear-existing", is_flag=True, help="Delete all transfer data before importing.")
@click.option("--summary-json", is_flag=True, help="Emit a machine-readable summary payload after completion.")
@click.pass_context
def transfer_import(ctx, file_path: Path, clear_existing: bool, summary_json: bool):
    """Import an export file into the database."""
    app = ctx.ensure_object(ScriptInfo).load_app()
    if clear_existing and not is_clear_allowed(app):
        raise click.ClickException("--clear-existing is disabled; set TRANSFER_ALLOW_CLEAR=true to allow it.")

    raw_text = file_path.read_bytes()
    run_id = _start_run(app, TransferRunKind.IMPORT, source_name=str(file_path), clear_existing=clear_existing)
    try:
        result = _orchestrator(app).import_all(raw_text, clear_existing=clear_existing)
    except SQLAlchemyError as exc:
        _fail_run(run_id, exc)
        raise click.ClickException(f"Import failed: {exc}") from exc

    _finish_run(
        run_id,
        _import_status(result),
        counts=result.as_dict(),
        error_summary=None if result.success else result.message,
    )
    app.logger.info(
        "Transfer import finished",
        extra={
            "transfer_run_id": run_id,
            "transfer_imported": result.total_imported,
            "transfer_failed": result.total_failed,
        },
    )
    click.echo(_format_summary(run_id, result))
    if summary_json:
        click.echo(json.dumps(result.as_dict(), indent=2, sort_keys=True, ensure_ascii=False))
    if not result.success:
        raise click.ClickException(result.message)


@transfer_cli.command("export")
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path, dir_okay=False, writable=True),
    help="Write to this file instead of standard output.",
)
@click.option("--bom/--no-bom", default=None, help="Prefix the output with a UTF-8 byte-order mark.")
@click.pass_context
def transfer_export(ctx, output_path: Optional[Path], bom: Optional[bool]):
    """Export every transfer table in the sectioned text format."""
    app = ctx.ensure_object(ScriptInfo).load_app()
    use_bom = is_export_bom_enabled(app) if bom is None else bom
    run_id = _start_run(app, TransferRunKind.EXPORT, source_name=str(output_path) if output_path else None)
    try:
        text = Exporter(db.session).export_all(bom=use_bom)
    except SQLAlchemyError as exc:
        _fail_run(run_id, exc)
        raise click.ClickException(f"Export failed: {exc}") from exc

    if output_path is None:
        click.echo(text, nl=False)
    else:
        output_path.write_text(text, encoding="utf-8", newline="")
        click.echo(f"Export written to {output_path}")
    _finish_run(run_id, TransferRunStatus.SUCCEEDED, counts={"bytes": len(text.encode("utf-8"))})


@transfer_cli.command("repair-authors")
@click.argument("file_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.pass_context
def transfer_repair_authors(ctx, file_path: Path):
    """Set missing content authors from a (content id, user id) file."""
    app = ctx.ensure_object(ScriptInfo).load_app()
    pairs = parse_author_pairs(file_path.read_bytes())
    run_id = _start_run(app, TransferRunKind.REPAIR, source_name=str(file_path))
    try:
        result = _orchestrator(app).repair_authors(pairs)
    except SQLAlchemyError as exc:
        _fail_run(run_id, exc)
        raise click.ClickException(f"Author repair failed: {exc}") from exc

    _finish_run(run_id, TransferRunStatus.SUCCEEDED, counts=result.as_dict())
    click.echo(
        f"Author repair complete: {result.updated} updated, {result.skipped} skipped "
        f"(missing user={result.skipped_missing_user}, missing content={result.skipped_missing_content}, "
        f"already set={result.skipped_already_set}, invalid={result.skipped_invalid})"
    )


@transfer_cli.command("clear")
@click.option("--yes", "confirmed", is_flag=True, help="Confirm deleting every transfer table row.")
@click.option("--force", is_flag=True, help="Run even when TRANSFER_ALLOW_CLEAR is false.")
@click.pass_context
def transfer_clear(ctx, confirmed: bool, force: bool):
    """Delete all rows of every transfer table."""
    app = ctx.ensure_object(ScriptInfo).load_app()
    if not confirmed:
        raise click.ClickException("Refusing to clear data without --yes.")
    if not (force or is_clear_allowed(app)):
        raise click.ClickException("Clearing is disabled; set TRANSFER_ALLOW_CLEAR=true or pass --force.")

    run_id = _start_run(app, TransferRunKind.CLEAR)
    try:
        removed = _orchestrator(app).clear_all()
    except ClearDataError as exc:
        _fail_run(run_id, exc)
        raise click.ClickException(str(exc)) from exc

    _finish_run(run_id, TransferRunStatus.SUCCEEDED, counts=removed)
    click.echo(f"Cleared {sum(removed.values())} rows from {len(removed)} tables.")


@transfer_cli.command("runs")
@click.option("--limit", default=None, type=click.IntRange(min=1), help="Number of runs to list.")
@click.pass_context
def transfer_runs(ctx, limit: Optional[int]):
    """List recent transfer runs."""
    app = ctx.ensure_object(ScriptInfo).load_app()
    limit = limit or int(app.config.get("TRANSFER_RUNS_LIST_LIMIT", 20))
    runs = db.session.query(TransferRun).order_by(TransferRun.id.desc()).limit(limit).all()
    if not runs:
        click.echo("No transfer runs recorded.")
        return
    for run in runs:
        started = run.started_at.isoformat() if run.started_at else "-"
        source = run.source_name or "-"
        click.echo(f"{run.id:>5}  {run.kind.value:<7} {run.status.value:<17} {started}  {source}")
