import json
from pathlib import Path

from transfer_builders import base_document, document, section, user_row

from lyceum.models import Content, TransferRun, TransferRunKind, TransferRunStatus, User, db
from lyceum.transfer.contracts import USERS
from lyceum.transfer.sections import BOM


def _write(tmp_path: Path, text: str, name: str = "export.txt") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def _runs():
    return db.session.query(TransferRun).order_by(TransferRun.id).all()


def test_import_command_prints_summary_and_records_run(app, runner, tmp_path):
    path = _write(tmp_path, base_document())

    result = runner.invoke(args=["transfer", "import", str(path)])

    assert result.exit_code == 0, result.output
    assert "Imported 10 records, 0 failed" in result.output
    assert "content_associations" in result.output
    assert db.session.get(Content, 100).user_id == 1

    (run,) = _runs()
    assert run.kind is TransferRunKind.IMPORT
    assert run.status is TransferRunStatus.SUCCEEDED
    assert run.source_name == str(path)
    assert run.counts_json["total_imported"] == 10


def test_import_summary_json_payload(app, runner, tmp_path):
    text = document(section(USERS, user_row(1, "alice"), user_row("x", "broken")))
    path = _write(tmp_path, text)

    result = runner.invoke(args=["transfer", "import", str(path), "--summary-json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output[result.output.index("{\n") :])
    assert payload["total_imported"] == 1
    assert payload["total_failed"] == 1
    assert payload["sections"]["users"]["diagnostics"] == ["Row 2 (ID=x): malformed ID 'x'"]
    assert _runs()[0].status is TransferRunStatus.PARTIALLY_FAILED


def test_import_with_nothing_imported_exits_nonzero(app, runner, tmp_path):
    path = _write(tmp_path, "nothing to see here\n")

    result = runner.invoke(args=["transfer", "import", str(path)])

    assert result.exit_code == 1
    assert "No sections found in import data" in result.output
    (run,) = _runs()
    assert run.status is TransferRunStatus.FAILED
    assert run.error_summary == "No sections found in import data"


def test_import_clear_existing_requires_opt_in(app, runner, tmp_path, test_user):
    path = _write(tmp_path, base_document())

    refused = runner.invoke(args=["transfer", "import", str(path), "--clear-existing"])
    assert refused.exit_code == 1
    assert "TRANSFER_ALLOW_CLEAR" in refused.output
    assert _runs() == []

    app.config["TRANSFER_ALLOW_CLEAR"] = True
    allowed = runner.invoke(args=["transfer", "import", str(path), "--clear-existing"])
    assert allowed.exit_code == 0, allowed.output
    assert db.session.query(User).filter_by(username="testuser").count() == 0
    assert _runs()[0].clear_existing is True


def test_import_reads_files_with_bom(app, runner, tmp_path):
    path = _write(tmp_path, BOM + section(USERS, user_row(1, "alice")))

    result = runner.invoke(args=["transfer", "import", str(path)])

    assert result.exit_code == 0, result.output
    assert db.session.get(User, 1).username == "alice"


def test_export_to_stdout_and_file(app, runner, tmp_path, test_content):
    printed = runner.invoke(args=["transfer", "export"])
    assert printed.exit_code == 0, printed.output
    assert printed.output.startswith("Users Data\nID,Username,")

    target = tmp_path / "out.txt"
    written = runner.invoke(args=["transfer", "export", "--output", str(target), "--bom"])
    assert written.exit_code == 0, written.output
    assert f"Export written to {target}" in written.output
    assert target.read_text(encoding="utf-8").startswith(BOM + "Users Data\n")

    runs = _runs()
    assert [run.kind for run in runs] == [TransferRunKind.EXPORT, TransferRunKind.EXPORT]
    assert runs[1].source_name == str(target)


def test_exported_file_imports_cleanly(app, runner, tmp_path, test_content):
    target = tmp_path / "roundtrip.txt"
    runner.invoke(args=["transfer", "export", "--output", str(target)])

    result = runner.invoke(args=["transfer", "import", str(target)])

    assert result.exit_code == 0, result.output
    assert "0 failed" in result.output


def test_repair_authors_command(app, runner, tmp_path, test_user):
    db.session.add(Content(id=101, title="orphan"))
    db.session.commit()
    path = _write(tmp_path, "content_id,user_id\n101,1\n404,1\n", name="authors.csv")

    result = runner.invoke(args=["transfer", "repair-authors", str(path)])

    assert result.exit_code == 0, result.output
    assert "1 updated, 1 skipped" in result.output
    assert "missing content=1" in result.output
    assert db.session.get(Content, 101).user_id == 1
    assert _runs()[0].counts_json["updated"] == 1


def test_clear_refuses_without_confirmation(app, runner, test_user):
    result = runner.invoke(args=["transfer", "clear"])

    assert result.exit_code == 1
    assert "--yes" in result.output
    assert db.session.get(User, 1) is not None


def test_clear_refuses_when_disabled(app, runner, test_user):
    result = runner.invoke(args=["transfer", "clear", "--yes"])

    assert result.exit_code == 1
    assert "--force" in result.output
    assert db.session.get(User, 1) is not None


def test_clear_with_force(app, runner, test_content):
    result = runner.invoke(args=["transfer", "clear", "--yes", "--force"])

    assert result.exit_code == 0, result.output
    assert "Cleared 4 rows" in result.output
    assert db.session.query(User).count() == 0
    (run,) = _runs()
    assert run.kind is TransferRunKind.CLEAR
    assert run.counts_json["users"] == 1


def test_runs_lists_recent_runs(app, runner, tmp_path):
    assert "No transfer runs recorded." in runner.invoke(args=["transfer", "runs"]).output
    runner.invoke(args=["transfer", "export"])
    runner.invoke(args=["transfer", "export", "--output", str(tmp_path / "b.txt")])

    result = runner.invoke(args=["transfer", "runs", "--limit", "1"])

    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert len(lines) == 1
    assert "export" in lines[0]
    assert "succeeded" in lines[0]
    assert "b.txt" in lines[0]


def test_run_history_can_be_disabled(app, runner):
    app.config["TRANSFER_RUN_HISTORY"] = False

    result = runner.invoke(args=["transfer", "export"])

    assert result.exit_code == 0, result.output
    assert _runs() == []
