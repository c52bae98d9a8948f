from prometheus_client import REGISTRY
from transfer_builders import document, section, user_row

from lyceum.transfer.contracts import USERS
from lyceum.utils.security import hash_secret, looks_hashed


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_import_records_row_outcomes_and_duration(orchestrator):
    succeeded = _sample("transfer_rows_total", section="users", outcome="success")
    failed = _sample("transfer_rows_total", section="users", outcome="failure")
    runs = _sample("transfer_run_duration_seconds_count", kind="import")

    orchestrator.import_all(document(section(USERS, user_row(1, "alice"), user_row(2, ""))))

    assert _sample("transfer_rows_total", section="users", outcome="success") == succeeded + 1
    assert _sample("transfer_rows_total", section="users", outcome="failure") == failed + 1
    assert _sample("transfer_run_duration_seconds_count", kind="import") == runs + 1


def test_conflict_cascades_are_counted(orchestrator, test_content):
    before = _sample("transfer_conflict_cascades_total", table="contents")

    orchestrator.import_all(document(section(USERS, user_row(9, "testuser"))))

    assert _sample("transfer_conflict_cascades_total", table="contents") == before + 1


def test_password_hash_detection():
    hashed = hash_secret("secret")

    assert looks_hashed(hashed)
    assert looks_hashed("$2b$12$abcdefghijklmnopqrstuv")
    assert not looks_hashed("secret")
    assert not looks_hashed("")
