import dataclasses
import logging

from lyceum.models import Comment, School, User, db
from lyceum.transfer.contracts import COMMENTS, SCHOOLS, USERS, FieldSpec
from lyceum.transfer.introspection import SchemaIntrospector
from lyceum.transfer.upsert import UpsertExecutor, UpsertOutcome


def _executor():
    return UpsertExecutor(db.session, SchemaIntrospector(db.session))


def test_insert_fills_defaults_and_audit_timestamps(app):
    result = _executor().upsert(SCHOOLS, 10, {"name": "Stoicism", "like_count": None})
    db.session.commit()

    assert result.outcome is UpsertOutcome.INSERTED
    school = db.session.get(School, 10)
    assert school.name == "Stoicism"
    assert school.like_count == 0
    assert school.created_at is not None
    assert school.updated_at is not None


def test_update_touches_only_supplied_fields(app, test_school):
    result = _executor().upsert(SCHOOLS, 10, {"description": "Virtue is the only good"})
    db.session.commit()

    assert result.outcome is UpsertOutcome.UPDATED
    db.session.expire_all()
    school = db.session.get(School, 10)
    assert school.description == "Virtue is the only good"
    assert school.name == "Stoicism"
    assert school.name_en == "Stoicism"


def test_blank_reference_never_clears_stored_reference(app, test_school):
    result = _executor().upsert(SCHOOLS, 10, {"name": "Stoicism", "user_id": None})
    db.session.commit()

    assert result.ok
    db.session.expire_all()
    assert db.session.get(School, 10).user_id == 1


def test_blank_preserved_field_keeps_stored_value(app, test_user):
    stored_hash = test_user.password

    result = _executor().upsert(USERS, 1, {"username": "testuser", "password": None, "first_name": "Changed"})
    db.session.commit()

    assert result.outcome is UpsertOutcome.UPDATED
    db.session.expire_all()
    user = db.session.get(User, 1)
    assert user.password == stored_hash
    assert user.first_name == "Changed"


def test_failed_insert_is_reported_and_leaves_transaction_usable(app, test_content):
    executor = _executor()

    # comments.user_id is NOT NULL
    failed = executor.upsert(COMMENTS, 900, {"body": "orphan", "user_id": None, "content_id": 100})
    inserted = executor.upsert(COMMENTS, 901, {"body": "fine", "user_id": 1, "content_id": 100})
    db.session.commit()

    assert failed.outcome is UpsertOutcome.FAILED
    assert failed.error
    assert inserted.outcome is UpsertOutcome.INSERTED
    assert db.session.get(Comment, 900) is None
    assert db.session.get(Comment, 901).body == "fine"


def test_missing_optional_column_is_left_out_of_the_write(app):
    entity = dataclasses.replace(SCHOOLS, fields=SCHOOLS.fields + (FieldSpec("motto", "Motto"),))

    result = _executor().upsert(entity, 10, {"name": "Stoicism", "motto": "Live according to nature"})
    db.session.commit()

    assert result.outcome is UpsertOutcome.INSERTED
    assert db.session.get(School, 10).name == "Stoicism"


def test_missing_required_column_drops_only_that_column(app, caplog):
    entity = dataclasses.replace(SCHOOLS, fields=SCHOOLS.fields + (FieldSpec("motto", "Motto", required=True),))

    with caplog.at_level(logging.ERROR, logger="lyceum.transfer"):
        result = _executor().upsert(entity, 10, {"name": "Stoicism", "motto": "Live according to nature"})
    db.session.commit()

    assert result.ok
    assert db.session.get(School, 10) is not None
    assert any("schools.motto" in record.getMessage() for record in caplog.records)
