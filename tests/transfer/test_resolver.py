import pytest

from lyceum.models import Philosopher, School, User, db
from lyceum.transfer.introspection import SchemaIntrospector
from lyceum.transfer.resolver import EntityResolver
from lyceum.transfer.values import QuotedText


@pytest.fixture
def resolver(app):
    return EntityResolver(db.session, SchemaIntrospector(db.session))


def test_numeric_identity_is_verified(resolver, test_school):
    assert resolver.resolve("10", "schools") == 10
    assert resolver.resolve(10, "schools") == 10
    assert resolver.resolve("10.0", "schools") == 10
    assert resolver.resolve("99", "schools") is None


@pytest.mark.parametrize("token", ["", "  ", "null", "None", "已注销", "deleted", None])
def test_blank_tokens_are_unresolved(resolver, test_user, token):
    assert resolver.resolve(token, "users") is None


def test_natural_key_fallback(resolver, test_school):
    assert resolver.resolve("Stoicism", "schools") == 10
    assert resolver.resolve("testuser", "users") == 1
    assert resolver.resolve("test@example.com", "users") == 1


def test_ambiguous_natural_key_is_unresolved(resolver):
    db.session.add_all([Philosopher(id=1, name="Zeno"), Philosopher(id=2, name="Zeno")])
    db.session.commit()

    assert resolver.resolve("Zeno", "philosophers") is None


def test_english_name_is_a_secondary_natural_key(resolver):
    db.session.add(Philosopher(id=3, name="孔子", name_en="Confucius"))
    db.session.commit()

    assert resolver.resolve("孔子", "philosophers") == 3
    assert resolver.resolve("Confucius", "philosophers") == 3


def test_pending_rows_become_visible_after_flush_retry(resolver):
    db.session.add(School(id=12, name="Epicureanism"))

    assert resolver.resolve("12", "schools") == 12
    assert resolver.resolve("Epicureanism", "schools") == 12


def test_exists(resolver, test_user):
    assert resolver.exists("users", 1)
    assert not resolver.exists("users", 2)
    assert not resolver.exists("legacy_things", 1)


def test_preferred_natural_key_wins_over_numeric_identity(resolver, test_user):
    db.session.add(User(id=2, username="1", password="x"))
    db.session.commit()

    assert resolver.resolve("1", "users") == 1
    assert resolver.resolve("1", "users", prefer="username") == 2
    assert resolver.resolve("testuser", "users", prefer="username") == 1
    assert resolver.resolve("test@example.com", "users", prefer="username") == 1


def test_quoted_deleted_account_word_is_a_username(resolver):
    db.session.add(User(id=4, username="deleted", password="x"))
    db.session.commit()

    assert resolver.resolve("deleted", "users") is None
    assert resolver.resolve(QuotedText("deleted"), "users", prefer="username") == 4
