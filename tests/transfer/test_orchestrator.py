from transfer_builders import (
    DEFAULT_PASSWORD,
    base_document,
    comment_row,
    content_row,
    document,
    link_row,
    make_row,
    philosopher_row,
    school_row,
    section,
    section_counts,
    user_row,
)
from werkzeug.security import check_password_hash, generate_password_hash

from lyceum.models import (
    Comment,
    Content,
    Like,
    Philosopher,
    School,
    TransferRun,
    TransferRunKind,
    User,
    db,
    philosopher_school,
)
from lyceum.transfer.contracts import (
    COMMENTS,
    CONTENTS,
    LIKES,
    PHILOSOPHER_SCHOOLS,
    PHILOSOPHERS,
    SCHOOLS,
    USERS,
)
from lyceum.transfer.exporter import Exporter
from lyceum.transfer.orchestrator import ImportOrchestrator
from lyceum.transfer.phases import PHASES, Phase


def test_concrete_scenario_users_and_school(orchestrator):
    text = document(
        section(USERS, user_row(1, "alice", "a@x.com"), user_row(2, "bob", "b@x.com")),
        section(SCHOOLS, school_row(10, "Stoicism")),
    )

    result = orchestrator.import_all(text)

    assert section_counts(result) == {"users": (2, 0), "schools": (1, 0)}
    assert result.success
    assert result.total_imported == 3
    exported = Exporter(db.session).export_all()
    assert "\n1,alice,a@x.com," in exported
    assert "\n2,bob,b@x.com," in exported
    assert "\n10,Stoicism," in exported


def test_base_document_builds_a_linked_graph(orchestrator):
    result = orchestrator.import_all(base_document())

    assert section_counts(result) == {
        "users": (2, 0),
        "schools": (2, 0),
        "philosophers": (1, 0),
        "philosopher_schools": (1, 0),
        "contents": (1, 0),
        "content_associations": (1, 0),
        "comments": (2, 0),
    }
    # Forward references inside a section converge on the first import
    assert db.session.get(School, 11).parent_id == 10
    assert db.session.get(Comment, 501).parent_id == 500
    assert db.session.get(Comment, 501).user_id == 2
    assert db.session.get(Comment, 500).body == 'He said "enough"'
    content = db.session.get(Content, 100)
    assert (content.user_id, content.school_id, content.philosopher_id) == (1, 10, 20)
    assert content.content == "On anger, and grief"
    assert db.session.execute(db.select(philosopher_school)).all() == [(20, 10)]


def test_reimport_is_idempotent(orchestrator, seeded):
    first = Exporter(db.session).export_all()

    result = orchestrator.import_all(first)
    second = Exporter(db.session).export_all()

    assert result.total_failed == 0
    assert second == first


def test_partial_failure_is_isolated_to_its_section(orchestrator):
    text = document(
        section(USERS, user_row(1, "alice", "a@x.com"), user_row(2, "bob", "b@x.com")),
        section(SCHOOLS, school_row(10, "Stoicism")),
        section(CONTENTS, content_row("abc", title="broken"), content_row(100, title="fine", user_id=1)),
    )

    result = orchestrator.import_all(text)

    assert result.sections["users"].success == 2
    assert result.sections["schools"].success == 1
    assert (result.sections["contents"].success, result.sections["contents"].failure) == (1, 1)
    assert result.sections["contents"].diagnostics == ["Row 1 (ID=abc): malformed ID 'abc'"]


def test_same_batch_natural_key_duplicates_last_row_wins(orchestrator):
    text = document(section(USERS, user_row(1, "alice", "first@x.com"), user_row(2, "alice", "second@x.com")))

    result = orchestrator.import_all(text)

    assert result.sections["users"].success == 2
    assert db.session.get(User, 1) is None
    assert db.session.get(User, 2).email == "second@x.com"


def test_conflicting_username_replaces_stale_user_and_dependents(orchestrator, test_content):
    text = document(section(USERS, user_row(7, "testuser", "fresh@example.com")))

    result = orchestrator.import_all(text)

    assert result.sections["users"].success == 1
    assert db.session.get(User, 1) is None
    assert db.session.get(Content, 100) is None
    assert db.session.get(User, 7).username == "testuser"


def test_passwords_are_hashed_defaulted_or_kept(orchestrator):
    stored_hash = generate_password_hash("already-hashed")
    text = document(
        section(
            USERS,
            user_row(1, "plain", password="s3cret"),
            user_row(2, "missing"),
            user_row(3, "hashed", password=stored_hash),
        )
    )

    orchestrator.import_all(text)

    assert check_password_hash(db.session.get(User, 1).password, "s3cret")
    assert check_password_hash(db.session.get(User, 2).password, DEFAULT_PASSWORD)
    assert db.session.get(User, 3).password == stored_hash


def test_reimport_without_password_keeps_stored_hash(orchestrator, test_user):
    text = document(section(USERS, user_row(1, "testuser", "test@example.com", first_name="Renamed")))

    orchestrator.import_all(text)

    user = db.session.get(User, 1)
    assert user.first_name == "Renamed"
    assert check_password_hash(user.password, "testpass123")


def test_moderator_keeps_assigned_school_when_row_omits_it(orchestrator, moderator_user):
    text = document(section(USERS, user_row(5, "moderator", "moderator@example.com", role="MODERATOR")))

    orchestrator.import_all(text)

    assert db.session.get(User, 5).assigned_school_id == 10


def test_demoted_moderator_does_not_inherit_assignment(orchestrator, moderator_user):
    text = document(section(USERS, user_row(5, "moderator", "moderator@example.com", role="USER")))

    orchestrator.import_all(text)

    assert db.session.get(User, 5).assigned_school_id is None


def test_unresolved_mandatory_reference_skips_the_row(orchestrator, test_content):
    text = document(
        section(
            LIKES,
            make_row(LIKES, id=1, user_id=99, entity_type="CONTENT", entity_id=100),
            make_row(LIKES, id=2, user_id="testuser", entity_type="content", entity_id=100),
        )
    )

    result = orchestrator.import_all(text)

    assert (result.sections["likes"].success, result.sections["likes"].failure) == (1, 1)
    assert result.sections["likes"].diagnostics == ["Row 1 (ID=1): User ID '99' not found"]
    like = db.session.get(Like, 2)
    assert (like.user_id, like.entity_type) == (1, "CONTENT")


def test_unresolved_optional_reference_keeps_the_row(orchestrator, test_user):
    text = document(section(SCHOOLS, school_row(10, "Stoicism", user_id="ghost")))

    result = orchestrator.import_all(text)

    assert result.sections["schools"].success == 1
    assert db.session.get(School, 10).user_id is None


def test_philosopher_school_links_resolve_by_name(orchestrator, test_school, test_philosopher):
    text = document(
        section(
            PHILOSOPHER_SCHOOLS,
            ["Philosopher ID", "School ID"],
            link_row("Seneca", "Stoicism"),
            link_row("Seneca", "Stoicism"),
            link_row("Nobody", "Stoicism"),
        )
    )

    result = orchestrator.import_all(text)

    section_result = result.sections["philosopher_schools"]
    assert (section_result.success, section_result.failure) == (2, 1)
    assert db.session.execute(db.select(philosopher_school)).all() == [(20, 10)]


def test_localized_titles_are_imported(orchestrator):
    text = document(
        section(USERS, user_row(1, "alice"), title="用户数据"),
        section(SCHOOLS, school_row(10, "斯多葛学派"), title="流派数据"),
        section(PHILOSOPHERS, philosopher_row(20, "塞涅卡"), title="哲学家数据"),
        section(PHILOSOPHER_SCHOOLS, link_row(20, 10), title="哲学家-学派关联数据"),
    )

    result = orchestrator.import_all(text)

    assert section_counts(result) == {
        "users": (1, 0),
        "schools": (1, 0),
        "philosophers": (1, 0),
        "philosopher_schools": (1, 0),
    }


def test_short_rows_from_older_exports_keep_stored_trailing_fields(orchestrator, test_philosopher):
    db.session.get(Philosopher, 20).image_url = "https://example.com/seneca.png"
    db.session.commit()
    text = document(section(PHILOSOPHERS, ["20", "Seneca", "Seneca", "-4", "65", "Roman"]))

    result = orchestrator.import_all(text)

    assert result.sections["philosophers"].success == 1
    philosopher = db.session.get(Philosopher, 20)
    assert philosopher.era == "Roman"
    assert philosopher.image_url == "https://example.com/seneca.png"


def test_diagnostics_are_capped(app):
    orchestrator = ImportOrchestrator(db.session, max_diagnostics=2, default_password=DEFAULT_PASSWORD)
    text = document(section(USERS, *[user_row(index, "") for index in range(1, 6)], user_row(9, "ok")))

    result = orchestrator.import_all(text)

    users = result.sections["users"]
    assert (users.success, users.failure) == (1, 5)
    assert len(users.diagnostics) == 2


def test_short_user_rows_are_rejected(orchestrator):
    text = document(section(USERS, ["1", "alice", "a@x.com"]))

    result = orchestrator.import_all(text)

    assert result.sections["users"].failure == 1
    assert "too few fields" in result.sections["users"].diagnostics[0]


def test_phase_exception_rolls_back_only_that_phase(orchestrator, monkeypatch):
    def _explode(context, entity, rows):
        raise RuntimeError("boom")

    phases = tuple(Phase(phase.name, phase.entity, _explode) if phase.name == "schools" else phase for phase in PHASES)
    monkeypatch.setattr("lyceum.transfer.orchestrator.PHASES", phases)
    text = document(
        section(USERS, user_row(1, "alice")),
        section(SCHOOLS, school_row(10, "Stoicism"), school_row(11, "Cynicism")),
    )

    result = orchestrator.import_all(text)

    assert section_counts(result) == {"users": (1, 0), "schools": (0, 2)}
    assert result.sections["schools"].diagnostics == ["phase aborted: boom"]
    assert db.session.get(User, 1) is not None
    assert db.session.get(School, 10) is None


def test_no_sections_found(orchestrator):
    result = orchestrator.import_all("just some text\nwithout titles\n")

    assert not result.success
    assert result.message == "No sections found in import data"


def test_all_sections_empty(orchestrator):
    result = orchestrator.import_all("Users Data\nID,Username\n\nSchools Data\n")

    assert not result.success
    assert result.message == "All sections are empty: Users Data, Schools Data"


def test_nothing_imported_lists_parsed_sections(orchestrator):
    text = document(section(USERS, user_row(1, "")), "Mystery Data\n1,2\n")

    result = orchestrator.import_all(text)

    assert not result.success
    assert result.message == "No records were imported"
    assert result.diagnostics == ["Users Data: 1 rows", "Mystery Data: 1 rows"]


def test_clear_all_empties_transfer_tables_only(orchestrator, seeded):
    db.session.add(TransferRun(kind=TransferRunKind.IMPORT))
    db.session.commit()

    removed = orchestrator.clear_all()

    assert removed["users"] == 2
    assert removed["comments"] == 2
    for model in (User, School, Philosopher, Content, Comment):
        assert db.session.query(model).count() == 0
    assert db.session.query(TransferRun).count() == 1


def test_import_with_clear_existing_replaces_everything(orchestrator, test_content):
    text = document(section(USERS, user_row(3, "carol")))

    result = orchestrator.import_all(text, clear_existing=True)

    assert result.sections["users"].success == 1
    assert db.session.query(User).count() == 1
    assert db.session.query(Content).count() == 0


def test_comment_without_content_is_rejected(orchestrator, test_user):
    text = document(
        section(CONTENTS, content_row(100, title="t", user_id=1)),
        section(COMMENTS, comment_row(1, "hi", "testuser", 404)),
    )

    result = orchestrator.import_all(text)

    assert result.sections["comments"].failure == 1
    assert "Content ID '404' not found" in result.sections["comments"].diagnostics[0]


def test_numeric_username_resolves_to_its_own_user(orchestrator):
    orchestrator.import_all(
        document(
            section(USERS, user_row(1, "alice"), user_row(2, "1")),
            section(CONTENTS, content_row(100, title="Letters", user_id=1)),
            section(COMMENTS, comment_row(500, "mine", "1", 100)),
        )
    )
    assert db.session.get(Comment, 500).user_id == 2

    exported = Exporter(db.session).export_all()
    orchestrator.clear_all()
    result = orchestrator.import_all(exported)

    assert result.total_failed == 0
    assert db.session.get(Comment, 500).user_id == 2
    assert Exporter(db.session).export_all() == exported


def test_reserved_words_are_literal_outside_references(orchestrator):
    text = (
        "Users Data\n"
        "ID,Username,Email,Password,First Name\n"
        "1,deleted,,,\n"
        "2,None,,,None\n"
        "\n"
        "Contents Data\n"
        "ID,Content,Content EN,Philosopher ID,School ID,User ID,Title\n"
        "100,null,,,,None,None\n"
        "\n"
        "Comments Data\n"
        '500,hello,"deleted",100\n'
    )

    result = orchestrator.import_all(text)

    assert section_counts(result) == {"users": (2, 0), "contents": (1, 0), "comments": (1, 0)}
    assert db.session.get(User, 1).username == "deleted"
    assert (db.session.get(User, 2).username, db.session.get(User, 2).first_name) == ("None", "None")
    content = db.session.get(Content, 100)
    assert (content.title, content.content, content.user_id) == ("None", None, None)
    assert db.session.get(Comment, 500).user_id == 1

    exported = Exporter(db.session).export_all()
    assert '\n100,,,,,,"None",' in exported
    orchestrator.clear_all()
    orchestrator.import_all(exported)

    assert db.session.get(Content, 100).title == "None"
    assert db.session.get(Comment, 500).user_id == 1
    assert Exporter(db.session).export_all() == exported


def test_text_with_edge_whitespace_survives_round_trip(orchestrator, test_content):
    db.session.get(Content, 100).title = "  Letters to Lucilius "
    db.session.commit()

    exported = Exporter(db.session).export_all()
    orchestrator.clear_all()
    result = orchestrator.import_all(exported)

    assert result.total_failed == 0
    assert db.session.get(Content, 100).title == "  Letters to Lucilius "
