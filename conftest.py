# conftest.py

import os

import pytest
from werkzeug.security import generate_password_hash

# Set testing environment BEFORE importing app to prevent database corruption
# This ensures app.py uses TestingConfig when imported
os.environ["FLASK_ENV"] = "testing"

# Now import app and other modules after environment is set
from app import app as flask_app  # noqa: E402
from lyceum.models import Content, Philosopher, School, User, UserRole, db  # noqa: E402


@pytest.fixture(scope="function")
def app():
    """Create and configure a test Flask application"""
    flask_app.config.update(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "LOG_LEVEL": "DEBUG",
            "ENABLE_FILE_LOGGING": False,
            "ENABLE_CONSOLE_LOGGING": False,
            "TRANSFER_MAX_FAILURE_DETAILS": 50,
            "TRANSFER_DEFAULT_PASSWORD": "test-default-password",
            "TRANSFER_ALLOW_CLEAR": False,
            "TRANSFER_EXPORT_BOM": False,
            "TRANSFER_RUN_HISTORY": True,
        }
    )

    # Re-initialize logging with updated config to pick up LOG_LEVEL=DEBUG
    from lyceum.utils.logging_config import setup_logging

    setup_logging(flask_app)

    with flask_app.app_context():
        # Drop any existing tables to ensure clean state
        db.drop_all()
        db.create_all()
        yield flask_app
        # Clean up: remove all data and drop tables
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


@pytest.fixture
def test_user():
    """Create a test user fixture"""
    user = User(
        id=1,
        username="testuser",
        email="test@example.com",
        password=generate_password_hash("testpass123"),
        first_name="Test",
        last_name="User",
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def moderator_user():
    """Create a moderator assigned to school 10"""
    user = User(
        id=5,
        username="moderator",
        email="moderator@example.com",
        password=generate_password_hash("modpass123"),
        role=UserRole.MODERATOR.value,
        assigned_school_id=10,
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def test_school(test_user):
    """Create a school owned by the test user"""
    school = School(id=10, name="Stoicism", name_en="Stoicism", user_id=test_user.id)
    db.session.add(school)
    db.session.commit()
    return school


@pytest.fixture
def test_philosopher():
    """Create a philosopher fixture"""
    philosopher = Philosopher(id=20, name="Seneca", name_en="Seneca", birth_year=-4, death_year=65)
    db.session.add(philosopher)
    db.session.commit()
    return philosopher


@pytest.fixture
def test_content(test_user, test_school, test_philosopher):
    """Create an authored content item linked to a school and philosopher"""
    content = Content(
        id=100,
        title="On the Shortness of Life",
        content="Life is long if you know how to use it.",
        user_id=test_user.id,
        school_id=test_school.id,
        philosopher_id=test_philosopher.id,
    )
    db.session.add(content)
    db.session.commit()
    return content
