# conftest.py

import os

import pytest
from sqlalchemy import event

# Set testing environment BEFORE importing app so that app.py uses TestingConfig
os.environ["FLASK_ENV"] = "testing"

# Now import app and other modules after environment is set
from app import app as flask_app  # noqa: E402
from provisioning_app.models import (  # noqa: E402
    CONTEXT_LEVEL_USER,
    STATIC_CONTEXTS_OPTION,
    Contact,
    MoodleContext,
    MoodleUser,
    PluginOption,
    db,
)
from provisioning_app.utils.logging_config import setup_logging  # noqa: E402


@pytest.fixture(scope="function")
def app():
    """Create and configure a test Flask application with fresh tables"""
    flask_app.config.update(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "ENABLE_FILE_LOGGING": False,
            "ENABLE_CONSOLE_LOGGING": True,
            "LOG_LEVEL": "DEBUG",
            "PROVISIONING_TIMEZONE": "Europe/London",
            "MOODLE_PARENT_ROLE_ID": 9,
            "MOODLE_MODIFIER_ID": 2,
            "PENDING_COUNT_TTL_SECONDS": 3600,
        }
    )

    # Re-initialize logging with updated config to pick up LOG_LEVEL=DEBUG
    setup_logging(flask_app)

    with flask_app.app_context():
        # Drop any existing tables (both binds) to ensure clean state
        db.drop_all()
        db.create_all()
        yield flask_app
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
def query_log(app):
    """Collect the SQL statements issued against the plugin database"""
    statements = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    engine = db.engine
    event.listen(engine, "before_cursor_execute", _record)
    yield statements
    event.remove(engine, "before_cursor_execute", _record)


@pytest.fixture
def pending_contact(app):
    """A saved Contact awaiting approval"""
    contact = Contact(
        mis_id=101,
        external_mis_id="6f1c2a5e-8d0b-4c1e-9a77-3b2f1e0d9c41",
        title="Mrs",
        forename="Jane",
        surname="Parent",
        email="Jane.Parent@Example.com",
    )
    contact.save()
    return contact


@pytest.fixture
def other_pending_contact(app):
    """A second saved Contact sharing the email of pending_contact"""
    contact = Contact(
        mis_id=102,
        external_mis_id="a3c9b0d2-1e47-4f8a-b5c6-7d8e9f0a1b2c",
        title="Mr",
        forename="John",
        surname="Parent",
        email="jane.parent@example.com",
    )
    contact.save()
    return contact


@pytest.fixture
def parent_moodle_user(app):
    """An active Moodle account matching pending_contact's email"""
    user = MoodleUser(
        auth="db",
        username="jane.parent@example.com",
        email="jane.parent@example.com",
        firstname="Mrs Jane",
        lastname="Parent",
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def pupil_moodle_user(app):
    """A pupil Moodle account with Admissions Number 004512 and its user context"""
    user = MoodleUser(
        auth="manual",
        username="14parentp",
        idnumber="004512",
        email="14parentp@school.example",
        firstname="Pat",
        lastname="Parent",
    )
    db.session.add(user)
    db.session.commit()
    db.session.add(MoodleContext(contextlevel=CONTEXT_LEVEL_USER, instanceid=user.id))
    db.session.commit()
    return user


@pytest.fixture
def second_pupil_moodle_user(app):
    """A second pupil with Admissions Number 004899 and its user context"""
    user = MoodleUser(
        auth="manual",
        username="16parents",
        idnumber="004899",
        email="16parents@school.example",
        firstname="Sam",
        lastname="Parent",
    )
    db.session.add(user)
    db.session.commit()
    db.session.add(MoodleContext(contextlevel=CONTEXT_LEVEL_USER, instanceid=user.id))
    db.session.commit()
    return user


@pytest.fixture
def static_contexts(app):
    """Configure the 'contexts-to-add-role' option"""

    def _configure(raw):
        PluginOption.set_option(STATIC_CONTEXTS_OPTION, raw)
        return raw

    return _configure


# Pytest configuration
def pytest_configure(config):
    """Ensure testing environment and register markers"""
    os.environ["FLASK_ENV"] = "testing"

    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
