# config/base.py
import os


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _coerce_int(value, default, *, minimum=None):
    """Parse an environment integer, falling back to default when missing, malformed or too small."""
    if value is None or str(value).strip() == "":
        return default
    try:
        number = int(str(value).strip())
    except ValueError:
        return default
    if minimum is not None and number < minimum:
        return default
    return number


def _normalize_database_url(uri):
    """Heroku-style URLs use the postgres:// scheme SQLAlchemy no longer accepts"""
    if uri and uri.startswith("postgres://"):
        return uri.replace("postgres://", "postgresql://", 1)
    return uri


class Config:
    _flask_env = os.environ.get("FLASK_ENV", "development")
    _is_testing = _flask_env == "testing"
    _is_production = _flask_env == "production"

    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Only require SECRET_KEY in production mode
    if not SECRET_KEY and _is_production:
        raise ValueError(
            "SECRET_KEY environment variable is required in production. "
            'Generate with: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not SECRET_KEY:
        SECRET_KEY = "dev-secret-key-change-in-production"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Audit timestamps in the system comment are written in this timezone
    PROVISIONING_TIMEZONE = os.environ.get("PROVISIONING_TIMEZONE", "Europe/London")

    # Moodle role given to parents, and the user id recorded as modifier of role assignments
    MOODLE_PARENT_ROLE_ID = _coerce_int(os.environ.get("MOODLE_PARENT_ROLE_ID"), 0, minimum=0)
    MOODLE_MODIFIER_ID = _coerce_int(os.environ.get("MOODLE_MODIFIER_ID"), 2, minimum=0)

    PENDING_COUNT_TTL_SECONDS = _coerce_int(
        os.environ.get("PENDING_COUNT_TTL_SECONDS"), 3600, minimum=1
    )

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    ENABLE_CONSOLE_LOGGING = _coerce_bool(os.environ.get("ENABLE_CONSOLE_LOGGING"), default=True)
    ENABLE_FILE_LOGGING = _coerce_bool(os.environ.get("ENABLE_FILE_LOGGING"), default=False)
    LOG_DIR = os.environ.get("LOG_DIR", "logs")


class DevelopmentConfig(Config):
    DEBUG = True
    # Get the project root directory (parent of config directory)
    _config_dir = os.path.dirname(os.path.abspath(__file__))
    _project_root = os.path.dirname(_config_dir)
    instance_path = os.path.join(_project_root, "instance")

    # Ensure instance folder exists
    if not os.path.exists(instance_path):
        os.makedirs(instance_path, exist_ok=True)

    # SQLite URI format: sqlite:///absolute/path (3 slashes for absolute path)
    db_uri = "sqlite:///" + os.path.join(instance_path, "provisioning_dev.db").replace("\\", "/")
    moodle_db_uri = "sqlite:///" + os.path.join(instance_path, "moodle_dev.db").replace("\\", "/")

    SQLALCHEMY_DATABASE_URI = _normalize_database_url(os.environ.get("DATABASE_URL", db_uri))
    SQLALCHEMY_BINDS = {
        "moodle": _normalize_database_url(os.environ.get("MOODLE_DATABASE_URL", moodle_db_uri)),
    }
    SQLALCHEMY_ECHO = _coerce_bool(os.environ.get("SQLALCHEMY_ECHO"), default=False)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG").upper()


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"  # In-memory database for testing
    SQLALCHEMY_BINDS = {"moodle": "sqlite:///:memory:"}
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "check_same_thread": False,
            "timeout": 5,
        }
    }
    PROVISIONING_TIMEZONE = "Europe/London"
    MOODLE_PARENT_ROLE_ID = 9
    MOODLE_MODIFIER_ID = 2
    ENABLE_FILE_LOGGING = False
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(os.environ.get("DATABASE_URL"))
    SQLALCHEMY_BINDS = {
        "moodle": _normalize_database_url(
            os.environ.get("MOODLE_DATABASE_URL") or os.environ.get("DATABASE_URL")
        ),
    }
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 280}
