"""
Nexus Project Hub settings, one class per environment.

``create_app`` picks the class from ``APP_ENV`` (development | testing |
production) and loads it with ``app.config.from_object``. Every setting reads
its environment variable of the same name.
"""

import os
import secrets

ROOT_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
INSTANCE_DIR = os.path.join(ROOT_DIR, "instance")


def _env_flag(name, default):
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


def _database_url(fallback=None):
    # Hosting providers still hand out postgres://, SQLAlchemy 2 wants postgresql://
    url = os.getenv("DATABASE_URL", "")
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url or fallback


class Config:
    # A fresh key per process is fine until sessions need to survive restarts
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    LOG_LEVEL = os.getenv("LOG_LEVEL")            # DEBUG | INFO | WARNING ...
    LOG_FORMAT = os.getenv("LOG_FORMAT")          # readable | json

    # Limiter counters; in-process memory when unset
    REDIS_URL = os.getenv("REDIS_URL", "")
    RATELIMIT_OVERRIDES = {}
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Bearer tokens minted by the external identity provider
    IDENTITY_AUTH_ENABLED = _env_flag("IDENTITY_AUTH_ENABLED", "true")
    IDENTITY_TOKEN_SECRET = os.getenv("IDENTITY_TOKEN_SECRET")
    IDENTITY_VERIFY_SIGNATURE = _env_flag("IDENTITY_VERIFY_SIGNATURE", "true")
    IDENTITY_TOKEN_EXPIRES = int(os.getenv("IDENTITY_TOKEN_EXPIRES", "3600"))
    DEV_IDENTITY_ID = os.getenv("DEV_IDENTITY_ID", "dev-user")
    DEV_IDENTITY_EMAIL = os.getenv("DEV_IDENTITY_EMAIL", "dev@localhost")
    DEV_IDENTITY_NAME = os.getenv("DEV_IDENTITY_NAME", "Developer")

    STORAGE_PROVIDER = os.getenv("STORAGE_PROVIDER", "local")  # local | drive
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(INSTANCE_DIR, "uploads"))
    MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))
    # room for the multipart envelope around the file itself
    MAX_CONTENT_LENGTH = MAX_UPLOAD_BYTES + 1024 * 1024

    # Microsoft Graph: calendar events, To Do tasks, OneDrive attachments
    GRAPH_TENANT_ID = os.getenv("GRAPH_TENANT_ID")
    GRAPH_CLIENT_ID = os.getenv("GRAPH_CLIENT_ID")
    GRAPH_CLIENT_SECRET = os.getenv("GRAPH_CLIENT_SECRET")
    GRAPH_BASE_URL = os.getenv("GRAPH_BASE_URL", "https://graph.microsoft.com/v1.0")
    SYNC_TODO_ON_ASSIGN = _env_flag("SYNC_TODO_ON_ASSIGN", "false")

    @classmethod
    def validate(cls):
        """Raise RuntimeError for settings this environment cannot start without."""


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        f"sqlite:///{os.path.join(INSTANCE_DIR, 'nexus_dev.db')}"
    )
    # the dev identity stands in for bearer tokens unless asked otherwise
    IDENTITY_AUTH_ENABLED = _env_flag("IDENTITY_AUTH_ENABLED", "false")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SECRET_KEY = "test-secret-key"
    LOG_LEVEL = "WARNING"
    LOG_FORMAT = "readable"
    RATELIMIT_ENABLED = False

    IDENTITY_AUTH_ENABLED = True
    IDENTITY_VERIFY_SIGNATURE = True
    IDENTITY_TOKEN_SECRET = "test-identity-secret"

    STORAGE_PROVIDER = "local"
    SYNC_TODO_ON_ASSIGN = False
    GRAPH_TENANT_ID = GRAPH_CLIENT_ID = GRAPH_CLIENT_SECRET = None


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    @classmethod
    def validate(cls):
        missing = [
            name for name, value in (
                ("DATABASE_URL", cls.SQLALCHEMY_DATABASE_URI),
                ("SECRET_KEY", os.getenv("SECRET_KEY")),
            ) if not value
        ]
        if cls.IDENTITY_AUTH_ENABLED and cls.IDENTITY_VERIFY_SIGNATURE and not cls.IDENTITY_TOKEN_SECRET:
            missing.append("IDENTITY_TOKEN_SECRET")
        if missing:
            raise RuntimeError(f"Missing required production settings: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
