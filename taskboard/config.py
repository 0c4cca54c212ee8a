import os


def _csv(name, default=""):
    return [item.strip() for item in os.environ.get(name, default).split(",") if item.strip()]


class Config:
    """Settings shared by every environment; values come from the environment."""

    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Railway / Heroku hand out "postgres://", SQLAlchemy wants "postgresql://".
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # --- Realtime (Flask-SocketIO) ---
    # "threading" works everywhere; "eventlet"/"gevent" when installed.
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "threading")
    SOCKETIO_CORS_ORIGINS = _csv(
        "SOCKETIO_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    )
    # Needed only when more than one server process shares the board rooms.
    SOCKETIO_MESSAGE_QUEUE = os.environ.get("SOCKETIO_MESSAGE_QUEUE") or None

    # --- Rate limiting (task and column mutations) ---
    MUTATION_RATE_LIMIT = os.environ.get("MUTATION_RATE_LIMIT", "120 per minute")

    REQUIRED_ENV = ("SECRET_KEY", "DATABASE_URL")

    @classmethod
    def validate(cls):
        """Raise RuntimeError listing any required variable that is unset."""
        missing = [name for name in cls.REQUIRED_ENV if not os.environ.get(name)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development against a SQLite file unless DATABASE_URL is set."""

    DEBUG = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = Config.SQLALCHEMY_DATABASE_URI or "sqlite:///taskboard.db"
    REQUIRED_ENV = ()


class TestConfig(Config):
    """Testing: in-memory SQLite, no rate limits, threaded Socket.IO."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    SOCKETIO_ASYNC_MODE = "threading"
    SOCKETIO_MESSAGE_QUEUE = None
    REQUIRED_ENV = ()


class ProdConfig(Config):
    DEBUG = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
