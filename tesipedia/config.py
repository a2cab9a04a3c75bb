import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name, default):
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _database_uri():
    url = os.getenv("DATABASE_URL")
    if not url:
        return "sqlite:///tesipedia.db"

    rootcert = os.getenv("DB_SSLROOTCERT")
    if rootcert:
        return f"{url}?sslmode=verify-full&sslrootcert={rootcert}"
    return url


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = _database_uri()
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")

    CORS_ORIGINS = os.getenv(
        "CORS_ORIGINS",
        "https://tesipedia.com"
    )

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Rate limiting (Flask-Limiter reads the RATELIMIT_* keys)
    RATELIMIT_ENABLED = _flag("RATELIMIT_ENABLED", True)
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    PUBLIC_CHAT_RATE_LIMIT = os.getenv("PUBLIC_CHAT_RATE_LIMIT", "30 per minute")

    # Chat
    DEFAULT_ADMIN_ID = os.getenv("DEFAULT_ADMIN_ID", "")
    ANONYMOUS_SENDER_NAME = os.getenv("ANONYMOUS_SENDER_NAME", "Usuario Anónimo")
    PUBLIC_MESSAGE_TTL_DAYS = int(os.getenv("PUBLIC_MESSAGE_TTL_DAYS", 0))
    NOTIFICATIONS_ASYNC = _flag("NOTIFICATIONS_ASYNC", True)

    basedir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    CHAT_UPLOADS_FOLDER = os.getenv("CHAT_UPLOADS_FOLDER", os.path.join(basedir, "uploads/chat"))

    # Geo lookup (ipinfo.io)
    GEO_LOOKUP_ENABLED = _flag("GEO_LOOKUP_ENABLED", True)
    IPINFO_TOKEN = os.getenv("IPINFO_TOKEN")
    GEO_LOOKUP_TIMEOUT = float(os.getenv("GEO_LOOKUP_TIMEOUT", 3))

    # Reverse proxies in front of the app; 0 ignores X-Forwarded-For
    PROXY_FIX_X_FOR = int(os.getenv("PROXY_FIX_X_FOR", 0))

    # Sockets
    SOCKETIO_ASYNC_MODE = os.getenv("SOCKETIO_ASYNC_MODE") or None


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    DEFAULT_ADMIN_ID = "usr-00000000-0000-4000-8000-000000000001"
    RATELIMIT_ENABLED = False
    NOTIFICATIONS_ASYNC = False
    GEO_LOOKUP_ENABLED = False
    PUBLIC_MESSAGE_TTL_DAYS = 0
    SOCKETIO_ASYNC_MODE = "threading"
    LOG_LEVEL = "WARNING"


CONFIGS = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
