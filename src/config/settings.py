import os

from dotenv import load_dotenv

from src.shared.utils import get_logger

logger = get_logger(__name__)


load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application configuration settings."""

    # Environment
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    VERSION = "1.0.0"

    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./spaceremit.db")
    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "3600"))

    # SpaceRemit gateway
    SPACEREMIT_API_URL = os.getenv(
        "SPACEREMIT_API_URL", "https://spaceremit.com/apiinfo-v2"
    )
    SPACEREMIT_TEST_MODE = _env_flag("SPACEREMIT_TEST_MODE")
    SPACEREMIT_LIVE_PUBLIC_KEY = os.getenv("SPACEREMIT_LIVE_PUBLIC_KEY", "")
    SPACEREMIT_LIVE_SECRET_KEY = os.getenv("SPACEREMIT_LIVE_SECRET_KEY", "")
    SPACEREMIT_TEST_PUBLIC_KEY = os.getenv("SPACEREMIT_TEST_PUBLIC_KEY", "")
    SPACEREMIT_TEST_SECRET_KEY = os.getenv("SPACEREMIT_TEST_SECRET_KEY", "")
    SPACEREMIT_HTTP_TIMEOUT = float(os.getenv("SPACEREMIT_HTTP_TIMEOUT", "30"))
    SPACEREMIT_CONNECT_TIMEOUT = float(os.getenv("SPACEREMIT_CONNECT_TIMEOUT", "10"))
    SPACEREMIT_MAX_RETRIES = int(os.getenv("SPACEREMIT_MAX_RETRIES", "3"))

    # Webhooks
    SPACEREMIT_WEBHOOK_SECRET = os.getenv("SPACEREMIT_WEBHOOK_SECRET", "")
    SPACEREMIT_SIGNATURE_POLICY = os.getenv("SPACEREMIT_SIGNATURE_POLICY", "optional")
    SPACEREMIT_IDEMPOTENCY_WINDOW = int(
        os.getenv("SPACEREMIT_IDEMPOTENCY_WINDOW", "300")
    )

    # Storefront pages used for browser redirects
    STORE_BASE_URL = os.getenv("STORE_BASE_URL", "http://localhost:8000").rstrip("/")

    # Admin endpoints
    ADMIN_API_KEY = os.getenv("ADMIN_API_KEY", None)


settings = Settings()
