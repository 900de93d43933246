import hmac
from typing import Optional

from fastapi import Security
from fastapi.security import APIKeyHeader

from src.config.settings import settings
from src.shared.exceptions import ServiceUnavailableException, UnauthorizedException

admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


async def require_admin_key(
    api_key: Optional[str] = Security(admin_key_header),
) -> None:
    """Guard for the admin endpoints; the key comes from ADMIN_API_KEY."""
    expected = settings.ADMIN_API_KEY
    if not expected:
        raise ServiceUnavailableException("Admin API is not configured")

    if not api_key or not hmac.compare_digest(api_key.encode(), expected.encode()):
        raise UnauthorizedException("Invalid admin API key")
