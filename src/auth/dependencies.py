from uuid import UUID
from fastapi import Request

from src.config import settings
from src.live.query import require_tenant_id


async def require_tenant(request: Request) -> UUID:
    """Business id supplied by the session/profile layer.

    Authentication is handled upstream; this only fails fast when the id is
    missing or malformed.
    """
    return require_tenant_id(request.headers.get(settings.TENANT_HEADER))
