from typing import Any, Dict, Optional

from fastapi import Depends, Request

from error_handler import Unauthorized
from services.auth_service import auth_service
from services.database_service import DatabaseService, get_database_service


def extract_bearer_token(auth_header: Optional[str]) -> str:
    if not auth_header:
        raise Unauthorized("token missing")
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != 'bearer':
        raise Unauthorized("invalid authorization scheme")
    return parts[1]


async def authenticate(auth_header: Optional[str], database: DatabaseService) -> Dict[str, Any]:
    token = extract_bearer_token(auth_header)
    user = await auth_service.resolve_user(token, database)
    if not user:
        raise Unauthorized("token invalid")
    return user


async def require_auth(
    request: Request,
    database: DatabaseService = Depends(get_database_service)
) -> Dict[str, Any]:
    """Resolve the Authorization header to the user document that owns the token."""
    user = await authenticate(request.headers.get('Authorization'), database)
    request.state.user = user
    return user
