from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db_session
from app.exceptions import UnauthorizedError
from app.logging_config import get_logger
from app.store.interface import EntityStore
from app.store.sqlalchemy_store import SqlAlchemyEntityStore
from app.utils.jwt import decode_access_token, user_id_from_claims

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Alias kept for route signatures
get_db = get_db_session


async def get_store(db: AsyncSession = Depends(get_db)) -> EntityStore:
    return SqlAlchemyEntityStore(db)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Resolve the acting user's id from the bearer token."""
    if credentials is None:
        raise UnauthorizedError("Missing bearer token")

    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise UnauthorizedError("Invalid token")

    user_id = user_id_from_claims(payload)
    if not user_id:
        raise UnauthorizedError("Token carries no user id")
    return user_id
