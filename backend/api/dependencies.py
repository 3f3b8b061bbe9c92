from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from core.errors import AuthError
from db.models.user import User as UserModel
from db.session import get_db_session
from db.stores import SqlMealStore, SqlTokenStore
from services.token_service import TokenService
from services.user_service import get_user_by_id
from utils.logging_config import user_id_var
import logging

logger = logging.getLogger(__name__)

# auto_error=False so a missing header goes through the same AUTH_ERROR envelope
bearer_scheme = HTTPBearer(auto_error=False)

def get_token_service(db: AsyncSession = Depends(get_db_session)) -> TokenService:
    return TokenService(SqlTokenStore(db))

def get_meal_store(db: AsyncSession = Depends(get_db_session)) -> SqlMealStore:
    return SqlMealStore(db)

async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
    token_service: TokenService = Depends(get_token_service),
) -> UserModel:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        logger.warning(f"No bearer token provided for {request.url.path}")
        raise AuthError("authentication required")

    user_id = token_service.verify_access(credentials.credentials)
    user = await get_user_by_id(user_id, db)
    if user is None:
        logger.warning(f"User not found for token: {user_id}")
        raise AuthError("user not found")

    user_id_var.set(user.id)
    return user
