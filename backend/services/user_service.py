from schemas.user_schema import UserCreate
from db.models.user import User as UserModel
from core.errors import AppError, AuthError
from core.security import get_password_hash, verify_password
from services.token_service import TokenService
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from utils.db import safe_commit
from utils.timing import timeit
import logging

logger = logging.getLogger(__name__)

async def get_user_by_email(email: str, db: AsyncSession) -> Optional[UserModel]:
    result = await db.execute(select(UserModel).where(UserModel.email == email))
    return result.scalars().first()

async def get_user_by_id(user_id: str, db: AsyncSession) -> Optional[UserModel]:
    result = await db.execute(select(UserModel).where(UserModel.id == user_id))
    return result.scalars().first()

@timeit("create_user")
async def create_user(user: UserCreate, db: AsyncSession) -> UserModel:
    """Register a new user; emails are unique"""
    if await get_user_by_email(user.email, db) is not None:
        logger.warning(f"Signup rejected, email already exists: {user.email}")
        raise AppError.conflict("Email already exists")

    new_user = UserModel(
        name=user.name,
        email=user.email,
        password_hash=get_password_hash(user.password),
    )
    db.add(new_user)
    # a concurrent signup with the same email surfaces here as a conflict
    await safe_commit(db, conflict_message="Email already exists")
    logger.info(f"User created successfully: {new_user.id}")
    return new_user

async def authenticate_user(email: str, password: str, db: AsyncSession) -> UserModel:
    user = await get_user_by_email(email, db)
    if user is None:
        logger.warning(f"Login failed - user not found: {email}")
        raise AuthError("invalid email or password")
    if not verify_password(password, user.password_hash):
        logger.warning(f"Login failed - invalid password: {email}")
        raise AuthError("invalid email or password")
    return user

@timeit("login_user")
async def login_user(email: str, password: str, db: AsyncSession, token_service: TokenService) -> dict:
    """Check credentials and start a new session (token chain)"""
    user = await authenticate_user(email, password, db)
    tokens = await token_service.issue(user.id)
    logger.info(f"Login successful: {user.id}")
    return tokens
