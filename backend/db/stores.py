"""Storage abstractions used by the token lifecycle and the metrics service.

Services receive a store instead of reaching for a global session, so tests
can swap in an in-memory implementation of the same protocol.
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models.meal import Meal
from db.models.refresh_token import RefreshToken


class TokenStore(Protocol):
    def transaction(self) -> AsyncIterator["TokenStore"]:
        """Async context manager: commit on success, roll back on error."""
        ...

    async def find_by_value(self, value: str) -> Optional[RefreshToken]:
        ...

    async def insert(self, user_id: str, value: str, expires_at: datetime) -> RefreshToken:
        ...

    async def mark_revoked(self, token_id: str) -> bool:
        """Flip ``revoked`` to true only if it is still false.

        Returns True when this call did the flip. Two callers racing on the
        same token see exactly one True.
        """
        ...

    async def revoke_all_for_user(self, user_id: str) -> int:
        ...


class MealStore(Protocol):
    async def list_diet_flags(self, user_id: str) -> List[bool]:
        """``is_on_diet`` of every meal of the user, oldest meal first."""
        ...


class SqlTokenStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def transaction(self):
        try:
            yield self
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def find_by_value(self, value: str) -> Optional[RefreshToken]:
        result = await self.session.execute(
            select(RefreshToken)
            .where(RefreshToken.token == value)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def insert(self, user_id: str, value: str, expires_at: datetime) -> RefreshToken:
        token = RefreshToken(user_id=user_id, token=value, expires_at=expires_at, revoked=False)
        self.session.add(token)
        await self.session.flush()
        return token

    async def mark_revoked(self, token_id: str) -> bool:
        result = await self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def revoke_all_for_user(self, user_id: str) -> int:
        result = await self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


class SqlMealStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_diet_flags(self, user_id: str) -> List[bool]:
        result = await self.session.execute(
            select(Meal.is_on_diet)
            .where(Meal.user_id == user_id)
            .order_by(Meal.datetime.asc(), Meal.created_at.asc())
        )
        return [bool(flag) for flag in result.scalars().all()]
