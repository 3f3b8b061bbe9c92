from datetime import datetime, timedelta
from typing import Callable, Optional
import logging

from core.config import settings
from core.errors import AuthError
from core.security import create_access_token, decode_access_token, generate_refresh_token, utcnow
from db.stores import TokenStore
from utils.timing import timeit

logger = logging.getLogger(__name__)


class TokenService:
    """Issues, rotates and revokes refresh tokens.

    Refresh tokens are single use. Presenting one that was already rotated
    (or revoked any other way) is treated as a theft signal: every live token
    of that user is revoked, not only the ones in the same chain.
    """

    def __init__(
        self,
        store: TokenStore,
        access_ttl: Optional[timedelta] = None,
        refresh_ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.access_ttl = access_ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_ttl = refresh_ttl or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self.clock = clock

    def _token_pair(self, user_id: str, refresh_value: str) -> dict:
        return {
            "access_token": create_access_token(user_id, expires_delta=self.access_ttl),
            "refresh_token": refresh_value,
            "token_type": "bearer",
            "expires_in": int(self.access_ttl.total_seconds()),
        }

    async def _create_refresh_token(self, user_id: str) -> str:
        value = generate_refresh_token()
        await self.store.insert(user_id, value, self.clock() + self.refresh_ttl)
        return value

    async def issue(self, user_id: str) -> dict:
        async with self.store.transaction():
            value = await self._create_refresh_token(user_id)
        logger.info(f"Issued refresh token for user {user_id}")
        return self._token_pair(user_id, value)

    @timeit("rotate_refresh_token")
    async def rotate(self, presented_value: str) -> dict:
        failure = None
        async with self.store.transaction():
            token = await self.store.find_by_value(presented_value)
            if token is None:
                failure = "invalid refresh token"
                logger.warning("Refresh token not found")
            elif token.revoked:
                failure = "invalid refresh token"
                revoked = await self.store.revoke_all_for_user(token.user_id)
                logger.warning(
                    f"Revoked refresh token presented again for user {token.user_id}; "
                    f"possible token reuse, revoked {revoked} active token(s)"
                )
            elif self.clock() > token.expires_at:
                failure = "refresh token expired"
                await self.store.mark_revoked(token.id)
                logger.warning(f"Expired refresh token presented for user {token.user_id}")
            elif not await self.store.mark_revoked(token.id):
                # another request rotated this token between our read and our write
                failure = "invalid refresh token"
                revoked = await self.store.revoke_all_for_user(token.user_id)
                logger.warning(
                    f"Concurrent rotation of the same refresh token for user {token.user_id}; "
                    f"revoked {revoked} active token(s)"
                )
            else:
                user_id = token.user_id
                value = await self._create_refresh_token(user_id)

        if failure is not None:
            raise AuthError(failure)
        logger.info(f"Refresh token rotated for user {user_id}")
        return self._token_pair(user_id, value)

    async def revoke(self, user_id: str, token_value: Optional[str] = None) -> int:
        """Revoke one token of ``user_id``, or all of them when no value is given.

        A value that is unknown, already revoked or owned by someone else is
        ignored. Returns how many tokens were flipped to revoked.
        """
        async with self.store.transaction():
            if token_value is None:
                count = await self.store.revoke_all_for_user(user_id)
            else:
                token = await self.store.find_by_value(token_value)
                if token is None or token.user_id != user_id:
                    count = 0
                else:
                    count = 1 if await self.store.mark_revoked(token.id) else 0
        logger.info(f"Logout for user {user_id}: revoked {count} refresh token(s)")
        return count

    def verify_access(self, access_token: str) -> str:
        payload = decode_access_token(access_token)
        return str(payload["sub"])
