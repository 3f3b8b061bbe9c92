"""
Tests for refresh token issuing, rotation, reuse detection and revocation.
"""
import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from core.errors import AuthError
from core.security import create_access_token
from db.models.refresh_token import RefreshToken
from db.models.user import User as UserModel
from db.stores import SqlTokenStore
from services.token_service import TokenService


@pytest.mark.unit
@pytest.mark.auth
class TestTokenServiceInMemory:
    async def test_issue_creates_one_active_token(self, token_store):
        service = TokenService(token_store)
        pair = await service.issue("user-1")

        assert pair["token_type"] == "bearer"
        assert pair["expires_in"] == 15 * 60
        assert [t.token for t in token_store.active_for("user-1")] == [pair["refresh_token"]]
        assert service.verify_access(pair["access_token"]) == "user-1"

    async def test_issue_uses_configured_refresh_ttl(self, token_store, clock):
        service = TokenService(token_store, clock=clock)
        pair = await service.issue("user-1")
        assert token_store.tokens[pair["refresh_token"]].expires_at == clock.now + timedelta(days=7)

    async def test_rotate_returns_new_value_and_revokes_old(self, token_store):
        service = TokenService(token_store)
        first = await service.issue("user-1")
        second = await service.rotate(first["refresh_token"])

        assert second["refresh_token"] != first["refresh_token"]
        assert token_store.tokens[first["refresh_token"]].revoked is True
        assert token_store.tokens[second["refresh_token"]].revoked is False

    async def test_unknown_token_is_rejected(self, token_store):
        service = TokenService(token_store)
        with pytest.raises(AuthError) as exc_info:
            await service.rotate("does-not-exist")
        assert exc_info.value.reason == "invalid refresh token"
        assert exc_info.value.message == "Authentication failed"

    async def test_reuse_revokes_every_token_of_the_user(self, token_store):
        service = TokenService(token_store)
        laptop = await service.issue("user-1")
        phone = await service.issue("user-1")
        other_user = await service.issue("user-2")

        await service.rotate(laptop["refresh_token"])
        with pytest.raises(AuthError):
            await service.rotate(laptop["refresh_token"])

        assert token_store.active_for("user-1") == []
        assert token_store.tokens[phone["refresh_token"]].revoked is True
        assert token_store.tokens[other_user["refresh_token"]].revoked is False

    async def test_expired_token_is_rejected_and_revoked(self, token_store, clock):
        service = TokenService(token_store, clock=clock)
        pair = await service.issue("user-1")
        clock.advance(timedelta(days=7, seconds=1))

        with pytest.raises(AuthError) as exc_info:
            await service.rotate(pair["refresh_token"])
        assert exc_info.value.reason == "refresh token expired"
        assert token_store.tokens[pair["refresh_token"]].revoked is True

    async def test_revoke_all(self, token_store):
        service = TokenService(token_store)
        for _ in range(3):
            await service.issue("user-1")
        assert await service.revoke("user-1") == 3
        assert token_store.active_for("user-1") == []
        assert await service.revoke("user-1") == 0

    async def test_revoke_single_keeps_sibling(self, token_store):
        service = TokenService(token_store)
        first = await service.issue("user-1")
        sibling = await service.issue("user-1")

        assert await service.revoke("user-1", first["refresh_token"]) == 1
        assert token_store.tokens[first["refresh_token"]].revoked is True
        assert token_store.tokens[sibling["refresh_token"]].revoked is False

    async def test_revoke_ignores_tokens_of_other_users(self, token_store):
        service = TokenService(token_store)
        victim = await service.issue("user-1")
        assert await service.revoke("user-2", victim["refresh_token"]) == 0
        assert token_store.tokens[victim["refresh_token"]].revoked is False

    async def test_concurrent_rotation_has_one_winner(self, token_store):
        service = TokenService(token_store)
        pair = await service.issue("user-1")

        results = await asyncio.gather(
            service.rotate(pair["refresh_token"]),
            service.rotate(pair["refresh_token"]),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, AuthError)]
        successes = [r for r in results if isinstance(r, dict)]
        assert len(successes) == 1
        assert len(failures) == 1

    def test_verify_access_rejects_expired_and_garbage(self, token_store):
        service = TokenService(token_store)
        expired = create_access_token("user-1", expires_delta=timedelta(seconds=-5))

        with pytest.raises(AuthError) as exc_info:
            service.verify_access(expired)
        assert exc_info.value.reason == "access token expired"

        with pytest.raises(AuthError) as exc_info:
            service.verify_access("not-a-jwt")
        assert exc_info.value.reason == "invalid access token"


@pytest.mark.database
@pytest.mark.auth
class TestTokenServiceSql:
    async def _create_user(self, session) -> str:
        user = UserModel(name="Ana Lima", email="ana@example.com", password_hash="x")
        session.add(user)
        await session.commit()
        return user.id

    async def _active_tokens(self, session_factory, user_id):
        async with session_factory() as session:
            result = await session.execute(
                select(RefreshToken).where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            )
            return result.scalars().all()

    async def test_login_then_rotate_then_reuse(self, session_factory):
        async with session_factory() as session:
            user_id = await self._create_user(session)
            service = TokenService(SqlTokenStore(session))
            token_a = await service.issue(user_id)
            token_c = await service.issue(user_id)  # second device
            token_b = await service.rotate(token_a["refresh_token"])
            assert token_b["refresh_token"] != token_a["refresh_token"]

            with pytest.raises(AuthError):
                await service.rotate(token_a["refresh_token"])

        assert await self._active_tokens(session_factory, user_id) == []
        async with session_factory() as session:
            service = TokenService(SqlTokenStore(session))
            for stale in (token_b, token_c):
                with pytest.raises(AuthError):
                    await service.rotate(stale["refresh_token"])

    async def test_expired_token_is_revoked_in_database(self, session_factory, clock):
        async with session_factory() as session:
            user_id = await self._create_user(session)
            service = TokenService(SqlTokenStore(session), clock=clock)
            pair = await service.issue(user_id)
            clock.advance(timedelta(days=8))
            with pytest.raises(AuthError):
                await service.rotate(pair["refresh_token"])

        assert await self._active_tokens(session_factory, user_id) == []

    async def test_concurrent_rotation_on_separate_sessions(self, session_factory):
        async with session_factory() as session:
            user_id = await self._create_user(session)
            pair = await TokenService(SqlTokenStore(session)).issue(user_id)

        async def rotate_in_own_session():
            async with session_factory() as session:
                return await TokenService(SqlTokenStore(session)).rotate(pair["refresh_token"])

        results = await asyncio.gather(rotate_in_own_session(), rotate_in_own_session(), return_exceptions=True)
        successes = [r for r in results if isinstance(r, dict)]
        failures = [r for r in results if isinstance(r, AuthError)]
        assert len(successes) == 1
        assert len(failures) == 1
        # the loser is treated as reuse, so the winner's new token is revoked too
        assert await self._active_tokens(session_factory, user_id) == []

    async def test_logout_single_token(self, session_factory):
        async with session_factory() as session:
            user_id = await self._create_user(session)
            service = TokenService(SqlTokenStore(session))
            first = await service.issue(user_id)
            second = await service.issue(user_id)
            assert await service.revoke(user_id, first["refresh_token"]) == 1

        active = await self._active_tokens(session_factory, user_id)
        assert [t.token for t in active] == [second["refresh_token"]]
