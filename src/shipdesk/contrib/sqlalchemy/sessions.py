"""Session lookup against the auth service's session table."""

from __future__ import annotations

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shipdesk.clock import SystemClock
from shipdesk.contrib.sqlalchemy.models import SessionModel, UserModel
from shipdesk.protocols import Clock, SessionUser

BEARER_PREFIX = "bearer "


class SQLAlchemySessionResolver:
    """Resolve the request's session cookie (or bearer token) to a user.

    Expired or unknown sessions resolve to ``None``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        cookie_name: str = "session_token",
        clock: Clock | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.cookie_name = cookie_name
        self.clock = clock or SystemClock()

    def _token_from(self, request: Request) -> str | None:
        token = request.cookies.get(self.cookie_name)
        if token:
            return token
        authorization = request.headers.get("authorization", "")
        if authorization.lower().startswith(BEARER_PREFIX):
            return authorization[len(BEARER_PREFIX) :].strip() or None
        return None

    async def resolve(self, request: Request) -> SessionUser | None:
        token = self._token_from(request)
        if token is None:
            return None

        async with self.session_factory() as session:
            result = await session.execute(
                select(UserModel)
                .join(SessionModel, SessionModel.user_id == UserModel.id)
                .where(
                    SessionModel.token == token,
                    SessionModel.expires_at > self.clock.now(),
                )
            )
            user = result.scalar_one_or_none()
        if user is None:
            return None
        return SessionUser(id=user.id, name=user.name, email=user.email)
