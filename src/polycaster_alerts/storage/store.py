"""Database-backed alert store used by the alert checker."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from polycaster_alerts.storage.repos import AlertRepository, UserRepository

if TYPE_CHECKING:
    from polycaster_alerts.alerts.models import OwnerContact, PriceAlert

logger = logging.getLogger(__name__)


def to_async_url(url: str) -> str:
    """Rewrite a plain PostgreSQL URL to use the asyncpg driver."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://") :]
    return url


def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given database URL."""
    return create_async_engine(to_async_url(url), echo=echo, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory whose objects stay readable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False)


class SqlAlertStore:
    """Alert store that runs each operation in its own transaction.

    Wraps ``AlertRepository`` and ``UserRepository`` behind the narrow
    interface the alert checker consumes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the store.

        Args:
            session_factory: Factory producing async sessions.
        """
        self._session_factory = session_factory

    async def list_active(self) -> list[PriceAlert]:
        """Return every active alert."""
        async with self._session_factory() as session:
            return await AlertRepository(session).list_active()

    async def update(self, alert_id: str, **changes: Any) -> PriceAlert | None:
        """Apply and commit a partial update to an alert."""
        async with self._session_factory() as session, session.begin():
            return await AlertRepository(session).update(alert_id, **changes)

    async def get_owner_contact(self, owner_wallet: str) -> OwnerContact | None:
        """Return the owner's notification contact, or None if unknown."""
        async with self._session_factory() as session:
            user = await UserRepository(session).get_by_wallet(owner_wallet)
        return user.to_contact() if user else None
