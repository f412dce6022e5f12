"""
Base service class for the statistics engine.

Services only read from the record store, so their session scope never
commits. Store failures are not retried; they propagate to the caller.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession

from battlestats.utils.exceptions import InvalidParameterError

class BaseService:
    """Base class for all services with async database session management."""

    def __init__(self, session_factory):
        """
        Initialize base service with session factory.

        Args:
            session_factory: Async session factory from Database class
        """
        self.session_factory = session_factory

    @staticmethod
    def validate_governor_id(governor_id: int) -> None:
        """Raise before any query when the governor id is not a positive int."""
        if not isinstance(governor_id, int) or isinstance(governor_id, bool) or governor_id <= 0:
            raise InvalidParameterError("governorId", "must be a positive integer")

    @asynccontextmanager
    async def read_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session for one read; whatever it touched is rolled back on exit."""
        async with self.session_factory() as session:
            try:
                yield session
            finally:
                await session.rollback()

