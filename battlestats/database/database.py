from typing import Any, Dict, Iterable, List, Optional, Tuple
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from contextlib import asynccontextmanager

from battlestats.config import Config
from battlestats.database.models import Base, BattleReport
from battlestats.operations.event_extractor import record_index_fields
from battlestats.utils.logger import setup_logger

class Database:
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url
        self.engine = None
        self.async_session = None

    async def initialize(self):
        """Create the engine and session factory, then create missing tables"""
        database_url = self.database_url or Config.get_async_database_url()

        engine_options = {'echo': Config.DEBUG, 'future': True}
        if database_url in ('sqlite+aiosqlite://', 'sqlite+aiosqlite:///:memory:'):
            # One shared connection, otherwise every session sees its own empty database
            engine_options['poolclass'] = StaticPool

        self.engine = create_async_engine(database_url, **engine_options)
        self.logger.info(f"Opening battle report store at {self.engine.url.render_as_string(hide_password=True)}")

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Battle report store ready")

    @asynccontextmanager
    async def _session_scope(self, commit: bool):
        if self.async_session is None:
            raise RuntimeError("Database.initialize() must be awaited before opening sessions")
        async with self.async_session() as session:
            try:
                yield session
                if commit:
                    await session.commit()
            except Exception:
                await session.rollback()
                raise

    def get_session(self):
        """Session for reads; nothing is committed."""
        return self._session_scope(commit=False)

    def transaction(self):
        """
        Session whose writes commit together on success and roll back
        together when an exception leaves the block.
        """
        return self._session_scope(commit=True)

    @staticmethod
    def _build_report(payload: Dict[str, Any], parent_hash: Optional[str]) -> BattleReport:
        return BattleReport(
            parent_hash=parent_hash,
            payload=payload,
            **record_index_fields(payload)
        )

    async def add_report(self, payload: Dict[str, Any], parent_hash: Optional[str] = None) -> BattleReport:
        """
        Store one raw record.

        Raises:
            InvalidParameterError: If the payload has no recognizable shape or governor id
        """
        report = self._build_report(payload, parent_hash)
        async with self.transaction() as session:
            session.add(report)
            await session.flush()
        self.logger.debug(f"Stored battle report {report.id} for governor {report.governor_id}")
        return report

    async def add_reports(self, records: Iterable[Tuple[Dict[str, Any], Optional[str]]]) -> List[BattleReport]:
        """Store several (payload, parent_hash) records in one transaction."""
        reports = [self._build_report(payload, parent_hash) for payload, parent_hash in records]
        async with self.transaction() as session:
            session.add_all(reports)
            await session.flush()
        self.logger.info(f"Stored {len(reports)} battle reports")
        return reports

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
