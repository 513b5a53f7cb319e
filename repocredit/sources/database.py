"""Snapshot relations read from the SQLAlchemy store."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from repocredit.db.models import Actor, Contribution
from repocredit.sources.base import DataSource
from repocredit.sources.registry import register


@register("database")
class DatabaseSource(DataSource):
    source_name = "database"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        if session_factory is None:
            from repocredit.db.session import async_session

            session_factory = async_session
        self.session_factory = session_factory

    async def fetch_events(self) -> list[dict]:
        async with self.session_factory() as session:
            result = await session.execute(select(Contribution).order_by(Contribution.id))
            return [
                {"actor_id": c.actor_id, "unit_id": c.unit_id, "period": c.period}
                for c in result.scalars().all()
            ]

    async def fetch_actors(self) -> list[dict]:
        async with self.session_factory() as session:
            result = await session.execute(select(Actor).order_by(Actor.id))
            return [
                {
                    "actor_id": a.id,
                    "country": a.country,
                    "sector": a.sector,
                    "organization": a.organization,
                }
                for a in result.scalars().all()
            ]
