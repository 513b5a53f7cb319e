"""Store a snapshot in the database, replacing what is there."""

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from repocredit.db.models import Actor, Contribution
from repocredit.sources.base import Snapshot


async def store_snapshot(session: AsyncSession, snapshot: Snapshot) -> tuple[int, int]:
    """Replace the stored relations with ``snapshot``.

    Returns:
        (events_written, actors_written)
    """
    await session.execute(delete(Contribution))
    await session.execute(delete(Actor))

    session.add_all(
        Actor(
            id=a.actor_id,
            country=a.country,
            sector=a.sector,
            organization=a.organization,
        )
        for a in snapshot.actors
    )
    session.add_all(
        Contribution(actor_id=e.actor_id, unit_id=e.unit_id, period=e.period)
        for e in snapshot.events
    )
    await session.commit()
    return len(snapshot.events), len(snapshot.actors)
