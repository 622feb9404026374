"""Logical port allocation.

Each instance gets a unique integer slot. It is bookkeeping only and is never
bound on any host.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clawhost.models import Instance


async def allocate_port(session: AsyncSession, start: int) -> int:
    """Return the next free port: one above the highest allocated, at least `start`.

    The unique constraint on Instance.port rejects a concurrent duplicate.
    """
    result = await session.execute(select(func.max(Instance.port)))
    highest = result.scalar_one_or_none()
    if highest is None or highest < start:
        return start
    return highest + 1
