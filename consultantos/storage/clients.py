"""Client and consulting-session records."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.errors import ClientNotFoundError, NotFoundError
from consultantos.storage.models import Client, ConsultingSession

logger = logging.getLogger(__name__)


async def create_client(
    session: AsyncSession,
    user_id: str,
    name: str,
    company: Optional[str] = None,
    industry: Optional[str] = None,
) -> Client:
    client = Client(user_id=user_id, name=name, company=company, industry=industry, status="active")
    session.add(client)
    await session.flush()
    logger.info("Created client %s (%s)", client.id, name)
    return client


async def get_client(session: AsyncSession, client_id: UUID, user_id: str) -> Client:
    result = await session.execute(
        select(Client).where(Client.id == client_id, Client.user_id == user_id)
    )
    client = result.scalar_one_or_none()
    if client is None:
        raise ClientNotFoundError(f"Client {client_id} not found")
    return client


async def list_clients(session: AsyncSession, user_id: str, status: Optional[str] = None) -> list[Client]:
    query = select(Client).where(Client.user_id == user_id)
    if status:
        query = query.where(Client.status == status)
    result = await session.execute(query.order_by(Client.name))
    return list(result.scalars().all())


async def create_historic_session(
    session: AsyncSession,
    user_id: str,
    client_id: UUID,
    title: str,
    session_date: Optional[datetime] = None,
    duration_minutes: Optional[int] = None,
    transcript: Optional[str] = None,
    notes: Optional[str] = None,
) -> ConsultingSession:
    """Record a consulting session that already took place."""
    session_date = session_date or datetime.now(timezone.utc)
    duration = duration_minutes * 60 if duration_minutes else None
    ended_at = session_date + timedelta(seconds=duration) if duration else session_date

    consulting_session = ConsultingSession(
        user_id=user_id,
        client_id=client_id,
        title=title,
        status="completed",
        is_historic=True,
        session_date=session_date,
        started_at=session_date,
        ended_at=ended_at,
        duration=duration,
        transcript=transcript,
        notes=notes,
    )
    session.add(consulting_session)
    await session.flush()
    logger.info("Created historic session %s for client %s", consulting_session.id, client_id)
    return consulting_session


async def get_consulting_session(
    session: AsyncSession, consulting_session_id: UUID, user_id: str
) -> ConsultingSession:
    result = await session.execute(
        select(ConsultingSession).where(
            ConsultingSession.id == consulting_session_id,
            ConsultingSession.user_id == user_id,
        )
    )
    found = result.scalar_one_or_none()
    if found is None:
        raise NotFoundError(f"Session {consulting_session_id} not found")
    return found
