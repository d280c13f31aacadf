"""Staged inbound emails (the email inbox)."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.errors import EmailNotFoundError
from consultantos.processing.sanitizer import sanitize
from consultantos.storage.models import InboundEmail

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"subject", "status", "client_id"})


async def create_email(
    session: AsyncSession,
    user_id: str,
    from_email: str,
    subject: Optional[str] = None,
    body_text: Optional[str] = None,
    body_html: Optional[str] = None,
    from_name: Optional[str] = None,
    to_email: Optional[str] = None,
    message_id: Optional[str] = None,
    attachments: Optional[list[dict]] = None,
) -> InboundEmail:
    email = InboundEmail(
        user_id=user_id,
        from_email=from_email,
        from_name=from_name,
        to_email=to_email,
        subject=sanitize(subject) if subject else None,
        body_text=sanitize(body_text) if body_text else None,
        body_html=sanitize(body_html) if body_html else None,
        message_id=message_id,
        attachments=attachments or [],
        status="inbox",
    )
    session.add(email)
    await session.flush()
    logger.info("Staged email %s from %s (%d attachments)", email.id, from_email, len(email.attachments))
    return email


async def get_email(session: AsyncSession, email_id: UUID, user_id: str) -> InboundEmail:
    result = await session.execute(
        select(InboundEmail).where(InboundEmail.id == email_id, InboundEmail.user_id == user_id)
    )
    email = result.scalar_one_or_none()
    if email is None:
        raise EmailNotFoundError(f"Email {email_id} not found")
    return email


async def list_emails(
    session: AsyncSession,
    user_id: str,
    status: Optional[str] = None,
    client_id: Optional[UUID] = None,
) -> list[InboundEmail]:
    query = select(InboundEmail).where(InboundEmail.user_id == user_id)
    if status:
        query = query.where(InboundEmail.status == status)
    if client_id is not None:
        query = query.where(InboundEmail.client_id == client_id)
    result = await session.execute(query.order_by(InboundEmail.created_at.desc()))
    return list(result.scalars().all())


async def update_email(session: AsyncSession, email_id: UUID, user_id: str, **fields) -> InboundEmail:
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    email = await get_email(session, email_id, user_id)
    for name, value in fields.items():
        setattr(email, name, value)
    await session.flush()
    return email


async def delete_email(session: AsyncSession, email_id: UUID, user_id: str) -> None:
    result = await session.execute(
        delete(InboundEmail).where(InboundEmail.id == email_id, InboundEmail.user_id == user_id)
    )
    if result.rowcount == 0:
        raise EmailNotFoundError(f"Email {email_id} not found")
