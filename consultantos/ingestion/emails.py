"""Turn a staged email into client sources: the body and each stored attachment."""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.ingestion.pipeline import ingest_source
from consultantos.storage.clients import get_client
from consultantos.storage.emails import get_email
from consultantos.storage.models import InboundEmail, Source

logger = logging.getLogger(__name__)


def _file_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    return content_type.split("/", 1)[-1]


def _email_metadata(email: InboundEmail) -> dict:
    return {
        "emailId": str(email.id),
        "from": email.from_email,
        "subject": email.subject,
        "date": email.created_at.isoformat() if email.created_at else None,
        "contentType": "email",
    }


async def add_email_to_sources(
    session: AsyncSession,
    email_id: UUID,
    user_id: str,
    client_id: UUID,
) -> dict:
    """Add a staged email and its attachments to a client's sources.

    The body becomes an ``other`` source carrying sender, subject and date in
    its metadata. Every attachment that was stored (has a ``blobUrl``) becomes
    a ``document`` source. All of them are claimed and queued for processing,
    and the email is marked processed.

    Raises:
        EmailNotFoundError: If the email does not exist for this user.
        ClientNotFoundError: If the client does not exist for this user.
        ValueError: If the email was already added to sources.
    """
    email = await get_email(session, email_id, user_id)
    if email.status == "processed":
        raise ValueError(f"Email {email_id} was already added to sources")
    await get_client(session, client_id, user_id)

    sources: list[Source] = [
        await ingest_source(
            session,
            user_id,
            client_id,
            "other",
            email.subject or f"Email from {email.from_email}",
            email.body_text or "",
            metadata=_email_metadata(email),
        )
    ]

    for attachment in email.attachments or []:
        if not attachment.get("blobUrl"):
            logger.debug("Skipping unstored attachment %s on email %s", attachment.get("filename"), email_id)
            continue
        sources.append(
            await ingest_source(
                session,
                user_id,
                client_id,
                "document",
                attachment.get("filename") or "Email attachment",
                attachment.get("text"),
                metadata={"emailId": str(email.id), "attachmentId": attachment.get("id")},
                blob_url=attachment["blobUrl"],
                original_filename=attachment.get("filename"),
                file_type=_file_type(attachment.get("contentType")),
                file_size=attachment.get("size"),
            )
        )

    email.client_id = client_id
    email.status = "processed"
    email.processed_at = datetime.now(timezone.utc)

    await session.flush()
    logger.info("Added email %s to sources for client %s (%d sources queued)", email_id, client_id, len(sources))
    return {"email": email, "sources": sources}
