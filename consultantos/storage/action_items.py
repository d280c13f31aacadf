"""Action item persistence: CRUD, subtasks, completion bookkeeping."""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.errors import ActionItemNotFoundError
from consultantos.storage.models import ActionItem

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({
    "title",
    "description",
    "notes",
    "status",
    "priority",
    "owner",
    "owner_type",
    "due_date",
    "client_id",
    "session_id",
})


def _apply_status(item: ActionItem, status: str) -> None:
    """Set status and keep completed_at consistent with it."""
    if status == "completed" and item.status != "completed":
        item.completed_at = datetime.now(timezone.utc)
    elif status != "completed":
        item.completed_at = None
    item.status = status


async def get_action_item(session: AsyncSession, item_id: UUID, user_id: str) -> ActionItem:
    result = await session.execute(
        select(ActionItem).where(ActionItem.id == item_id, ActionItem.user_id == user_id)
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise ActionItemNotFoundError(f"Action item {item_id} not found")
    return item


async def create_action_item(
    session: AsyncSession,
    user_id: str,
    title: str,
    *,
    client_id: Optional[UUID] = None,
    session_id: Optional[UUID] = None,
    parent_id: Optional[UUID] = None,
    description: Optional[str] = None,
    notes: Optional[str] = None,
    status: str = "pending",
    priority: str = "medium",
    owner: Optional[str] = None,
    owner_type: str = "me",
    due_date: Optional[datetime] = None,
    source: str = "manual",
    source_context: Optional[str] = None,
) -> ActionItem:
    """Create an action item.

    Subtasks inherit their parent's client when none is given.

    Raises:
        ActionItemNotFoundError: If ``parent_id`` does not exist.
        ValueError: If the parent belongs to a different client.
    """
    if parent_id is not None:
        parent = await get_action_item(session, parent_id, user_id)
        if client_id is None:
            client_id = parent.client_id
        elif parent.client_id != client_id:
            raise ValueError("Subtask must belong to the same client as its parent")

    item = ActionItem(
        user_id=user_id,
        client_id=client_id,
        session_id=session_id,
        parent_id=parent_id,
        title=title,
        description=description,
        notes=notes,
        priority=priority,
        owner=owner,
        owner_type=owner_type,
        due_date=due_date,
        source=source,
        source_context=source_context,
    )
    item.status = "pending"
    item.completed_at = None
    _apply_status(item, status)
    session.add(item)
    await session.flush()
    logger.debug("Created action item %s (%s)", item.id, source)
    return item


async def list_action_items(
    session: AsyncSession,
    user_id: str,
    client_id: Optional[UUID] = None,
    status: Optional[str] = None,
    session_id: Optional[UUID] = None,
    parent_id: Optional[UUID] = None,
    top_level_only: bool = False,
    overdue: bool = False,
    limit: Optional[int] = None,
) -> list[ActionItem]:
    """List a user's action items, newest first.

    ``overdue`` restricts to open items whose due date has passed, ordered
    by due date instead.
    """
    query = select(ActionItem).where(ActionItem.user_id == user_id)
    if overdue:
        query = query.where(
            ActionItem.status != "completed",
            ActionItem.due_date < datetime.now(timezone.utc),
        )
    if client_id is not None:
        query = query.where(ActionItem.client_id == client_id)
    if status:
        query = query.where(ActionItem.status == status)
    if session_id is not None:
        query = query.where(ActionItem.session_id == session_id)
    if parent_id is not None:
        query = query.where(ActionItem.parent_id == parent_id)
    elif top_level_only:
        query = query.where(ActionItem.parent_id.is_(None))
    if overdue:
        query = query.order_by(ActionItem.due_date.asc())
    else:
        query = query.order_by(ActionItem.created_at.desc())
    if limit:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def _move_subtasks(session: AsyncSession, parent_id: UUID, user_id: str, client_id: Optional[UUID]) -> None:
    result = await session.execute(
        select(ActionItem).where(ActionItem.parent_id == parent_id, ActionItem.user_id == user_id)
    )
    for subtask in result.scalars().all():
        subtask.client_id = client_id
        await _move_subtasks(session, subtask.id, user_id, client_id)


async def update_action_item(
    session: AsyncSession,
    item_id: UUID,
    user_id: str,
    **fields,
) -> ActionItem:
    """Apply a partial update. Unknown field names raise ValueError.

    Moving a top-level item to another client moves its subtasks with it.
    A subtask cannot be moved away from its parent's client.
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    item = await get_action_item(session, item_id, user_id)
    moving = "client_id" in fields and fields["client_id"] != item.client_id
    if moving and item.parent_id is not None:
        parent = await get_action_item(session, item.parent_id, user_id)
        if parent.client_id != fields["client_id"]:
            raise ValueError("Subtask must belong to the same client as its parent")

    status = fields.pop("status", None)
    for name, value in fields.items():
        setattr(item, name, value)
    if status is not None:
        _apply_status(item, status)
    if moving:
        await _move_subtasks(session, item.id, user_id, item.client_id)
    await session.flush()
    return item


async def delete_action_item(session: AsyncSession, item_id: UUID, user_id: str) -> None:
    """Delete an action item and, by cascade, its subtasks."""
    result = await session.execute(
        delete(ActionItem).where(ActionItem.id == item_id, ActionItem.user_id == user_id)
    )
    if result.rowcount == 0:
        raise ActionItemNotFoundError(f"Action item {item_id} not found")
