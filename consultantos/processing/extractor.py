"""Session insights and action-item extraction using Claude."""

import logging
import re
from datetime import date, datetime, timezone
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.processing.llm import complete_json
from consultantos.storage.action_items import create_action_item
from consultantos.storage.models import ConsultingSession

logger = logging.getLogger(__name__)

INSIGHTS_PROMPT_VERSION = "v1.0"
TODOS_PROMPT_VERSION = "v1.0"

TODO_RULES = """Rules:
1. Look for explicit commitments: "I'll do X", "We need to", "Action item:", "TODO:", "Can you"
2. Look for implicit tasks: questions that need answers, requests, follow-ups mentioned
3. Identify who is responsible: "me" (the consultant) or "client"
4. Detect urgency cues: "ASAP", "urgent", "by Friday", "immediately" mean high or urgent
5. Convert mentioned deadlines to ISO dates (assume the current year if not specified)
6. Include the exact quote where the task was mentioned as sourceContext
7. Make titles actionable and clear, starting with a verb when possible
8. Don't create duplicate tasks for the same thing mentioned multiple times
9. If someone says "I'll send you X", that is their task, not the listener's"""

ACTION_ITEM_FIELDS = """{title, description (optional), ownerType ("me" or "client"), owner (person's name, optional),
priority ("low"/"medium"/"high"/"urgent"), dueDate (ISO date or null), sourceContext (exact quote)}"""

INSIGHTS_SYSTEM = f"""You are an expert consultant assistant analyzing a consulting session transcript.

Return ONLY valid JSON with these fields:
- summary: 2-3 sentence summary of the session
- actionItems: [{ACTION_ITEM_FIELDS}]
- nextSteps: [{{title, description, timeframe (optional), owner ("me"/"client"/"both"), substeps ([strings], optional)}}]
  Larger initiatives, phases or multi-step plans discussed.
- decisions: [{{decision, context (optional), implications ([strings], optional)}}]
- insights: [strings] key realizations or strategic observations

{TODO_RULES}

Be thorough but don't make things up. Only extract what was actually discussed."""

TODOS_SYSTEM = f"""You are an expert at identifying action items and commitments in text.

Return ONLY valid JSON of the form {{"todos": [...], "summary": "..."}} where each todo is
{ACTION_ITEM_FIELDS}

{TODO_RULES}"""

_LIST_PREFIXES = (
    re.compile(r"^[-•*]\s*"),
    re.compile(r"^\d+[.)]\s*"),
    re.compile(r"^\[[ xX]?\]\s*"),
)

PRIORITIES = ("low", "medium", "high", "urgent")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractedTodo(_CamelModel):
    title: str
    description: Optional[str] = None
    owner_type: Literal["me", "client"] = "me"
    owner: Optional[str] = None
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    due_date: Optional[str] = None
    source_context: Optional[str] = None

    @field_validator("owner_type", mode="before")
    @classmethod
    def _default_owner_type(cls, v):
        return v if v in ("me", "client") else "me"

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, v):
        return v if v in PRIORITIES else "medium"


class NextStep(_CamelModel):
    title: str
    description: str = ""
    timeframe: Optional[str] = None
    owner: Literal["me", "client", "both"] = "me"
    substeps: list[str] = Field(default_factory=list)

    @field_validator("owner", mode="before")
    @classmethod
    def _default_owner(cls, v):
        return v if v in ("me", "client", "both") else "me"


class Decision(_CamelModel):
    decision: str
    context: Optional[str] = None
    implications: list[str] = Field(default_factory=list)


class SessionInsights(_CamelModel):
    summary: str = ""
    action_items: list[ExtractedTodo] = Field(default_factory=list)
    next_steps: list[NextStep] = Field(default_factory=list)
    decisions: list[Decision] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)


def _valid_items(raw_items, model: type[BaseModel]) -> list:
    """Validate list entries one by one, dropping malformed ones."""
    items = []
    for raw in raw_items if isinstance(raw_items, list) else []:
        try:
            items.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning("Dropping malformed %s: %s", model.__name__, e.errors()[:1])
    return items


def _parse_insights(parsed: dict) -> SessionInsights:
    insights = parsed.get("insights")
    return SessionInsights(
        summary=parsed.get("summary") if isinstance(parsed.get("summary"), str) else "",
        action_items=_valid_items(parsed.get("actionItems"), ExtractedTodo),
        next_steps=_valid_items(parsed.get("nextSteps"), NextStep),
        decisions=_valid_items(parsed.get("decisions"), Decision),
        insights=[i for i in insights if isinstance(i, str)] if isinstance(insights, list) else [],
    )


def _context_block(**hints: Optional[str]) -> str:
    lines = [f"{label}: {value}" for label, value in hints.items() if value]
    lines.append(f"Today's date: {date.today().isoformat()}")
    return "Context:\n" + "\n".join(lines)


def parse_due_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Ignoring unparseable due date: %s", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def extract_session_insights(
    transcript: str,
    *,
    session_title: Optional[str] = None,
    client_name: Optional[str] = None,
    session: Optional[AsyncSession] = None,
    client_id: Optional[UUID] = None,
) -> Optional[SessionInsights]:
    """Extract summary, action items, next steps, decisions and insights.

    Returns None when the model is unavailable or its answer is unusable.
    """
    if not transcript or not transcript.strip():
        return None

    prompt = (
        _context_block(Client=client_name, Session=session_title)
        + f"\n\nTranscript:\n{transcript}\n\nExtract the session insights as JSON."
    )

    try:
        parsed = await complete_json(
            call_type="session_insights",
            system=INSIGHTS_SYSTEM,
            user_prompt=prompt,
            prompt_version=INSIGHTS_PROMPT_VERSION,
            max_tokens=4000,
            session=session,
            client_id=client_id,
        )
    except Exception as e:
        logger.error("Session insight extraction failed: %s", e)
        return None

    if parsed is None:
        return None

    insights = _parse_insights(parsed)
    logger.info(
        "Extracted session insights: %d action items, %d next steps, %d decisions",
        len(insights.action_items),
        len(insights.next_steps),
        len(insights.decisions),
    )
    return insights


async def process_session_insights(
    session: AsyncSession,
    consulting_session_id: UUID,
    client_id: UUID,
    user_id: str,
    transcript: str,
    session_title: Optional[str] = None,
    client_name: Optional[str] = None,
) -> Optional[SessionInsights]:
    """Extract insights for a consulting session and persist them.

    Stores the summary and full extraction on the session and creates one
    detected action item per extracted item. Extraction failures are logged
    and yield None.
    """
    insights = await extract_session_insights(
        transcript,
        session_title=session_title,
        client_name=client_name,
        session=session,
        client_id=client_id,
    )
    if insights is None:
        logger.warning("No insights extracted for session %s", consulting_session_id)
        return None

    consulting_session = await session.get(ConsultingSession, consulting_session_id)
    if consulting_session is not None:
        consulting_session.summary = insights.summary or None
        consulting_session.key_points = insights.to_record()

    for item in insights.action_items:
        await create_action_item(
            session,
            user_id,
            item.title,
            client_id=client_id,
            session_id=consulting_session_id,
            description=item.description,
            priority=item.priority,
            owner=item.owner or ("me" if item.owner_type == "me" else "client"),
            owner_type=item.owner_type,
            due_date=parse_due_date(item.due_date),
            source="detected",
            source_context=item.source_context,
        )

    await session.flush()
    logger.info(
        "Stored insights for session %s: %d action items",
        consulting_session_id,
        len(insights.action_items),
    )
    return insights


async def extract_todos_from_text(
    text: str,
    *,
    client_name: Optional[str] = None,
    kind: Optional[str] = None,
    session: Optional[AsyncSession] = None,
) -> list[ExtractedTodo]:
    """Extract action items from free text (notes, emails, transcripts).

    Returns an empty list on failure.
    """
    if not text or not text.strip():
        return []

    prompt = (
        _context_block(Client=client_name, Kind=kind)
        + f"\n\nExtract all action items and TODOs from this text:\n\n{text}"
    )

    try:
        parsed = await complete_json(
            call_type="todo_extraction",
            system=TODOS_SYSTEM,
            user_prompt=prompt,
            prompt_version=TODOS_PROMPT_VERSION,
            session=session,
        )
    except Exception as e:
        logger.error("TODO extraction failed: %s", e)
        return []

    if parsed is None:
        return []
    return _valid_items(parsed.get("todos"), ExtractedTodo)


def _strip_list_prefix(line: str) -> str:
    for pattern in _LIST_PREFIXES:
        line = pattern.sub("", line)
    return line.strip()


def split_simple_list(text: str) -> Optional[list[str]]:
    """Return the items of an obvious pasted list, or None if it isn't one.

    A simple list has at least three items after stripping bullets,
    numbering and checkboxes, each shorter than 200 characters.
    """
    lines = [_strip_list_prefix(line.strip()) for line in text.splitlines() if line.strip()]
    lines = [line for line in lines if len(line) > 3]
    if len(lines) >= 3 and all(len(line) < 200 for line in lines):
        return lines
    return None


async def parse_bulk_todos(text: str, session: Optional[AsyncSession] = None) -> list[dict]:
    """Turn pasted text into ``{title, priority}`` entries.

    Plain lists are split line by line; anything else goes to Claude.
    """
    lines = split_simple_list(text)
    if lines is not None:
        return [{"title": line, "priority": "medium"} for line in lines]

    extracted = await extract_todos_from_text(text, session=session)
    return [{"title": t.title, "priority": t.priority} for t in extracted]
