"""FastAPI REST API for ConsultantOS source ingestion and retrieval."""

import logging
from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from fastapi import BackgroundTasks, Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from consultantos.api.auth import get_user_id
from consultantos.config import get_settings
from consultantos.errors import InvalidStatusTransition, NotFoundError, SourceBusyError
from consultantos.ingestion.emails import add_email_to_sources
from consultantos.ingestion.pipeline import ingest_source, reprocess_source
from consultantos.ingestion.transcripts import assign_transcript_to_session
from consultantos.processing.embeddings import EmbeddingError
from consultantos.processing.extractor import extract_todos_from_text, parse_bulk_todos, parse_due_date
from consultantos.processing.summarizer import generate_transcript_title
from consultantos.storage import action_items as action_item_store
from consultantos.storage import emails as email_store
from consultantos.storage import sources as source_store
from consultantos.storage import transcripts as transcript_store
from consultantos.storage.clients import create_client, get_client, list_clients
from consultantos.storage.db import get_session
from consultantos.storage.jobs import get_job_stats
from consultantos.storage.vectors import (
    build_context_from_chunks,
    count_source_chunks,
    get_source_chunks,
    search_similar_chunks,
)
from consultantos.worker import process_pending_jobs

logger = logging.getLogger(__name__)

SourceType = Literal[
    "document",
    "website",
    "repository",
    "image",
    "session_transcript",
    "session_notes",
    "recording",
    "other",
]

app = FastAPI(
    title="ConsultantOS API",
    description="Source ingestion, summarization and retrieval for ConsultantOS",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error handling ---

def _format_errors(errors: list[dict]) -> list[dict]:
    return [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query")),
            "message": err.get("msg", "Invalid value"),
        }
        for err in errors
    ]


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "errors": _format_errors(exc.errors())},
    )


@app.exception_handler(ValidationError)
async def body_validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "errors": _format_errors(exc.errors())},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(SourceBusyError)
async def busy_handler(request: Request, exc: SourceBusyError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(InvalidStatusTransition)
async def transition_handler(request: Request, exc: InvalidStatusTransition):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(EmbeddingError)
async def embedding_error_handler(request: Request, exc: EmbeddingError):
    logger.error("Embedding service error: %s", exc)
    return JSONResponse(status_code=502, content={"detail": "Embedding service unavailable"})


# --- Pydantic request/response models ---

class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ClientCreate(ApiModel):
    name: str = Field(min_length=1)
    company: Optional[str] = None
    industry: Optional[str] = None


class ClientResponse(ApiModel):
    id: UUID
    name: str
    company: Optional[str] = None
    industry: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None


class SourceCreate(ApiModel):
    name: str = Field(min_length=1)
    type: SourceType = "document"
    client_id: Optional[UUID] = None
    content: Optional[str] = None
    url: Optional[str] = None
    blob_url: Optional[str] = None
    original_filename: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    metadata: Optional[dict] = None


class SummaryEdit(ApiModel):
    what_it_is: Optional[str] = None
    why_it_matters: Optional[str] = None
    key_insights: Optional[list[str]] = None
    suggested_uses: Optional[list[str]] = None


class SourceUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    metadata: Optional[dict] = None
    ai_summary: Optional[SummaryEdit] = None
    processing_status: Optional[str] = None


class SourceResponse(ApiModel):
    id: UUID
    client_id: Optional[UUID] = None
    name: str
    type: str
    original_filename: Optional[str] = None
    file_type: Optional[str] = None
    url: Optional[str] = None
    blob_url: Optional[str] = None
    file_size: Optional[int] = None
    processing_status: str
    processing_error: Optional[str] = None
    ai_summary: Optional[dict] = None
    metadata: Optional[dict] = Field(default=None, validation_alias=AliasChoices("metadata_", "metadata"))
    last_processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ChunkResponse(ApiModel):
    id: UUID
    chunk_index: int
    content: str
    start_char: Optional[int] = None
    end_char: Optional[int] = None


class SourceDetailResponse(SourceResponse):
    content: Optional[str] = None
    chunk_count: int = 0
    chunks: Optional[list[ChunkResponse]] = None


class TranscriptCreate(ApiModel):
    content: str = Field(min_length=1)
    title: Optional[str] = None
    session_date: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    source_type: Literal["paste", "upload", "import"] = "paste"
    original_filename: Optional[str] = None


class TranscriptUpdate(ApiModel):
    title: Optional[str] = None
    content: Optional[str] = Field(default=None, min_length=1)
    session_date: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    status: Optional[Literal["inbox", "archived"]] = None


class TranscriptAction(ApiModel):
    action: Literal["assign_to_session"]
    client_id: UUID
    title: Optional[str] = None
    session_date: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=0)


class TranscriptResponse(ApiModel):
    id: UUID
    title: Optional[str] = None
    content: str
    session_date: Optional[datetime] = None
    duration: Optional[int] = None
    notes: Optional[str] = None
    source_type: str
    original_filename: Optional[str] = None
    status: str
    client_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class EmailAttachment(ApiModel):
    id: Optional[str] = None
    filename: str = Field(min_length=1)
    content_type: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)
    blob_url: Optional[str] = None
    text: Optional[str] = None


class EmailCreate(ApiModel):
    from_email: str = Field(min_length=1)
    from_name: Optional[str] = None
    to_email: Optional[str] = None
    subject: Optional[str] = None
    body_text: Optional[str] = None
    body_html: Optional[str] = None
    message_id: Optional[str] = None
    attachments: list[EmailAttachment] = Field(default_factory=list)


class EmailUpdate(ApiModel):
    subject: Optional[str] = None
    status: Optional[Literal["inbox", "archived"]] = None
    client_id: Optional[UUID] = None


class EmailAction(ApiModel):
    action: Literal["add_to_sources"]
    client_id: UUID


class EmailResponse(ApiModel):
    id: UUID
    from_email: str
    from_name: Optional[str] = None
    to_email: Optional[str] = None
    subject: Optional[str] = None
    body_text: Optional[str] = None
    attachments: list[dict] = Field(default_factory=list)
    status: str
    client_id: Optional[UUID] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ActionItemCreate(ApiModel):
    title: str = Field(min_length=1)
    client_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    parent_id: Optional[UUID] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    owner: Optional[str] = None
    owner_type: Literal["me", "client"] = "me"
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    due_date: Optional[str] = None
    source: Literal["manual", "detected", "note", "transcript", "email"] = "manual"
    source_context: Optional[str] = None


class BulkTextRequest(ApiModel):
    action: Literal["bulk-parse", "extract"]
    text: str = Field(min_length=1)
    client_id: Optional[UUID] = None
    use_ai: bool = True


class ActionItemUpdate(ApiModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[Literal["pending", "in_progress", "completed"]] = None
    priority: Optional[Literal["low", "medium", "high", "urgent"]] = None
    owner: Optional[str] = None
    owner_type: Optional[Literal["me", "client"]] = None
    due_date: Optional[str] = None
    client_id: Optional[UUID] = None
    session_id: Optional[UUID] = None


class ActionItemResponse(ApiModel):
    id: UUID
    client_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    parent_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    notes: Optional[str] = None
    status: str
    priority: str
    owner: Optional[str] = None
    owner_type: str
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    source: str
    source_context: Optional[str] = None
    created_at: Optional[datetime] = None


class ActionItemBatchResponse(ApiModel):
    items: list[ActionItemResponse]
    count: int


def _kick_worker(background_tasks: BackgroundTasks) -> None:
    """Drain the job queue after the response is sent."""
    background_tasks.add_task(process_pending_jobs)


# --- Endpoints ---

@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/clients", response_model=list[ClientResponse])
async def get_clients(
    status: Optional[str] = None,
    user_id: str = Depends(get_user_id),
):
    async with get_session() as session:
        clients = await list_clients(session, user_id, status=status)
        return [ClientResponse.model_validate(c) for c in clients]


@app.post("/clients", response_model=ClientResponse, status_code=201)
async def post_client(body: ClientCreate, user_id: str = Depends(get_user_id)):
    async with get_session() as session:
        client = await create_client(session, user_id, body.name, company=body.company, industry=body.industry)
        return ClientResponse.model_validate(client)


@app.post("/sources", response_model=SourceResponse, status_code=202)
async def create_source(
    body: SourceCreate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_user_id),
):
    """Create a source and queue it for summarization and indexing."""
    async with get_session() as session:
        if body.client_id is not None:
            await get_client(session, body.client_id, user_id)
        source = await ingest_source(
            session,
            user_id,
            body.client_id,
            body.type,
            body.name,
            body.content,
            metadata=body.metadata,
            url=body.url,
            blob_url=body.blob_url,
            original_filename=body.original_filename,
            file_type=body.file_type,
            file_size=body.file_size,
        )
        response = SourceResponse.model_validate(source)

    _kick_worker(background_tasks)
    return response


@app.get("/sources", response_model=list[SourceResponse])
async def get_sources(
    client_id: Optional[UUID] = Query(None, alias="clientId"),
    status: Optional[Literal["pending", "processing", "completed", "failed"]] = None,
    user_id: str = Depends(get_user_id),
):
    async with get_session() as session:
        sources = await source_store.list_sources(session, user_id, client_id=client_id, status=status)
        return [SourceResponse.model_validate(s) for s in sources]


@app.get("/sources/{source_id}", response_model=SourceDetailResponse)
async def get_source(
    source_id: UUID,
    include_chunks: bool = Query(False, alias="includeChunks"),
    user_id: str = Depends(get_user_id),
):
    async with get_session() as session:
        source = await source_store.get_source(session, source_id, user_id)
        chunk_count = await count_source_chunks(session, source_id)
        chunks = None
        if include_chunks:
            chunks = [ChunkResponse.model_validate(c) for c in await get_source_chunks(session, source_id, user_id)]

        return SourceDetailResponse(
            **SourceResponse.model_validate(source).model_dump(),
            content=source.content,
            chunk_count=chunk_count,
            chunks=chunks,
        )


@app.patch("/sources/{source_id}", response_model=SourceResponse)
async def patch_source(
    source_id: UUID,
    body: SourceUpdate,
    user_id: str = Depends(get_user_id),
):
    """Edit a source's name, metadata or summary, or reset its status."""
    async with get_session() as session:
        source = await source_store.get_source(session, source_id, user_id)

        if body.name is not None or body.metadata is not None:
            source = await source_store.update_source_fields(
                session, source_id, user_id, name=body.name, metadata=body.metadata
            )

        if body.ai_summary is not None:
            edits = body.ai_summary.model_dump(by_alias=True, exclude_none=True)
            merged = {**(source.ai_summary or {}), **edits}
            source = await source_store.update_source_summary(session, source_id, user_id, merged, edited=True)

        if body.processing_status is not None:
            source = await source_store.reset_source_status(session, source_id, user_id, body.processing_status)

        return SourceResponse.model_validate(source)


@app.post("/sources/{source_id}/reprocess", response_model=SourceResponse, status_code=202)
async def post_reprocess(
    source_id: UUID,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_user_id),
):
    async with get_session() as session:
        source = await reprocess_source(session, source_id, user_id)
        response = SourceResponse.model_validate(source)

    _kick_worker(background_tasks)
    return response


@app.delete("/sources/{source_id}")
async def remove_source(source_id: UUID, user_id: str = Depends(get_user_id)):
    async with get_session() as session:
        await source_store.delete_source(session, source_id, user_id)
    return {"success": True}


@app.get("/debug/rag-search")
async def rag_search(
    query: Optional[str] = None,
    client_id: Optional[UUID] = Query(None, alias="clientId"),
    limit: int = Query(10, ge=1, le=50),
    min_similarity: Optional[float] = Query(None, alias="minSimilarity", ge=0.0, le=1.0),
    include_context: bool = Query(False, alias="includeContext"),
    user_id: str = Depends(get_user_id),
):
    """Similarity search over indexed chunks, for debugging retrieval."""
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Query parameter is required")

    async with get_session() as session:
        results = await search_similar_chunks(
            session,
            query,
            user_id,
            client_id=client_id,
            limit=limit,
            min_similarity=min_similarity,
        )

    response: dict[str, Any] = {"results": results, "query": query, "count": len(results)}
    if include_context:
        response["context"] = build_context_from_chunks(results)
    return response


@app.post("/transcripts", response_model=TranscriptResponse, status_code=201)
async def post_transcript(body: TranscriptCreate, user_id: str = Depends(get_user_id)):
    """Stage a transcript in the inbox, titling it when no title is given."""
    async with get_session() as session:
        title = body.title or await generate_transcript_title(body.content, session=session)
        transcript = await transcript_store.create_transcript(
            session,
            user_id,
            body.content,
            title=title,
            session_date=body.session_date,
            duration=body.duration,
            notes=body.notes,
            source_type=body.source_type,
            original_filename=body.original_filename,
        )
        return TranscriptResponse.model_validate(transcript)


@app.get("/transcripts", response_model=list[TranscriptResponse])
async def get_transcripts(
    status: Optional[Literal["inbox", "assigned", "archived"]] = None,
    user_id: str = Depends(get_user_id),
):
    async with get_session() as session:
        transcripts = await transcript_store.list_transcripts(session, user_id, status=status)
        return [TranscriptResponse.model_validate(t) for t in transcripts]


@app.get("/transcripts/{transcript_id}", response_model=TranscriptResponse)
async def get_transcript(transcript_id: UUID, user_id: str = Depends(get_user_id)):
    async with get_session() as session:
        transcript = await transcript_store.get_transcript(session, transcript_id, user_id)
        return TranscriptResponse.model_validate(transcript)


@app.patch("/transcripts/{transcript_id}", response_model=TranscriptResponse)
async def patch_transcript(
    transcript_id: UUID,
    body: TranscriptUpdate,
    user_id: str = Depends(get_user_id),
):
    async with get_session() as session:
        transcript = await transcript_store.update_transcript(
            session, transcript_id, user_id, **body.model_dump(exclude_unset=True)
        )
        return TranscriptResponse.model_validate(transcript)


@app.post("/transcripts/{transcript_id}")
async def transcript_action(
    transcript_id: UUID,
    body: TranscriptAction,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_user_id),
):
    """Assign a staged transcript to a client as a historic session."""
    async with get_session() as session:
        try:
            result = await assign_transcript_to_session(
                session,
                transcript_id,
                user_id,
                body.client_id,
                title=body.title,
                session_date=body.session_date,
                duration_minutes=body.duration,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        response = {
            "success": True,
            "sessionId": str(result["session"].id),
            "sourceIds": [str(s.id) for s in result["sources"]],
            "transcript": TranscriptResponse.model_validate(result["transcript"]).model_dump(mode="json", by_alias=True),
        }

    _kick_worker(background_tasks)
    return response


@app.delete("/transcripts/{transcript_id}")
async def remove_transcript(transcript_id: UUID, user_id: str = Depends(get_user_id)):
    async with get_session() as session:
        await transcript_store.delete_transcript(session, transcript_id, user_id)
    return {"success": True}


@app.post("/emails", response_model=EmailResponse, status_code=201)
async def post_email(body: EmailCreate, user_id: str = Depends(get_user_id)):
    """Stage an inbound email in the inbox."""
    async with get_session() as session:
        email = await email_store.create_email(
            session,
            user_id,
            body.from_email,
            subject=body.subject,
            body_text=body.body_text,
            body_html=body.body_html,
            from_name=body.from_name,
            to_email=body.to_email,
            message_id=body.message_id,
            attachments=[a.model_dump(by_alias=True, exclude_none=True) for a in body.attachments],
        )
        return EmailResponse.model_validate(email)


@app.get("/emails", response_model=list[EmailResponse])
async def get_emails(
    status: Optional[Literal["inbox", "processed", "archived"]] = None,
    client_id: Optional[UUID] = Query(None, alias="clientId"),
    user_id: str = Depends(get_user_id),
):
    async with get_session() as session:
        emails = await email_store.list_emails(session, user_id, status=status, client_id=client_id)
        return [EmailResponse.model_validate(e) for e in emails]


@app.get("/emails/{email_id}", response_model=EmailResponse)
async def get_email(email_id: UUID, user_id: str = Depends(get_user_id)):
    async with get_session() as session:
        email = await email_store.get_email(session, email_id, user_id)
        return EmailResponse.model_validate(email)


@app.patch("/emails/{email_id}", response_model=EmailResponse)
async def patch_email(email_id: UUID, body: EmailUpdate, user_id: str = Depends(get_user_id)):
    fields = body.model_dump(exclude_unset=True)
    async with get_session() as session:
        if fields.get("client_id") is not None:
            await get_client(session, fields["client_id"], user_id)
        email = await email_store.update_email(session, email_id, user_id, **fields)
        return EmailResponse.model_validate(email)


@app.post("/emails/{email_id}", status_code=202)
async def email_action(
    email_id: UUID,
    body: EmailAction,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_user_id),
):
    """Add a staged email and its stored attachments to a client's sources."""
    async with get_session() as session:
        try:
            result = await add_email_to_sources(session, email_id, user_id, body.client_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        response = {
            "success": True,
            "sourceId": str(result["sources"][0].id),
            "sourceIds": [str(s.id) for s in result["sources"]],
            "email": EmailResponse.model_validate(result["email"]).model_dump(mode="json", by_alias=True),
        }

    _kick_worker(background_tasks)
    return response


@app.delete("/emails/{email_id}")
async def remove_email(email_id: UUID, user_id: str = Depends(get_user_id)):
    async with get_session() as session:
        await email_store.delete_email(session, email_id, user_id)
    return {"success": True}


@app.get("/action-items", response_model=list[ActionItemResponse])
async def get_action_items(
    client_id: Optional[UUID] = Query(None, alias="clientId"),
    status: Optional[Literal["pending", "in_progress", "completed"]] = None,
    session_id: Optional[UUID] = Query(None, alias="sessionId"),
    parent_id: Optional[UUID] = Query(None, alias="parentId"),
    filter: Optional[Literal["overdue"]] = None,
    limit: Optional[int] = Query(None, ge=1, le=500),
    user_id: str = Depends(get_user_id),
):
    async with get_session() as session:
        items = await action_item_store.list_action_items(
            session,
            user_id,
            client_id=client_id,
            status=status,
            session_id=session_id,
            parent_id=parent_id,
            overdue=filter == "overdue",
            limit=limit,
        )
        return [ActionItemResponse.model_validate(i) for i in items]


@app.post("/action-items", status_code=201)
async def post_action_items(body: dict = Body(...), user_id: str = Depends(get_user_id)):
    """Create one action item, or several with ``action=bulk-parse|extract``."""
    async with get_session() as session:
        if body.get("action") in ("bulk-parse", "extract"):
            request = BulkTextRequest.model_validate(body)
            items = await _create_from_text(session, user_id, request)
            return ActionItemBatchResponse(
                items=[ActionItemResponse.model_validate(i) for i in items],
                count=len(items),
            ).model_dump(mode="json", by_alias=True)

        data = ActionItemCreate.model_validate(body)
        try:
            item = await action_item_store.create_action_item(
                session,
                user_id,
                data.title,
                client_id=data.client_id,
                session_id=data.session_id,
                parent_id=data.parent_id,
                description=data.description,
                notes=data.notes,
                priority=data.priority,
                owner=data.owner,
                owner_type=data.owner_type,
                due_date=parse_due_date(data.due_date),
                source=data.source,
                source_context=data.source_context,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return ActionItemResponse.model_validate(item).model_dump(mode="json", by_alias=True)


async def _create_from_text(session, user_id: str, request: BulkTextRequest) -> list:
    if request.action == "extract":
        todos = await extract_todos_from_text(request.text, session=session)
        return [
            await action_item_store.create_action_item(
                session,
                user_id,
                todo.title,
                client_id=request.client_id,
                description=todo.description,
                owner=todo.owner,
                owner_type=todo.owner_type,
                priority=todo.priority,
                due_date=parse_due_date(todo.due_date),
                source="detected",
                source_context=todo.source_context,
            )
            for todo in todos
        ]

    if request.use_ai:
        entries = await parse_bulk_todos(request.text, session=session)
    else:
        entries = [
            {"title": line.strip(), "priority": "medium"}
            for line in request.text.splitlines()
            if line.strip()
        ]
    return [
        await action_item_store.create_action_item(
            session,
            user_id,
            entry["title"],
            client_id=request.client_id,
            priority=entry["priority"],
            source="manual",
        )
        for entry in entries
    ]


@app.get("/action-items/{item_id}", response_model=ActionItemResponse)
async def get_action_item(item_id: UUID, user_id: str = Depends(get_user_id)):
    async with get_session() as session:
        item = await action_item_store.get_action_item(session, item_id, user_id)
        return ActionItemResponse.model_validate(item)


@app.patch("/action-items/{item_id}", response_model=ActionItemResponse)
async def patch_action_item(
    item_id: UUID,
    body: ActionItemUpdate,
    user_id: str = Depends(get_user_id),
):
    fields = body.model_dump(exclude_unset=True)
    if "due_date" in fields:
        fields["due_date"] = parse_due_date(fields["due_date"])

    async with get_session() as session:
        try:
            item = await action_item_store.update_action_item(session, item_id, user_id, **fields)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return ActionItemResponse.model_validate(item)


@app.delete("/action-items/{item_id}")
async def remove_action_item(item_id: UUID, user_id: str = Depends(get_user_id)):
    async with get_session() as session:
        await action_item_store.delete_action_item(session, item_id, user_id)
    return {"success": True}


@app.get("/jobs/stats")
async def jobs_stats(user_id: str = Depends(get_user_id)):
    async with get_session() as session:
        return await get_job_stats(session)
