"""Shared test fixtures."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from consultantos.storage.models import ActionItem, InboundEmail, Source, SourceChunk, TranscriptUpload

USER_ID = "user_test_123"


def _mock(spec, defaults: dict, overrides: dict):
    defaults.update(overrides)
    mock = MagicMock(spec=spec)
    for k, v in defaults.items():
        setattr(mock, k, v)
    return mock


def make_source(**overrides):
    """Create a mock Source object for testing."""
    defaults = {
        "id": uuid.uuid4(),
        "user_id": USER_ID,
        "client_id": uuid.uuid4(),
        "name": "Discovery Notes",
        "type": "document",
        "original_filename": "discovery.txt",
        "file_type": "text/plain",
        "url": None,
        "blob_url": None,
        "file_size": 1200,
        "content": "The client wants to expand into two new regions next year.",
        "ai_summary": None,
        "processing_status": "processing",
        "processing_error": None,
        "metadata_": {},
        "last_processed_at": None,
        "created_at": datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
        "updated_at": datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
    }
    return _mock(Source, defaults, overrides)


def make_chunk(**overrides):
    """Create a mock SourceChunk object for testing."""
    defaults = {
        "id": uuid.uuid4(),
        "source_id": uuid.uuid4(),
        "client_id": uuid.uuid4(),
        "user_id": USER_ID,
        "chunk_index": 0,
        "content": "Chunk text",
        "start_char": 0,
        "end_char": 10,
        "embedding": None,
        "metadata_": None,
    }
    return _mock(SourceChunk, defaults, overrides)


def make_action_item(**overrides):
    """Create a mock ActionItem object for testing."""
    defaults = {
        "id": uuid.uuid4(),
        "user_id": USER_ID,
        "client_id": uuid.uuid4(),
        "session_id": None,
        "parent_id": None,
        "title": "Send the proposal",
        "description": None,
        "notes": None,
        "status": "pending",
        "priority": "medium",
        "owner": "me",
        "owner_type": "me",
        "due_date": None,
        "completed_at": None,
        "source": "manual",
        "source_context": None,
        "created_at": datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
    }
    return _mock(ActionItem, defaults, overrides)


def make_transcript(**overrides):
    """Create a mock TranscriptUpload object for testing."""
    defaults = {
        "id": uuid.uuid4(),
        "user_id": USER_ID,
        "title": "Quarterly planning call",
        "content": "Consultant: Let's review the roadmap.\nClient: Sounds good.",
        "session_date": datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc),
        "duration": 45,
        "notes": None,
        "source_type": "paste",
        "original_filename": None,
        "status": "inbox",
        "client_id": None,
        "session_id": None,
        "processed_at": None,
        "created_at": datetime(2026, 3, 2, 16, 0, tzinfo=timezone.utc),
    }
    return _mock(TranscriptUpload, defaults, overrides)


def make_email(**overrides):
    """Create a mock InboundEmail object for testing."""
    defaults = {
        "id": uuid.uuid4(),
        "user_id": USER_ID,
        "from_email": "cfo@acme.com",
        "from_name": "Dana Reyes",
        "to_email": "inbox@consultantos.test",
        "subject": "Q3 budget numbers",
        "body_text": "Attached are the Q3 numbers we discussed on Tuesday.",
        "body_html": None,
        "message_id": "<msg-1@acme.com>",
        "attachments": [],
        "status": "inbox",
        "client_id": None,
        "processed_at": None,
        "created_at": datetime(2026, 3, 4, 8, 30, tzinfo=timezone.utc),
    }
    return _mock(InboundEmail, defaults, overrides)


def scalar_result(value):
    """Mock execute() result whose scalar_one_or_none()/scalar_one() return ``value``."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    return result


def session_context(session):
    """Mock for ``get_session()`` that yields ``session`` every time it is entered."""
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=session)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx
