"""Tests for API response models and endpoint behavior."""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from consultantos.api.routes import (
    ActionItemResponse,
    SourceDetailResponse,
    SourceResponse,
    app,
)
from consultantos.errors import ClientNotFoundError, EmailNotFoundError, SourceBusyError, SourceNotFoundError
from tests.conftest import USER_ID, make_action_item, make_email, make_source, session_context

ROUTES = "consultantos.api.routes"
HEADERS = {"X-User-Id": USER_ID}


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = AsyncMock()
    with patch(f"{ROUTES}.get_session", return_value=session_context(session)):
        yield session


class TestResponseModels:
    def test_source_response_from_orm(self):
        source = make_source(metadata_={"from": "cfo@acme.com"})
        data = SourceResponse.model_validate(source).model_dump(by_alias=True)
        assert data["processingStatus"] == "processing"
        assert data["originalFilename"] == "discovery.txt"
        assert data["metadata"] == {"from": "cfo@acme.com"}

    def test_detail_response_defaults(self):
        base = SourceResponse.model_validate(make_source()).model_dump()
        detail = SourceDetailResponse(**base)
        assert detail.chunk_count == 0
        assert detail.chunks is None

    def test_action_item_response(self):
        item = make_action_item(source="detected")
        data = ActionItemResponse.model_validate(item).model_dump(by_alias=True)
        assert data["ownerType"] == "me"
        assert data["source"] == "detected"


class TestAuth:
    def test_missing_user_header_is_401(self, client):
        resp = client.get("/sources")
        assert resp.status_code == 401
        assert resp.json() == {"detail": "Unauthorized"}

    def test_blank_user_header_is_401(self, client):
        resp = client.get("/sources", headers={"X-User-Id": "  "})
        assert resp.status_code == 401

    def test_health_needs_no_auth(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestSourceEndpoints:
    def test_create_source_queues_processing(self, client, db):
        source = make_source(processing_status="processing")

        with patch(f"{ROUTES}.ingest_source", new_callable=AsyncMock, return_value=source) as mock_ingest, \
             patch(f"{ROUTES}.process_pending_jobs", new_callable=AsyncMock) as mock_worker:
            resp = client.post(
                "/sources",
                headers=HEADERS,
                json={"name": "Re: pricing", "type": "other", "content": "Email body", "metadata": {"from": "cfo@acme.com"}},
            )

        assert resp.status_code == 202
        body = resp.json()
        assert body["id"] == str(source.id)
        assert body["processingStatus"] == "processing"
        assert mock_ingest.call_args.kwargs["metadata"] == {"from": "cfo@acme.com"}
        mock_worker.assert_called_once()

    def test_create_source_for_foreign_client_is_404(self, client, db):
        with patch(
            f"{ROUTES}.get_client",
            new_callable=AsyncMock,
            side_effect=ClientNotFoundError("Client not found"),
        ), patch(f"{ROUTES}.ingest_source", new_callable=AsyncMock) as mock_ingest:
            resp = client.post(
                "/sources",
                headers=HEADERS,
                json={"name": "Pricing memo", "clientId": str(uuid.uuid4()), "content": "Memo"},
            )

        assert resp.status_code == 404
        mock_ingest.assert_not_called()

    def test_invalid_source_type_is_400(self, client, db):
        resp = client.post("/sources", headers=HEADERS, json={"name": "x", "type": "pdf"})

        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Validation failed"
        assert body["errors"][0]["field"] == "type"

    def test_missing_source_is_404(self, client, db):
        with patch(
            f"{ROUTES}.source_store.get_source",
            new_callable=AsyncMock,
            side_effect=SourceNotFoundError("Source not found"),
        ):
            resp = client.get(f"/sources/{uuid.uuid4()}", headers=HEADERS)

        assert resp.status_code == 404

    def test_source_detail_with_chunks(self, client, db):
        source = make_source()
        chunk = SimpleNamespace(id=uuid.uuid4(), chunk_index=0, content="Chunk text", start_char=0, end_char=10)

        with patch(f"{ROUTES}.source_store.get_source", new_callable=AsyncMock, return_value=source), \
             patch(f"{ROUTES}.count_source_chunks", new_callable=AsyncMock, return_value=1), \
             patch(f"{ROUTES}.get_source_chunks", new_callable=AsyncMock, return_value=[chunk]):
            resp = client.get(f"/sources/{source.id}?includeChunks=true", headers=HEADERS)

        assert resp.status_code == 200
        body = resp.json()
        assert body["chunkCount"] == 1
        assert body["chunks"][0]["chunkIndex"] == 0
        assert body["content"] == source.content

    def test_reprocess_busy_is_409(self, client, db):
        with patch(
            f"{ROUTES}.reprocess_source",
            new_callable=AsyncMock,
            side_effect=SourceBusyError("Source is already processing"),
        ), patch(f"{ROUTES}.process_pending_jobs", new_callable=AsyncMock) as mock_worker:
            resp = client.post(f"/sources/{uuid.uuid4()}/reprocess", headers=HEADERS)

        assert resp.status_code == 409
        mock_worker.assert_not_called()

    def test_reprocess_accepted(self, client, db):
        source = make_source()
        with patch(f"{ROUTES}.reprocess_source", new_callable=AsyncMock, return_value=source), \
             patch(f"{ROUTES}.process_pending_jobs", new_callable=AsyncMock):
            resp = client.post(f"/sources/{source.id}/reprocess", headers=HEADERS)

        assert resp.status_code == 202


class TestRagSearch:
    def test_blank_query_is_400(self, client):
        with patch(f"{ROUTES}.search_similar_chunks", new_callable=AsyncMock) as mock_search:
            assert client.get("/debug/rag-search", headers=HEADERS).status_code == 400
            assert client.get("/debug/rag-search?query=%20%20", headers=HEADERS).status_code == 400
        mock_search.assert_not_called()

    def test_returns_results_and_context(self, client, db):
        results = [{
            "chunkId": str(uuid.uuid4()),
            "sourceId": str(uuid.uuid4()),
            "sourceName": "Pricing memo",
            "sourceType": "document",
            "chunkIndex": 0,
            "content": "Pricing is too complex",
            "metadata": None,
            "similarity": 0.8766,
        }]
        client_id = uuid.uuid4()

        with patch(f"{ROUTES}.search_similar_chunks", new_callable=AsyncMock, return_value=results) as mock_search:
            resp = client.get(
                f"/debug/rag-search?query=pricing&clientId={client_id}&limit=5&includeContext=true",
                headers=HEADERS,
            )

        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        assert body["results"] == results
        assert body["context"].startswith("## Relevant Context from Sources")
        kwargs = mock_search.call_args.kwargs
        assert kwargs["client_id"] == client_id
        assert kwargs["limit"] == 5

    def test_limit_out_of_range_is_400(self, client):
        resp = client.get("/debug/rag-search?query=pricing&limit=0", headers=HEADERS)
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "limit"


class TestActionItemEndpoints:
    def test_bulk_parse_without_ai(self, client, db):
        created = []

        async def create(session, user_id, title, **kwargs):
            item = make_action_item(title=title, priority=kwargs["priority"])
            created.append(item)
            return item

        with patch(f"{ROUTES}.action_item_store.create_action_item", side_effect=create), \
             patch(f"{ROUTES}.parse_bulk_todos", new_callable=AsyncMock) as mock_parse:
            resp = client.post(
                "/action-items",
                headers=HEADERS,
                json={"action": "bulk-parse", "text": "Send deck\n\nCall CFO\n", "useAi": False},
            )

        assert resp.status_code == 201
        body = resp.json()
        assert body["count"] == 2
        assert [i["title"] for i in body["items"]] == ["Send deck", "Call CFO"]
        mock_parse.assert_not_called()

    def test_single_item(self, client, db):
        item = make_action_item()
        with patch(
            f"{ROUTES}.action_item_store.create_action_item",
            new_callable=AsyncMock,
            return_value=item,
        ) as mock_create:
            resp = client.post(
                "/action-items",
                headers=HEADERS,
                json={"title": "Send the proposal", "priority": "high", "dueDate": "2026-03-06"},
            )

        assert resp.status_code == 201
        assert resp.json()["id"] == str(item.id)
        assert mock_create.call_args.kwargs["priority"] == "high"
        assert mock_create.call_args.kwargs["due_date"].year == 2026

    def test_empty_title_is_400(self, client, db):
        resp = client.post("/action-items", headers=HEADERS, json={"title": ""})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validation failed"

    def test_moving_subtask_off_parent_client_is_400(self, client, db):
        with patch(
            f"{ROUTES}.action_item_store.update_action_item",
            new_callable=AsyncMock,
            side_effect=ValueError("Subtask must belong to the same client as its parent"),
        ):
            resp = client.patch(
                f"/action-items/{uuid.uuid4()}",
                headers=HEADERS,
                json={"clientId": str(uuid.uuid4())},
            )

        assert resp.status_code == 400
        assert "same client" in resp.json()["detail"]


class TestEmailEndpoints:
    def test_stage_email_keeps_attachments(self, client, db):
        email = make_email(attachments=[{"filename": "deck.pdf", "blobUrl": "https://blob.example.com/deck.pdf"}])

        with patch(f"{ROUTES}.email_store.create_email", new_callable=AsyncMock, return_value=email) as mock_create:
            resp = client.post(
                "/emails",
                headers=HEADERS,
                json={
                    "fromEmail": "cfo@acme.com",
                    "subject": "Deck",
                    "attachments": [{"filename": "deck.pdf", "contentType": "application/pdf", "blobUrl": "https://blob.example.com/deck.pdf"}],
                },
            )

        assert resp.status_code == 201
        assert resp.json()["fromEmail"] == "cfo@acme.com"
        assert mock_create.call_args.kwargs["attachments"] == [
            {"filename": "deck.pdf", "contentType": "application/pdf", "blobUrl": "https://blob.example.com/deck.pdf"}
        ]

    def test_add_to_sources_queues_processing(self, client, db):
        email = make_email(status="processed")
        sources = [make_source(), make_source()]
        client_id = uuid.uuid4()

        with patch(
            f"{ROUTES}.add_email_to_sources",
            new_callable=AsyncMock,
            return_value={"email": email, "sources": sources},
        ) as mock_add, patch(f"{ROUTES}.process_pending_jobs", new_callable=AsyncMock) as mock_worker:
            resp = client.post(
                f"/emails/{email.id}",
                headers=HEADERS,
                json={"action": "add_to_sources", "clientId": str(client_id)},
            )

        assert resp.status_code == 202
        body = resp.json()
        assert body["sourceId"] == str(sources[0].id)
        assert body["sourceIds"] == [str(s.id) for s in sources]
        assert body["email"]["status"] == "processed"
        assert mock_add.call_args.args[1:] == (email.id, USER_ID, client_id)
        mock_worker.assert_called_once()

    def test_unknown_action_is_400(self, client, db):
        resp = client.post(
            f"/emails/{uuid.uuid4()}",
            headers=HEADERS,
            json={"action": "create_conversation", "clientId": str(uuid.uuid4())},
        )
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "action"

    def test_already_processed_is_400(self, client, db):
        with patch(
            f"{ROUTES}.add_email_to_sources",
            new_callable=AsyncMock,
            side_effect=ValueError("already added to sources"),
        ), patch(f"{ROUTES}.process_pending_jobs", new_callable=AsyncMock) as mock_worker:
            resp = client.post(
                f"/emails/{uuid.uuid4()}",
                headers=HEADERS,
                json={"action": "add_to_sources", "clientId": str(uuid.uuid4())},
            )

        assert resp.status_code == 400
        mock_worker.assert_not_called()

    def test_missing_email_is_404(self, client, db):
        with patch(
            f"{ROUTES}.email_store.get_email",
            new_callable=AsyncMock,
            side_effect=EmailNotFoundError("Email not found"),
        ):
            resp = client.get(f"/emails/{uuid.uuid4()}", headers=HEADERS)

        assert resp.status_code == 404
