"""Tests for the durable ingestion job queue (consultantos/storage/jobs.py)."""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from consultantos.storage.models import IngestionJob


def make_job(**overrides):
    """Create a mock IngestionJob for testing."""
    defaults = {
        "id": uuid.uuid4(),
        "kind": "source_process",
        "dedupe_key": None,
        "payload": {"source_id": str(uuid.uuid4()), "user_id": "user_test_123"},
        "status": "queued",
        "priority": 10,
        "attempts": 0,
        "max_attempts": 3,
        "locked_until": None,
        "error_message": None,
        "created_at": datetime.now(timezone.utc),
        "updated_at": datetime.now(timezone.utc),
    }
    defaults.update(overrides)
    mock = MagicMock(spec=IngestionJob)
    for k, v in defaults.items():
        setattr(mock, k, v)
    return mock


def _update_values(session) -> dict:
    """Column values of the UPDATE statement passed to session.execute."""
    stmt = session.execute.call_args.args[0]
    return stmt.compile().params


class TestRetryDelay:
    def test_exponential(self):
        from consultantos.storage.jobs import retry_delay

        assert retry_delay(1) == timedelta(seconds=30)
        assert retry_delay(2) == timedelta(seconds=60)
        assert retry_delay(3) == timedelta(seconds=120)

    def test_capped(self):
        from consultantos.storage.jobs import retry_delay

        assert retry_delay(20) == timedelta(hours=1)


class TestEnqueueJob:
    """Tests for enqueue_job."""

    @pytest.mark.asyncio
    async def test_enqueue_creates_job(self):
        """Enqueue without dedupe_key creates a job and returns it."""
        from consultantos.storage.jobs import enqueue_job

        session = AsyncMock()
        session.add = MagicMock()

        result = await enqueue_job(
            session=session,
            kind="source_process",
            payload={"source_id": "abc"},
        )

        session.add.assert_called_once()
        session.flush.assert_called_once()
        assert result.kind == "source_process"
        assert result.payload == {"source_id": "abc"}

    @pytest.mark.asyncio
    async def test_enqueue_with_dedupe_key_prevents_duplicate(self):
        """Enqueue with existing dedupe_key returns None."""
        from consultantos.storage.jobs import enqueue_job

        session = AsyncMock()
        # Simulate ON CONFLICT DO NOTHING (rowcount=0)
        mock_result = MagicMock()
        mock_result.rowcount = 0
        session.execute = AsyncMock(return_value=mock_result)

        result = await enqueue_job(
            session=session,
            kind="session_insights",
            payload={"consulting_session_id": "abc"},
            dedupe_key="session_insights:abc",
        )

        assert result is None
        session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_enqueue_with_dedupe_key_creates_new(self):
        """Enqueue with new dedupe_key creates the job."""
        from consultantos.storage.jobs import enqueue_job

        session = AsyncMock()
        job_id = uuid.uuid4()
        mock_job = make_job(id=job_id, kind="session_insights")

        mock_result = MagicMock()
        mock_result.rowcount = 1
        session.execute = AsyncMock(return_value=mock_result)
        session.get = AsyncMock(return_value=mock_job)

        with patch("consultantos.storage.jobs.uuid.uuid4", return_value=job_id):
            result = await enqueue_job(
                session=session,
                kind="session_insights",
                payload={"consulting_session_id": "new"},
                dedupe_key="session_insights:new",
            )

        assert result is mock_job
        session.flush.assert_called_once()
        session.get.assert_called_once_with(IngestionJob, job_id)


class TestClaimJob:
    """Tests for claim_job."""

    @pytest.mark.asyncio
    async def test_claim_returns_job_when_available(self):
        """Claim returns the next queued job."""
        from consultantos.storage.jobs import claim_job

        session = AsyncMock()
        job_id = uuid.uuid4()
        mock_job = make_job(id=job_id, status="processing")

        mock_row = MagicMock()
        mock_row.__getitem__ = lambda self, idx: job_id
        mock_result = MagicMock()
        mock_result.fetchone.return_value = mock_row
        session.execute = AsyncMock(return_value=mock_result)
        session.get = AsyncMock(return_value=mock_job)

        result = await claim_job(session)

        assert result is mock_job
        params = session.execute.call_args.args[1]
        assert "kinds" not in params

    @pytest.mark.asyncio
    async def test_claim_filters_by_kind(self):
        from consultantos.storage.jobs import claim_job

        session = AsyncMock()
        mock_result = MagicMock()
        mock_result.fetchone.return_value = None
        session.execute = AsyncMock(return_value=mock_result)

        await claim_job(session, kinds=["session_insights"])

        stmt, params = session.execute.call_args.args
        assert params["kinds"] == ["session_insights"]
        assert "kind IN" in str(stmt)

    @pytest.mark.asyncio
    async def test_claim_returns_none_when_empty(self):
        """Claim returns None when no jobs available."""
        from consultantos.storage.jobs import claim_job

        session = AsyncMock()
        mock_result = MagicMock()
        mock_result.fetchone.return_value = None
        session.execute = AsyncMock(return_value=mock_result)

        result = await claim_job(session)

        assert result is None
        session.get.assert_not_called()


class TestCompleteJob:
    """Tests for complete_job."""

    @pytest.mark.asyncio
    async def test_complete_sets_done(self):
        """Completing a job sets status to done."""
        from consultantos.storage.jobs import complete_job

        session = AsyncMock()

        await complete_job(session, uuid.uuid4())

        session.execute.assert_called_once()
        assert _update_values(session)["status"] == "done"


class TestFailJob:
    """Tests for fail_job."""

    @pytest.mark.asyncio
    async def test_fail_retries_under_max(self):
        """Failing a job under max_attempts sets retry status."""
        from consultantos.storage.jobs import fail_job

        session = AsyncMock()
        job = make_job(attempts=1, max_attempts=3)
        session.get = AsyncMock(return_value=job)

        await fail_job(session, job.id, "provider timeout")

        session.execute.assert_called_once()
        values = _update_values(session)
        assert values["status"] == "retry"
        assert values["locked_until"] > datetime.now(timezone.utc)
        assert values["error_message"] == "provider timeout"

    @pytest.mark.asyncio
    async def test_fail_permanent_at_max_attempts(self):
        """Failing at max_attempts sets failed status permanently."""
        from consultantos.storage.jobs import fail_job

        session = AsyncMock()
        job = make_job(attempts=3, max_attempts=3)
        session.get = AsyncMock(return_value=job)

        await fail_job(session, job.id, "final error")

        session.execute.assert_called_once()
        values = _update_values(session)
        assert values["status"] == "failed"
        assert values["locked_until"] is None

    @pytest.mark.asyncio
    async def test_fail_missing_job_is_noop(self):
        """Failing a nonexistent job does nothing."""
        from consultantos.storage.jobs import fail_job

        session = AsyncMock()
        session.get = AsyncMock(return_value=None)

        await fail_job(session, uuid.uuid4(), "error")

        session.execute.assert_not_called()


class TestExpireStaleLeases:
    """Tests for expire_stale_leases."""

    @pytest.mark.asyncio
    async def test_expire_resets_stale_jobs(self):
        """Expired processing jobs are reset to retry."""
        from consultantos.storage.jobs import expire_stale_leases

        session = AsyncMock()
        mock_result = MagicMock()
        mock_result.rowcount = 3
        session.execute = AsyncMock(return_value=mock_result)

        count = await expire_stale_leases(session)

        assert count == 3

    @pytest.mark.asyncio
    async def test_expire_returns_zero_when_none(self):
        from consultantos.storage.jobs import expire_stale_leases

        session = AsyncMock()
        mock_result = MagicMock()
        mock_result.rowcount = 0
        session.execute = AsyncMock(return_value=mock_result)

        assert await expire_stale_leases(session) == 0


class TestGetJobStats:
    """Tests for get_job_stats."""

    @pytest.mark.asyncio
    async def test_returns_counts_by_status(self):
        """Returns dict of status -> count."""
        from consultantos.storage.jobs import get_job_stats

        session = AsyncMock()
        mock_result = MagicMock()
        mock_result.all.return_value = [
            ("queued", 5),
            ("processing", 2),
            ("done", 10),
        ]
        session.execute = AsyncMock(return_value=mock_result)

        stats = await get_job_stats(session)

        assert stats == {"queued": 5, "processing": 2, "done": 10}

    @pytest.mark.asyncio
    async def test_empty_table_returns_empty_dict(self):
        from consultantos.storage.jobs import get_job_stats

        session = AsyncMock()
        mock_result = MagicMock()
        mock_result.all.return_value = []
        session.execute = AsyncMock(return_value=mock_result)

        assert await get_job_stats(session) == {}
