"""Tests for source summaries and transcript titles."""

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest

from consultantos.processing.llm import LLMNotConfigured
from consultantos.processing.summarizer import (
    TRUNCATION_MARKER,
    SourceSummary,
    SummaryError,
    fallback_transcript_title,
    generate_source_summary,
    generate_transcript_title,
    truncate_for_summary,
)

SUMMARY_JSON = {
    "whatItIs": "A market analysis for the client's expansion.",
    "whyItMatters": "It frames the growth conversation.",
    "keyInsights": ["Two regions are underserved", "Pricing is competitive", "Churn is low"],
    "suggestedUses": ["Anchor the next strategy session", "Share with the board"],
}


class TestTruncateForSummary:
    def test_short_content_unchanged(self):
        assert truncate_for_summary("short", 100) == "short"

    def test_keeps_head_and_tail(self):
        content = "A" * 60 + "B" * 60
        result = truncate_for_summary(content, 100)
        assert result == "A" * 50 + TRUNCATION_MARKER + "B" * 50


class TestSourceSummary:
    def test_round_trips_camel_case(self):
        summary = SourceSummary.model_validate(SUMMARY_JSON)
        assert summary.what_it_is.startswith("A market analysis")
        record = summary.to_record()
        assert record["keyInsights"] == SUMMARY_JSON["keyInsights"]
        assert "generatedAt" in record
        assert "isEdited" not in record

    def test_missing_fields_get_defaults(self):
        summary = SourceSummary.model_validate({})
        assert summary.key_insights == []
        assert summary.what_it_is


class TestGenerateSourceSummary:
    @pytest.mark.asyncio
    async def test_returns_validated_summary(self):
        with patch(
            "consultantos.processing.summarizer.complete_json",
            new_callable=AsyncMock,
            return_value=SUMMARY_JSON,
        ) as mock_complete:
            summary = await generate_source_summary(
                "Market analysis content",
                file_name="analysis.pdf",
                client_name="Acme",
                source_type="document",
            )

        assert summary.suggested_uses == SUMMARY_JSON["suggestedUses"]
        kwargs = mock_complete.call_args.kwargs
        assert kwargs["call_type"] == "source_summary"
        assert 'for client "Acme"' in kwargs["user_prompt"]
        assert "File: analysis.pdf" in kwargs["user_prompt"]

    @pytest.mark.asyncio
    async def test_long_content_is_truncated_in_prompt(self):
        content = "x" * 20000
        with patch(
            "consultantos.processing.summarizer.complete_json",
            new_callable=AsyncMock,
            return_value=SUMMARY_JSON,
        ) as mock_complete:
            await generate_source_summary(content)

        prompt = mock_complete.call_args.kwargs["user_prompt"]
        assert "[...content truncated...]" in prompt
        assert "x" * 20000 not in prompt

    @pytest.mark.asyncio
    async def test_unparseable_response_raises(self):
        with patch(
            "consultantos.processing.summarizer.complete_json",
            new_callable=AsyncMock,
            return_value=None,
        ):
            with pytest.raises(SummaryError):
                await generate_source_summary("content")

    @pytest.mark.asyncio
    async def test_wrong_shape_raises(self):
        with patch(
            "consultantos.processing.summarizer.complete_json",
            new_callable=AsyncMock,
            return_value={"keyInsights": "not a list"},
        ):
            with pytest.raises(SummaryError):
                await generate_source_summary("content")

    @pytest.mark.asyncio
    async def test_api_error_raises_summary_error(self):
        error = anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com"))
        with patch(
            "consultantos.processing.summarizer.complete_json",
            new_callable=AsyncMock,
            side_effect=error,
        ):
            with pytest.raises(SummaryError):
                await generate_source_summary("content")

    @pytest.mark.asyncio
    async def test_missing_api_key_raises_summary_error(self):
        with patch(
            "consultantos.processing.summarizer.complete_json",
            new_callable=AsyncMock,
            side_effect=LLMNotConfigured("No Anthropic API key configured"),
        ):
            with pytest.raises(SummaryError):
                await generate_source_summary("content")

    @pytest.mark.asyncio
    async def test_logging_failure_raises_summary_error(self):
        with patch(
            "consultantos.processing.summarizer.complete_json",
            new_callable=AsyncMock,
            side_effect=RuntimeError("connection reset"),
        ):
            with pytest.raises(SummaryError, match="connection reset"):
                await generate_source_summary("content")


class TestTranscriptTitle:
    def test_fallback_uses_first_meaningful_line(self):
        content = "Hi\n\nWelcome everyone to the quarterly planning review\nMore"
        assert fallback_transcript_title(content) == "Welcome everyone to the quarterly planning review"

    def test_fallback_truncates_long_line(self):
        line = "This is a very long opening line that keeps going well past fifty characters"
        assert fallback_transcript_title(line) == line[:50] + "..."

    def test_fallback_untitled(self):
        assert fallback_transcript_title("ok\nyes\n") == "Untitled Transcript"

    @pytest.mark.asyncio
    async def test_uses_model_title(self):
        with patch(
            "consultantos.processing.summarizer.complete_json",
            new_callable=AsyncMock,
            return_value={"title": '"Roadmap Review With Acme"'},
        ):
            title = await generate_transcript_title("Some transcript text that is long enough")
        assert title == "Roadmap Review With Acme"

    @pytest.mark.asyncio
    async def test_falls_back_when_model_unavailable(self):
        with patch(
            "consultantos.processing.summarizer.complete_json",
            new_callable=AsyncMock,
            side_effect=LLMNotConfigured("No Anthropic API key configured"),
        ):
            title = await generate_transcript_title("Welcome to the pricing workshop today")
        assert title == "Welcome to the pricing workshop today"

    @pytest.mark.asyncio
    async def test_falls_back_on_blank_title(self):
        with patch(
            "consultantos.processing.summarizer.complete_json",
            new_callable=AsyncMock,
            return_value={"title": "  "},
        ):
            title = await generate_transcript_title("hi")
        assert title == "Untitled Transcript"
