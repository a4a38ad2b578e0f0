"""
Unit tests for llm_helpers module.
"""

from unittest.mock import AsyncMock

import pytest

from shortlist.utils.llm_helpers import (
    ClassifierResponseError,
    LLMResponse,
    _usage_tokens,
    call_llm_with_retry,
    extract_json_array,
)


class TestExtractJsonArray:
    """Test cases for extract_json_array()."""

    def test_plain_array(self):
        """Test that a bare JSON array is parsed."""
        # Act / Assert
        assert extract_json_array('[{"candidateId": "1"}]') == [{"candidateId": "1"}]

    def test_fenced_array(self):
        """Test that markdown code fences are stripped."""
        # Act
        rows = extract_json_array('```json\n[{"candidateId": "1"}]\n```')

        # Assert
        assert rows[0]["candidateId"] == "1"

    def test_array_surrounded_by_prose(self):
        """Test that prose around the array is ignored."""
        # Act
        rows = extract_json_array('Here are the results:\n[1, 2, 3]\nLet me know.')

        # Assert
        assert rows == [1, 2, 3]

    def test_invalid_json_raises(self):
        """Test that unparseable text raises ClassifierResponseError."""
        # Act / Assert
        with pytest.raises(ClassifierResponseError, match="Failed to parse"):
            extract_json_array("no json here")

    def test_object_instead_of_array_raises(self):
        """Test that a JSON object is rejected."""
        # Act / Assert
        with pytest.raises(ClassifierResponseError, match="Expected a JSON array"):
            extract_json_array('{"error": "rate limited"}')


class TestUsageTokens:
    """Test cases for token usage extraction."""

    def test_input_plus_output(self):
        """Test that input and output tokens are summed."""
        # Act / Assert
        assert _usage_tokens({"input_tokens": 120, "output_tokens": 30}) == 150

    def test_missing_usage(self):
        """Test that missing usage counts as zero."""
        # Act / Assert
        assert _usage_tokens(None) == 0


class TestCallLLMWithRetry:
    """Test cases for call_llm_with_retry()."""

    @pytest.mark.asyncio
    async def test_returns_response(self, mocker):
        """Test that a successful call returns the LLM response."""
        # Arrange
        mocker.patch(
            "shortlist.utils.llm_helpers._query_llm",
            AsyncMock(return_value=LLMResponse(text="[]", tokens_used=12)),
        )

        # Act
        response = await call_llm_with_retry("prompt", system_prompt="system")

        # Assert
        assert response.text == "[]"
        assert response.tokens_used == 12

    @pytest.mark.asyncio
    async def test_retries_connection_error_once(self, mocker):
        """Test that a connection error is retried and the retry can succeed."""
        # Arrange
        query = AsyncMock(
            side_effect=[ConnectionError("reset"), LLMResponse(text="[]", tokens_used=3)]
        )
        mocker.patch("shortlist.utils.llm_helpers._query_llm", query)

        # Act
        response = await call_llm_with_retry(
            "prompt", system_prompt="system", max_retries=1, initial_delay=0
        )

        # Assert
        assert response.tokens_used == 3
        assert query.call_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, mocker):
        """Test that the last retryable error is re-raised."""
        # Arrange
        query = AsyncMock(side_effect=ConnectionError("reset"))
        mocker.patch("shortlist.utils.llm_helpers._query_llm", query)

        # Act / Assert
        with pytest.raises(ConnectionError):
            await call_llm_with_retry(
                "prompt", system_prompt="system", max_retries=1, initial_delay=0
            )
        assert query.call_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_not_retried(self, mocker):
        """Test that other errors propagate immediately."""
        # Arrange
        query = AsyncMock(side_effect=ValueError("LLM returned empty response"))
        mocker.patch("shortlist.utils.llm_helpers._query_llm", query)

        # Act / Assert
        with pytest.raises(ValueError, match="empty response"):
            await call_llm_with_retry("prompt", system_prompt="system", initial_delay=0)
        assert query.call_count == 1
