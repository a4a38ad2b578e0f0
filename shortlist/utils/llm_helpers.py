"""
LLM Helpers Module

LLM transport and response-parsing helpers shared by the batch classifier.
All LLM calls go through call_llm_with_retry; prompts come from templates
rendered by prompt_loader, never from inline strings.

Example Usage:
    from shortlist.utils.llm_helpers import call_llm_with_retry, extract_json_array

    response = await call_llm_with_retry(prompt, system_prompt=system_prompt)
    rows = extract_json_array(response.text)
"""

import asyncio
import json
import logging
import re
from typing import Any, Optional

import structlog
from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    after_log,
    before_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

_JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


class ClassifierResponseError(ValueError):
    """Raised when an LLM response cannot be turned into batch verdicts."""

    pass


class LLMResponse(BaseModel):
    """Text and token usage of one LLM call."""

    text: str
    tokens_used: int = 0


def _extract_json_from_markdown(response_text: str) -> str:
    """Strip markdown code block markers from an LLM response.

    Args:
        response_text: Raw text response from LLM

    Returns:
        Text with surrounding ``` / ```json fences removed
    """
    json_text = response_text.strip()

    if json_text.startswith("```json"):
        json_text = json_text[7:]
    elif json_text.startswith("```"):
        json_text = json_text[3:]

    if json_text.endswith("```"):
        json_text = json_text[:-3]

    return json_text.strip()


def extract_json_array(response_text: str) -> list[Any]:
    """Parse the JSON array contained in an LLM response.

    Code fences and prose around the array are tolerated.

    Raises:
        ClassifierResponseError: If no JSON array can be parsed
    """
    json_text = _extract_json_from_markdown(response_text)
    match = _JSON_ARRAY_PATTERN.search(json_text)
    if match:
        json_text = match.group(0)

    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as e:
        logger.error(
            "Failed to parse JSON from LLM response",
            error=str(e),
            response=response_text[:200],
        )
        raise ClassifierResponseError(f"Failed to parse AI analysis results: {e}") from e

    if not isinstance(parsed, list):
        raise ClassifierResponseError(
            f"Expected a JSON array of verdicts, got {type(parsed).__name__}"
        )
    return parsed


def _usage_tokens(usage: Optional[dict[str, Any]]) -> int:
    if not usage:
        return 0
    if "total_tokens" in usage:
        return int(usage["total_tokens"] or 0)
    return int(usage.get("input_tokens") or 0) + int(usage.get("output_tokens") or 0)


async def _query_llm(prompt: str, system_prompt: str) -> LLMResponse:
    from claude_agent_sdk import (
        AssistantMessage,
        ClaudeAgentOptions,
        ClaudeSDKClient,
        ResultMessage,
        TextBlock,
    )

    options = ClaudeAgentOptions(
        max_turns=1,  # Stateless one-off operation
        allowed_tools=[],  # Pure text analysis
        system_prompt=system_prompt,
        setting_sources=None,  # Do not load .claude settings or CLAUDE.md
    )

    response_text = ""
    tokens_used = 0

    async with ClaudeSDKClient(options=options) as client:
        await client.query(prompt)
        async for message in client.receive_response():
            if isinstance(message, AssistantMessage):
                for block in message.content:
                    if isinstance(block, TextBlock):
                        response_text += block.text
            elif isinstance(message, ResultMessage):
                tokens_used = _usage_tokens(message.usage)

    if not response_text:
        raise ValueError("LLM returned empty response")

    return LLMResponse(text=response_text.strip(), tokens_used=tokens_used)


async def call_llm_with_retry(
    prompt: str,
    system_prompt: str,
    max_retries: int = 1,
    initial_delay: float = 4.0,
    request_timeout: float = 15.0,
    correlation_id: Optional[str] = None,
) -> LLMResponse:
    """
    Call the LLM with a per-request timeout and exponential-backoff retry.

    Args:
        prompt: Rendered user prompt
        system_prompt: Rendered system prompt
        max_retries: Retries after the first attempt (default: 1)
        initial_delay: First backoff delay in seconds, doubled per retry
        request_timeout: Timeout for a single attempt in seconds
        correlation_id: Optional correlation ID for logging

    Returns:
        LLMResponse with text and token usage

    Raises:
        TimeoutError: If the last attempt timed out
        ConnectionError: If the last attempt failed to connect
        Exception: Any non-retryable error from the SDK

    Note:
        Only ConnectionError and TimeoutError are retried.
    """
    log = logger.bind(correlation_id=correlation_id) if correlation_id else logger
    log.debug("LLM call initiated", prompt_length=len(prompt))

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=initial_delay, min=initial_delay),
        retry=retry_if_exception_type((ConnectionError, TimeoutError)),
        before=before_log(logging.getLogger(__name__), logging.INFO),
        after=after_log(logging.getLogger(__name__), logging.INFO),
        reraise=True,
    ):
        with attempt:
            try:
                response = await asyncio.wait_for(
                    _query_llm(prompt, system_prompt), timeout=request_timeout
                )
            except Exception as e:
                log.error(
                    "LLM call failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    attempt=attempt.retry_state.attempt_number,
                )
                raise

    log.debug(
        "LLM call succeeded",
        response_length=len(response.text),
        tokens_used=response.tokens_used,
    )
    return response
