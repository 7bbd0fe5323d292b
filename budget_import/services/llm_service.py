"""LLM client for the enrichment pass.

Items go to the model in one batch as {"items": [...]}. The chat model is
bound to JSON mode, so each reply is one JSON object carrying the answers
under the same "items" key. Shape checks against the request are left to
the caller.
"""

import json
import re
from typing import Any, Dict, List, Optional

import structlog
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_core.runnables import Runnable
from langchain_openai import ChatOpenAI

from budget_import.config.settings import settings
from budget_import.config.errors import LLMError, ErrorCode

logger = structlog.get_logger()

JSON_RESPONSE_FORMAT = {"type": "json_object"}

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")

# (substrings of the provider error, error code, message)
_KNOWN_FAILURES = (
    (("rate_limit", "rate limit"), ErrorCode.LLM_RATE_LIMIT, "OpenAI rate limit exceeded"),
    (
        ("context_length", "maximum context"),
        ErrorCode.LLM_CONTEXT_TOO_LONG,
        "Item batch too long for model context"
    ),
)


def _tokens_used(reply: AIMessage) -> int:
    usage = reply.usage_metadata or {}
    return usage.get("total_tokens", 0)


class LLMService:
    """Batch classification client over ChatOpenAI in JSON mode."""

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None,
        request_timeout: Optional[float] = None
    ):
        """Initialize LLMService.

        Args:
            model: Model name (default from settings).
            temperature: Temperature (default from settings).
            api_key: OpenAI API key (default from settings).
            request_timeout: HTTP timeout in seconds (default is the
                enrichment timeout from settings).
        """
        self.model = model or settings.llm_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.api_key = api_key or settings.openai_api_key
        self.request_timeout = (
            request_timeout
            if request_timeout is not None
            else settings.enrichment_timeout_seconds
        )

        self._client: Optional[Runnable] = None

    @property
    def client(self) -> Runnable:
        """ChatOpenAI bound to JSON output (lazy initialization)."""
        if self._client is None:
            self._client = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key,
                timeout=self.request_timeout
            ).bind(response_format=JSON_RESPONSE_FORMAT)
        return self._client

    async def classify_items(
        self,
        system_prompt: str,
        items: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Send a batch of items and return the model's answers.

        Args:
            system_prompt: Instructions describing the answer objects.
            items: JSON-ready request entries, in order.

        Returns:
            Dict with "items" (the value the model put under "items", or the
            bare reply when it answered with a list) and "tokens_used".

        Raises:
            LLMError: If the call fails or the reply is not JSON.
        """
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=json.dumps({"items": items}))
        ]
        try:
            reply = await self.client.ainvoke(messages)
        except Exception as e:
            raise self._translate_error(e) from e

        tokens_used = _tokens_used(reply)
        payload = self._parse_json(reply.content)

        logger.info(
            "llm_items_classified",
            model=self.model,
            item_count=len(items),
            tokens_used=tokens_used
        )
        return {
            "items": payload.get("items") if isinstance(payload, dict) else payload,
            "tokens_used": tokens_used
        }

    def _parse_json(self, content: str) -> Any:
        try:
            return json.loads(_CODE_FENCE.sub("", content.strip()))
        except json.JSONDecodeError as e:
            raise LLMError(
                code=ErrorCode.LLM_INVALID_JSON,
                message="LLM did not return valid JSON",
                model=self.model,
                details={"parse_error": str(e), "raw_content": content[:500]}
            ) from e

    def _translate_error(self, error: Exception) -> LLMError:
        error_msg = str(error)
        lowered = error_msg.lower()
        for needles, code, message in _KNOWN_FAILURES:
            if any(needle in lowered for needle in needles):
                break
        else:
            code, message = ErrorCode.LLM_ERROR, f"LLM call failed: {error_msg}"

        return LLMError(
            code=code,
            message=message,
            model=self.model,
            details={"original_error": error_msg}
        )
