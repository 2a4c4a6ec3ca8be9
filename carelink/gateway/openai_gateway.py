"""
OpenAI chat-completions gateway.

Prepends the support primer to the caller's history and maps OpenAI SDK
exceptions onto ``GatewayErrorReason`` before they leave this module.
"""

import logging
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from carelink.config import GatewayConfig
from carelink.exceptions import GatewayError, GatewayErrorReason
from carelink.gateway.base import ResponseGateway, classify_failure
from carelink.prompts.system_prompts import build_primer

logger = logging.getLogger(__name__)

_SDK_REASONS: tuple[tuple[type, GatewayErrorReason], ...] = (
    (openai.AuthenticationError, GatewayErrorReason.API_KEY_INVALID),
    (openai.PermissionDeniedError, GatewayErrorReason.API_KEY_INVALID),
    (openai.RateLimitError, GatewayErrorReason.QUOTA_EXCEEDED),
    (openai.APIConnectionError, GatewayErrorReason.NETWORK_UNAVAILABLE),
)


def _reason_for(exc: Exception) -> GatewayErrorReason:
    for exc_type, reason in _SDK_REASONS:
        if isinstance(exc, exc_type):
            return reason
    return classify_failure(exc)


class OpenAIResponseGateway(ResponseGateway):
    """ResponseGateway backed by ``AsyncOpenAI``."""

    def __init__(self, config: GatewayConfig, client: Optional[Any] = None) -> None:
        self._config = config
        self._client = client
        if self._client is None:
            try:
                self._client = AsyncOpenAI(
                    api_key=config.api_key,
                    base_url=config.base_url,
                    timeout=config.request_timeout_sec,
                )
            except openai.OpenAIError as exc:
                logger.warning("OpenAI client unavailable: %s", exc)

    def _build_messages(self, history: list[dict[str, str]]) -> list[dict[str, str]]:
        return [
            {"role": entry["role"], "content": entry["text"]}
            for entry in build_primer() + history
        ]

    async def send(self, history: list[dict[str, str]]) -> str:
        if self._client is None:
            raise GatewayError(GatewayErrorReason.API_KEY_INVALID, "OpenAI API key is not set")
        try:
            response = await self._client.chat.completions.create(
                model=self._config.model,
                messages=self._build_messages(history),
                temperature=self._config.temperature,
                top_p=self._config.top_p,
                max_tokens=self._config.max_output_tokens,
            )
        except openai.OpenAIError as exc:
            reason = _reason_for(exc)
            logger.warning("Chat completion failed (%s): %s", reason.value, exc)
            raise GatewayError(reason, str(exc)) from exc

        text = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not text:
            raise GatewayError(GatewayErrorReason.UNKNOWN, "Empty completion")
        return text
