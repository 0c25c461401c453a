"""OpenAI chat completion client shared by generation, vision and summaries."""

import asyncio
from typing import Any

from openai import OpenAI

from app.core.config import Settings


class ChatCompletionClient:
    """Async facade over the OpenAI chat completions API."""

    def __init__(self, client: OpenAI):
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatCompletionClient":
        return cls(OpenAI(api_key=settings.OPENAI_API_KEY))

    def _complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        response = self._client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        if not response.choices:
            raise ValueError("Chat completion returned no choices")

        content = response.choices[0].message.content
        if not isinstance(content, str) or not content.strip():
            raise ValueError("Chat completion returned empty content")
        return content

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> str:
        """
        Run one chat completion.

        Args:
            messages: OpenAI-format message list
            model: Model name
            temperature: Sampling temperature
            max_tokens: Completion token ceiling

        Returns:
            Assistant message text

        Raises:
            ValueError: If the response has no usable content
            Exception: Any OpenAI SDK error, unchanged; callers map it
        """
        return await asyncio.to_thread(self._complete, messages, model, temperature, max_tokens)
