"""
OpenAI LLM Provider.
"""

import logging
from typing import AsyncIterator, List, Dict, Optional

logger = logging.getLogger(__name__)


class OpenAIProvider:
    """
    OpenAI chat completions provider.

    Supports GPT-4o family models through the async client.
    """

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: str = DEFAULT_MODEL,
        max_tokens: int = 1024,
        temperature: float = 0.7
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model_id: Model ID
            max_tokens: Maximum tokens
            temperature: Default generation temperature
        """
        from openai import AsyncOpenAI
        self._client = AsyncOpenAI(api_key=api_key) if api_key else AsyncOpenAI()

        self.model_id = model_id
        self.max_tokens = max_tokens
        self.temperature = temperature

        logger.info(f"OpenAI provider initialized: {model_id}")

    def _format_messages(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str]
    ) -> List[Dict[str, str]]:
        formatted = []
        if system:
            formatted.append({"role": "system", "content": system})
        formatted.extend({"role": m["role"], "content": m["content"]} for m in messages)
        return formatted

    async def complete(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> str:
        """
        Generate a full response for a message list.

        Args:
            messages: Conversation messages with role and content
            system: System prompt
            max_tokens: Override max tokens
            temperature: Override temperature

        Returns:
            Generated response
        """
        try:
            response = await self._client.chat.completions.create(
                model=self.model_id,
                messages=self._format_messages(messages, system),
                max_tokens=max_tokens or self.max_tokens,
                temperature=temperature if temperature is not None else self.temperature
            )
            return (response.choices[0].message.content or "").strip()

        except Exception as e:
            logger.error(f"OpenAI generation failed: {e}")
            raise

    async def stream(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> AsyncIterator[str]:
        """Stream response text chunks for a message list."""
        try:
            response = await self._client.chat.completions.create(
                model=self.model_id,
                messages=self._format_messages(messages, system),
                max_tokens=max_tokens or self.max_tokens,
                temperature=temperature if temperature is not None else self.temperature,
                stream=True,
            )
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta

        except Exception as e:
            logger.error(f"OpenAI streaming failed: {e}")
            raise
