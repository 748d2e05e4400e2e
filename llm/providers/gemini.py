"""
Google Gemini LLM Provider.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import google.generativeai as genai

logger = logging.getLogger(__name__)


class GeminiProvider:
    """
    Google Gemini provider via the google-generativeai SDK.
    """

    DEFAULT_MODEL = "gemini-1.5-flash"

    def __init__(
        self,
        api_key: str,
        model_id: str = DEFAULT_MODEL,
        max_tokens: int = 1024,
        temperature: float = 0.7
    ):
        genai.configure(api_key=api_key)

        self.model_id = model_id
        self.max_tokens = max_tokens
        self.temperature = temperature

        logger.info(f"Gemini provider initialized: {model_id}")

    def _prepare(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str],
        max_tokens: Optional[int],
        temperature: Optional[float]
    ) -> Dict[str, Any]:
        # Gemini calls the assistant role "model"
        contents = [
            {
                "role": "model" if msg["role"] == "assistant" else "user",
                "parts": [msg["content"]],
            }
            for msg in messages
            if msg["role"] in ("user", "assistant")
        ]
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        if system:
            system_parts.insert(0, system)

        model = genai.GenerativeModel(
            self.model_id,
            system_instruction="\n\n".join(system_parts) if system_parts else None,
        )
        config = genai.GenerationConfig(
            max_output_tokens=max_tokens or self.max_tokens,
            temperature=temperature if temperature is not None else self.temperature,
        )
        return {"model": model, "contents": contents, "config": config}

    async def complete(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> str:
        """Generate a full response for a message list."""
        try:
            call = self._prepare(messages, system, max_tokens, temperature)
            response = await call["model"].generate_content_async(
                call["contents"],
                generation_config=call["config"],
            )
            if not response.parts:
                raise RuntimeError(f"Gemini returned no content: {response.prompt_feedback}")
            return response.text.strip()

        except Exception as e:
            logger.error(f"Gemini generation failed: {e}")
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
            call = self._prepare(messages, system, max_tokens, temperature)
            response = await call["model"].generate_content_async(
                call["contents"],
                generation_config=call["config"],
                stream=True,
            )
            async for chunk in response:
                # Safety and finish-only chunks carry no parts
                if chunk.parts and chunk.text:
                    yield chunk.text

        except Exception as e:
            logger.error(f"Gemini streaming failed: {e}")
            raise
