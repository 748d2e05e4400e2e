"""
LLM Provider implementations.

Every provider exposes the same async capability:
``complete(messages, system=None, max_tokens=None, temperature=None) -> str``
and ``stream(...) -> AsyncIterator[str]``.
"""

import logging
from typing import List

from config.settings import Settings

from ..orchestrator import CompletionProvider
from .bedrock import BedrockProvider
from .gemini import GeminiProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

OPENAI = "OpenAI"
GOOGLE_GEMINI = "Google Gemini"
ANTHROPIC_CLAUDE = "Anthropic Claude"


def build_providers(settings: Settings) -> List[CompletionProvider]:
    """
    Build the provider catalogue in failover order.

    A provider is enabled iff its credential is configured; disabled
    providers are listed without a client so status can still report them.
    """
    providers = []

    if settings.openai_api_key:
        client = OpenAIProvider(
            api_key=settings.openai_api_key,
            model_id=settings.openai_llm_model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )
        providers.append(CompletionProvider(name=OPENAI, client=client, enabled=True))
    else:
        providers.append(CompletionProvider(name=OPENAI, client=None, enabled=False))

    if settings.google_generative_ai_api_key:
        client = GeminiProvider(
            api_key=settings.google_generative_ai_api_key,
            model_id=settings.gemini_model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )
        providers.append(CompletionProvider(name=GOOGLE_GEMINI, client=client, enabled=True))
    else:
        providers.append(CompletionProvider(name=GOOGLE_GEMINI, client=None, enabled=False))

    if settings.has_bedrock_credentials:
        client = BedrockProvider(
            model_id=settings.bedrock_llm_model_id,
            region=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )
        providers.append(CompletionProvider(name=ANTHROPIC_CLAUDE, client=client, enabled=True))
    else:
        providers.append(CompletionProvider(name=ANTHROPIC_CLAUDE, client=None, enabled=False))

    enabled = [p.name for p in providers if p.enabled]
    logger.info(f"Completion providers enabled: {enabled or 'none'}")
    return providers


__all__ = [
    "BedrockProvider",
    "GeminiProvider",
    "OpenAIProvider",
    "build_providers",
    "OPENAI",
    "GOOGLE_GEMINI",
    "ANTHROPIC_CLAUDE",
]
