"""
Provider Orchestrator for the LeadFlow qualification engine.

Fronts every configured completion provider behind one generate/stream
facade and fails over between them, so a single provider outage, quota
exhaustion or billing problem never reaches the caller.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from api.middleware.metrics import record_llm_latency, record_provider_attempt

from .exceptions import AllProvidersExhausted, ProviderCallFailed, ProviderConfigurationError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 402, 403}
RETRYABLE_MESSAGE_MARKERS = ("rate limit", "quota", "billing", "insufficient", "exceeded")


@dataclass(frozen=True)
class CompletionProvider:
    """A named completion capability. Enabled iff its credential is configured."""
    name: str
    client: Any
    enabled: bool = True


def _status_code(error: BaseException) -> Optional[int]:
    """Best-effort HTTP status extraction across SDK error types."""
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value

    # botocore ClientError / httpx.HTTPStatusError
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        value = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if isinstance(value, int):
            return value
    elif response is not None:
        value = getattr(response, "status_code", None)
        if isinstance(value, int):
            return value

    return None


def is_retryable_error(error: BaseException) -> bool:
    """
    Classify a provider failure as retryable (rate limit, quota, billing).

    The orchestrator tries the next provider either way; the classification
    is reported in logs and metrics.
    """
    if _status_code(error) in RETRYABLE_STATUS_CODES:
        return True

    message = str(error).lower()
    return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)


class ProviderOrchestrator:
    """
    Round-robin failover across enabled completion providers.

    Each call starts at the provider that most recently succeeded and tries
    every enabled provider at most once. ``current_index`` is a shared
    "preferred next provider" hint; it is updated under a lock so reads and
    writes are atomic, but concurrent calls may still interleave and start
    from slightly stale hints.
    """

    def __init__(
        self,
        providers: Sequence[CompletionProvider],
        timeout_seconds: Optional[float] = 30.0,
    ):
        """
        Initialize the orchestrator.

        Args:
            providers: Provider catalogue in failover order
            timeout_seconds: Per-attempt timeout; for streams it bounds the
                wait for the first chunk

        Raises:
            ProviderConfigurationError: If no provider is enabled
        """
        self._catalogue: List[CompletionProvider] = list(providers)
        self._providers: List[CompletionProvider] = [p for p in self._catalogue if p.enabled]
        if not self._providers:
            raise ProviderConfigurationError(
                "No AI providers configured. Please add at least one API key to your environment variables."
            )

        self.timeout_seconds = timeout_seconds
        self._current_index = 0
        self._lock = threading.Lock()

        logger.info(
            f"Provider orchestrator ready with {len(self._providers)} provider(s): "
            f"{[p.name for p in self._providers]}"
        )

    # ── State ─────────────────────────────────────────────────────

    @property
    def current_index(self) -> int:
        with self._lock:
            return self._current_index

    @property
    def providers(self) -> List[CompletionProvider]:
        return list(self._providers)

    def _set_current(self, index: int):
        with self._lock:
            self._current_index = index

    def _attempt_order(self) -> List[int]:
        start = self.current_index
        count = len(self._providers)
        return [(start + offset) % count for offset in range(count)]

    def status(self) -> List[Dict[str, Any]]:
        """Report every catalogued provider, enabled or not, and which one is current."""
        current = self._providers[self.current_index]
        return [
            {"name": p.name, "enabled": p.enabled, "current": p is current}
            for p in self._catalogue
        ]

    def switch_to(self, name: str) -> bool:
        """
        Make ``name`` the first provider tried on the next call.

        Exact, case-sensitive match. Returns False (and changes nothing) if
        no provider has that name.
        """
        for index, provider in enumerate(self._providers):
            if provider.name == name:
                self._set_current(index)
                logger.info(f"Switched current AI provider to {name}")
                return True

        logger.warning(f"Cannot switch to unknown AI provider: {name}")
        return False

    # ── Calls ─────────────────────────────────────────────────────

    @staticmethod
    def _normalize_input(
        prompt: Optional[str],
        messages: Optional[List[Dict[str, str]]],
    ) -> List[Dict[str, str]]:
        """Prompt and messages are mutually exclusive; messages win."""
        if messages:
            return list(messages)
        if prompt:
            return [{"role": "user", "content": prompt}]
        raise ValueError("Either prompt or messages is required")

    def _record_failure(self, provider: CompletionProvider, error: BaseException) -> ProviderCallFailed:
        retryable = is_retryable_error(error)
        failure = ProviderCallFailed(provider.name, error, retryable=retryable)
        record_provider_attempt(provider.name, "retryable_error" if retryable else "error")
        logger.warning(
            f"AI generation failed with {provider.name} "
            f"({'retryable' if retryable else 'non-retryable'}): {error}"
        )
        return failure

    async def generate(
        self,
        prompt: Optional[str] = None,
        messages: Optional[List[Dict[str, str]]] = None,
        **options: Any,
    ) -> str:
        """
        Generate a complete response, failing over across providers.

        Args:
            prompt: Raw prompt (ignored when messages are given)
            messages: Ordered list of {role, content}
            **options: Generation options (system, temperature, max_tokens)

        Returns:
            Generated text from the first provider that succeeds

        Raises:
            AllProvidersExhausted: If every enabled provider failed
        """
        conversation = self._normalize_input(prompt, messages)
        last_error: Optional[ProviderCallFailed] = None

        for index in self._attempt_order():
            provider = self._providers[index]
            start = time.time()
            try:
                text = await asyncio.wait_for(
                    provider.client.complete(conversation, **options),
                    timeout=self.timeout_seconds,
                )
            except Exception as e:
                last_error = self._record_failure(provider, e)
                continue

            self._set_current(index)
            record_provider_attempt(provider.name, "success")
            record_llm_latency(time.time() - start)
            return text

        logger.error(f"All AI providers failed. Last error: {last_error}")
        raise AllProvidersExhausted(last_error)

    async def stream(
        self,
        prompt: Optional[str] = None,
        messages: Optional[List[Dict[str, str]]] = None,
        **options: Any,
    ) -> AsyncIterator[str]:
        """
        Open a streamed response, failing over across providers.

        A provider counts as successful once it yields its first chunk (or
        finishes cleanly with no output). Failures after that point cannot be
        retried elsewhere and surface to the consumer as ProviderCallFailed.

        Returns:
            Single-pass async iterator of text chunks

        Raises:
            AllProvidersExhausted: If no provider could start a stream
        """
        conversation = self._normalize_input(prompt, messages)
        last_error: Optional[ProviderCallFailed] = None

        for index in self._attempt_order():
            provider = self._providers[index]
            chunks = None
            try:
                chunks = provider.client.stream(conversation, **options).__aiter__()
                first = await asyncio.wait_for(chunks.__anext__(), timeout=self.timeout_seconds)
            except StopAsyncIteration:
                first = None
            except Exception as e:
                last_error = self._record_failure(provider, e)
                await _close_quietly(chunks)
                continue

            self._set_current(index)
            record_provider_attempt(provider.name, "success")
            return _relay(provider.name, first, chunks)

        logger.error(f"All AI providers failed to stream. Last error: {last_error}")
        raise AllProvidersExhausted(last_error)


async def _close_quietly(chunks: Any):
    if chunks is None:
        return
    aclose = getattr(chunks, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as e:
        logger.debug(f"Ignoring error while closing abandoned stream: {e}")


async def _relay(provider_name: str, first: Optional[str], chunks: Any) -> AsyncIterator[str]:
    if first is None:
        return
    yield first
    try:
        async for chunk in chunks:
            yield chunk
    except Exception as e:
        logger.error(f"Stream from {provider_name} broke mid-response: {e}")
        raise ProviderCallFailed(provider_name, e, retryable=is_retryable_error(e)) from e
