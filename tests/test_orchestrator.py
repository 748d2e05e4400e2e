"""Tests for the provider orchestrator."""

import asyncio

import pytest

from llm.exceptions import AllProvidersExhausted, ProviderCallFailed, ProviderConfigurationError
from llm.orchestrator import CompletionProvider, ProviderOrchestrator, is_retryable_error

from fakes import RetryableProviderError, make_provider


@pytest.fixture
def failing_then_ok():
    return [
        make_provider("OpenAI", error=RetryableProviderError("rate limit reached")),
        make_provider("Google Gemini", error=RetryableProviderError("quota exceeded")),
        make_provider("Anthropic Claude", reply="from claude"),
    ]


# ── Construction ──────────────────────────────────────

class TestConstruction:
    def test_no_enabled_providers_fails_fast(self):
        providers = [CompletionProvider(name="OpenAI", client=None, enabled=False)]
        with pytest.raises(ProviderConfigurationError):
            ProviderOrchestrator(providers)

    def test_empty_catalogue_fails_fast(self):
        with pytest.raises(ProviderConfigurationError):
            ProviderOrchestrator([])

    def test_disabled_providers_are_skipped(self):
        providers = [
            CompletionProvider(name="OpenAI", client=None, enabled=False),
            make_provider("Google Gemini"),
        ]
        orch = ProviderOrchestrator(providers)
        assert [p.name for p in orch.providers] == ["Google Gemini"]


# ── generate ──────────────────────────────────────────

class TestGenerate:
    async def test_fails_over_to_third_provider(self, failing_then_ok):
        orch = ProviderOrchestrator(failing_then_ok)
        result = await orch.generate(prompt="hi")
        assert result == "from claude"
        assert orch.current_index == 2

    async def test_next_call_starts_at_last_success(self, failing_then_ok):
        orch = ProviderOrchestrator(failing_then_ok)
        await orch.generate(prompt="hi")

        await orch.generate(prompt="again")

        assert len(failing_then_ok[0].client.calls) == 1
        assert len(failing_then_ok[1].client.calls) == 1
        assert len(failing_then_ok[2].client.calls) == 2

    async def test_exhaustion_carries_last_error_and_keeps_index(self):
        providers = [
            make_provider("OpenAI", error=RuntimeError("openai down")),
            make_provider("Google Gemini", error=RuntimeError("gemini down")),
            make_provider("Anthropic Claude", error=RuntimeError("claude is down")),
        ]
        orch = ProviderOrchestrator(providers)
        orch.switch_to("Google Gemini")
        before = orch.current_index

        with pytest.raises(AllProvidersExhausted) as exc_info:
            await orch.generate(prompt="hi")

        # Iteration started at Gemini, so OpenAI failed last
        assert "openai down" in str(exc_info.value)
        assert orch.current_index == before

    async def test_exhaustion_message_names_third_provider_error(self):
        providers = [
            make_provider("OpenAI", error=RuntimeError("openai down")),
            make_provider("Google Gemini", error=RuntimeError("gemini down")),
            make_provider("Anthropic Claude", error=RuntimeError("claude is down")),
        ]
        orch = ProviderOrchestrator(providers)

        with pytest.raises(AllProvidersExhausted) as exc_info:
            await orch.generate(prompt="hi")

        assert str(exc_info.value) == "All AI providers failed. Last error: claude is down"
        assert isinstance(exc_info.value.last_error, ProviderCallFailed)
        assert exc_info.value.last_error.provider == "Anthropic Claude"
        assert orch.current_index == 0

    async def test_non_retryable_errors_still_fail_over(self):
        providers = [
            make_provider("OpenAI", error=ValueError("bad request")),
            make_provider("Google Gemini", reply="gemini"),
        ]
        orch = ProviderOrchestrator(providers)
        assert await orch.generate(prompt="hi") == "gemini"

    async def test_messages_take_precedence_over_prompt(self):
        provider = make_provider("OpenAI")
        orch = ProviderOrchestrator([provider])
        messages = [{"role": "user", "content": "from messages"}]

        await orch.generate(prompt="raw prompt", messages=messages)

        assert provider.client.calls[0]["messages"] == messages

    async def test_prompt_becomes_single_user_message(self):
        provider = make_provider("OpenAI")
        orch = ProviderOrchestrator([provider])

        await orch.generate(prompt="hello", temperature=0.3, system="be brief")

        call = provider.client.calls[0]
        assert call["messages"] == [{"role": "user", "content": "hello"}]
        assert call["temperature"] == 0.3
        assert call["system"] == "be brief"

    async def test_requires_prompt_or_messages(self):
        orch = ProviderOrchestrator([make_provider("OpenAI")])
        with pytest.raises(ValueError):
            await orch.generate()

    async def test_timeout_counts_as_failed_attempt(self):
        providers = [
            make_provider("OpenAI", reply="too slow", delay=1.0),
            make_provider("Google Gemini", reply="fast"),
        ]
        orch = ProviderOrchestrator(providers, timeout_seconds=0.05)

        assert await orch.generate(prompt="hi") == "fast"
        assert orch.current_index == 1


# ── switch_to / status ────────────────────────────────

class TestSwitching:
    def test_switch_to_known_provider(self, failing_then_ok):
        orch = ProviderOrchestrator(failing_then_ok)
        assert orch.switch_to("Anthropic Claude") is True
        assert orch.current_index == 2

    def test_switch_is_case_sensitive(self, failing_then_ok):
        orch = ProviderOrchestrator(failing_then_ok)
        assert orch.switch_to("anthropic claude") is False
        assert orch.current_index == 0

    def test_switch_to_unknown_is_noop(self, failing_then_ok):
        orch = ProviderOrchestrator(failing_then_ok)
        orch.switch_to("Google Gemini")
        assert orch.switch_to("Mistral") is False
        assert orch.current_index == 1

    def test_status_marks_current(self, failing_then_ok):
        orch = ProviderOrchestrator(failing_then_ok)
        orch.switch_to("Google Gemini")
        status = orch.status()
        assert [s["name"] for s in status] == ["OpenAI", "Google Gemini", "Anthropic Claude"]
        assert [s["current"] for s in status] == [False, True, False]
        assert all(s["enabled"] for s in status)

    def test_status_lists_disabled_providers(self):
        providers = [
            CompletionProvider(name="OpenAI", client=None, enabled=False),
            make_provider("Google Gemini"),
            CompletionProvider(name="Anthropic Claude", client=None, enabled=False),
        ]
        orch = ProviderOrchestrator(providers)

        assert orch.status() == [
            {"name": "OpenAI", "enabled": False, "current": False},
            {"name": "Google Gemini", "enabled": True, "current": True},
            {"name": "Anthropic Claude", "enabled": False, "current": False},
        ]
        assert orch.switch_to("OpenAI") is False


# ── stream ────────────────────────────────────────────

async def _collect(chunks):
    return "".join([c async for c in chunks])


class TestStream:
    async def test_stream_fails_over_before_first_chunk(self):
        providers = [
            make_provider("OpenAI", error=RetryableProviderError("429 rate limit")),
            make_provider("Google Gemini", chunks=["Hel", "lo"]),
        ]
        orch = ProviderOrchestrator(providers)

        chunks = await orch.stream(messages=[{"role": "user", "content": "hi"}])

        assert await _collect(chunks) == "Hello"
        assert orch.current_index == 1

    async def test_stream_exhaustion(self):
        providers = [
            make_provider("OpenAI", error=RuntimeError("down")),
            make_provider("Google Gemini", error=RuntimeError("also down")),
        ]
        orch = ProviderOrchestrator(providers)

        with pytest.raises(AllProvidersExhausted, match="also down"):
            await orch.stream(prompt="hi")
        assert orch.current_index == 0

    async def test_mid_stream_failure_surfaces_to_consumer(self):
        providers = [
            make_provider("OpenAI", chunks=["partial", "never"], stream_error_after=1),
            make_provider("Google Gemini", chunks=["unused"]),
        ]
        orch = ProviderOrchestrator(providers)
        chunks = await orch.stream(prompt="hi")

        received = []
        with pytest.raises(ProviderCallFailed):
            async for chunk in chunks:
                received.append(chunk)

        assert received == ["partial"]
        assert providers[1].client.calls == []

    async def test_first_chunk_timeout_fails_over(self):
        providers = [
            make_provider("OpenAI", chunks=["slow"], delay=1.0),
            make_provider("Google Gemini", chunks=["quick"]),
        ]
        orch = ProviderOrchestrator(providers, timeout_seconds=0.05)

        chunks = await orch.stream(prompt="hi")
        assert await _collect(chunks) == "quick"

    async def test_stream_call_that_raises_fails_over(self):
        class RefusingClient:
            def stream(self, messages, **options):
                raise RetryableProviderError("429 rate limit")

        providers = [
            CompletionProvider(name="OpenAI", client=RefusingClient(), enabled=True),
            make_provider("Google Gemini", chunks=["fine"]),
        ]
        orch = ProviderOrchestrator(providers)

        chunks = await orch.stream(prompt="hi")

        assert await _collect(chunks) == "fine"
        assert orch.current_index == 1

    async def test_unknown_option_fails_over_like_generate(self):
        class StrictClient:
            async def complete(self, messages, system=None, max_tokens=None, temperature=None):
                return "unused"

            async def stream(self, messages, system=None, max_tokens=None, temperature=None):
                yield "unused"

        providers = [
            CompletionProvider(name="OpenAI", client=StrictClient(), enabled=True),
            CompletionProvider(name="Google Gemini", client=StrictClient(), enabled=True),
        ]
        orch = ProviderOrchestrator(providers)

        with pytest.raises(AllProvidersExhausted, match="top_p"):
            await orch.generate(prompt="hi", top_p=0.9)
        with pytest.raises(AllProvidersExhausted, match="top_p"):
            await orch.stream(prompt="hi", top_p=0.9)
        assert orch.current_index == 0


# ── Error classification ──────────────────────────────

class TestRetryableClassification:
    @pytest.mark.parametrize("message", [
        "Rate limit reached for requests",
        "You exceeded your current quota",
        "Billing hard limit has been reached",
        "insufficient_quota",
    ])
    def test_retryable_messages(self, message):
        assert is_retryable_error(RuntimeError(message)) is True

    def test_retryable_status(self):
        assert is_retryable_error(RetryableProviderError("too many requests")) is True

    def test_other_errors_are_not_retryable(self):
        assert is_retryable_error(ValueError("invalid model")) is False

    def test_botocore_style_response(self):
        error = Exception("ThrottlingException")
        error.response = {"ResponseMetadata": {"HTTPStatusCode": 429}}
        assert is_retryable_error(error) is True

    def test_asyncio_timeout_is_not_retryable(self):
        assert is_retryable_error(asyncio.TimeoutError()) is False
