"""Tests for the provider catalogue and request shaping."""

import json

import pytest

from config.settings import Settings
from llm.providers import ANTHROPIC_CLAUDE, GOOGLE_GEMINI, OPENAI, build_providers
from llm.providers import gemini
from llm.providers.bedrock import BedrockProvider
from llm.providers.openai_provider import OpenAIProvider


def test_catalogue_order_and_credentials():
    providers = build_providers(Settings(openai_api_key="sk-test"))

    assert [p.name for p in providers] == [OPENAI, GOOGLE_GEMINI, ANTHROPIC_CLAUDE]
    assert [p.enabled for p in providers] == [True, False, False]
    assert providers[1].client is None


def test_no_credentials_disables_everything():
    providers = build_providers(Settings())
    assert not any(p.enabled for p in providers)


def test_bedrock_needs_both_aws_keys():
    assert Settings(aws_access_key_id="AKIA").has_bedrock_credentials is False
    assert Settings(aws_access_key_id="AKIA", aws_secret_access_key="secret").has_bedrock_credentials is True


def test_bedrock_body_moves_system_to_top_level():
    provider = BedrockProvider(region="us-east-1", aws_access_key_id="AKIA", aws_secret_access_key="secret")
    body = json.loads(provider._build_body(
        [
            {"role": "system", "content": "Extra rules"},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
        ],
        system="You qualify leads",
        max_tokens=None,
        temperature=0.3,
    ))

    assert body["system"] == "You qualify leads\n\nExtra rules"
    assert [m["role"] for m in body["messages"]] == ["user", "assistant"]
    assert body["messages"][0]["content"] == [{"type": "text", "text": "Hi"}]
    assert body["temperature"] == 0.3
    assert body["max_tokens"] == 1024


def test_openai_system_prompt_leads_messages():
    provider = OpenAIProvider(api_key="sk-test")
    formatted = provider._format_messages([{"role": "user", "content": "Hi"}], "Be brief")
    assert formatted == [
        {"role": "system", "content": "Be brief"},
        {"role": "user", "content": "Hi"},
    ]


# ── Gemini responses without content ─────────────────

class _Chunk:
    def __init__(self, text=None):
        self.parts = [text] if text else []
        self._text = text

    @property
    def text(self):
        if not self.parts:
            raise ValueError("The `response.text` quick accessor requires a valid Part")
        return self._text


class _StreamedResponse:
    def __init__(self, chunks):
        self._chunks = chunks

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk


def _fake_model(response):
    class FakeModel:
        def __init__(self, model_id, system_instruction=None):
            self.model_id = model_id

        async def generate_content_async(self, contents, generation_config=None, stream=False):
            return response

    return FakeModel


async def test_gemini_stream_skips_empty_chunks(monkeypatch):
    response = _StreamedResponse([_Chunk("Hello"), _Chunk(), _Chunk(" there"), _Chunk()])
    monkeypatch.setattr(gemini.genai, "GenerativeModel", _fake_model(response))
    provider = gemini.GeminiProvider(api_key="test-key")

    chunks = [c async for c in provider.stream([{"role": "user", "content": "Hi"}])]

    assert chunks == ["Hello", " there"]


async def test_gemini_blocked_response_raises(monkeypatch):
    blocked = _Chunk()
    blocked.prompt_feedback = "block_reason: SAFETY"
    monkeypatch.setattr(gemini.genai, "GenerativeModel", _fake_model(blocked))
    provider = gemini.GeminiProvider(api_key="test-key")

    with pytest.raises(RuntimeError, match="no content"):
        await provider.complete([{"role": "user", "content": "Hi"}])
