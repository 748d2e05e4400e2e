"""Tests for Lead Scoring components."""

import json

import pytest

from lead_scoring.conversation_scorer import ConversationScorer
from lead_scoring.scoring_model import (
    ConversationScore,
    DimensionScores,
    LeadClassification,
    LeadStatus,
    ScorePayloadMalformed,
    SCORE_WEIGHTS,
    calculate_lead_score,
    calculate_qualification_status,
    classify_lead,
    derive_qualification_status,
    parse_scoring_payload,
)
from llm.orchestrator import ProviderOrchestrator

from fakes import SCORING_PAYLOAD, make_provider


def uniform(value: int) -> DimensionScores:
    return DimensionScores(*([value] * 6))


TURNS = [
    {"role": "user", "content": "We are a 200 person logistics company."},
    {"role": "assistant", "content": "What is your timeline?"},
    {"role": "user", "content": "We need something this quarter, budget is approved."},
]


# ── Weighted total ────────────────────────────────────

class TestCalculateLeadScore:
    def test_weights_sum_to_100_percent(self):
        assert sum(SCORE_WEIGHTS.values()) == 100

    def test_uniform_scores(self):
        assert calculate_lead_score(uniform(0)) == 0
        assert calculate_lead_score(uniform(50)) == 50
        assert calculate_lead_score(uniform(100)) == 100

    def test_weighted_total(self):
        scores = DimensionScores(
            company_fit=90, budget_alignment=80, timeline=70,
            authority=80, need=60, engagement=70,
        )
        # 22.5 + 16 + 14 + 12 + 6 + 7 = 77.5
        assert calculate_lead_score(scores) == 78

    def test_half_rounds_up(self):
        # 0.25 * 10 = 2.5
        scores = DimensionScores(10, 0, 0, 0, 0, 0)
        assert calculate_lead_score(scores) == 3

    def test_below_half_rounds_down(self):
        # 0.15 * 1 + 0.10 * 1 = 0.25
        scores = DimensionScores(0, 0, 0, 1, 1, 0)
        assert calculate_lead_score(scores) == 0

    @pytest.mark.parametrize("values", [
        (100, 0, 0, 0, 0, 0),
        (0, 100, 100, 0, 0, 0),
        (33, 67, 12, 99, 1, 50),
        (100, 100, 100, 100, 100, 99),
    ])
    def test_total_within_range(self, values):
        total = calculate_lead_score(DimensionScores(*values))
        assert 0 <= total <= 100
        exact = sum(v * w for v, w in zip(values, SCORE_WEIGHTS.values())) / 100
        assert abs(total - exact) <= 0.5


# ── Classification and status ─────────────────────────

class TestClassification:
    @pytest.mark.parametrize("total, expected", [
        (0, LeadClassification.UNQUALIFIED),
        (39, LeadClassification.UNQUALIFIED),
        (40, LeadClassification.COLD),
        (59, LeadClassification.COLD),
        (60, LeadClassification.WARM),
        (79, LeadClassification.WARM),
        (80, LeadClassification.HOT),
        (100, LeadClassification.HOT),
    ])
    def test_boundaries(self, total, expected):
        assert classify_lead(total) == expected

    def test_status_threshold(self):
        assert derive_qualification_status(69) == LeadStatus.QUALIFYING
        assert derive_qualification_status(70) == LeadStatus.QUALIFIED

    def test_qualification_playbook(self):
        hot = calculate_qualification_status(85)
        assert hot == {
            "status": "hot",
            "priority": "high",
            "next_action": "Schedule meeting immediately",
        }
        assert calculate_qualification_status(65)["priority"] == "medium"
        assert calculate_qualification_status(45)["next_action"] == "Nurture with content"
        assert calculate_qualification_status(10)["status"] == "unqualified"


# ── Payload parsing ───────────────────────────────────

class TestParseScoringPayload:
    def test_valid_payload(self):
        score = parse_scoring_payload(json.dumps(SCORING_PAYLOAD))
        assert score.dimensions.company_fit == 90
        assert score.total == 78
        assert score.sentiment == "positive"
        assert score.buying_signals == ["asked about pricing", "mentioned budget"]
        assert score.next_steps == "Schedule a demo"
        assert score.is_fallback is False

    def test_payload_inside_prose_and_fences(self):
        text = f"Sure! Here you go:\n```json\n{json.dumps(SCORING_PAYLOAD)}\n```\nLet me know."
        assert parse_scoring_payload(text).total == 78

    def test_missing_field(self):
        payload = dict(SCORING_PAYLOAD)
        del payload["companyFit"]
        with pytest.raises(ScorePayloadMalformed):
            parse_scoring_payload(json.dumps(payload))

    @pytest.mark.parametrize("bad", [101, -1, "80", 80.5, None])
    def test_invalid_dimension(self, bad):
        payload = {**SCORING_PAYLOAD, "timeline": bad}
        with pytest.raises(ScorePayloadMalformed):
            parse_scoring_payload(json.dumps(payload))

    def test_unknown_sentiment(self):
        payload = {**SCORING_PAYLOAD, "sentiment": "ecstatic"}
        with pytest.raises(ScorePayloadMalformed):
            parse_scoring_payload(json.dumps(payload))

    @pytest.mark.parametrize("text", ["", "no json here", "{not json}"])
    def test_not_json(self, text):
        with pytest.raises(ScorePayloadMalformed):
            parse_scoring_payload(text)


class TestNeutralScore:
    def test_neutral_defaults(self):
        score = ConversationScore.neutral()
        assert score.total == 50
        assert score.reasoning == "Unable to analyze conversation"
        assert score.sentiment == "neutral"
        assert score.buying_signals == []
        assert score.next_steps == "Continue qualification"
        assert score.is_fallback is True
        assert score.classification == LeadClassification.COLD
        assert score.status == LeadStatus.QUALIFYING


# ── Conversation scorer ───────────────────────────────

def scorer_with(**provider_kwargs) -> ConversationScorer:
    orchestrator = ProviderOrchestrator([make_provider("OpenAI", **provider_kwargs)])
    return ConversationScorer(orchestrator)


class TestConversationScorer:
    @pytest.mark.parametrize("count", range(1, 13))
    def test_cadence(self, count):
        scorer = scorer_with()
        assert scorer.should_rescore(count) is (count in (6, 9, 12))

    async def test_scores_conversation(self):
        scorer = scorer_with(reply=json.dumps(SCORING_PAYLOAD))
        score = await scorer.score_conversation(TURNS, {"company": "Acme Freight"})
        assert score.total == 78
        assert score.classification == LeadClassification.WARM
        assert score.status == LeadStatus.QUALIFIED

    async def test_prompt_includes_transcript_and_lead_data(self):
        scorer = scorer_with(reply=json.dumps(SCORING_PAYLOAD))
        await scorer.score_conversation(TURNS, {"company": "Acme Freight"})

        call = scorer.orchestrator.providers[0].client.calls[0]
        prompt = call["messages"][0]["content"]
        assert "user: We are a 200 person logistics company." in prompt
        assert "Acme Freight" in prompt
        assert call["temperature"] == 0.3

    async def test_malformed_payload_degrades_to_neutral(self):
        payload = dict(SCORING_PAYLOAD)
        del payload["companyFit"]
        scorer = scorer_with(reply=json.dumps(payload))

        score = await scorer.score_conversation(TURNS)

        assert score.total == 50
        assert score.reasoning == "Unable to analyze conversation"
        assert score.is_fallback is True

    async def test_provider_exhaustion_degrades_to_neutral(self):
        scorer = scorer_with(error=RuntimeError("service unavailable"))
        score = await scorer.score_conversation(TURNS)
        assert score.total == 50
        assert score.sentiment == "neutral"

    async def test_summarize(self):
        scorer = scorer_with(reply="  The lead runs logistics and has budget.  ")
        assert await scorer.summarize(TURNS) == "The lead runs logistics and has budget."

    async def test_summarize_is_best_effort(self):
        scorer = scorer_with(error=RuntimeError("down"))
        assert await scorer.summarize(TURNS) is None

    async def test_summarize_empty_conversation(self):
        scorer = scorer_with()
        assert await scorer.summarize([]) is None
        assert scorer.orchestrator.providers[0].client.calls == []
