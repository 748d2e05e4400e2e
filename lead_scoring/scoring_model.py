"""
Lead Scoring Model for the LeadFlow qualification engine.

Turns the six AI-assessed qualification dimensions into a weighted total,
a classification and a qualification status. Everything here is pure and
deterministic; the AI call lives in ``conversation_scorer``.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

logger = logging.getLogger(__name__)


class LeadClassification(Enum):
    """Coarse lead label derived purely from the total score."""
    HOT = "hot"                  # Score >= 80 - Schedule meeting immediately
    WARM = "warm"                # Score 60-79 - Continue qualification
    COLD = "cold"                # Score 40-59 - Nurture with content
    UNQUALIFIED = "unqualified"  # Score < 40


class LeadStatus(Enum):
    """Lead lifecycle status."""
    NEW = "new"
    QUALIFYING = "qualifying"
    QUALIFIED = "qualified"
    UNQUALIFIED = "unqualified"
    MEETING_SCHEDULED = "meeting_scheduled"
    CLOSED = "closed"


# Statuses the scoring pipeline may overwrite. Anything else belongs to
# another workflow (meeting scheduling, manual closure).
PIPELINE_OWNED_STATUSES = (LeadStatus.NEW, LeadStatus.QUALIFYING, LeadStatus.QUALIFIED)

# Dimension weights in percent; they sum to 100.
SCORE_WEIGHTS: Dict[str, int] = {
    "company_fit": 25,
    "budget_alignment": 20,
    "timeline": 20,
    "authority": 15,
    "need": 10,
    "engagement": 10,
}

HOT_THRESHOLD = 80
WARM_THRESHOLD = 60
COLD_THRESHOLD = 40
QUALIFIED_THRESHOLD = 70

NEUTRAL_DIMENSION_SCORE = 50
NEUTRAL_REASONING = "Unable to analyze conversation"
NEUTRAL_NEXT_STEPS = "Continue qualification"


class ScorePayloadMalformed(ValueError):
    """The scoring output could not be parsed into a valid payload."""


@dataclass(frozen=True)
class DimensionScores:
    """The six qualification dimensions, each in [0, 100]."""
    company_fit: int
    budget_alignment: int
    timeline: int
    authority: int
    need: int
    engagement: int

    @classmethod
    def neutral(cls) -> "DimensionScores":
        return cls(*([NEUTRAL_DIMENSION_SCORE] * len(SCORE_WEIGHTS)))

    @property
    def total(self) -> int:
        return calculate_lead_score(self)

    def to_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in SCORE_WEIGHTS}


def calculate_lead_score(scores: DimensionScores) -> int:
    """
    Weighted total, rounded half up.

    Computed in integer hundredths so boundary values such as 72.5 round
    the same way every time instead of depending on float error.
    """
    weighted = sum(getattr(scores, name) * weight for name, weight in SCORE_WEIGHTS.items())
    return (weighted + 50) // 100


def classify_lead(total: int) -> LeadClassification:
    if total >= HOT_THRESHOLD:
        return LeadClassification.HOT
    if total >= WARM_THRESHOLD:
        return LeadClassification.WARM
    if total >= COLD_THRESHOLD:
        return LeadClassification.COLD
    return LeadClassification.UNQUALIFIED


def derive_qualification_status(total: int) -> LeadStatus:
    """qualified at 70 and above, qualifying below."""
    return LeadStatus.QUALIFIED if total >= QUALIFIED_THRESHOLD else LeadStatus.QUALIFYING


def calculate_qualification_status(total: int) -> Dict[str, str]:
    """Map a total score to its classification, follow-up priority and next action."""
    classification = classify_lead(total)
    playbook = {
        LeadClassification.HOT: ("high", "Schedule meeting immediately"),
        LeadClassification.WARM: ("medium", "Continue qualification or schedule demo"),
        LeadClassification.COLD: ("low", "Nurture with content"),
        LeadClassification.UNQUALIFIED: ("low", "Politely disengage or add to newsletter"),
    }
    priority, next_action = playbook[classification]
    return {
        "status": classification.value,
        "priority": priority,
        "next_action": next_action,
    }


# ── Structured payload ────────────────────────────────────────────

Dimension = Annotated[StrictInt, Field(ge=0, le=100)]


class ScoringPayload(BaseModel):
    """Strict contract for the scoring model's JSON output."""
    model_config = ConfigDict(populate_by_name=True)

    company_fit: Dimension = Field(alias="companyFit")
    budget_alignment: Dimension = Field(alias="budgetAlignment")
    timeline: Dimension
    authority: Dimension
    need: Dimension
    engagement: Dimension
    reasoning: str
    sentiment: Literal["positive", "neutral", "negative"]
    buying_signals: List[str] = Field(alias="buyingSignals")
    next_steps: str = Field(alias="nextSteps")


@dataclass
class ConversationScore:
    """Result of one scoring pass over a conversation."""
    dimensions: DimensionScores
    reasoning: str
    sentiment: str = "neutral"
    buying_signals: List[str] = field(default_factory=list)
    next_steps: str = NEUTRAL_NEXT_STEPS
    is_fallback: bool = False
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def neutral(cls) -> "ConversationScore":
        """Default used whenever the AI output cannot be used."""
        return cls(
            dimensions=DimensionScores.neutral(),
            reasoning=NEUTRAL_REASONING,
            sentiment="neutral",
            buying_signals=[],
            next_steps=NEUTRAL_NEXT_STEPS,
            is_fallback=True,
        )

    @property
    def total(self) -> int:
        return self.dimensions.total

    @property
    def classification(self) -> LeadClassification:
        return classify_lead(self.total)

    @property
    def status(self) -> LeadStatus:
        return derive_qualification_status(self.total)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            **self.dimensions.to_dict(),
            "total": self.total,
            "classification": self.classification.value,
            "reasoning": self.reasoning,
            "sentiment": self.sentiment,
            "buying_signals": self.buying_signals,
            "next_steps": self.next_steps,
            "is_fallback": self.is_fallback,
            "timestamp": self.timestamp.isoformat(),
        }


_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_scoring_payload(text: str) -> ConversationScore:
    """
    Parse the scoring model's output into a ConversationScore.

    Tolerates surrounding prose or code fences but nothing else: every field
    must be present, every dimension an integer in [0, 100].

    Raises:
        ScorePayloadMalformed: On any parse or validation failure
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ScorePayloadMalformed("No JSON object in scoring response")

    try:
        data = json.loads(match.group())
        payload = ScoringPayload.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ScorePayloadMalformed(str(e)) from e

    return ConversationScore(
        dimensions=DimensionScores(
            company_fit=payload.company_fit,
            budget_alignment=payload.budget_alignment,
            timeline=payload.timeline,
            authority=payload.authority,
            need=payload.need,
            engagement=payload.engagement,
        ),
        reasoning=payload.reasoning,
        sentiment=payload.sentiment,
        buying_signals=list(payload.buying_signals),
        next_steps=payload.next_steps,
    )
