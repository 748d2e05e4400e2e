"""
Lead Scoring Module for the LeadFlow qualification engine.

This module provides lead qualification and scoring capabilities:
- Weighted six-dimension lead score (0-100 scale)
- Classification (hot, warm, cold, unqualified) and qualification status
- AI conversation scoring with neutral fallback
- Persisting scores and guarded status transitions
"""

from .scoring_model import (
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
from .conversation_scorer import ConversationScorer
from .qualification import LeadQualificationService

__all__ = [
    "ConversationScore",
    "DimensionScores",
    "LeadClassification",
    "LeadStatus",
    "ScorePayloadMalformed",
    "SCORE_WEIGHTS",
    "calculate_lead_score",
    "calculate_qualification_status",
    "classify_lead",
    "derive_qualification_status",
    "parse_scoring_payload",
    "ConversationScorer",
    "LeadQualificationService",
]
