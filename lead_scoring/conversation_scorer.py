"""
Conversation Scorer for the LeadFlow qualification engine.

Asks the provider orchestrator to assess a transcript and degrades to
neutral defaults instead of failing whenever the assessment is unusable.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from llm.exceptions import AllProvidersExhausted
from llm.orchestrator import ProviderOrchestrator
from llm.prompt_templates import PromptTemplates, PromptType

from .scoring_model import ConversationScore, ScorePayloadMalformed, parse_scoring_payload

logger = logging.getLogger(__name__)


class ConversationScorer:
    """
    Scores and summarizes lead-qualification conversations.

    Re-scoring cadence: a conversation is re-scored when its message count
    (after both the new user turn and the assistant reply are stored) is at
    least ``min_turns`` and a multiple of ``interval``. This samples the
    conversation to bound AI-completion cost.
    """

    SCORING_TEMPERATURE = 0.3
    SUMMARY_TEMPERATURE = 0.5

    def __init__(
        self,
        orchestrator: ProviderOrchestrator,
        min_turns: int = 4,
        interval: int = 3,
    ):
        self.orchestrator = orchestrator
        self.min_turns = min_turns
        self.interval = interval

    def should_rescore(self, turn_count: int) -> bool:
        return turn_count >= self.min_turns and turn_count % self.interval == 0

    async def score_conversation(
        self,
        turns: List[Mapping[str, Any]],
        lead_context: Optional[Dict[str, Any]] = None,
    ) -> ConversationScore:
        """
        Score a conversation across the six qualification dimensions.

        Never raises for provider or payload problems: both degrade to
        ``ConversationScore.neutral()``.

        Args:
            turns: Ordered {role, content} turns
            lead_context: Optional company, industry and company_size

        Returns:
            ConversationScore
        """
        prompt = PromptTemplates.build_scoring_prompt(turns, lead_context)

        try:
            response = await self.orchestrator.generate(
                prompt=prompt,
                system=PromptTemplates.get_system_prompt(PromptType.CONVERSATION_SCORING),
                temperature=self.SCORING_TEMPERATURE,
            )
        except AllProvidersExhausted as e:
            logger.error(f"Conversation scoring unavailable, using neutral defaults: {e}")
            return ConversationScore.neutral()

        try:
            score = parse_scoring_payload(response)
        except ScorePayloadMalformed as e:
            logger.warning(f"Failed to parse AI scoring response, using neutral defaults: {e}")
            return ConversationScore.neutral()

        logger.info(
            f"Conversation scored: total={score.total} "
            f"classification={score.classification.value} sentiment={score.sentiment}"
        )
        return score

    async def summarize(self, turns: List[Mapping[str, Any]]) -> Optional[str]:
        """
        Summarize the conversation in 2-3 sentences.

        Best effort: returns None when every provider is exhausted.
        """
        if not turns:
            return None

        try:
            summary = await self.orchestrator.generate(
                prompt=PromptTemplates.build_summary_prompt(turns),
                system=PromptTemplates.get_system_prompt(PromptType.CONVERSATION_SUMMARY),
                temperature=self.SUMMARY_TEMPERATURE,
            )
        except AllProvidersExhausted as e:
            logger.warning(f"Conversation summary unavailable: {e}")
            return None

        return summary.strip() or None
