"""
Lead qualification service.

Runs scoring passes over stored conversations and writes the outcome back:
the LeadScore upsert, the lead's score and classification, a guarded
status transition and a score_updated audit event.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.middleware.metrics import record_lead_score
from database.models import Lead, Message
from database.repositories import (
    ConversationRepository,
    LeadRepository,
    LeadScoreRepository,
)

from .conversation_scorer import ConversationScorer
from .scoring_model import ConversationScore, PIPELINE_OWNED_STATUSES

logger = logging.getLogger(__name__)


def lead_scoring_context(lead: Lead) -> Dict[str, Any]:
    """Firmographic fields passed to the scoring prompt."""
    return {
        "company": lead.company,
        "industry": lead.industry,
        "company_size": lead.company_size,
    }


def to_turns(messages: List[Message]) -> List[Dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in messages]


class LeadQualificationService:
    """
    Applies conversation scores to leads.

    Scoring passes never hold a database transaction across an AI call:
    the transcript is read, the session closed, the providers consulted,
    and only then are the results written in a fresh transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scorer: ConversationScorer,
    ):
        self.session_factory = session_factory
        self.scorer = scorer
        self._tasks: Set[asyncio.Task] = set()

    async def apply_score(self, lead_id: str, score: ConversationScore) -> Dict[str, Any]:
        """
        Persist one scoring pass for a lead.

        The status moves to qualified/qualifying only while the lead is still
        in a pipeline-owned status (new, qualifying, qualified).

        Returns:
            Dict with total, classification, status and whether the status was applied
        """
        total = score.total
        classification = score.classification.value
        status = score.status.value

        async with self.session_factory() as session:
            async with session.begin():
                await LeadScoreRepository(session).upsert(
                    lead_id,
                    dimensions=score.dimensions.to_dict(),
                    total=total,
                    reasoning=score.reasoning,
                )
                leads = LeadRepository(session)
                await leads.update_score(lead_id, total, classification)
                status_applied = await leads.update_status_if_in(
                    lead_id,
                    status,
                    [s.value for s in PIPELINE_OWNED_STATUSES],
                )
                await leads.record_event(lead_id, "score_updated", {
                    **score.dimensions.to_dict(),
                    "total": total,
                    "classification": classification,
                    "status": status if status_applied else None,
                    "is_fallback": score.is_fallback,
                })

        record_lead_score(total)
        if not status_applied:
            logger.info(f"Lead {lead_id} status left unchanged (owned by another workflow)")
        logger.info(f"Lead {lead_id} scored: total={total} classification={classification}")

        return {
            "total": total,
            "classification": classification,
            "status": status,
            "status_applied": status_applied,
        }

    async def _load(self, conversation_id: str):
        async with self.session_factory() as session:
            conv = await ConversationRepository(session).get_by_id(conversation_id)
            if conv is None:
                return None, None, []
            lead = await LeadRepository(session).get_by_id(conv.lead_id)
            messages = await ConversationRepository(session).get_messages(conversation_id)
            return conv, lead, to_turns(messages)

    async def _store_insights(
        self,
        conversation_id: str,
        sentiment: Optional[str] = None,
        summary: Optional[str] = None,
        status: Optional[str] = None,
    ):
        async with self.session_factory() as session:
            async with session.begin():
                repo = ConversationRepository(session)
                await repo.update_insights(conversation_id, sentiment=sentiment, summary=summary)
                if status:
                    await repo.set_status(conversation_id, status)

    async def run_scoring_pass(self, conversation_id: str) -> Optional[ConversationScore]:
        """
        Score the conversation, apply it to the lead, and refresh the
        conversation's sentiment and summary.

        Returns:
            The ConversationScore, or None if the conversation does not exist
        """
        conv, lead, turns = await self._load(conversation_id)
        if conv is None or lead is None:
            logger.warning(f"Scoring skipped, conversation {conversation_id} not found")
            return None

        score = await self.scorer.score_conversation(turns, lead_scoring_context(lead))
        await self.apply_score(lead.id, score)

        summary = await self.scorer.summarize(turns)
        await self._store_insights(
            conversation_id,
            sentiment=None if score.is_fallback else score.sentiment,
            summary=summary,
        )
        return score

    def schedule_scoring(self, conversation_id: str) -> asyncio.Task:
        """Run a scoring pass in the background; the caller never awaits it."""
        task = asyncio.create_task(self.run_scoring_pass(conversation_id))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background scoring pass failed: {error!r}")

    async def drain(self):
        """Wait for every scheduled scoring pass to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def complete_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        """
        Summarize, run a final scoring pass, and mark the conversation completed.

        Returns:
            Dict with summary and score, or None if the conversation does not exist
        """
        conv, lead, turns = await self._load(conversation_id)
        if conv is None or lead is None:
            return None

        summary = await self.scorer.summarize(turns)
        score = await self.scorer.score_conversation(turns, lead_scoring_context(lead))
        outcome = await self.apply_score(lead.id, score)

        await self._store_insights(
            conversation_id,
            sentiment=None if score.is_fallback else score.sentiment,
            summary=summary,
            status="completed",
        )
        logger.info(f"Conversation {conversation_id} completed")

        return {
            "conversation_id": conversation_id,
            "lead_id": lead.id,
            "status": "completed",
            "summary": summary,
            "score": {**score.to_dict(), **outcome},
        }

    async def get_lead_score(self, lead_id: str) -> Optional[Dict[str, Any]]:
        async with self.session_factory() as session:
            row = await LeadScoreRepository(session).get_by_lead(lead_id)
            if row is None:
                return None
            return {
                "lead_id": row.lead_id,
                "company_fit": row.company_fit,
                "budget_alignment": row.budget_alignment,
                "timeline": row.timeline,
                "authority": row.authority,
                "need": row.need,
                "engagement": row.engagement,
                "total": row.total,
                "reasoning": row.reasoning,
                "updated_at": row.updated_at.isoformat() if row.updated_at else None,
            }
