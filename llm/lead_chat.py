"""
Streaming lead-qualification chat.

Stores the lead's message, streams the assistant reply through the provider
orchestrator, stores the reply, and hands the conversation to the scoring
pipeline on the configured cadence.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.repositories import ConversationRepository, LeadRepository
from lead_scoring.qualification import LeadQualificationService, to_turns

from .exceptions import AllProvidersExhausted, ProviderCallFailed
from .orchestrator import ProviderOrchestrator
from .prompt_templates import PromptTemplates

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I'm having trouble connecting right now. Please try again in a moment."
CHAT_TEMPERATURE = 0.7


class ConversationNotFound(LookupError):
    """The conversation (or its lead) does not exist."""


async def _single(text: str) -> AsyncIterator[str]:
    yield text


class LeadChatService:
    """Conversational front end of the qualification engine."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        orchestrator: ProviderOrchestrator,
        qualification: LeadQualificationService,
        brand_name: str = "LeadFlow AI",
    ):
        self.session_factory = session_factory
        self.orchestrator = orchestrator
        self.qualification = qualification
        self.brand_name = brand_name

    async def _record_user_turn(
        self, conversation_id: str, message: str
    ) -> Tuple[Dict[str, Any], List[Dict[str, str]]]:
        async with self.session_factory() as session:
            async with session.begin():
                conversations = ConversationRepository(session)
                conv = await conversations.get_by_id(conversation_id)
                if conv is None:
                    raise ConversationNotFound(conversation_id)
                lead = await LeadRepository(session).get_by_id(conv.lead_id)
                if lead is None:
                    raise ConversationNotFound(conversation_id)

                await conversations.add_message(conversation_id, "user", message)
                history = to_turns(await conversations.get_messages(conversation_id))

                lead_context = {
                    "name": lead.name,
                    "company": lead.company,
                    "industry": lead.industry,
                    "source": lead.source,
                    "score": lead.score,
                }
        return lead_context, history

    async def reply(self, conversation_id: str, message: str) -> AsyncIterator[str]:
        """
        Store the user's message and open the streamed assistant reply.

        Provider exhaustion is not an error here: the stream carries a short
        apology instead, which is neither stored nor counted for scoring.

        Raises:
            ConversationNotFound: If the conversation or its lead does not exist
        """
        lead_context, history = await self._record_user_turn(conversation_id, message)
        system = PromptTemplates.build_chat_system_prompt(lead_context, self.brand_name)

        try:
            chunks = await self.orchestrator.stream(
                messages=history,
                system=system,
                temperature=CHAT_TEMPERATURE,
            )
        except AllProvidersExhausted as e:
            logger.error(f"Chat reply unavailable for conversation {conversation_id}: {e}")
            return _single(FALLBACK_REPLY)

        return self._relay(conversation_id, chunks)

    async def _relay(self, conversation_id: str, chunks: AsyncIterator[str]) -> AsyncIterator[str]:
        parts: List[str] = []
        try:
            async for chunk in chunks:
                parts.append(chunk)
                yield chunk
        except ProviderCallFailed as e:
            logger.error(f"Reply for conversation {conversation_id} cut short: {e}")

        reply = "".join(parts)
        if reply:
            await self._record_assistant_turn(conversation_id, reply)

    async def _record_assistant_turn(self, conversation_id: str, reply: str):
        async with self.session_factory() as session:
            async with session.begin():
                conversations = ConversationRepository(session)
                await conversations.add_message(conversation_id, "assistant", reply)
                count = await conversations.count_messages(conversation_id)

        if self.qualification.scorer.should_rescore(count):
            logger.info(f"Scheduling scoring pass for conversation {conversation_id} at {count} messages")
            self.qualification.schedule_scoring(conversation_id)

    async def register_lead(self, email: str, **fields: Any) -> Tuple[str, str]:
        """Create a lead with its first conversation. Returns (lead_id, conversation_id)."""
        async with self.session_factory() as session:
            async with session.begin():
                lead = await LeadRepository(session).create(email=email, **fields)
                conv = await ConversationRepository(session).create(lead.id)
                logger.info(f"Lead {lead.id} registered from {lead.source}")
                return lead.id, conv.id

    async def start_conversation(self, lead_id: str) -> Optional[str]:
        """Open a new conversation for an existing lead; None if the lead is unknown."""
        async with self.session_factory() as session:
            async with session.begin():
                lead = await LeadRepository(session).get_by_id(lead_id)
                if lead is None:
                    return None
                conv = await ConversationRepository(session).create(lead_id)
                return conv.id
