"""
Repository classes for the LeadFlow data access layer.

Each repository encapsulates the queries for a specific model.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, func, delete, update, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    Conversation, Message, Lead, LeadEvent, LeadScore, RateLimitRecord,
)

logger = logging.getLogger(__name__)


class ConversationRepository:
    """Data access for conversations and messages."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, lead_id: str, **kwargs) -> Conversation:
        conv = Conversation(lead_id=lead_id, **kwargs)
        self.session.add(conv)
        await self.session.flush()
        return conv

    async def get_by_id(self, conversation_id: str) -> Optional[Conversation]:
        result = await self.session.execute(
            select(Conversation).where(Conversation.id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        metadata_json: Optional[Dict] = None,
    ) -> Message:
        msg = Message(
            conversation_id=conversation_id,
            role=role,
            content=content,
            metadata_json=metadata_json or {},
        )
        self.session.add(msg)
        await self.session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(updated_at=datetime.utcnow())
        )
        await self.session.flush()
        return msg

    async def get_messages(self, conversation_id: str) -> List[Message]:
        result = await self.session.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(result.scalars().all())

    async def count_messages(self, conversation_id: str) -> int:
        result = await self.session.execute(
            select(func.count(Message.id)).where(Message.conversation_id == conversation_id)
        )
        return result.scalar() or 0

    async def update_insights(
        self,
        conversation_id: str,
        sentiment: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> None:
        """Store the latest sentiment and summary; None leaves a field untouched."""
        values: Dict[str, Any] = {"updated_at": datetime.utcnow()}
        if sentiment is not None:
            values["sentiment"] = sentiment
        if summary is not None:
            values["summary"] = summary
        await self.session.execute(
            update(Conversation).where(Conversation.id == conversation_id).values(**values)
        )
        await self.session.flush()

    async def set_status(self, conversation_id: str, status: str) -> None:
        await self.session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(status=status, updated_at=datetime.utcnow())
        )
        await self.session.flush()


class LeadRepository:
    """Data access for leads and lead events."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Lead:
        lead = Lead(**kwargs)
        self.session.add(lead)
        await self.session.flush()
        self.session.add(LeadEvent(
            lead_id=lead.id,
            event_type="created",
            details_json={"source": lead.source},
        ))
        await self.session.flush()
        return lead

    async def get_by_id(self, lead_id: str) -> Optional[Lead]:
        result = await self.session.execute(
            select(Lead).where(Lead.id == lead_id)
        )
        return result.scalar_one_or_none()

    async def update_score(self, lead_id: str, score: int, classification: str) -> None:
        await self.session.execute(
            update(Lead)
            .where(Lead.id == lead_id)
            .values(score=score, classification=classification, updated_at=datetime.utcnow())
        )
        await self.session.flush()

    async def update_status_if_in(
        self,
        lead_id: str,
        status: str,
        allowed_current: Iterable[str],
    ) -> bool:
        """
        Conditionally set status in a single statement.

        Returns True if the lead's current status was in ``allowed_current``
        and the row was updated.
        """
        result = await self.session.execute(
            update(Lead)
            .where(Lead.id == lead_id, Lead.status.in_(list(allowed_current)))
            .values(status=status, updated_at=datetime.utcnow())
        )
        await self.session.flush()
        return (result.rowcount or 0) > 0

    async def record_event(self, lead_id: str, event_type: str, details: Dict[str, Any]) -> LeadEvent:
        entry = LeadEvent(lead_id=lead_id, event_type=event_type, details_json=details)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_events(self, lead_id: str, event_type: Optional[str] = None) -> List[LeadEvent]:
        q = select(LeadEvent).where(LeadEvent.lead_id == lead_id)
        if event_type:
            q = q.where(LeadEvent.event_type == event_type)
        result = await self.session.execute(q.order_by(LeadEvent.created_at.asc()))
        return list(result.scalars().all())


class LeadScoreRepository:
    """Data access for the one-per-lead score row."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert(self):
        dialect = self.session.bind.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(LeadScore)
        if dialect == "sqlite":
            return sqlite.insert(LeadScore)
        raise NotImplementedError(f"Lead score upsert not supported on {dialect}")

    async def upsert(self, lead_id: str, dimensions: Dict[str, int], total: int, reasoning: str) -> None:
        """Insert or fully replace the lead's score in one statement."""
        now = datetime.utcnow()
        values = {**dimensions, "total": total, "reasoning": reasoning, "updated_at": now}
        stmt = self._insert().values(id=str(uuid.uuid4()), lead_id=lead_id, **values)
        stmt = stmt.on_conflict_do_update(index_elements=[LeadScore.lead_id], set_=values)
        await self.session.execute(stmt)
        await self.session.flush()

    async def get_by_lead(self, lead_id: str) -> Optional[LeadScore]:
        result = await self.session.execute(
            select(LeadScore)
            .where(LeadScore.lead_id == lead_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


class RateLimitRepository:
    """Data access for rate-limit tickets. Callers own the transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_identifier(self, identifier: str) -> None:
        """
        Serialize checks for one identifier until the transaction ends.

        PostgreSQL uses a transaction-scoped advisory lock. SQLite
        transactions already hold the database write lock (BEGIN IMMEDIATE).
        """
        if self.session.bind.dialect.name == "postgresql":
            await self.session.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": identifier},
            )

    async def purge_expired(self, identifier: str, now: datetime) -> int:
        result = await self.session.execute(
            delete(RateLimitRecord).where(
                RateLimitRecord.identifier == identifier,
                RateLimitRecord.expires_at <= now,
            )
        )
        return result.rowcount or 0

    async def count_live(self, identifier: str, now: datetime) -> int:
        result = await self.session.execute(
            select(func.count(RateLimitRecord.id)).where(
                RateLimitRecord.identifier == identifier,
                RateLimitRecord.expires_at > now,
            )
        )
        return result.scalar() or 0

    async def add_ticket(self, identifier: str, expires_at: datetime) -> RateLimitRecord:
        record = RateLimitRecord(
            identifier=identifier,
            token=f"attempt_{uuid.uuid4()}",
            expires_at=expires_at,
        )
        self.session.add(record)
        await self.session.flush()
        return record
