"""
SQLAlchemy ORM models for the LeadFlow qualification engine.

Only the records the qualification engine reads and writes: leads,
conversations, messages, lead scores, lead events and rate-limit tickets.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Integer, DateTime, Text, ForeignKey, JSON, Index,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)
    industry = Column(String(100), nullable=True)
    company_size = Column(String(50), nullable=True)
    source = Column(String(50), nullable=False, default="widget")
    # new, qualifying, qualified, unqualified, meeting_scheduled, closed
    status = Column(String(50), nullable=False, default="new")
    score = Column(Integer, default=0)
    classification = Column(String(50), default="cold")  # hot, warm, cold, unqualified
    workspace_id = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    metadata_json = Column(JSON, default=dict)

    conversations = relationship("Conversation", back_populates="lead", cascade="all, delete-orphan")
    lead_score = relationship("LeadScore", back_populates="lead", uselist=False, cascade="all, delete-orphan")
    events = relationship("LeadEvent", back_populates="lead", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_lead_workspace_status", "workspace_id", "status"),
    )


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=_uuid)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(50), nullable=False, default="active")  # active, completed, abandoned
    summary = Column(Text, nullable=True)
    sentiment = Column(String(50), default="neutral")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    lead = relationship("Lead", back_populates="conversations")
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_uuid)
    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    metadata_json = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    conversation = relationship("Conversation", back_populates="messages")


class LeadScore(Base):
    """Current score for a lead. Exactly one row per lead, replaced on every pass."""
    __tablename__ = "lead_scores"

    id = Column(String(36), primary_key=True, default=_uuid)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, unique=True)
    company_fit = Column(Integer, default=0)
    budget_alignment = Column(Integer, default=0)
    timeline = Column(Integer, default=0)
    authority = Column(Integer, default=0)
    need = Column(Integer, default=0)
    engagement = Column(Integer, default=0)
    total = Column(Integer, default=0)
    reasoning = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    lead = relationship("Lead", back_populates="lead_score")


class LeadEvent(Base):
    """Append-only lead history (score_updated, status_changed)."""
    __tablename__ = "lead_events"

    id = Column(String(36), primary_key=True, default=_uuid)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(30), nullable=False)
    details_json = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    lead = relationship("Lead", back_populates="events")


class RateLimitRecord(Base):
    """One admitted attempt; live while expires_at > now."""
    __tablename__ = "rate_limit_records"

    id = Column(String(36), primary_key=True, default=_uuid)
    identifier = Column(String(512), nullable=False)  # "<key_prefix>:<caller>"
    token = Column(String(64), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_rate_limit_identifier_expiry", "identifier", "expires_at"),
    )
