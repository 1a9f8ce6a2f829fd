"""ORM Models for the proposal service — SQLAlchemy 2.0"""
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import JSON, Integer, String, Text, DateTime, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from app.db import Base


def gen_uuid():
    return str(uuid.uuid4())


# JSONB on Postgres, plain JSON elsewhere
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


# ── PROPOSALS ─────────────────────────────────────────────────────────────────
class ProposalRecord(Base):
    """
    One proposal snapshot.  ``document`` holds the full Proposal model dump;
    the scalar columns duplicate the fields list views filter on.
    """
    __tablename__ = "proposals"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[Optional[str]] = mapped_column(String(320))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    proposal_type: Mapped[str] = mapped_column(String(50), default="event")
    total_event_cost: Mapped[float] = mapped_column(default=0.0)
    short_link: Mapped[Optional[str]] = mapped_column(Text)
    document: Mapped[dict] = mapped_column(JSONDocument, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_proposals_status", "status"),
        Index("ix_proposals_client_name", "client_name"),
    )
