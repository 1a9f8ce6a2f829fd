"""
proposal_store.py — Persistence boundary for proposal snapshots.

The pricing core never touches storage: routes load a snapshot, hand it to
the engines and write the result back through a ProposalStore.  Writes carry
the version the caller read; a mismatch means someone else saved first and
the write is rejected with ConcurrentModification.  A successful create or
save is committed before it returns, so callers may announce it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.orm_models import ProposalRecord, gen_uuid
from app.models.proposal_schema import Proposal
from app.services.errors import ConcurrentModification, ProposalNotFound

logger = logging.getLogger("wellness-store")


class ProposalStore(ABC):
    """Load / create / versioned-save of proposal snapshots."""

    @abstractmethod
    async def get(self, proposal_id: str) -> Proposal:
        """Return the stored snapshot; raise ProposalNotFound."""

    @abstractmethod
    async def create(self, proposal: Proposal, short_link: Optional[str] = None) -> Proposal:
        """Persist and commit a new proposal at version 1, then return it."""

    @abstractmethod
    async def save(self, proposal: Proposal, expected_version: int) -> Proposal:
        """Replace and commit the snapshot if its stored version is still ``expected_version``."""


def _record_fields(proposal: Proposal) -> dict:
    return {
        "client_name": proposal.client_name,
        "client_email": proposal.client_email,
        "status": proposal.status,
        "proposal_type": proposal.proposal_type,
        "total_event_cost": proposal.summary.total_event_cost,
        "document": proposal.model_dump(mode="json"),
    }


class SqlProposalStore(ProposalStore):
    """ProposalStore over the ``proposals`` table (async SQLAlchemy)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, proposal_id: str) -> Proposal:
        record = await self.session.get(ProposalRecord, proposal_id)
        if record is None:
            raise ProposalNotFound(f"Proposal '{proposal_id}' not found")
        proposal = Proposal.model_validate(record.document)
        return proposal.model_copy(update={"id": record.id, "version": record.version})

    async def create(self, proposal: Proposal, short_link: Optional[str] = None) -> Proposal:
        stored = proposal.model_copy(update={"id": proposal.id or gen_uuid(), "version": 1})
        record = ProposalRecord(id=stored.id, version=1, short_link=short_link, **_record_fields(stored))
        self.session.add(record)
        await self.session.commit()
        logger.info("Created proposal", extra={"proposal_id": stored.id})
        return stored

    async def save(self, proposal: Proposal, expected_version: int) -> Proposal:
        stored = proposal.model_copy(update={"version": expected_version + 1})
        result = await self.session.execute(
            update(ProposalRecord)
            .where(ProposalRecord.id == proposal.id, ProposalRecord.version == expected_version)
            .values(version=stored.version, **_record_fields(stored))
        )
        if result.rowcount == 0:
            if await self.session.get(ProposalRecord, proposal.id) is None:
                raise ProposalNotFound(f"Proposal '{proposal.id}' not found")
            raise ConcurrentModification(
                f"Proposal '{proposal.id}' was modified by another request; reload and retry"
            )
        await self.session.commit()
        logger.info(
            "Saved proposal at version %d", stored.version,
            extra={"proposal_id": proposal.id},
        )
        return stored
