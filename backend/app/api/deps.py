"""FastAPI dependency injection — storage and outbound collaborators."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.services.notifications import ProposalNotifier
from app.services.proposal_editor import ProposalEditor
from app.services.proposal_store import ProposalStore, SqlProposalStore
from app.services.short_links import ShortLinkClient
from app.services.staffing_engine import StaffingEngine


async def get_store(db: AsyncSession = Depends(get_db)) -> ProposalStore:
    return SqlProposalStore(db)


def get_short_links() -> ShortLinkClient:
    return ShortLinkClient()


def get_notifier() -> ProposalNotifier:
    return ProposalNotifier()


def get_editor() -> ProposalEditor:
    return ProposalEditor()


def get_staffing_engine() -> StaffingEngine:
    return StaffingEngine()
