"""
Proposal API Routes

POST /api/proposals                   — assemble and store a new proposal
GET  /api/proposals/{id}              — fetch a stored proposal
POST /api/proposals/{id}/edit         — apply an edit batch (all or nothing)
GET  /api/proposals/{id}/line-items   — flattened billable lines for invoicing
POST /api/pricing/summary             — line items + summary for an ad-hoc snapshot
"""
import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.api.deps import get_editor, get_notifier, get_short_links, get_store
from app.models.orm_models import gen_uuid
from app.models.proposal_schema import Proposal
from app.services.errors import ConcurrentModification
from app.services.line_item_engine import LineItemResolver
from app.services.notifications import ProposalNotifier
from app.services.proposal_assembler import assemble_proposal
from app.services.proposal_editor import ProposalEditor
from app.services.proposal_store import ProposalStore
from app.services.short_links import ShortLinkClient
from app.services.summary_engine import recalculate_proposal

router = APIRouter(prefix="/api", tags=["Proposals"])
logger = logging.getLogger("wellness-proposal-routes")


# ── Pydantic Models ─────────────────────────────────────────────────────────

class ProposalCreateRequest(BaseModel):
    client_name: str = ""
    client_email: Optional[str] = None
    client_logo_url: Optional[str] = None
    events: List[Dict[str, Any]] = Field(default_factory=list)
    customization: Dict[str, Any] = Field(default_factory=dict)
    gratuity_type: Optional[str] = None      # "percentage" | "flat"
    gratuity_value: Optional[float] = None
    discount_percent: float = 0.0
    proposal_type: Optional[str] = None


class EditRequest(BaseModel):
    operations: List[Dict[str, Any]] = Field(default_factory=list)
    expected_version: Optional[int] = None


class SummaryRequest(BaseModel):
    proposal: Proposal


# ── Routes ──────────────────────────────────────────────────────────────────

@router.post("/proposals", status_code=status.HTTP_201_CREATED)
async def create_proposal(
    body: ProposalCreateRequest,
    store: ProposalStore = Depends(get_store),
    short_links: ShortLinkClient = Depends(get_short_links),
    notifier: ProposalNotifier = Depends(get_notifier),
):
    proposal = assemble_proposal(body.model_dump())
    proposal.id = gen_uuid()
    link = await short_links.mint("proposal", proposal.id)
    stored = await store.create(proposal, short_link=link)
    notifier.notify("created", stored, short_link=link)
    return {"proposal": stored.model_dump(mode="json"), "short_link": link}


@router.get("/proposals/{proposal_id}")
async def get_proposal(proposal_id: str, store: ProposalStore = Depends(get_store)):
    proposal = await store.get(proposal_id)
    return {"proposal": proposal.model_dump(mode="json")}


@router.post("/proposals/{proposal_id}/edit")
async def edit_proposal(
    proposal_id: str,
    body: EditRequest,
    store: ProposalStore = Depends(get_store),
    editor: ProposalEditor = Depends(get_editor),
    notifier: ProposalNotifier = Depends(get_notifier),
):
    current = await store.get(proposal_id)
    if body.expected_version is not None and body.expected_version != current.version:
        raise ConcurrentModification(
            f"Proposal '{proposal_id}' is at version {current.version}, "
            f"not {body.expected_version}; reload and retry"
        )

    start = time.perf_counter()
    updated, changes = editor.apply_operations(current, body.operations)
    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    logger.info(
        "Applied %d operations", len(body.operations),
        extra={"proposal_id": proposal_id, "duration_ms": duration_ms},
    )

    stored = await store.save(updated, expected_version=current.version)
    notifier.notify("edited", stored, changes=changes)
    return {"proposal": stored.model_dump(mode="json"), "changes": changes}


@router.get("/proposals/{proposal_id}/line-items")
async def proposal_line_items(proposal_id: str, store: ProposalStore = Depends(get_store)):
    proposal = await store.get(proposal_id)
    return {
        "proposal_id": proposal.id,
        "line_items": LineItemResolver().resolve(proposal),
        "summary": proposal.summary.model_dump(),
    }


@router.post("/pricing/summary")
async def pricing_summary(body: SummaryRequest):
    proposal = recalculate_proposal(body.proposal)
    return {
        "line_items": LineItemResolver().resolve(proposal),
        "summary": proposal.summary.model_dump(),
    }
