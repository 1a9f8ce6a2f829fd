"""
conftest.py — Shared pytest fixtures for the proposal service test suite.

Engine tests are pure unit tests.  API tests swap the SQL store, short-link
client and notifier for the in-memory doubles defined here, so no database,
broker or network is needed.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def staffing_engine():
    """StaffingEngine (stateless)."""
    from app.services.staffing_engine import StaffingEngine
    return StaffingEngine()


@pytest.fixture(scope="session")
def pricing_engine():
    """PricingEngine (stateless)."""
    from app.services.pricing_engine import PricingEngine
    return PricingEngine()


@pytest.fixture(scope="session")
def resolver():
    from app.services.line_item_engine import LineItemResolver
    return LineItemResolver()


@pytest.fixture(scope="session")
def summary_engine():
    from app.services.summary_engine import FinancialSummaryEngine
    return FinancialSummaryEngine()


@pytest.fixture(scope="session")
def editor():
    """ProposalEditor with the default pricing engine."""
    from app.services.proposal_editor import ProposalEditor
    return ProposalEditor()


# ---------------------------------------------------------------------------
# Sample proposals
# ---------------------------------------------------------------------------

@pytest.fixture
def creation_payload():
    """
    Two locations, three events:
      HQ  2025-03-03  massage (defaults: 4h × 2 pros × $135 = $1,080)
      HQ  2025-03-03  headshot (defaults: 5h × 1 pro × $400 + 25 × $40 = $3,000)
      Annex  TBD      nails with an explicit 2h × 1 pro
    """
    return {
        "client_name": "Acme Corp",
        "client_email": "events@acme.com",
        "events": [
            {"service_type": "massage", "location": "HQ", "date": "2025-03-03",
             "office_address": "1 Main St"},
            {"service_type": "headshot", "location": "HQ", "date": "2025-03-03"},
            {"service_type": "nails", "location": "Annex", "total_hours": 2, "num_pros": 1},
        ],
    }


@pytest.fixture
def sample_proposal(creation_payload):
    """Calculated proposal built from ``creation_payload``."""
    from app.services.proposal_assembler import assemble_proposal
    proposal = assemble_proposal(creation_payload)
    proposal.id = "prop-1"
    proposal.version = 1
    return proposal


@pytest.fixture
def three_slot_proposal():
    """
    One location / one date with three explicitly priced slots
    (costs 100, 200, 300) and pricing options on positions 1 and 2.
    Used by removal / re-keying tests.
    """
    from app.models.proposal_schema import (
        DaySchedule, PricingOption, Proposal, ServiceSlot, slot_key,
    )
    from app.services.summary_engine import recalculate_proposal

    slots = [
        ServiceSlot(service_type="massage", service_cost=100.0),
        ServiceSlot(service_type="facial", service_cost=200.0),
        ServiceSlot(service_type="nails", service_cost=300.0),
    ]
    proposal = Proposal(
        id="prop-3",
        version=4,
        client_name="Globex",
        locations=["A"],
        services={"A": {"2025-03-03": DaySchedule(services=slots)}},
        pricing_options={
            slot_key("A", "2025-03-03", 1): [
                PricingOption(name="Option 1", service_cost=200.0),
                PricingOption(name="Option 2", service_cost=250.0),
            ],
            slot_key("A", "2025-03-03", 2): [
                PricingOption(name="Option 1", service_cost=300.0),
                PricingOption(name="Option 2", service_cost=375.0),
            ],
        },
        selected_options={
            slot_key("A", "2025-03-03", 1): 0,
            slot_key("A", "2025-03-03", 2): 1,
        },
    )
    return recalculate_proposal(proposal)


# ---------------------------------------------------------------------------
# Collaborator doubles for API tests
# ---------------------------------------------------------------------------

class InMemoryProposalStore:
    """ProposalStore keeping snapshots in a dict, with the same version check."""

    def __init__(self):
        self.records = {}
        self.short_links = {}

    async def get(self, proposal_id):
        from app.services.errors import ProposalNotFound
        if proposal_id not in self.records:
            raise ProposalNotFound(f"Proposal '{proposal_id}' not found")
        return self.records[proposal_id].model_copy(deep=True)

    async def create(self, proposal, short_link=None):
        stored = proposal.model_copy(deep=True, update={"version": 1})
        self.records[stored.id] = stored
        self.short_links[stored.id] = short_link
        return stored.model_copy(deep=True)

    async def save(self, proposal, expected_version):
        from app.services.errors import ConcurrentModification, ProposalNotFound
        current = self.records.get(proposal.id)
        if current is None:
            raise ProposalNotFound(f"Proposal '{proposal.id}' not found")
        if current.version != expected_version:
            raise ConcurrentModification(f"Proposal '{proposal.id}' was modified by another request")
        stored = proposal.model_copy(deep=True, update={"version": expected_version + 1})
        self.records[stored.id] = stored
        return stored.model_copy(deep=True)


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, event, proposal, changes=None, short_link=None):
        self.sent.append({"event": event, "proposal_id": proposal.id, "changes": changes or []})
        return self.sent[-1]


@pytest.fixture
def memory_store():
    return InMemoryProposalStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(memory_store, notifier):
    """TestClient with storage, short links and notifications overridden."""
    from fastapi.testclient import TestClient
    from app.main import app
    from app.api.deps import get_notifier, get_short_links, get_store
    from app.services.short_links import ShortLinkClient

    app.dependency_overrides[get_store] = lambda: memory_store
    app.dependency_overrides[get_short_links] = lambda: ShortLinkClient(
        base_url="https://proposals.test", api_url=""
    )
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()
