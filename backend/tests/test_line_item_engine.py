"""
test_line_item_engine.py — Unit tests for LineItemResolver.

Tests cover:
  - one line per slot plus one per custom item, in stored order
  - selected pricing option overriding the slot's base cost
  - out-of-range / missing selections falling back silently
  - legacy list-shaped locations skipped
  - zero-cost and TBD-dated slots
"""

import pytest

from app.models.proposal_schema import (
    CustomLineItem, DaySchedule, PricingOption, Proposal, ServiceSlot, slot_key,
)
from app.services.line_item_engine import selected_option, to_cents


def _proposal(**kwargs):
    fields = dict(
        client_name="Initech",
        services={
            "HQ": {
                "2025-03-03": DaySchedule(services=[
                    ServiceSlot(service_type="massage", service_cost=500.0, pro_revenue=200.0),
                    ServiceSlot(service_type="facial", service_cost=250.0),
                ]),
            },
        },
    )
    fields.update(kwargs)
    return Proposal(**fields)


class TestResolve:

    def test_one_line_per_slot_and_custom_item(self, resolver):
        proposal = _proposal(custom_line_items=[CustomLineItem(name="Travel", amount=150.0)])
        items = resolver.resolve(proposal)
        assert len(items) == 3
        assert [i["kind"] for i in items] == ["service", "service", "custom"]
        assert [i["amount"] for i in items] == [500.0, 250.0, 150.0]

    def test_description_uses_display_name_and_date(self, resolver):
        items = resolver.resolve(_proposal())
        assert items[0]["description"] == "Chair Massage at HQ on March 3, 2025"
        assert items[0]["key"] == "HQ-2025-03-03-0"

    def test_amount_cents(self, resolver):
        items = resolver.resolve(_proposal())
        assert items[0]["amount_cents"] == 50000
        assert to_cents(19.99) == 1999

    def test_custom_item_prefers_description(self, resolver):
        proposal = _proposal(custom_line_items=[
            CustomLineItem(name="Travel", description="Travel surcharge", amount=75.0),
            CustomLineItem(name="Parking", amount=20.0),
        ])
        items = resolver.resolve(proposal)
        assert items[2]["description"] == "Travel surcharge"
        assert items[3]["description"] == "Parking"

    def test_selected_option_overrides_cost(self, resolver):
        key = slot_key("HQ", "2025-03-03", 0)
        proposal = _proposal(
            pricing_options={key: [
                PricingOption(name="Option 1", service_cost=500.0),
                PricingOption(name="Option 2", service_cost=625.0, pro_revenue=260.0),
            ]},
            selected_options={key: 1},
        )
        items = resolver.resolve(proposal)
        assert items[0]["amount"] == 625.0
        assert items[0]["pro_revenue"] == 260.0

    def test_out_of_range_selection_falls_back(self, resolver):
        key = slot_key("HQ", "2025-03-03", 0)
        proposal = _proposal(
            pricing_options={key: [PricingOption(name="Option 1", service_cost=999.0)]},
            selected_options={key: 5},
        )
        items = resolver.resolve(proposal)
        assert items[0]["amount"] == 500.0
        # maps are left untouched
        assert proposal.selected_options == {key: 5}

    def test_selection_without_options_falls_back(self, resolver):
        key = slot_key("HQ", "2025-03-03", 1)
        proposal = _proposal(selected_options={key: 0})
        assert selected_option(proposal, "HQ", "2025-03-03", 1) is None
        assert resolver.resolve(proposal)[1]["amount"] == 250.0

    def test_legacy_location_skipped(self, resolver, caplog):
        proposal = _proposal()
        proposal.services["Old Site"] = [{"service_type": "massage", "service_cost": 100}]
        with caplog.at_level("WARNING", logger="wellness-line-items"):
            items = resolver.resolve(proposal)
        assert len(items) == 2
        assert "legacy" in caplog.text

    def test_zero_cost_slot_still_listed(self, resolver):
        proposal = _proposal(services={
            "HQ": {"TBD": DaySchedule(services=[ServiceSlot(service_type="nails", service_cost=0.0)])},
        })
        items = resolver.resolve(proposal)
        assert len(items) == 1
        assert items[0]["amount"] == 0.0
        assert items[0]["description"] == "Nail Services at HQ on TBD"

    def test_empty_proposal(self, resolver):
        assert resolver.resolve(Proposal(client_name="Empty")) == []

    def test_stored_order(self, resolver):
        proposal = _proposal()
        proposal.services["Annex"] = {
            "2025-01-01": DaySchedule(services=[ServiceSlot(service_type="hair", service_cost=10.0)]),
        }
        keys = [i["key"] for i in resolver.resolve(proposal)]
        assert keys == ["HQ-2025-03-03-0", "HQ-2025-03-03-1", "Annex-2025-01-01-0"]
