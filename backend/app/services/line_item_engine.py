"""
line_item_engine.py — Flattens a proposal schedule into billable line items.

Walks services[location][date] in stored order, resolves each slot's
effective price (its own base cost, or the selected pricing option's cost)
and appends the proposal's custom line items.  Historical proposals that
store a location as a flat list are skipped with a warning rather than
failing the whole computation.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from app.models.proposal_schema import PricingOption, Proposal, ServiceSlot, slot_key
from app.services.schedule_dates import format_date
from app.services.service_catalog import display_name

logger = logging.getLogger("wellness-line-items")


def iter_slots(proposal: Proposal) -> Iterator[Tuple[str, str, int, ServiceSlot]]:
    """Yield (location, date, position, slot) in location → date → position order."""
    for location, entry in proposal.services.items():
        if not isinstance(entry, dict):
            logger.warning(
                "Skipping legacy list-shaped schedule entry for location %r", location,
                extra={"proposal_id": proposal.id},
            )
            continue
        for date, day in entry.items():
            for index, slot in enumerate(day.services):
                yield location, date, index, slot


def selected_option(proposal: Proposal, location: str, date: str, index: int) -> Optional[PricingOption]:
    """
    The pricing option selected for a slot, or None.

    None whenever the selection is missing, the option list is missing, the
    index is out of range or the option carries no cost.  Never mutates the
    proposal's maps.
    """
    key = slot_key(location, date, index)
    selected_idx = proposal.selected_options.get(key)
    options = proposal.pricing_options.get(key)
    if selected_idx is None or not options:
        return None
    if not 0 <= selected_idx < len(options):
        return None
    option = options[selected_idx]
    if option.service_cost is None:
        return None
    return option


def describe_slot(service_type: str, location: str, date: str) -> str:
    return f"{display_name(service_type)} at {location} on {format_date(date)}"


class LineItemResolver:
    """Produces the ordered line-item list billing integrations consume."""

    def resolve(self, proposal: Proposal) -> List[Dict[str, Any]]:
        """
        One line per ServiceSlot (location → date → position order) followed by
        every custom line item in stored order.

        Each line: description, amount (USD), amount_cents, quantity, kind,
        key (composite key, service lines only), pro_revenue and appointments
        (service lines only, used by the summary).
        """
        items: List[Dict[str, Any]] = []

        for location, date, index, slot in iter_slots(proposal):
            amount = float(slot.service_cost or 0.0)
            pro_revenue = float(slot.pro_revenue or 0.0)
            option = selected_option(proposal, location, date, index)
            if option is not None:
                amount = float(option.service_cost)
                if option.pro_revenue is not None:
                    pro_revenue = float(option.pro_revenue)

            appointments = slot.total_appointments
            if option is not None and isinstance(option.total_appointments, int):
                appointments = option.total_appointments

            items.append({
                "kind": "service",
                "key": slot_key(location, date, index),
                "description": describe_slot(slot.service_type, location, date),
                "amount": round(amount, 2),
                "amount_cents": to_cents(amount),
                "quantity": 1,
                "pro_revenue": round(pro_revenue, 2),
                "appointments": appointments if isinstance(appointments, int) else 0,
            })

        for custom in proposal.custom_line_items:
            amount = float(custom.amount or 0.0)
            items.append({
                "kind": "custom",
                "key": None,
                "description": custom.description or custom.name,
                "amount": round(amount, 2),
                "amount_cents": to_cents(amount),
                "quantity": 1,
                "pro_revenue": 0.0,
                "appointments": 0,
            })

        return items


def to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))
