"""
summary_engine.py — Financial summary for a proposal.

Rollup (all amounts USD, rounded to cents):
    subtotal_before_gratuity = Σ line item amounts
    discount_amount          = subtotal × discount% / 100
    gratuity_amount          = subtotal × gratuity% / 100   (percentage, on the pre-discount subtotal)
                             = value                        (flat)
    total_event_cost         = subtotal − discount + gratuity
    total_pro_revenue        = Σ staff payout per slot
    net_profit               = (total_event_cost − gratuity) − pro_revenue − overhead
    profit_margin            = net_profit / (total_event_cost − gratuity) × 100

Gratuity is a pass-through to staff: it is excluded from both the revenue and
the payout side of profit, everywhere.
"""

import logging
from typing import Any, Dict, List, Optional

from app.models.proposal_schema import GratuityConfig, Proposal, ProposalSummary
from app.services.errors import InvalidAdjustment
from app.services.line_item_engine import LineItemResolver, iter_slots
from app.services.pricing_engine import PricingEngine
from app.services.schedule_dates import sort_event_dates

logger = logging.getLogger("wellness-summary")


class FinancialSummaryEngine:
    """Turns flattened line items plus adjustments into a ProposalSummary."""

    def gratuity_amount(self, subtotal: float, gratuity: Optional[GratuityConfig]) -> float:
        if gratuity is None:
            return 0.0
        if gratuity.value < 0:
            raise InvalidAdjustment(f"Gratuity value must not be negative; received {gratuity.value}")
        if gratuity.type == "percentage":
            amount = subtotal * gratuity.value / 100.0
        else:
            amount = gratuity.value
        amount = round(amount, 2)
        if amount < 0:
            raise InvalidAdjustment(
                f"Computed gratuity {amount} is negative (subtotal {subtotal})"
            )
        return amount

    def discount_amount(self, subtotal: float, discount_percent: Optional[float]) -> float:
        pct = float(discount_percent or 0.0)
        if not 0.0 <= pct <= 100.0:
            raise InvalidAdjustment(f"Discount must be between 0 and 100 percent; received {pct}")
        amount = round(subtotal * pct / 100.0, 2)
        if amount < 0:
            raise InvalidAdjustment(
                f"Computed discount {amount} is negative (subtotal {subtotal})"
            )
        return amount

    def summarize(
        self,
        line_items: List[Dict[str, Any]],
        gratuity: Optional[GratuityConfig] = None,
        discount_percent: Optional[float] = 0.0,
        overhead_cost: float = 0.0,
    ) -> ProposalSummary:
        subtotal = round(sum(float(item["amount"]) for item in line_items), 2)
        pro_revenue = round(sum(float(item.get("pro_revenue") or 0.0) for item in line_items), 2)
        appointments = sum(int(item.get("appointments") or 0) for item in line_items)

        discount = self.discount_amount(subtotal, discount_percent)
        gratuity_amt = self.gratuity_amount(subtotal, gratuity)
        total = round(subtotal - discount + gratuity_amt, 2)

        event_revenue = round(total - gratuity_amt, 2)
        overhead = round(float(overhead_cost or 0.0), 2)
        net_profit = round(event_revenue - pro_revenue - overhead, 2)
        margin = round(net_profit / event_revenue * 100, 2) if event_revenue > 0 else 0.0

        return ProposalSummary(
            total_appointments=appointments,
            subtotal_before_gratuity=subtotal,
            discount_amount=discount,
            gratuity_amount=gratuity_amt,
            total_event_cost=total,
            total_pro_revenue=pro_revenue,
            overhead_cost=overhead,
            net_profit=net_profit,
            profit_margin=margin,
        )


def recalculate_proposal(
    proposal: Proposal,
    pricing: Optional[PricingEngine] = None,
    resolver: Optional[LineItemResolver] = None,
    summary_engine: Optional[FinancialSummaryEngine] = None,
) -> Proposal:
    """
    Recompute every derived field from scratch on a copy of ``proposal``:
    slot pricing, per-day totals, event dates and the summary.  The input
    snapshot is never modified.
    """
    pricing = pricing or PricingEngine()
    resolver = resolver or LineItemResolver()
    summary_engine = summary_engine or FinancialSummaryEngine()

    updated = proposal.model_copy(deep=True)

    for location, date, _index, slot in iter_slots(updated):
        slot.location = location
        slot.date = date
        pricing.price_slot(slot)

    dates = []
    for location, entry in updated.services.items():
        if not isinstance(entry, dict):
            continue
        for date, day in entry.items():
            day.total_cost = round(sum(s.service_cost for s in day.services), 2)
            day.total_appointments = sum(
                s.total_appointments for s in day.services if isinstance(s.total_appointments, int)
            )
            dates.append(date)
    updated.event_dates = sort_event_dates(dates)

    line_items = resolver.resolve(updated)
    updated.summary = summary_engine.summarize(
        line_items,
        gratuity=updated.gratuity,
        discount_percent=updated.discount_percent,
        overhead_cost=updated.overhead_cost,
    )
    logger.debug(
        "Recalculated proposal: %d line items, total %.2f",
        len(line_items), updated.summary.total_event_cost,
        extra={"proposal_id": updated.id},
    )
    return updated
