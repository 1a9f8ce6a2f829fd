"""
pricing_engine.py — Per-slot service pricing for wellness event proposals.

Covers:
  - Appointment capacity from appointment length, hours and headcount
  - Client-facing service cost by service family (standard, headshot, mindfulness)
  - Staff payout (pro revenue) including early-arrival prep
  - Per-slot discount and recurring-series discount
  - Three-tier pricing option generation (standard / +25 % / +50 % hours)
"""

import logging
import math
from typing import Any, Dict, List, Optional

from app.models.proposal_schema import PricingOption, RecurringFrequency, ServiceSlot
from app.services.service_catalog import MINDFULNESS_PRO_SHARE, is_mindfulness_service

logger = logging.getLogger("wellness-pricing")


# Recurring series discounts: (minimum occurrences, discount %)
_RECURRING_DISCOUNT_TIERS = [
    (9, 20.0),
    (4, 15.0),
]

# Hour multipliers for generated pricing options
_PRICING_OPTION_TIERS = [
    ("Option 1", 1.0),
    ("Option 2", 1.25),
    ("Option 3", 1.5),
]

_DEFAULT_MINDFULNESS_PRICE: float = 1375.0


def calculate_recurring_discount(frequency: Optional[RecurringFrequency]) -> float:
    """Discount percent earned by a recurring series of ``frequency.occurrences`` events."""
    if frequency is None:
        return 0.0
    for min_occurrences, pct in _RECURRING_DISCOUNT_TIERS:
        if frequency.occurrences >= min_occurrences:
            return pct
    return 0.0


def is_priced(slot: ServiceSlot) -> bool:
    """
    True when the slot's cost is derived from its staffing parameters.

    Slots without appointment length, hours and headcount carry an explicit
    ``service_cost`` which is left untouched.
    """
    if is_mindfulness_service(slot.service_type):
        return True
    return bool(slot.app_time and slot.total_hours and slot.num_pros)


class PricingEngine:
    """Stateless per-slot pricing.  All monetary values are in USD."""

    def calculate_service_results(self, slot: ServiceSlot) -> Dict[str, Any]:
        """
        Compute appointments, cost and payout for a single slot.

        Returns:
            total_appointments — int, or "unlimited" for mindfulness classes
            service_cost       — billed amount after slot and recurring discounts
            pro_revenue        — amount paid out to staff
            original_price     — billed amount before any discount
            recurring_discount — percent applied for a recurring series
            recurring_savings  — amount removed by the recurring discount
        """
        mindfulness = is_mindfulness_service(slot.service_type)
        if not mindfulness and not is_priced(slot):
            return {
                "total_appointments": 0,
                "service_cost": 0.0,
                "pro_revenue": 0.0,
                "original_price": 0.0,
                "recurring_discount": 0.0,
                "recurring_savings": 0.0,
            }

        hours = float(slot.total_hours or 0.0)
        pros = int(slot.num_pros or 0)
        appts_per_pro_hour = 60.0 / slot.app_time if slot.app_time else 0.0

        if mindfulness:
            total_appts: Any = "unlimited"
            appts_for_cost = 0
        else:
            # Epsilon guards fractional throughputs such as 60/45 against float drift
            total_appts = math.floor(hours * appts_per_pro_hour * pros + 1e-9)
            appts_for_cost = total_appts

        if slot.service_type == "headshot":
            pro_revenue = hours * pros * float(slot.pro_hourly or 0.0)
            service_cost = pro_revenue + appts_for_cost * float(slot.retouching_cost or 0.0)
        elif mindfulness:
            service_cost = float(slot.fixed_price or _DEFAULT_MINDFULNESS_PRICE)
            pro_revenue = service_cost * MINDFULNESS_PRO_SHARE
        else:
            service_cost = hours * float(slot.hourly_rate or 0.0) * pros
            pro_revenue = (
                hours * pros * float(slot.pro_hourly or 0.0)
                + float(slot.early_arrival or 0.0) * pros
            )

        original_price = service_cost

        if slot.discount_percent and slot.discount_percent > 0:
            service_cost = service_cost * (1 - slot.discount_percent / 100.0)

        recurring_discount = 0.0
        recurring_savings = 0.0
        if slot.is_recurring and slot.recurring_frequency is not None:
            recurring_discount = calculate_recurring_discount(slot.recurring_frequency)
            if recurring_discount > 0:
                recurring_savings = service_cost * (recurring_discount / 100.0)
                service_cost = service_cost - recurring_savings

        return {
            "total_appointments": total_appts,
            "service_cost": round(service_cost, 2),
            "pro_revenue": round(pro_revenue, 2),
            "original_price": round(original_price, 2),
            "recurring_discount": recurring_discount,
            "recurring_savings": round(recurring_savings, 2),
        }

    def price_slot(self, slot: ServiceSlot) -> ServiceSlot:
        """Write derived pricing fields onto ``slot`` in place; unpriced slots are left as-is."""
        if not is_priced(slot):
            return slot
        for key, value in self.calculate_service_results(slot).items():
            setattr(slot, key, value)
        return slot

    def generate_pricing_options(self, slot: ServiceSlot) -> List[PricingOption]:
        """
        Build the standard three-tier option set for a slot: the current
        configuration, 25 % more hours and 50 % more hours.
        """
        options: List[PricingOption] = []
        for name, multiplier in _PRICING_OPTION_TIERS:
            variant = slot.model_copy(deep=True)
            if variant.total_hours:
                variant.total_hours = round(variant.total_hours * multiplier, 2)
            results = self.calculate_service_results(variant) if is_priced(variant) else {
                "total_appointments": slot.total_appointments,
                "service_cost": round(slot.service_cost * multiplier, 2),
                "pro_revenue": round(slot.pro_revenue * multiplier, 2),
                "original_price": round(slot.service_cost * multiplier, 2),
            }
            options.append(PricingOption(
                name=name,
                service_cost=results["service_cost"],
                pro_revenue=results["pro_revenue"],
                total_hours=variant.total_hours,
                num_pros=variant.num_pros,
                hourly_rate=variant.hourly_rate,
                total_appointments=results["total_appointments"],
                original_price=results["original_price"],
                discount_percent=slot.discount_percent or 0.0,
            ))
        logger.debug("Generated %d pricing options for %s", len(options), slot.service_type)
        return options
