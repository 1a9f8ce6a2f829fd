"""
staffing_engine.py — Staffing option search for a target appointment count.

Given a service type and the number of appointments a client wants, enumerate
(pros × hours) combinations within the service's daily cap and schedulable
hour increments, keep the ones that hit the target or land on the nearest
feasible counts above / below it, and rank them:

    1. exact match first
    2. smallest absolute deviation from the target
    3. lowest estimated cost
    4. fewest pros, then fewest hours

The search is two bounded nested loops; it is not an optimiser and makes no
optimality claim.  Mindfulness classes have unlimited participants and
return their fixed-price class options instead.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from app.services.errors import InvalidTarget
from app.services.service_catalog import (
    MAX_PROS,
    MAX_STAFFING_OPTIONS,
    MINDFULNESS_TYPES,
    SERVICE_CATALOG,
    STAFF_HARD_CEILING,
    STAFF_SAFETY_MARGIN,
    ServiceProfile,
    get_service_profile,
    is_mindfulness_service,
)

logger = logging.getLogger("wellness-staffing")


def staff_ceiling(target: int, throughput: float, max_hours: float) -> int:
    """
    Highest staff count explored: the minimum headcount that could reach the
    target working a full day, plus a safety margin, never below MAX_PROS and
    never above STAFF_HARD_CEILING.
    """
    capacity_per_pro = throughput * max_hours
    if capacity_per_pro <= 0:
        return MAX_PROS
    floor_staff = math.ceil(target / capacity_per_pro)
    return min(STAFF_HARD_CEILING, max(MAX_PROS, floor_staff + STAFF_SAFETY_MARGIN))


def _shortfall_note(diff: int) -> str:
    plural = "s" if abs(diff) != 1 else ""
    if diff > 0:
        return f"{diff} extra appointment{plural} (buffer)"
    return f"{abs(diff)} fewer appointment{plural} than target"


class StaffingEngine:
    """Stateless staffing recommendation engine."""

    def estimate_cost(self, profile: ServiceProfile, num_pros: int, hours: float, appointments: int) -> float:
        if profile.service_type == "headshot":
            cost = hours * num_pros * profile.pro_hourly + appointments * profile.retouching_cost
        else:
            cost = hours * profile.hourly_rate * num_pros
        return round(cost, 2)

    def calculate_event_options(
        self,
        service_type: str,
        target_appointments: int,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Rank staffing configurations for ``target_appointments``.

        Args:
            service_type        — catalog tag, e.g. "massage", "headshot"
            target_appointments — positive integer
            overrides           — optional catalog overrides (app_time,
                                  hourly_rate, pro_hourly, retouching_cost,
                                  max_hours_per_day, hour_increments)

        Returns the ranked options, the constraints used and the throughput.
        """
        if (
            isinstance(target_appointments, bool)
            or not isinstance(target_appointments, int)
            or target_appointments <= 0
        ):
            raise InvalidTarget(
                f"Target appointments must be a positive integer; received {target_appointments!r}"
            )

        if is_mindfulness_service(service_type):
            # Validates the tag against the catalog before answering
            get_service_profile(service_type)
            return self.calculate_mindfulness_options(service_type)

        profile = get_service_profile(service_type, overrides)
        throughput = profile.throughput
        max_hours = profile.max_hours_per_day
        increments = [h for h in profile.hour_increments if 0 < h <= max_hours]
        ceiling = staff_ceiling(target_appointments, throughput, max_hours)

        candidates: List[Dict[str, Any]] = []
        for num_pros in range(1, ceiling + 1):
            for hours in increments:
                per_pro = math.floor(hours * throughput + 1e-9)
                actual = per_pro * num_pros
                if actual <= 0:
                    continue
                candidates.append({
                    "num_pros": num_pros,
                    "total_hours": hours,
                    "actual_appointments": actual,
                    "exact_match": actual == target_appointments,
                    "estimated_cost": self.estimate_cost(profile, num_pros, hours, actual),
                })

        above = [c["actual_appointments"] for c in candidates if c["actual_appointments"] > target_appointments]
        below = [c["actual_appointments"] for c in candidates if c["actual_appointments"] < target_appointments]
        keep = {target_appointments}
        if above:
            keep.add(min(above))
        if below:
            keep.add(max(below))

        shortlisted = [c for c in candidates if c["actual_appointments"] in keep]
        shortlisted.sort(key=lambda c: (
            not c["exact_match"],
            abs(c["actual_appointments"] - target_appointments),
            c["estimated_cost"],
            c["num_pros"],
            c["total_hours"],
        ))

        # Same yield at the same price: keep the simplest logistics (sorted first)
        seen = set()
        options: List[Dict[str, Any]] = []
        for option in shortlisted:
            dedupe_key = (option["actual_appointments"], option["estimated_cost"])
            if dedupe_key in seen:
                continue
            seen.add(dedupe_key)
            if not option["exact_match"]:
                option["note"] = _shortfall_note(option["actual_appointments"] - target_appointments)
            options.append(option)
            if len(options) >= MAX_STAFFING_OPTIONS:
                break

        logger.info(
            "Staffing search for %s x%d: %d candidates, %d options, exact=%s",
            service_type, target_appointments, len(candidates), len(options),
            bool(options and options[0]["exact_match"]),
        )

        return {
            "success": True,
            "service_type": service_type,
            "target_appointments": target_appointments,
            "appointment_time": profile.app_time,
            "appts_per_pro_per_hour": round(throughput, 4),
            "options": options,
            "constraints": {
                "max_hours_per_day": max_hours,
                "valid_hour_increments": increments,
                "max_pros_considered": ceiling,
            },
        }

    def calculate_mindfulness_options(self, service_type: str) -> Dict[str, Any]:
        """Fixed-price class options; participants are unlimited so no search is needed."""
        if service_type != "mindfulness":
            profile = SERVICE_CATALOG[service_type]
            options = [{
                "name": service_type,
                "class_length": profile.class_length,
                "fixed_price": profile.fixed_price,
                "participants": "unlimited",
                "num_pros": 1,
            }]
            note = "Mindfulness services have unlimited participants and fixed pricing."
        else:
            options = [
                {
                    "name": name,
                    "class_length": cfg["class_length"],
                    "fixed_price": cfg["fixed_price"],
                    "participants": "unlimited",
                    "num_pros": 1,
                }
                for name, cfg in MINDFULNESS_TYPES.items()
            ]
            note = "Mindfulness services have unlimited participants and fixed pricing. Choose a type."

        return {
            "success": True,
            "service_type": service_type,
            "target_appointments": "unlimited",
            "options": options,
            "note": note,
        }
