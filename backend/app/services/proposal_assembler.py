"""
proposal_assembler.py — Builds a new proposal from a flat list of events.

Pipeline: validate → apply service defaults → group by location/date →
recalculate.  Also hosts the slot-construction and client-identity checks
shared with the proposal editor.
"""

import logging
from typing import Any, Dict, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import ValidationError as PydanticValidationError

from app.models.proposal_schema import DaySchedule, GratuityConfig, Proposal, ServiceSlot
from app.services.errors import InvalidAdjustment, InvalidSlot, UnknownServiceType, ValidationError
from app.services.schedule_dates import normalize_date
from app.services.service_catalog import (
    HEADSHOT_TIERS,
    MINDFULNESS_TYPES,
    get_service_profile,
    is_mindfulness_service,
)
from app.services.summary_engine import recalculate_proposal

logger = logging.getLogger("wellness-assembler")

DEFAULT_LOCATION = "Main Office"

DEFAULT_CUSTOMIZATION: Dict[str, Any] = {
    "contact_first_name": "",
    "contact_last_name": "",
    "custom_note": "",
    "program_intro_copy": "",
    "include_summary": True,
    "include_calculations": False,
    "include_calculator": False,
}

# Numeric slot fields that may never be negative
NON_NEGATIVE_SLOT_FIELDS = (
    "app_time", "total_hours", "num_pros", "hourly_rate", "pro_hourly",
    "early_arrival", "retouching_cost", "class_length", "fixed_price",
    "service_cost", "discount_percent",
)

# Event keys that are not ServiceSlot fields
_EVENT_ONLY_KEYS = {"location_name", "office_address"}


def validate_slot(slot: ServiceSlot) -> None:
    for field_name in NON_NEGATIVE_SLOT_FIELDS:
        value = getattr(slot, field_name, None)
        if value is not None and value < 0:
            raise InvalidSlot(f"{field_name} must not be negative; received {value}")
    if slot.discount_percent > 100:
        raise InvalidSlot(f"discount_percent must not exceed 100; received {slot.discount_percent}")


def apply_headshot_tier(slot: ServiceSlot, tier_name: str) -> bool:
    tier = HEADSHOT_TIERS.get(tier_name)
    if tier is None:
        return False
    slot.pro_hourly = tier["pro_hourly"]
    slot.retouching_cost = tier["retouching_cost"]
    slot.headshot_tier = tier_name
    return True


def apply_mindfulness_type(slot: ServiceSlot, type_name: str) -> bool:
    mind_type = MINDFULNESS_TYPES.get(type_name)
    if mind_type is None:
        return False
    slot.class_length = mind_type["class_length"]
    slot.fixed_price = mind_type["fixed_price"]
    slot.app_time = mind_type["app_time"]
    slot.total_hours = mind_type["total_hours"]
    slot.mindfulness_type = type_name
    return True


def build_slot(event: Dict[str, Any]) -> ServiceSlot:
    """
    Create a ServiceSlot from an event: catalog defaults, then tier / class
    type overlays, then the caller's explicit values.
    """
    service_type = event.get("service_type")
    if not service_type:
        raise ValidationError("Each event requires a 'service_type'")
    profile = get_service_profile(service_type)

    fields: Dict[str, Any] = profile.slot_defaults()
    fields["service_type"] = service_type
    fields["location"] = event.get("location_name") or event.get("location") or DEFAULT_LOCATION
    fields["date"] = normalize_date(event.get("date"))

    try:
        slot = ServiceSlot(**fields)
    except PydanticValidationError as exc:
        raise InvalidSlot(f"Invalid {service_type} defaults: {exc}") from exc

    if service_type == "headshot" and event.get("headshot_tier"):
        apply_headshot_tier(slot, event["headshot_tier"])
    if service_type == "mindfulness" and event.get("mindfulness_type"):
        apply_mindfulness_type(slot, event["mindfulness_type"])

    overrides = {
        k: v for k, v in event.items()
        if v is not None and k not in _EVENT_ONLY_KEYS and k not in ("location", "date", "service_type")
        and not (k == "mindfulness_type" and service_type == "mindfulness")
        and not (k == "headshot_tier" and service_type == "headshot")
    }
    try:
        slot = ServiceSlot(**{**slot.model_dump(), **overrides})
    except PydanticValidationError as exc:
        raise InvalidSlot(f"Invalid {service_type} event fields: {exc}") from exc

    validate_slot(slot)
    return slot


def validate_client_email(email: Optional[str]) -> Optional[str]:
    """Return the normalised email, None for blank input; raise on malformed addresses."""
    if email is None or not str(email).strip():
        return None
    try:
        result = validate_email(str(email).strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid client email '{email}': {exc}") from exc
    return result.normalized


def build_gratuity(gratuity_type: Optional[str], gratuity_value: Optional[float]) -> Optional[GratuityConfig]:
    if not gratuity_type:
        return None
    if gratuity_value is None:
        raise ValidationError("Gratuity requires a value")
    if gratuity_type not in ("percentage", "flat", "dollar"):
        raise ValidationError(f"Gratuity type must be 'percentage' or 'flat'; received '{gratuity_type}'")
    if gratuity_value < 0:
        raise InvalidAdjustment(f"Gratuity value must not be negative; received {gratuity_value}")
    return GratuityConfig(type=gratuity_type, value=float(gratuity_value))


def assemble_proposal(payload: Dict[str, Any]) -> Proposal:
    """
    Build a complete, calculated Proposal from a creation request.

    ``payload`` keys: client_name (required), client_email, client_logo_url,
    events (non-empty list), customization, gratuity_type, gratuity_value,
    discount_percent, proposal_type.
    """
    client_name = (payload.get("client_name") or "").strip()
    if not client_name:
        raise ValidationError("client_name is required")

    events: List[Dict[str, Any]] = payload.get("events") or []
    if not events:
        raise ValidationError("At least one event is required")

    slots: List[ServiceSlot] = []
    office_locations: Dict[str, str] = {}
    for index, event in enumerate(events):
        try:
            slot = build_slot(event)
        except UnknownServiceType as exc:
            raise UnknownServiceType(f"Event at index {index}: {exc.message}") from exc
        slots.append(slot)
        if event.get("office_address") and slot.location not in office_locations:
            office_locations[slot.location] = event["office_address"]

    services: Dict[str, Dict[str, DaySchedule]] = {}
    locations: List[str] = []
    for slot in slots:
        if slot.location not in services:
            services[slot.location] = {}
            locations.append(slot.location)
        day = services[slot.location].setdefault(slot.date, DaySchedule())
        day.services.append(slot)

    discount = float(payload.get("discount_percent") or 0.0)
    if not 0.0 <= discount <= 100.0:
        raise InvalidAdjustment(f"Discount must be between 0 and 100 percent; received {discount}")

    has_mindfulness = any(is_mindfulness_service(s.service_type) for s in slots)
    proposal = Proposal(
        client_name=client_name,
        client_email=validate_client_email(payload.get("client_email")),
        client_logo_url=payload.get("client_logo_url") or None,
        proposal_type=payload.get("proposal_type") or ("mindfulness-program" if has_mindfulness else "event"),
        locations=locations,
        office_locations=office_locations,
        services=services,
        gratuity=build_gratuity(payload.get("gratuity_type"), payload.get("gratuity_value")),
        discount_percent=discount,
        customization={**DEFAULT_CUSTOMIZATION, **(payload.get("customization") or {})},
    )

    proposal = recalculate_proposal(proposal)
    logger.info(
        "Assembled proposal for %s: %d services across %d locations",
        client_name, len(slots), len(locations),
    )
    return proposal
