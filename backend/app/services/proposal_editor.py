"""
proposal_editor.py — Applies a batch of typed edit operations to a proposal.

Operations run strictly in order against a private deep copy, so later
operations see the effects of earlier ones.  The first failing operation
aborts the batch: its error is re-raised stamped with the operation's
zero-based position and the caller's snapshot is left untouched.  After the
last operation the schedule is repriced and the summary rebuilt from scratch.

Slots are addressed by composite key (location, date, position).  Removing
or moving slots compacts positions and re-keys the pricing-option and
selection maps to match.
"""

import logging
from typing import Annotated, Any, Callable, Dict, FrozenSet, List, Optional, Set, Tuple, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.models.proposal_schema import (
    OPERATION_TAGS,
    PROPOSAL_STATUSES,
    CustomLineItem,
    DaySchedule,
    EditOperation,
    GratuityConfig,
    PricingOption,
    Proposal,
    ServiceSlot,
    slot_key,
)
from app.services.errors import (
    InvalidAdjustment,
    InvalidSlot,
    InvalidTransition,
    PricingEngineError,
    SlotNotFound,
    UnknownOperation,
    ValidationError,
)
from app.services.pricing_engine import PricingEngine
from app.services.proposal_assembler import (
    DEFAULT_LOCATION,
    apply_headshot_tier,
    apply_mindfulness_type,
    build_slot,
    validate_client_email,
    validate_slot,
)
from app.services.schedule_dates import format_date, normalize_date, parse_date
from app.services.service_catalog import TBD_DATE, display_name, is_mindfulness_service
from app.services.summary_engine import recalculate_proposal

logger = logging.getLogger("wellness-editor")

_OPERATION_ADAPTER = TypeAdapter(Annotated[EditOperation, Field(discriminator="op")])

# Direct lifecycle steps: draft → sent → approved | declined → archived
STATUS_STEPS: Dict[str, Tuple[str, ...]] = {
    "draft":    ("sent",),
    "sent":     ("approved", "declined"),
    "approved": ("archived",),
    "declined": ("archived",),
    "archived": (),
}


def _reachable(status: str) -> FrozenSet[str]:
    seen: Set[str] = set()
    pending = list(STATUS_STEPS[status])
    while pending:
        nxt = pending.pop()
        if nxt not in seen:
            seen.add(nxt)
            pending.extend(STATUS_STEPS[nxt])
    return frozenset(seen)


# Every status strictly later in the lifecycle; archived reaches nothing
STATUS_TRANSITIONS: Dict[str, FrozenSet[str]] = {status: _reachable(status) for status in STATUS_STEPS}

# Friendly names accepted by update_service
FIELD_ALIASES: Dict[str, str] = {
    "appointment_time": "app_time",
    "appointment_length": "app_time",
    "pro_rate": "pro_hourly",
    "rate": "hourly_rate",
    "discount": "discount_percent",
    "hours": "total_hours",
    "pros": "num_pros",
    "professionals": "num_pros",
    "cost": "service_cost",
}

UPDATABLE_SLOT_FIELDS = (
    "total_hours", "num_pros", "app_time", "pro_hourly", "hourly_rate",
    "early_arrival", "retouching_cost", "discount_percent", "class_length",
    "fixed_price", "participants", "mindfulness_type", "headshot_tier",
    "massage_type", "service_cost",
)


def _money(amount: float) -> str:
    return f"${amount:,.2f}"


def _number(value: float) -> str:
    return f"{value:g}"


def _edit_date(value: Any, field: str = "date") -> str:
    """Like normalize_date, but a supplied date that cannot be parsed is an error."""
    if isinstance(value, str) and value.strip() and value != TBD_DATE and parse_date(value) is None:
        raise ValidationError(f"Unrecognised {field} '{value}'; use YYYY-MM-DD or TBD")
    return normalize_date(value)


class ProposalEditor:
    """Operation-based proposal mutation engine."""

    def __init__(self, pricing: Optional[PricingEngine] = None) -> None:
        self.pricing = pricing or PricingEngine()
        self._handlers: Dict[str, Callable[[Proposal, Any], str]] = {
            tag: getattr(self, f"_op_{tag}") for tag in OPERATION_TAGS
        }

    # ------------------------------------------------------------------
    # Batch entry point
    # ------------------------------------------------------------------

    def apply_operations(
        self,
        proposal: Proposal,
        operations: List[Union[Dict[str, Any], BaseModel]],
    ) -> Tuple[Proposal, List[Dict[str, str]]]:
        """
        Apply ``operations`` in order and return (updated proposal, changes).

        ``changes`` holds one {op, description} entry per operation, in input
        order.  An empty batch only recomputes the summary.
        """
        working = proposal.model_copy(deep=True)
        changes: List[Dict[str, str]] = []

        logger.info(
            "Applying %d operations", len(operations),
            extra={"proposal_id": proposal.id},
        )

        for index, raw in enumerate(operations):
            tag = raw.get("op") if isinstance(raw, dict) else getattr(raw, "op", None)
            try:
                op = self._coerce(raw)
                description = self._handlers[op.op](working, op)
            except PricingEngineError as exc:
                logger.warning(
                    "Operation %s failed: %s", tag, exc.message,
                    extra={"proposal_id": proposal.id, "operation_index": index},
                )
                raise exc.at_operation(index, tag)
            changes.append({"op": op.op, "description": description})

        updated = recalculate_proposal(working, pricing=self.pricing)
        return updated, changes

    def _coerce(self, raw: Union[Dict[str, Any], BaseModel]) -> Any:
        if isinstance(raw, BaseModel):
            raw = raw.model_dump()
        if not isinstance(raw, dict) or not raw.get("op"):
            raise ValidationError("Each operation must have an 'op' field")
        if raw["op"] not in OPERATION_TAGS:
            raise UnknownOperation(
                f"Unknown operation: '{raw['op']}'. Valid operations: {', '.join(OPERATION_TAGS)}"
            )
        try:
            return _OPERATION_ADAPTER.validate_python(raw)
        except PydanticValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in e['loc'][1:]) or e['loc'][0]}: {e['msg']}"
                for e in exc.errors()
            )
            raise ValidationError(f"Malformed '{raw['op']}' operation: {errors}") from exc

    # ------------------------------------------------------------------
    # Schedule helpers
    # ------------------------------------------------------------------

    def _locate(self, proposal: Proposal, location: str, date: str, index: int) -> Tuple[DaySchedule, ServiceSlot]:
        date_map = proposal.date_map(location)
        if date_map is None:
            raise SlotNotFound(
                f"Location '{location}' not found in proposal. "
                f"Available: {', '.join(proposal.services) or 'none'}"
            )
        day = date_map.get(date)
        if day is None:
            raise SlotNotFound(
                f"Date '{date}' not found at location '{location}'. "
                f"Available: {', '.join(date_map) or 'none'}"
            )
        if not 0 <= index < len(day.services):
            raise SlotNotFound(
                f"Service index {index} is out of bounds. Location '{location}' date '{date}' "
                f"has {len(day.services)} service(s)"
            )
        return day, day.services[index]

    def _rekey(self, proposal: Proposal, moves: List[Tuple[str, Optional[str]]]) -> None:
        """Move pricing-option / selection entries; a None target drops the entry."""
        lifted = [
            (new, proposal.pricing_options.pop(old, None), proposal.selected_options.pop(old, None))
            for old, new in moves
        ]
        for new, options, selected in lifted:
            if new is None:
                continue
            if options is not None:
                proposal.pricing_options[new] = options
            if selected is not None:
                proposal.selected_options[new] = selected

    def _options_for(self, slot: ServiceSlot) -> List[PricingOption]:
        return self.pricing.generate_pricing_options(self.pricing.price_slot(slot.model_copy(deep=True)))

    def _refresh_options(self, proposal: Proposal, location: str, date: str, index: int, slot: ServiceSlot) -> None:
        """Regenerate a slot's existing option set so it reflects the slot's current pricing."""
        key = slot_key(location, date, index)
        if key not in proposal.pricing_options:
            return
        options = self._options_for(slot)
        proposal.pricing_options[key] = options
        selected = proposal.selected_options.get(key)
        if selected is not None and not 0 <= selected < len(options):
            del proposal.selected_options[key]

    def _drop_empty(self, proposal: Proposal, location: str, date: str) -> None:
        date_map = proposal.date_map(location)
        if date_map is None:
            return
        if date in date_map and not date_map[date].services:
            del date_map[date]
        if not date_map:
            del proposal.services[location]
            proposal.locations = [loc for loc in proposal.locations if loc != location]

    def _slot_label(self, slot: ServiceSlot, location: str, date: str) -> str:
        return f"{display_name(slot.service_type)} at {location} on {format_date(date)}"

    # ------------------------------------------------------------------
    # Slot operations
    # ------------------------------------------------------------------

    def _op_add_service(self, proposal: Proposal, op) -> str:
        service = dict(op.service)
        location = op.location or service.pop("location_name", None) or service.get("location") or DEFAULT_LOCATION
        service.pop("location_name", None)
        date = _edit_date(op.date or service.get("date"))
        office_address = service.pop("office_address", None)

        slot = build_slot({**service, "location": location, "date": date})

        entry = proposal.services.get(location)
        if entry is None:
            entry = proposal.services[location] = {}
        if not isinstance(entry, dict):
            raise InvalidSlot(f"Location '{location}' has a legacy schedule shape and cannot take new services")
        if location not in proposal.locations:
            proposal.locations.append(location)
        if office_address and location not in proposal.office_locations:
            proposal.office_locations[location] = office_address

        entry.setdefault(date, DaySchedule()).services.append(self.pricing.price_slot(slot))
        return f"Added {self._slot_label(slot, location, date)}"

    def _op_update_service(self, proposal: Proposal, op) -> str:
        date = _edit_date(op.date)
        day, slot = self._locate(proposal, op.location, date, op.service_index)

        updated = slot.model_copy(deep=True)
        applied: List[str] = []
        for key, value in op.updates.items():
            key = FIELD_ALIASES.get(key, key)
            if key not in UPDATABLE_SLOT_FIELDS:
                continue
            if key == "headshot_tier":
                if updated.service_type == "headshot" and apply_headshot_tier(updated, value):
                    applied.append(f"headshot tier {value}")
                continue
            if key == "mindfulness_type":
                if is_mindfulness_service(updated.service_type) and apply_mindfulness_type(updated, value):
                    applied.append(f"mindfulness type {value}")
                continue
            setattr(updated, key, value)
            applied.append(f"{key}={value}")

        try:
            updated = ServiceSlot(**updated.model_dump())
        except PydanticValidationError as exc:
            raise InvalidSlot(f"Invalid service update: {exc}") from exc
        validate_slot(updated)

        day.services[op.service_index] = self.pricing.price_slot(updated)
        self._refresh_options(proposal, op.location, date, op.service_index, updated)
        detail = ", ".join(applied) if applied else "no changes"
        return f"Updated {self._slot_label(updated, op.location, date)}: {detail}"

    def _op_remove_service(self, proposal: Proposal, op) -> str:
        date = _edit_date(op.date)
        day, slot = self._locate(proposal, op.location, date, op.service_index)
        count = len(day.services)
        del day.services[op.service_index]

        moves: List[Tuple[str, Optional[str]]] = [(slot_key(op.location, date, op.service_index), None)]
        for idx in range(op.service_index + 1, count):
            moves.append((slot_key(op.location, date, idx), slot_key(op.location, date, idx - 1)))
        self._rekey(proposal, moves)

        self._drop_empty(proposal, op.location, date)
        return f"Removed {display_name(slot.service_type)} from {op.location} on {format_date(date)}"

    def _op_set_recurring(self, proposal: Proposal, op) -> str:
        date = _edit_date(op.date)
        _day, slot = self._locate(proposal, op.location, date, op.service_index)
        if not op.frequency.type or op.frequency.occurrences < 1:
            raise ValidationError("set_recurring requires a frequency type and at least one occurrence")
        slot.is_recurring = True
        slot.recurring_frequency = op.frequency
        self._refresh_options(proposal, op.location, date, op.service_index, slot)
        return (
            f"Set {self._slot_label(slot, op.location, date)} as recurring "
            f"{op.frequency.type} ({op.frequency.occurrences} events)"
        )

    def _op_remove_recurring(self, proposal: Proposal, op) -> str:
        date = _edit_date(op.date)
        _day, slot = self._locate(proposal, op.location, date, op.service_index)
        slot.is_recurring = False
        slot.recurring_frequency = None
        slot.recurring_discount = 0.0
        slot.recurring_savings = 0.0
        self._refresh_options(proposal, op.location, date, op.service_index, slot)
        return f"Removed recurring from {self._slot_label(slot, op.location, date)}"

    # ------------------------------------------------------------------
    # Pricing options
    # ------------------------------------------------------------------

    def _op_add_pricing_options(self, proposal: Proposal, op) -> str:
        date = _edit_date(op.date)
        _day, slot = self._locate(proposal, op.location, date, op.service_index)
        key = slot_key(op.location, date, op.service_index)
        options = self._options_for(slot)
        proposal.pricing_options[key] = options
        proposal.selected_options[key] = 0
        return f"Added {len(options)} pricing options to {self._slot_label(slot, op.location, date)}"

    def _op_remove_pricing_options(self, proposal: Proposal, op) -> str:
        date = _edit_date(op.date)
        _day, slot = self._locate(proposal, op.location, date, op.service_index)
        self._rekey(proposal, [(slot_key(op.location, date, op.service_index), None)])
        return f"Removed pricing options from {self._slot_label(slot, op.location, date)}"

    def _op_select_pricing_option(self, proposal: Proposal, op) -> str:
        date = _edit_date(op.date)
        _day, slot = self._locate(proposal, op.location, date, op.service_index)
        key = slot_key(op.location, date, op.service_index)
        options = proposal.pricing_options.get(key)
        if not options:
            raise SlotNotFound(f"No pricing options exist for {self._slot_label(slot, op.location, date)}")
        if not 0 <= op.option_index < len(options):
            raise ValidationError(
                f"Option index {op.option_index} is out of bounds; {len(options)} option(s) available"
            )
        proposal.selected_options[key] = op.option_index
        chosen = options[op.option_index]
        return f"Selected {chosen.name or f'option {op.option_index}'} for {self._slot_label(slot, op.location, date)}"

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    def _op_set_gratuity(self, proposal: Proposal, op) -> str:
        gratuity_type = "flat" if op.type == "dollar" else op.type
        if gratuity_type not in ("percentage", "flat"):
            raise ValidationError(f"set_gratuity requires type 'percentage' or 'flat'; received '{op.type}'")
        if op.value is None:
            raise ValidationError("set_gratuity requires a value")
        if op.value < 0:
            raise InvalidAdjustment(f"Gratuity value must not be negative; received {op.value}")
        proposal.gratuity = GratuityConfig(type=gratuity_type, value=float(op.value))
        shown = f"{_number(op.value)}%" if gratuity_type == "percentage" else _money(op.value)
        return f"Gratuity set to {shown}"

    def _op_remove_gratuity(self, proposal: Proposal, op) -> str:
        proposal.gratuity = None
        return "Removed gratuity"

    def _op_set_discount(self, proposal: Proposal, op) -> str:
        if op.discount_percent is None:
            raise ValidationError("set_discount requires discount_percent")
        if not 0.0 <= op.discount_percent <= 100.0:
            raise InvalidAdjustment(
                f"Discount must be between 0 and 100 percent; received {op.discount_percent}"
            )
        proposal.discount_percent = float(op.discount_percent)
        return f"Discount set to {_number(op.discount_percent)}%"

    def _op_add_custom_line_item(self, proposal: Proposal, op) -> str:
        if not op.name.strip():
            raise ValidationError("Custom line items require a name")
        if op.amount < 0:
            raise InvalidAdjustment(f"Custom line item amount must not be negative; received {op.amount}")
        proposal.custom_line_items.append(
            CustomLineItem(name=op.name.strip(), description=op.description, amount=float(op.amount))
        )
        return f"Added custom line item '{op.name.strip()}' ({_money(op.amount)})"

    def _op_remove_custom_line_item(self, proposal: Proposal, op) -> str:
        if not 0 <= op.index < len(proposal.custom_line_items):
            raise ValidationError(
                f"Custom line item index {op.index} is out of bounds; "
                f"{len(proposal.custom_line_items)} item(s) present"
            )
        removed = proposal.custom_line_items.pop(op.index)
        return f"Removed custom line item '{removed.name}'"

    # ------------------------------------------------------------------
    # Presentation, identity and lifecycle
    # ------------------------------------------------------------------

    def _op_update_customization(self, proposal: Proposal, op) -> str:
        proposal.customization.update(op.customization)
        if not op.customization:
            return "No customization fields changed"
        return f"Updated customization: {', '.join(op.customization)}"

    def _op_update_client_info(self, proposal: Proposal, op) -> str:
        updates: List[str] = []
        if op.client_name is not None:
            name = op.client_name.strip()
            if not name:
                raise ValidationError("Client name must not be blank")
            proposal.client_name = name
            updates.append(f"name to {name}")
        if op.client_email is not None:
            proposal.client_email = validate_client_email(op.client_email)
            updates.append(f"email to {proposal.client_email}" if proposal.client_email else "email cleared")
        if op.client_logo_url is not None:
            proposal.client_logo_url = op.client_logo_url or None
            updates.append("logo updated")
        if not updates:
            return "No client info changes"
        return f"Updated client info: {', '.join(updates)}"

    def _op_set_status(self, proposal: Proposal, op) -> str:
        if op.status not in PROPOSAL_STATUSES:
            raise ValidationError(
                f"Status must be one of: {', '.join(PROPOSAL_STATUSES)}; received '{op.status}'"
            )
        current = proposal.status
        if op.status not in STATUS_TRANSITIONS[current]:
            raise InvalidTransition(f"Cannot move a proposal from '{current}' to '{op.status}'")
        proposal.status = op.status
        return f"Status changed from {current} to {op.status}"

    # ------------------------------------------------------------------
    # Locations and dates
    # ------------------------------------------------------------------

    def _op_add_location(self, proposal: Proposal, op) -> str:
        location = op.location.strip()
        if not location:
            raise ValidationError("add_location requires a location name")
        proposal.services.setdefault(location, {})
        if location not in proposal.locations:
            proposal.locations.append(location)
        if op.office_address:
            proposal.office_locations[location] = op.office_address
            return f"Added location: {location} ({op.office_address})"
        return f"Added location: {location}"

    def _op_remove_location(self, proposal: Proposal, op) -> str:
        if op.location not in proposal.services:
            raise SlotNotFound(f"Location '{op.location}' not found in proposal")
        entry = proposal.services.pop(op.location)
        removed = 0
        if isinstance(entry, dict):
            moves: List[Tuple[str, Optional[str]]] = []
            for date, day in entry.items():
                removed += len(day.services)
                moves.extend((slot_key(op.location, date, i), None) for i in range(len(day.services)))
            self._rekey(proposal, moves)
        else:
            removed = len(entry)
        proposal.locations = [loc for loc in proposal.locations if loc != op.location]
        proposal.office_locations.pop(op.location, None)
        plural = "s" if removed != 1 else ""
        return f"Removed location '{op.location}' ({removed} service{plural} removed)"

    def _op_rename_location(self, proposal: Proposal, op) -> str:
        old, new = op.old_name, op.new_name.strip()
        if old not in proposal.services:
            raise SlotNotFound(f"Location '{old}' not found in proposal")
        if not new:
            raise ValidationError("rename_location requires a new name")
        if new in proposal.services:
            raise ValidationError(f"Location '{new}' already exists in proposal")

        # Rebuild to keep the renamed location in its original position
        proposal.services = {
            (new if loc == old else loc): entry for loc, entry in proposal.services.items()
        }
        entry = proposal.services[new]
        if isinstance(entry, dict):
            moves: List[Tuple[str, Optional[str]]] = []
            for date, day in entry.items():
                for i, slot in enumerate(day.services):
                    slot.location = new
                    moves.append((slot_key(old, date, i), slot_key(new, date, i)))
            self._rekey(proposal, moves)

        proposal.locations = [new if loc == old else loc for loc in proposal.locations]
        if old in proposal.office_locations:
            proposal.office_locations[new] = proposal.office_locations.pop(old)
        return f"Renamed location '{old}' to '{new}'"

    def _op_change_date(self, proposal: Proposal, op) -> str:
        old_date = _edit_date(op.old_date, "old_date")
        new_date = _edit_date(op.new_date, "new_date")
        date_map = proposal.date_map(op.location)
        if date_map is None:
            raise SlotNotFound(f"Location '{op.location}' not found in proposal")
        if old_date not in date_map:
            raise SlotNotFound(f"Date '{old_date}' not found at location '{op.location}'")
        if old_date == new_date:
            return f"Date unchanged ({format_date(old_date)}) at {op.location}"

        moving = date_map.pop(old_date)
        target = date_map.setdefault(new_date, DaySchedule())
        offset = len(target.services)

        moves: List[Tuple[str, Optional[str]]] = []
        for i, slot in enumerate(moving.services):
            slot.date = new_date
            target.services.append(slot)
            moves.append((slot_key(op.location, old_date, i), slot_key(op.location, new_date, offset + i)))
        self._rekey(proposal, moves)

        return f"Changed date from {format_date(old_date)} to {format_date(new_date)} at {op.location}"
