"""
Proposal schema — the snapshot the pricing core receives, computes on and
returns.  The persistence layer stores it as JSON; nothing here holds state
between requests.

Schedule shape:
    services[location][date] -> DaySchedule(services=[ServiceSlot, ...])

A slot's identity is its composite key (location, date, position); see
``slot_key``.  Historical proposals occasionally store a location as a flat
list instead of a date map, so a location entry is the tagged variant
``DateMap | LegacyList``.
"""
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


ProposalStatus = Literal["draft", "sent", "approved", "declined", "archived"]
PROPOSAL_STATUSES: tuple = ("draft", "sent", "approved", "declined", "archived")


def slot_key(location: str, date: str, index: int) -> str:
    """Composite key used by the pricing-option and selection maps."""
    return f"{location}-{date}-{index}"


class RecurringFrequency(BaseModel):
    type: str = Field(..., description="e.g. weekly, monthly, quarterly")
    occurrences: int = Field(..., description="Number of events in the series")


class ServiceSlot(BaseModel):
    """One bookable service instance on a given date at a given location."""
    model_config = ConfigDict(extra="allow")

    service_type: str
    location: Optional[str] = None
    date: Optional[str] = None

    # Staffing parameters
    app_time: Optional[float] = Field(None, description="Minutes per appointment")
    total_hours: Optional[float] = None
    num_pros: Optional[int] = None
    hourly_rate: Optional[float] = Field(None, description="Billed per pro-hour")
    pro_hourly: Optional[float] = Field(None, description="Paid to each pro per hour")
    early_arrival: Optional[float] = Field(None, description="Flat prep cost per pro")
    retouching_cost: Optional[float] = None

    # Service-specific parameters
    discount_percent: float = 0.0
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None
    headshot_tier: Optional[str] = None
    mindfulness_type: Optional[str] = None
    massage_type: Optional[str] = None
    class_length: Optional[float] = None
    fixed_price: Optional[float] = None
    participants: Optional[str] = None

    # Derived by the pricing engine; authoritative for slots without staffing parameters
    service_cost: float = 0.0
    pro_revenue: float = 0.0
    total_appointments: Union[int, str] = 0
    original_price: float = 0.0
    recurring_discount: float = 0.0
    recurring_savings: float = 0.0


class DaySchedule(BaseModel):
    services: List[ServiceSlot] = Field(default_factory=list)
    total_cost: float = 0.0
    total_appointments: int = 0


DateMap = Dict[str, DaySchedule]
LegacyList = List[Any]
LocationEntry = Union[DateMap, LegacyList]


class PricingOption(BaseModel):
    """An alternative priced configuration offered for a slot."""
    model_config = ConfigDict(extra="allow")

    name: str = ""
    service_cost: Optional[float] = None
    pro_revenue: Optional[float] = None
    total_hours: Optional[float] = None
    num_pros: Optional[int] = None
    hourly_rate: Optional[float] = None
    total_appointments: Union[int, str, None] = None
    original_price: Optional[float] = None
    discount_percent: float = 0.0


class CustomLineItem(BaseModel):
    name: str
    description: Optional[str] = None
    amount: float = 0.0


class GratuityConfig(BaseModel):
    type: Literal["percentage", "flat"]
    value: float

    @field_validator("type", mode="before")
    @classmethod
    def _dollar_is_flat(cls, v: Any) -> Any:
        # Older proposals store flat gratuity as "dollar"
        return "flat" if v == "dollar" else v


class ProposalSummary(BaseModel):
    total_appointments: int = 0
    subtotal_before_gratuity: float = 0.0
    discount_amount: float = 0.0
    gratuity_amount: float = 0.0
    total_event_cost: float = 0.0
    total_pro_revenue: float = 0.0
    overhead_cost: float = 0.0
    net_profit: float = 0.0
    profit_margin: float = 0.0


class Proposal(BaseModel):
    """Aggregate root.  Owned by the store; the core only transforms snapshots."""
    id: Optional[str] = None
    version: int = 0

    client_name: str
    client_email: Optional[str] = None
    client_logo_url: Optional[str] = None
    status: ProposalStatus = "draft"
    proposal_type: str = "event"

    locations: List[str] = Field(default_factory=list)
    event_dates: List[str] = Field(default_factory=list)
    office_locations: Dict[str, str] = Field(default_factory=dict)
    services: Dict[str, LocationEntry] = Field(default_factory=dict)

    pricing_options: Dict[str, List[PricingOption]] = Field(default_factory=dict)
    selected_options: Dict[str, int] = Field(default_factory=dict)
    custom_line_items: List[CustomLineItem] = Field(default_factory=list)

    gratuity: Optional[GratuityConfig] = None
    discount_percent: float = 0.0
    overhead_cost: float = 0.0

    summary: ProposalSummary = Field(default_factory=ProposalSummary)
    customization: Dict[str, Any] = Field(default_factory=dict)

    def date_map(self, location: str) -> Optional[DateMap]:
        """The date map for ``location``, or None when missing or legacy-shaped."""
        entry = self.services.get(location)
        return entry if isinstance(entry, dict) else None


# ── Edit operations ─────────────────────────────────────────────────────────
# Parsed by the editor with a discriminated union on ``op`` so an unknown tag
# or malformed operation is reported with its batch position.

class _SlotRef(BaseModel):
    location: str
    date: str = "TBD"
    service_index: int


class AddServiceOp(BaseModel):
    op: Literal["add_service"]
    location: Optional[str] = None
    date: Optional[str] = None
    service: Dict[str, Any]


class UpdateServiceOp(_SlotRef):
    op: Literal["update_service"]
    updates: Dict[str, Any]


class RemoveServiceOp(_SlotRef):
    op: Literal["remove_service"]


class SetGratuityOp(BaseModel):
    op: Literal["set_gratuity"]
    type: str
    value: Optional[float] = None


class RemoveGratuityOp(BaseModel):
    op: Literal["remove_gratuity"]


class SetDiscountOp(BaseModel):
    op: Literal["set_discount"]
    discount_percent: Optional[float] = None


class UpdateCustomizationOp(BaseModel):
    op: Literal["update_customization"]
    customization: Dict[str, Any] = Field(default_factory=dict)


class UpdateClientInfoOp(BaseModel):
    op: Literal["update_client_info"]
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_logo_url: Optional[str] = None


class SetStatusOp(BaseModel):
    op: Literal["set_status"]
    status: str


class SetRecurringOp(_SlotRef):
    op: Literal["set_recurring"]
    frequency: RecurringFrequency


class RemoveRecurringOp(_SlotRef):
    op: Literal["remove_recurring"]


class AddPricingOptionsOp(_SlotRef):
    op: Literal["add_pricing_options"]


class RemovePricingOptionsOp(_SlotRef):
    op: Literal["remove_pricing_options"]


class SelectPricingOptionOp(_SlotRef):
    op: Literal["select_pricing_option"]
    option_index: int


class AddCustomLineItemOp(BaseModel):
    op: Literal["add_custom_line_item"]
    name: str
    description: Optional[str] = None
    amount: float


class RemoveCustomLineItemOp(BaseModel):
    op: Literal["remove_custom_line_item"]
    index: int


class AddLocationOp(BaseModel):
    op: Literal["add_location"]
    location: str
    office_address: Optional[str] = None


class RemoveLocationOp(BaseModel):
    op: Literal["remove_location"]
    location: str


class RenameLocationOp(BaseModel):
    op: Literal["rename_location"]
    old_name: str
    new_name: str


class ChangeDateOp(BaseModel):
    op: Literal["change_date"]
    location: str
    old_date: str
    new_date: str


EditOperation = Union[
    AddServiceOp, UpdateServiceOp, RemoveServiceOp,
    SetGratuityOp, RemoveGratuityOp, SetDiscountOp,
    UpdateCustomizationOp, UpdateClientInfoOp, SetStatusOp,
    SetRecurringOp, RemoveRecurringOp,
    AddPricingOptionsOp, RemovePricingOptionsOp, SelectPricingOptionOp,
    AddCustomLineItemOp, RemoveCustomLineItemOp,
    AddLocationOp, RemoveLocationOp, RenameLocationOp, ChangeDateOp,
]

OPERATION_TAGS: tuple = (
    "add_service", "update_service", "remove_service",
    "set_gratuity", "remove_gratuity", "set_discount",
    "update_customization", "update_client_info", "set_status",
    "set_recurring", "remove_recurring",
    "add_pricing_options", "remove_pricing_options", "select_pricing_option",
    "add_custom_line_item", "remove_custom_line_item",
    "add_location", "remove_location", "rename_location", "change_date",
)
