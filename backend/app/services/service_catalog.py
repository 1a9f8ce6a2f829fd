"""
service_catalog.py — Static per-service constants for wellness event pricing.

Covers:
  - Default staffing / pricing parameters per service type
  - Appointment duration and throughput (appointments per pro per hour)
  - Maximum working hours per pro per day and schedulable hour increments
  - Headshot tiers and mindfulness class types
  - Display names used on proposals and invoices

The catalog is total over every service-type tag accepted elsewhere; a lookup
for anything else raises ``UnknownServiceType``.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from app.services.errors import UnknownServiceType


# ---------------------------------------------------------------------------
# Staffing constants
# ---------------------------------------------------------------------------

MAX_HOURS_PER_DAY: float = 8.0
HOUR_INCREMENT: float = 0.5
MAX_PROS: int = 10                  # minimum staff counts explored per query
STAFF_SAFETY_MARGIN: int = 3        # added on top of the derived staff floor
STAFF_HARD_CEILING: int = 50        # never enumerate past this many pros
MAX_STAFFING_OPTIONS: int = 5

MINDFULNESS_PRO_SHARE: float = 0.30  # facilitator payout on fixed-price classes

TBD_DATE: str = "TBD"


def half_hour_increments(max_hours: float = MAX_HOURS_PER_DAY) -> Tuple[float, ...]:
    """0.5, 1.0, ... up to ``max_hours`` inclusive."""
    steps = int(round(max_hours / HOUR_INCREMENT))
    return tuple(round(HOUR_INCREMENT * i, 2) for i in range(1, steps + 1))


@dataclass(frozen=True)
class ServiceProfile:
    service_type: str
    display_name: str
    app_time: float                  # minutes per appointment
    total_hours: float
    num_pros: int
    pro_hourly: float                # paid to each pro per hour
    hourly_rate: float               # billed to the client per pro-hour
    early_arrival: float = 0.0       # flat prep cost per pro
    retouching_cost: float = 0.0     # per headshot appointment
    class_length: Optional[float] = None
    fixed_price: Optional[float] = None
    max_hours_per_day: float = MAX_HOURS_PER_DAY
    hour_increments: Tuple[float, ...] = field(default_factory=half_hour_increments)

    @property
    def throughput(self) -> float:
        """Appointments per pro per hour."""
        return 60.0 / self.app_time if self.app_time > 0 else 0.0

    @property
    def is_mindfulness(self) -> bool:
        return is_mindfulness_service(self.service_type)

    def slot_defaults(self) -> Dict[str, Any]:
        """Field values a new ServiceSlot of this type starts from."""
        defaults: Dict[str, Any] = {
            "app_time": self.app_time,
            "total_hours": self.total_hours,
            "num_pros": self.num_pros,
            "pro_hourly": self.pro_hourly,
            "hourly_rate": self.hourly_rate,
            "early_arrival": self.early_arrival,
            "retouching_cost": self.retouching_cost,
        }
        if self.is_mindfulness:
            defaults["class_length"] = self.class_length
            defaults["fixed_price"] = self.fixed_price
            defaults["participants"] = "unlimited"
        return defaults


def _standard(service_type: str, display_name: str, app_time: float, total_hours: float) -> ServiceProfile:
    return ServiceProfile(
        service_type=service_type,
        display_name=display_name,
        app_time=app_time,
        total_hours=total_hours,
        num_pros=2,
        pro_hourly=50.0,
        hourly_rate=135.0,
        early_arrival=25.0,
    )


def _mindfulness(service_type: str, display_name: str, class_length: float, fixed_price: float) -> ServiceProfile:
    return ServiceProfile(
        service_type=service_type,
        display_name=display_name,
        app_time=class_length,
        total_hours=round(class_length / 60.0, 2),
        num_pros=1,
        pro_hourly=0.0,
        hourly_rate=0.0,
        class_length=class_length,
        fixed_price=fixed_price,
    )


SERVICE_CATALOG: Dict[str, ServiceProfile] = {
    "massage": _standard("massage", "Chair Massage", 20, 4),
    "facial": _standard("facial", "Facial", 20, 4),
    "hair": _standard("hair", "Hair Services", 30, 6),
    "nails": _standard("nails", "Nail Services", 30, 6),
    "makeup": _standard("makeup", "Makeup Services", 30, 4),
    "hair-makeup": _standard("hair-makeup", "Hair + Makeup", 20, 4),
    "headshot-hair-makeup": _standard("headshot-hair-makeup", "Hair + Makeup for Headshots", 20, 4),
    "headshot": ServiceProfile(
        service_type="headshot",
        display_name="Corporate Headshots",
        app_time=12,
        total_hours=5,
        num_pros=1,
        pro_hourly=400.0,
        hourly_rate=0.0,
        retouching_cost=40.0,
    ),
    "mindfulness": _mindfulness("mindfulness", "Mindfulness Session", 45, 1375.0),
    "mindfulness-soles": _mindfulness("mindfulness-soles", "Mindfulness: Soles of the Feet", 30, 1250.0),
    "mindfulness-movement": _mindfulness("mindfulness-movement", "Mindfulness: Movement & Stillness", 30, 1250.0),
    "mindfulness-pro": _mindfulness("mindfulness-pro", "Mindfulness: PRO Practice", 45, 1375.0),
    "mindfulness-cle": _mindfulness("mindfulness-cle", "CLE Ethics: Mindfulness", 60, 1875.0),
    "mindfulness-pro-reactivity": _mindfulness(
        "mindfulness-pro-reactivity", "Mindfulness: Stepping Out of Reactivity", 45, 1375.0
    ),
}

# Headshot tiers overlay the headshot profile's payout and retouching rates
HEADSHOT_TIERS: Dict[str, Dict[str, float]] = {
    "basic":     {"pro_hourly": 400.0, "retouching_cost": 40.0},
    "premium":   {"pro_hourly": 500.0, "retouching_cost": 50.0},
    "executive": {"pro_hourly": 600.0, "retouching_cost": 60.0},
}

# Mindfulness class types selectable on the generic "mindfulness" service
MINDFULNESS_TYPES: Dict[str, Dict[str, float]] = {
    "intro":            {"class_length": 45, "fixed_price": 1375.0, "app_time": 45, "total_hours": 0.75},
    "drop-in":          {"class_length": 30, "fixed_price": 1250.0, "app_time": 30, "total_hours": 0.5},
    "mindful-movement": {"class_length": 60, "fixed_price": 1500.0, "app_time": 60, "total_hours": 1.0},
}

# Catalog fields a staffing query may override
_OVERRIDABLE = {
    "app_time", "pro_hourly", "hourly_rate", "early_arrival",
    "retouching_cost", "max_hours_per_day", "hour_increments",
}


def service_types() -> List[str]:
    return list(SERVICE_CATALOG)


def is_mindfulness_service(service_type: str) -> bool:
    return service_type == "mindfulness" or service_type.startswith("mindfulness-")


def get_service_profile(
    service_type: str, overrides: Optional[Dict[str, Any]] = None
) -> ServiceProfile:
    """
    Return the catalog profile for ``service_type`` with any overrides applied.

    Overrides with a ``None`` or zero value are ignored so partially filled
    request bodies fall back to catalog values.  Unrecognised override keys
    are ignored.
    """
    profile = SERVICE_CATALOG.get(service_type)
    if profile is None:
        raise UnknownServiceType(
            f"Unknown service type: '{service_type}'. "
            f"Valid types: {', '.join(SERVICE_CATALOG)}"
        )
    if not overrides:
        return profile

    changes: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in _OVERRIDABLE or not value:
            continue
        if key == "hour_increments":
            changes[key] = tuple(sorted(float(v) for v in value if float(v) > 0))
        else:
            changes[key] = float(value)

    # A lower daily cap also trims the default increments to stay schedulable
    if "max_hours_per_day" in changes and "hour_increments" not in changes:
        changes["hour_increments"] = half_hour_increments(changes["max_hours_per_day"])

    return replace(profile, **changes)


def display_name(service_type: str) -> str:
    """Human-readable label; unmapped tags fall back to a capitalised tag."""
    profile = SERVICE_CATALOG.get(service_type)
    if profile is not None:
        return profile.display_name
    if not service_type:
        return ""
    return service_type[0].upper() + service_type[1:]
