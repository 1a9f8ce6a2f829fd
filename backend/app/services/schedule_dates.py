"""Date handling for proposal schedules: normalisation, display and ordering."""
import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from app.services.service_catalog import TBD_DATE

logger = logging.getLogger("wellness-dates")

_ACCEPTED_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
)


def parse_date(value: str) -> Optional[date]:
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _ACCEPTED_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(value: Any) -> str:
    """
    Normalise a schedule date to ``YYYY-MM-DD``.

    Missing values and the ``TBD`` sentinel map to ``TBD``; anything that
    cannot be parsed is logged and also becomes ``TBD``.
    """
    if value is None or value == "" or value == TBD_DATE:
        return TBD_DATE
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    parsed = parse_date(str(value))
    if parsed is None:
        logger.warning("Invalid schedule date %r, using TBD", value)
        return TBD_DATE
    return parsed.isoformat()


def format_date(value: str) -> str:
    """'2025-03-03' -> 'March 3, 2025'.  TBD and unparseable values pass through."""
    if not value or value == TBD_DATE:
        return value or TBD_DATE
    parsed = parse_date(value)
    if parsed is None:
        return value
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def sort_event_dates(dates: Iterable[str]) -> List[str]:
    """Unique dates in chronological order with TBD (and unparseable) last."""
    def _key(d: str):
        parsed = parse_date(d) if d != TBD_DATE else None
        return (parsed is None, parsed or date.max, d)

    return sorted(set(dates), key=_key)
