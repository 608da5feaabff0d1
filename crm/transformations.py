"""Normalisation helpers for loosely structured CRM input.

Forms, kiosks and the appraisal wizard send addresses, names and phone numbers in
whatever shape the user typed. These helpers turn that input into the canonical
values used for lookups and display. All functions are pure.
"""

import re
from datetime import datetime, timezone
from collections.abc import Mapping
from typing import Any


# =============================================================================
# Text
# =============================================================================


def norm(value: Any) -> str:
    """Stringify and trim; ``None`` becomes an empty string."""
    if value is None:
        return ""
    return str(value).strip()


def text_or_none(value: Any) -> str | None:
    """Trimmed text, or ``None`` when blank."""
    clean = norm(value)
    return clean or None


# =============================================================================
# Contact details
# =============================================================================


def normalise_phone(raw: str | None) -> str | None:
    """Strip everything but digits: '(08) 9000 0000' -> '0890000000'.

    Returns None when no digits remain, so two blank numbers never compare equal.
    """
    if not raw:
        return None
    digits = re.sub(r"\D", "", raw)
    return digits or None


def normalise_email(raw: str | None) -> str | None:
    """Trim and lowercase an email address; blank -> None."""
    if not raw:
        return None
    clean = raw.strip().lower()
    return clean or None


def compose_display_name(
    first_name: str | None,
    last_name: str | None,
    fallback: str | None = None,
) -> str | None:
    """Join first and last name, using whichever is present, else ``fallback``."""
    parts = [p.strip() for p in (first_name, last_name) if p and p.strip()]
    return " ".join(parts) or fallback


# =============================================================================
# Addresses
# =============================================================================


def compose_address(
    street_address: str | None,
    suburb: str | None,
    state: str | None,
    postcode: str | None,
) -> str:
    """Format an address as '{street}, {suburb} {state} {postcode}'.

    Empty components are omitted:
    - ('1 Main St', 'Perth', 'WA', '6000') -> '1 Main St, Perth WA 6000'
    - ('1 Main St', None, None, None)      -> '1 Main St'
    - (None, 'Perth', 'WA', None)          -> 'Perth WA'
    """
    locality = " ".join(p for p in (norm(suburb), norm(state), norm(postcode)) if p)
    return ", ".join(p for p in (norm(street_address), locality) if p)


# =============================================================================
# Appraisal payloads
# =============================================================================

# The appraisal wizard has used both camelCase and snake_case keys over time
APPRAISAL_DATA_KEYS = {
    "title": ("appraisalTitle", "appraisal_title"),
    "street_address": ("streetAddress", "street_address"),
    "suburb": ("suburb",),
    "postcode": ("postcode",),
    "state": ("state",),
    "status": ("status",),
}


def read_appraisal_field(data: Mapping[str, Any] | None, field: str) -> Any:
    """Read a field from an appraisal payload, accepting any historical key spelling."""
    if not data:
        return None
    for key in APPRAISAL_DATA_KEYS.get(field, (field,)):
        value = data.get(key)
        if value is not None:
            return value
    return None


def property_id_from_payload(*candidates: Any) -> int | None:
    """First candidate that is an integer id (booleans excluded)."""
    for value in candidates:
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
    return None


def coerce_ids(values: Any) -> list[int]:
    """Keep the entries of ``values`` that parse as integers, in order."""
    if not isinstance(values, list):
        return []
    ids = []
    for value in values:
        if isinstance(value, bool):
            continue
        try:
            ids.append(int(value))
        except (TypeError, ValueError, OverflowError):
            continue
    return ids


# =============================================================================
# Dates
# =============================================================================


def parse_iso(value: Any) -> datetime | None:
    """Parse an ISO date or datetime string; anything else -> None.

    Task due dates are stored as the text the form sent ('2025-03-01' or a full
    timestamp), so timelines parse them before sorting.
    """
    if isinstance(value, datetime):
        return value
    text = norm(value)
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    # Stored timestamps are naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
