"""Entity resolution and linking.

Turns loosely structured identifiers into stable row references:

- Property resolution: find-or-create a property from a free-text address
  (used whenever an appraisal is saved without an explicit property id).
- Deal title derivation: a display title that is never empty.
- Attendee conversion: promote an open-home visitor to a Contact, reusing an
  existing contact when the phone number or email matches.

Failure semantics:
- Reads (property lookup, contact candidate scan) are best effort. A failed read
  is logged and treated as "nothing found", so the surrounding save still completes.
- Writes after a decision has been made are not retried. Property insert failure
  returns None (the appraisal is saved unlinked); contact insert or attendee
  link-back failure is fatal to the request.

Concurrency: lookup and insert are separate statements with no lock and no unique
constraint, so two simultaneous saves of the same new address can both insert.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import Contact, OpenHomeAttendee, Property
from .schemas import ConversionResult, MatchPolicy, MatchReason
from .transformations import (
    compose_address,
    norm,
    normalise_email,
    normalise_phone,
    text_or_none,
)

logger = logging.getLogger(__name__)

DEFAULT_STATE = os.getenv("DEFAULT_STATE", "WA")


def match_policy_from_env(value: str | None) -> MatchPolicy:
    """Parse CONTACT_MATCH_POLICY, falling back to ``any`` on unknown values."""
    if not value or not value.strip():
        return MatchPolicy.ANY
    try:
        return MatchPolicy(value.strip().lower())
    except ValueError:
        logger.warning(
            "Unknown CONTACT_MATCH_POLICY %r (expected one of %s); using %r",
            value,
            ", ".join(p.value for p in MatchPolicy),
            MatchPolicy.ANY.value,
        )
        return MatchPolicy.ANY


CONTACT_MATCH_POLICY = match_policy_from_env(os.getenv("CONTACT_MATCH_POLICY"))


# =============================================================================
# Property resolution
# =============================================================================


@dataclass(frozen=True)
class NormalisedAddress:
    """Trimmed address used as the property lookup key."""

    street_address: str
    suburb: str
    state: str
    postcode: str | None

    @property
    def label(self) -> str:
        return compose_address(self.street_address, self.suburb, self.state, self.postcode)


def normalise_address(
    street_address: Any,
    suburb: Any,
    postcode: Any = None,
    state: Any = None,
) -> NormalisedAddress | None:
    """Trim address parts and default the state.

    Returns None when street address or suburb is blank: there is nothing to
    resolve against.
    """
    street = norm(street_address)
    suburb_clean = norm(suburb)
    if not street or not suburb_clean:
        return None
    return NormalisedAddress(
        street_address=street,
        suburb=suburb_clean,
        state=norm(state) or DEFAULT_STATE,
        postcode=text_or_none(postcode),
    )


def find_property_id(db: Session, user_id: str, address: NormalisedAddress) -> int | None:
    """Look up the owner's property at ``address``.

    Street and suburb compare case-insensitively; state and postcode exactly (a
    missing postcode only matches rows without one). If duplicates already exist
    the first row the database returns wins; no business ordering is applied.
    """
    if address.postcode:
        postcode_clause = Property.postcode == address.postcode
    else:
        postcode_clause = Property.postcode.is_(None)

    try:
        rows = (
            db.query(Property.id)
            .filter(
                Property.user_id == user_id,
                func.lower(Property.street_address) == address.street_address.lower(),
                func.lower(Property.suburb) == address.suburb.lower(),
                Property.state == address.state,
                postcode_clause,
            )
            .order_by(Property.id)
            .limit(2)
            .all()
        )
    except SQLAlchemyError:
        logger.exception("Property lookup failed for %r; treating as no match", address.label)
        db.rollback()
        return None

    if not rows:
        return None
    if len(rows) > 1:
        logger.warning("Multiple properties match %r for user %s; using id %s",
                       address.label, user_id, rows[0].id)
    return rows[0].id


def create_property_from_address(
    db: Session,
    user_id: str,
    address: NormalisedAddress,
    property_type: Any = None,
) -> int | None:
    """Insert a not-yet-listed property for ``address``. Returns None on failure."""
    prop = Property(
        user_id=user_id,
        street_address=address.street_address,
        suburb=address.suburb,
        state=address.state,
        postcode=address.postcode,
        market_status="appraisal",
    )
    if text_or_none(property_type):
        prop.property_type = norm(property_type)

    try:
        db.add(prop)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Property insert failed for %r", address.label)
        return None

    logger.info("Created property %s for %r", prop.id, address.label)
    return prop.id


def ensure_property_id(
    db: Session,
    user_id: str,
    *,
    street_address: Any,
    suburb: Any,
    postcode: Any = None,
    state: Any = None,
    property_type: Any = None,
) -> int | None:
    """Find or create the owner's property for an address.

    Returns the property id, or None when the address is incomplete (no query is
    issued) or the insert failed.
    """
    address = normalise_address(street_address, suburb, postcode, state)
    if address is None:
        return None

    existing_id = find_property_id(db, user_id, address)
    if existing_id is not None:
        return existing_id

    return create_property_from_address(db, user_id, address, property_type)


# =============================================================================
# Deal titles
# =============================================================================


def derive_deal_title(title: Any, prop: Any | None) -> str:
    """Display title for a deal. Pure and total.

    Priority (first non-empty wins):
    1. the explicit title, trimmed
    2. the property's address: '1 Main St, Perth WA 6000'
    3. 'Property #7' when the property has no address fields
    4. 'New deal'
    """
    explicit = title.strip() if isinstance(title, str) else ""
    if explicit:
        return explicit

    if prop is not None:
        address = compose_address(
            getattr(prop, "street_address", None),
            getattr(prop, "suburb", None),
            getattr(prop, "state", None),
            getattr(prop, "postcode", None),
        )
        if address:
            return address
        prop_id = getattr(prop, "id", None)
        if prop_id is not None:
            return f"Property #{prop_id}"

    return "New deal"


# =============================================================================
# Attendee -> contact conversion
# =============================================================================


@dataclass(frozen=True)
class ContactMatch:
    contact_id: int
    reason: MatchReason


def match_reason(
    phone_digits: str | None,
    email: str | None,
    candidate_phone: str | None,
    candidate_email: str | None,
) -> MatchReason | None:
    """Compare normalised attendee details with one candidate contact.

    Both sides must be present for a field to count, so two blank values never match.
    """
    candidate_digits = normalise_phone(candidate_phone)
    phone_hit = bool(phone_digits and candidate_digits and phone_digits == candidate_digits)
    email_hit = bool(email and normalise_email(candidate_email) == email)

    if phone_hit and email_hit:
        return MatchReason.BOTH
    if phone_hit:
        return MatchReason.PHONE
    if email_hit:
        return MatchReason.EMAIL
    return None


def find_matching_contact(
    db: Session,
    user_id: str,
    phone: str | None,
    email: str | None,
    policy: MatchPolicy | None = None,
) -> ContactMatch | None:
    """First of the owner's contacts (by id) whose phone or email matches.

    Scans every contact the owner has. A failed scan is logged and treated as
    no match.
    """
    policy = policy or CONTACT_MATCH_POLICY
    phone_digits = normalise_phone(phone)
    email_clean = normalise_email(email)
    if not phone_digits and not email_clean:
        return None

    try:
        candidates = (
            db.query(Contact.id, Contact.phone, Contact.phone_mobile, Contact.email)
            .filter(Contact.user_id == user_id)
            .order_by(Contact.id)
            .all()
        )
    except SQLAlchemyError:
        logger.exception("Loading contact candidates failed for user %s; treating as no match",
                         user_id)
        db.rollback()
        return None

    for candidate in candidates:
        reason = match_reason(
            phone_digits,
            email_clean,
            candidate.phone_mobile or candidate.phone,
            candidate.email,
        )
        if policy.accepts(reason):
            return ContactMatch(contact_id=candidate.id, reason=reason)
    return None


def contact_from_attendee(user_id: str, attendee: OpenHomeAttendee) -> Contact:
    """Build (unsaved) the contact an unmatched attendee turns into."""
    if attendee.is_seller:
        contact_type = "seller"
    elif attendee.is_buyer:
        contact_type = "buyer"
    else:
        contact_type = None

    phone = attendee.phone or None
    return Contact(
        user_id=user_id,
        name=attendee.display_name,
        first_name=attendee.first_name or None,
        last_name=attendee.last_name or None,
        email=attendee.email or None,
        # Both columns so the list view and the edit form see it
        phone_mobile=phone,
        phone=phone,
        contact_type=contact_type,
        lead_source=attendee.lead_source or None,
        notes=attendee.notes or None,
    )


def _link_attendee(db: Session, attendee: OpenHomeAttendee, contact_id: int, detail: str) -> None:
    try:
        attendee.contact_id = contact_id
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Linking attendee %s to contact %s failed", attendee.id, contact_id)
        raise HTTPException(status_code=500, detail=detail)


def convert_attendee_to_contact(
    db: Session,
    user_id: str,
    attendee: OpenHomeAttendee,
    policy: MatchPolicy | None = None,
) -> ConversionResult:
    """Find or create the contact for an attendee and link them.

    Idempotent: an attendee that already has a contact is returned unchanged with
    ``already_linked=True``.

    Raises:
        HTTPException(500) if the contact insert or the attendee link-back fails.
    """
    if attendee.contact_id:
        return ConversionResult(contact_id=attendee.contact_id, already_linked=True)

    match = find_matching_contact(db, user_id, attendee.phone, attendee.email, policy)
    if match is not None:
        _link_attendee(db, attendee, match.contact_id,
                       "Failed to link attendee to existing contact")
        logger.info("Attendee %s matched contact %s by %s",
                    attendee.id, match.contact_id, match.reason.value)
        return ConversionResult(contact_id=match.contact_id, match_reason=match.reason)

    contact = contact_from_attendee(user_id, attendee)
    try:
        db.add(contact)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Creating contact for attendee %s failed", attendee.id)
        raise HTTPException(status_code=500, detail="Failed to create contact")

    contact_id = contact.id
    _link_attendee(db, attendee, contact_id, "Contact created but failed to link attendee")
    logger.info("Attendee %s converted to new contact %s", attendee.id, contact_id)
    return ConversionResult(contact_id=contact_id, created=True)
