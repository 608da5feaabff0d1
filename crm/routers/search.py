"""Global search box: contacts and appraisals matching a substring."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ..auth import RequestContext, get_context
from ..models import Appraisal, Contact
from ..schemas import AppraisalHit, ContactHit
from ..timeline import appraisal_title
from ..transformations import compose_display_name, norm, read_appraisal_field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/search", tags=["search"])

MIN_QUERY_LENGTH = 2
RESULT_LIMIT = 10

# Appraisal payload keys searched in addition to the address
APPRAISAL_SEARCH_KEYS = (
    "appraisalTitle", "appraisal_title", "streetAddress", "street_address",
    "suburb", "postcode", "ownerNames", "ownerEmail",
)


def contact_hit(c: Contact) -> ContactHit:
    street = ", ".join(p for p in (c.street_address, c.suburb) if p)
    return ContactHit(
        id=c.id,
        display_name=c.name or compose_display_name(c.first_name, c.last_name, "Unnamed contact"),
        subtitle=c.email or c.phone_mobile or street,
    )


def appraisal_hit(a: Appraisal) -> AppraisalHit:
    data = a.data or {}
    address = ", ".join(
        norm(read_appraisal_field(data, key))
        for key in ("street_address", "suburb", "postcode", "state")
        if norm(read_appraisal_field(data, key))
    )
    return AppraisalHit(
        id=a.id,
        title=appraisal_title(a),
        subtitle=address or norm(data.get("ownerNames")) or norm(data.get("ownerEmail")),
        status=a.status or read_appraisal_field(data, "status"),
        created_at=a.created_at,
    )


@router.get("")
async def search(q: str = "", ctx: RequestContext = Depends(get_context)):
    """Up to ten contacts and ten appraisals. A side that fails comes back empty."""
    term = q.strip()
    if len(term) < MIN_QUERY_LENGTH:
        return {"contacts": [], "appraisals": []}

    db = ctx.db
    pattern = f"%{term}%"

    contacts = []
    try:
        rows = (
            db.query(Contact)
            .filter(
                Contact.user_id == ctx.user_id,
                or_(*(
                    column.ilike(pattern)
                    for column in (
                        Contact.name, Contact.first_name, Contact.last_name, Contact.email,
                        Contact.phone_mobile, Contact.street_address, Contact.suburb,
                        Contact.postcode, Contact.notes,
                    )
                )),
            )
            .order_by(Contact.updated_at.desc(), Contact.id.desc())
            .limit(RESULT_LIMIT)
            .all()
        )
        contacts = [contact_hit(c) for c in rows]
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Contact search failed for %r", term)

    appraisals = []
    try:
        rows = (
            db.query(Appraisal)
            .filter(
                Appraisal.user_id == ctx.user_id,
                or_(*(Appraisal.data[key].as_string().ilike(pattern) for key in APPRAISAL_SEARCH_KEYS)),
            )
            .order_by(Appraisal.created_at.desc(), Appraisal.id.desc())
            .limit(RESULT_LIMIT)
            .all()
        )
        appraisals = [appraisal_hit(a) for a in rows]
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Appraisal search failed for %r", term)

    return {"contacts": contacts, "appraisals": appraisals}
