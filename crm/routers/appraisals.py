"""Appraisals: the wizard's saved form data, linked to a property and its owners.

Saving an appraisal never fails because of property linking. When no property id
is given the property is found or created from the address; if that insert fails
the appraisal is saved unlinked and the response carries a warning.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import RequestContext, get_context
from ..models import Appraisal, AppraisalContact, Contact, Property
from ..resolution import DEFAULT_STATE, ensure_property_id
from ..schemas import AppraisalCreate, AppraisalRead, AppraisalSummary, AppraisalUpdate
from ..transformations import coerce_ids, norm, property_id_from_payload, read_appraisal_field
from .common import get_owned, owned_ids

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appraisals", tags=["appraisals"])

PROPERTY_UNLINKED_WARNING = "Property could not be created; appraisal saved without a property"


def summarise(appraisal: Appraisal) -> AppraisalSummary:
    data = appraisal.data or {}
    return AppraisalSummary(
        id=appraisal.id,
        appraisal_title=read_appraisal_field(data, "title"),
        street_address=read_appraisal_field(data, "street_address"),
        suburb=read_appraisal_field(data, "suburb"),
        status=appraisal.status or read_appraisal_field(data, "status"),
        created_at=appraisal.created_at,
        property_id=appraisal.property_id,
    )


def _resolve_property(
    db: Session,
    user_id: str,
    explicit_id: int | None,
    address: dict[str, Any],
) -> tuple[int | None, list[str]]:
    """Validate an explicit property id, or find-or-create one from the address."""
    if explicit_id is not None:
        owned = db.query(Property.id).filter(
            Property.id == explicit_id, Property.user_id == user_id
        ).first()
        if owned is None:
            raise HTTPException(status_code=400, detail="Invalid property_id for this user")
        return explicit_id, []

    property_id = ensure_property_id(db, user_id, **address)
    warnings = []
    if property_id is None and norm(address.get("street_address")) and norm(address.get("suburb")):
        warnings.append(PROPERTY_UNLINKED_WARNING)
    return property_id, warnings


def _link_contacts(db: Session, user_id: str, appraisal: Appraisal, raw_ids: Any) -> list[str]:
    """Attach contacts as owners, the first one primary. Failures are reported, not raised."""
    contact_ids = coerce_ids(raw_ids)
    if not contact_ids:
        return []

    warnings = []
    known = owned_ids(db, Contact, contact_ids, user_id)
    skipped = [cid for cid in contact_ids if cid not in known]
    if skipped:
        warnings.append(f"Unknown contact ids not linked: {skipped}")

    linkable = [cid for cid in contact_ids if cid in known]
    try:
        for index, contact_id in enumerate(linkable):
            db.add(AppraisalContact(
                appraisal_id=appraisal.id,
                contact_id=contact_id,
                role="owner",
                is_primary=index == 0,
            ))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Linking contacts to appraisal %s failed", appraisal.id)
        warnings.append("Contacts could not be linked")
    return warnings


@router.get("")
async def list_appraisals(
    contactId: int | None = None,
    propertyId: int | None = None,
    ctx: RequestContext = Depends(get_context),
):
    query = ctx.db.query(Appraisal).filter(Appraisal.user_id == ctx.user_id)
    if contactId is not None:
        query = query.join(AppraisalContact, AppraisalContact.appraisal_id == Appraisal.id).filter(
            AppraisalContact.contact_id == contactId
        )
    elif propertyId is not None:
        query = query.filter(Appraisal.property_id == propertyId)
    rows = query.order_by(Appraisal.created_at.desc(), Appraisal.id.desc()).all()
    return {"items": [summarise(a) for a in rows]}


@router.post("", status_code=201)
async def create_appraisal(payload: AppraisalCreate, ctx: RequestContext = Depends(get_context)):
    """Save a new appraisal, linking or creating its property."""
    if not norm(payload.street_address) or not norm(payload.suburb) or not norm(payload.postcode):
        raise HTTPException(
            status_code=400, detail="streetAddress, suburb and postcode are required"
        )

    db = ctx.db
    data = payload.data or {}
    try:
        explicit_id = property_id_from_payload(
            payload.property_id, payload.property_id_camel, data.get("propertyId")
        )
        property_id, warnings = _resolve_property(db, ctx.user_id, explicit_id, {
            "street_address": payload.street_address,
            "suburb": payload.suburb,
            "postcode": payload.postcode,
            "state": payload.state,
            "property_type": data.get("propertyType"),
        })

        appraisal = Appraisal(
            user_id=ctx.user_id,
            status=payload.status or "DRAFT",
            property_id=property_id,
            data={
                **data,
                "appraisalTitle": payload.appraisal_title or data.get("appraisalTitle"),
                "streetAddress": payload.street_address,
                "suburb": payload.suburb,
                "postcode": payload.postcode,
                "state": payload.state or DEFAULT_STATE,
                "propertyId": property_id,
            },
        )
        db.add(appraisal)
        db.commit()
        db.refresh(appraisal)

        warnings.extend(_link_contacts(db, ctx.user_id, appraisal, payload.contact_ids))
        return {"appraisal": AppraisalRead.model_validate(appraisal), "warnings": warnings}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Creating appraisal failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{appraisal_id}")
async def get_appraisal(appraisal_id: int, ctx: RequestContext = Depends(get_context)):
    appraisal = get_owned(ctx.db, Appraisal, appraisal_id, ctx.user_id, "Appraisal not found")
    return {"appraisal": AppraisalRead.model_validate(appraisal)}


@router.put("/{appraisal_id}")
async def update_appraisal(
    appraisal_id: int,
    payload: AppraisalUpdate,
    ctx: RequestContext = Depends(get_context),
):
    """Replace the form data, re-resolving the property from the address in it.

    ``contactIds`` as a list replaces the linked contacts; omitted leaves them.
    """
    db = ctx.db
    data = payload.data or {}
    try:
        appraisal = get_owned(db, Appraisal, appraisal_id, ctx.user_id, "Appraisal not found")

        explicit_id = property_id_from_payload(
            payload.property_id, payload.property_id_camel, data.get("propertyId")
        )
        property_id, warnings = _resolve_property(db, ctx.user_id, explicit_id, {
            "street_address": read_appraisal_field(data, "street_address"),
            "suburb": read_appraisal_field(data, "suburb"),
            "postcode": read_appraisal_field(data, "postcode"),
            "state": read_appraisal_field(data, "state"),
            "property_type": data.get("propertyType"),
        })

        appraisal.data = {**data, "propertyId": property_id}
        appraisal.status = payload.status or "DRAFT"
        appraisal.property_id = property_id
        db.commit()
        db.refresh(appraisal)

        if isinstance(payload.contact_ids, list):
            db.query(AppraisalContact).filter(
                AppraisalContact.appraisal_id == appraisal.id
            ).delete(synchronize_session="fetch")
            db.commit()
            warnings.extend(_link_contacts(db, ctx.user_id, appraisal, payload.contact_ids))

        return {"appraisal": AppraisalRead.model_validate(appraisal), "warnings": warnings}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Updating appraisal %s failed", appraisal_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{appraisal_id}")
async def delete_appraisal(appraisal_id: int, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    try:
        appraisal = get_owned(db, Appraisal, appraisal_id, ctx.user_id, "Appraisal not found")
        db.query(AppraisalContact).filter(
            AppraisalContact.appraisal_id == appraisal.id
        ).delete(synchronize_session="fetch")
        db.delete(appraisal)
        db.commit()
        return {"success": True}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Deleting appraisal %s failed", appraisal_id)
        raise HTTPException(status_code=500, detail=str(e))
