"""Sales pipeline (deals)."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from ..auth import RequestContext, get_context
from ..models import Appraisal, Contact, Deal, Property
from ..resolution import derive_deal_title
from ..schemas import DealCreate, DealRead, DealStage, DealUpdate
from ..transformations import norm, text_or_none
from .common import get_owned

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/deals", tags=["deals"])

# Foreign keys a caller may set, with the model each must point at
DEAL_REFERENCES = {
    "property_id": (Property, "Property not found"),
    "contact_id": (Contact, "Contact not found"),
    "appraisal_id": (Appraisal, "Appraisal not found"),
}


def _check_references(db: Session, user_id: str, values: dict) -> dict:
    """404 unless every referenced row belongs to the caller. Returns the loaded rows."""
    loaded = {}
    for field, (model, detail) in DEAL_REFERENCES.items():
        ref_id = values.get(field)
        if ref_id is not None:
            loaded[field] = get_owned(db, model, ref_id, user_id, detail)
    return loaded


def _load_deal(db: Session, deal_id: int, user_id: str) -> Deal:
    deal = (
        db.query(Deal)
        .options(joinedload(Deal.contact), joinedload(Deal.property), joinedload(Deal.appraisal))
        .filter(Deal.id == deal_id, Deal.user_id == user_id)
        .first()
    )
    if deal is None:
        raise HTTPException(status_code=404, detail="Deal not found")
    return deal


@router.get("")
async def list_deals(
    propertyId: int | None = None,
    contactId: int | None = None,
    appraisalId: int | None = None,
    ctx: RequestContext = Depends(get_context),
):
    """Pipeline board data, most recently touched first."""
    query = (
        ctx.db.query(Deal)
        .options(joinedload(Deal.contact), joinedload(Deal.property), joinedload(Deal.appraisal))
        .filter(Deal.user_id == ctx.user_id)
    )
    if propertyId:
        query = query.filter(Deal.property_id == propertyId)
    if contactId:
        query = query.filter(Deal.contact_id == contactId)
    if appraisalId:
        query = query.filter(Deal.appraisal_id == appraisalId)
    rows = query.order_by(Deal.updated_at.desc(), Deal.id.desc()).all()
    return {"items": [DealRead.model_validate(d) for d in rows]}


@router.get("/stages")
async def list_stages():
    return {"stages": [{"key": stage.value, "label": stage.label} for stage in DealStage]}


@router.post("", status_code=201)
async def create_deal(payload: DealCreate, ctx: RequestContext = Depends(get_context)):
    """Create a deal; the title falls back to the property's address."""
    db = ctx.db
    try:
        refs = _check_references(db, ctx.user_id, payload.model_dump())
        deal = Deal(
            user_id=ctx.user_id,
            title=derive_deal_title(payload.title, refs.get("property_id")),
            stage=payload.stage.value,
            property_id=payload.property_id,
            contact_id=payload.contact_id,
            appraisal_id=payload.appraisal_id,
            notes=text_or_none(payload.notes),
        )
        db.add(deal)
        db.commit()
        logger.info("Created deal %s: %s", deal.id, deal.title)
        return {"deal": DealRead.model_validate(_load_deal(db, deal.id, ctx.user_id))}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Creating deal failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{deal_id}")
async def get_deal(deal_id: int, ctx: RequestContext = Depends(get_context)):
    return {"deal": DealRead.model_validate(_load_deal(ctx.db, deal_id, ctx.user_id))}


@router.patch("/{deal_id}")
async def update_deal(deal_id: int, payload: DealUpdate, ctx: RequestContext = Depends(get_context)):
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    if "title" in updates:
        updates["title"] = norm(updates["title"])
        if not updates["title"]:
            raise HTTPException(status_code=400, detail="Title cannot be blank")
    if "stage" in updates:
        if updates["stage"] is None:
            raise HTTPException(status_code=400, detail="Stage cannot be blank")
        updates["stage"] = updates["stage"].value

    db = ctx.db
    try:
        deal = get_owned(db, Deal, deal_id, ctx.user_id, "Deal not found")
        _check_references(db, ctx.user_id, updates)
        for key, value in updates.items():
            setattr(deal, key, value)
        db.commit()
        db.expire_all()
        return {"deal": DealRead.model_validate(_load_deal(db, deal_id, ctx.user_id))}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Updating deal %s failed", deal_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{deal_id}")
async def delete_deal(deal_id: int, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    deal = get_owned(db, Deal, deal_id, ctx.user_id, "Deal not found")
    db.delete(deal)
    db.commit()
    return {"success": True}
