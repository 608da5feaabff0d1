"""Property records and the property timeline."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, or_

from ..auth import RequestContext, get_context
from ..models import Appraisal, Deal, OpenHomeEvent, Property, Task
from ..schemas import PropertyInput, PropertyRead
from ..timeline import appraisal_items, deal_items, newest_first, open_home_items, task_items
from .common import get_owned

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/properties", tags=["properties"])


@router.get("")
async def list_properties(
    status: str | None = None,
    suburb: str | None = None,
    q: str | None = None,
    ctx: RequestContext = Depends(get_context),
):
    """List the caller's properties, most recently updated first."""
    query = ctx.db.query(Property).filter(Property.user_id == ctx.user_id)
    if status:
        query = query.filter(Property.market_status == status)
    if suburb:
        query = query.filter(func.lower(Property.suburb) == suburb.strip().lower())
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(
            or_(
                Property.street_address.ilike(pattern),
                Property.suburb.ilike(pattern),
                Property.headline.ilike(pattern),
                Property.notes.ilike(pattern),
            )
        )
    rows = query.order_by(Property.updated_at.desc(), Property.id.desc()).all()
    return {"items": [PropertyRead.model_validate(p) for p in rows]}


@router.post("", status_code=201)
async def create_property(payload: PropertyInput, ctx: RequestContext = Depends(get_context)):
    columns = payload.to_columns()
    if not columns.get("street_address") or not columns.get("suburb"):
        raise HTTPException(status_code=400, detail="streetAddress and suburb are required")

    db = ctx.db
    try:
        prop = Property(user_id=ctx.user_id, **columns)
        db.add(prop)
        db.commit()
        db.refresh(prop)
        return {"property": PropertyRead.model_validate(prop)}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Creating property failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{property_id}")
async def get_property(property_id: int, ctx: RequestContext = Depends(get_context)):
    prop = get_owned(ctx.db, Property, property_id, ctx.user_id, "Property not found")
    return {"property": PropertyRead.model_validate(prop)}


@router.patch("/{property_id}")
async def update_property(
    property_id: int,
    payload: PropertyInput,
    ctx: RequestContext = Depends(get_context),
):
    """Update only the fields present in the body."""
    columns = payload.to_columns(partial=True)
    if not columns:
        raise HTTPException(status_code=400, detail="No fields to update")
    for required in ("street_address", "suburb"):
        if required in columns and not columns[required]:
            raise HTTPException(status_code=400, detail="streetAddress and suburb cannot be blank")

    db = ctx.db
    try:
        prop = get_owned(db, Property, property_id, ctx.user_id, "Property not found")
        for key, value in columns.items():
            setattr(prop, key, value)
        db.commit()
        db.refresh(prop)
        return {"property": PropertyRead.model_validate(prop)}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Updating property %s failed", property_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{property_id}")
async def delete_property(property_id: int, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    try:
        prop = get_owned(db, Property, property_id, ctx.user_id, "Property not found")
        db.delete(prop)
        db.commit()
        return {"success": True}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Deleting property %s failed", property_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{property_id}/timeline")
async def property_timeline(property_id: int, ctx: RequestContext = Depends(get_context)):
    """Appraisals, deals, open homes and tasks for one property, newest first."""
    db = ctx.db
    get_owned(db, Property, property_id, ctx.user_id, "Property not found")

    appraisals = db.query(Appraisal).filter(
        Appraisal.property_id == property_id, Appraisal.user_id == ctx.user_id
    ).all()
    deals = db.query(Deal).filter(
        Deal.property_id == property_id, Deal.user_id == ctx.user_id
    ).all()
    events = db.query(OpenHomeEvent).filter(
        OpenHomeEvent.property_id == property_id, OpenHomeEvent.user_id == ctx.user_id
    ).all()
    tasks = db.query(Task).filter(
        Task.related_property_id == property_id, Task.user_id == ctx.user_id
    ).all()

    items = newest_first(
        appraisal_items(appraisals),
        deal_items(deals),
        open_home_items(events),
        task_items(tasks),
    )
    return {"items": items}
