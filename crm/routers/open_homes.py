"""Open-home events, their attendees, and attendee -> contact conversion."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from ..auth import RequestContext, get_context
from ..models import OpenHomeAttendee, OpenHomeEvent, Property
from ..resolution import convert_attendee_to_contact
from ..schemas import AttendeeCreate, AttendeeRead, OpenHomeEventInput, OpenHomeEventRead
from ..transformations import text_or_none
from .common import get_owned

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/open-homes", tags=["open-homes"])


def _get_attendee(ctx: RequestContext, event_id: int, attendee_id: int) -> OpenHomeAttendee:
    attendee = (
        ctx.db.query(OpenHomeAttendee)
        .filter(
            OpenHomeAttendee.id == attendee_id,
            OpenHomeAttendee.event_id == event_id,
            OpenHomeAttendee.user_id == ctx.user_id,
        )
        .first()
    )
    if attendee is None:
        raise HTTPException(status_code=404, detail="Attendee not found")
    return attendee


# =============================================================================
# Events
# =============================================================================


@router.get("")
async def list_events(propertyId: int | None = None, ctx: RequestContext = Depends(get_context)):
    query = ctx.db.query(OpenHomeEvent).filter(OpenHomeEvent.user_id == ctx.user_id)
    if propertyId:
        query = query.filter(OpenHomeEvent.property_id == propertyId)
    rows = query.order_by(OpenHomeEvent.start_at.desc(), OpenHomeEvent.id.desc()).all()
    return {"items": [OpenHomeEventRead.model_validate(e) for e in rows]}


@router.post("", status_code=201)
async def create_event(payload: OpenHomeEventInput, ctx: RequestContext = Depends(get_context)):
    if payload.property_id is None or payload.start_at is None:
        raise HTTPException(status_code=400, detail="propertyId and startAt are required")

    db = ctx.db
    get_owned(db, Property, payload.property_id, ctx.user_id, "Property not found")
    try:
        event = OpenHomeEvent(
            user_id=ctx.user_id,
            property_id=payload.property_id,
            title=text_or_none(payload.title),
            start_at=payload.start_at,
            end_at=payload.end_at,
            notes=text_or_none(payload.notes),
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return {"event": OpenHomeEventRead.model_validate(event)}
    except Exception as e:
        db.rollback()
        logger.exception("Creating open home failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{event_id}")
async def get_event(event_id: int, ctx: RequestContext = Depends(get_context)):
    event = get_owned(ctx.db, OpenHomeEvent, event_id, ctx.user_id, "Open home not found")
    return {"event": OpenHomeEventRead.model_validate(event)}


@router.patch("/{event_id}")
async def update_event(
    event_id: int,
    payload: OpenHomeEventInput,
    ctx: RequestContext = Depends(get_context),
):
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    for required in ("property_id", "start_at"):
        if required in updates and updates[required] is None:
            raise HTTPException(status_code=400, detail="propertyId and startAt cannot be blank")

    db = ctx.db
    try:
        event = get_owned(db, OpenHomeEvent, event_id, ctx.user_id, "Open home not found")
        if "property_id" in updates:
            get_owned(db, Property, updates["property_id"], ctx.user_id, "Property not found")
        for key in ("title", "notes"):
            if key in updates:
                updates[key] = text_or_none(updates[key])
        for key, value in updates.items():
            setattr(event, key, value)
        db.commit()
        db.refresh(event)
        return {"event": OpenHomeEventRead.model_validate(event)}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Updating open home %s failed", event_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{event_id}", status_code=204)
async def delete_event(event_id: int, ctx: RequestContext = Depends(get_context)):
    """Delete an open home and its attendee list."""
    db = ctx.db
    try:
        event = get_owned(db, OpenHomeEvent, event_id, ctx.user_id, "Open home not found")
        db.query(OpenHomeAttendee).filter(OpenHomeAttendee.event_id == event.id).delete(
            synchronize_session="fetch"
        )
        db.delete(event)
        db.commit()
        return Response(status_code=204)
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Deleting open home %s failed", event_id)
        raise HTTPException(status_code=500, detail=str(e))


# =============================================================================
# Attendees
# =============================================================================


@router.get("/{event_id}/attendees")
async def list_attendees(event_id: int, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    get_owned(db, OpenHomeEvent, event_id, ctx.user_id, "Open home not found")
    rows = (
        db.query(OpenHomeAttendee)
        .filter(OpenHomeAttendee.event_id == event_id, OpenHomeAttendee.user_id == ctx.user_id)
        .order_by(OpenHomeAttendee.created_at.asc(), OpenHomeAttendee.id.asc())
        .all()
    )
    return {"items": [AttendeeRead.model_validate(a) for a in rows]}


@router.post("/{event_id}/attendees", status_code=201)
async def create_attendee(
    event_id: int,
    payload: AttendeeCreate,
    ctx: RequestContext = Depends(get_context),
):
    """Capture a visitor from the kiosk or the manual form."""
    if not payload.first_name or not payload.last_name:
        raise HTTPException(status_code=400, detail="firstName and lastName are required")

    db = ctx.db
    event = get_owned(db, OpenHomeEvent, event_id, ctx.user_id, "Open home not found")
    try:
        values = payload.model_dump()
        for key in ("phone", "email", "notes", "lead_source", "lead_source_other"):
            values[key] = text_or_none(values[key])
        attendee = OpenHomeAttendee(
            user_id=ctx.user_id,
            event_id=event.id,
            property_id=event.property_id,
            **values,
        )
        db.add(attendee)
        db.commit()
        db.refresh(attendee)
        return {"attendee": AttendeeRead.model_validate(attendee)}
    except Exception as e:
        db.rollback()
        logger.exception("Adding attendee to open home %s failed", event_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{event_id}/attendees/{attendee_id}", status_code=204)
async def delete_attendee(event_id: int, attendee_id: int, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    attendee = _get_attendee(ctx, event_id, attendee_id)
    db.delete(attendee)
    db.commit()
    return Response(status_code=204)


@router.post("/{event_id}/attendees/{attendee_id}/convert-to-contact")
async def convert_attendee(event_id: int, attendee_id: int, ctx: RequestContext = Depends(get_context)):
    """Link the attendee to a matching contact, creating one if none matches.

    Safe to repeat: a second call reports ``alreadyLinked``.
    """
    attendee = _get_attendee(ctx, event_id, attendee_id)
    return convert_attendee_to_contact(ctx.db, ctx.user_id, attendee)
