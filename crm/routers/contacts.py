"""Contacts, contact links, notes, activities and the contact timeline."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import or_
from sqlalchemy.orm import joinedload

from ..auth import RequestContext, get_context
from ..models import (
    Appraisal,
    AppraisalContact,
    Contact,
    ContactActivity,
    ContactLink,
    ContactNote,
    Deal,
    OpenHomeAttendee,
    OpenHomeEvent,
    Task,
)
from ..schemas import (
    ActivityCreate,
    ActivityRead,
    ContactInput,
    ContactLinkCreate,
    ContactLinkRead,
    ContactRead,
    NoteCreate,
    NoteRead,
    OpenHomeAttendance,
)
from ..timeline import activity_items, linked_appraisal_items, newest_first, note_items, task_items
from ..transformations import compose_address, compose_display_name, norm
from .common import get_owned, owned_ids

logger = logging.getLogger(__name__)

router = APIRouter(tags=["contacts"])


# =============================================================================
# Contacts
# =============================================================================


@router.get("/api/contacts")
async def list_contacts(q: str | None = None, ctx: RequestContext = Depends(get_context)):
    """List contacts by name; ``q`` filters on a name substring."""
    query = ctx.db.query(Contact).filter(Contact.user_id == ctx.user_id)
    if q and q.strip():
        query = query.filter(Contact.name.ilike(f"%{q.strip()}%"))
    rows = query.order_by(Contact.name.asc(), Contact.id.asc()).all()
    return {"items": [ContactRead.model_validate(c) for c in rows]}


@router.post("/api/contacts", status_code=201)
async def create_contact(payload: ContactInput, ctx: RequestContext = Depends(get_context)):
    values = payload.model_dump()
    values["name"] = payload.name or compose_display_name(payload.first_name, payload.last_name)
    values["phone_mobile"] = payload.phone_mobile or payload.phone

    db = ctx.db
    try:
        contact = Contact(user_id=ctx.user_id, **values)
        db.add(contact)
        db.commit()
        db.refresh(contact)
        return {"contact": ContactRead.model_validate(contact)}
    except Exception as e:
        db.rollback()
        logger.exception("Creating contact failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/api/contacts/{contact_id}")
async def get_contact(contact_id: int, ctx: RequestContext = Depends(get_context)):
    contact = get_owned(ctx.db, Contact, contact_id, ctx.user_id, "Contact not found")
    return {"contact": ContactRead.model_validate(contact)}


@router.patch("/api/contacts/{contact_id}")
async def update_contact(
    contact_id: int,
    payload: ContactInput,
    ctx: RequestContext = Depends(get_context),
):
    """Update only the fields present in the body."""
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    db = ctx.db
    try:
        contact = get_owned(db, Contact, contact_id, ctx.user_id, "Contact not found")
        for key, value in updates.items():
            setattr(contact, key, value)
        db.commit()
        db.refresh(contact)
        return {"contact": ContactRead.model_validate(contact)}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Updating contact %s failed", contact_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/api/contacts/{contact_id}")
async def delete_contact(contact_id: int, ctx: RequestContext = Depends(get_context)):
    """Delete a contact, detaching everything that pointed at it."""
    db = ctx.db
    try:
        contact = get_owned(db, Contact, contact_id, ctx.user_id, "Contact not found")

        db.query(OpenHomeAttendee).filter(OpenHomeAttendee.contact_id == contact.id).update(
            {OpenHomeAttendee.contact_id: None}, synchronize_session="fetch"
        )
        db.query(Task).filter(Task.related_contact_id == contact.id).update(
            {Task.related_contact_id: None}, synchronize_session="fetch"
        )
        db.query(Deal).filter(Deal.contact_id == contact.id).update(
            {Deal.contact_id: None}, synchronize_session="fetch"
        )
        for model in (ContactNote, ContactActivity, AppraisalContact):
            db.query(model).filter(model.contact_id == contact.id).delete(
                synchronize_session="fetch"
            )
        db.query(ContactLink).filter(
            or_(ContactLink.contact_id == contact.id, ContactLink.linked_contact_id == contact.id)
        ).delete(synchronize_session="fetch")

        db.delete(contact)
        db.commit()
        return {"success": True}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Deleting contact %s failed", contact_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/api/contacts/{contact_id}/timeline")
async def contact_timeline(contact_id: int, ctx: RequestContext = Depends(get_context)):
    """Notes, activities, tasks and linked appraisals, newest first."""
    db = ctx.db
    get_owned(db, Contact, contact_id, ctx.user_id, "Contact not found")

    notes = db.query(ContactNote).filter(
        ContactNote.contact_id == contact_id, ContactNote.user_id == ctx.user_id
    ).all()
    activities = db.query(ContactActivity).filter(
        ContactActivity.contact_id == contact_id, ContactActivity.user_id == ctx.user_id
    ).all()
    tasks = db.query(Task).filter(
        Task.related_contact_id == contact_id, Task.user_id == ctx.user_id
    ).all()
    appraisal_links = (
        db.query(AppraisalContact)
        .join(Appraisal, Appraisal.id == AppraisalContact.appraisal_id)
        .filter(AppraisalContact.contact_id == contact_id, Appraisal.user_id == ctx.user_id)
        .all()
    )

    items = newest_first(
        note_items(notes),
        activity_items(activities),
        task_items(tasks),
        linked_appraisal_items(appraisal_links),
    )
    return {"items": items}


def _role_label(attendee: OpenHomeAttendee) -> str | None:
    if attendee.is_buyer and attendee.is_seller:
        return "Buyer & Seller"
    if attendee.is_buyer:
        return "Buyer"
    if attendee.is_seller:
        return "Seller"
    return None


def _attendance(attendee: OpenHomeAttendee) -> OpenHomeAttendance:
    event = attendee.event
    prop = event.property
    label = (
        compose_address(prop.street_address, prop.suburb, prop.state, prop.postcode)
        if prop else "Unknown property"
    )
    return OpenHomeAttendance(
        attendee_id=attendee.id,
        event_id=event.id,
        event_title=event.title or "Open home",
        property_label=label,
        property_id=prop.id if prop else None,
        attended_at=event.start_at or attendee.created_at,
        role_label=_role_label(attendee),
        lead_source=attendee.lead_source or attendee.lead_source_other,
        notes=attendee.notes,
    )


@router.get("/api/contacts/{contact_id}/open-home-attendances")
async def contact_open_home_attendances(contact_id: int, ctx: RequestContext = Depends(get_context)):
    """Open homes this contact attended, via converted attendee rows, newest first."""
    db = ctx.db
    get_owned(db, Contact, contact_id, ctx.user_id, "Contact not found")
    attendees = (
        db.query(OpenHomeAttendee)
        .join(OpenHomeEvent, OpenHomeEvent.id == OpenHomeAttendee.event_id)
        .options(joinedload(OpenHomeAttendee.event).joinedload(OpenHomeEvent.property))
        .filter(
            OpenHomeAttendee.contact_id == contact_id,
            OpenHomeAttendee.user_id == ctx.user_id,
            OpenHomeEvent.user_id == ctx.user_id,
        )
        .order_by(OpenHomeAttendee.created_at.desc(), OpenHomeAttendee.id.desc())
        .all()
    )
    return {"items": [_attendance(a) for a in attendees]}


# =============================================================================
# Links
# =============================================================================


@router.get("/api/contacts/{contact_id}/links")
async def list_links(contact_id: int, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    get_owned(db, Contact, contact_id, ctx.user_id, "Contact not found")
    links = (
        db.query(ContactLink)
        .filter(ContactLink.contact_id == contact_id, ContactLink.user_id == ctx.user_id)
        .order_by(ContactLink.created_at.asc(), ContactLink.id.asc())
        .all()
    )
    return {"links": [ContactLinkRead.model_validate(link) for link in links]}


@router.post("/api/contact-links", status_code=201)
async def create_link(payload: ContactLinkCreate, ctx: RequestContext = Depends(get_context)):
    if payload.contact_id == payload.linked_contact_id:
        raise HTTPException(status_code=400, detail="Cannot link a contact to themselves")

    db = ctx.db
    wanted = [payload.contact_id, payload.linked_contact_id]
    if owned_ids(db, Contact, wanted, ctx.user_id) != set(wanted):
        raise HTTPException(status_code=404, detail="Contact not found")

    try:
        link = ContactLink(
            user_id=ctx.user_id,
            contact_id=payload.contact_id,
            linked_contact_id=payload.linked_contact_id,
            relationship_type=norm(payload.relationship_type) or None,
        )
        db.add(link)
        db.commit()
        db.refresh(link)
        return {"link": ContactLinkRead.model_validate(link)}
    except Exception as e:
        db.rollback()
        logger.exception("Creating contact link failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/api/contact-links/{link_id}")
async def delete_link(link_id: int, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    link = get_owned(db, ContactLink, link_id, ctx.user_id, "Link not found")
    db.delete(link)
    db.commit()
    return {"success": True}


# =============================================================================
# Notes
# =============================================================================


@router.get("/api/contacts/{contact_id}/notes")
async def list_notes(contact_id: int, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    get_owned(db, Contact, contact_id, ctx.user_id, "Contact not found")
    notes = (
        db.query(ContactNote)
        .filter(ContactNote.contact_id == contact_id, ContactNote.user_id == ctx.user_id)
        .order_by(ContactNote.created_at.desc(), ContactNote.id.desc())
        .all()
    )
    return {"notes": [NoteRead.model_validate(n) for n in notes]}


@router.post("/api/contacts/{contact_id}/notes", status_code=201)
async def create_note(
    contact_id: int,
    payload: NoteCreate,
    ctx: RequestContext = Depends(get_context),
):
    text = norm(payload.note)
    if not text:
        raise HTTPException(status_code=400, detail="Note text is required")

    db = ctx.db
    get_owned(db, Contact, contact_id, ctx.user_id, "Contact not found")
    note = ContactNote(
        user_id=ctx.user_id,
        contact_id=contact_id,
        note=text,
        note_type=norm(payload.note_type) or "general",
    )
    db.add(note)
    db.commit()
    db.refresh(note)
    return {"note": NoteRead.model_validate(note)}


@router.delete("/api/contact-notes/{note_id}", status_code=204)
async def delete_note(note_id: int, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    note = get_owned(db, ContactNote, note_id, ctx.user_id, "Note not found")
    db.delete(note)
    db.commit()
    return Response(status_code=204)


# =============================================================================
# Activities
# =============================================================================


@router.get("/api/contact-activities")
async def list_activities(contactId: int, ctx: RequestContext = Depends(get_context)):
    activities = (
        ctx.db.query(ContactActivity)
        .filter(ContactActivity.contact_id == contactId, ContactActivity.user_id == ctx.user_id)
        .order_by(ContactActivity.activity_at.desc(), ContactActivity.id.desc())
        .all()
    )
    return {"items": [ActivityRead.model_validate(a) for a in activities]}


@router.post("/api/contact-activities", status_code=201)
async def create_activity(payload: ActivityCreate, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    get_owned(db, Contact, payload.contact_id, ctx.user_id, "Contact not found")
    activity = ContactActivity(
        user_id=ctx.user_id,
        contact_id=payload.contact_id,
        activity_type=payload.activity_type.value,
        direction=payload.direction,
        subject=payload.subject,
        summary=payload.summary,
        outcome=payload.outcome,
        channel=payload.channel,
        activity_at=payload.activity_at or datetime.utcnow(),
    )
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return {"activity": ActivityRead.model_validate(activity)}


@router.delete("/api/contact-activities/{activity_id}", status_code=204)
async def delete_activity(activity_id: int, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    activity = get_owned(db, ContactActivity, activity_id, ctx.user_id, "Activity not found")
    db.delete(activity)
    db.commit()
    return Response(status_code=204)
