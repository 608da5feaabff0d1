"""Timeline assembly for the contact and property detail pages.

Each builder turns one kind of row into ``TimelineItem``s; ``newest_first`` merges
them. Items without a date sort last.
"""

from collections.abc import Iterable
from datetime import datetime

from .models import Appraisal, AppraisalContact, ContactActivity, ContactNote, Deal, OpenHomeEvent, Task
from .schemas import DealStage, TimelineItem
from .transformations import parse_iso, read_appraisal_field

ACTIVITY_LABELS = {
    "call": "Call",
    "email": "Email",
    "sms": "SMS",
    "meeting": "Meeting",
}

DIRECTION_LABELS = {
    "inbound": "from contact",
    "outbound": "to contact",
}


def note_items(notes: Iterable[ContactNote]) -> list[TimelineItem]:
    return [
        TimelineItem(
            id=f"note-{n.id}",
            kind="note",
            iso_date=n.created_at,
            title="Note added",
            description=n.note,
            meta={"noteType": n.note_type},
        )
        for n in notes
    ]


def activity_items(activities: Iterable[ContactActivity]) -> list[TimelineItem]:
    items = []
    for a in activities:
        label = ACTIVITY_LABELS.get(a.activity_type, a.activity_type or "Activity")
        direction = DIRECTION_LABELS.get(a.direction or "")
        items.append(
            TimelineItem(
                id=f"activity-{a.id}",
                kind="activity",
                iso_date=a.activity_at or a.created_at,
                title=" • ".join(p for p in (label, direction) if p),
                description=a.summary or a.subject,
                meta={
                    "type": a.activity_type,
                    "direction": a.direction,
                    "subject": a.subject,
                    "outcome": a.outcome,
                    "channel": a.channel,
                },
            )
        )
    return items


def task_items(tasks: Iterable[Task]) -> list[TimelineItem]:
    return [
        TimelineItem(
            id=f"task-{t.id}",
            kind="task",
            iso_date=parse_iso(t.due_date) or t.created_at,
            title=t.title or "Task",
            description=t.notes,
            meta={
                "taskType": t.task_type,
                "priority": t.priority,
                "status": t.status or "pending",
                "dueDate": t.due_date,
            },
        )
        for t in tasks
    ]


def appraisal_title(appraisal: Appraisal) -> str:
    return (
        read_appraisal_field(appraisal.data, "title")
        or read_appraisal_field(appraisal.data, "street_address")
        or f"Appraisal #{appraisal.id}"
    )


def appraisal_items(appraisals: Iterable[Appraisal]) -> list[TimelineItem]:
    items = []
    for a in appraisals:
        status = a.status or read_appraisal_field(a.data, "status")
        items.append(
            TimelineItem(
                id=f"appraisal-{a.id}",
                kind="appraisal",
                iso_date=a.created_at,
                title=appraisal_title(a),
                description=f"Status: {status}" if status else None,
                meta={"appraisalId": a.id, "status": status},
            )
        )
    return items


def linked_appraisal_items(links: Iterable[AppraisalContact]) -> list[TimelineItem]:
    """Appraisals a contact is attached to, with their role on each."""
    items = []
    for link in links:
        a = link.appraisal
        if a is None:
            continue
        items.append(
            TimelineItem(
                id=f"appraisal-{link.id}",
                kind="appraisal",
                iso_date=a.created_at or link.created_at,
                title=appraisal_title(a),
                description=read_appraisal_field(a.data, "suburb"),
                meta={
                    "appraisalId": a.id,
                    "status": a.status or read_appraisal_field(a.data, "status"),
                    "role": link.role,
                    "isPrimary": link.is_primary,
                },
            )
        )
    return items


def deal_items(deals: Iterable[Deal]) -> list[TimelineItem]:
    items = []
    for d in deals:
        try:
            stage_label = DealStage(d.stage).label
        except ValueError:
            stage_label = d.stage
        items.append(
            TimelineItem(
                id=f"deal-{d.id}",
                kind="deal",
                iso_date=d.updated_at or d.created_at,
                title=d.title,
                description=f"Stage: {stage_label}",
                meta={"dealId": d.id, "stage": d.stage},
            )
        )
    return items


def open_home_items(events: Iterable[OpenHomeEvent]) -> list[TimelineItem]:
    return [
        TimelineItem(
            id=f"open-home-{e.id}",
            kind="open_home",
            iso_date=e.start_at,
            title=e.title or "Open home",
            description=e.notes,
            meta={"eventId": e.id, "attendeeCount": len(e.attendees)},
        )
        for e in events
    ]


def newest_first(*groups: list[TimelineItem]) -> list[TimelineItem]:
    merged = [item for group in groups for item in group]
    merged.sort(key=lambda item: item.iso_date or datetime.min, reverse=True)
    return merged
