"""To-do items, optionally tied to a property and/or contact."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import RequestContext, get_context
from ..models import Contact, Property, Task
from ..schemas import TaskInput, TaskRead
from ..transformations import norm, text_or_none
from .common import get_owned

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

TASK_REFERENCES = {
    "related_property_id": (Property, "Property not found"),
    "related_contact_id": (Contact, "Contact not found"),
}


def _check_references(db: Session, user_id: str, values: dict) -> None:
    for field, (model, detail) in TASK_REFERENCES.items():
        if values.get(field) is not None:
            get_owned(db, model, values[field], user_id, detail)


@router.get("")
async def list_tasks(
    propertyId: int | None = None,
    contactId: int | None = None,
    ctx: RequestContext = Depends(get_context),
):
    """Tasks by due date (undated last), then creation time."""
    query = ctx.db.query(Task).filter(Task.user_id == ctx.user_id)
    if propertyId:
        query = query.filter(Task.related_property_id == propertyId)
    if contactId:
        query = query.filter(Task.related_contact_id == contactId)
    rows = query.order_by(
        Task.due_date.asc().nulls_last(), Task.created_at.asc(), Task.id.asc()
    ).all()
    return {"items": [TaskRead.model_validate(t) for t in rows]}


@router.post("", status_code=201)
async def create_task(payload: TaskInput, ctx: RequestContext = Depends(get_context)):
    title = norm(payload.title)
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")

    db = ctx.db
    _check_references(db, ctx.user_id, payload.model_dump())
    try:
        task = Task(
            user_id=ctx.user_id,
            title=title,
            notes=text_or_none(payload.notes),
            status=payload.status or "pending",
            priority=payload.priority or "normal",
            task_type=payload.task_type,
            due_date=text_or_none(payload.due_date),
            related_property_id=payload.related_property_id,
            related_contact_id=payload.related_contact_id,
        )
        db.add(task)
        db.commit()
        db.refresh(task)
        return {"task": TaskRead.model_validate(task)}
    except Exception as e:
        db.rollback()
        logger.exception("Creating task failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{task_id}")
async def get_task(task_id: int, ctx: RequestContext = Depends(get_context)):
    task = get_owned(ctx.db, Task, task_id, ctx.user_id, "Task not found")
    return {"task": TaskRead.model_validate(task)}


@router.put("/{task_id}")
async def update_task(task_id: int, payload: TaskInput, ctx: RequestContext = Depends(get_context)):
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "title" in updates:
        updates["title"] = norm(updates["title"])
        if not updates["title"]:
            raise HTTPException(status_code=400, detail="Title is required")

    db = ctx.db
    try:
        task = get_owned(db, Task, task_id, ctx.user_id, "Task not found")
        _check_references(db, ctx.user_id, updates)
        for key, value in updates.items():
            setattr(task, key, value)
        db.commit()
        db.refresh(task)
        return {"task": TaskRead.model_validate(task)}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Updating task %s failed", task_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{task_id}")
async def delete_task(task_id: int, ctx: RequestContext = Depends(get_context)):
    db = ctx.db
    task = get_owned(db, Task, task_id, ctx.user_id, "Task not found")
    db.delete(task)
    db.commit()
    return {"success": True}
