"""Lookups shared by the routers."""

from typing import TypeVar

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..database import Base

ModelT = TypeVar("ModelT", bound=Base)


def get_owned(db: Session, model: type[ModelT], row_id: int, user_id: str, detail: str) -> ModelT:
    """Fetch a row by id scoped to its owner; other users' rows look missing (404)."""
    row = db.query(model).filter(model.id == row_id, model.user_id == user_id).first()
    if row is None:
        raise HTTPException(status_code=404, detail=detail)
    return row


def owned_ids(db: Session, model: type[ModelT], ids: list[int], user_id: str) -> set[int]:
    """Subset of ``ids`` that exist and belong to ``user_id``."""
    if not ids:
        return set()
    rows = db.query(model.id).filter(model.id.in_(ids), model.user_id == user_id).all()
    return {r.id for r in rows}
