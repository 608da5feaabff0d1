"""Bearer-token authentication against the hosted auth service.

Every ``/api`` route depends on ``get_context``, which yields the database session
and the signed-in user for the request.
"""

import logging
import os
from dataclasses import dataclass

import httpx
from dotenv import load_dotenv
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db

load_dotenv()

logger = logging.getLogger(__name__)

AUTH_URL = os.getenv("AUTH_URL", "http://localhost:54321")
AUTH_API_KEY = os.getenv("AUTH_API_KEY", "")

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str | None = None


@dataclass
class RequestContext:
    """Per-request dependencies handed to route handlers."""

    db: Session
    user: CurrentUser

    @property
    def user_id(self) -> str:
        return self.user.id


def _auth_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=AUTH_URL, timeout=10.0)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """Resolve the bearer token to a user, or fail with 401."""
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not signed in")

    headers = {"Authorization": f"Bearer {credentials.credentials}"}
    if AUTH_API_KEY:
        headers["apikey"] = AUTH_API_KEY

    try:
        async with _auth_client() as client:
            response = await client.get("/auth/v1/user", headers=headers)
    except httpx.HTTPError as e:
        logger.error("Auth service unreachable: %s", e)
        raise HTTPException(status_code=503, detail="Auth service unavailable")

    if response.status_code != 200:
        raise HTTPException(status_code=401, detail="Not signed in")

    try:
        payload = response.json()
    except ValueError:
        logger.warning("Auth service returned a non-JSON user payload")
        raise HTTPException(status_code=401, detail="Not signed in")
    user_id = payload.get("id") if isinstance(payload, dict) else None
    if not user_id:
        raise HTTPException(status_code=401, detail="Not signed in")
    return CurrentUser(id=str(user_id), email=payload.get("email"))


def get_context(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> RequestContext:
    return RequestContext(db=db, user=user)
