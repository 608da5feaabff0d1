"""FastAPI application for the agent CRM."""

import logging
import os
from contextlib import asynccontextmanager

import logfire
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .database import engine, init_db
from .routers import appraisals, contacts, deals, open_homes, properties, search, tasks

logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = "http://localhost:3000,http://localhost:5173"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield


app = FastAPI(
    title="Agent CRM API",
    description="Contacts, properties, appraisals, open homes and the sales pipeline",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure Logfire for observability (after app creation)
if os.getenv("LOGFIRE_TOKEN"):
    logfire.configure()
    logfire.instrument_fastapi(app)
    logfire.instrument_sqlalchemy(engine=engine)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("ALLOWED_ORIGINS", DEFAULT_ORIGINS).split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(properties.router)
app.include_router(appraisals.router)
app.include_router(contacts.router)
app.include_router(tasks.router)
app.include_router(deals.router)
app.include_router(open_homes.router)
app.include_router(search.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Agent CRM API"}
