"""SQLAlchemy models for the agent CRM.

Data Architecture Overview:
- Every row carries the owning user's id (``user_id``); all queries are scoped by it
- Property is the anchor for appraisals, deals, open homes and tasks
- Contact is the person record; it joins appraisals via AppraisalContact and
  other contacts via one-directional ContactLink edges
- OpenHomeAttendee is a lightweight capture that may later be converted into a Contact

Identity Notes:
- Property has NO unique business key. Two rows can describe the same house when the
  address text differs. Appraisal saves reuse a property through a case-insensitive
  lookup before inserting, but nothing prevents duplicates under concurrent saves.
- Contact deduplication happens only when converting attendees (phone/email match).
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .transformations import compose_display_name

OPEN_HOME_LEAD_NAME = "Open home lead"


# =============================================================================
# PROPERTIES & APPRAISALS
# =============================================================================


class Property(Base):
    """A property the agent is appraising, listing or has sold."""

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Address
    street_address: Mapped[str | None] = mapped_column(Text)
    suburb: Mapped[str | None] = mapped_column(String(100), index=True)
    state: Mapped[str | None] = mapped_column(String(10), default="WA")
    postcode: Mapped[str | None] = mapped_column(String(10))
    lot_number: Mapped[str | None] = mapped_column(String(20))

    # Physical characteristics
    property_type: Mapped[str | None] = mapped_column(String(50))
    bedrooms: Mapped[int | None] = mapped_column(Integer)
    bathrooms: Mapped[Decimal | None] = mapped_column(Numeric(4, 1))
    car_spaces: Mapped[int | None] = mapped_column(Integer)
    built_year: Mapped[int | None] = mapped_column(Integer)
    land_size: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    land_size_unit: Mapped[str | None] = mapped_column(String(10), default="sqm")
    zoning: Mapped[str | None] = mapped_column(String(50))

    # Campaign
    market_status: Mapped[str] = mapped_column(
        String(30), default="appraisal",
        doc="Lifecycle label: appraisal (not yet listed), for_sale, under_offer, sold, ..."
    )
    price_from: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    price_to: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    list_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    sold_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    campaign_start: Mapped[str | None] = mapped_column(String(30))
    campaign_end: Mapped[str | None] = mapped_column(String(30))
    settlement_date: Mapped[str | None] = mapped_column(String(30))

    # Marketing copy
    headline: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    appraisals: Mapped[list["Appraisal"]] = relationship("Appraisal", back_populates="property")
    open_home_events: Mapped[list["OpenHomeEvent"]] = relationship(
        "OpenHomeEvent", back_populates="property", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Property {self.id}: {self.street_address}, {self.suburb}>"


class Appraisal(Base):
    """A market appraisal. The form content is an opaque key/value payload in ``data``."""

    __tablename__ = "appraisals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(30), default="DRAFT",
        doc="Free-text status label; no transitions are enforced"
    )
    property_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="SET NULL"), index=True
    )
    data: Mapped[dict] = mapped_column(JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    property: Mapped["Property | None"] = relationship("Property", back_populates="appraisals")
    contact_links: Mapped[list["AppraisalContact"]] = relationship(
        "AppraisalContact", back_populates="appraisal", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Appraisal {self.id} ({self.status})>"


class AppraisalContact(Base):
    """Join row between an appraisal and a contact (usually the owners)."""

    __tablename__ = "appraisal_contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    appraisal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("appraisals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contact_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(30), default="owner")
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    appraisal: Mapped["Appraisal"] = relationship("Appraisal", back_populates="contact_links")
    contact: Mapped["Contact"] = relationship("Contact")


# =============================================================================
# CONTACTS
# =============================================================================


class Contact(Base):
    """A person the agent deals with: vendor, buyer, lead or past client.

    Phone numbers are stored as entered. ``phone_mobile`` is the primary number;
    ``phone`` is a generic column kept in sync for contacts created from open homes.
    """

    __tablename__ = "contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Identity
    name: Mapped[str | None] = mapped_column(String(200), index=True)
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))

    # Contact details
    email: Mapped[str | None] = mapped_column(String(255))
    phone_mobile: Mapped[str | None] = mapped_column(String(30))
    phone_home: Mapped[str | None] = mapped_column(String(30))
    phone_work: Mapped[str | None] = mapped_column(String(30))
    phone: Mapped[str | None] = mapped_column(String(30))

    # CRM classification
    type: Mapped[str | None] = mapped_column(String(50))
    tags: Mapped[list | None] = mapped_column(JSON)
    source: Mapped[str | None] = mapped_column(String(100))
    stage: Mapped[str | None] = mapped_column(String(30))
    rating: Mapped[str | None] = mapped_column(String(10))
    timeframe_to_move: Mapped[str | None] = mapped_column(String(20))
    is_seller: Mapped[bool | None] = mapped_column(Boolean)
    is_buyer: Mapped[bool | None] = mapped_column(Boolean)
    marketing_opt_in: Mapped[bool | None] = mapped_column(Boolean)
    do_not_contact: Mapped[bool | None] = mapped_column(Boolean)
    contact_type: Mapped[str | None] = mapped_column(String(30))
    lead_source: Mapped[str | None] = mapped_column(String(100))

    # Address
    street_address: Mapped[str | None] = mapped_column(Text)
    suburb: Mapped[str | None] = mapped_column(String(100))
    state: Mapped[str | None] = mapped_column(String(10))
    postcode: Mapped[str | None] = mapped_column(String(10))
    postal_address: Mapped[str | None] = mapped_column(Text)

    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<Contact {self.id}: {self.name}>"


class ContactLink(Base):
    """One-directional edge from a contact to a related contact (spouse, solicitor, ...)."""

    __tablename__ = "contact_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    contact_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    linked_contact_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False
    )
    relationship_type: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    contact: Mapped["Contact"] = relationship("Contact", foreign_keys=[contact_id])
    linked: Mapped["Contact"] = relationship("Contact", foreign_keys=[linked_contact_id])


class ContactNote(Base):
    """Free-text note against a contact."""

    __tablename__ = "contact_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    contact_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    note: Mapped[str] = mapped_column(Text, nullable=False)
    note_type: Mapped[str] = mapped_column(String(30), default="general")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class ContactActivity(Base):
    """A logged call, email, SMS or meeting with a contact."""

    __tablename__ = "contact_activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    contact_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    activity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    direction: Mapped[str | None] = mapped_column(String(10))  # inbound, outbound
    subject: Mapped[str | None] = mapped_column(Text)
    summary: Mapped[str | None] = mapped_column(Text)
    outcome: Mapped[str | None] = mapped_column(Text)
    channel: Mapped[str | None] = mapped_column(String(30))
    activity_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


# =============================================================================
# TASKS & PIPELINE
# =============================================================================


class Task(Base):
    """A to-do item, optionally tied to a property and/or contact."""

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str | None] = mapped_column(String(20), default="pending")
    priority: Mapped[str] = mapped_column(String(20), default="normal")
    task_type: Mapped[str | None] = mapped_column(String(30))
    due_date: Mapped[str | None] = mapped_column(String(30))
    related_property_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="SET NULL"), index=True
    )
    related_contact_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("contacts.id", ondelete="SET NULL"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Deal(Base):
    """A pipeline record tracking a prospective sale.

    ``title`` is never null: when the caller supplies none it is derived from the
    linked property's address (see ``resolution.derive_deal_title``).
    """

    __tablename__ = "deals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    stage: Mapped[str] = mapped_column(String(20), default="lead", index=True)

    contact_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("contacts.id", ondelete="SET NULL")
    )
    property_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="SET NULL")
    )
    appraisal_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("appraisals.id", ondelete="SET NULL")
    )

    estimated_value_low: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    estimated_value_high: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    confidence: Mapped[int | None] = mapped_column(Integer)
    next_action_at: Mapped[datetime | None] = mapped_column(DateTime)
    lost_reason: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Many-to-one: each resolves to exactly one row or None
    contact: Mapped["Contact | None"] = relationship("Contact")
    property: Mapped["Property | None"] = relationship("Property")
    appraisal: Mapped["Appraisal | None"] = relationship("Appraisal")

    def __repr__(self) -> str:
        return f"<Deal {self.id}: {self.title} [{self.stage}]>"


# =============================================================================
# OPEN HOMES
# =============================================================================


class OpenHomeEvent(Base):
    """A scheduled open-home inspection for a property."""

    __tablename__ = "open_home_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str | None] = mapped_column(Text)
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime | None] = mapped_column(DateTime)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    property: Mapped["Property"] = relationship("Property", back_populates="open_home_events")
    attendees: Mapped[list["OpenHomeAttendee"]] = relationship(
        "OpenHomeAttendee", back_populates="event", cascade="all, delete-orphan"
    )


class OpenHomeAttendee(Base):
    """A visitor captured at an open home (kiosk or manual entry).

    ``contact_id`` is set once the attendee has been converted; conversion is
    one-way and short-circuits when already linked.
    """

    __tablename__ = "open_home_attendees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("open_home_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    property_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="SET NULL")
    )

    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    phone: Mapped[str | None] = mapped_column(String(30))
    email: Mapped[str | None] = mapped_column(String(255))

    lead_source: Mapped[str | None] = mapped_column(String(100))
    lead_source_other: Mapped[str | None] = mapped_column(String(200))
    is_buyer: Mapped[bool | None] = mapped_column(Boolean)
    is_seller: Mapped[bool | None] = mapped_column(Boolean)
    research_visit: Mapped[bool | None] = mapped_column(Boolean)
    mailing_list_opt_in: Mapped[bool | None] = mapped_column(Boolean)
    notes: Mapped[str | None] = mapped_column(Text)

    contact_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("contacts.id", ondelete="SET NULL"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    event: Mapped["OpenHomeEvent"] = relationship("OpenHomeEvent", back_populates="attendees")

    @property
    def display_name(self) -> str:
        """First and last name joined, falling back to a generic label."""
        return compose_display_name(self.first_name, self.last_name, OPEN_HOME_LEAD_NAME)
