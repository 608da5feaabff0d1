"""Pydantic request/response schemas for the agent CRM.

Wire-format notes:
- Property, appraisal and open-home forms post camelCase keys (``streetAddress``);
  contacts, tasks and deals post snake_case. Aliases accept both where the
  frontend has used both over time.
- Read models are built straight from ORM rows (``from_attributes``).
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .transformations import text_or_none


# =============================================================================
# ENUMS
# =============================================================================


class DealStage(str, Enum):
    """Pipeline stages, in board order."""

    LEAD = "lead"
    NURTURE = "nurture"
    APPRAISAL = "appraisal"
    PRE_MARKET = "pre_market"
    FOR_SALE = "for_sale"
    UNDER_OFFER = "under_offer"
    SOLD = "sold"
    LOST = "lost"

    @property
    def label(self) -> str:
        return DEAL_STAGE_LABELS[self]


DEAL_STAGE_LABELS: dict[DealStage, str] = {
    DealStage.LEAD: "Lead",
    DealStage.NURTURE: "Nurture",
    DealStage.APPRAISAL: "Appraisal",
    DealStage.PRE_MARKET: "Pre-market",
    DealStage.FOR_SALE: "For sale",
    DealStage.UNDER_OFFER: "Under offer",
    DealStage.SOLD: "Sold",
    DealStage.LOST: "Lost",
}


class ActivityType(str, Enum):
    """Kinds of logged contact activity."""

    CALL = "call"
    EMAIL = "email"
    SMS = "sms"
    MEETING = "meeting"


class MatchReason(str, Enum):
    """Why an open-home attendee was matched to an existing contact."""

    PHONE = "phone"
    """Digits-only phone numbers are equal."""

    EMAIL = "email"
    """Lowercased email addresses are equal."""

    BOTH = "both"
    """Phone and email both agree."""


class MatchPolicy(str, Enum):
    """Which match reasons are accepted when converting an attendee."""

    ANY = "any"
    """Phone OR email is enough (permissive, the default)."""

    BOTH = "both"
    """Phone AND email must agree."""

    def accepts(self, reason: MatchReason | None) -> bool:
        if reason is None:
            return False
        if self is MatchPolicy.BOTH:
            return reason is MatchReason.BOTH
        return True


def _blank_to_none(value: Any) -> Any:
    """Forms send '' for empty number inputs."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


# =============================================================================
# PROPERTIES
# =============================================================================

PROPERTY_TEXT_FIELDS = (
    "street_address", "suburb", "state", "postcode", "lot_number", "property_type",
    "land_size_unit", "zoning", "market_status", "campaign_start", "campaign_end",
    "settlement_date", "headline", "description", "notes",
)

# Applied when the field is present but blank
PROPERTY_DEFAULTS = {
    "state": "WA",
    "land_size_unit": "sqm",
    "market_status": "appraisal",
}


class PropertyInput(BaseModel):
    """Property form payload, used for both create (POST) and partial update (PATCH)."""

    model_config = ConfigDict(
        populate_by_name=True, str_strip_whitespace=True, coerce_numbers_to_str=True
    )

    street_address: str | None = Field(default=None, alias="streetAddress")
    suburb: str | None = None
    state: str | None = None
    postcode: str | None = None
    lot_number: str | None = Field(default=None, alias="lotNumber")

    property_type: str | None = Field(default=None, alias="propertyType")
    bedrooms: int | None = None
    bathrooms: float | None = None
    car_spaces: int | None = Field(default=None, alias="carSpaces")
    built_year: int | None = Field(default=None, alias="builtYear")
    land_size: float | None = Field(default=None, alias="landSize")
    land_size_unit: str | None = Field(default=None, alias="landSizeUnit")
    zoning: str | None = None

    market_status: str | None = Field(default=None, alias="marketStatus")
    price_from: float | None = Field(default=None, alias="priceFrom")
    price_to: float | None = Field(default=None, alias="priceTo")
    list_price: float | None = Field(default=None, alias="listPrice")
    sold_price: float | None = Field(default=None, alias="soldPrice")
    campaign_start: str | None = Field(default=None, alias="campaignStart")
    campaign_end: str | None = Field(default=None, alias="campaignEnd")
    settlement_date: str | None = Field(default=None, alias="settlementDate")

    headline: str | None = None
    description: str | None = None
    notes: str | None = None

    @field_validator(
        "bedrooms", "bathrooms", "car_spaces", "built_year", "land_size",
        "price_from", "price_to", "list_price", "sold_price",
        mode="before",
    )
    @classmethod
    def blank_numbers(cls, v: Any) -> Any:
        return _blank_to_none(v)

    def to_columns(self, *, partial: bool = False) -> dict[str, Any]:
        """Column values for the ORM.

        With ``partial=True`` only fields present in the request are returned, so a
        PATCH touches nothing else.
        """
        values = self.model_dump(exclude_unset=partial)
        for key in PROPERTY_TEXT_FIELDS:
            if key in values:
                values[key] = text_or_none(values[key])
        for key, default in PROPERTY_DEFAULTS.items():
            if key in values and values[key] is None:
                values[key] = default
        return values


class PropertyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    street_address: str | None
    suburb: str | None
    state: str | None
    postcode: str | None
    lot_number: str | None
    property_type: str | None
    bedrooms: int | None
    bathrooms: float | None
    car_spaces: int | None
    built_year: int | None
    land_size: float | None
    land_size_unit: str | None
    zoning: str | None
    market_status: str
    price_from: float | None
    price_to: float | None
    list_price: float | None
    sold_price: float | None
    campaign_start: str | None
    campaign_end: str | None
    settlement_date: str | None
    headline: str | None
    description: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


class PropertySummary(BaseModel):
    """Address-only view of a property, embedded in deal responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    street_address: str | None
    suburb: str | None
    state: str | None
    postcode: str | None


# =============================================================================
# APPRAISALS
# =============================================================================


class AppraisalCreate(BaseModel):
    """Appraisal wizard submission.

    ``property_id`` / ``propertyId`` / ``data.propertyId`` pin an existing property;
    otherwise the property is found or created from the address.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    status: str | None = None
    appraisal_title: str | None = Field(default=None, alias="appraisalTitle")
    street_address: str | None = Field(default=None, alias="streetAddress")
    suburb: str | None = None
    postcode: str | None = None
    state: str | None = None
    data: dict[str, Any] | None = None
    contact_ids: list[Any] | None = Field(default=None, alias="contactIds")
    property_id: Any = None
    property_id_camel: Any = Field(default=None, alias="propertyId")


class AppraisalUpdate(BaseModel):
    """Full replacement of an appraisal's form data.

    ``contactIds`` replaces the linked contacts when it is a list; omit it (or send
    null) to leave them untouched.
    """

    model_config = ConfigDict(populate_by_name=True)

    data: dict[str, Any] | None = None
    status: str | None = None
    contact_ids: list[Any] | None = Field(default=None, alias="contactIds")
    property_id: Any = None
    property_id_camel: Any = Field(default=None, alias="propertyId")


class AppraisalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    status: str
    property_id: int | None
    data: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class AppraisalSummary(BaseModel):
    """Compact appraisal row for lists; title and address come from ``data``."""

    id: int
    appraisal_title: str | None = Field(serialization_alias="appraisalTitle")
    street_address: str | None = Field(serialization_alias="streetAddress")
    suburb: str | None
    status: str | None
    created_at: datetime | None
    property_id: int | None


# =============================================================================
# CONTACTS
# =============================================================================


class ContactInput(BaseModel):
    """Contact form payload (snake_case). Used for create and partial update."""

    model_config = ConfigDict(str_strip_whitespace=True, coerce_numbers_to_str=True)

    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    email: str | None = None
    phone_mobile: str | None = None
    phone_home: str | None = None
    phone_work: str | None = None
    phone: str | None = None

    type: str | None = None
    tags: list[str] | None = None
    source: str | None = None
    notes: str | None = None
    stage: str | None = None
    rating: str | None = None
    timeframe_to_move: str | None = None
    is_seller: bool | None = None
    is_buyer: bool | None = None
    marketing_opt_in: bool | None = None
    do_not_contact: bool | None = None

    street_address: str | None = None
    suburb: str | None = None
    state: str | None = None
    postcode: str | None = None
    postal_address: str | None = None

    contact_type: str | None = None
    lead_source: str | None = None


class ContactRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    name: str | None
    first_name: str | None
    last_name: str | None
    email: str | None
    phone_mobile: str | None
    phone_home: str | None
    phone_work: str | None
    phone: str | None
    type: str | None
    tags: list[str] | None
    source: str | None
    notes: str | None
    stage: str | None
    rating: str | None
    timeframe_to_move: str | None
    is_seller: bool | None
    is_buyer: bool | None
    marketing_opt_in: bool | None
    do_not_contact: bool | None
    street_address: str | None
    suburb: str | None
    state: str | None
    postcode: str | None
    postal_address: str | None
    contact_type: str | None
    lead_source: str | None
    created_at: datetime
    updated_at: datetime


class ContactSummary(BaseModel):
    """Name and reachability of a contact, embedded in links and deals."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None = None
    first_name: str | None
    last_name: str | None
    email: str | None
    phone_mobile: str | None
    phone: str | None = None


class ContactLinkCreate(BaseModel):
    contact_id: int
    linked_contact_id: int
    relationship_type: str | None = None


class ContactLinkRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contact_id: int
    linked_contact_id: int
    relationship_type: str | None
    created_at: datetime
    linked: ContactSummary | None


class NoteCreate(BaseModel):
    note: str | None = None
    note_type: str | None = None


class NoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contact_id: int
    note: str
    note_type: str
    created_at: datetime
    updated_at: datetime


class ActivityCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contact_id: int = Field(validation_alias=AliasChoices("contact_id", "contactId"))
    activity_type: ActivityType
    direction: str | None = None
    subject: str | None = None
    summary: str | None = None
    outcome: str | None = None
    channel: str | None = None
    activity_at: datetime | None = None


class ActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contact_id: int
    activity_type: str
    direction: str | None
    subject: str | None
    summary: str | None
    outcome: str | None
    channel: str | None
    activity_at: datetime
    created_at: datetime
    updated_at: datetime


class TimelineItem(BaseModel):
    """One entry in a merged contact or property timeline."""

    id: str = Field(description="Unique across kinds, e.g. 'note-12'")
    kind: str
    iso_date: datetime | None = Field(serialization_alias="isoDate")
    title: str
    description: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# TASKS
# =============================================================================


class TaskInput(BaseModel):
    """Task payload. On update only the fields present are written."""

    title: str | None = None
    notes: str | None = None
    status: str | None = None
    priority: str | None = None
    task_type: str | None = None
    due_date: str | None = None
    related_property_id: int | None = None
    related_contact_id: int | None = None


class TaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    notes: str | None
    status: str | None
    priority: str
    task_type: str | None
    due_date: str | None
    related_property_id: int | None
    related_contact_id: int | None
    created_at: datetime


# =============================================================================
# DEALS
# =============================================================================


class DealCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    stage: DealStage = DealStage.LEAD
    property_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("property_id", "propertyId", "prefillPropertyId"),
    )
    contact_id: int | None = Field(
        default=None, validation_alias=AliasChoices("contact_id", "contactId")
    )
    appraisal_id: int | None = Field(
        default=None, validation_alias=AliasChoices("appraisal_id", "appraisalId")
    )
    notes: str | None = None

    @field_validator("property_id", "contact_id", "appraisal_id", mode="before")
    @classmethod
    def blank_ids(cls, v: Any) -> Any:
        return _blank_to_none(v)


class DealUpdate(BaseModel):
    """Whitelisted deal fields; anything else in the body is ignored."""

    title: str | None = None
    stage: DealStage | None = None
    contact_id: int | None = None
    property_id: int | None = None
    appraisal_id: int | None = None
    estimated_value_low: float | None = None
    estimated_value_high: float | None = None
    confidence: int | None = Field(default=None, ge=0, le=100)
    next_action_at: datetime | None = None
    lost_reason: str | None = None
    notes: str | None = None


class DealAppraisalSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: str
    created_at: datetime
    updated_at: datetime
    data: dict[str, Any]


class DealRead(BaseModel):
    """A deal with its optional joins resolved to exactly one object or null."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    title: str
    stage: str
    contact_id: int | None
    property_id: int | None
    appraisal_id: int | None
    estimated_value_low: float | None
    estimated_value_high: float | None
    confidence: int | None
    next_action_at: datetime | None
    lost_reason: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    contact: ContactSummary | None = None
    property: PropertySummary | None = None
    appraisal: DealAppraisalSummary | None = None


# =============================================================================
# OPEN HOMES
# =============================================================================


class OpenHomeEventInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    property_id: int | None = Field(default=None, alias="propertyId")
    title: str | None = None
    start_at: datetime | None = Field(default=None, alias="startAt")
    end_at: datetime | None = Field(default=None, alias="endAt")
    notes: str | None = None

    @field_validator("property_id", "start_at", "end_at", mode="before")
    @classmethod
    def blank_values(cls, v: Any) -> Any:
        return _blank_to_none(v)


class OpenHomeEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    property_id: int
    title: str | None
    start_at: datetime
    end_at: datetime | None
    notes: str | None
    created_at: datetime


class AttendeeCreate(BaseModel):
    """Kiosk or manual attendee capture."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    phone: str | None = None
    email: str | None = None
    notes: str | None = None
    lead_source: str | None = Field(default=None, alias="leadSource")
    lead_source_other: str | None = Field(default=None, alias="leadSourceOther")
    is_buyer: bool | None = Field(default=None, alias="isBuyer")
    is_seller: bool | None = Field(default=None, alias="isSeller")
    research_visit: bool | None = Field(default=None, alias="researchVisit")
    mailing_list_opt_in: bool | None = Field(default=None, alias="mailingListOptIn")


class AttendeeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    property_id: int | None
    first_name: str | None
    last_name: str | None
    phone: str | None
    email: str | None
    lead_source: str | None
    lead_source_other: str | None
    is_buyer: bool | None
    is_seller: bool | None
    research_visit: bool | None
    mailing_list_opt_in: bool | None
    notes: str | None
    contact_id: int | None
    created_at: datetime


class ConversionResult(BaseModel):
    """Outcome of converting an attendee to a contact."""

    model_config = ConfigDict(populate_by_name=True)

    contact_id: int = Field(serialization_alias="contactId")
    success: bool = True
    already_linked: bool = Field(default=False, serialization_alias="alreadyLinked")
    created: bool = False
    match_reason: MatchReason | None = Field(default=None, serialization_alias="matchReason")


class OpenHomeAttendance(BaseModel):
    """A contact's visit to an open home, read back through the attendee link."""

    model_config = ConfigDict(populate_by_name=True)

    attendee_id: int = Field(serialization_alias="attendeeId")
    event_id: int = Field(serialization_alias="eventId")
    event_title: str = Field(serialization_alias="eventTitle")
    property_label: str = Field(serialization_alias="propertyLabel")
    property_id: int | None = Field(default=None, serialization_alias="propertyId")
    attended_at: datetime | None = Field(default=None, serialization_alias="attendedAt")
    role_label: str | None = Field(default=None, serialization_alias="roleLabel")
    lead_source: str | None = Field(default=None, serialization_alias="leadSource")
    notes: str | None = None


# =============================================================================
# SEARCH
# =============================================================================


class ContactHit(BaseModel):
    id: int
    display_name: str = Field(serialization_alias="displayName")
    subtitle: str = ""


class AppraisalHit(BaseModel):
    id: int
    title: str
    subtitle: str = ""
    status: str | None = None
    created_at: datetime | None = None
