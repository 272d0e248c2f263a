"""
Database Schemas for the DevEvent API

Each Pydantic model represents a MongoDB collection.
Collection name is the lowercase of the class name.

Documents are validated and normalized here, before any write, so the
stored date is always YYYY-MM-DD, the time always HH:mm and the slug
always URL-safe.
"""
import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional

from bson import ObjectId
from dateutil import parser as dtparse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator, model_validator

from errors import ValidationFailed

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?:\s*([AaPp][Mm]))?$")
EVENT_MODES = ("online", "offline", "hybrid")
EMAIL_MAX_LENGTH = 254

_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)


def slugify(title: str) -> str:
    """URL-safe slug: lowercase alphanumerics joined by single hyphens."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower().strip())
    return slug.strip("-")


def normalize_date(value: str) -> str:
    """Parse a calendar date and keep only its YYYY-MM-DD part."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Invalid event date: must be a valid date string.")
    try:
        parsed = dtparse.parse(value.strip(), default=_DEFAULT_A)
        check = dtparse.parse(value.strip(), default=_DEFAULT_B)
    except (ValueError, OverflowError) as e:
        raise ValueError("Invalid event date: must be a valid date string.") from e
    # Any part filled in from a default differs between the two parses
    if parsed.date() != check.date():
        raise ValueError("Invalid event date: year, month and day are all required.")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def normalize_time(value: str) -> str:
    """Convert "9:00", "09:00" or "9:00 PM" style input into 24-hour "HH:mm"."""
    match = TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(
            "Invalid event time: must be in HH:mm or H:mm AM/PM format (e.g. '09:00' or '9:00 PM')."
        )

    hours = int(match.group(1))
    minutes = int(match.group(2))
    period = (match.group(3) or "").upper()

    if minutes > 59:
        raise ValueError("Invalid event time: minutes must be between 00 and 59.")

    if period == "PM" and hours < 12:
        hours += 12
    elif period == "AM" and hours == 12:
        hours = 0

    if hours > 23:
        raise ValueError("Invalid event time: hours must be between 00 and 23.")

    return f"{hours:02d}:{minutes:02d}"


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class Event(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: str = Field(..., min_length=1, max_length=200, description="Event title")
    slug: Optional[str] = Field(None, description="URL segment, derived from the title when absent")
    description: str = Field(..., min_length=1, max_length=2000, description="Event details")
    overview: str = Field(..., min_length=1, max_length=500, description="Short summary")
    image: str = Field(..., min_length=1, max_length=500, description="Image URL on the media host")
    venue: str = Field(..., min_length=1, max_length=200)
    location: str = Field(..., min_length=1, max_length=200)
    date: str = Field(..., description="Calendar date, stored as YYYY-MM-DD")
    time: str = Field(..., description="Start time, stored as 24-hour HH:mm")
    mode: Literal["online", "offline", "hybrid"] = Field(..., description="online, offline or hybrid")
    audience: str = Field(..., min_length=1, max_length=200)
    agenda: List[str] = Field(default_factory=list, description="Ordered agenda items")
    organizer: str = Field(..., min_length=1, max_length=200)
    tags: List[str] = Field(default_factory=list)
    created_by: Optional[str] = Field(None, max_length=200, description="Uploader tag, e.g. 'public'")

    @field_validator("mode", mode="before")
    @classmethod
    def _strip_mode(cls, value):
        return _strip(value)

    @field_validator("date")
    @classmethod
    def _normalize_date(cls, value: str) -> str:
        return normalize_date(value)

    @field_validator("time")
    @classmethod
    def _normalize_time(cls, value: str) -> str:
        return normalize_time(value)

    @field_validator("agenda", "tags")
    @classmethod
    def _non_empty_entries(cls, value: List[str]) -> List[str]:
        if any(not item for item in value):
            raise ValueError("must contain only non-empty strings")
        return value

    @field_validator("slug")
    @classmethod
    def _check_slug(cls, value: Optional[str]) -> Optional[str]:
        if value and not SLUG_PATTERN.match(value):
            raise ValueError("must contain only lowercase letters, numbers, and hyphens")
        return value or None

    @model_validator(mode="after")
    def _derive_slug(self) -> "Event":
        if not self.slug:
            slug = slugify(self.title)
            if not slug:
                raise ValueError("title must contain at least one letter or digit")
            self.slug = slug
        return self


class EventUpdate(BaseModel):
    """Partial changes to an Event; unset fields keep their stored value."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    overview: Optional[str] = None
    image: Optional[str] = None
    venue: Optional[str] = None
    location: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    mode: Optional[str] = None
    audience: Optional[str] = None
    agenda: Optional[List[str]] = None
    organizer: Optional[str] = None
    tags: Optional[List[str]] = None


class Booking(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_id: str = Field(..., description="Referenced event id (ObjectId hex)")
    email: EmailStr = Field(..., description="Attendee email, stored lowercase")

    @field_validator("event_id", mode="before")
    @classmethod
    def _check_event_id(cls, value):
        value = _strip(str(value) if isinstance(value, ObjectId) else value)
        if not isinstance(value, str) or not ObjectId.is_valid(value):
            raise ValueError("must be a valid event id")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        value = _strip(value)
        if isinstance(value, str):
            value = value.lower()
            if len(value) > EMAIL_MAX_LENGTH:
                raise ValueError(f"cannot exceed {EMAIL_MAX_LENGTH} characters")
        return value


# Validation entry points

def _validation_failed(exc: ValidationError) -> ValidationFailed:
    error = exc.errors()[0]
    field = str(error["loc"][0]) if error["loc"] else None
    if error["type"] == "missing":
        message = f'Field "{field}" is required.'
    elif error["type"] == "string_too_short" and error.get("ctx", {}).get("min_length") == 1:
        message = f'Field "{field}" is required and must be a non-empty string.'
    elif field:
        detail = error["msg"].removeprefix("Value error, ")
        message = f'Field "{field}" is invalid: {detail}'
    else:
        message = error["msg"].removeprefix("Value error, ")
    return ValidationFailed(message, field=field)


def validate_event(draft: Mapping[str, Any], current: Optional[Mapping[str, Any]] = None) -> Event:
    """
    Validate and normalize an event payload before it is persisted.

    With `current` (the stored document) the draft is treated as a set of
    changes: unspecified fields keep their stored values, and the slug is
    re-derived only when the title changes.
    """
    data = dict(draft)
    if current is not None:
        merged = {name: current[name] for name in Event.model_fields if name in current}
        merged.update(data)
        title_changed = "title" in data and _strip(data["title"]) != current.get("title")
        if title_changed or not current.get("slug"):
            merged.pop("slug", None)
        data = merged
    try:
        return Event.model_validate(data)
    except ValidationError as e:
        raise _validation_failed(e) from e


def validate_booking(draft: Mapping[str, Any]) -> Booking:
    try:
        return Booking.model_validate(dict(draft))
    except ValidationError as e:
        raise _validation_failed(e) from e


# Form parsing

EVENT_FORM_FIELDS = (
    "title", "description", "overview", "venue", "location", "date", "time",
    "mode", "audience", "organizer", "created_by",
)
EVENT_FORM_LIST_FIELDS = ("agenda", "tags")
EVENT_FORM_FILE_FIELDS = ("image",)


def _parse_list(name: str, values: List[Any]) -> List[str]:
    # A single JSON array string or repeated form entries
    if len(values) == 1 and isinstance(values[0], str) and values[0].strip().startswith("["):
        try:
            parsed = json.loads(values[0])
        except json.JSONDecodeError as e:
            raise ValidationFailed(f'Field "{name}" is not a valid JSON array.', field=name) from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValidationFailed(f'Field "{name}" must be an array of strings.', field=name)
        return parsed
    if not all(isinstance(item, str) for item in values):
        raise ValidationFailed(f'Field "{name}" must be an array of strings.', field=name)
    return list(values)


def parse_event_form(form) -> Dict[str, Any]:
    """
    Map submitted form fields onto an event draft.

    `form` is any multi-value mapping with `keys()` and `getlist()` (such as
    Starlette's FormData). Unknown fields are rejected; file fields are left
    to the caller.
    """
    known = set(EVENT_FORM_FIELDS) | set(EVENT_FORM_LIST_FIELDS) | set(EVENT_FORM_FILE_FIELDS)
    unknown = sorted(set(form.keys()) - known)
    if unknown:
        raise ValidationFailed(f"Unknown form fields: {', '.join(unknown)}", field=unknown[0])

    draft: Dict[str, Any] = {}
    for name in EVENT_FORM_FIELDS:
        values = form.getlist(name)
        if not values:
            continue
        if len(values) > 1 or not isinstance(values[0], str):
            raise ValidationFailed(f'Field "{name}" must be a single text value.', field=name)
        draft[name] = values[0]
    for name in EVENT_FORM_LIST_FIELDS:
        values = form.getlist(name)
        if values:
            draft[name] = _parse_list(name, values)
    return draft
