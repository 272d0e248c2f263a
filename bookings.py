"""
Booking persistence.

A booking is accepted only for an existing event, and at most once per
(event, email) pair; the unique index uniq_event_email is the final word
on duplicates.
"""
import logging
from typing import Any, Dict, List, Mapping, Union

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import events
from database import create_document, get_documents
from errors import DuplicateRecord, ReferenceNotFound
from schemas import validate_booking

logger = logging.getLogger(__name__)

COLLECTION = "booking"

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def _object_id(event_id: Union[str, ObjectId]) -> Union[str, ObjectId]:
    if isinstance(event_id, ObjectId):
        return event_id
    return ObjectId(event_id) if ObjectId.is_valid(event_id) else event_id


def create_booking(db: Database, draft: Mapping[str, Any]) -> Dict[str, Any]:
    booking = validate_booking(draft)
    event_id = ObjectId(booking.event_id)

    if not events.exists(db, event_id):
        raise ReferenceNotFound(
            "Cannot create booking: referenced event does not exist.", field="event_id"
        )

    try:
        document = create_document(db, COLLECTION, {"event_id": event_id, "email": booking.email})
    except DuplicateKeyError as e:
        logger.info(f"Rejected duplicate booking for event {event_id}")
        raise DuplicateRecord(
            "This email has already booked this event.", field="email"
        ) from e
    logger.info(f"Created booking {document['_id']} for event {event_id}")
    return document


def find_by_event(db: Database, event_id: Union[str, ObjectId]) -> List[Dict[str, Any]]:
    return get_documents(db, COLLECTION, {"event_id": _object_id(event_id)}, sort=NEWEST_FIRST)


def find_by_email(db: Database, email: str) -> List[Dict[str, Any]]:
    return get_documents(db, COLLECTION, {"email": email.strip().lower()}, sort=NEWEST_FIRST)


def count_by_event(db: Database, event_id: Union[str, ObjectId]) -> int:
    return db[COLLECTION].count_documents({"event_id": _object_id(event_id)})
