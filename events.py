"""
Event persistence: create, update and the slug/upcoming lookups.

Every write goes through schemas.validate_event first.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_documents
from errors import DuplicateRecord, NotFound
from schemas import validate_event

logger = logging.getLogger(__name__)

COLLECTION = "event"


def _duplicate_slug(slug: str) -> DuplicateRecord:
    logger.info(f"Rejected duplicate event slug '{slug}'")
    return DuplicateRecord(f'An event with slug "{slug}" already exists.', field="slug")


def create_event(db: Database, draft: Mapping[str, Any]) -> Dict[str, Any]:
    event = validate_event(draft)
    data = event.model_dump()
    try:
        document = create_document(db, COLLECTION, data)
    except DuplicateKeyError as e:
        raise _duplicate_slug(event.slug) from e
    logger.info(f"Created event '{event.slug}'")
    return document


def update_event(db: Database, slug: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply changes to the event stored under `slug`, re-running normalization."""
    current = find_by_slug(db, slug)
    if current is None:
        raise NotFound(f'Event with slug "{slug}" not found')

    event = validate_event(changes, current=current)
    data = event.model_dump()
    data["updated_at"] = datetime.now(timezone.utc)
    try:
        updated = db[COLLECTION].find_one_and_update(
            {"_id": current["_id"]},
            {"$set": data},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError as e:
        raise _duplicate_slug(event.slug) from e
    if updated is None:
        raise NotFound(f'Event with slug "{slug}" not found')
    if event.slug != slug:
        logger.info(f"Event '{slug}' renamed to '{event.slug}'")
    return updated


def find_by_slug(db: Database, slug: str) -> Optional[Dict[str, Any]]:
    return db[COLLECTION].find_one({"slug": slug})


def find_upcoming(db: Database, today: Optional[str] = None) -> List[Dict[str, Any]]:
    """Events on or after today (UTC), soonest first."""
    today = today or datetime.now(timezone.utc).date().isoformat()
    return get_documents(
        db, COLLECTION, {"date": {"$gte": today}}, sort=[("date", ASCENDING), ("time", ASCENDING)]
    )


def list_events(db: Database) -> List[Dict[str, Any]]:
    return get_documents(db, COLLECTION, sort=[("created_at", DESCENDING), ("_id", DESCENDING)])


def exists(db: Database, event_id: Union[str, ObjectId]) -> bool:
    if not isinstance(event_id, ObjectId):
        if not ObjectId.is_valid(event_id):
            return False
        event_id = ObjectId(event_id)
    return db[COLLECTION].find_one({"_id": event_id}, {"_id": 1}) is not None
