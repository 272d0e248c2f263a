"""
MongoDB access for the DevEvent API.

A ConnectionManager owns the single MongoClient of the process. Consumers
receive the manager (or the database handle it hands out) explicitly
instead of reaching for a module global.
"""
import logging
import threading
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import DatabaseUnavailable

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_NAME = "devevent"

UNSET = "unset"
IN_FLIGHT = "in-flight"
ESTABLISHED = "established"


def ensure_indexes(db: Database) -> None:
    """Create the indexes the event and booking lookups rely on."""
    db["event"].create_index([("slug", ASCENDING)], unique=True, name="uniq_slug")
    db["event"].create_index([("date", ASCENDING), ("time", ASCENDING)], name="date_time")
    db["event"].create_index([("tags", ASCENDING)], name="tags")

    db["booking"].create_index([("event_id", ASCENDING)], name="event_id")
    db["booking"].create_index(
        [("event_id", ASCENDING), ("created_at", DESCENDING)], name="event_id_created_at"
    )
    db["booking"].create_index([("email", ASCENDING)], name="email")
    db["booking"].create_index(
        [("event_id", ASCENDING), ("email", ASCENDING)], unique=True, name="uniq_event_email"
    )


class ConnectionManager:
    """
    Hands out one cached database handle per process.

    The first acquire() starts a connection attempt; callers arriving while
    it is in flight wait on the same attempt. A failed attempt is forgotten
    so the next caller starts over.
    """

    def __init__(
        self,
        url: str,
        database_name: Optional[str] = None,
        client_factory: Callable[..., MongoClient] = MongoClient,
        server_selection_timeout_ms: int = 5000,
    ):
        self.url = url
        self.database_name = database_name
        self._client_factory = client_factory
        self._timeout_ms = server_selection_timeout_ms
        self._lock = threading.Lock()
        self._client: Optional[MongoClient] = None
        self._db: Optional[Database] = None
        self._pending: Optional[Future] = None

    @property
    def state(self) -> str:
        with self._lock:
            if self._db is not None:
                return ESTABLISHED
            if self._pending is not None:
                return IN_FLIGHT
            return UNSET

    def acquire(self) -> Database:
        with self._lock:
            if self._db is not None:
                return self._db
            pending = self._pending
            owner = pending is None
            if owner:
                pending = self._pending = Future()

        if not owner:
            return pending.result()

        try:
            client, db = self._connect()
        except BaseException as e:
            with self._lock:
                self._pending = None
            pending.set_exception(e)
            raise

        with self._lock:
            self._client = client
            self._db = db
            self._pending = None
        pending.set_result(db)
        return db

    def _connect(self) -> Tuple[MongoClient, Database]:
        logger.info("Connecting to MongoDB")
        client = None
        try:
            client = self._client_factory(
                self.url, serverSelectionTimeoutMS=self._timeout_ms
            )
            client.admin.command("ping")
            if self.database_name:
                db = client[self.database_name]
            else:
                db = client.get_default_database(default=DEFAULT_DATABASE_NAME)
            ensure_indexes(db)
        except Exception as e:
            logger.error(f"MongoDB connection attempt failed: {e}")
            if client is not None:
                client.close()
            raise DatabaseUnavailable(f"Database connection failed: {e}") from e

        logger.info(f"Connected to MongoDB database '{db.name}'")
        return client, db

    def ping(self) -> bool:
        """Report whether the cached connection answers, without raising."""
        with self._lock:
            db = self._db
        if db is None:
            return False
        try:
            db.client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    def close(self) -> None:
        with self._lock:
            client = self._client
            self._client = None
            self._db = None
        if client is not None:
            client.close()
            logger.info("MongoDB connection closed")


# Helpers

def create_document(db: Database, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a document stamped with created_at/updated_at and return it with its _id."""
    now = datetime.now(timezone.utc)
    document = {**data, "created_at": now, "updated_at": now}
    result = db[collection_name].insert_one(document)
    document["_id"] = result.inserted_id
    return document


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(list(sort))
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Turn ObjectIds into strings and expose _id as id."""
    item = dict(document)
    if "_id" in item:
        item["id"] = str(item.pop("_id"))
    if "event_id" in item:
        item["event_id"] = str(item["event_id"])
    return item
