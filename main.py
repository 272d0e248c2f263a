import os
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.datastructures import UploadFile

import bookings
import events
from config import Settings
from database import ConnectionManager, serialize_document
from errors import DatabaseUnavailable, DevEventError, NotFound, ValidationFailed
from logging_config import setup_logging
from media import CloudinaryUploader
from schemas import SLUG_PATTERN, EventUpdate, parse_event_form, validate_event

logger = logging.getLogger(__name__)

# Events uploaded through the public form are tagged with this owner
PUBLIC_OWNER = "public"

# Stands in for the hosted image URL while the form is checked before upload
IMAGE_PLACEHOLDER = "https://res.cloudinary.com/placeholder/image/upload/pending.png"

router = APIRouter()

# Dependencies

def get_db(request: Request) -> Database:
    return request.app.state.connections.acquire()


def valid_slug(slug: str) -> str:
    if not slug or not slug.strip():
        raise ValidationFailed("Invalid or missing slug parameter", field="slug")
    if not SLUG_PATTERN.match(slug):
        raise ValidationFailed(
            "Invalid slug format. Slug must contain only lowercase letters, numbers, and hyphens.",
            field="slug",
        )
    return slug


def _event_or_404(db: Database, slug: str) -> Dict[str, Any]:
    event = events.find_by_slug(db, slug)
    if not event:
        raise NotFound(f'Event with slug "{slug}" not found')
    return event


@router.get("/")
def read_root():
    return {"message": "DevEvent API running"}

# Events

@router.get("/api/events")
def list_events(db: Database = Depends(get_db)):
    return {"events": [serialize_document(it) for it in events.list_events(db)]}


@router.get("/api/events/upcoming")
def list_upcoming_events(db: Database = Depends(get_db)):
    return {"events": [serialize_document(it) for it in events.find_upcoming(db)]}


@router.get("/api/events/{slug}")
def get_event(slug: str = Depends(valid_slug), db: Database = Depends(get_db)):
    event = _event_or_404(db, slug)
    return {"success": True, "data": serialize_document(event)}


@router.post("/api/events", status_code=201)
async def create_event(request: Request):
    form = await request.form()
    draft = parse_event_form(form)

    image = form.get("image")
    if not isinstance(image, UploadFile) or not image.filename:
        raise ValidationFailed("Event image file is required.", field="image")
    content = await image.read()
    if not content:
        raise ValidationFailed("Event image file is empty.", field="image")

    draft.setdefault("created_by", PUBLIC_OWNER)
    # Reject a bad payload before spending an upload on it
    validate_event({**draft, "image": IMAGE_PLACEHOLDER})

    db = await run_in_threadpool(request.app.state.connections.acquire)
    draft["image"] = await run_in_threadpool(request.app.state.uploader.upload, content, image.filename)
    created = await run_in_threadpool(events.create_event, db, draft)
    return {"message": "Event created successfully!", "event": serialize_document(created)}


@router.patch("/api/events/{slug}")
def update_event(
    body: EventUpdate,
    slug: str = Depends(valid_slug),
    db: Database = Depends(get_db),
):
    updated = events.update_event(db, slug, body.model_dump(exclude_unset=True))
    return {"message": "Event updated successfully!", "event": serialize_document(updated)}

# Bookings

@router.get("/api/events/{slug}/bookings")
def list_event_bookings(slug: str = Depends(valid_slug), db: Database = Depends(get_db)):
    event = _event_or_404(db, slug)
    items = bookings.find_by_event(db, event["_id"])
    return {
        "bookings": [serialize_document(it) for it in items],
        "count": bookings.count_by_event(db, event["_id"]),
    }


@router.post("/api/bookings", status_code=201)
def create_booking(payload: Dict[str, Any] = Body(...), db: Database = Depends(get_db)):
    booking = bookings.create_booking(db, payload)
    return {"message": "Booking created successfully!", "booking": serialize_document(booking)}


@router.get("/api/bookings")
def list_bookings_by_email(email: str = Query(..., min_length=3), db: Database = Depends(get_db)):
    return {"bookings": [serialize_document(it) for it in bookings.find_by_email(db, email)]}


@router.get("/test")
def test_database(request: Request):
    connections: ConnectionManager = request.app.state.connections
    response = {"backend": "✅ Running", "database_state": connections.state}
    try:
        db = connections.acquire()
        response.update({
            "database": "✅ Connected & Working" if connections.ping() else "❌ Not Responding",
            "database_name": db.name,
            "collections": db.list_collection_names()[:10],
        })
    except DevEventError as e:
        response.update({"database": f"❌ Error: {e.message[:50]}"})
    return response


async def handle_devevent_error(request: Request, exc: DevEventError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    # Malformed bodies, wrong field types and missing query parameters
    error = exc.errors()[0]
    loc = [part for part in error.get("loc", ()) if isinstance(part, str) and part not in ("body", "query", "path")]
    field = loc[-1] if loc else None
    detail = str(error.get("msg", "Invalid request")).removeprefix("Value error, ")
    if error.get("type") == "missing" and field:
        message = f'Field "{field}" is required.'
    elif field:
        message = f'Field "{field}" is invalid: {detail}'
    else:
        message = detail
    return await handle_devevent_error(request, ValidationFailed(message, field=field))


async def handle_database_error(request: Request, exc: PyMongoError):
    logger.error(f"{request.method} {request.url.path} hit a database error: {exc}", exc_info=exc)
    error = DatabaseUnavailable(f"Database error: {exc}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app(
    settings: Optional[Settings] = None,
    connections: Optional[ConnectionManager] = None,
    uploader: Optional[CloudinaryUploader] = None,
) -> FastAPI:
    """
    Build the application.

    Settings are loaded from the environment when not given; a missing
    required variable raises ConfigurationError here, so the server never
    starts serving in that state.
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    connections = connections or ConnectionManager(settings.database_url, settings.database_name)
    uploader = uploader or CloudinaryUploader.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await run_in_threadpool(app.state.connections.close)

    app = FastAPI(title="DevEvent API", lifespan=lifespan)
    app.state.settings = settings
    app.state.connections = connections
    app.state.uploader = uploader

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(DevEventError, handle_devevent_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(PyMongoError, handle_database_error)
    app.include_router(router)
    return app


_app: Optional[FastAPI] = None


def __getattr__(name: str):
    # `uvicorn main:app` builds the app from the environment on first access
    global _app
    if name != "app":
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    if _app is None:
        _app = create_app()
    return _app


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=port)
