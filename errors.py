"""
Error taxonomy for the DevEvent API.

Every failure the API reports carries an HTTP status and a category so the
caller can tell a bad payload from a conflict or an upstream outage.
"""
from typing import Optional


class DevEventError(Exception):
    status_code = 500
    category = "error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message, "category": self.category}
        if self.field:
            body["field"] = self.field
        return body


class ValidationFailed(DevEventError):
    status_code = 400
    category = "validation"


class NotFound(DevEventError):
    status_code = 404
    category = "not_found"


class DuplicateRecord(DevEventError):
    status_code = 409
    category = "conflict"


class ReferenceNotFound(DevEventError):
    status_code = 422
    category = "reference"


class MediaUploadFailed(DevEventError):
    status_code = 500
    category = "upstream"


class DatabaseUnavailable(DevEventError):
    status_code = 503
    category = "upstream"


class ConfigurationError(DevEventError):
    category = "configuration"
