"""
Environment configuration for the DevEvent API.

Values are read from the process environment after loading a local .env
file with python-dotenv. Missing required values are fatal at startup.
"""
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from errors import ConfigurationError

REQUIRED_VARIABLES = (
    "DATABASE_URL",
    "CLOUDINARY_CLOUD_NAME",
    "CLOUDINARY_API_KEY",
    "CLOUDINARY_API_SECRET",
)


@dataclass
class Settings:
    database_url: str
    cloudinary_cloud_name: str
    cloudinary_api_key: str
    cloudinary_api_secret: str
    database_name: Optional[str] = None
    cloudinary_folder: str = "DevEvent"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from the environment, raising ConfigurationError
        listing every required variable that is missing or blank."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        missing = [name for name in REQUIRED_VARIABLES if not environ.get(name, "").strip()]
        if missing:
            raise ConfigurationError(
                "Missing required environment variables: " + ", ".join(missing)
            )

        origins = [o.strip() for o in environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
        return cls(
            database_url=environ["DATABASE_URL"].strip(),
            database_name=environ.get("DATABASE_NAME", "").strip() or None,
            cloudinary_cloud_name=environ["CLOUDINARY_CLOUD_NAME"].strip(),
            cloudinary_api_key=environ["CLOUDINARY_API_KEY"].strip(),
            cloudinary_api_secret=environ["CLOUDINARY_API_SECRET"].strip(),
            cloudinary_folder=environ.get("CLOUDINARY_FOLDER", "").strip() or "DevEvent",
            cors_origins=origins or ["*"],
            log_level=environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )

