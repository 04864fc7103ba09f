"""Process-level settings for anchored notes."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from anchored_notes import __version__

# Project root .env, anchored to __file__ so it works regardless of the CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level overrides
_USER_ENV = Path.home() / ".anchored-notes" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AnchoredNotesSettings(BaseModel):
    """Settings shared by every repository store in this process.

    Per-repository limits live in the repository's own ``config.json``
    (see ``ConfigurationStore``); these values only choose where things
    live and how the process logs.
    """

    # Name of the data directory created at the repository root
    data_dir_name: str = Field(
        default_factory=lambda: os.getenv("ANCHORED_NOTES_DATA_DIR", ".anchored-notes")
    )
    # Project ignore file consulted next to .gitignore by the coverage audit
    ignore_file_name: str = Field(
        default_factory=lambda: os.getenv(
            "ANCHORED_NOTES_IGNORE_FILE", ".anchoredignore"
        )
    )
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("ANCHORED_NOTES_LOG_DIR"))
            if os.getenv("ANCHORED_NOTES_LOG_DIR")
            else None
        )
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("ANCHORED_NOTES_LOG_LEVEL", "INFO").upper()
    )
    max_stale_to_report: int = Field(
        default_factory=lambda: int(
            os.getenv("ANCHORED_NOTES_MAX_STALE_REPORT", "50")
        )
    )
    version: str = Field(default=__version__)

    @field_validator("data_dir_name")
    @classmethod
    def validate_data_dir_name(cls, v: str) -> str:
        """The data directory must be a single path component."""
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError("data_dir_name must be a single directory name")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v not in _VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_VALID_LOG_LEVELS)}")
        return v

    @field_validator("max_stale_to_report")
    @classmethod
    def validate_max_stale(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_stale_to_report must be >= 0")
        return v

    def get_log_level(self) -> int:
        """Return the numeric logging level."""
        return getattr(logging, self.log_level)


# Create a global config instance
config = AnchoredNotesSettings()
