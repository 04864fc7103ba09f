"""Custom exceptions for anchored notes.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_VALIDATION_FAILED = 1001
    NOTE_MERGE_INVALID = 1002

    # Repository / path errors (2xxx)
    REPOSITORY_NOT_FOUND = 2001
    PATH_ESCAPES_REPOSITORY = 2002

    # Tag errors (3xxx)
    TAG_INVALID = 3001
    TAG_DESCRIPTION_TOO_LONG = 3002
    TAG_RENAME_INVALID = 3003

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Guidance errors (8xxx)
    GUIDANCE_TOKEN_MISSING = 8001
    GUIDANCE_TOKEN_INVALID = 8002


class AnchoredNotesError(Exception):
    """Base exception for all anchored-notes errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.NOTE_VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NoteValidationError(AnchoredNotesError):
    """Raised when a candidate note breaks one or more rules.

    Every violation found is carried in ``issues``; the message joins
    all of them so a caller sees the full list at once.
    """

    def __init__(
        self,
        issues: List[Any],
        code: ErrorCode = ErrorCode.NOTE_VALIDATION_FAILED
    ):
        messages = [getattr(issue, "message", str(issue)) for issue in issues]
        super().__init__(
            "Note validation failed: " + "; ".join(messages),
            code=code,
            details={"issue_count": len(messages)}
        )
        self.issues = list(issues)
        self.messages = messages


class RepositoryNotFoundError(AnchoredNotesError):
    """Raised when no enclosing repository root can be found."""

    def __init__(self, path: str):
        super().__init__(
            f"Not a git repository (or any parent): {path}",
            code=ErrorCode.REPOSITORY_NOT_FOUND,
            details={"path": path}
        )
        self.path = path


class PathEscapesRepositoryError(AnchoredNotesError):
    """Raised when a path resolves outside the repository root."""

    def __init__(self, path: str, root: str):
        super().__init__(
            f"Path '{path}' resolves outside the repository",
            code=ErrorCode.PATH_ESCAPES_REPOSITORY,
            details={"path": path, "root": root}
        )
        self.path = path
        self.root = root


class TagError(AnchoredNotesError):
    """Raised for tag-related errors."""

    def __init__(
        self,
        message: str,
        tag_name: Optional[str] = None,
        code: ErrorCode = ErrorCode.TAG_INVALID
    ):
        details = {}
        if tag_name:
            details["tag_name"] = tag_name

        super().__init__(message, code=code, details=details)
        self.tag_name = tag_name


class StorageError(AnchoredNotesError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            # Don't expose full paths in error messages
            details["path_hint"] = path.split("/")[-1] if "/" in path else path
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class ConfigurationError(AnchoredNotesError):
    """Raised when a configuration update is not valid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key


class GuidanceTokenError(AnchoredNotesError):
    """Raised when a required guidance token is missing or rejected."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.GUIDANCE_TOKEN_INVALID):
        super().__init__(message, code=code)
