from __future__ import annotations


class EngagementError(Exception):
    """Base class for every error the engagement store raises.

    ``kind`` is a stable machine-readable tag; ``message`` is meant for humans.
    """

    kind = "engagement_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "detail": self.message}


class InvalidRating(EngagementError):
    kind = "invalid_rating"


class InvalidContent(EngagementError):
    kind = "invalid_content"


class DuplicateReview(EngagementError):
    kind = "duplicate_review"


class NotFound(EngagementError):
    kind = "not_found"


class Unauthorized(EngagementError):
    kind = "unauthorized"


class StorageUnavailable(EngagementError):
    kind = "storage_unavailable"


class InvalidInput(EngagementError):
    """Identifier or text field that no backend can store as given."""

    kind = "invalid_input"
