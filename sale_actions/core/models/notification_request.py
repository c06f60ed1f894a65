"""
Outbound request descriptions and dispatch outcomes (ephemeral, never persisted).
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class NotificationRequest(BaseModel):
    """
    One outbound HTTP request to the mailing API.

    The path is relative to the API base URL and already carries its query
    string, so the same value is used for single and batched transport.
    """

    model_config = ConfigDict(frozen=True)

    method: Literal["GET", "POST", "PUT", "DELETE"]
    path: str = Field(..., pattern=r"^/")
    body: dict[str, Any] | None = None

    def to_batch_entry(self) -> dict[str, Any]:
        """Render as an entry of a batch envelope's ``requests`` list."""
        entry: dict[str, Any] = {"method": self.method, "path": self.path}
        if self.body is not None:
            entry["body"] = self.body
        return entry


class DispatchOutcome(str, Enum):
    """How the Dispatcher handled one record."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED_INVALID_ADDRESS = "skipped_invalid_address"
    SKIPPED_NO_GROUPS = "skipped_no_groups"
    SKIPPED_LOOKUP_FAILED = "skipped_lookup_failed"

    @property
    def is_skip(self) -> bool:
        return self.value.startswith("skipped")


class SendResult(BaseModel):
    """
    Result of sending one request.

    Attributes:
        status_code: HTTP status, None on transport error
        body: Response text when available
        error: Transport error description, when any
    """

    status_code: int | None = None
    body: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code is not None and 200 <= self.status_code < 300
