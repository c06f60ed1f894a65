"""
PassReport model summarizing one pipeline pass.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PassReport(BaseModel):
    """
    Counters for one pass of a pipeline.

    Attributes:
        pipeline: Pipeline name (purchases, renewals)
        enriched: Records decoded and handed to the Dispatcher
        decode_errors: Documents skipped because they did not match the schema
        sent: Records whose requests were accepted by the mailing API
        failed: Records whose requests failed (still marked processed)
        skipped: Records skipped by business rules (still marked processed)
        marked: Processed markers written at the end of the pass
        aborted: Whether streaming from the store stopped early on an error
    """

    pipeline: str
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: datetime | None = None
    enriched: int = 0
    decode_errors: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    marked: int = 0
    aborted: bool = False

    @property
    def handled(self) -> int:
        return self.sent + self.failed + self.skipped
