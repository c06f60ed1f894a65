"""
Core data models for the sale actions worker.

All models use Pydantic for runtime validation and type safety.
"""

from .event_record import EnrichedRecord, RenewalToggleRecord, SaleRecord
from .metadata_record import MetadataRecord
from .notification_request import DispatchOutcome, NotificationRequest, SendResult
from .pass_report import PassReport

__all__ = [
    "MetadataRecord",
    "EnrichedRecord",
    "SaleRecord",
    "RenewalToggleRecord",
    "NotificationRequest",
    "DispatchOutcome",
    "SendResult",
    "PassReport",
]
