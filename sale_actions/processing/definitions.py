"""
Pipeline definitions: which collections a pipeline joins, which model its
records decode into, how they are keyed and how they become requests.

Each pipeline owns its processed-marker collection and stores its key under
a field named for the key's domain; content hashes and transaction
identifiers never share a collection.
"""

from dataclasses import dataclass
from typing import Callable

from sale_actions.core.models import (
    EnrichedRecord,
    NotificationRequest,
    RenewalToggleRecord,
    SaleRecord,
)
from sale_actions.store.join import Lookup, LookupMode

from .requests import DispatchContext, build_purchase_requests, build_renewal_requests

METADATA_COLLECTION = "metadata"
GROUPS_COLLECTION = "email_groups"

RequestBuilder = Callable[[EnrichedRecord, DispatchContext], list[NotificationRequest]]


@dataclass(frozen=True)
class PipelineDefinition:
    """
    Static description of one reconciliation pipeline.

    Attributes:
        name: Pipeline name used in config, logs and metrics
        event_collection: Collection holding the event records
        processed_collection: Collection holding this pipeline's markers
        key_field: Record field used as processed-marker key
        record_model: Model the joined documents decode into
        build_requests: Builder turning a record into requests
    """

    name: str
    event_collection: str
    processed_collection: str
    key_field: str
    record_model: type[EnrichedRecord]
    build_requests: RequestBuilder

    def lookups(self) -> list[Lookup]:
        """
        Join stages: metadata must exist, no marker may exist, sibling
        groups are attached as a list of labels.
        """
        return [
            Lookup(
                from_collection=METADATA_COLLECTION,
                local_field="meta_hash",
                foreign_field="meta_hash",
                as_field="metadata",
                mode=LookupMode.REQUIRE,
            ),
            Lookup(
                from_collection=self.processed_collection,
                local_field=self.key_field,
                foreign_field=self.key_field,
                as_field="processed_doc",
                mode=LookupMode.EXCLUDE,
            ),
            Lookup(
                from_collection=GROUPS_COLLECTION,
                local_field="tx_hash",
                foreign_field="tx_hash",
                as_field="same_tx_groups",
                mode=LookupMode.ATTACH,
                project="group",
            ),
        ]

    def key_for(self, record: EnrichedRecord) -> str:
        return getattr(record, self.key_field)

    def marker(self, key: str) -> dict[str, str]:
        return {self.key_field: key}


PURCHASES = PipelineDefinition(
    name="purchases",
    event_collection="sales",
    processed_collection="processed",
    key_field="meta_hash",
    record_model=SaleRecord,
    build_requests=build_purchase_requests,
)

RENEWALS = PipelineDefinition(
    name="renewals",
    event_collection="auto_renew_updates",
    processed_collection="ar_processed",
    key_field="tx_hash",
    record_model=RenewalToggleRecord,
    build_requests=build_renewal_requests,
)

DEFINITIONS: dict[str, PipelineDefinition] = {
    PURCHASES.name: PURCHASES,
    RENEWALS.name: RENEWALS,
}
