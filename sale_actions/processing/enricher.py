"""
Record enrichment.

Streams the event collection joined with metadata, processed markers and
sibling groups, and decodes every joined document into the pipeline's
record model. Read-only: nothing here writes to the store.
"""

from typing import Iterator

from sale_actions.core.decoding import DecodeFailure, decode_document
from sale_actions.core.models import EnrichedRecord
from sale_actions.observability.logger import get_logger
from sale_actions.observability.metrics import MetricsCollector
from sale_actions.store.gateway import StoreError, StoreGateway

from .definitions import PipelineDefinition

logger = get_logger(__name__)


class Enricher:
    """
    Produces the records a pass should consider.

    Counters describe the most recent call to ``records`` and are reset at
    the start of each call.

    Attributes:
        enriched: Records decoded and yielded
        decode_errors: Joined documents that did not match the record model
        aborted: Whether a store error ended the stream early
    """

    def __init__(
        self,
        store: StoreGateway,
        definition: PipelineDefinition,
        metrics: MetricsCollector | None = None,
    ):
        self.store = store
        self.definition = definition
        self.metrics = metrics or MetricsCollector(definition.name)
        self.enriched = 0
        self.decode_errors = 0
        self.aborted = False

    def records(self) -> Iterator[EnrichedRecord]:
        """
        Lazily yield enriched records not yet marked processed.

        Documents failing to decode are reported and skipped; they are
        retried on the next pass. A store error stops the stream without
        raising so the records already yielded can still be marked.
        """
        self.enriched = 0
        self.decode_errors = 0
        self.aborted = False
        definition = self.definition

        try:
            documents = self.store.find_join(definition.event_collection, definition.lookups())
            for document in documents:
                result = decode_document(document, definition.record_model)
                if isinstance(result, DecodeFailure):
                    self.decode_errors += 1
                    self.metrics.record_decode_error()
                    logger.error(
                        f"Skipping malformed {definition.event_collection} document "
                        f"{result.document_id}: {result.error} ({', '.join(result.fields)})",
                        extra={"pipeline": definition.name},
                    )
                    continue

                self.enriched += 1
                self.metrics.record_enriched()
                yield result.record
        except StoreError as e:
            self.aborted = True
            self.metrics.record_error("StoreError", "enricher")
            logger.error(
                f"Reading {definition.event_collection} stopped early: {e}",
                extra={"pipeline": definition.name},
            )
