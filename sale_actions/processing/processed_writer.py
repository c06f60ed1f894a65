"""
Processed-marker writes.

One bulk insert at the end of a pass, covering every key the Dispatcher
handled. There is no transaction around the insert: if it fails part way,
markers already written stay written.
"""

from sale_actions.observability.logger import get_logger
from sale_actions.observability.metrics import MetricsCollector
from sale_actions.store.gateway import StoreError, StoreGateway
from sale_actions.utils.validation import is_valid_marker_key

from .definitions import PipelineDefinition

logger = get_logger(__name__)


class ProcessedSetWriter:
    """
    Writes processed markers for one pipeline.

    Args:
        store: Store gateway
        definition: Pipeline owning the marker collection
        metrics: Metrics collector (one for the pipeline is created when omitted)
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

    def write(self, keys: list[str]) -> int:
        """
        Insert one marker per distinct key.

        Blank or non-string keys are logged and dropped; the remaining keys
        are still written.

        Args:
            keys: Keys of the records handled during the pass

        Returns:
            Number of markers written (0 when nothing was written)
        """
        invalid = [key for key in keys if not is_valid_marker_key(key)]
        if invalid:
            self.metrics.record_error("InvalidMarkerKey", "processed_writer")
            logger.error(
                f"Dropping {len(invalid)} invalid {self.definition.name} marker key(s): {invalid!r}",
                extra={"pipeline": self.definition.name},
            )
        unique = list(dict.fromkeys(key for key in keys if is_valid_marker_key(key)))
        if not unique:
            logger.debug(f"No {self.definition.name} markers to write")
            return 0

        collection = self.definition.processed_collection
        documents = [self.definition.marker(key) for key in unique]
        try:
            written = self.store.insert_many(collection, documents)
        except StoreError as e:
            self.metrics.record_error("StoreError", "processed_writer")
            logger.error(
                f"Failed to mark {len(unique)} {self.definition.name} record(s) processed "
                f"in '{collection}': {e}",
                extra={"pipeline": self.definition.name},
            )
            return 0

        self.metrics.record_markers(written)
        logger.info(
            f"Marked {written} {self.definition.name} record(s) processed",
            extra={"pipeline": self.definition.name},
        )
        return written
