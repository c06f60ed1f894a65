"""
Pipeline pass orchestration.

Coordinates the flow: enrich → batch → dispatch → mark processed
"""

from datetime import datetime, timezone

from sale_actions.core.models import DispatchOutcome, EnrichedRecord, PassReport
from sale_actions.observability.logger import get_logger, log_operation
from sale_actions.observability.metrics import MetricsCollector
from sale_actions.store.gateway import StoreGateway

from .batcher import Batcher
from .definitions import PipelineDefinition
from .dispatcher import Dispatcher
from .enricher import Enricher
from .processed_writer import ProcessedSetWriter

logger = get_logger(__name__)


class Pipeline:
    """
    One reconciliation pipeline (purchases or renewals).

    Flow:
    1. Stream unprocessed event records joined with metadata and groups
    2. Group them into batches of at most ``batch_size``
    3. Dispatch each batch to the mailing API
    4. Mark every handled record processed in one bulk write
    """

    def __init__(
        self,
        definition: PipelineDefinition,
        store: StoreGateway,
        dispatcher: Dispatcher,
        batch_size: int = 1,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            definition: Pipeline definition
            store: Store gateway shared by the enricher and the marker writer
            dispatcher: Dispatcher for this pipeline's records
            batch_size: Records per dispatch group
            metrics: Metrics collector
        """
        self.definition = definition
        self.metrics = metrics or MetricsCollector(definition.name)
        self.enricher = Enricher(store, definition, self.metrics)
        self.batcher = Batcher(batch_size)
        self.dispatcher = dispatcher
        self.writer = ProcessedSetWriter(store, definition, self.metrics)

    @property
    def name(self) -> str:
        return self.definition.name

    def run_pass(self) -> PassReport:
        """
        Run one full pass to completion.

        A group whose dispatch raises is counted as failed and still marked.
        Handled keys are written even when the pass ends with an error.

        Returns:
            PassReport with the pass counters
        """
        report = PassReport(pipeline=self.name)
        handled_keys: list[str] = []

        with log_operation(f"{self.name} pass", logger=logger, pipeline=self.name) as operation:
            try:
                for group in self.batcher.batches(self.enricher.records()):
                    self.metrics.record_batch(len(group))
                    for key, outcome in self._dispatch_group(group):
                        handled_keys.append(key)
                        if outcome is DispatchOutcome.SENT:
                            report.sent += 1
                        elif outcome is DispatchOutcome.FAILED:
                            report.failed += 1
                        else:
                            report.skipped += 1
            finally:
                report.enriched = self.enricher.enriched
                report.decode_errors = self.enricher.decode_errors
                report.aborted = self.enricher.aborted
                report.marked = self.writer.write(handled_keys)

        report.finished_at = datetime.now(timezone.utc)
        self.metrics.record_pass(operation.duration, report.aborted)
        logger.info(
            f"{self.name} pass: {report.enriched} enriched, {report.sent} sent, "
            f"{report.failed} failed, {report.skipped} skipped, {report.marked} marked, "
            f"{report.decode_errors} decode error(s)",
            extra={"pipeline": self.name, "aborted": report.aborted},
        )
        return report

    def _dispatch_group(self, group: list[EnrichedRecord]) -> list[tuple[str, DispatchOutcome]]:
        try:
            return self.dispatcher.dispatch(group)
        except Exception as e:
            self.metrics.record_error(type(e).__name__, "pipeline")
            logger.error(
                f"Dispatch of a {self.name} group of {len(group)} failed: {e}",
                exc_info=True,
                extra={"pipeline": self.name},
            )
            outcomes = []
            for record in group:
                self.metrics.record_outcome(DispatchOutcome.FAILED.value)
                outcomes.append((self.definition.key_for(record), DispatchOutcome.FAILED))
            return outcomes
