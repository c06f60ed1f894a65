"""
Dispatch of enriched records to the mailing API.

Every record handed to the Dispatcher comes back with an outcome; whatever
that outcome is, the record counts as handled and its key is marked
processed at the end of the pass.
"""

import logging

from sale_actions.core.models import (
    DispatchOutcome,
    EnrichedRecord,
    NotificationRequest,
    SendResult,
)
from sale_actions.notify.client import NotificationClient
from sale_actions.observability.logger import get_logger
from sale_actions.observability.metrics import MetricsCollector
from sale_actions.utils.validation import is_valid_email

from .definitions import PipelineDefinition
from .requests import DispatchContext, SkipRecord

logger = get_logger(__name__)


class Dispatcher:
    """
    Turns groups of enriched records into requests and sends them.

    Args:
        client: Mailing API client
        definition: Pipeline whose records are dispatched
        managed_group_id: Group the worker itself adds and removes
        batch_requests: Send one batch envelope per group instead of one
            call per request
        metrics: Metrics collector (one for the pipeline is created when omitted)
    """

    def __init__(
        self,
        client: NotificationClient,
        definition: PipelineDefinition,
        managed_group_id: str,
        batch_requests: bool = False,
        metrics: MetricsCollector | None = None,
    ):
        self.client = client
        self.definition = definition
        self.context = DispatchContext(client=client, managed_group_id=managed_group_id)
        self.batch_requests = batch_requests
        self.metrics = metrics or MetricsCollector(definition.name)

    def plan(self, record: EnrichedRecord) -> list[NotificationRequest]:
        """
        Build the requests for one record.

        Raises:
            SkipRecord: When the record must not be dispatched
        """
        email = record.contact_email
        if not is_valid_email(email):
            raise SkipRecord(
                DispatchOutcome.SKIPPED_INVALID_ADDRESS,
                f"Invalid email address: {email!r}",
                level=logging.INFO,
                local_only=True,
            )
        return self.definition.build_requests(record, self.context)

    def dispatch(self, records: list[EnrichedRecord]) -> list[tuple[str, DispatchOutcome]]:
        """
        Dispatch one group of records.

        Returns:
            (marker key, outcome) for every record, in input order
        """
        keys = [self.definition.key_for(record) for record in records]
        outcomes: list[DispatchOutcome | None] = [None] * len(records)
        pending: list[tuple[int, NotificationRequest]] = []

        # Step 1: build requests, classifying skips
        for index, record in enumerate(records):
            try:
                requests = self.plan(record)
            except SkipRecord as skip:
                outcomes[index] = skip.outcome
                logger.log(
                    skip.level,
                    f"Skipping {self.definition.name} record {keys[index]}: {skip}",
                    extra={"pipeline": self.definition.name, "local_only": skip.local_only},
                )
                continue
            except Exception as e:
                outcomes[index] = DispatchOutcome.FAILED
                self.metrics.record_error(type(e).__name__, "dispatcher")
                logger.error(
                    f"Could not build requests for {self.definition.name} record {keys[index]}: {e}",
                    extra={"pipeline": self.definition.name},
                    exc_info=True,
                )
                continue
            pending.extend((index, request) for request in requests)

        # Step 2: send, one envelope per group or one call per request
        if pending:
            requests = [request for _, request in pending]
            if self.batch_requests:
                results = self.client.send_batch(requests)
            else:
                results = [self.client.send(request) for request in requests]

            failed: set[int] = set()
            for (index, request), result in zip(pending, results):
                if not result.ok:
                    failed.add(index)
                    self._report_failure(keys[index], request, result)
            for index, _ in pending:
                outcomes[index] = DispatchOutcome.FAILED if index in failed else DispatchOutcome.SENT

        # Records that produced no request at all have nothing left to send
        handled = [
            (key, outcome if outcome is not None else DispatchOutcome.SENT)
            for key, outcome in zip(keys, outcomes)
        ]
        for _, outcome in handled:
            self.metrics.record_outcome(outcome.value)
        return handled

    def _report_failure(self, key: str, request: NotificationRequest, result: SendResult) -> None:
        url = self.client.url_for(request.path)
        if result.error is not None:
            message = f"Error while sending {request.method} {url} for record {key}: {result.error}"
        else:
            message = f"Error {result.status_code} while sending {request.method} {url} for record {key}"
            if result.body:
                message += f". Response body: {result.body}"
        self.metrics.record_error("NotificationFailed", "dispatcher")
        logger.error(
            message,
            extra={
                "pipeline": self.definition.name,
                "status_code": result.status_code,
                "url": url,
            },
        )
