"""
Translation of enriched records into mailing API requests.

Builders return the requests for one record or raise SkipRecord when a
business rule says the record must not be dispatched. Skipped records are
still marked processed by the pipeline.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from sale_actions.core.models import (
    DispatchOutcome,
    NotificationRequest,
    RenewalToggleRecord,
    SaleRecord,
)
from sale_actions.notify.client import NotificationClient, NotificationError

EXPIRY_FORMAT = "%Y-%m-%d %H:%M:%S"


class SkipRecord(Exception):
    """
    Raised by a builder when a record is handled without being dispatched.

    Attributes:
        outcome: Skip outcome reported for the record
        level: Logging level for the skip report
        local_only: Keep the report out of the alerting sink
    """

    def __init__(
        self,
        outcome: DispatchOutcome,
        message: str,
        level: int = logging.WARNING,
        local_only: bool = False,
    ) -> None:
        super().__init__(message)
        self.outcome = outcome
        self.level = level
        self.local_only = local_only


@dataclass(frozen=True)
class DispatchContext:
    """What builders may consult besides the record itself."""

    client: NotificationClient
    managed_group_id: str


def encode_query(params: list[tuple[str, Any]]) -> str:
    """
    Encode query parameters.

    Keys are emitted as-is (``groups[]`` must stay literal); values are
    percent-encoded with ``@`` and ``:`` left readable.
    """
    return "&".join(f"{key}={quote(str(value), safe='@:')}" for key, value in params)


def format_expiry(timestamp: int) -> str:
    """Render a unix timestamp as UTC ``YYYY-MM-DD HH:MM:SS``, or ``none``."""
    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(EXPIRY_FORMAT)
    except (OverflowError, OSError, ValueError):
        return "none"


def group_params(groups: list[str], email: str) -> list[tuple[str, str]]:
    if not groups:
        raise SkipRecord(
            DispatchOutcome.SKIPPED_NO_GROUPS,
            f"Empty groups for email: {email}",
        )
    return [("groups[]", group) for group in groups]


def subscriber_upsert(params: list[tuple[str, Any]]) -> NotificationRequest:
    return NotificationRequest(method="POST", path=f"/subscribers?{encode_query(params)}")


def build_purchase_requests(record: SaleRecord, context: DispatchContext) -> list[NotificationRequest]:
    """Subscribe the buyer to every group chosen in the purchase transaction."""
    email = record.contact_email
    groups = group_params(record.same_tx_groups, email)
    return [
        subscriber_upsert(
            [
                ("email", email),
                ("fields[name]", record.domain),
                ("fields[expiry]", format_expiry(record.expiry)),
                *groups,
            ]
        )
    ]


def build_renewal_requests(
    record: RenewalToggleRecord, context: DispatchContext
) -> list[NotificationRequest]:
    """
    Add the renewer to its groups, or remove it from the managed group.

    Disabling needs the subscriber's current groups, fetched synchronously
    from the API; the PUT re-submits them without the managed group.
    """
    email = record.contact_email
    if not record.is_disable:
        groups = group_params(record.same_tx_groups, email)
        return [
            subscriber_upsert(
                [
                    ("email", email),
                    ("fields[name]", record.domain),
                    ("fields[renewer]", record.renewer),
                    *groups,
                ]
            )
        ]

    try:
        response = context.client.get_json(f"/subscribers/{quote(email, safe='@')}")
    except NotificationError as e:
        message = f"Error while trying to toggle off AR emails for {email}: {e}"
        if e.body:
            message += f". Response body: {e.body}"
        raise SkipRecord(DispatchOutcome.SKIPPED_LOOKUP_FAILED, message, level=logging.ERROR) from e

    try:
        data = response["data"]
        subscriber_id = str(data["id"])
        current_groups = [str(group["id"]) for group in data["groups"]]
    except (KeyError, TypeError) as e:
        raise SkipRecord(
            DispatchOutcome.SKIPPED_LOOKUP_FAILED,
            f"Unexpected subscriber payload while toggling off AR emails for {email}: {e!r}",
            level=logging.ERROR,
        ) from e

    remaining = [group for group in current_groups if group != context.managed_group_id]
    return [
        NotificationRequest(
            method="PUT",
            path=f"/subscribers/{quote(subscriber_id, safe='')}",
            body={"groups": remaining},
        )
    ]
