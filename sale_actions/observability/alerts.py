"""
Alert forwarding to the watchtower monitoring service.

WatchtowerHandler is a logging handler: attach it to the ``sale_actions``
logger and every record at or above its level is posted to the monitoring
endpoint. Records logged with ``extra={"local_only": True}`` stay local.
"""
import logging

import httpx

# Watchtower type keys, in the order of increasing severity
TYPE_INFO = "info"
TYPE_WARNING = "warning"
TYPE_SEVERE = "severe"


def severity_for(levelno: int) -> str:
    """Map a logging level to a watchtower type key."""
    if levelno >= logging.ERROR:
        return TYPE_SEVERE
    if levelno >= logging.WARNING:
        return TYPE_WARNING
    return TYPE_INFO


class WatchtowerHandler(logging.Handler):
    """
    Post log records to a watchtower endpoint.

    Args:
        endpoint: URL receiving the alerts
        app_id: Application identifier registered in watchtower
        token: Authentication token
        types: Mapping of type key (info/warning/severe) to watchtower type id
        client: httpx client (one is created when omitted)
        level: Minimum level forwarded
    """

    def __init__(
        self,
        endpoint: str,
        app_id: str,
        token: str,
        types: dict[str, str],
        client: httpx.Client | None = None,
        level: int = logging.INFO,
    ) -> None:
        super().__init__(level=level)
        self.endpoint = endpoint
        self.app_id = app_id
        self.token = token
        self.types = types
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=10.0)

    def build_payload(self, record: logging.LogRecord) -> dict:
        severity = severity_for(record.levelno)
        return {
            "token": self.token,
            "log": {
                "app_id": self.app_id,
                "type": self.types.get(severity, severity),
                "message": record.getMessage(),
            },
        }

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(record, "local_only", False):
            return
        try:
            response = self.client.post(self.endpoint, json=self.build_payload(record))
            response.raise_for_status()
        except httpx.HTTPError:
            # reported on stderr by logging, never raised into the caller
            self.handleError(record)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()
        super().close()
