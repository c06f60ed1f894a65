"""
HTTP client for the mailing service API.

Thin capability over httpx: send one request, send a batch envelope, or
fetch a JSON document. Sending never raises for HTTP or transport errors;
the outcome is returned as a SendResult for the caller to classify.
"""

import json
from typing import Any

import httpx

from sale_actions.core.models import NotificationRequest, SendResult

BATCH_PATH = "/batch"


class NotificationError(Exception):
    """Raised when a lookup against the mailing API cannot be completed."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NotificationClient:
    """
    Mailing API client.

    Args:
        base_url: API base URL (request paths are appended to it)
        api_key: Bearer token
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def send(self, request: NotificationRequest) -> SendResult:
        """
        Send one request.

        Returns:
            SendResult with the status and body, or the transport error
        """
        try:
            response = self._client.request(request.method, request.path, json=request.body)
        except httpx.HTTPError as e:
            return SendResult(error=f"{type(e).__name__}: {e}")
        return SendResult(status_code=response.status_code, body=response.text)

    def send_batch(self, requests: list[NotificationRequest]) -> list[SendResult]:
        """
        Send requests wrapped in one batch envelope.

        The per-request outcome is taken from the envelope's ``responses``
        list when it matches the request count; otherwise the envelope's own
        status applies to every request.

        Returns:
            One SendResult per request, in request order
        """
        if not requests:
            return []
        envelope = {"requests": [request.to_batch_entry() for request in requests]}
        try:
            response = self._client.post(BATCH_PATH, json=envelope)
        except httpx.HTTPError as e:
            error = f"{type(e).__name__}: {e}"
            return [SendResult(error=error) for _ in requests]

        envelope_result = SendResult(status_code=response.status_code, body=response.text)
        if not envelope_result.ok:
            return [envelope_result for _ in requests]

        try:
            responses = response.json().get("responses")
        except (ValueError, AttributeError):
            responses = None
        if not isinstance(responses, list) or len(responses) != len(requests):
            return [envelope_result for _ in requests]

        results = []
        for item in responses:
            if not isinstance(item, dict) or not isinstance(item.get("code"), int):
                results.append(envelope_result)
                continue
            body = item.get("body")
            results.append(
                SendResult(
                    status_code=item["code"],
                    body=body if isinstance(body, str) or body is None else json.dumps(body),
                )
            )
        return results

    def get_json(self, path: str) -> dict[str, Any]:
        """
        GET a JSON object.

        Raises:
            NotificationError: On transport error, non-success status or a
                body that is not a JSON object
        """
        try:
            response = self._client.get(path)
        except httpx.HTTPError as e:
            raise NotificationError(f"GET {self.url_for(path)} failed: {e}") from e

        if not response.is_success:
            raise NotificationError(
                f"GET {self.url_for(path)} returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise NotificationError(
                f"GET {self.url_for(path)} returned an unparsable body",
                status_code=response.status_code,
                body=response.text,
            ) from e
        if not isinstance(data, dict):
            raise NotificationError(
                f"GET {self.url_for(path)} returned {type(data).__name__}, expected an object",
                status_code=response.status_code,
                body=response.text,
            )
        return data

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
