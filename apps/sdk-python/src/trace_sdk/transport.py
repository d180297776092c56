"""HTTP transport to the location collector."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from .config import ClientConfig
from .errors import BackendRejected, MalformedPayloadError, TransientNetworkError
from .models import DeleteFilter, LocationSample, OperationMethod, QueuedOperation
from .results import TransportResult

logger = logging.getLogger(__name__)


class TransportClient:
    """Thin request layer. Never retries and never raises for network trouble.

    Every call returns a ``TransportResult``; timeouts, connection errors and
    non-2xx responses become failed results with a diagnostic.
    """

    def __init__(self, config: ClientConfig, *, transport: Optional[httpx.BaseTransport] = None) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout, transport=transport)

    def __enter__(self) -> "TransportClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _headers(self, device_id: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "User-Agent": self._config.user_agent,
            "Content-Type": "application/json",
        }
        device = device_id or self._config.device_id
        if device:
            headers["device-id"] = device
        headers.update(self._config.headers)
        return headers

    def _request(self, method: str, path: str, *, device_id: Optional[str] = None, **kwargs: Any) -> TransportResult:
        try:
            response = self._client.request(method, path, headers=self._headers(device_id), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            rejection = BackendRejected(
                status,
                exc.response.text[:200],
                permanent=BackendRejected.is_permanent_status(status),
            )
            logger.warning("%s %s rejected status=%s permanent=%s", method, path, status, rejection.permanent)
            return TransportResult.failure(str(rejection), status_code=status, error=rejection)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out after %ss", method, path, self._config.timeout)
            return TransportResult.failure(f"timeout: {exc}", error=TransientNetworkError(str(exc)))
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return TransportResult.failure(f"network error: {exc}", error=TransientNetworkError(str(exc)))
        data: Any = None
        if response.content:
            try:
                data = response.json()
            except ValueError:
                data = response.text
        return TransportResult.success(response.status_code, data)

    def submit_location(self, sample: LocationSample) -> TransportResult:
        return self._request("POST", self._config.locations_path, device_id=sample.device_id, json=sample.to_wire())

    def fetch_range(self, start: int, end: int) -> TransportResult:
        result = self._request(
            "GET",
            self._config.locations_path,
            params={"startTime": start, "endTime": end},
        )
        return self._parse_samples(result)

    def fetch_latest(self, limit: int = 50) -> TransportResult:
        result = self._request("GET", f"{self._config.locations_path}/latest", params={"limit": limit})
        return self._parse_samples(result)

    def delete_older_than(self, older_than: int) -> TransportResult:
        return self._request("DELETE", self._config.locations_path, params={"olderThan": older_than})

    def send(self, op: QueuedOperation) -> TransportResult:
        """Transmit a queued operation."""
        if op.method is OperationMethod.CREATE and isinstance(op.payload, LocationSample):
            return self.submit_location(op.payload)
        if op.method is OperationMethod.DELETE and isinstance(op.payload, DeleteFilter):
            return self.delete_older_than(op.payload.older_than)
        error = MalformedPayloadError(f"operation {op.id} has method {op.method.value} with a mismatched payload")
        return TransportResult.failure(str(error), error=error)

    def ping(self) -> bool:
        return self._request("GET", self._config.health_path).ok

    def _parse_samples(self, result: TransportResult) -> TransportResult:
        if not result.ok:
            return result
        if not isinstance(result.data, list):
            return TransportResult.failure("expected a JSON array of locations", status_code=result.status_code)
        try:
            samples: List[LocationSample] = [self._to_sample(item) for item in result.data]
        except ValidationError as exc:
            return TransportResult.failure(f"unparseable location in response: {exc}", status_code=result.status_code)
        return TransportResult.success(result.status_code or 200, samples)

    def _to_sample(self, item: Any) -> LocationSample:
        record = dict(item) if isinstance(item, dict) else item
        if isinstance(record, dict) and not record.get("deviceId") and self._config.device_id:
            record["deviceId"] = self._config.device_id
        return LocationSample.model_validate(record)

    def close(self) -> None:
        self._client.close()


__all__ = ["TransportClient"]
