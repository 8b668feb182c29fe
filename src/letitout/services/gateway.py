"""Remote gateway for the Let It Out backend.

This module provides the RemoteGateway class that handles all communication
between the device and the REST backend. It includes:

- HTTP client with a bounded timeout on every call
- Circuit breaker pattern for fault tolerance
- Translation of transport failures into the sync-core error taxonomy
- Parsing of backend payloads into typed models
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError

from letitout.core.errors import RemoteRejected, RemoteUnavailable
from letitout.core.settings import settings
from letitout.schemas.remote import (
    RemoteComment,
    RemoteMoodLog,
    RemoteReaction,
    RemoteReport,
    RemoteRoom,
    RemoteVent,
    RemoteVentPage,
)

logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_NOT_FOUND = 404
HTTP_REQUEST_TIMEOUT = 408
HTTP_CONFLICT = 409
HTTP_TOO_MANY_REQUESTS = 429
HTTP_BAD_REQUEST = 400
HTTP_INTERNAL_SERVER_ERROR = 500

# Statuses that mean "try again later" rather than "never".
_TRANSIENT_STATUSES = frozenset({HTTP_REQUEST_TIMEOUT, HTTP_TOO_MANY_REQUESTS})


class CircuitState(Enum):
    """Circuit breaker states for fault tolerance."""

    CLOSED = "closed"      # Normal operation - requests allowed
    OPEN = "open"          # Circuit is open - requests blocked
    HALF_OPEN = "half_open"  # Testing if backend is back - limited requests allowed


@dataclass
class CircuitBreaker:
    """Stops calling the backend after repeated failures, then retries after a cool-down."""

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    success_threshold: int = 1

    _state: CircuitState = CircuitState.CLOSED
    _failure_count: int = 0
    _success_count: int = 0
    _last_failure_time: float = 0.0

    def is_open(self) -> bool:
        """Return True while calls must be short-circuited."""
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
            return self._state == CircuitState.OPEN
        return False

    def record_success(self) -> None:
        """Close the circuit again once a trial call succeeds."""
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._state = CircuitState.CLOSED
                self._failure_count = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        """Count a failure; a failed trial call reopens the circuit immediately."""
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN

    def get_state(self) -> CircuitState:
        """Return the current state without triggering a transition."""
        return self._state

    def get_failure_count(self) -> int:
        """Return consecutive failures since the last success."""
        return self._failure_count


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable configuration for backend operations."""

    base_url: str | None
    timeout_seconds: float
    failure_threshold: int
    recovery_seconds: float


def load_gateway_config() -> GatewayConfig:
    """Build configuration object from global settings."""

    return GatewayConfig(
        base_url=settings.api_base_url,
        timeout_seconds=float(settings.api_timeout_seconds),
        failure_threshold=settings.circuit_failure_threshold,
        recovery_seconds=settings.circuit_recovery_seconds,
    )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, Mapping) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


class RemoteGateway:
    """HTTP client wrapper for the Let It Out backend.

    Every failure that means "the backend cannot be used right now" surfaces as
    :class:`RemoteUnavailable`; a 4xx answer surfaces as
    :class:`RemoteRejected`. Callers never see raw ``httpx`` exceptions.
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_gateway_config()
        self.device_id: str | None = None
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._circuit_breaker = CircuitBreaker(
            failure_threshold=self.config.failure_threshold,
            recovery_timeout=self.config.recovery_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.config.base_url)

    @property
    def circuit_state(self) -> CircuitState:
        return self._circuit_breaker.get_state()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise RemoteUnavailable("Remote backend is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url or "",
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )

        return self._client

    def _build_headers(self, *, idempotency_key: str | None = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.device_id:
            headers["X-Device-Id"] = self.device_id
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    @dataclass
    class RequestParams:
        """One backend call: method, path, body and query."""
        method: str
        path: str
        json_data: Any | None = None
        params: Mapping[str, Any] | None = None
        idempotency_key: str | None = None

    async def _request(self, params: RequestParams) -> httpx.Response:
        client = await self._ensure_client()

        # Check circuit breaker
        if self._circuit_breaker.is_open():
            raise RemoteUnavailable("Backend circuit breaker is open - service unavailable")

        endpoint = f"{params.method} {params.path}"
        try:
            response = await asyncio.wait_for(
                client.request(
                    params.method,
                    params.path,
                    json=params.json_data,
                    params=params.params,
                    headers=self._build_headers(idempotency_key=params.idempotency_key),
                ),
                timeout=self.config.timeout_seconds,
            )
        except (httpx.HTTPError, TimeoutError) as exc:
            self._circuit_breaker.record_failure()
            logger.info("Backend request %s failed: %r", endpoint, exc)
            raise RemoteUnavailable(f"Backend request failed: {exc!r}") from exc

        if (
            response.status_code >= HTTP_INTERNAL_SERVER_ERROR
            or response.status_code in _TRANSIENT_STATUSES
        ):
            self._circuit_breaker.record_failure()
            logger.info("Backend responded %s to %s", response.status_code, endpoint)
            raise RemoteUnavailable(f"Backend responded with {response.status_code}")

        self._circuit_breaker.record_success()
        return response

    @staticmethod
    def _raise_for_rejection(response: httpx.Response) -> None:
        if response.status_code >= HTTP_BAD_REQUEST:
            raise RemoteRejected(
                f"Backend rejected request ({response.status_code}): {_error_message(response)}",
                status_code=response.status_code,
            )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteUnavailable("Backend returned a non-JSON body") from exc

    @staticmethod
    def _parse_items(model: type, items: Any, label: str) -> list[Any]:
        if not isinstance(items, list):
            raise RemoteUnavailable(f"Backend returned malformed {label} listing")
        parsed = []
        for item in items:
            try:
                parsed.append(model.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping malformed %s from backend: %s", label, exc)
        return parsed

    @staticmethod
    def _parse_one(model: type, data: Any, label: str) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise RemoteUnavailable(f"Backend returned a malformed {label}") from exc

    # ------------------------------------------------------------------ vents

    async def list_vents(self, limit: int = 50, room_id: str | None = None) -> RemoteVentPage:
        """Fetch the newest vents, optionally scoped to one room."""

        query: dict[str, Any] = {"limit": limit}
        if room_id:
            query["roomId"] = room_id
        response = await self._request(
            self.RequestParams(method="GET", path="/vents", params=query)
        )
        self._raise_for_rejection(response)
        payload = self._json(response)
        if not isinstance(payload, Mapping):
            raise RemoteUnavailable("Backend returned malformed vents listing")
        vents = self._parse_items(RemoteVent, payload.get("vents", []), "vent")
        total = payload.get("total")
        return RemoteVentPage(vents=vents, total=total if isinstance(total, int) else len(vents))

    async def get_vent(self, vent_id: str) -> RemoteVent | None:
        response = await self._request(
            self.RequestParams(method="GET", path=f"/vents/{vent_id}")
        )
        if response.status_code == HTTP_NOT_FOUND:
            return None
        self._raise_for_rejection(response)
        return self._parse_one(RemoteVent, self._json(response), "vent")

    async def create_vent(
        self,
        payload: Mapping[str, Any],
        *,
        idempotency_key: str | None = None,
    ) -> RemoteVent:
        """Create a vent on the backend and return the stored record."""

        response = await self._request(
            self.RequestParams(
                method="POST",
                path="/vents",
                json_data=dict(payload),
                idempotency_key=idempotency_key,
            )
        )
        self._raise_for_rejection(response)
        return self._parse_one(RemoteVent, self._json(response), "vent")

    # --------------------------------------------------------------- comments

    async def create_comment(
        self,
        payload: Mapping[str, Any],
        *,
        idempotency_key: str | None = None,
    ) -> RemoteComment:
        response = await self._request(
            self.RequestParams(
                method="POST",
                path="/comments",
                json_data=dict(payload),
                idempotency_key=idempotency_key,
            )
        )
        self._raise_for_rejection(response)
        return self._parse_one(RemoteComment, self._json(response), "comment")

    async def list_comments(self, vent_id: str) -> list[RemoteComment]:
        response = await self._request(
            self.RequestParams(method="GET", path=f"/comments/vent/{vent_id}")
        )
        self._raise_for_rejection(response)
        return self._parse_items(RemoteComment, self._json(response), "comment")

    # -------------------------------------------------------------- reactions

    async def list_reactions(self, vent_id: str) -> list[RemoteReaction]:
        response = await self._request(
            self.RequestParams(method="GET", path=f"/reactions/vent/{vent_id}")
        )
        self._raise_for_rejection(response)
        return self._parse_items(RemoteReaction, self._json(response), "reaction")

    async def toggle_reaction(
        self,
        payload: Mapping[str, Any],
        *,
        idempotency_key: str | None = None,
    ) -> RemoteReaction | None:
        """Flip this device's reaction; ``None`` means the backend removed it."""

        response = await self._request(
            self.RequestParams(
                method="POST",
                path="/reactions",
                json_data=dict(payload),
                idempotency_key=idempotency_key,
            )
        )
        self._raise_for_rejection(response)
        data = self._json(response)
        if data is None:
            return None
        return self._parse_one(RemoteReaction, data, "reaction")

    # ---------------------------------------------------------------- reports

    async def create_report(
        self,
        payload: Mapping[str, Any],
        *,
        idempotency_key: str | None = None,
    ) -> RemoteReport:
        response = await self._request(
            self.RequestParams(
                method="POST",
                path="/reports",
                json_data=dict(payload),
                idempotency_key=idempotency_key,
            )
        )
        self._raise_for_rejection(response)
        return self._parse_one(RemoteReport, self._json(response), "report")

    # ------------------------------------------------------------------ rooms

    async def list_rooms(self) -> list[RemoteRoom]:
        response = await self._request(self.RequestParams(method="GET", path="/rooms"))
        self._raise_for_rejection(response)
        return self._parse_items(RemoteRoom, self._json(response), "room")

    # -------------------------------------------------------------- mood logs

    async def get_mood_logs(
        self,
        device_id: str,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[RemoteMoodLog]:
        """Fetch this device's mood logs, inclusive of both window ends."""

        query = {"deviceId": device_id}
        if start_date:
            query["startDate"] = start_date
        if end_date:
            query["endDate"] = end_date
        response = await self._request(
            self.RequestParams(method="GET", path="/mood-logs", params=query)
        )
        self._raise_for_rejection(response)
        return self._parse_items(RemoteMoodLog, self._json(response), "mood log")

    async def save_mood_log(
        self,
        payload: Mapping[str, Any],
        *,
        idempotency_key: str | None = None,
    ) -> RemoteMoodLog:
        """Create the log for ``payload["date"]``, updating it if one exists.

        The backend answers 409 when the day already has a log; the existing
        record is then looked up and updated in place.
        """

        response = await self._request(
            self.RequestParams(
                method="POST",
                path="/mood-logs",
                json_data=dict(payload),
                idempotency_key=idempotency_key,
            )
        )
        if response.status_code != HTTP_CONFLICT:
            self._raise_for_rejection(response)
            return self._parse_one(RemoteMoodLog, self._json(response), "mood log")

        date = payload.get("date")
        existing = await self.get_mood_logs(str(payload.get("deviceId")), date, date)
        match = next((log for log in existing if log.date == date), None)
        if match is None:
            raise RemoteRejected(
                f"Backend reported a conflicting mood log for {date} but returned none",
                status_code=HTTP_CONFLICT,
            )
        response = await self._request(
            self.RequestParams(
                method="PUT",
                path=f"/mood-logs/{match.id}",
                json_data={"moodLevel": payload.get("moodLevel"), "note": payload.get("note")},
                idempotency_key=idempotency_key,
            )
        )
        self._raise_for_rejection(response)
        return self._parse_one(RemoteMoodLog, self._json(response), "mood log")

    # ----------------------------------------------------------------- health

    async def ping(self) -> bool:
        """Return True when the backend health endpoint answers."""

        try:
            response = await self._request(self.RequestParams(method="GET", path="/health"))
        except RemoteUnavailable:
            return False
        return response.status_code < HTTP_BAD_REQUEST

    async def close(self) -> None:
        """Close the pooled HTTP client, if one was opened."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
