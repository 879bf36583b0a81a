"""HTTP client with timeouts, client-side pacing, and credential redaction."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Iterable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from geocsv.common.constants import CREDENTIAL_PARAMS, REDACTED, USER_AGENT
from geocsv.common.errors import InvalidResponseError, NetworkError
from geocsv.common.logging import log_event

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 10.0
    read: float = 30.0


class HttpStatusError(InvalidResponseError):
    """Non-success status that is not worth treating as a transport failure."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientHttpError(NetworkError):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class TokenBucket:
    def __init__(self, rate_per_sec: float, capacity: float | None = None) -> None:
        if rate_per_sec <= 0:
            raise ValueError("rate_per_sec must be positive")
        self.rate_per_sec = rate_per_sec
        self.capacity = capacity if capacity is not None else max(rate_per_sec, 1.0)
        self.tokens = self.capacity
        self.updated_at = time.monotonic()
        self.lock = threading.Lock()

    def acquire(self, tokens: float = 1.0) -> None:
        while True:
            with self.lock:
                now = time.monotonic()
                elapsed = now - self.updated_at
                self.tokens = min(self.capacity, self.tokens + elapsed * self.rate_per_sec)
                self.updated_at = now
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                deficit = tokens - self.tokens
                wait_for = max(deficit / self.rate_per_sec, 0.01)
            time.sleep(wait_for)


def redact_url(url: str, secret_params: Iterable[str] = CREDENTIAL_PARAMS) -> str:
    secrets = set(secret_params)
    parts = urlsplit(url)
    if not parts.query:
        return url
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    redacted = [(key, REDACTED if key in secrets else value) for key, value in pairs]
    # Keep the asterisks literal so the marker stays readable in logs.
    return urlunsplit(parts._replace(query=urlencode(redacted, safe="*")))


class HttpClient:
    """Blocking JSON GET transport; one request in flight at a time."""

    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        rate_per_sec: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.session = session or requests.Session()
        self.limiter = TokenBucket(rate_per_sec) if rate_per_sec else None

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if headers:
            out.update(headers)
        return out

    def _raise_for_status(self, response: requests.Response, display_url: str) -> None:
        status = response.status_code
        if status in TRANSIENT_STATUS_CODES:
            raise TransientHttpError(f"HTTP status {status} from {display_url}", status)
        if status >= 400:
            raise HttpStatusError(f"HTTP status {status} from {display_url}", status)

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> Any:
        req_timeout = timeout or self.timeout
        prepared = self.session.prepare_request(
            requests.Request("GET", url, params=params, headers=self._headers(headers))
        )
        display_url = redact_url(prepared.url or url)
        # Proxies and CA bundle from the environment, as Session.request would apply them.
        send_settings = self.session.merge_environment_settings(prepared.url, {}, None, None, None)

        if self.limiter is not None:
            self.limiter.acquire()

        log_event(logger, f"fetch {display_url}", event="GEOCODE_REQUEST", status="pending", url=display_url)
        try:
            response = self.session.send(
                prepared,
                timeout=(req_timeout.connect, req_timeout.read),
                **send_settings,
            )
        except requests.RequestException as exc:
            raise NetworkError(f"Request to {display_url} failed: {exc.__class__.__name__}") from exc

        self._raise_for_status(response, display_url)

        try:
            return response.json()
        except ValueError as exc:
            raise InvalidResponseError(f"Invalid JSON payload from {display_url}") from exc
