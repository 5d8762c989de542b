"""
PenguinWatch Backend - API Client
===================================

What:  Async Python client for the PenguinWatch REST API, used by scripts,
       data-entry tooling and the test suite.
How:   httpx.AsyncClient for transport; reads are wrapped in a tenacity retry
       loop with exponential backoff, writes are sent exactly once.

Retry policy (reads only):
    Attempt 1 fails → wait retry_delay * 1
    Attempt 2 fails → wait retry_delay * 2
    Attempt 3 fails → wait retry_delay * 4
    ... up to `retries` extra attempts, then FetchError(status=500).

    4xx responses are never retried: the request itself is wrong and
    repeating it will not change the answer. 5xx responses, timeouts,
    connection errors and non-JSON bodies are retried.

Usage:
    async with ObservationClient("http://localhost:5000") as client:
        stats = await client.get_stats()
        created = await client.create_observation(
            {"location": "Port Lockroy", "species": "Gentoo", ...},
            image=("colony.jpg", jpeg_bytes, "image/jpeg"),
        )
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from penguinwatch.config import settings

logger = logging.getLogger(__name__)

RETRY_EXHAUSTED_MESSAGE = (
    "Failed to fetch data after multiple retries. "
    "Please check your connection and try again."
)

# (filename, content bytes, MIME type)
ImagePart = Tuple[str, bytes, str]


class FetchError(Exception):
    """
    Raised for any failed API call.

    Attributes:
        message: Server-provided error message, or a transport description
        info:    Parsed error body (or diagnostic dict) plus the attempt number
        status:  HTTP status; 500 when every retry was exhausted
    """

    def __init__(self, message: str, info: Any = None, status: int = 500):
        self.message = message
        self.info = info
        self.status = status
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500


def _should_retry(exc: BaseException) -> bool:
    if isinstance(exc, FetchError):
        return not exc.is_client_error
    return isinstance(exc, httpx.TransportError)


def _error_message(body: Any) -> str:
    """Pull a readable message out of either error body shape."""
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, list) and error:
        return "; ".join(str(item.get("message", item)) for item in error if item)
    if isinstance(error, str) and error:
        return error
    return "An error occurred while fetching the data"


class ObservationClient:
    """
    Async client for the observation, dashboard and health endpoints.

    Args:
        base_url:    Server root, e.g. "http://localhost:5000"
        retries:     Extra attempts for reads (default: CLIENT_RETRIES)
        retry_delay: Backoff base in seconds (default: CLIENT_RETRY_DELAY)
        timeout:     Per-request timeout in seconds (default: CLIENT_TIMEOUT)
        transport:   Optional httpx transport (ASGITransport, MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.retries = settings.client_retries if retries is None else retries
        self.retry_delay = settings.client_retry_delay if retry_delay is None else retry_delay
        self.timeout = settings.client_timeout if timeout is None else timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=self.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ObservationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Transport ─────────────────────────────────────────────────────────

    async def _send(self, method: str, path: str, attempt: int = 0, **kwargs) -> Any:
        """Single request: returns parsed JSON or raises FetchError."""
        response = await self._client.request(method, path, **kwargs)

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            raise FetchError(
                "Invalid response format: Expected JSON",
                {"content_type": content_type, "attempt": attempt},
                response.status_code,
            )

        body = response.json()
        if response.is_error:
            message = _error_message(body)
            logger.error(
                "API error (%d) %s %s attempt=%d: %s",
                response.status_code, method, path, attempt, message,
            )
            info = dict(body) if isinstance(body, dict) else {"body": body}
            info["attempt"] = attempt
            raise FetchError(message, info, response.status_code)

        return body

    async def _fetch(self, path: str) -> Any:
        """GET with retries. 4xx errors propagate immediately."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.retry_delay, min=0),
            retry=retry_if_exception(_should_retry),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send(
                        "GET", path, attempt=attempt.retry_state.attempt_number - 1
                    )
        except RetryError as e:
            last = e.last_attempt.exception()
            logger.error(
                "Fetch failed after retries: %s attempts=%d error=%s",
                path, self.retries + 1, last,
            )
            raise FetchError(
                RETRY_EXHAUSTED_MESSAGE,
                {"message": str(last), "attempts": self.retries + 1},
                500,
            ) from last

    async def _write(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        image: Optional[ImagePart] = None,
    ) -> Any:
        """Mutating request, sent once. Transport failures become FetchError."""
        kwargs: Dict[str, Any] = {}
        if data is not None:
            kwargs["data"] = {k: str(v) for k, v in data.items() if v is not None}
        if image is not None:
            kwargs["files"] = {"image": image}
        try:
            return await self._send(method, path, **kwargs)
        except httpx.TransportError as e:
            raise FetchError(str(e) or type(e).__name__, {"method": method, "path": path}, 500) from e

    # ── Reads ─────────────────────────────────────────────────────────────

    async def list_observations(self) -> List[Dict[str, Any]]:
        return await self._fetch("/api/observations")

    async def get_observation(self, observation_id: int) -> Dict[str, Any]:
        return await self._fetch(f"/api/observations/{observation_id}")

    async def get_stats(self) -> Dict[str, Any]:
        return await self._fetch("/api/stats")

    async def get_location_metrics(self) -> List[Dict[str, Any]]:
        return await self._fetch("/api/location-metrics")

    async def get_health(self) -> Dict[str, Any]:
        return await self._fetch("/health")

    # ── Writes ────────────────────────────────────────────────────────────

    async def create_observation(
        self, data: Dict[str, Any], image: Optional[ImagePart] = None
    ) -> Dict[str, Any]:
        return await self._write("POST", "/api/observations", data=data, image=image)

    async def update_observation(
        self, observation_id: int, data: Dict[str, Any], image: Optional[ImagePart] = None
    ) -> Dict[str, Any]:
        return await self._write(
            "PUT", f"/api/observations/{observation_id}", data=data, image=image
        )

    async def delete_observation(self, observation_id: int) -> Dict[str, Any]:
        return await self._write("DELETE", f"/api/observations/{observation_id}")
