"""
Async HTTP client for the learning platform API.

Wraps ``httpx.AsyncClient`` with:
- bearer-token headers from settings
- conversion of transport failures and unexpected statuses to ``ApiError``
- the legacy-path fallback policy: a 404/405 on one path retries the next
  candidate path; any other error surfaces immediately

Usage:
    async with ApiClient.from_settings() as client:
        response = await client.request_with_fallback(
            "get", ["/learning/srs/summary", "/srs/summary"]
        )
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from typing import Any

import httpx
from loguru import logger

from config import Settings, get_settings

GENERIC_ERROR_MESSAGE = "The request could not be completed. Please try again."
FALLBACK_STATUSES = frozenset({404, 405})
METHODS_WITHOUT_BODY = frozenset({"get", "delete", "head", "options"})


class ApiError(Exception):
    """A backend call failed (network error or non-accepted status)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: Any = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail
        self.payload = payload

    @property
    def is_fallback_error(self) -> bool:
        """Whether another endpoint version should be tried."""
        return self.status_code in FALLBACK_STATUSES

    @classmethod
    def from_response(cls, response: httpx.Response) -> ApiError:
        """Build an error from a response, preferring the server ``detail``."""
        try:
            payload = response.json()
        except ValueError:
            payload = None
        detail = payload.get("detail") if isinstance(payload, dict) else None
        return cls(
            error_message(detail, fallback=f"Request failed with status {response.status_code}"),
            status_code=response.status_code,
            detail=detail,
            payload=payload,
        )


def error_message(detail: Any, fallback: str = GENERIC_ERROR_MESSAGE) -> str:
    """
    Human-readable message from a ``detail`` field.

    FastAPI-style backends return either a string or a list of
    ``{"msg": ...}`` validation errors.
    """
    if isinstance(detail, str) and detail.strip():
        return detail.strip()
    if isinstance(detail, list):
        messages = [
            str(entry.get("msg")) if isinstance(entry, dict) and entry.get("msg") else str(entry)
            for entry in detail
            if entry
        ]
        if messages:
            return "; ".join(messages)
    if isinstance(detail, dict) and detail.get("message"):
        return str(detail["message"])
    return fallback


def describe_error(exc: BaseException, fallback: str = GENERIC_ERROR_MESSAGE) -> str:
    """Message shown to the learner for a failed call."""
    if isinstance(exc, ApiError):
        return exc.message or fallback
    return str(exc) or fallback


class ApiClient:
    """
    HTTP client for the learning platform REST API.

    One instance is shared by the endpoint wrappers (capsules, progress,
    SRS, journal). The underlying ``httpx.AsyncClient`` is created lazily.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ApiClient:
        settings = settings or get_settings()
        return cls(
            base_url=settings.api_base_url,
            token=settings.api_token,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> ApiClient:
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Requests
    # =========================================================================

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        accept: Collection[int] | None = None,
    ) -> httpx.Response:
        """
        Send one request.

        Args:
            method: HTTP verb (case-insensitive)
            path: Path relative to the base URL
            json: JSON body (ignored for body-less methods)
            params: Query parameters
            accept: Statuses treated as success (default: any 2xx)

        Raises:
            ApiError: On network failure or a non-accepted status
        """
        verb = method.lower()
        client = await self._ensure_client()
        kwargs: dict[str, Any] = {}
        if params:
            kwargs["params"] = {key: value for key, value in params.items() if value is not None}
        if verb not in METHODS_WITHOUT_BODY and json is not None:
            kwargs["json"] = json

        try:
            response = await client.request(verb.upper(), path, **kwargs)
        except httpx.RequestError as e:
            logger.warning(f"Connection error on {verb.upper()} {path}: {e}")
            raise ApiError(str(e) or GENERIC_ERROR_MESSAGE) from e

        ok = response.status_code in accept if accept is not None else response.is_success
        if not ok:
            error = ApiError.from_response(response)
            logger.debug(f"{verb.upper()} {path} -> {response.status_code}: {error.message}")
            raise error

        logger.debug(f"{verb.upper()} {path} -> {response.status_code}")
        return response

    async def request_with_fallback(
        self,
        method: str,
        paths: Sequence[str],
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        accept: Collection[int] | None = None,
    ) -> httpx.Response:
        """
        Try each path in order until one is served.

        Only 404/405 trigger the next path; any other failure is raised
        immediately. When every path is rejected, the last error is raised.
        """
        if not paths:
            raise ValueError("request_with_fallback requires a non-empty list of paths.")

        last_error: ApiError | None = None
        for path in paths:
            try:
                return await self.request(method, path, json=json, params=params, accept=accept)
            except ApiError as e:
                if not e.is_fallback_error:
                    raise
                logger.warning(f"{method.upper()} {path} returned {e.status_code}, trying next endpoint")
                last_error = e

        assert last_error is not None
        raise last_error


def response_json(response: httpx.Response, default: Any = None) -> Any:
    """Decoded body, or ``default`` for empty/non-JSON bodies."""
    if not response.content:
        return default
    try:
        body = response.json()
    except ValueError:
        return default
    return default if body is None else body
