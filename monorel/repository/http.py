"""HTTP client abstraction for forge APIs.

This module provides:
- HttpClient: Protocol for JSON requests (injectable for tests)
- UrllibHttpClient: Real implementation using urllib with a bearer credential
- MockHttpClient: Scripted responses for tests
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from monorel import __version__
from monorel.core.result import Err, Ok, Result
from monorel.core.structured import as_str_dict, get_str

__all__ = [
    "HttpClient",
    "HttpError",
    "HttpResponse",
    "MockHttpClient",
    "UrllibHttpClient",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    @property
    def is_transient(self) -> bool:
        return self.status == 0 or self.status == 429 or self.status >= 500

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """A decoded JSON response (data is None for empty bodies)."""

    status: int
    data: object


@runtime_checkable
class HttpClient(Protocol):
    def request(
        self, method: str, url: str, *, json_body: object | None = None
    ) -> Result[HttpResponse, HttpError]:
        """Send a request and decode the JSON response.

        Non-2xx statuses come back as Err(HttpError).
        """
        ...


class UrllibHttpClient:
    """Real HTTP client using urllib.

    Args:
        credential: Opaque bearer token; minted outside this package.
        timeout: Request timeout in seconds.
        headers: Extra headers sent with every request.
    """

    def __init__(
        self,
        credential: str | None = None,
        *,
        timeout: float = 30.0,
        headers: Mapping[str, str] | None = None,
        user_agent: str = f"monorel/{__version__}",
    ) -> None:
        self.timeout = timeout
        self._headers = {"User-Agent": user_agent, "Accept": "application/json", **(headers or {})}
        if credential:
            self._headers["Authorization"] = f"Bearer {credential}"
        self._ssl_context = ssl.create_default_context()

    def request(
        self, method: str, url: str, *, json_body: object | None = None
    ) -> Result[HttpResponse, HttpError]:
        headers = dict(self._headers)
        data: bytes | None = None
        if json_body is not None:
            data = json.dumps(json_body).encode("utf-8")
            headers["Content-Type"] = "application/json"

        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout, context=self._ssl_context) as resp:
                status = resp.status
                raw = resp.read()
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=_error_message(e)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except ValueError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

        if not raw:
            return Ok(HttpResponse(status=status, data=None))
        try:
            return Ok(HttpResponse(status=status, data=json.loads(raw.decode("utf-8"))))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))


def _error_message(error: urllib.error.HTTPError) -> str:
    try:
        body = as_str_dict(json.loads(error.read().decode("utf-8")))
    except (json.JSONDecodeError, UnicodeDecodeError, OSError):
        body = None
    if body is not None:
        message = get_str(body, "message")
        if message:
            return message
    return str(error.reason)


class MockHttpClient:
    """Mock HTTP client for testing.

    Responses are queued per (method, url); the last queued response for a
    key is reused once the queue drains. Unknown requests return 404.

    Usage:
        client = MockHttpClient()
        client.add("GET", "https://api.github.com/repos/o/n", {"default_branch": "main"})
        client.add("GET", url, HttpError(url=url, status=503, message="unavailable"))
    """

    def __init__(self) -> None:
        self._responses: dict[tuple[str, str], list[HttpResponse | HttpError]] = {}
        self.calls: list[tuple[str, str, object | None]] = []

    def add(
        self, method: str, url: str, response: object | HttpError, *, status: int = 200
    ) -> None:
        entry = response if isinstance(response, HttpError) else HttpResponse(status, response)
        self._responses.setdefault((method.upper(), url), []).append(entry)

    def calls_to(self, method: str) -> list[tuple[str, object | None]]:
        return [(url, body) for m, url, body in self.calls if m == method.upper()]

    def request(
        self, method: str, url: str, *, json_body: object | None = None
    ) -> Result[HttpResponse, HttpError]:
        method = method.upper()
        self.calls.append((method, url, json_body))

        queue = self._responses.get((method, url))
        if not queue:
            return Err(HttpError(url=url, status=404, message="Not Found (mock)"))
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
