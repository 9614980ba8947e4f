"""Retry-capable HTTP request executor.

Every call the bot makes to the remote API goes through
:class:`RequestExecutor`.  A response with status below 500 is
*delivered* and handed back untouched, even a 4xx; the caller
interprets the body.  Anything else is retried:

* HTTP 500 -- exponential backoff, ``base_backoff_ms * 1.5 ** (attempt - 1)``.
* Any other failure (network error, timeout, 502/503...) -- fixed 2 s.

Backoff growth starts over at every :meth:`RequestExecutor.execute`
call; nothing is remembered between calls.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import aiohttp

from core.logging_setup import BotLogger
from core.proxy_manager import NO_PROXY, Proxy
from core.utils import delay

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 30
DEFAULT_BASE_BACKOFF_MS = 2000
SERVER_ERROR_BACKOFF_FACTOR = 1.5
FIXED_RETRY_DELAY_MS = 2000
REQUEST_TIMEOUT_SECONDS = 60
SERVER_ERROR_STATUS = 500


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff seed for one executor call."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_backoff_ms: int = DEFAULT_BASE_BACKOFF_MS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_backoff_ms < 0:
            raise ValueError("base_backoff_ms must be >= 0")

    def server_error_backoff_ms(self, attempt: int) -> float:
        """Wait before retrying after a 500 on 1-based *attempt*."""
        return self.base_backoff_ms * SERVER_ERROR_BACKOFF_FACTOR ** (attempt - 1)


@dataclass(frozen=True)
class RequestSpec:
    """A single HTTP call: method, URL, headers, JSON body and proxy."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    proxy: Proxy = NO_PROXY


@dataclass
class HttpResponse:
    """A delivered response (status < 500)."""

    status: int
    reason: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None


class HttpTransportError(Exception):
    """Raised by the transport for responses with status >= 500.

    Carries enough of the request/response pair to explain the failure
    in the log.
    """

    def __init__(
        self,
        status: Optional[int],
        reason: Optional[str] = None,
        url: Optional[str] = None,
        method: Optional[str] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(f"Request failed with status code {status}")
        self.status = status
        self.reason = reason
        self.url = url
        self.method = method
        self.body = body
        self.headers = dict(headers or {})


@dataclass
class RequestOutcome:
    """Result of :meth:`RequestExecutor.execute`.

    Either ``response`` is set (delivered) or ``error`` holds the last
    failure once the retry budget ran out.
    """

    response: Optional[HttpResponse] = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.response is not None

    @property
    def status(self) -> Optional[int]:
        return self.response.status if self.response else None

    @property
    def body(self) -> Any:
        return self.response.body if self.response else None


Transport = Callable[[RequestSpec, float], Awaitable[HttpResponse]]
Sleeper = Callable[[float], Awaitable[None]]


def _decode_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


async def aiohttp_transport(spec: RequestSpec, timeout_seconds: float) -> HttpResponse:
    """Send *spec* with a fresh :class:`aiohttp.ClientSession`.

    SOCKS proxies are applied through the session connector, HTTP
    proxies through the per-request ``proxy`` argument.

    Raises:
        HttpTransportError: for status >= 500.
        aiohttp.ClientError / asyncio.TimeoutError: on transport failure.
    """
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    async with aiohttp.ClientSession(
        connector=spec.proxy.connector(), timeout=timeout,
    ) as session:
        async with session.request(
            spec.method.upper(),
            spec.url,
            headers=dict(spec.headers),
            json=spec.body,
            proxy=spec.proxy.request_proxy(),
        ) as resp:
            body = _decode_body(await resp.text())
            if resp.status >= SERVER_ERROR_STATUS:
                raise HttpTransportError(
                    status=resp.status,
                    reason=resp.reason,
                    url=spec.url,
                    method=spec.method,
                    body=body,
                    headers=spec.headers,
                )
            return HttpResponse(
                status=resp.status,
                reason=resp.reason,
                headers=dict(resp.headers),
                body=body,
            )


class RequestExecutor:
    """Issue requests and retry them per :class:`RetryPolicy`.

    Args:
        log: Logging capability for per-attempt lines.
        transport: Coroutine sending one request; defaults to
            :func:`aiohttp_transport`.
        sleep: Delay primitive taking seconds.
        timeout_seconds: Total timeout per attempt.
    """

    def __init__(
        self,
        log: Optional[BotLogger] = None,
        transport: Transport = aiohttp_transport,
        sleep: Sleeper = delay,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.log = log or BotLogger()
        self.transport = transport
        self.sleep = sleep
        self.timeout_seconds = timeout_seconds

    async def execute(
        self, spec: RequestSpec, policy: RetryPolicy = RetryPolicy(),
    ) -> RequestOutcome:
        last_error: Optional[BaseException] = None
        attempts = 0

        for attempt in range(1, policy.max_attempts + 1):
            attempts = attempt
            is_last = attempt == policy.max_attempts
            self.log.verbose(
                f"Attempting request ({attempt}/{policy.max_attempts})",
                f"URL: {spec.url}",
            )
            try:
                response = await self.transport(spec, self.timeout_seconds)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
            else:
                self.log.verbose("Request succeeded", f"Status: {response.status}")
                return RequestOutcome(response=response, attempts=attempt)

            if (
                isinstance(last_error, HttpTransportError)
                and last_error.status == SERVER_ERROR_STATUS
            ):
                self.log.error(
                    "Server error (500)",
                    f"Attempt {attempt}/{policy.max_attempts}",
                    last_error,
                )
                if is_last:
                    break
                wait_ms = policy.server_error_backoff_ms(attempt)
                self.log.warn(f"Waiting {wait_ms / 1000:g}s before retrying...")
                await self.sleep(wait_ms / 1000)
                continue

            if is_last:
                self.log.error("Maximum retries reached", spec.url, last_error)
                break

            self.log.warn(
                "Request failed",
                f"Attempt {attempt}/{policy.max_attempts}",
                last_error,
            )
            await self.sleep(FIXED_RETRY_DELAY_MS / 1000)

        return RequestOutcome(error=last_error, attempts=attempts)
