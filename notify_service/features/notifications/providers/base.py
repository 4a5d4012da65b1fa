"""Base provider abstractions shared by every delivery channel.

A provider attempts exactly one delivery and always answers with a
ProviderResult: expected failures (timeouts, rejected payloads, auth
errors) are converted into a structured error whose ``retryable`` flag
drives the queue's retry decision.

Usage:
    class MyProvider(BaseNotificationProvider):
        channel = Channel.SMS

        @property
        def provider_name(self) -> str:
            return "myprovider"

        def validate_payload(self, payload) -> bool:
            return isinstance(payload, SmsPayload) and bool(payload.to and payload.body)

        async def _do_send(self, payload) -> ProviderResult:
            ...
            return ProviderResult.success_result(message_id, self.provider_name)
"""

from __future__ import annotations

import socket
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from functools import cached_property
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from notify_service.features.notifications.enums import Channel, ErrorCode
from notify_service.features.notifications.metrics import (
    notification_delivery_duration_seconds,
    notification_delivery_total,
)
from notify_service.infra.logging import ContextBoundLogger, get_logger

if TYPE_CHECKING:
    from .payloads import NotificationPayload

# Statuses worth retrying: request timeout, rate limiting
_RETRYABLE_STATUS = frozenset({408, 425, 429})


@dataclass(frozen=True)
class ProviderError:
    """Structured provider failure.

    Attributes:
        code: Error taxonomy code
        message: Human-readable detail (stored as the notification's status message)
        retryable: Whether the queue should re-attempt delivery with backoff
    """

    code: ErrorCode
    message: str
    retryable: bool = False


@dataclass(frozen=True)
class ProviderResult:
    """Result of one delivery attempt.

    Attributes:
        success: Whether the provider accepted the message
        provider: Provider name (resend, twilio, none, ...)
        message_id: Provider-assigned message id
        error: Failure details when success is False
        duration_ms: Time taken by the attempt
        metadata: Provider-specific extras (HTTP status, request id, ...)
    """

    success: bool
    provider: str
    message_id: str | None = None
    error: ProviderError | None = None
    duration_ms: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.success and self.error is None:
            object.__setattr__(
                self,
                "error",
                ProviderError(code=ErrorCode.SEND_FAILED, message="Unknown error", retryable=True),
            )

    @property
    def retryable(self) -> bool:
        return self.error is not None and self.error.retryable

    @classmethod
    def success_result(
        cls,
        message_id: str,
        provider: str,
        metadata: dict[str, Any] | None = None,
    ) -> ProviderResult:
        return cls(success=True, provider=provider, message_id=message_id, metadata=metadata or {})

    @classmethod
    def failure_result(
        cls,
        provider: str,
        code: ErrorCode,
        message: str,
        *,
        retryable: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> ProviderResult:
        return cls(
            success=False,
            provider=provider,
            error=ProviderError(code=code, message=message, retryable=retryable),
            metadata=metadata or {},
        )


def provider_message_id(provider: str, value: object) -> str:
    """Message id reported by the provider, or a generated one when it sent none.

    Example:
        provider_message_id("resend", data.get("id"))  # "resend-4f1c..." when absent
    """
    if value is None or value == "":
        return f"{provider}-{uuid.uuid4()}"
    return str(value)


def is_transport_error(exc: BaseException) -> bool:
    """Guess whether an exception is a transient transport failure.

    Timeouts, refused or dropped connections and DNS failures are worth
    retrying; anything else is treated as a bug or a permanent rejection.
    aiosmtplib's connect, disconnect and timeout errors subclass
    ConnectionError/TimeoutError and are covered too.
    """
    return isinstance(
        exc,
        (httpx.TransportError, ConnectionError, TimeoutError, socket.gaierror),
    )


def is_retryable_status(status_code: int) -> bool:
    """HTTP statuses that indicate a transient condition."""
    return status_code in _RETRYABLE_STATUS or status_code >= 500


def exception_result(provider: str, exc: BaseException) -> ProviderResult:
    """Convert an unexpected exception into a ``sendFailed`` result."""
    return ProviderResult.failure_result(
        provider=provider,
        code=ErrorCode.SEND_FAILED,
        message=f"{type(exc).__name__}: {exc}",
        retryable=is_transport_error(exc),
    )


class BaseNotificationProvider(ABC):
    """Abstract base class for channel providers.

    Provides common functionality for all providers:
    - Payload validation before any network call
    - Timing measurement and metrics
    - Logging
    - Conversion of unexpected exceptions into results

    Subclasses must implement:
    - provider_name property
    - validate_payload(): Structural check of the payload
    - _do_send(): Actual sending logic
    """

    channel: ClassVar[Channel]

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name."""
        ...

    @abstractmethod
    def validate_payload(self, payload: NotificationPayload) -> bool:
        """Return True when the payload has everything this provider needs."""
        ...

    @abstractmethod
    async def _do_send(self, payload: NotificationPayload) -> ProviderResult:
        """Attempt a single delivery of an already validated payload."""
        ...

    @cached_property
    def _logger(self) -> ContextBoundLogger:
        return get_logger(__name__, provider=self.provider_name, channel=self.channel.value)

    async def aclose(self) -> None:
        """Release held connections. No-op for providers without any."""
        return None

    async def send(self, payload: NotificationPayload) -> ProviderResult:
        """Send with validation, timing and error handling.

        Never raises: every outcome, including unexpected exceptions,
        is reported as a ProviderResult.
        """
        if not self.validate_payload(payload):
            self._logger.warning(
                f"Rejected invalid {self.channel.value} payload",
                extra={"payload_kind": payload.kind},
            )
            return ProviderResult.failure_result(
                provider=self.provider_name,
                code=ErrorCode.INVALID_PAYLOAD,
                message=f"Invalid {self.channel.value} payload: missing recipient or content",
            )

        start_time = time.perf_counter()
        try:
            result = await self._do_send(payload)
        except Exception as e:
            duration = time.perf_counter() - start_time
            self._logger.exception(
                f"Unexpected error in {self.provider_name} provider",
                extra={"error": str(e)},
            )
            notification_delivery_total.labels(
                channel=self.channel.value, provider=self.provider_name, outcome="error"
            ).inc()
            return replace(exception_result(self.provider_name, e), duration_ms=int(duration * 1000))

        duration = time.perf_counter() - start_time
        if result.duration_ms is None:
            result = replace(result, duration_ms=int(duration * 1000))

        notification_delivery_duration_seconds.labels(
            channel=self.channel.value, provider=self.provider_name
        ).observe(duration)
        notification_delivery_total.labels(
            channel=self.channel.value,
            provider=self.provider_name,
            outcome="success" if result.success else "failure",
        ).inc()

        if result.success:
            self._logger.info(
                f"{self.channel.value} sent via {self.provider_name}",
                extra={
                    "message_id": result.message_id,
                    "duration_ms": result.duration_ms,
                },
            )
        else:
            self._logger.warning(
                f"{self.channel.value} send failed via {self.provider_name}",
                extra={
                    "error_code": result.error.code.value if result.error else None,
                    "error": result.error.message if result.error else None,
                    "retryable": result.retryable,
                    "duration_ms": result.duration_ms,
                },
            )
        return result


class HttpNotificationProvider(BaseNotificationProvider):
    """Base for providers that talk to an HTTP API through httpx.

    A client passed in is used as-is and left open for its owner; otherwise
    one is created on first use and closed by aclose().
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        http2: bool = False,
    ) -> None:
        self._timeout = timeout
        self._http2 = http2
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, http2=self._http2)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _http_failure(
        self,
        response: httpx.Response,
        detail: str | None = None,
        *,
        code: ErrorCode = ErrorCode.SEND_FAILED,
    ) -> ProviderResult:
        """Failure result for a non-success HTTP response."""
        detail = detail or response_error_detail(response)
        return ProviderResult.failure_result(
            provider=self.provider_name,
            code=code,
            message=f"{self.provider_name} API error ({response.status_code}): {detail}",
            retryable=is_retryable_status(response.status_code),
            metadata={"status_code": response.status_code},
        )


def response_error_detail(response: httpx.Response) -> str:
    """Best-effort error text from a provider response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "description", "reason", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return response.text[:500]
