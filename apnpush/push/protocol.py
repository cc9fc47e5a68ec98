"""
HTTP/2 protocol: batched, concurrent dispatch of queued notifications.

Features:
- In-memory queue of (receiver, notification, sandbox) messages
- Lazy request building (encode -> URI -> headers -> auth -> visitor)
- Bounded pool of in-flight requests over one shared HTTP/2 client
- Per-message outcomes correlated by queue index
- Reject listeners notified in registration order
"""

import asyncio
import json
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from apnpush.push.authenticator import AuthenticatorProtocol
from apnpush.push.constants import (
    CONTENT_TYPE_JSON,
    DEFAULT_CONCURRENCY,
    REJECT_EVENT,
)
from apnpush.push.encoder import PayloadEncoderProtocol
from apnpush.push.exception_factory import ExceptionFactoryProtocol
from apnpush.push.exceptions import (
    DispatcherClosedError,
    DispatcherStateError,
    DispatchTimeoutError,
    ExpiredProviderTokenError,
    HttpSenderError,
    RequestBuildError,
    SendNotificationError,
    UndefinedError,
)
from apnpush.push.http_sender import HttpSenderProtocol
from apnpush.push.models import (
    DispatchOutcome,
    DispatchReport,
    Notification,
    OutcomeStatus,
    QueuedMessage,
    Receiver,
    RejectEvent,
    Request,
    Response,
)
from apnpush.push.uri_factory import UriFactoryProtocol
from apnpush.push.visitor import ProtocolVisitorProtocol

logger = logging.getLogger(__name__)

RejectListener = Callable[[RejectEvent], Any]

# (index, message, request, build error) as produced by the request generator
_BuiltRequest = Tuple[int, QueuedMessage, Optional[Request], Optional[Exception]]


class DispatcherState(str, Enum):
    """Lifecycle of a protocol instance."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    CLOSED = "closed"


def _mask_token(token: str) -> str:
    return token[:20] + "..." if len(token) > 20 else token


class HttpProtocol:
    """
    Batched APNS dispatch over HTTP/2.

    Messages are queued with add_message() and sent together by send(). At
    most ``concurrency`` requests are in flight at once. Every message queued
    when send() starts gets exactly one DispatchOutcome; rejected and failed
    messages are also passed to the reject listeners.

    Usage:
        protocol = HttpProtocol(
            authenticator=JwtAuthenticator(key_id, team_id, key_file=path),
            http_sender=HttpSender(),
            payload_encoder=PayloadEncoder(),
            uri_factory=UriFactory(),
            visitor=default_visitor_chain(),
            exception_factory=ExceptionFactory(),
        )
        protocol.add_reject_listener(on_reject)
        protocol.add_message(receiver, notification, sandbox=True)
        report = await protocol.send()
        await protocol.close_connection()

    Queue semantics: send() takes every queued message. Messages whose
    request cannot be built stay queued for the next send(); all others are
    removed whatever their outcome. If the task awaiting send() is cancelled,
    messages not yet handed to the sender are queued again.
    """

    def __init__(
        self,
        authenticator: AuthenticatorProtocol,
        http_sender: HttpSenderProtocol,
        payload_encoder: PayloadEncoderProtocol,
        uri_factory: UriFactoryProtocol,
        visitor: ProtocolVisitorProtocol,
        exception_factory: ExceptionFactoryProtocol,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self._authenticator = authenticator
        self._sender = http_sender
        self._payload_encoder = payload_encoder
        self._uri_factory = uri_factory
        self._visitor = visitor
        self._exception_factory = exception_factory
        self._concurrency = concurrency

        self._messages: List[QueuedMessage] = []
        self._listeners: List[RejectListener] = []
        self._state = DispatcherState.IDLE

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def pending_messages(self) -> Tuple[QueuedMessage, ...]:
        """Messages waiting for the next send()."""
        return tuple(self._messages)

    def _ensure_open(self) -> None:
        if self._state == DispatcherState.CLOSED:
            raise DispatcherClosedError("Connection is closed")

    def _ensure_idle(self, operation: str) -> None:
        self._ensure_open()
        if self._state == DispatcherState.DISPATCHING:
            raise DispatcherStateError(f"Cannot {operation} while a dispatch is in progress")

    # =========================================================================
    # Message queue and listeners
    # =========================================================================

    def add_message(
        self,
        receiver: Receiver,
        notification: Notification,
        sandbox: bool = False,
    ) -> None:
        """Queue a notification for the next send()."""
        self._ensure_idle("add a message")
        if receiver is None:
            raise ValueError("receiver is required")
        if notification is None:
            raise ValueError("notification is required")

        self._messages.append(QueuedMessage(receiver, notification, sandbox))

    def add_reject_listener(self, target: Any, callback: Optional[str] = None) -> None:
        """
        Register an observer for rejected and failed messages.

        Args:
            target: A callable, or an object holding the callback method
            callback: Name of the method on ``target`` to call

        Raises:
            TypeError: The resolved listener is not callable
        """
        listener = getattr(target, callback, None) if callback is not None else target
        if not callable(listener):
            raise TypeError(f"Reject listener is not callable: {target!r}.{callback}")

        self._listeners.append(listener)
        logger.debug(
            "Reject listener registered",
            extra={"channel": REJECT_EVENT, "listeners": len(self._listeners)}
        )

    # =========================================================================
    # Request builder
    # =========================================================================

    def _build_request(self, message: QueuedMessage) -> Request:
        receiver = message.receiver
        notification = message.notification

        content = self._payload_encoder.encode(notification.payload)
        url = self._uri_factory.create(receiver.token, message.sandbox)

        request = Request(url=url, content=content).with_headers({
            "content-type": CONTENT_TYPE_JSON,
            "accept": CONTENT_TYPE_JSON,
            "apns-topic": receiver.topic,
        })
        request = self._authenticator.authenticate(request)

        return self._visitor.visit(notification, request)

    def _generate_requests(self, messages: List[QueuedMessage]) -> Iterator[_BuiltRequest]:
        """Lazily build one request per message, in queue order."""
        for index, message in enumerate(messages):
            try:
                request = self._build_request(message)
            except Exception as e:
                error = RequestBuildError(f"Cannot build request: {e}")
                error.__cause__ = e
                yield index, message, None, error
                continue

            yield index, message, request, None

    # =========================================================================
    # Dispatch pool
    # =========================================================================

    async def send(self, timeout: Optional[float] = None) -> DispatchReport:
        """
        Send every queued message and wait for all of them to complete.

        Per-message failures do not raise. They are logged, passed to the
        reject listeners and returned in the report.

        Args:
            timeout: Optional deadline for the whole batch, in seconds

        Returns:
            DispatchReport with one outcome per queued message

        Raises:
            DispatcherClosedError: close_connection() was called
            DispatcherStateError: Another send() is in progress
        """
        self._ensure_idle("send")
        self._state = DispatcherState.DISPATCHING

        # Transport setup failures propagate and leave the queue untouched
        try:
            await self._sender.open()
        except BaseException:
            self._state = DispatcherState.IDLE
            raise

        messages = self._messages
        self._messages = []
        start_time = time.monotonic()

        outcomes: Dict[int, DispatchOutcome] = {}
        unbuilt: Set[int] = set()
        started: Set[int] = set()

        try:
            if messages:
                await self._run_pool(messages, outcomes, unbuilt, started, timeout)
        finally:
            # Unbuilt messages and, after cancellation, messages never handed
            # to the sender go back on the queue
            self._messages = [
                message
                for index, message in enumerate(messages)
                if index in unbuilt or (index not in outcomes and index not in started)
            ]
            self._state = DispatcherState.IDLE

        report = DispatchReport(
            outcomes=[outcomes[index] for index in sorted(outcomes)],
            duration_ms=(time.monotonic() - start_time) * 1000,
        )

        logger.info(
            "APNS batch dispatch complete",
            extra={
                "total": report.total,
                "delivered": len(report.delivered),
                "rejected": len(report.rejected),
                "failed": len(report.failed),
                "requeued": len(self._messages),
                "duration_ms": round(report.duration_ms, 2),
            }
        )

        return report

    async def _run_pool(
        self,
        messages: List[QueuedMessage],
        outcomes: Dict[int, DispatchOutcome],
        unbuilt: Set[int],
        started: Set[int],
        timeout: Optional[float],
    ) -> None:
        requests = self._generate_requests(messages)
        workers = [
            asyncio.create_task(self._worker(requests, outcomes, unbuilt, started))
            for _ in range(min(self._concurrency, len(messages)))
        ]

        try:
            done, pending = await asyncio.wait(workers, timeout=timeout)
        except asyncio.CancelledError:
            await self._cancel_workers(workers)
            logger.warning(
                "APNS batch dispatch cancelled",
                extra={
                    "completed": len(outcomes),
                    "interrupted": len(started - outcomes.keys()),
                    "total": len(messages),
                }
            )
            raise

        if pending:
            await self._cancel_workers(pending)

        for worker in done:
            if not worker.cancelled() and worker.exception() is not None:
                raise worker.exception()

        if pending:
            logger.warning(
                "APNS batch deadline exceeded",
                extra={
                    "timeout": timeout,
                    "completed": len(outcomes),
                    "total": len(messages),
                }
            )
            for index, message in enumerate(messages):
                if index not in outcomes:
                    self._record(outcomes, DispatchOutcome(
                        index=index,
                        message=message,
                        status=OutcomeStatus.TRANSPORT_FAILED,
                        error=DispatchTimeoutError(
                            f"Batch deadline of {timeout}s exceeded"
                        ),
                    ))

    async def _worker(
        self,
        requests: Iterator[_BuiltRequest],
        outcomes: Dict[int, DispatchOutcome],
        unbuilt: Set[int],
        started: Set[int],
    ) -> None:
        # Workers share one generator; next() never awaits, so each item is
        # handed to exactly one worker.
        for index, message, request, build_error in requests:
            if build_error is not None:
                unbuilt.add(index)
                logger.warning(
                    "Cannot build APNS request",
                    extra={
                        "index": index,
                        "device_token": _mask_token(message.receiver.token),
                        "error": str(build_error),
                    }
                )
                outcome = DispatchOutcome(
                    index=index,
                    message=message,
                    status=OutcomeStatus.TRANSPORT_FAILED,
                    error=build_error,
                )
            else:
                started.add(index)
                outcome = await self._dispatch_one(index, message, request)

            self._record(outcomes, outcome)

    @staticmethod
    async def _cancel_workers(workers: Iterable[asyncio.Task]) -> None:
        workers = [worker for worker in workers if not worker.done()]
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def _dispatch_one(
        self,
        index: int,
        message: QueuedMessage,
        request: Request,
    ) -> DispatchOutcome:
        device_token = _mask_token(message.receiver.token)

        try:
            response = await self._sender.send(request)
        except HttpSenderError as e:
            logger.warning(
                "APNS transport failure",
                extra={"index": index, "device_token": device_token, "error": str(e)}
            )
            return DispatchOutcome(
                index=index,
                message=message,
                status=OutcomeStatus.TRANSPORT_FAILED,
                error=e,
            )
        except Exception as e:
            logger.error(
                "Unexpected error sending APNS request",
                extra={"index": index, "device_token": device_token, "error": str(e)},
                exc_info=True,
            )
            return DispatchOutcome(
                index=index,
                message=message,
                status=OutcomeStatus.TRANSPORT_FAILED,
                error=e,
            )

        return self._classify(index, message, response)

    # =========================================================================
    # Outcome router
    # =========================================================================

    def _classify(self, index: int, message: QueuedMessage, response: Response) -> DispatchOutcome:
        if response.status_code == 200 and not self._carries_rejection(response):
            logger.debug(
                "APNS notification delivered",
                extra={
                    "index": index,
                    "device_token": _mask_token(message.receiver.token),
                    "apns_id": response.apns_id,
                }
            )
            return DispatchOutcome(
                index=index,
                message=message,
                status=OutcomeStatus.DELIVERED,
                response=response,
            )

        error = self._create_rejection(response)

        logger.warning(
            "APNS rejected notification",
            extra={
                "index": index,
                "device_token": _mask_token(message.receiver.token),
                "status_code": response.status_code,
                "reason": error.reason,
                "error": str(error),
            }
        )

        if isinstance(error, ExpiredProviderTokenError):
            self._invalidate_credentials(index)

        return DispatchOutcome(
            index=index,
            message=message,
            status=OutcomeStatus.REJECTED,
            response=response,
            error=error,
        )

    def _invalidate_credentials(self, index: int) -> None:
        invalidate = getattr(self._authenticator, "invalidate", None)
        if invalidate is None:
            return
        try:
            invalidate()
        except Exception:
            logger.exception(
                "Cannot invalidate APNS provider token",
                extra={"index": index}
            )

    def _create_rejection(self, response: Response) -> SendNotificationError:
        try:
            return self._exception_factory.create(response)
        except Exception as e:
            logger.error(
                "Exception factory failed",
                extra={"status_code": response.status_code, "error": str(e)},
                exc_info=True,
            )
            return UndefinedError(str(e), status_code=response.status_code)

    @staticmethod
    def _carries_rejection(response: Response) -> bool:
        """A 200 body is normally empty; a JSON reason means APNS refused it."""
        if not response.content:
            return False
        try:
            body = json.loads(response.content)
        except (ValueError, UnicodeDecodeError):
            return False
        return isinstance(body, dict) and bool(body.get("reason"))

    def _record(self, outcomes: Dict[int, DispatchOutcome], outcome: DispatchOutcome) -> None:
        outcomes[outcome.index] = outcome
        if outcome.status != OutcomeStatus.DELIVERED:
            self._notify_listeners(RejectEvent.from_outcome(outcome))

    def _notify_listeners(self, event: RejectEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Reject listener failed",
                    extra={"channel": REJECT_EVENT, "index": event.index}
                )

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def close_connection(self) -> None:
        """
        Close the underlying HTTP/2 connection.

        Safe to call more than once. Not allowed while send() is running.
        """
        if self._state == DispatcherState.CLOSED:
            return
        if self._state == DispatcherState.DISPATCHING:
            raise DispatcherStateError("Cannot close the connection while a dispatch is in progress")

        await self._sender.close()
        self._state = DispatcherState.CLOSED
        logger.debug("APNS protocol closed")

    async def __aenter__(self) -> "HttpProtocol":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close_connection()
