"""
Protocol visitors: the last pass over a request before it is sent.

Each visitor copies one notification attribute into an APNS header.
VisitorChain runs them in order.
"""

from datetime import timezone
from typing import Iterable, List, Optional, Protocol

from apnpush.push.models import Notification, Request


class ProtocolVisitorProtocol(Protocol):
    def visit(self, notification: Notification, request: Request) -> Request: ...


class AddApnIdHeaderVisitor:
    """Set ``apns-id`` from the notification's apn_id."""

    def visit(self, notification: Notification, request: Request) -> Request:
        if notification.apn_id:
            return request.with_header("apns-id", notification.apn_id)
        return request


class AddPriorityHeaderVisitor:
    """Set ``apns-priority``."""

    def visit(self, notification: Notification, request: Request) -> Request:
        if notification.priority is not None:
            return request.with_header("apns-priority", str(notification.priority))
        return request


class AddExpirationHeaderVisitor:
    """Set ``apns-expiration`` as a UNIX timestamp.

    Naive datetimes are taken as UTC.
    """

    def visit(self, notification: Notification, request: Request) -> Request:
        expiration = notification.expiration
        if expiration is None:
            return request

        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)

        return request.with_header("apns-expiration", str(int(expiration.timestamp())))


class AddCollapseIdHeaderVisitor:
    """Set ``apns-collapse-id``."""

    def visit(self, notification: Notification, request: Request) -> Request:
        if notification.collapse_id:
            return request.with_header("apns-collapse-id", notification.collapse_id)
        return request


class AddPushTypeHeaderVisitor:
    """Set ``apns-push-type``.

    Without an explicit push type, notifications carrying only
    content-available are sent as background pushes.
    """

    def visit(self, notification: Notification, request: Request) -> Request:
        push_type = notification.push_type
        if push_type is None:
            payload = notification.payload
            if payload.content_available and payload.alert is None:
                push_type = "background"
            else:
                push_type = "alert"
        return request.with_header("apns-push-type", push_type)


class VisitorChain:
    """Run visitors in insertion order."""

    def __init__(self, visitors: Optional[Iterable[ProtocolVisitorProtocol]] = None):
        self._visitors: List[ProtocolVisitorProtocol] = list(visitors or [])

    def add(self, visitor: ProtocolVisitorProtocol) -> "VisitorChain":
        self._visitors.append(visitor)
        return self

    def __len__(self) -> int:
        return len(self._visitors)

    def visit(self, notification: Notification, request: Request) -> Request:
        for visitor in self._visitors:
            request = visitor.visit(notification, request)
        return request


def default_visitor_chain() -> VisitorChain:
    """Visitors for every header a Notification can carry."""
    return VisitorChain([
        AddApnIdHeaderVisitor(),
        AddPriorityHeaderVisitor(),
        AddExpirationHeaderVisitor(),
        AddCollapseIdHeaderVisitor(),
        AddPushTypeHeaderVisitor(),
    ])
