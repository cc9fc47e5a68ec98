"""
APNS HTTP/2 push notifications.

This package contains:
- HttpProtocol - batched, concurrent dispatch with reject listeners
- Sender - caller-facing facade over a protocol
- Http20Builder - wires the default collaborators from settings
- Collaborators: PayloadEncoder, UriFactory, authenticators, visitors,
  ExceptionFactory and HttpSender
"""

from apnpush.push.authenticator import CertificateAuthenticator, JwtAuthenticator
from apnpush.push.builder import Http20Builder
from apnpush.push.encoder import PayloadEncoder
from apnpush.push.exception_factory import ExceptionFactory
from apnpush.push.http_sender import HttpSender
from apnpush.push.models import (
    Alert,
    DispatchOutcome,
    DispatchReport,
    Notification,
    OutcomeStatus,
    Payload,
    QueuedMessage,
    Receiver,
    RejectEvent,
    Request,
    Response,
)
from apnpush.push.protocol import DispatcherState, HttpProtocol
from apnpush.push.sender import Sender
from apnpush.push.uri_factory import UriFactory
from apnpush.push.visitor import (
    AddApnIdHeaderVisitor,
    AddCollapseIdHeaderVisitor,
    AddExpirationHeaderVisitor,
    AddPriorityHeaderVisitor,
    AddPushTypeHeaderVisitor,
    VisitorChain,
    default_visitor_chain,
)

__all__ = [
    # Dispatch
    "HttpProtocol",
    "DispatcherState",
    "Sender",
    "Http20Builder",
    # Collaborators
    "PayloadEncoder",
    "UriFactory",
    "JwtAuthenticator",
    "CertificateAuthenticator",
    "ExceptionFactory",
    "HttpSender",
    "VisitorChain",
    "default_visitor_chain",
    "AddApnIdHeaderVisitor",
    "AddCollapseIdHeaderVisitor",
    "AddExpirationHeaderVisitor",
    "AddPriorityHeaderVisitor",
    "AddPushTypeHeaderVisitor",
    # Models
    "Receiver",
    "Notification",
    "Payload",
    "Alert",
    "Request",
    "Response",
    "QueuedMessage",
    "OutcomeStatus",
    "DispatchOutcome",
    "DispatchReport",
    "RejectEvent",
]
