"""
apnpush: batched Apple Push Notification service client over HTTP/2.
"""

from apnpush.push import (
    Alert,
    DispatchReport,
    Http20Builder,
    HttpProtocol,
    Notification,
    OutcomeStatus,
    Payload,
    Receiver,
    RejectEvent,
    Sender,
)

__version__ = "1.0.0"

__all__ = [
    "Alert",
    "DispatchReport",
    "Http20Builder",
    "HttpProtocol",
    "Notification",
    "OutcomeStatus",
    "Payload",
    "Receiver",
    "RejectEvent",
    "Sender",
]
