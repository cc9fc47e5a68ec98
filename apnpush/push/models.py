"""
Models for APNS notifications and batched dispatch.

Pydantic models describe what the caller hands in (receivers, notifications,
payloads). Dataclasses describe what flows through the dispatch engine
(requests, responses, outcomes).
"""

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from apnpush.push.constants import (
    APNS_COLLAPSE_ID_MAX_BYTES,
    APNS_PRIORITY_IMMEDIATE,
    APNS_PRIORITY_POWER_CONSIDERATION,
    APNS_PUSH_TYPES,
)

HEX_TOKEN_PATTERN = re.compile(r"[0-9a-fA-F]+")


class Receiver(BaseModel):
    """Target device of a notification.

    Attributes:
        token: APNS device token (hex string)
        topic: App bundle identifier (e.g., com.example.app)
    """

    model_config = ConfigDict(frozen=True)

    token: str = Field(..., min_length=1, description="APNS device token")
    topic: str = Field(..., min_length=1, description="App bundle identifier")

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Validate that the device token is a hex string."""
        if not HEX_TOKEN_PATTERN.fullmatch(v):
            raise ValueError("Device token must be a hex string")
        return v.lower()


class Alert(BaseModel):
    """APNS alert payload structure."""

    model_config = ConfigDict(frozen=True)

    title: Optional[str] = Field(None, description="Alert title")
    body: Optional[str] = Field(None, description="Alert body text")
    subtitle: Optional[str] = Field(None, description="Alert subtitle")
    title_loc_key: Optional[str] = Field(None, description="Localization key for title")
    title_loc_args: Optional[List[str]] = Field(None, description="Localization args for title")
    loc_key: Optional[str] = Field(None, description="Localization key for body")
    loc_args: Optional[List[str]] = Field(None, description="Localization args for body")
    action_loc_key: Optional[str] = Field(None, description="Localization key for action button")
    launch_image: Optional[str] = Field(None, description="Launch image filename")

    def to_apns_dict(self) -> Dict[str, Any]:
        alert_dict: Dict[str, Any] = {}
        if self.title is not None:
            alert_dict["title"] = self.title
        if self.body is not None:
            alert_dict["body"] = self.body
        if self.subtitle:
            alert_dict["subtitle"] = self.subtitle
        if self.title_loc_key:
            alert_dict["title-loc-key"] = self.title_loc_key
        if self.title_loc_args:
            alert_dict["title-loc-args"] = self.title_loc_args
        if self.loc_key:
            alert_dict["loc-key"] = self.loc_key
        if self.loc_args:
            alert_dict["loc-args"] = self.loc_args
        if self.action_loc_key:
            alert_dict["action-loc-key"] = self.action_loc_key
        if self.launch_image:
            alert_dict["launch-image"] = self.launch_image
        return alert_dict


class Payload(BaseModel):
    """APNS notification payload.

    See: https://developer.apple.com/documentation/usernotifications/generating-a-remote-notification

    Attributes:
        alert: Alert text or structured alert (omit for silent notifications)
        badge: App icon badge number
        sound: Sound filename or "default"
        mutable_content: Enable Notification Service Extension
        content_available: Background update flag (silent notification)
        category: Notification category for action buttons
        thread_id: Thread identifier for grouping
        target_content_id: Window to bring to foreground
        interruption_level: iOS 15+ interruption level
        relevance_score: iOS 15+ relevance score (0.0-1.0)
        custom_data: Additional data placed next to "aps"
    """

    model_config = ConfigDict(frozen=True)

    alert: Optional[Union[str, Alert]] = None
    badge: Optional[int] = Field(None, ge=0, description="Badge number")
    sound: Optional[str] = Field(None, description="Sound name or 'default'")
    mutable_content: bool = Field(default=False, description="Enable Service Extension")
    content_available: bool = Field(default=False, description="Background update")
    category: Optional[str] = Field(None, description="Notification category")
    thread_id: Optional[str] = Field(None, description="Thread ID for grouping")
    target_content_id: Optional[str] = Field(None, description="Target content ID")
    interruption_level: Optional[str] = Field(
        None,
        description="Interruption level: passive, active, time-sensitive, critical"
    )
    relevance_score: Optional[float] = Field(
        None,
        ge=0.0,
        le=1.0,
        description="Relevance score for notification summary"
    )
    custom_data: Dict[str, Any] = Field(default_factory=dict, description="Custom payload data")

    @field_validator("interruption_level")
    @classmethod
    def validate_interruption_level(cls, v: Optional[str]) -> Optional[str]:
        """Validate interruption level is one of the allowed values."""
        if v is not None:
            allowed = {"passive", "active", "time-sensitive", "critical"}
            if v not in allowed:
                raise ValueError(f"Must be one of: {allowed}")
        return v

    @field_validator("custom_data")
    @classmethod
    def validate_custom_data(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """The "aps" key is reserved for Apple."""
        if "aps" in v:
            raise ValueError("custom_data must not contain the reserved 'aps' key")
        return v

    def to_apns_dict(self) -> Dict[str, Any]:
        """Convert to APNS payload dictionary format.

        Returns:
            Dictionary ready for JSON serialization to APNS.
        """
        aps: Dict[str, Any] = {}

        if isinstance(self.alert, Alert):
            aps["alert"] = self.alert.to_apns_dict()
        elif self.alert is not None:
            aps["alert"] = self.alert

        if self.badge is not None:
            aps["badge"] = self.badge
        if self.sound:
            aps["sound"] = self.sound
        if self.mutable_content:
            aps["mutable-content"] = 1
        if self.content_available:
            aps["content-available"] = 1
        if self.category:
            aps["category"] = self.category
        if self.thread_id:
            aps["thread-id"] = self.thread_id
        if self.target_content_id:
            aps["target-content-id"] = self.target_content_id
        if self.interruption_level:
            aps["interruption-level"] = self.interruption_level
        if self.relevance_score is not None:
            aps["relevance-score"] = self.relevance_score

        payload: Dict[str, Any] = {"aps": aps}
        payload.update(self.custom_data)
        return payload


class Notification(BaseModel):
    """A payload plus the per-notification APNS headers.

    Attributes:
        payload: Notification payload
        apn_id: Canonical UUID sent as apns-id
        priority: 10 (immediate) or 5 (power consideration)
        expiration: When APNS may stop trying to deliver; None means once only
        collapse_id: Identifier for merging notifications (max 64 bytes)
        push_type: apns-push-type value (alert, background, voip, ...)
    """

    model_config = ConfigDict(frozen=True)

    payload: Payload
    apn_id: Optional[str] = None
    priority: Optional[int] = None
    expiration: Optional[datetime] = None
    collapse_id: Optional[str] = None
    push_type: Optional[str] = None

    @field_validator("apn_id")
    @classmethod
    def validate_apn_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            return str(uuid.UUID(v))
        except ValueError:
            raise ValueError("apn_id must be a canonical UUID")

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: Optional[int]) -> Optional[int]:
        allowed = {APNS_PRIORITY_IMMEDIATE, APNS_PRIORITY_POWER_CONSIDERATION}
        if v is not None and v not in allowed:
            raise ValueError(f"Priority must be one of: {allowed}")
        return v

    @field_validator("collapse_id")
    @classmethod
    def validate_collapse_id(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v.encode("utf-8")) > APNS_COLLAPSE_ID_MAX_BYTES:
            raise ValueError(
                f"collapse_id must not exceed {APNS_COLLAPSE_ID_MAX_BYTES} bytes"
            )
        return v

    @field_validator("push_type")
    @classmethod
    def validate_push_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in APNS_PUSH_TYPES:
            raise ValueError(f"Push type must be one of: {sorted(APNS_PUSH_TYPES)}")
        return v


@dataclass(frozen=True)
class Request:
    """Outbound HTTP request.

    Header order is kept as inserted. Every ``with_*`` call returns a new
    request; a request is never changed in place.
    """

    url: str
    content: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    def with_header(self, name: str, value: str) -> "Request":
        headers = dict(self.headers)
        headers[name.lower()] = value
        return replace(self, headers=headers)

    def with_headers(self, headers: Mapping[str, str]) -> "Request":
        merged = dict(self.headers)
        for name, value in headers.items():
            merged[name.lower()] = value
        return replace(self, headers=merged)


@dataclass(frozen=True)
class Response:
    """HTTP response as seen by the exception factory."""

    status_code: int
    content: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def apns_id(self) -> Optional[str]:
        return self.headers.get("apns-id")


@dataclass(frozen=True)
class QueuedMessage:
    """A message waiting in the protocol queue."""

    receiver: Receiver
    notification: Notification
    sandbox: bool = False


class OutcomeStatus(str, Enum):
    """Terminal state of one queued message."""

    DELIVERED = "delivered"
    REJECTED = "rejected"
    TRANSPORT_FAILED = "transport_failed"


@dataclass
class DispatchOutcome:
    """Result of dispatching one queued message.

    Attributes:
        index: Position of the message in the dispatched batch
        message: The originating queued message
        status: Delivered, rejected or transport failed
        response: APNS response, if one was received
        error: Typed rejection, build error or transport error
        timestamp: When the outcome was recorded
    """

    index: int
    message: QueuedMessage
    status: OutcomeStatus
    response: Optional[Response] = None
    error: Optional[Exception] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def delivered(self) -> bool:
        return self.status == OutcomeStatus.DELIVERED

    @property
    def apns_id(self) -> Optional[str]:
        return self.response.apns_id if self.response is not None else None


@dataclass(frozen=True)
class RejectEvent:
    """Event passed to reject listeners."""

    index: int
    message: QueuedMessage
    status: OutcomeStatus
    response: Optional[Response]
    error: Optional[Exception]

    @classmethod
    def from_outcome(cls, outcome: DispatchOutcome) -> "RejectEvent":
        return cls(
            index=outcome.index,
            message=outcome.message,
            status=outcome.status,
            response=outcome.response,
            error=outcome.error,
        )


@dataclass
class DispatchReport:
    """Aggregated result of one send() call.

    Attributes:
        outcomes: One outcome per dispatched message, ordered by index
        duration_ms: Total dispatch duration in milliseconds
        timestamp: When dispatch finished
    """

    outcomes: List[DispatchOutcome] = field(default_factory=list)
    duration_ms: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def delivered(self) -> List[DispatchOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.DELIVERED]

    @property
    def rejected(self) -> List[DispatchOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.REJECTED]

    @property
    def failed(self) -> List[DispatchOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.TRANSPORT_FAILED]

    @property
    def all_delivered(self) -> bool:
        """True if every dispatched message was delivered."""
        return all(o.delivered for o in self.outcomes)
