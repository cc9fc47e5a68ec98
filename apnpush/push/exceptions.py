"""
Exception hierarchy for APNS dispatch.

Build, auth and transport errors describe what went wrong on our side of
the connection. SendNotificationError subclasses describe why APNS refused a
notification; one class per APNS reason code.
"""

from datetime import datetime
from typing import Optional

from apnpush.push.constants import APNS_ERROR_CODES


class ApnPushError(Exception):
    """Base class for all apnpush errors."""


class ConfigurationError(ApnPushError):
    """Settings are incomplete or inconsistent."""


# =============================================================================
# Request build errors
# =============================================================================


class PayloadEncodingError(ApnPushError):
    """The payload could not be encoded to JSON."""


class UriBuildError(ApnPushError):
    """The device URI could not be built."""


class AuthenticationError(ApnPushError):
    """Credentials are missing, unreadable or invalid."""


class RequestBuildError(ApnPushError):
    """A queued message could not be turned into a request.

    The underlying encoder, URI or authentication error is chained as
    ``__cause__``.
    """


# =============================================================================
# Transport and dispatcher errors
# =============================================================================


class HttpSenderError(ApnPushError):
    """The HTTP request failed before a response was received."""


class DispatchTimeoutError(ApnPushError):
    """The batch deadline expired before the message completed."""


class DispatcherStateError(ApnPushError):
    """The operation is not allowed in the current dispatcher state."""


class DispatcherClosedError(DispatcherStateError):
    """The connection has been closed."""


# =============================================================================
# APNS rejections
# =============================================================================


class SendNotificationError(ApnPushError):
    """APNS rejected the notification.

    Attributes:
        reason: APNS reason code (e.g. "BadDeviceToken")
        status_code: HTTP status returned by APNS
    """

    reason: str = ""

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        if reason is not None:
            self.reason = reason
        if message is None:
            message = APNS_ERROR_CODES.get(self.reason, "APNS rejected the notification")
        super().__init__(message)
        self.status_code = status_code


class BadCollapseIdError(SendNotificationError):
    reason = "BadCollapseId"


class BadDeviceTokenError(SendNotificationError):
    reason = "BadDeviceToken"


class BadExpirationDateError(SendNotificationError):
    reason = "BadExpirationDate"


class BadMessageIdError(SendNotificationError):
    reason = "BadMessageId"


class BadPriorityError(SendNotificationError):
    reason = "BadPriority"


class BadTopicError(SendNotificationError):
    reason = "BadTopic"


class DeviceTokenNotForTopicError(SendNotificationError):
    reason = "DeviceTokenNotForTopic"


class DuplicateHeadersError(SendNotificationError):
    reason = "DuplicateHeaders"


class IdleTimeoutError(SendNotificationError):
    reason = "IdleTimeout"


class InvalidPushTypeError(SendNotificationError):
    reason = "InvalidPushType"


class MissingDeviceTokenError(SendNotificationError):
    reason = "MissingDeviceToken"


class MissingTopicError(SendNotificationError):
    reason = "MissingTopic"


class PayloadEmptyError(SendNotificationError):
    reason = "PayloadEmpty"


class TopicDisallowedError(SendNotificationError):
    reason = "TopicDisallowed"


class BadCertificateError(SendNotificationError):
    reason = "BadCertificate"


class BadCertificateEnvironmentError(SendNotificationError):
    reason = "BadCertificateEnvironment"


class ExpiredProviderTokenError(SendNotificationError):
    reason = "ExpiredProviderToken"


class ForbiddenError(SendNotificationError):
    reason = "Forbidden"


class InvalidProviderTokenError(SendNotificationError):
    reason = "InvalidProviderToken"


class MissingProviderTokenError(SendNotificationError):
    reason = "MissingProviderToken"


class BadPathError(SendNotificationError):
    reason = "BadPath"


class MethodNotAllowedError(SendNotificationError):
    reason = "MethodNotAllowed"


class ExpiredTokenError(SendNotificationError):
    reason = "ExpiredToken"


class UnregisteredError(SendNotificationError):
    """The device token is no longer active (HTTP 410).

    Attributes:
        last_confirmed: When APNS last confirmed the token was invalid
    """

    reason = "Unregistered"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
        last_confirmed: Optional[datetime] = None,
    ):
        super().__init__(message, status_code=status_code, reason=reason)
        self.last_confirmed = last_confirmed


class PayloadTooLargeError(SendNotificationError):
    reason = "PayloadTooLarge"


class TooManyProviderTokenUpdatesError(SendNotificationError):
    reason = "TooManyProviderTokenUpdates"


class TooManyRequestsError(SendNotificationError):
    reason = "TooManyRequests"


class InternalServerError(SendNotificationError):
    reason = "InternalServerError"


class ServiceUnavailableError(SendNotificationError):
    reason = "ServiceUnavailable"


class ShutdownError(SendNotificationError):
    reason = "Shutdown"


class UndefinedError(SendNotificationError):
    """APNS returned a reason this library does not know."""


class MissingContentInResponseError(SendNotificationError):
    """APNS returned an error status with an empty body."""

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(
            message or "Missing content in response",
            status_code=status_code,
        )


class InvalidResponseError(SendNotificationError):
    """The error body was not valid JSON or had no reason."""


REASON_EXCEPTIONS = {
    cls.reason: cls
    for cls in (
        BadCollapseIdError,
        BadDeviceTokenError,
        BadExpirationDateError,
        BadMessageIdError,
        BadPriorityError,
        BadTopicError,
        DeviceTokenNotForTopicError,
        DuplicateHeadersError,
        IdleTimeoutError,
        InvalidPushTypeError,
        MissingDeviceTokenError,
        MissingTopicError,
        PayloadEmptyError,
        TopicDisallowedError,
        BadCertificateError,
        BadCertificateEnvironmentError,
        ExpiredProviderTokenError,
        ForbiddenError,
        InvalidProviderTokenError,
        MissingProviderTokenError,
        BadPathError,
        MethodNotAllowedError,
        ExpiredTokenError,
        UnregisteredError,
        PayloadTooLargeError,
        TooManyProviderTokenUpdatesError,
        TooManyRequestsError,
        InternalServerError,
        ServiceUnavailableError,
        ShutdownError,
    )
}
