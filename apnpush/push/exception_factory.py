"""
Map APNS error responses to typed exceptions.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from apnpush.push.exceptions import (
    REASON_EXCEPTIONS,
    InvalidResponseError,
    MissingContentInResponseError,
    SendNotificationError,
    UndefinedError,
    UnregisteredError,
)
from apnpush.push.models import Response

logger = logging.getLogger(__name__)


class ExceptionFactoryProtocol(Protocol):
    def create(self, response: Response) -> SendNotificationError: ...


class ExceptionFactory:
    """
    Build a SendNotificationError from an APNS response.

    The factory never raises: malformed bodies are described by
    MissingContentInResponseError or InvalidResponseError instead.
    """

    def create(self, response: Response) -> SendNotificationError:
        status_code = response.status_code

        if not response.content:
            return MissingContentInResponseError(status_code=status_code)

        try:
            body = json.loads(response.content)
        except (ValueError, UnicodeDecodeError) as e:
            return InvalidResponseError(
                f"Cannot decode APNS response body: {e}",
                status_code=status_code,
            )

        if not isinstance(body, dict) or not body.get("reason"):
            return InvalidResponseError(
                "APNS response body has no reason",
                status_code=status_code,
            )

        reason = str(body["reason"])
        exception_class = REASON_EXCEPTIONS.get(reason)

        if exception_class is None:
            logger.debug("Unknown APNS reason", extra={"reason": reason})
            return UndefinedError(
                f"Undefined APNS error: {reason}",
                status_code=status_code,
                reason=reason,
            )

        if exception_class is UnregisteredError:
            return UnregisteredError(
                status_code=status_code,
                last_confirmed=self._parse_timestamp(body.get("timestamp")),
            )

        return exception_class(status_code=status_code)

    @staticmethod
    def _parse_timestamp(value) -> Optional[datetime]:
        """APNS reports milliseconds since the epoch."""
        if value is None:
            return None
        try:
            return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return None
