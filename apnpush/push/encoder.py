"""
Payload encoder: turns a Payload into the JSON body sent to APNS.
"""

import json
import logging
from typing import Protocol

from apnpush.push.exceptions import PayloadEncodingError
from apnpush.push.models import Payload

logger = logging.getLogger(__name__)


class PayloadEncoderProtocol(Protocol):
    def encode(self, payload: Payload) -> bytes: ...


class PayloadEncoder:
    """Encode payloads as compact UTF-8 JSON.

    Non-ASCII text is written as-is rather than escaped, which keeps the
    body within Apple's size limit for longer localized alerts.
    """

    def encode(self, payload: Payload) -> bytes:
        try:
            body = json.dumps(
                payload.to_apns_dict(),
                ensure_ascii=False,
                separators=(",", ":"),
                allow_nan=False,
            )
        except (TypeError, ValueError) as e:
            logger.debug("Payload encoding failed", extra={"error": str(e)})
            raise PayloadEncodingError(f"Cannot encode payload: {e}") from e

        return body.encode("utf-8")
