"""
Device URI factory.
"""

from typing import Protocol

from apnpush.push.constants import (
    APNS_DEVICE_PATH,
    APNS_PRODUCTION_HOST,
    APNS_SANDBOX_HOST,
)
from apnpush.push.exceptions import UriBuildError


class UriFactoryProtocol(Protocol):
    def create(self, token: str, sandbox: bool) -> str: ...


class UriFactory:
    """Build ``https://api[.sandbox].push.apple.com/3/device/<token>``."""

    def create(self, token: str, sandbox: bool) -> str:
        if not token:
            raise UriBuildError("Device token is required to build the APNS URI")

        host = APNS_SANDBOX_HOST if sandbox else APNS_PRODUCTION_HOST
        return f"https://{host}{APNS_DEVICE_PATH.format(device_token=token)}"
