"""
Authenticators for APNS requests.

Two modes are supported:
- Token-based authentication (JWT signed with a .p8 key, ES256)
- Certificate-based authentication (TLS client certificate)
"""

import logging
import ssl
import time
from pathlib import Path
from typing import Optional, Protocol, Union

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from apnpush.push.constants import (
    JWT_ALGORITHM,
    JWT_REFRESH_BUFFER_SECONDS,
    JWT_TOKEN_LIFETIME_SECONDS,
)
from apnpush.push.exceptions import AuthenticationError
from apnpush.push.models import Request

logger = logging.getLogger(__name__)


class AuthenticatorProtocol(Protocol):
    def authenticate(self, request: Request) -> Request: ...


class JwtAuthenticator:
    """
    Sign requests with a provider authentication token.

    The JWT is signed with ES256 using the .p8 private key and cached until
    shortly before it expires. APNS rejects tokens refreshed more often than
    every 20 minutes, so the cache must be shared by every request of a batch.

    Usage:
        authenticator = JwtAuthenticator(
            key_id="XXXXXXXXXX",
            team_id="YYYYYYYYYY",
            key_file="path/to/AuthKey.p8",
        )
        request = authenticator.authenticate(request)

    Attributes:
        key_id: 10-character key identifier
        team_id: 10-character team identifier
    """

    def __init__(
        self,
        key_id: str,
        team_id: str,
        key_file: Optional[Union[str, Path]] = None,
        key_content: Optional[bytes] = None,
        token_lifetime: int = JWT_TOKEN_LIFETIME_SECONDS,
    ):
        if key_file is None and key_content is None:
            raise AuthenticationError("Either key_file or key_content is required")

        self.key_id = key_id
        self.team_id = team_id
        self._key_file = Path(key_file) if key_file is not None else None
        self._key_content = key_content
        self._token_lifetime = token_lifetime

        # Private key (lazy loaded)
        self._private_key: Optional[ec.EllipticCurvePrivateKey] = None

        # JWT caching
        self._jwt_token: Optional[str] = None
        self._jwt_expires_at: float = 0

    def _load_private_key(self) -> ec.EllipticCurvePrivateKey:
        """Load private key from .p8 file or in-memory content."""
        if self._private_key is not None:
            return self._private_key

        key_data = self._key_content
        if key_data is None:
            if not self._key_file.exists():
                raise AuthenticationError(f"APNS key file not found: {self._key_file}")
            key_data = self._key_file.read_bytes()

        try:
            private_key = serialization.load_pem_private_key(key_data, password=None)
        except (ValueError, TypeError) as e:
            raise AuthenticationError(f"Cannot load APNS private key: {e}") from e

        if not isinstance(private_key, ec.EllipticCurvePrivateKey):
            raise AuthenticationError("APNS key must be an EC private key (ES256)")

        self._private_key = private_key
        logger.debug("Loaded APNS private key", extra={"key_id": self.key_id})
        return self._private_key

    def generate_token(self) -> str:
        """
        Return a JWT for the authorization header.

        Returns:
            Cached JWT if still valid, otherwise a freshly signed one
        """
        now = time.time()

        if self._jwt_token and self._jwt_expires_at > now + JWT_REFRESH_BUFFER_SECONDS:
            return self._jwt_token

        private_key = self._load_private_key()

        try:
            self._jwt_token = jwt.encode(
                {"iss": self.team_id, "iat": int(now)},
                private_key,
                algorithm=JWT_ALGORITHM,
                headers={"kid": self.key_id},
            )
        except jwt.PyJWTError as e:
            raise AuthenticationError(f"Cannot sign APNS provider token: {e}") from e

        self._jwt_expires_at = now + self._token_lifetime

        logger.debug(
            "Generated new APNS JWT",
            extra={
                "team_id": self.team_id,
                "key_id": self.key_id,
                "expires_in": self._token_lifetime,
            }
        )

        return self._jwt_token

    def invalidate(self) -> None:
        """Drop the cached token so the next request signs a new one."""
        self._jwt_token = None
        self._jwt_expires_at = 0

    def authenticate(self, request: Request) -> Request:
        return request.with_header("authorization", f"bearer {self.generate_token()}")


class CertificateAuthenticator:
    """
    Certificate-based authentication.

    The certificate is presented during the TLS handshake, so requests pass
    through unchanged. The HTTP sender is built with ``ssl_context()``.
    """

    def __init__(self, certificate_path: Union[str, Path], passphrase: Optional[str] = None):
        self.certificate_path = Path(certificate_path)
        self.passphrase = passphrase

        if not self.certificate_path.exists():
            raise AuthenticationError(
                f"APNS certificate file not found: {self.certificate_path}"
            )

    def ssl_context(self) -> ssl.SSLContext:
        """TLS context that presents the client certificate."""
        context = ssl.create_default_context()
        try:
            context.load_cert_chain(
                str(self.certificate_path),
                password=self.passphrase,
            )
        except (ssl.SSLError, OSError) as e:
            raise AuthenticationError(f"Cannot load APNS certificate: {e}") from e
        return context

    def authenticate(self, request: Request) -> Request:
        return request
