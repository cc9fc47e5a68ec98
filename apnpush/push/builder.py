"""
Assemble an HTTP/2 protocol or sender from settings.
"""

import logging
from typing import Optional

from apnpush.core.config import Settings, get_settings
from apnpush.push.authenticator import CertificateAuthenticator, JwtAuthenticator
from apnpush.push.encoder import PayloadEncoder, PayloadEncoderProtocol
from apnpush.push.exception_factory import ExceptionFactory, ExceptionFactoryProtocol
from apnpush.push.exceptions import ConfigurationError
from apnpush.push.http_sender import HttpSender
from apnpush.push.protocol import HttpProtocol
from apnpush.push.sender import Sender
from apnpush.push.uri_factory import UriFactory, UriFactoryProtocol
from apnpush.push.visitor import ProtocolVisitorProtocol, VisitorChain, default_visitor_chain

logger = logging.getLogger(__name__)


class Http20Builder:
    """
    Build an HttpProtocol with default collaborators.

    Token authentication is preferred when both token and certificate
    settings are present.

    Usage:
        sender = Http20Builder.from_settings().build_sender()
        sender.add_message(receiver, notification)
        await sender.send()
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._payload_encoder: PayloadEncoderProtocol = PayloadEncoder()
        self._uri_factory: UriFactoryProtocol = UriFactory()
        self._exception_factory: ExceptionFactoryProtocol = ExceptionFactory()
        self._visitor: VisitorChain = default_visitor_chain()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Http20Builder":
        return cls(settings or get_settings())

    def with_payload_encoder(self, encoder: PayloadEncoderProtocol) -> "Http20Builder":
        self._payload_encoder = encoder
        return self

    def with_uri_factory(self, uri_factory: UriFactoryProtocol) -> "Http20Builder":
        self._uri_factory = uri_factory
        return self

    def with_exception_factory(self, factory: ExceptionFactoryProtocol) -> "Http20Builder":
        self._exception_factory = factory
        return self

    def add_visitor(self, visitor: ProtocolVisitorProtocol) -> "Http20Builder":
        """Append a visitor after the default header visitors."""
        self._visitor.add(visitor)
        return self

    def build_protocol(self) -> HttpProtocol:
        """
        Build a protocol from the configured settings.

        Raises:
            ConfigurationError: Neither token nor certificate auth is configured
            AuthenticationError: The key or certificate cannot be loaded
        """
        settings = self.settings
        verify = True

        if settings.apns_token_auth_ready:
            authenticator = JwtAuthenticator(
                key_id=settings.APNS_KEY_ID,
                team_id=settings.APNS_TEAM_ID,
                key_file=settings.APNS_KEY_FILE,
            )
            # Fail on a broken key now rather than once per message
            authenticator.generate_token()
            auth_mode = "token"
        elif settings.apns_certificate_auth_ready:
            authenticator = CertificateAuthenticator(
                settings.APNS_CERTIFICATE_FILE,
                passphrase=settings.APNS_CERTIFICATE_PASSPHRASE,
            )
            verify = authenticator.ssl_context()
            auth_mode = "certificate"
        else:
            raise ConfigurationError(
                "APNS authentication is not configured: set APNS_KEY_FILE, "
                "APNS_KEY_ID and APNS_TEAM_ID, or APNS_CERTIFICATE_FILE"
            )

        http_sender = HttpSender(
            timeout=settings.APNS_TIMEOUT_SECONDS,
            connect_timeout=settings.APNS_CONNECT_TIMEOUT_SECONDS,
            max_connections=settings.APNS_CONCURRENCY,
            verify=verify,
        )

        logger.info(
            "APNS protocol built",
            extra={
                "auth_mode": auth_mode,
                "sandbox": settings.APNS_USE_SANDBOX,
                "concurrency": settings.APNS_CONCURRENCY,
            }
        )

        return HttpProtocol(
            authenticator=authenticator,
            http_sender=http_sender,
            payload_encoder=self._payload_encoder,
            uri_factory=self._uri_factory,
            visitor=self._visitor,
            exception_factory=self._exception_factory,
            concurrency=settings.APNS_CONCURRENCY,
        )

    def build_sender(self) -> Sender:
        return Sender(
            self.build_protocol(),
            sandbox=self.settings.APNS_USE_SANDBOX,
            default_topic=self.settings.APNS_BUNDLE_ID,
        )
