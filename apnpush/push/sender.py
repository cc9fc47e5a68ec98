"""
Sender: the caller-facing facade over a protocol.
"""

import logging
from typing import Any, Iterable, Optional, Union

from apnpush.push.models import DispatchReport, Notification, Receiver
from apnpush.push.protocol import HttpProtocol

logger = logging.getLogger(__name__)


class Sender:
    """
    Queue and send notifications through a protocol.

    Adds two conveniences over HttpProtocol: a default sandbox flag, and a
    default topic so that receivers can be given as plain device tokens.

    Usage:
        sender = Sender(protocol, sandbox=True, default_topic="com.example.app")
        sender.add_reject_listener(audit, "on_reject")
        report = await sender.send_to(["a1b2...", "c3d4..."], notification)
    """

    def __init__(
        self,
        protocol: HttpProtocol,
        sandbox: bool = False,
        default_topic: Optional[str] = None,
    ):
        self.protocol = protocol
        self.sandbox = sandbox
        self.default_topic = default_topic

    def _to_receiver(self, receiver: Union[Receiver, str]) -> Receiver:
        if isinstance(receiver, Receiver):
            return receiver
        if not self.default_topic:
            raise ValueError("A default topic is required to send to a bare device token")
        return Receiver(token=receiver, topic=self.default_topic)

    def add_reject_listener(self, target: Any, callback: Optional[str] = None) -> None:
        self.protocol.add_reject_listener(target, callback)

    def add_message(
        self,
        receiver: Union[Receiver, str],
        notification: Notification,
        sandbox: Optional[bool] = None,
    ) -> None:
        self.protocol.add_message(
            self._to_receiver(receiver),
            notification,
            self.sandbox if sandbox is None else sandbox,
        )

    async def send(self, timeout: Optional[float] = None) -> DispatchReport:
        return await self.protocol.send(timeout=timeout)

    async def send_to(
        self,
        receivers: Iterable[Union[Receiver, str]],
        notification: Notification,
        sandbox: Optional[bool] = None,
        timeout: Optional[float] = None,
    ) -> DispatchReport:
        """
        Send one notification to many receivers in a single batch.

        Args:
            receivers: Receivers or bare device tokens
            notification: Notification sent to every receiver
            sandbox: Override the default sandbox flag
            timeout: Optional batch deadline in seconds

        Returns:
            DispatchReport for the batch
        """
        for receiver in receivers:
            self.add_message(receiver, notification, sandbox)
        return await self.send(timeout=timeout)

    async def close(self) -> None:
        await self.protocol.close_connection()

    async def __aenter__(self) -> "Sender":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
