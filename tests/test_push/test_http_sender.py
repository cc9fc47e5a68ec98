"""
Tests for the httpx-based HTTP/2 sender.
"""

import httpx
import pytest

from apnpush.push.exceptions import HttpSenderError
from apnpush.push.http_sender import HttpSender
from apnpush.push.models import Request


@pytest.fixture
def apns_request():
    return Request(
        url="https://api.sandbox.push.apple.com/3/device/abcdef",
        content=b'{"aps":{"alert":"hi"}}',
        headers={"apns-topic": "com.example.app", "apns-priority": "10"},
    )


class TestHttpSender:
    """Tests for HttpSender."""

    @pytest.mark.asyncio
    async def test_posts_request(self, apns_request):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, headers={"apns-id": "abc-123"})

        sender = HttpSender(transport=httpx.MockTransport(handler))
        response = await sender.send(apns_request)
        await sender.close()

        assert response.status_code == 200
        assert response.apns_id == "abc-123"
        assert seen[0].method == "POST"
        assert str(seen[0].url) == apns_request.url
        assert seen[0].headers["apns-topic"] == "com.example.app"
        assert seen[0].content == apns_request.content

    @pytest.mark.asyncio
    async def test_error_body_returned(self, apns_request):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"reason": "BadDeviceToken"})

        async with HttpSender(transport=httpx.MockTransport(handler)) as sender:
            response = await sender.send(apns_request)

        assert response.status_code == 400
        assert b"BadDeviceToken" in response.content

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self, apns_request):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        sender = HttpSender(transport=httpx.MockTransport(handler))

        with pytest.raises(HttpSenderError) as exc_info:
            await sender.send(apns_request)
        await sender.close()

        assert "connection refused" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_open_and_close(self):
        sender = HttpSender(transport=httpx.MockTransport(lambda r: httpx.Response(200)))

        assert sender.is_open is False
        await sender.open()
        assert sender.is_open is True

        await sender.close()
        await sender.close()
        assert sender.is_open is False

    @pytest.mark.asyncio
    async def test_client_recreated_after_close(self, apns_request):
        sender = HttpSender(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        await sender.open()
        await sender.close()

        response = await sender.send(apns_request)
        await sender.close()

        assert response.status_code == 200
