"""
Tests for notification and dispatch models.
"""

import pytest
from pydantic import ValidationError

from apnpush.push.models import (
    Alert,
    DispatchOutcome,
    DispatchReport,
    Notification,
    OutcomeStatus,
    Payload,
    QueuedMessage,
    Receiver,
    RejectEvent,
    Request,
    Response,
)

from tests.conftest import make_notification, make_receiver, make_token


class TestReceiver:
    """Tests for Receiver model."""

    def test_token_normalised_to_lowercase(self):
        receiver = Receiver(token="ABCDEF0123", topic="com.example.app")
        assert receiver.token == "abcdef0123"

    @pytest.mark.parametrize("token", ["", "not-hex", "ab cd"])
    def test_invalid_token(self, token):
        with pytest.raises(ValidationError):
            Receiver(token=token, topic="com.example.app")

    def test_topic_required(self):
        with pytest.raises(ValidationError):
            Receiver(token=make_token(1), topic="")

    def test_immutable(self):
        receiver = make_receiver(1)
        with pytest.raises(ValidationError):
            receiver.topic = "com.other.app"


class TestPayload:
    """Tests for Payload.to_apns_dict()."""

    def test_full_payload(self):
        payload = Payload(
            alert=Alert(
                title="Front Door: Person Detected",
                body="A person was detected at the front door",
                subtitle="Front Door Camera",
                loc_key="PERSON",
                loc_args=["Front Door"],
            ),
            badge=1,
            sound="default",
            mutable_content=True,
            category="SECURITY_ALERT",
            thread_id="camera-123",
            interruption_level="time-sensitive",
            relevance_score=0.5,
            custom_data={"event_id": "evt-123"},
        )

        result = payload.to_apns_dict()
        aps = result["aps"]

        assert aps["alert"]["title"] == "Front Door: Person Detected"
        assert aps["alert"]["subtitle"] == "Front Door Camera"
        assert aps["alert"]["loc-key"] == "PERSON"
        assert aps["alert"]["loc-args"] == ["Front Door"]
        assert aps["badge"] == 1
        assert aps["sound"] == "default"
        assert aps["mutable-content"] == 1
        assert aps["category"] == "SECURITY_ALERT"
        assert aps["thread-id"] == "camera-123"
        assert aps["interruption-level"] == "time-sensitive"
        assert aps["relevance-score"] == 0.5
        assert result["event_id"] == "evt-123"

    def test_string_alert(self):
        assert Payload(alert="Hello").to_apns_dict() == {"aps": {"alert": "Hello"}}

    def test_silent_payload(self):
        result = Payload(content_available=True).to_apns_dict()
        assert result == {"aps": {"content-available": 1}}

    def test_badge_zero_kept(self):
        assert Payload(badge=0).to_apns_dict()["aps"]["badge"] == 0

    def test_invalid_interruption_level(self):
        with pytest.raises(ValidationError):
            Payload(alert="x", interruption_level="loud")

    def test_reserved_aps_key(self):
        with pytest.raises(ValidationError):
            Payload(alert="x", custom_data={"aps": {}})


class TestNotification:
    """Tests for Notification header validation."""

    def test_invalid_apn_id(self):
        with pytest.raises(ValidationError):
            make_notification(apn_id="not-a-uuid")

    @pytest.mark.parametrize("priority", [1, 11])
    def test_invalid_priority(self, priority):
        with pytest.raises(ValidationError):
            make_notification(priority=priority)

    def test_collapse_id_limit(self):
        make_notification(collapse_id="x" * 64)
        with pytest.raises(ValidationError):
            make_notification(collapse_id="x" * 65)

    def test_invalid_push_type(self):
        with pytest.raises(ValidationError):
            make_notification(push_type="telegram")


class TestRequest:
    """Tests for the immutable outbound request."""

    def test_with_header_returns_copy(self):
        original = Request(url="https://example.com", content=b"{}")

        updated = original.with_header("APNS-Topic", "com.example.app")

        assert original.headers == {}
        assert updated.headers == {"apns-topic": "com.example.app"}

    def test_overwrite_keeps_position(self):
        request = Request(url="u", content=b"").with_headers({"a": "1", "b": "2"})

        request = request.with_header("a", "3")

        assert list(request.headers.items()) == [("a", "3"), ("b", "2")]


class TestDispatchReport:
    """Tests for aggregated dispatch results."""

    def _outcome(self, index, status):
        message = QueuedMessage(make_receiver(index), make_notification())
        return DispatchOutcome(index=index, message=message, status=status)

    def test_views(self):
        report = DispatchReport(outcomes=[
            self._outcome(0, OutcomeStatus.DELIVERED),
            self._outcome(1, OutcomeStatus.REJECTED),
            self._outcome(2, OutcomeStatus.TRANSPORT_FAILED),
        ])

        assert report.total == 3
        assert [o.index for o in report.delivered] == [0]
        assert [o.index for o in report.rejected] == [1]
        assert [o.index for o in report.failed] == [2]
        assert report.all_delivered is False

    def test_outcome_apns_id(self):
        outcome = self._outcome(0, OutcomeStatus.DELIVERED)
        assert outcome.apns_id is None

        outcome.response = Response(status_code=200, headers={"apns-id": "abc"})
        assert outcome.apns_id == "abc"

    def test_reject_event_from_outcome(self):
        outcome = self._outcome(4, OutcomeStatus.REJECTED)
        outcome.error = ValueError("x")

        event = RejectEvent.from_outcome(outcome)

        assert event.index == 4
        assert event.message is outcome.message
        assert event.error is outcome.error
