"""Alert fan-out tests."""

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from safecircle.core.config import settings
from safecircle.core.result import Err, ErrorCode, Ok
from safecircle.core.windows import ensure_utc
from safecircle.models import CircleMember, MessageLog, WebLinkAccess
from safecircle.services import alert_dispatcher
from safecircle.services.alert_dispatcher import dispatch_alert
from safecircle.services.sms_transport import SendResult, SmsTransport

NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def circle(make_user, make_journey, make_member):
    """A user on a journey with three eligible members and three that must be skipped."""
    user = make_user("2348012345678", first_name="Ada")
    journey = make_journey(user, destination_name="Yaba Market")
    eligible = [
        make_member(user, "Bola", "2348100000001"),
        make_member(user, "Chidi", "2348100000002"),
        make_member(user, "Dayo", "2348100000003"),
    ]
    make_member(user, "Unverified", "2348100000004", verified=False)
    make_member(user, "Inactive", "2348100000005", active=False)
    make_member(user, "NoSms", "2348100000006", receive_sms=False)
    return user, journey, eligible


def _dispatch(db, transport, user, journey, message_type="emergency", emergency_id=None):
    return asyncio.run(
        dispatch_alert(
            db,
            transport,
            user_id=user.id,
            journey_id=journey.id,
            emergency_id=emergency_id,
            message_type=message_type,
            now=NOW,
        )
    )


def _counts(db):
    db.expire_all()
    return {m.contact_name: m.total_alerts_received for m in db.execute(select(CircleMember)).scalars()}


def test_all_recipients_alerted(db, transport, circle):
    user, journey, eligible = circle

    result = _dispatch(db, transport, user, journey)

    assert isinstance(result, Ok)
    report = result.value
    assert report.success is True
    assert report.message == "SMS sent successfully"
    assert (report.sent_count, report.total_count) == (3, 3)
    assert report.failed_recipients == []

    assert sorted(to for to, _ in transport.sent) == sorted(m.contact_phone for m in eligible)
    tokens = {link.web_link_token for link in db.execute(select(WebLinkAccess)).scalars()}
    assert len(tokens) == 3
    for _, text in transport.sent:
        assert "Ada has triggered an EMERGENCY alert" in text
        assert any(f"{settings.public_base_url}/webaccess/{token}" in text for token in tokens)

    logs = db.execute(select(MessageLog)).scalars().all()
    assert len(logs) == 3
    assert {log.delivery_status for log in logs} == {"sent"}
    assert {log.web_link_token for log in logs} == tokens

    counts = _counts(db)
    assert counts == {"Bola": 1, "Chidi": 1, "Dayo": 1, "Unverified": 0, "Inactive": 0, "NoSms": 0}
    bola = db.execute(select(CircleMember).where(CircleMember.contact_name == "Bola")).scalar_one()
    assert ensure_utc(bola.last_alert_at) == NOW


def test_each_recipient_gets_its_own_link(db, transport, circle):
    user, journey, _ = circle

    _dispatch(db, transport, user, journey, message_type="journey_start")

    for log in db.execute(select(MessageLog)).scalars():
        assert log.web_link.endswith(log.web_link_token)
        assert log.web_link in log.message_text
        assert log.to_name in log.message_text
        assert "Yaba Market" in log.message_text


def test_partial_failure_reports_and_records_everyone(db, transport, circle):
    user, journey, eligible = circle
    transport.fail_numbers.add("2348100000002")

    result = _dispatch(db, transport, user, journey)

    assert isinstance(result, Ok)
    report = result.value
    assert report.success is False
    assert report.message == "Some SMS notifications failed"
    assert (report.sent_count, report.total_count) == (2, 3)
    [failed] = report.failed_recipients
    assert (failed.name, failed.phone_number, failed.circle_member_id) == ("Chidi", "2348100000002", eligible[1].id)
    assert [(r.name, r.delivery_status) for r in report.recipients] == [
        ("Bola", "sent"),
        ("Chidi", "failed"),
        ("Dayo", "sent"),
    ]

    logs = db.execute(select(MessageLog).order_by(MessageLog.circle_member_id)).scalars().all()
    assert [log.delivery_status for log in logs] == ["sent", "failed", "sent"]
    assert logs[1].sent_at is None
    assert logs[1].provider_status == "rejected"
    assert _counts(db)["Chidi"] == 0
    assert _counts(db)["Bola"] == 1


def test_all_failed(db, transport, circle):
    user, journey, eligible = circle
    transport.fail_numbers.update(m.contact_phone for m in eligible)

    report = _dispatch(db, transport, user, journey).value

    assert report.success is False
    assert report.message == "All SMS notifications failed"
    assert report.sent_count == 0
    assert len(db.execute(select(MessageLog)).scalars().all()) == 3
    assert set(_counts(db).values()) == {0}


def test_transport_exception_only_fails_that_recipient(db, transport, circle):
    user, journey, _ = circle
    transport.raise_numbers.add("2348100000001")

    report = _dispatch(db, transport, user, journey).value

    assert (report.sent_count, report.total_count) == (2, 3)
    assert [f.name for f in report.failed_recipients] == ["Bola"]


def test_no_eligible_members(db, transport, make_user, make_journey, make_member):
    user = make_user()
    journey = make_journey(user)
    make_member(user, "Unverified", "2348100000004", verified=False)

    result = _dispatch(db, transport, user, journey)

    assert isinstance(result, Err)
    assert result.code == ErrorCode.CIRCLE_MEMBERS_NOT_FOUND
    assert transport.sent == []
    assert db.execute(select(WebLinkAccess)).scalars().all() == []


def test_minting_shortfall_aborts_before_any_send(db, transport, circle, monkeypatch):
    user, journey, _ = circle
    monkeypatch.setattr(alert_dispatcher, "mint_credentials", lambda *args, **kwargs: [])

    result = _dispatch(db, transport, user, journey)

    assert result.code == ErrorCode.WEB_LINK_GENERATION_FAILED
    assert transport.sent == []
    assert db.execute(select(MessageLog)).scalars().all() == []


def test_journey_must_belong_to_user(db, transport, circle, make_user):
    _, journey, _ = circle
    stranger = make_user("2348099999999")

    result = _dispatch(db, transport, stranger, journey)

    assert result.code == ErrorCode.JOURNEY_NOT_FOUND
    assert transport.sent == []


def test_emergency_alert_uses_emergency_links(db, transport, circle, make_emergency):
    user, journey, _ = circle
    emergency = make_emergency(journey)

    result = _dispatch(db, transport, user, journey, emergency_id=emergency.id)

    assert result.value.success is True
    assert {link.web_link_type for link in db.execute(select(WebLinkAccess)).scalars()} == {"emergency"}
    assert {log.emergency_id for log in db.execute(select(MessageLog)).scalars()} == {emergency.id}


def test_resolved_or_unknown_emergency_is_rejected(db, transport, circle, make_emergency):
    user, journey, _ = circle
    resolved = make_emergency(journey, resolved_at=NOW)

    assert _dispatch(db, transport, user, journey, emergency_id=resolved.id).code == (
        ErrorCode.EMERGENCY_ALREADY_RESOLVED
    )
    assert _dispatch(db, transport, user, journey, emergency_id=9999).code == ErrorCode.EMERGENCY_NOT_FOUND
    assert transport.sent == []


def test_unknown_message_type_or_user(db, transport, circle):
    user, journey, _ = circle

    assert _dispatch(db, transport, user, journey, message_type="party").code == ErrorCode.VALIDATION_ERROR
    result = asyncio.run(
        dispatch_alert(db, transport, user_id=9999, journey_id=journey.id, message_type="emergency", now=NOW)
    )
    assert result.code == ErrorCode.USER_NOT_FOUND


class SlowTransport(SmsTransport):
    """Tracks how many sends overlap."""

    def __init__(self):
        self.in_flight = 0
        self.peak = 0
        self.started = None

    async def send(self, phone_number, text):
        if self.started is not None:
            self.started.set()
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        await asyncio.sleep(0.02)
        self.in_flight -= 1
        return SendResult(success=True, provider_status="ok")


def test_fan_out_respects_concurrency_limit(db, make_user, make_journey, make_member, monkeypatch):
    monkeypatch.setattr(settings, "sms_max_concurrency", 2)
    user = make_user()
    journey = make_journey(user)
    for i in range(5):
        make_member(user, f"Member{i}", f"234810000001{i}")
    slow = SlowTransport()

    report = _dispatch(db, slow, user, journey).value

    assert report.sent_count == 5
    assert slow.peak == 2


def test_cancelled_dispatch_still_records_deliveries(db, circle):
    user, journey, _ = circle
    slow = SlowTransport()

    async def scenario():
        slow.started = asyncio.Event()
        task = asyncio.create_task(
            dispatch_alert(
                db, slow, user_id=user.id, journey_id=journey.id, message_type="missed_checkin", now=NOW
            )
        )
        await slow.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    logs = db.execute(select(MessageLog)).scalars().all()
    assert len(logs) == 3
    assert {log.delivery_status for log in logs} == {"sent"}
    assert set(_counts(db).values()) == {0, 1}
