"""Journey alert API tests."""

import pytest


@pytest.fixture
def owner(make_user, make_journey, make_member):
    user = make_user("2348012345678", first_name="Ada")
    journey = make_journey(user)
    make_member(user, "Bola", "2348100000001")
    make_member(user, "Chidi", "2348100000002")
    return user, journey


def test_alert_fan_out(client, transport, owner, auth_headers):
    user, journey = owner

    r = client.post(
        f"/journeys/{journey.id}/alerts",
        headers=auth_headers(user),
        json={"message_type": "missed_checkin"},
    )

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "SMS sent successfully"
    assert body["data"]["sent_count"] == 2
    assert body["data"]["total_count"] == 2
    assert len(transport.sent) == 2


def test_partial_failure_is_reported(client, transport, owner, auth_headers):
    user, journey = owner
    transport.fail_numbers.add("2348100000002")

    r = client.post(
        f"/journeys/{journey.id}/alerts",
        headers=auth_headers(user),
        json={"message_type": "emergency"},
    )

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Some SMS notifications failed"
    [failed] = body["data"]["failed_recipients"]
    assert (failed["name"], failed["phone_number"]) == ("Chidi", "2348100000002")
    recipients = body["data"]["recipients"]
    assert [(r["name"], r["delivery_status"]) for r in recipients] == [("Bola", "sent"), ("Chidi", "failed")]
    assert all("web_link_token" not in r for r in recipients)
    assert body["error"] is None


def test_everything_failing_is_a_bad_gateway(client, transport, owner, auth_headers):
    user, journey = owner
    transport.fail_numbers.update({"2348100000001", "2348100000002"})

    r = client.post(
        f"/journeys/{journey.id}/alerts",
        headers=auth_headers(user),
        json={"message_type": "emergency"},
    )

    assert r.status_code == 502
    assert r.json()["message"] == "All SMS notifications failed"
    assert r.json()["data"]["sent_count"] == 0


def test_other_users_journey_is_not_found(client, owner, make_user, auth_headers):
    _, journey = owner
    stranger = make_user("2348099999999")

    r = client.post(
        f"/journeys/{journey.id}/alerts",
        headers=auth_headers(stranger),
        json={"message_type": "emergency"},
    )
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "JOURNEY_NOT_FOUND"

    r = client.get(f"/journeys/{journey.id}/message-logs", headers=auth_headers(stranger))
    assert r.status_code == 404


def test_alerts_require_auth(client, owner):
    _, journey = owner
    r = client.post(f"/journeys/{journey.id}/alerts", json={"message_type": "emergency"})
    assert r.status_code == 401


def test_message_logs_hide_links(client, owner, auth_headers):
    user, journey = owner
    client.post(
        f"/journeys/{journey.id}/alerts",
        headers=auth_headers(user),
        json={"message_type": "journey_start"},
    )

    r = client.get(f"/journeys/{journey.id}/message-logs", headers=auth_headers(user))

    assert r.status_code == 200
    logs = r.json()["data"]
    assert len(logs) == 2
    assert {log["delivery_status"] for log in logs} == {"sent"}
    assert {log["message_type"] for log in logs} == {"journey_start"}
    for log in logs:
        assert "web_link" not in log
        assert "web_link_token" not in log
        assert "message_text" not in log
