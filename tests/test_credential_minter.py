"""Web access token minting tests."""

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from safecircle.core.windows import ensure_utc
from safecircle.models import WebLinkAccess
from safecircle.services import credential_minter
from safecircle.services.credential_minter import mint_credentials

NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def test_mints_exactly_count_tokens_with_shared_scope(db, make_user, make_journey, make_emergency):
    journey = make_journey(make_user())
    emergency = make_emergency(journey)

    links = mint_credentials(
        db, journey_id=journey.id, emergency_id=emergency.id, count=3, link_type="emergency", now=NOW
    )

    assert len(links) == 3
    assert len({link.web_link_token for link in links}) == 3
    stored = db.execute(select(WebLinkAccess)).scalars().all()
    assert len(stored) == 3
    for link in stored:
        assert link.journey_id == journey.id
        assert link.emergency_id == emergency.id
        assert link.web_link_type == "emergency"
        assert link.accessed_at is None
        assert ensure_utc(link.expires_at) == NOW + timedelta(hours=24)


def test_zero_count_or_unknown_type_mints_nothing(db, make_user, make_journey):
    journey = make_journey(make_user())

    assert mint_credentials(db, journey_id=journey.id, emergency_id=None, count=0, link_type="journey") == []
    assert mint_credentials(db, journey_id=journey.id, emergency_id=None, count=2, link_type="shared") == []
    assert db.execute(select(WebLinkAccess)).scalars().all() == []


def test_store_error_rolls_back_and_returns_empty(db, make_user, make_journey, monkeypatch):
    journey = make_journey(make_user())

    def broken_insert(session, rows):
        session.add_all(list(rows)[:1])
        session.flush()
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(credential_minter, "insert_many", broken_insert)

    links = mint_credentials(db, journey_id=journey.id, emergency_id=None, count=4, link_type="journey")

    assert links == []
    assert db.execute(select(WebLinkAccess)).scalars().all() == []
