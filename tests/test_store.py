"""Record-store command tests."""

from sqlalchemy import select

from safecircle.db.store import conditional_update, increment_by_ids
from safecircle.models import CircleMember, User


def test_conditional_update_applies_once_per_version(db, make_user):
    user = make_user()
    version = user.version

    assert conditional_update(db, User, user.id, version, {"failed_attempt_count": 4}) is True
    assert conditional_update(db, User, user.id, version, {"failed_attempt_count": 9}) is False
    db.commit()

    db.expire_all()
    stored = db.get(User, user.id)
    assert stored.failed_attempt_count == 4
    assert stored.version == version + 1


def test_increment_by_ids_touches_only_listed_rows(db, make_user, make_member):
    user = make_user()
    a = make_member(user, "A", "2348100000001")
    b = make_member(user, "B", "2348100000002")
    make_member(user, "C", "2348100000003")

    assert increment_by_ids(db, CircleMember.total_alerts_received, [a.id, b.id]) == 2
    assert increment_by_ids(db, CircleMember.total_alerts_received, [a.id]) == 1
    assert increment_by_ids(db, CircleMember.total_alerts_received, []) == 0
    db.commit()

    counts = dict(db.execute(select(CircleMember.contact_name, CircleMember.total_alerts_received)).all())
    assert counts == {"A": 2, "B": 1, "C": 0}
