"""Record-store commands built on SQLAlchemy Core updates.

Row mutations that race between requests go through these helpers instead of
attribute assignment on loaded objects, so the WHERE clause carries the
precondition and the returned row count says whether it held.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from sqlalchemy import update
from sqlalchemy.orm import InstrumentedAttribute, Session

from safecircle.db.base import Base


def conditional_update(
    db: Session,
    model: type[Base],
    row_id: int,
    expected_version: int,
    values: dict[str, Any],
) -> bool:
    """Apply ``values`` only if the row still has ``expected_version``.

    Bumps the version on success. Returns False when another writer got there
    first; nothing is written in that case.
    """
    db.flush()
    stmt = (
        update(model)
        .where(model.id == row_id, model.version == expected_version)
        .values(**values, version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.expire_all()
    return result.rowcount == 1


def increment_by_ids(
    db: Session,
    column: InstrumentedAttribute,
    ids: Sequence[int],
    amount: int = 1,
    extra_values: dict[str, Any] | None = None,
) -> int:
    """Increment ``column`` in one UPDATE for every row whose id is in ``ids``."""
    if not ids:
        return 0
    db.flush()
    model = column.class_
    values: dict[str, Any] = {column.key: column + amount}
    if extra_values:
        values.update(extra_values)
    stmt = (
        update(model)
        .where(model.id.in_(list(ids)))
        .values(values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.expire_all()
    return result.rowcount


def insert_many(db: Session, rows: Iterable[Base]) -> list[Base]:
    """Stage a batch of new rows and flush them together."""
    batch = list(rows)
    db.add_all(batch)
    db.flush()
    return batch
