"""Single-use web access tokens for circle members."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from safecircle.core.config import settings
from safecircle.core.security import generate_link_token
from safecircle.core.windows import ensure_utc, utcnow
from safecircle.db.store import insert_many
from safecircle.models.web_link_access import WebLinkAccess

logger = logging.getLogger(__name__)

LINK_TYPES = ("journey", "emergency")


def mint_credentials(
    db: Session,
    *,
    journey_id: int,
    emergency_id: int | None,
    count: int,
    link_type: str,
    now: datetime | None = None,
) -> list[WebLinkAccess]:
    """Create ``count`` tokens sharing one scope, all or nothing.

    Returns an empty list on any store error; callers compare the length with
    ``count`` before using the tokens.
    """
    if count <= 0 or link_type not in LINK_TYPES:
        return []
    now = ensure_utc(now) or utcnow()
    expires_at = now + timedelta(hours=settings.web_link_ttl_hours)

    rows = [
        WebLinkAccess(
            journey_id=journey_id,
            emergency_id=emergency_id,
            web_link_token=generate_link_token(),
            web_link_type=link_type,
            expires_at=expires_at,
            created_at=now,
        )
        for _ in range(count)
    ]
    try:
        insert_many(db, rows)
        db.commit()
    except SQLAlchemyError:
        logger.exception("web_link_mint_failed journey_id=%s count=%s", journey_id, count)
        db.rollback()
        return []
    logger.info("web_links_minted journey_id=%s type=%s count=%s", journey_id, link_type, count)
    return rows
