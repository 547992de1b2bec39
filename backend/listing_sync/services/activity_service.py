from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from listing_sync.models.audit import ActivityLog


logger = logging.getLogger("listing_sync.activity")


def record_activity(
    db: Session,
    *,
    tenant_id: str | None,
    listing_id: str | None,
    action: str,
    description: str,
    metadata: dict[str, Any] | None = None,
    actor_type: str = "system",
) -> bool:
    """Append one activity entry in its own commit.

    Callers commit their primary state change first. A failure here is logged and
    rolled back; it never undoes or masks the operation being recorded.
    """
    try:
        db.add(
            ActivityLog(
                tenant_id=tenant_id,
                listing_id=listing_id,
                actor_type=actor_type,
                action=action,
                description=description,
                metadata_json=json.dumps(metadata or {}, separators=(",", ":"), sort_keys=True, default=str),
                created_at=datetime.now(UTC),
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "activity.write.failed",
            extra={"tenant_id": tenant_id, "listing_id": listing_id, "operation": action, "error": str(exc)},
        )
        return False
    return True
