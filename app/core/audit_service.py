"""
Finance audit trail. Writes are best-effort: a failed audit write is logged
and never undoes or fails the money movement it describes.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import FinanceAuditAction
from app.core.models import FinanceAuditLog

logger = logging.getLogger(__name__)


async def write_finance_audit(
    db: AsyncSession,
    action: FinanceAuditAction,
    entity_type: str,
    entity_id: UUID,
    *,
    performed_by: Optional[UUID] = None,
    performed_by_email: Optional[str] = None,
    new_state: Optional[dict] = None,
) -> bool:
    """Append and commit one audit entry in its own unit of work. Returns False if it could not be written."""
    try:
        db.add(
            FinanceAuditLog(
                action=action.value,
                entity_type=entity_type,
                entity_id=entity_id,
                performed_by=performed_by,
                performed_by_email=performed_by_email,
                new_state=new_state,
                performed_at=datetime.now(timezone.utc),
            )
        )
        await db.commit()
        return True
    except Exception:
        await db.rollback()
        logger.exception(
            "AuditWriteFailed: %s for %s %s was not recorded",
            action.value, entity_type, entity_id,
        )
        return False
