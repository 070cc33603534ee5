"""
Audit log repository for settlement and payout tracking
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc

from app.models.audit_log import AuditLog


async def create_audit_log(
    session: AsyncSession,
    admin_id: Optional[UUID],
    action: str,
    resource_type: str,
    resource_id: UUID,
    details: dict,
    actor: Optional[str] = None
) -> AuditLog:
    """
    Create an audit log entry inside the caller's transaction.

    Args:
        session: Database session
        admin_id: Admin user ID who performed the action (None for jobs)
        action: Action performed
        resource_type: Type of resource affected
        resource_id: ID of resource affected
        details: Additional details as JSON
        actor: Free-form actor name, e.g. "celery"

    Returns:
        Created AuditLog instance
    """
    # Include resource info in details since the model doesn't have separate fields
    enhanced_details = {
        **details,
        "resource_type": resource_type,
        "resource_id": str(resource_id)
    }

    audit_log = AuditLog(
        admin_id=admin_id,
        actor=actor,
        action=action,
        details=enhanced_details
    )
    session.add(audit_log)
    await session.flush()
    return audit_log


async def get_audit_logs(
    session: AsyncSession,
    limit: int = 50,
    offset: int = 0,
    action: Optional[str] = None
) -> List[AuditLog]:
    """
    Get audit logs, newest first, optionally filtered by action.
    """
    query = select(AuditLog).order_by(desc(AuditLog.created_at))

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit).offset(offset)

    result = await session.execute(query)
    return list(result.scalars().all())
