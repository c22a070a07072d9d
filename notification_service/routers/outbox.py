"""
Outbox Inspection API Router
Read-only visibility into outbox messages, including permanently failed ones
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
import structlog

from notification_service.database import get_db
from notification_service.models.outbox_message import OutboxMessage, OUTBOX_STATUSES

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/outbox", tags=["outbox"])


@router.get("")
async def list_outbox_messages(
    status: Optional[str] = Query(None, description="Filter by status (Pending, Sending, Sent, Failed)"),
    tenant_id: Optional[str] = Query(None, description="Filter by tenant"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of messages to return"),
    db: Session = Depends(get_db)
):
    """
    List outbox messages, newest first

    Args:
        status: Optional status filter
        tenant_id: Optional tenant filter
        limit: Maximum number of messages to return (1-200, default 50)
        db: Database session

    Returns:
        dict with total count, status breakdown, and message list
    """
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")

    if status and status not in OUTBOX_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status '{status}'")

    query = db.query(OutboxMessage)
    if status:
        query = query.filter(OutboxMessage.status == status)
    if tenant_id:
        query = query.filter(OutboxMessage.tenant_id == tenant_id)

    total = query.count()
    messages = query.order_by(OutboxMessage.created_at.desc()).limit(limit).all()

    # Status breakdown ignores the status filter
    status_counts = {}
    for status_value in OUTBOX_STATUSES:
        count_query = db.query(OutboxMessage).filter(OutboxMessage.status == status_value)
        if tenant_id:
            count_query = count_query.filter(OutboxMessage.tenant_id == tenant_id)
        status_counts[status_value] = count_query.count()

    logger.info("outbox_messages_listed", total=total, returned=len(messages), status=status)

    return {
        "total": total,
        "by_status": status_counts,
        "messages": [message.to_dict() for message in messages]
    }


@router.get("/{message_id}")
async def get_outbox_message(
    message_id: str,
    db: Session = Depends(get_db)
):
    """
    Get a single outbox message

    Raises:
        404: Message not found
    """
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")

    message = db.query(OutboxMessage).filter(OutboxMessage.id == message_id).first()

    if not message:
        raise HTTPException(status_code=404, detail="Outbox message not found")

    return message.to_dict()
