"""
Notification endpoints for the authenticated account.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from billing_api.db.session import get_db
from billing_api.core.auth_dependency import get_current_account_id
from billing_api.schemas.notification import (
    NotificationListResponse,
    NotificationOut,
    UnreadCountResponse,
    MarkReadResponse,
    MarkAllReadResponse,
)
from billing_api.services import notification_service

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(notification_service.DEFAULT_LIMIT, ge=1, le=200),
    account_id: int = Depends(get_current_account_id),
    db: Session = Depends(get_db)
):
    notifications = notification_service.list_notifications(
        db, account_id, unread_only=unread_only, limit=limit
    )
    return {"notifications": [NotificationOut.model_validate(n) for n in notifications]}


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    account_id: int = Depends(get_current_account_id),
    db: Session = Depends(get_db)
):
    return {"count": notification_service.get_unread_count(db, account_id)}


@router.post("/mark-all-read", response_model=MarkAllReadResponse)
def mark_all_read(
    account_id: int = Depends(get_current_account_id),
    db: Session = Depends(get_db)
):
    updated = notification_service.mark_all_as_read(db, account_id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.post("/{notification_id}/read", response_model=MarkReadResponse)
def mark_read(
    notification_id: int,
    account_id: int = Depends(get_current_account_id),
    db: Session = Depends(get_db)
):
    notification = notification_service.mark_as_read(db, notification_id, account_id)
    return {
        "message": "Notification marked as read",
        "notification": {"id": notification.id, "read": notification.read},
    }
