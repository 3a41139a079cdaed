import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from perfreview.core.security import get_current_user
from perfreview.db.session import get_db
from perfreview.models.notification import Notification
from perfreview.models.user import User
from perfreview.schemas.notification import MarkAllReadOut, NotificationOut, UnreadCountOut
from perfreview.services.container import Services, get_services

router = APIRouter(prefix="/notifications", tags=["notifications"])


def to_out(n: Notification) -> NotificationOut:
    return NotificationOut(
        id=str(n.id),
        type=n.type,
        title=n.title,
        message=n.message,
        link=n.link,
        is_read=n.is_read,
        created_at=n.created_at,
    )


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
):
    """Newest first."""
    items = services.notifications().list_for_user(db, current_user.id, limit=limit)
    return [to_out(n) for n in items]


@router.get("/unread-count", response_model=UnreadCountOut)
def unread_count(
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
):
    return UnreadCountOut(unread=services.notifications().unread_count(db, current_user.id))


@router.post("/read-all", response_model=MarkAllReadOut)
def mark_all_read(
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
):
    return MarkAllReadOut(updated=services.notifications().mark_all_read(db, current_user.id))


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
):
    return to_out(services.notifications().mark_read(db, notification_id, current_user.id))


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
):
    services.notifications().delete(db, notification_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
