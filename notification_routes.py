from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from db import get_db
from models import Notification
from models.schemas import NotificationOut, NotificationPatch
from models.schemas_user import UserOut
from utils.current_user import auth_user
from utils.errors import Forbidden, NotFound

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", summary="List my notifications")
def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
):
    stmt = (
        select(Notification)
        .where(Notification.user_id == current.id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    unread = db.scalar(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == current.id, Notification.is_read.is_(False))
    )
    return {
        "notifications": [NotificationOut.model_validate(n).model_dump(by_alias=True) for n in db.scalars(stmt)],
        "unread_count": unread,
    }


@router.patch("/{notification_id}", summary="Mark one notification read or unread")
def patch_notification(
    notification_id: str,
    payload: NotificationPatch,
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
):
    notification = db.get(Notification, notification_id)
    if notification is None:
        raise NotFound("Notification not found")
    if notification.user_id != current.id:
        raise Forbidden("Not your notification")
    notification.is_read = payload.is_read
    db.commit()
    db.refresh(notification)
    return NotificationOut.model_validate(notification).model_dump(by_alias=True)


@router.post("/mark-all-read", summary="Mark every notification read")
def mark_all_read(current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == current.id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return {"updated": result.rowcount}
