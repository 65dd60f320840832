"""
In-app and email notifications.

Notifications are a side effect of a state change that has already been
committed: they run in their own session and a failure here is logged, never
raised back into the caller.
"""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from db import session_scope
from models import Notification, User
from models.enums import NotificationKind
from utils.crud_user import list_admin_ids
from utils.email_service import send_email

logger = logging.getLogger("notifications")


class Notifier:
    def __init__(self, session_factory=None, mailer: Callable[[str, str, str], bool] = send_email):
        self.session_factory = session_factory
        self.mailer = mailer

    def notify_user(
        self,
        user_id: str,
        kind: str,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        email: bool = True,
    ) -> None:
        try:
            with session_scope(self.session_factory) as db:
                db.add(Notification(
                    user_id=user_id,
                    kind=kind,
                    title=title,
                    message=message,
                    action_url=action_url,
                    extra=metadata or {},
                ))
                user = db.get(User, user_id)
                address = user.email if user else None
        except SQLAlchemyError:
            logger.exception("Could not store notification %r for user %s", title, user_id)
            return

        if email and address:
            if not self.mailer(address, title, message):
                logger.warning("Notification email to %s was not sent", address)

    def notify_admins(
        self,
        title: str,
        message: str,
        link: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """One ADMIN_ALERT notification per active admin. No email."""
        try:
            with session_scope(self.session_factory) as db:
                admin_ids = list_admin_ids(db)
                for admin_id in admin_ids:
                    db.add(Notification(
                        user_id=admin_id,
                        kind=NotificationKind.ADMIN_ALERT.value,
                        title=title,
                        message=message,
                        action_url=link,
                        extra=metadata or {},
                    ))
        except SQLAlchemyError:
            logger.exception("Could not store admin notification %r", title)
            return
        logger.info("Admin alert %r sent to %d admins", title, len(admin_ids))
