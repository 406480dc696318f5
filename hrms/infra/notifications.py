from __future__ import annotations

from typing import Protocol

from sqlmodel import Session

from hrms.domain.models import Notification, NotificationPayload
from hrms.infra.db import engine
from hrms.infra.logging import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    def send(self, user_id: str, payload: NotificationPayload) -> None: ...


class NotificationService:
    """Stores notifications for later delivery by the notification worker."""

    def send(self, user_id: str, payload: NotificationPayload) -> None:
        with Session(engine) as session:
            session.add(
                Notification(
                    user_id=user_id,
                    organization_id=payload.organization_id,
                    type=payload.type,
                    title=payload.title,
                    message=payload.message,
                    action_link=payload.action_link,
                )
            )
            session.commit()
        logger.info("notification sent to %s: %s", user_id, payload.title)


def notify_safely(notifier: Notifier, user_id: str, payload: NotificationPayload) -> None:
    try:
        notifier.send(user_id, payload)
    except Exception:
        logger.warning("notification to %s failed: %s", user_id, payload.title, exc_info=True)
