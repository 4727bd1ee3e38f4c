"""In-app notifications."""

from sqlmodel import Session, select

from trust_anchor.core.errors import BadRequestError, NotFoundError
from trust_anchor.core.models import Notification, User, utcnow


def create_notification(
    session: Session,
    recipient_email: str | None,
    type: str,
    title: str,
    message: str,
    action_url: str | None = None,
    priority: str = "medium",
    send_email: bool = True,
    organization_id: str | None = None,
    recipient_id: str | None = None,
    context: dict | None = None,
) -> Notification:
    """Queue a notification for a recipient. The caller owns the commit."""
    if not recipient_email or not type or not title or not message:
        raise BadRequestError("recipientEmail, type, title, and message are required")

    notification = Notification(
        organization_id=organization_id,
        recipient_id=recipient_id,
        recipient_email=recipient_email.lower(),
        type=type,
        title=title,
        message=message,
        action_url=action_url,
        priority=priority,
        send_email=send_email,
        context=context or {},
    )
    session.add(notification)
    return notification


def list_for_user(session: Session, user: User, unread_only: bool = False) -> list[Notification]:
    query = select(Notification).where(Notification.recipient_email == user.email)
    if unread_only:
        query = query.where(Notification.is_read == False)  # noqa: E712
    return list(session.exec(query.order_by(Notification.created_date.desc())).all())


def mark_read(session: Session, user: User, notification_id: str) -> Notification:
    notification = session.get(Notification, notification_id)
    if notification is None or notification.recipient_email != user.email:
        raise NotFoundError("Notification not found")
    notification.is_read = True
    notification.updated_date = utcnow()
    session.add(notification)
    session.commit()
    session.refresh(notification)
    return notification
