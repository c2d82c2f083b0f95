import logging

from django.conf import settings

from servicehub.mailer import send_email
from servicehub.persistence import Store, build_store

from .models import Notification, User

logger = logging.getLogger(__name__)


class NotificationSink:
    """Best-effort delivery of in-app notifications (plus an email mirror).

    ``send`` never raises: a failed notification must not undo or fail the
    operation that triggered it.
    """

    def __init__(self, store: Store | None = None, *, email: bool | None = None):
        self.store = store or build_store()
        if email is None:
            email = getattr(settings, "MARKETPLACE_NOTIFICATION_EMAILS", True)
        self.email = email

    def send(self, target, kind: str, title: str, message: str, link: str = "") -> Notification | None:
        target_id = getattr(target, "pk", target)
        try:
            with self.store.atomic():
                notification = self.store.save(
                    Notification(
                        user_id=target_id,
                        kind=kind,
                        title=title[:100],
                        message=message[:300],
                        url=link or None,
                    )
                )
        except Exception:
            logger.exception("In-app notification failed: kind=%s user_id=%s", kind, target_id)
            return None

        if self.email:
            self._mirror_email(notification)
        return notification

    def _mirror_email(self, notification: Notification) -> None:
        try:
            user = self.store.get(User, notification.user_id)
            if not user or not user.email:
                return
            send_email(
                to_emails=[user.email],
                subject=f"ServiceHub: {notification.title}",
                message=(
                    f"Hello {user.name or user.username},\n\n"
                    f"{notification.message}\n\n"
                    "ServiceHub"
                ),
                tag=notification.kind,
                meta={"user_id": user.pk, "notification_id": notification.pk, "link": notification.url},
            )
            logger.info("Notification email sent: kind=%s to=%s", notification.kind, user.email)
        except Exception:
            logger.exception("Notification email failed: kind=%s user_id=%s", notification.kind, notification.user_id)


def notify(notifier, target, kind, title, message, link=""):
    """Call ``notifier.send`` and log instead of raising; for notifiers other than ``NotificationSink``."""
    try:
        notifier.send(target, kind, title, message, link)
    except Exception:
        logger.exception("Notification failed: kind=%s target=%s", kind, getattr(target, "pk", target))
