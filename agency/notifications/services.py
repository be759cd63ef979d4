"""Creating notifications and delivering them by e-mail"""
import logging

from django.conf import settings
from django.core.mail import send_mail

from .models import Notification, NotificationSetting

logger = logging.getLogger('agency.notifications')


def notify(user, title, message, type='info', link=''):
    """
    Create a notification for ``user`` and e-mail it when the user enabled e-mail delivery.

    Users without a settings row only get the in-app notification. A failing mail
    backend is logged and never breaks the caller.
    """
    if user is None:
        return None

    notification = Notification.objects.create(user=user, title=title, message=message, type=type, link=link or '')

    setting = NotificationSetting.objects.filter(user=user).first()
    recipient = (setting.email_address or user.email) if setting else None
    if setting and setting.email_enabled and recipient:
        try:
            send_mail(
                subject=title,
                message=message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[recipient],
                fail_silently=False,
            )
        except Exception as e:
            logger.error(f"Failed to e-mail notification {notification.id} to {user.username}: {str(e)}", exc_info=True)

    return notification


def notify_many(users, title, message, type='info', link=''):
    """Notify every user in ``users``; returns the number of notifications created."""
    count = 0
    for user in users:
        if notify(user, title, message, type=type, link=link):
            count += 1
    return count
