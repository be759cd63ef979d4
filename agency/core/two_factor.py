"""
Two-factor authentication.

Users enrol an authenticator app (TOTP through ``pyotp``) and can also ask for
a one-time code by e-mail. Once enabled, login requires either kind of code
in ``otp_code``.
"""
import logging
import secrets
from datetime import timedelta

import pyotp
from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.core.mail import send_mail
from django.utils import timezone
from rest_framework import status

from .exceptions import ConflictError, DomainError
from .models import TwoFactorDevice

logger = logging.getLogger('agency.core')

EMAIL_CODE_DIGITS = 6


def get_device(user):
    return TwoFactorDevice.objects.filter(user=user).first()


def is_enabled(user):
    device = get_device(user)
    return bool(device and device.is_enabled)


def begin_setup(user):
    """Issue a fresh TOTP secret; it only takes effect after ``confirm_setup``."""
    device, _ = TwoFactorDevice.objects.get_or_create(user=user)
    if device.is_enabled:
        raise ConflictError('Two-factor authentication is already enabled.', code='TWO_FACTOR_ENABLED')

    device.secret = pyotp.random_base32()
    device.save(update_fields=['secret', 'updated_at'])
    uri = pyotp.TOTP(device.secret).provisioning_uri(
        name=user.email or user.username, issuer_name=settings.TWO_FACTOR_ISSUER,
    )
    logger.info(f"Two-factor setup started for '{user.username}'")
    return {'qr_code_url': uri, 'manual_entry_key': device.secret, 'is_enabled': False}


def verify_totp(device, code):
    if device is None or not device.secret or not code:
        return False
    # One step of clock drift either way
    return pyotp.TOTP(device.secret).verify(str(code).strip(), valid_window=1)


def confirm_setup(user, code):
    device = get_device(user)
    if device is None or not device.secret:
        raise DomainError('Two-factor setup has not been started.', code='TWO_FACTOR_NOT_SET_UP')
    if device.is_enabled:
        raise ConflictError('Two-factor authentication is already enabled.', code='TWO_FACTOR_ENABLED')
    if not verify_totp(device, code):
        raise DomainError('Invalid verification code.', code='INVALID_CODE')

    device.is_enabled = True
    device.confirmed_at = timezone.now()
    device.save(update_fields=['is_enabled', 'confirmed_at', 'updated_at'])
    logger.info(f"Two-factor authentication enabled for '{user.username}'")
    return device


def disable(user):
    device = get_device(user)
    if device is None or not device.is_enabled:
        raise ConflictError('Two-factor authentication is not enabled.', code='TWO_FACTOR_NOT_ENABLED')
    device.delete()
    logger.info(f"Two-factor authentication disabled for '{user.username}'")


def send_email_code(user):
    """Mail a one-time code to ``user``; returns its expiry time."""
    if not user.email:
        raise DomainError('This account has no e-mail address.', code='NO_EMAIL')

    code = f'{secrets.randbelow(10 ** EMAIL_CODE_DIGITS):0{EMAIL_CODE_DIGITS}d}'
    ttl = settings.TWO_FACTOR_EMAIL_CODE_TTL
    device, _ = TwoFactorDevice.objects.get_or_create(user=user)
    device.email_code = make_password(code)
    device.email_code_expires_at = timezone.now() + timedelta(seconds=ttl)
    device.save(update_fields=['email_code', 'email_code_expires_at', 'updated_at'])

    try:
        send_mail(
            subject='Your verification code',
            message=f"Your verification code is {code}. It expires in {ttl // 60} minutes.",
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
            fail_silently=False,
        )
    except Exception as e:
        logger.error(f"Failed to e-mail a verification code to {user.username}: {str(e)}", exc_info=True)
        raise DomainError('The verification code could not be sent.', code='EMAIL_SEND_FAILED',
                          status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return device.email_code_expires_at


def verify_email_code(user, code):
    """Consume a valid e-mailed code; returns False for a wrong or expired one."""
    device = get_device(user)
    if device is None or not device.email_code or not code:
        return False
    if device.email_code_expires_at is None or device.email_code_expires_at < timezone.now():
        return False
    if not check_password(str(code).strip(), device.email_code):
        return False

    device.email_code = ''
    device.email_code_expires_at = None
    device.save(update_fields=['email_code', 'email_code_expires_at', 'updated_at'])
    return True


def check_login_code(user, code):
    """
    Second login step.

    Users without two-factor authentication pass. Others need a current TOTP
    code or an unused e-mailed code.

    Raises:
        DomainError: 401 ``TWO_FACTOR_REQUIRED`` or ``INVALID_TWO_FACTOR_CODE``
    """
    device = get_device(user)
    if device is None or not device.is_enabled:
        return
    if not code:
        raise DomainError('A two-factor code is required.', code='TWO_FACTOR_REQUIRED',
                          status_code=status.HTTP_401_UNAUTHORIZED)
    if verify_totp(device, code) or verify_email_code(user, code):
        return
    logger.warning(f"Invalid two-factor code for '{user.username}'")
    raise DomainError('Invalid two-factor code.', code='INVALID_TWO_FACTOR_CODE',
                      status_code=status.HTTP_401_UNAUTHORIZED)
