"""Login accounts for dealers, observers and customers"""
import logging
import re

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group

from .roles import ALL_ROLES, clear_role_cache
from .utils import generate_temporary_password

logger = logging.getLogger('agency.core')

User = get_user_model()


def _unique_username(base):
    base = re.sub(r'[^a-z0-9_.-]', '', (base or '').lower()) or 'user'
    username = base
    suffix = 1
    while User.objects.filter(username=username).exists():
        suffix += 1
        username = f'{base}{suffix}'
    return username


def set_user_roles(user, roles):
    """Replace the role groups of ``user``; other groups are left alone."""
    unknown = [role for role in roles if role not in ALL_ROLES]
    if unknown:
        raise ValueError(f"Unknown roles: {', '.join(unknown)}")
    role_groups = [Group.objects.get_or_create(name=role)[0] for role in roles]
    user.groups.remove(*user.groups.filter(name__in=ALL_ROLES))
    user.groups.add(*role_groups)
    clear_role_cache(user)


def create_account(username, role, email='', first_name='', last_name='', phone=None):
    """
    Create an active user in ``role`` with a temporary password.

    Returns ``(user, temporary_password)``; the password is only available here.
    """
    password = generate_temporary_password()
    user = User.objects.create_user(
        username=_unique_username(username),
        email=email or '',
        password=password,
        first_name=first_name or '',
        last_name=last_name or '',
    )
    user.phone = phone
    user.must_change_password = True
    user.save(update_fields=['phone', 'must_change_password'])
    set_user_roles(user, [role])
    logger.info(f"Created {role} account '{user.username}'")
    return user, password


def reset_temporary_password(user):
    """Give ``user`` a new temporary password and force a change on next login."""
    password = generate_temporary_password()
    user.set_password(password)
    user.must_change_password = True
    user.save(update_fields=['password', 'must_change_password'])
    logger.info(f"Temporary password issued for '{user.username}'")
    return password
