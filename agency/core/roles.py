"""
Role helpers.

Roles are plain Django auth groups. A superuser or staff account without
any application group is treated as SuperAdmin so that accounts created with
``createsuperuser`` can administer the system straight away.
"""

SUPERADMIN = 'SuperAdmin'
ADMIN = 'Admin'
DEALER = 'Dealer'
CUSTOMER = 'Customer'
OBSERVER = 'Observer'

ALL_ROLES = [SUPERADMIN, ADMIN, DEALER, CUSTOMER, OBSERVER]
ADMIN_ROLES = [SUPERADMIN, ADMIN]

# Portal name per role, checked in this order
PORTAL_BY_ROLE = [
    (SUPERADMIN, 'admin'),
    (ADMIN, 'admin'),
    (DEALER, 'dealer'),
    (OBSERVER, 'observer'),
    (CUSTOMER, 'customer'),
]
PORTALS = ['admin', 'dealer', 'customer', 'observer']


def get_user_roles(user):
    """Return the role names of ``user`` (empty list for anonymous users)."""
    if not user or not user.is_authenticated:
        return []
    cached = getattr(user, '_role_names', None)
    if cached is not None:
        return cached
    roles = [name for name in user.groups.values_list('name', flat=True) if name in ALL_ROLES]
    if not roles and (user.is_superuser or user.is_staff):
        roles = [SUPERADMIN]
    user._role_names = roles
    return roles


def has_role(user, *roles):
    user_roles = get_user_roles(user)
    return any(role in user_roles for role in roles)


def is_admin_user(user):
    """
    Check if user is an admin user.
    Returns True if:
    - User is in 'Admin' or 'SuperAdmin' group, OR
    - User is superuser/staff and not in any application group (fallback)
    """
    return has_role(user, *ADMIN_ROLES)


def is_superadmin(user):
    return has_role(user, SUPERADMIN)


def get_portal(user):
    """Portal the user lands on after login, or None."""
    roles = get_user_roles(user)
    for role, portal in PORTAL_BY_ROLE:
        if role in roles:
            return portal
    return None


def clear_role_cache(user):
    if hasattr(user, '_role_names'):
        del user._role_names
