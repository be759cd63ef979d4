from rest_framework.permissions import BasePermission

from .roles import ADMIN_ROLES, CUSTOMER, DEALER, OBSERVER, SUPERADMIN, has_role


class RolePermission(BasePermission):
    """Grant access when the user holds one of ``roles``."""
    roles = ()
    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and has_role(request.user, *self.roles))


class IsAdminRole(RolePermission):
    roles = tuple(ADMIN_ROLES)
    message = 'Only administrators can perform this action.'


class IsSuperAdmin(RolePermission):
    roles = (SUPERADMIN,)
    message = 'Only super administrators can perform this action.'


class IsDealer(RolePermission):
    roles = (DEALER,)
    message = 'Only dealers can perform this action.'


class IsObserver(RolePermission):
    roles = (OBSERVER,)
    message = 'Only observers can perform this action.'


class IsCustomer(RolePermission):
    roles = (CUSTOMER,)
    message = 'Only customers can perform this action.'


class IsAdminOrDealer(RolePermission):
    roles = tuple(ADMIN_ROLES) + (DEALER,)
