"""Role based permissions shared by every app"""
from rest_framework.permissions import BasePermission

from .models import User

CREATE_SALE = 'CREATE_SALE'
UPDATE_SALE = 'UPDATE_SALE'
DELETE_SALE = 'DELETE_SALE'
VIEW_REPORTS = 'VIEW_REPORTS'
MANAGE_USERS = 'MANAGE_USERS'
MANAGE_SETTINGS = 'MANAGE_SETTINGS'
APPROVE_EXPENSES = 'APPROVE_EXPENSES'

ALL_PERMISSIONS = [
    CREATE_SALE, UPDATE_SALE, DELETE_SALE, VIEW_REPORTS,
    MANAGE_USERS, MANAGE_SETTINGS, APPROVE_EXPENSES,
]

ROLE_PERMISSIONS = {
    User.ROLE_SUPER_ADMIN: ALL_PERMISSIONS,
    User.ROLE_ADMIN: ALL_PERMISSIONS,
    User.ROLE_MANAGER: [CREATE_SALE, UPDATE_SALE, VIEW_REPORTS, APPROVE_EXPENSES],
    User.ROLE_DRIVER: [CREATE_SALE],
}


def has_role_permission(user, permission):
    """Check whether the user's role grants a business permission"""
    if not user or not user.is_authenticated:
        return False
    return permission in ROLE_PERMISSIONS.get(user.role, [])


def is_admin_user(user):
    """Tenant admins (and super admins) manage everything inside a tenant"""
    return bool(user and user.is_authenticated and user.role in (User.ROLE_ADMIN, User.ROLE_SUPER_ADMIN))


def is_manager_or_admin(user):
    return bool(user and user.is_authenticated and user.role in (User.ROLE_ADMIN, User.ROLE_MANAGER, User.ROLE_SUPER_ADMIN))


class IsTenantUser(BasePermission):
    """Authenticated user that belongs to an active tenant"""
    message = 'A tenant account is required for this operation.'

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user and user.is_authenticated
            and user.tenant_id is not None
            and user.tenant.is_active
        )


class IsTenantAdmin(IsTenantUser):
    message = 'Admin access required.'

    def has_permission(self, request, view):
        return super().has_permission(request, view) and is_admin_user(request.user)


class IsManagerOrAdmin(IsTenantUser):
    message = 'Manager or admin access required.'

    def has_permission(self, request, view):
        return super().has_permission(request, view) and is_manager_or_admin(request.user)


class CanViewReports(IsTenantUser):
    message = 'Insufficient permissions'

    def has_permission(self, request, view):
        return super().has_permission(request, view) and has_role_permission(request.user, VIEW_REPORTS)


class IsSuperAdmin(BasePermission):
    message = 'Super admin access required'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role == User.ROLE_SUPER_ADMIN)
