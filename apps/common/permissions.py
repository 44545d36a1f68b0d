from rest_framework.permissions import BasePermission

from apps.accounts.models import UserRole


ROLE_CAPABILITIES = {
    UserRole.ADMIN: {
        "catalog.view",
        "catalog.manage",
        "inventory.view",
        "inventory.manage",
        "sales.view",
        "sales.create",
        "sales.cancel",
        "reports.view",
        "reports.open",
        "reports.close",
        "reports.reopen",
    },
    UserRole.MANAGER: {
        "catalog.view",
        "catalog.manage",
        "inventory.view",
        "inventory.manage",
        "sales.view",
        "sales.create",
        "sales.cancel",
        "reports.view",
        "reports.open",
        "reports.close",
        "reports.reopen",
    },
    UserRole.CASHIER: {
        "catalog.view",
        "inventory.view",
        "sales.view",
        "sales.create",
        "reports.view",
        "reports.open",
        "reports.close",
    },
}


def resolve_role(user):
    group_names = set(user.groups.values_list("name", flat=True))
    for role in (UserRole.ADMIN, UserRole.MANAGER, UserRole.CASHIER):
        if role in group_names:
            return role
    return getattr(user, "role", UserRole.CASHIER)


def has_capability(user, capability):
    if not user or not user.is_authenticated:
        return False
    return capability in ROLE_CAPABILITIES.get(resolve_role(user), set())


class RolePermission(BasePermission):
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        capability_map = getattr(view, "capability_map", {})
        action = getattr(view, "action", None) or request.method.lower()
        required = capability_map.get(action) or capability_map.get(request.method.lower()) or set()
        if not required:
            return True

        user_caps = ROLE_CAPABILITIES.get(resolve_role(request.user), set())
        return all(cap in user_caps for cap in required)
