from shared.security.rbac import ADMIN_ROLES, UserRole, ensure_roles

__all__ = [
    "ADMIN_ROLES",
    "UserRole",
    "ensure_roles",
]
