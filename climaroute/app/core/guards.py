"""
Security guards for role-based and ownership-based access control.

Identity always comes from the authenticated token, never from
caller-supplied query parameters.
"""

from typing import Optional
from fastapi import Depends
from climaroute.app.models.enums import UserRole
from climaroute.app.core.dependencies import get_current_user
from climaroute.app.core.exceptions import InsufficientPermissionsError


def is_admin(role: Optional[str]) -> bool:
    return role == UserRole.ADMIN.value


def require_identity(email: Optional[str], role: Optional[str]) -> None:
    """
    Reject calls that arrive without a caller identity.

    A missing email or role is never read as "no filter".
    """
    if not email or not role:
        raise InsufficientPermissionsError("Caller identity is required")
    try:
        UserRole(role)
    except ValueError:
        raise InsufficientPermissionsError(f"Unknown role: {role}")


def verify_ownership(resource_owner_email: str, caller_email: Optional[str], caller_role: Optional[str]) -> bool:
    """
    Verify that the caller owns the resource.

    Admins: always allowed
    Drivers: caller email must match the resource owner

    Returns:
        True if caller has ownership access, False otherwise
    """
    if is_admin(caller_role):
        return True
    return bool(caller_email) and caller_email == resource_owner_email


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """
    Dependency for admin-only endpoints.

    Usage:
        @router.get("/sos")
        async def list_alerts(admin: dict = Depends(require_admin)):
            ...
    """
    if not is_admin(current_user.get("role")):
        raise InsufficientPermissionsError("Admin access required")

    return current_user


class OwnershipGuard:
    """
    Class-based ownership guard for per-driver records.

    Usage:
        ownership_guard = OwnershipGuard()
        ownership_guard.enforce(trip.driver_email, caller_email, caller_role, "trip")
    """

    def enforce(
        self,
        resource_owner_email: str,
        caller_email: Optional[str],
        caller_role: Optional[str],
        resource_name: str = "resource"
    ):
        """
        Enforce ownership validation.

        Raises:
            InsufficientPermissionsError if the ownership check fails
        """
        require_identity(caller_email, caller_role)
        if not verify_ownership(resource_owner_email, caller_email, caller_role):
            raise InsufficientPermissionsError(
                f"Access denied. You do not have permission to access this {resource_name}."
            )

    def filter_by_ownership(self, caller_email: Optional[str], caller_role: Optional[str]) -> Optional[str]:
        """
        Get the driver email to filter queries by.

        For admins: Returns None (no filtering needed)
        For drivers: Returns their own email
        """
        require_identity(caller_email, caller_role)
        if is_admin(caller_role):
            return None
        return caller_email
