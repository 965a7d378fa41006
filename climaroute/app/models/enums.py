"""
User roles enumeration.

Defines the role types carried in access tokens.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Fleet operator, sees every driver's trips and alerts
        USER: Driver, sees only their own records (default role)
    """
    ADMIN = "admin"
    USER = "user"
