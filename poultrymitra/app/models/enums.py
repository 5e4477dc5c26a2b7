"""
User roles and plan enumerations.

Defines the account types for the poultry management system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Platform operator with system-level access
        FARMER: Runs flock batches and buys from dealers (default role)
        DEALER: Sells feed, chicks and medicine to connected farmers
    """
    ADMIN = "ADMIN"
    FARMER = "FARMER"
    DEALER = "DEALER"


class PlanType(str, enum.Enum):
    """
    Subscription plan.

    FREE dealers may connect a limited number of farmers; PREMIUM is unlimited.
    """
    FREE = "FREE"
    PREMIUM = "PREMIUM"
