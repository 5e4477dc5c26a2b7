"""
Farmer/dealer connection enumerations.
"""

import enum


class ConnectionStatus(str, enum.Enum):
    """
    Connection status.

    PENDING: Waiting for the other party to decide (sole initial state)
    APPROVED: Both parties are linked (terminal)
    REJECTED: Request declined, no link created (terminal)
    """
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# States that block a new request for the same farmer/dealer pair
ACTIVE_CONNECTION_STATUSES = (ConnectionStatus.PENDING, ConnectionStatus.APPROVED)


class ConnectionInitiator(str, enum.Enum):
    """Which side of the pair sent the request."""
    FARMER = "farmer"
    DEALER = "dealer"


class MembershipKind(str, enum.Enum):
    """
    Which membership set a row belongs to.

    FARMER rows form a dealer's connected farmers,
    DEALER rows form a farmer's connected dealers.
    """
    FARMER = "FARMER"
    DEALER = "DEALER"
