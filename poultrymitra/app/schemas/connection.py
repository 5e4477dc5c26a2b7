"""
Farmer/dealer connection schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from poultrymitra.app.models.connection_enums import ConnectionInitiator, ConnectionStatus


class ConnectionRequest(BaseModel):
    """
    Request a connection with another user.

    Farmers pass dealer_id, dealers pass farmer_id; the caller fills the other side.
    """
    farmer_id: Optional[int] = None
    dealer_id: Optional[int] = None


class ConnectionByDealerCode(BaseModel):
    dealer_code: str = Field(..., min_length=1, max_length=20)


class ConnectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    farmer_id: int
    dealer_id: int
    status: ConnectionStatus
    requested_by: ConnectionInitiator
    created_at: datetime
    decided_at: Optional[datetime] = None


class ConnectionListResponse(BaseModel):
    connections: List[ConnectionResponse]
    total: int


class MembershipResponse(BaseModel):
    user_id: int
    connected_farmers: List[int]
    connected_dealers: List[int]
