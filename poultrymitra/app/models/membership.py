"""
User membership model.

Rows of a user's connected-farmers or connected-dealers set.
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.sql import func
from poultrymitra.app.db.session import Base
from poultrymitra.app.models.connection_enums import MembershipKind


class UserMembership(Base):
    """
    One member of one user's set.

    An approved connection writes two rows: (farmer, dealer, DEALER) and
    (dealer, farmer, FARMER). The unique constraint makes each set a set.
    """
    __tablename__ = "user_memberships"
    __table_args__ = (
        UniqueConstraint("owner_id", "member_id", "kind", name="uq_user_memberships_owner_member_kind"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    kind = Column(Enum(MembershipKind), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<UserMembership(owner_id={self.owner_id}, member_id={self.member_id}, kind='{self.kind.value}')>"
