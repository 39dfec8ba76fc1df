"""Per-user credit balance."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from database import Base


class UserCredit(Base):
    """Spendable credit balance; the only hot shared row in the ledger."""

    __tablename__ = "user_credit"
    __table_args__ = (CheckConstraint("credit >= 0", name="ck_user_credit_non_negative"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, unique=True, index=True)
    credit = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
