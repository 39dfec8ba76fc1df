"""Immutable credit ledger entry."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class UserCreditTransaction(Base):
    """One row per credit-affecting event, with the balance right after it."""

    __tablename__ = "user_credit_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    credit = Column(Integer, nullable=False)
    balance = Column(Integer, nullable=False)
    billing_id = Column(Integer, ForeignKey("user_billing.id"), nullable=True, index=True)
    type = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    billing = relationship("UserBilling", back_populates="transactions")
