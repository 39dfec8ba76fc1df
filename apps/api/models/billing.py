"""Billing record explaining why credits moved."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base
from models.enums import BillingState


class UserBilling(Base):
    """Business reason behind a debit; a flux job is billed at most once."""

    __tablename__ = "user_billing"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    flux_id = Column(Integer, ForeignKey("flux_data.id"), nullable=True, unique=True)
    state = Column(String, nullable=False, default=BillingState.DONE.value)
    amount = Column(Integer, nullable=False)
    type = Column(String, nullable=False)
    description = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    flux = relationship("FluxData", back_populates="billing")
    transactions = relationship("UserCreditTransaction", back_populates="billing")
