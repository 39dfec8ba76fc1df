"""Charge order tracked through payment confirmation."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base
from models.enums import OrderPhase


class ChargeOrder(Base):
    """Purchase attempt; only a Pending order may change phase."""

    __tablename__ = "charge_order"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    charge_product_id = Column(Integer, ForeignKey("charge_product.id"), nullable=False)
    phase = Column(String, nullable=False, default=OrderPhase.PENDING.value, index=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String, nullable=False, default="usd")
    payment_intent_id = Column(String, nullable=True, index=True)
    payment_at = Column(DateTime(timezone=True), nullable=True)
    result = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    product = relationship("ChargeProduct")
