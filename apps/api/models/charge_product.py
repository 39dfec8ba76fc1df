"""Static catalog of purchasable credit bundles."""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from database import Base


class ChargeProduct(Base):
    __tablename__ = "charge_product"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    credit = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)
    currency = Column(String, nullable=False, default="usd")
    state = Column(String, nullable=False, default="enable")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
