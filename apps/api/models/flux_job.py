"""Generation job record written when the provider accepts a task."""

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class FluxData(Base):
    __tablename__ = "flux_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    replicate_id = Column(String, nullable=False, unique=True, index=True)
    model = Column(String, nullable=False)
    input_prompt = Column(Text, nullable=True)
    aspect_ratio = Column(String, nullable=True)
    is_private = Column(Integer, nullable=False, default=0)
    locale = Column(String, nullable=True)
    task_status = Column(String, nullable=False, default="processing")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    billing = relationship("UserBilling", back_populates="flux", uselist=False)
