from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from app.models.database import Base


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(String(64), nullable=False, index=True)  # cedula / session id
    buyer_name = Column(String(255), nullable=False)
    buyer_phone = Column(String(64), nullable=False)
    payment_method = Column(String(50), nullable=False)
    transaction_id = Column(String(255), nullable=True)
    reference_number = Column(String(255), nullable=True)
    sender_phone = Column(String(64), nullable=True)
    sender_name = Column(String(255), nullable=True)
    card_numbers = Column(JSON, nullable=False)
    cart_items = Column(JSON, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(32), nullable=False, default="pending")  # pending | verified | rejected
    notes = Column(Text, nullable=True)
    verified_by = Column(String(255), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
