from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from app.models.card_state import card_state
from app.models.database import Base


class CardInventory(Base):
    __tablename__ = "card_inventory"
    __table_args__ = (
        CheckConstraint("card_number > 0", name="ck_card_inventory_card_number_positive"),
        CheckConstraint(
            "sold_to IS NULL OR (reserved_by IS NULL AND reserved_until IS NULL)",
            name="ck_card_inventory_single_state",
        ),
    )

    card_number = Column(Integer, primary_key=True, autoincrement=False)
    numbers = Column(JSON, nullable=False)
    image_url = Column(String(1024), nullable=True)
    image_filename = Column(String(255), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    # Lifecycle columns. Only app.services.card_store.apply_transition writes these.
    is_available = Column(Boolean, default=True, nullable=False, index=True)
    reserved_by = Column(String(64), nullable=True, index=True)
    reserved_until = Column(DateTime(timezone=True), nullable=True, index=True)
    sold_to = Column(String(64), nullable=True, index=True)
    sold_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def state(self):
        return card_state(self)
