from app.models.database import Base, get_db
from app.models.card import CardInventory
from app.models.purchase_order import PurchaseOrder

__all__ = ["Base", "get_db", "CardInventory", "PurchaseOrder"]
