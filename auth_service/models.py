# auth_service/models.py
from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String

from .database import Base  # Import Base from our database module


# --- Database Model: User ---
class User(Base):
    __tablename__ = "users"
    email = Column(String, primary_key=True)
    password_hash = Column(String, nullable=False)
    phone = Column(String)
    two_fa_enabled = Column(Integer, default=0, nullable=False)


# --- Database Model: InventoryItem ---
class InventoryItem(Base):
    __tablename__ = "inventory"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_inventory_quantity"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    user_email = Column(String, ForeignKey("users.email"), index=True, nullable=False)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "quantity": self.quantity}


# --- Database Model: UserSettings (alert policy + SMS switch) ---
class UserSettings(Base):
    __tablename__ = "user_settings"
    email = Column(String, ForeignKey("users.email"), primary_key=True)
    sms_enabled = Column(Boolean, default=False, nullable=False)
    minimum_threshold = Column(Integer, default=2, nullable=False)
    notify_at_zero = Column(Boolean, default=False, nullable=False)
