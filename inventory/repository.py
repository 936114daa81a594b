# inventory/repository.py - per-user item CRUD
from typing import List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from auth_service.errors import InvalidInput, NotFound, StorageFailure
from auth_service.models import InventoryItem

SORT_KEYS = {
    "name": lambda item: item["name"].lower(),
    "quantity": lambda item: item["quantity"],
}


def _validate(name, quantity):
    if name is None or not name.strip():
        raise InvalidInput("Name cannot be empty", reason="invalid_name")
    if quantity is None or quantity < 0:
        raise InvalidInput("Quantity cannot be negative", reason="invalid_quantity")


class InventoryRepository:
    """
    Items are always addressed together with their owner's email, which the
    caller passes in explicitly (there is no ambient "current user").
    Items come back as plain dicts so they outlive the DB session.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def _owned(self, db, email, item_id):
        item = db.get(InventoryItem, item_id)
        if item is None or item.user_email != email:
            raise NotFound(f"Item {item_id} not found")
        return item

    def add_item(self, email: str, name: str, quantity: int) -> dict:
        _validate(name, quantity)
        try:
            with self._session_factory() as db:
                item = InventoryItem(name=name, quantity=quantity, user_email=email)
                db.add(item)
                db.commit()
                db.refresh(item)
                return item.to_dict()
        except SQLAlchemyError as e:
            logger.error(f"Failed to add item '{name}' for {email}: {e}")
            raise StorageFailure("Failed to add item") from e

    def list_items(self, email: str, sort_by: Optional[str] = None) -> List[dict]:
        if sort_by is not None and sort_by not in SORT_KEYS:
            raise InvalidInput(f"Cannot sort by {sort_by}", reason="invalid_sort")
        try:
            with self._session_factory() as db:
                rows = (
                    db.query(InventoryItem)
                    .filter(InventoryItem.user_email == email)
                    .order_by(InventoryItem.id)
                    .all()
                )
                items = [row.to_dict() for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list items for {email}: {e}")
            raise StorageFailure("Failed to load items") from e
        if sort_by:
            items.sort(key=SORT_KEYS[sort_by])
        return items

    def get_item(self, email: str, item_id: int) -> dict:
        try:
            with self._session_factory() as db:
                return self._owned(db, email, item_id).to_dict()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load item {item_id} for {email}: {e}")
            raise StorageFailure("Failed to load item") from e

    def update_item(self, email: str, item_id: int, name: str, quantity: int):
        """Rename / set quantity. Returns (before, after_item) like change_quantity."""
        _validate(name, quantity)
        try:
            with self._session_factory() as db:
                item = self._owned(db, email, item_id)
                before = item.quantity
                item.name = name
                item.quantity = quantity
                db.commit()
                return before, item.to_dict()
        except SQLAlchemyError as e:
            logger.error(f"Failed to update item {item_id}: {e}")
            raise StorageFailure("Failed to update item") from e

    def delete_item(self, email: str, item_id: int) -> None:
        try:
            with self._session_factory() as db:
                db.delete(self._owned(db, email, item_id))
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete item {item_id}: {e}")
            raise StorageFailure("Failed to delete item") from e

    def change_quantity(self, email: str, item_id: int, delta: int):
        """Apply ``delta`` (floored at zero). Returns (before, after_item)."""
        try:
            with self._session_factory() as db:
                item = self._owned(db, email, item_id)
                before = item.quantity
                item.quantity = max(0, before + delta)
                db.commit()
                return before, item.to_dict()
        except SQLAlchemyError as e:
            logger.error(f"Failed to change quantity of item {item_id}: {e}")
            raise StorageFailure("Failed to update quantity") from e

    def increment(self, email: str, item_id: int):
        return self.change_quantity(email, item_id, 1)

    def decrement(self, email: str, item_id: int):
        return self.change_quantity(email, item_id, -1)
