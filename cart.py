"""
Cart snapshot operations.

A user's cart is a single list stored on the user document and replaced
wholesale on every edit. The pure functions below compute the next snapshot;
``CartService`` reads the current one, applies an edit and writes the whole
list back, conditional on the ``cart_version`` it read.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Tuple

from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import (
    CartConflictError,
    InvalidQuantityError,
    LineItemNotFoundError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3

LineItem = Dict[str, Any]
Edit = Callable[[List[LineItem]], List[LineItem]]


# ---------------------- snapshot edits ----------------------

def add_product(items: List[LineItem], product: dict) -> List[LineItem]:
    """Add one unit of ``product``.

    Line items are matched by name, not id: two products sharing a name end up
    in the same line item at the price captured first.
    """
    updated = [dict(it) for it in items]
    for it in updated:
        if it.get("name") == product["name"]:
            it["quantity"] = int(it.get("quantity", 1)) + 1
            return updated
    updated.append({
        "id": str(product["id"]),
        "name": product["name"],
        "price": float(product.get("price", 0)),
        "quantity": 1,
        "image_url": product.get("image_url"),
    })
    return updated


def set_quantity(items: List[LineItem], item_id: str, quantity: int) -> List[LineItem]:
    if quantity < 1:
        raise InvalidQuantityError(quantity)
    if not any(str(it.get("id")) == str(item_id) for it in items):
        raise LineItemNotFoundError(item_id)
    return [
        {**it, "quantity": quantity} if str(it.get("id")) == str(item_id) else dict(it)
        for it in items
    ]


def remove_item(items: List[LineItem], item_id: str) -> List[LineItem]:
    remaining = [dict(it) for it in items if str(it.get("id")) != str(item_id)]
    if len(remaining) == len(items):
        raise LineItemNotFoundError(item_id)
    return remaining


def cart_total(items: List[LineItem]) -> float:
    return sum(float(it.get("price", 0)) * int(it.get("quantity", 0)) for it in items)


def item_count(items: List[LineItem]) -> int:
    return sum(int(it.get("quantity", 0)) for it in items)


def final_total(items: List[LineItem], delivery_fee: float) -> float:
    if not items:
        return 0.0
    return cart_total(items) + delivery_fee


def summarize(items: List[LineItem], delivery_fee: float, persisted: bool = True) -> dict:
    return {
        "items": items,
        "total": round(cart_total(items), 2),
        "delivery_fee": delivery_fee if items else 0,
        "final_total": round(final_total(items, delivery_fee), 2),
        "item_count": item_count(items),
        "empty": not items,
        "persisted": persisted,
    }


# ---------------------- store-backed service ----------------------

@dataclass
class CartWrite:
    items: List[LineItem]
    persisted: bool


def _version_filter(version: int) -> Any:
    # users created before versioning have no cart_version field
    if version == 0:
        return {"$in": [0, None]}
    return version


class CartService:
    def __init__(self, db: Database):
        self.users = db["users"]

    def read(self, email: str) -> Tuple[List[LineItem], int]:
        try:
            doc = self.users.find_one({"email": email}, {"cart": 1, "cart_version": 1})
        except PyMongoError as e:
            logger.error("Error fetching cart items for %s: %s", email, e)
            raise StoreUnavailableError("fetching the cart") from e
        if not doc:
            return [], 0
        return list(doc.get("cart") or []), int(doc.get("cart_version") or 0)

    def mutate(self, email: str, edit: Edit) -> CartWrite:
        """Read, edit and write back the cart.

        Validation errors raised by ``edit`` propagate before anything is
        written. A store error on the write is logged and the locally edited
        snapshot is returned unpersisted.
        """
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            items, version = self.read(email)
            updated = edit(copy.deepcopy(items))
            try:
                result = self.users.update_one(
                    {"email": email, "cart_version": _version_filter(version)},
                    {
                        "$set": {
                            "cart": updated,
                            "cart_version": version + 1,
                            "updated_at": datetime.now(timezone.utc),
                        }
                    },
                )
            except PyMongoError as e:
                logger.error("Error updating cart in database for %s: %s", email, e)
                return CartWrite(updated, persisted=False)
            if result.matched_count:
                return CartWrite(updated, persisted=True)
            logger.warning(
                "Cart for %s changed since version %s (attempt %s/%s)",
                email, version, attempt, MAX_WRITE_ATTEMPTS,
            )
        raise CartConflictError(email, MAX_WRITE_ATTEMPTS)

    def clear(self, email: str) -> bool:
        """Drop the whole snapshot, whatever version it is at."""
        update = {
            "$set": {"cart": None, "updated_at": datetime.now(timezone.utc)},
            "$inc": {"cart_version": 1},
        }
        try:
            result = self.users.update_one({"email": email}, update)
        except PyMongoError as e:
            logger.error("Error clearing cart for %s: %s", email, e)
            return False
        if not result.matched_count:
            logger.error("Error clearing cart for %s: no such user", email)
            return False
        logger.info("Cart cleared for %s", email)
        return True
