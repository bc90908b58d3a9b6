"""
Checkout confirmation flow.

One call reads the cart snapshot, records an order with a serialized copy of
it, fires the order notification and clears the cart. The cart is cleared even
when the order insert or the notification failed. An idempotency key ties a
checkout attempt to at most one order.
"""
from __future__ import annotations

import json
import logging
import uuid
from typing import List, Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from cart import CartService, cart_total
from database import create_document
from errors import StoreUnavailableError
from notifications import OrderNotifier
from schemas import ORDER_STATUS_PENDING, Order

logger = logging.getLogger(__name__)

EMPTY_CART_MESSAGE = "Cart is empty or not valid."


def new_idempotency_key() -> str:
    return uuid.uuid4().hex


def build_order(email: str, cart: List[dict], delivery_fee: float, idempotency_key: Optional[str]) -> Order:
    return Order(
        email=email,
        items=json.dumps(cart),
        total_price=round(cart_total(cart), 2),
        delivery_fee=delivery_fee,
        status=ORDER_STATUS_PENDING,
        idempotency_key=idempotency_key,
    )


def _existing_result(order: dict) -> dict:
    return {
        "processed": True,
        "order_id": str(order["_id"]),
        "total_price": order.get("total_price", 0),
        "delivery_fee": order.get("delivery_fee", 0),
        "final_total": round(order.get("total_price", 0) + order.get("delivery_fee", 0), 2),
        "status": order.get("status"),
        "cart_cleared": False,
        "message": "Order already processed.",
    }


class CheckoutService:
    def __init__(self, db: Database, notifier: OrderNotifier, delivery_fee: float):
        self.db = db
        self.orders = db["orders"]
        self.carts = CartService(db)
        self.notifier = notifier
        self.delivery_fee = delivery_fee

    def _find_by_key(self, key: str) -> Optional[dict]:
        try:
            return self.orders.find_one({"idempotency_key": key})
        except PyMongoError as e:
            logger.error("Error looking up checkout %s: %s", key, e)
            raise StoreUnavailableError("looking up the checkout") from e

    def confirm(self, email: str, idempotency_key: Optional[str] = None) -> dict:
        if idempotency_key:
            existing = self._find_by_key(idempotency_key)
            if existing:
                logger.info("Checkout %s already produced order %s", idempotency_key, existing["_id"])
                return _existing_result(existing)
        key = idempotency_key or new_idempotency_key()

        cart, _ = self.carts.read(email)

        result = {
            "processed": False,
            "order_id": None,
            "total_price": 0,
            "delivery_fee": 0,
            "final_total": 0,
            "status": None,
            "cart_cleared": False,
            "message": EMPTY_CART_MESSAGE,
        }

        if cart:
            order = build_order(email, cart, self.delivery_fee, key)
            result.update(
                total_price=order.total_price,
                delivery_fee=order.delivery_fee,
                final_total=round(order.total_price + order.delivery_fee, 2),
            )
            try:
                result["order_id"] = create_document(self.db, "orders", order)
            except DuplicateKeyError:
                existing = self._find_by_key(key)
                if existing:
                    return _existing_result(existing)
                logger.error("Error adding order to orders table for %s: duplicate key %s", email, key)
                result["message"] = "Order could not be recorded."
            except PyMongoError as e:
                logger.error("Error adding order to orders table for %s: %s", email, e)
                result["message"] = "Order could not be recorded."
            else:
                logger.info("Order %s added for %s", result["order_id"], email)
                result.update(processed=True, status=order.status, message="The order was confirmed!")
                self.notifier.notify(email, cart, order.total_price)
        else:
            logger.info("%s (%s)", EMPTY_CART_MESSAGE, email)

        result["cart_cleared"] = self.carts.clear(email)
        return result


def list_orders(db: Database, email: str) -> List[dict]:
    orders = []
    for o in db["orders"].find({"email": email}).sort([("created_at", -1)]):
        o["id"] = str(o.pop("_id"))
        o["items"] = json.loads(o.get("items") or "[]")
        orders.append(o)
    return orders
