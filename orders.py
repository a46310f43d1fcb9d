"""Order Store: persistence and state changes of orders."""
from typing import Iterable, List, Optional

import structlog
from pymongo import DESCENDING

from database import create_document, get_documents, parse_object_id, utcnow
from errors import NotFound, ValidationError
from schemas import CASH_ON_DELIVERY, ORDER_PLACED, Order, OrderItem

logger = structlog.get_logger(__name__)

COLLECTION = "order"


def order_amount(items: Iterable[OrderItem]) -> float:
    return sum(item.price * item.quantity for item in items)


class OrderStore:
    def __init__(self, db):
        self.db = db
        self.collection = db[COLLECTION]

    def list_orders(self) -> List[dict]:
        """All orders in storage order; filtering is left to the caller."""
        return get_documents(self.db, COLLECTION)

    def list_for_user(self, user_id: str, status: Optional[str] = None) -> List[dict]:
        filt = {"user": user_id}
        if status:
            filt["status"] = status
        return get_documents(self.db, COLLECTION, filt)

    def get(self, order_id) -> dict:
        doc = self.collection.find_one({"_id": parse_object_id(order_id, "order id")})
        if not doc:
            raise NotFound("Order not found")
        return doc

    def set_status(self, order_id, status: str):
        res = self.collection.update_one(
            {"_id": parse_object_id(order_id, "order id")},
            {"$set": {"status": status, "updatedAt": utcnow()}},
        )
        if res.matched_count == 0:
            raise NotFound("Order not found")
        logger.info("Order status updated", order_id=str(order_id), status=status)

    def mark_viewed(self, order_ids: Iterable) -> int:
        ids = [parse_object_id(oid, "order id") for oid in order_ids]
        if not ids:
            return 0
        res = self.collection.update_many({"_id": {"$in": ids}}, {"$set": {"viewed": True}})
        return res.modified_count

    def count_unviewed(self) -> int:
        return self.collection.count_documents({"viewed": False})

    def list_unviewed(self) -> List[dict]:
        return get_documents(self.db, COLLECTION, {"viewed": False}, sort=[("date", DESCENDING)])

    def place_order(self, user_id: str, items: List[OrderItem], address: dict, payment_method: str):
        if not items:
            raise ValidationError("Cannot place an order without items")
        items = [i if isinstance(i, OrderItem) else OrderItem.model_validate(i) for i in items]

        order = Order(
            user=user_id,
            items=items,
            amount=order_amount(items),
            address=address,
            status=ORDER_PLACED,
            paymentMethod=payment_method,
            # only a verification callback marks an order paid; COD never is
            payment=False,
            date=utcnow(),
            viewed=False,
        )
        order_id = create_document(self.db, COLLECTION, order)
        if payment_method == CASH_ON_DELIVERY:
            self.clear_cart(user_id)
        logger.info(
            "Order placed",
            order_id=str(order_id),
            user_id=user_id,
            amount=order.amount,
            payment_method=payment_method,
        )
        return order_id

    def verify_payment(self, user_id: str, order_id, success) -> bool:
        """Apply the result of an online payment; orders are never removed."""
        oid = parse_object_id(order_id, "order id")
        order = self.collection.find_one({"_id": oid, "user": user_id})
        if not order:
            raise NotFound("Order not found")

        if str(success).lower() != "true":
            logger.warning("Payment not completed", order_id=str(oid), user_id=user_id)
            return False

        self.collection.update_one({"_id": oid}, {"$set": {"payment": True, "updatedAt": utcnow()}})
        self.clear_cart(user_id)
        logger.info("Payment verified", order_id=str(oid), user_id=user_id)
        return True

    def clear_cart(self, user_id: str):
        try:
            uid = parse_object_id(user_id, "user id")
        except ValidationError:
            return
        self.db["user"].update_one({"_id": uid}, {"$set": {"cartData": {}}})
