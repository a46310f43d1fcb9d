"""Which delivered order items a user may still review.

An item is eligible when its order is delivered and the user has no review
for its product. The review collection is the source of truth; a legacy
``reviewed`` flag on an order item also excludes it.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Set

from database import as_utc
from schemas import DELIVERED

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _updated(order: dict) -> datetime:
    return as_utc(order.get("updatedAt")) or _EPOCH


def eligible_items(orders: Iterable[dict], reviewed_product_ids: Set[str]) -> List[dict]:
    eligible = []
    for order in sorted(orders, key=_updated, reverse=True):
        for item in order.get("items", []):
            product_id = item.get("product")
            if not product_id:
                continue
            product_id = str(product_id)
            if item.get("reviewed") or product_id in reviewed_product_ids:
                continue
            images = item.get("image") or []
            eligible.append(
                {
                    "orderId": str(order["_id"]),
                    "productId": product_id,
                    "productName": item.get("name"),
                    "productImage": images[0] if images else None,
                    "deliveredDate": order.get("updatedAt"),
                    "orderDate": order.get("date"),
                }
            )
    return eligible


def find_eligible_items(order_store, review_store, user_id: str) -> List[dict]:
    orders = order_store.list_for_user(user_id, status=DELIVERED)
    return eligible_items(orders, review_store.reviewed_product_ids(user_id))
