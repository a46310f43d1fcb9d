from datetime import datetime, timezone

from bson.objectid import ObjectId

from eligibility import eligible_items, find_eligible_items


def _order(updated, *products, reviewed=()):
    return {
        "_id": ObjectId(),
        "status": "Delivered",
        "date": datetime(2026, 3, 1, tzinfo=timezone.utc),
        "updatedAt": updated,
        "items": [
            {"product": p, "name": f"Product {p}", "image": [f"{p}.jpg", f"{p}-2.jpg"], "reviewed": p in reviewed}
            for p in products
        ],
    }


class TestEligibleItems:
    def test_all_items_of_delivered_orders(self):
        order = _order(datetime(2026, 3, 5, tzinfo=timezone.utc), "a", "b")

        result = eligible_items([order], set())

        assert [r["productId"] for r in result] == ["a", "b"]
        assert result[0] == {
            "orderId": str(order["_id"]),
            "productId": "a",
            "productName": "Product a",
            "productImage": "a.jpg",
            "deliveredDate": order["updatedAt"],
            "orderDate": order["date"],
        }

    def test_reviewed_products_excluded_even_without_flag(self):
        order = _order(datetime(2026, 3, 5, tzinfo=timezone.utc), "a", "b")
        assert [r["productId"] for r in eligible_items([order], {"a"})] == ["b"]

    def test_legacy_flag_excludes(self):
        order = _order(datetime(2026, 3, 5, tzinfo=timezone.utc), "a", "b", reviewed={"b"})
        assert [r["productId"] for r in eligible_items([order], set())] == ["a"]

    def test_most_recently_updated_first(self):
        old = _order(datetime(2026, 1, 1, tzinfo=timezone.utc), "old")
        new = _order(datetime(2026, 4, 1, tzinfo=timezone.utc), "new")
        assert [r["productId"] for r in eligible_items([old, new], set())] == ["new", "old"]

    def test_item_without_image(self):
        order = _order(datetime(2026, 3, 5, tzinfo=timezone.utc), "a")
        order["items"][0]["image"] = []
        assert eligible_items([order], set())[0]["productImage"] is None


class TestFindEligibleItems:
    def test_only_delivered_orders(self, order_store, review_store, user_id, items, product_ids):
        order_store.place_order(user_id, items, {}, "COD")
        assert find_eligible_items(order_store, review_store, user_id) == []

    def test_after_delivery_and_review(self, order_store, review_store, user_id, product_ids, delivered_order):
        found = find_eligible_items(order_store, review_store, user_id)
        assert sorted(r["productId"] for r in found) == sorted(product_ids)

        review_store.add_review(user_id, product_ids[0], rating=5)

        found = find_eligible_items(order_store, review_store, user_id)
        assert [r["productId"] for r in found] == [product_ids[1]]

    def test_review_without_order_link_still_excludes(self, order_store, review_store, user_id, product_ids, delivered_order):
        review_store.add_review(user_id, product_ids[1], comment="bought it elsewhere")
        found = find_eligible_items(order_store, review_store, user_id)
        assert [r["productId"] for r in found] == [product_ids[0]]

    def test_other_users_orders_ignored(self, order_store, review_store, product_ids, delivered_order):
        assert find_eligible_items(order_store, review_store, str(ObjectId())) == []
