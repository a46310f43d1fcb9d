"""Review Store: review submission and per-product review listings.

At most one review exists per (user, product). The unique index created by
``ensure_indexes`` enforces it; the lookup before insert only exists to give
the common case a friendly message before any image is uploaded.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import List, NamedTuple, Optional, Set

import structlog
from bson.errors import InvalidId
from bson.objectid import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, OperationFailure

from database import create_document, get_documents, parse_object_id
from errors import Conflict, ValidationError
from schemas import DELIVERED, Review, ReviewImage

logger = structlog.get_logger(__name__)

COLLECTION = "review"
ANONYMOUS = "Anonymous"


class ImageUpload(NamedTuple):
    filename: str
    content_type: Optional[str]
    data: bytes


def ensure_indexes(db):
    try:
        db[COLLECTION].create_index([("user", ASCENDING), ("product", ASCENDING)], unique=True)
    except OperationFailure as e:
        # existing duplicates; the lookup before insert still guards new reviews
        logger.error("Unique review index not created", error=str(e))
    db[COLLECTION].create_index([("product", ASCENDING), ("createdAt", DESCENDING)])


def average_rating(ratings: List[float]) -> float:
    """Mean rounded half-up to one decimal; 0 when nothing is rated."""
    if not ratings:
        return 0
    mean = sum(ratings) / len(ratings)
    return float(Decimal(str(mean)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _clean_rating(rating) -> Optional[int]:
    if rating is None or rating == "":
        return None
    try:
        value = float(rating)
    except (TypeError, ValueError):
        raise ValidationError("Rating must be a number between 1 and 5")
    if not value.is_integer() or not 1 <= value <= 5:
        raise ValidationError("Rating must be a number between 1 and 5")
    return int(value)


def _clean_comment(comment) -> Optional[str]:
    if comment is None:
        return None
    comment = str(comment).strip()
    return comment or None


class ReviewStore:
    def __init__(self, db, images=None):
        self.db = db
        self.collection = db[COLLECTION]
        self.images = images

    def exists(self, user_id: str, product_id: str) -> bool:
        return self.collection.find_one({"user": user_id, "product": product_id}) is not None

    def reviewed_product_ids(self, user_id: str) -> Set[str]:
        return {str(r["product"]) for r in self.collection.find({"user": user_id}, {"product": 1})}

    def _delivered_order_with(self, user_id: str, order_id: ObjectId, product_id: str) -> Optional[dict]:
        order = self.db["order"].find_one({"_id": order_id, "user": user_id, "status": DELIVERED})
        if order and any(str(item.get("product")) == product_id for item in order.get("items", [])):
            return order
        return None

    def add_review(
        self,
        user_id: str,
        product_id: Optional[str],
        order_id: Optional[str] = None,
        rating=None,
        comment=None,
        image: Optional[ImageUpload] = None,
    ) -> dict:
        if not product_id:
            raise ValidationError("Product ID is required")
        product_id = str(parse_object_id(product_id, "product id"))
        rating = _clean_rating(rating)
        comment = _clean_comment(comment)
        if rating is None and comment is None:
            raise ValidationError("Please provide at least a rating or a comment")
        oid = parse_object_id(order_id, "order id") if order_id else None

        if self.exists(user_id, product_id):
            raise Conflict("You have already reviewed this product")

        linked_order = None
        if oid is not None:
            order = self._delivered_order_with(user_id, oid, product_id)
            if order:
                linked_order = str(order["_id"])
            else:
                logger.warning(
                    "Review not linked to a delivered order",
                    user_id=user_id,
                    product_id=product_id,
                    order_id=str(oid),
                )

        image_data = None
        if image is not None:
            if self.images is None:
                raise ValidationError("Image uploads are not available")
            image_data = ReviewImage(**self.images.save(image.filename, image.content_type, image.data))

        review = Review(
            user=user_id,
            product=product_id,
            order=linked_order,
            rating=rating,
            comment=comment,
            image=image_data,
        )
        try:
            review_id = create_document(self.db, COLLECTION, review)
        except DuplicateKeyError:
            if image_data is not None:
                self.images.delete(image_data.public_id)
            raise Conflict("You have already reviewed this product")

        created = self.collection.find_one({"_id": review_id})
        logger.info("Review created", review_id=str(review_id), user_id=user_id, product_id=product_id)
        return {
            "_id": created["_id"],
            "rating": created.get("rating"),
            "comment": created.get("comment"),
            "image": created.get("image"),
            "createdAt": created.get("createdAt"),
        }

    def _user_names(self, user_ids) -> dict:
        oids = []
        for uid in set(user_ids):
            try:
                oids.append(ObjectId(uid))
            except (InvalidId, TypeError):
                continue
        if not oids:
            return {}
        return {str(u["_id"]): u.get("name") for u in self.db["user"].find({"_id": {"$in": oids}}, {"name": 1})}

    def list_for_product(self, product_id: str) -> dict:
        reviews = get_documents(self.db, COLLECTION, {"product": product_id}, sort=[("createdAt", DESCENDING)])
        names = self._user_names(r.get("user") for r in reviews)

        ratings = [r["rating"] for r in reviews if isinstance(r.get("rating"), (int, float)) and r["rating"] > 0]
        return {
            "reviews": [
                {
                    "_id": r["_id"],
                    "userName": names.get(str(r.get("user"))) or ANONYMOUS,
                    "rating": r.get("rating") or None,
                    "comment": r.get("comment") or None,
                    "image": r.get("image") or None,
                    "createdAt": r.get("createdAt"),
                }
                for r in reviews
            ],
            "totalReviews": len(reviews),
            "averageRating": average_rating(ratings),
        }
