"""HTTP routes for orders, reviews and user tokens.

Handlers stay thin: parse the request, call a store or the aggregator, wrap
the result in the ``{success, ...}`` envelope.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile

import analytics
import config
from auth import create_admin_token, create_token, hash_password, require_admin, require_user
from database import create_document, get_documents, serialize_doc
from eligibility import find_eligible_items
from errors import Conflict, ServiceUnavailable, Unauthenticated
from orders import OrderStore
from reviews import ImageUpload, ReviewStore
from schemas import (
    AdminLoginBody,
    LoginBody,
    MarkViewedBody,
    OrderListFilter,
    PlaceOrderBody,
    SignupBody,
    StatusBody,
    User,
    VerifyPaymentBody,
)


# ----------------------- Dependencies -----------------------
def get_db(request: Request):
    db = request.app.state.database.connect()
    if db is None:
        raise ServiceUnavailable("Database not available")
    return db


def get_order_store(db=Depends(get_db)) -> OrderStore:
    return OrderStore(db)


def get_review_store(request: Request, db=Depends(get_db)) -> ReviewStore:
    return ReviewStore(db, request.app.state.images)


# ----------------------- Orders -----------------------
order_router = APIRouter(prefix="/api/order", tags=["orders"])


@order_router.post("/list")
def list_orders(
    filters: Optional[OrderListFilter] = None,
    _admin=Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    orders = store.list_orders()
    if filters is not None:
        orders = analytics.filter_orders(
            orders,
            status=filters.status,
            payment_method=filters.paymentMethod,
            date_range=filters.dateRange,
        )
    return {"success": True, "orders": serialize_doc(orders)}


@order_router.post("/status")
def update_status(body: StatusBody, _admin=Depends(require_admin), store: OrderStore = Depends(get_order_store)):
    store.set_status(body.orderId, body.status)
    return {"success": True, "message": "Status Updated"}


@order_router.get("/unviewed-count")
def unviewed_count(_admin=Depends(require_admin), store: OrderStore = Depends(get_order_store)):
    return {"success": True, "count": store.count_unviewed()}


@order_router.get("/unviewed")
def unviewed_orders(_admin=Depends(require_admin), store: OrderStore = Depends(get_order_store)):
    return {"success": True, "orders": serialize_doc(store.list_unviewed())}


@order_router.post("/mark-viewed")
def mark_viewed(body: MarkViewedBody, _admin=Depends(require_admin), store: OrderStore = Depends(get_order_store)):
    store.mark_viewed(body.orderIds)
    return {"success": True}


@order_router.get("/analytics")
def order_analytics(
    days: int = Query(30, ge=1),
    _admin=Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
    db=Depends(get_db),
):
    products = get_documents(db, "product")
    report = analytics.build_analytics(store.list_orders(), products, days=days)
    return {"success": True, "analytics": serialize_doc(report)}


@order_router.get("/dashboard")
def dashboard(_admin=Depends(require_admin), store: OrderStore = Depends(get_order_store), db=Depends(get_db)):
    products = get_documents(db, "product")
    summary = analytics.dashboard_summary(store.list_orders(), products)
    return {"success": True, "dashboard": serialize_doc(summary)}


@order_router.post("/place")
def place_order(body: PlaceOrderBody, user_id: str = Depends(require_user), store: OrderStore = Depends(get_order_store)):
    order_id = store.place_order(user_id, body.items, body.address, body.paymentMethod)
    return {"success": True, "message": "Order Placed", "orderId": str(order_id)}


@order_router.post("/userOrders")
@order_router.post("/userorders", include_in_schema=False)
def user_orders(
    user_id: str = Depends(require_user),
    store: OrderStore = Depends(get_order_store),
    reviews: ReviewStore = Depends(get_review_store),
):
    reviewed = reviews.reviewed_product_ids(user_id)
    orders = store.list_for_user(user_id)
    for order in orders:
        for item in order.get("items", []):
            item["reviewed"] = bool(item.get("reviewed")) or str(item.get("product")) in reviewed
    return {"success": True, "orders": serialize_doc(orders)}


@order_router.post("/verifyStripe")
def verify_stripe(body: VerifyPaymentBody, user_id: str = Depends(require_user), store: OrderStore = Depends(get_order_store)):
    if store.verify_payment(user_id, body.orderId, body.success):
        return {"success": True}
    return {"success": False, "message": "Payment was not completed"}


# ----------------------- Reviews -----------------------
review_router = APIRouter(prefix="/api/review", tags=["reviews"])


@review_router.post("/add", status_code=201)
def add_review(
    productId: Optional[str] = Form(None),
    orderId: Optional[str] = Form(None),
    rating: Optional[str] = Form(None),
    comment: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user_id: str = Depends(require_user),
    store: ReviewStore = Depends(get_review_store),
):
    upload = None
    if image is not None and image.filename:
        upload = ImageUpload(image.filename, image.content_type, image.file.read())
    review = store.add_review(user_id, productId, orderId or None, rating, comment, upload)
    return {"success": True, "message": "Review submitted successfully", "review": serialize_doc(review)}


@review_router.get("/product/{product_id}")
def product_reviews(product_id: str, store: ReviewStore = Depends(get_review_store)):
    listing = store.list_for_product(product_id)
    return {"success": True, **serialize_doc(listing)}


@review_router.get("/eligible")
def eligible_products(
    user_id: str = Depends(require_user),
    orders: OrderStore = Depends(get_order_store),
    reviews: ReviewStore = Depends(get_review_store),
):
    products = find_eligible_items(orders, reviews, user_id)
    return {"success": True, "products": serialize_doc(products)}


# ----------------------- Users -----------------------
user_router = APIRouter(prefix="/api/user", tags=["users"])


@user_router.post("/register")
def register(body: SignupBody, db=Depends(get_db)):
    if db["user"].find_one({"email": body.email}):
        raise Conflict("User already exists")
    user = User(name=body.name, email=body.email, password_hash=hash_password(body.password))
    user_id = create_document(db, "user", user)
    return {"success": True, "token": create_token({"id": str(user_id)})}


@user_router.post("/login")
def login(body: LoginBody, db=Depends(get_db)):
    user = db["user"].find_one({"email": body.email})
    if not user or user.get("password_hash") != hash_password(body.password):
        raise Unauthenticated("Invalid credentials")
    return {"success": True, "token": create_token({"id": str(user["_id"])})}


@user_router.post("/admin")
def admin_login(body: AdminLoginBody):
    if body.email != config.ADMIN_EMAIL or body.password != config.ADMIN_PASSWORD:
        raise Unauthenticated("Invalid credentials")
    return {"success": True, "token": create_admin_token()}
