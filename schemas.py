"""
Database Schemas for the shop backend

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name.
Request bodies that are not stored live at the bottom of the module.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, EmailStr, Field

OrderStatus = Literal["Order Placed", "Processing", "Shipped", "Delivered", "Cancelled"]
PaymentMethod = Literal["COD", "Card", "PayPal"]

ORDER_PLACED = "Order Placed"
DELIVERED = "Delivered"
CASH_ON_DELIVERY = "COD"


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr
    password_hash: str = Field(..., description="Hashed password")
    cartData: Dict[str, Any] = Field(default_factory=dict)


class OrderItem(BaseModel):
    product: str = Field(
        ...,
        validation_alias=AliasChoices("product", "_id", "productId"),
        description="Referenced product id",
    )
    name: str
    image: List[str] = Field(default_factory=list)
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    size: Optional[str] = None
    sellername: Optional[str] = None


class Order(BaseModel):
    user: str
    items: List[OrderItem]
    amount: float
    address: Dict[str, Any]
    status: OrderStatus = ORDER_PLACED
    paymentMethod: PaymentMethod
    payment: bool = False
    date: datetime
    viewed: bool = False


class ReviewImage(BaseModel):
    public_id: str
    url: str


class Review(BaseModel):
    user: str
    product: str
    order: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = None
    image: Optional[ReviewImage] = None


# ----------------------- Request bodies -----------------------
class SignupBody(BaseModel):
    name: str
    email: EmailStr
    password: str


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class AdminLoginBody(BaseModel):
    email: str
    password: str


class PlaceOrderBody(BaseModel):
    items: List[OrderItem] = Field(default_factory=list)
    address: Dict[str, Any]
    paymentMethod: PaymentMethod = CASH_ON_DELIVERY


class OrderListFilter(BaseModel):
    status: Optional[OrderStatus] = None
    paymentMethod: Optional[PaymentMethod] = None
    dateRange: Optional[Literal["today", "week", "month"]] = None


class StatusBody(BaseModel):
    orderId: str
    status: OrderStatus


class MarkViewedBody(BaseModel):
    orderIds: List[str]


class VerifyPaymentBody(BaseModel):
    orderId: str
    success: Union[bool, str]
