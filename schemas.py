"""
Database Schemas for Click Store

Each Pydantic model corresponds to a MongoDB collection (users, products,
categories, orders). Request and response payloads live at the bottom.
"""
from __future__ import annotations
from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime

ORDER_STATUS_PENDING = "pending"


class CartLineItem(BaseModel):
    id: str
    name: str
    price: float = Field(..., ge=0, description="Snapshot of product price at add-to-cart time")
    quantity: int = Field(1, ge=1)
    image_url: Optional[str] = None


class User(BaseModel):
    email: EmailStr
    password_hash: str
    name: Optional[str] = None
    cart: Optional[List[CartLineItem]] = None
    cart_version: int = 0
    created_at: Optional[datetime] = None


class Product(BaseModel):
    name: str
    price: float = Field(..., ge=0)
    image_url: str
    category: str = ""
    subcategory: str = ""
    is_available: bool = True


class Category(BaseModel):
    name: str = Field(..., min_length=1)
    subcategories: List[str] = []


class Order(BaseModel):
    email: EmailStr
    items: str = Field(..., description="JSON-serialized copy of the cart snapshot")
    total_price: float
    delivery_fee: float = 0
    status: str = ORDER_STATUS_PENDING
    idempotency_key: Optional[str] = None


# Payloads

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RegisterPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: Optional[str] = None


class ProfilePayload(BaseModel):
    name: Optional[str] = None


class AddToCartPayload(BaseModel):
    product_id: str


class QuantityPayload(BaseModel):
    quantity: int


class CartView(BaseModel):
    items: List[CartLineItem] = []
    total: float = 0
    delivery_fee: float = 0
    final_total: float = 0
    item_count: int = 0
    empty: bool = True
    persisted: bool = True


class CatalogPage(BaseModel):
    items: List[dict]
    page: int
    per_page: int
    pages: int
    total: int


class CheckoutResult(BaseModel):
    processed: bool
    order_id: Optional[str] = None
    total_price: float = 0
    delivery_fee: float = 0
    final_total: float = 0
    status: Optional[str] = None
    cart_cleared: bool = False
    message: str = ""


class NotificationPayload(BaseModel):
    email: str
    cart: List[dict] = []
    totalPrice: float


class AccountSummary(BaseModel):
    email: str
    name: Optional[str] = None
    first_name: str = "User"
    cart_count: int = 0
