"""
Database Schemas

MongoDB collection schemas as Pydantic models.
Each Pydantic model represents a collection in your database.
Model name lowercased is the collection name.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

Role = Literal["customer", "seller", "admin"]

OrderStatus = Literal[
    "pending",
    "paid",
    "preparing",
    "handed to delivery partner",
    "shipped",
    "delivered",
    "completed",
    "cancelled",
]


class CamelModel(BaseModel):
    """Request body accepting camelCase (wire) or snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, stored lowercased")
    password_hash: Optional[str] = Field(None, description="BCrypt hashed password, absent for guests")
    role: Role = "customer"
    is_approved: bool = True
    is_banned: bool = False
    address: str = ""
    city: str = ""
    country: str = ""
    phone: str = ""
    favorites: List[str] = Field(default_factory=list, description="Product ids")


class Product(BaseModel):
    seller_id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(..., ge=0)
    weight: float = Field(0, ge=0)
    images: List[str] = Field(default_factory=list, max_length=10)
    colors: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)
    is_active: bool = True


class OrderItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price at the time of ordering")


class ShippingAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class Order(BaseModel):
    user_id: str
    items: List[OrderItem] = Field(..., min_length=1)
    shipping_address: Optional[ShippingAddress] = None
    total: float = Field(..., ge=0)
    status: OrderStatus = "pending"
    payment_intent_id: Optional[str] = None
    tracking_number: Optional[str] = Field(None, description="Courier tracking number supplied by the seller")
    internal_tracking_number: Optional[str] = Field(None, pattern=r"^ZM\d{9}$")
    delivery_partner: Optional[str] = None


class OTP(BaseModel):
    email: EmailStr
    otp: str = Field(..., pattern=r"^\d{6}$")
    expires_at: datetime
    is_used: bool = False
    is_verified: bool = False


class Review(BaseModel):
    product_id: str
    user_id: str
    user_name: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
