from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import EmailStr, Field
from pymongo.database import Database

import orders
from database import get_db, serialize_doc
from schemas import CamelModel
from security import get_current_user, require_role

router = APIRouter(prefix="/api/orders", tags=["orders"])


class OrderItemIn(CamelModel):
    product_id: str = Field(..., alias="product")
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class ShippingAddressIn(CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class OrderIn(CamelModel):
    items: List[OrderItemIn] = Field(..., min_length=1)
    shipping_address: Optional[ShippingAddressIn] = None
    total: Optional[float] = Field(None, ge=0)
    status: str = "pending"
    payment_intent_id: Optional[str] = None


class GuestInfoIn(CamelModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class GuestOrderIn(OrderIn):
    guest_info: Optional[GuestInfoIn] = None


class StatusUpdate(CamelModel):
    status: str
    tracking_number: Optional[str] = None
    delivery_partner: Optional[str] = None


def _items(payload: OrderIn) -> List[dict]:
    return [item.model_dump() for item in payload.items]


# Public routes: guest checkout and tracking
@router.post("/guest", status_code=201)
def create_guest_order(payload: GuestOrderIn, db: Database = Depends(get_db)):
    order_data = payload.model_dump(exclude={"guest_info", "status"})
    guest_info = payload.guest_info.model_dump() if payload.guest_info else None
    return serialize_doc(orders.create_guest_order(db, order_data, guest_info))


@router.get("/track")
def track_order(tracking_number: Optional[str] = Query(None, alias="trackingNumber"), db: Database = Depends(get_db)):
    return serialize_doc(orders.get_order_by_tracking_number(db, tracking_number))


# Seller routes
@router.get("/seller/orders")
def seller_orders(current_user: dict = Depends(require_role("seller")), db: Database = Depends(get_db)):
    return [serialize_doc(o) for o in orders.list_seller_orders(db, current_user)]


@router.put("/seller/orders/{order_id}/status")
def seller_update_status(order_id: str, payload: StatusUpdate, current_user: dict = Depends(require_role("seller")), db: Database = Depends(get_db)):
    order = orders.update_order_status(db, order_id, payload.status, current_user, payload.tracking_number, payload.delivery_partner)
    return serialize_doc(order)


# Authenticated routes
@router.post("", status_code=201)
def create_order(payload: OrderIn, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    order = orders.create_order(
        db,
        current_user,
        _items(payload),
        shipping_address=payload.shipping_address.model_dump(exclude_none=True) if payload.shipping_address else None,
        total=payload.total,
        status=payload.status,
        payment_intent_id=payload.payment_intent_id,
    )
    return serialize_doc(order)


@router.get("")
def list_orders(current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return [serialize_doc(o) for o in orders.list_orders(db, current_user)]


@router.get("/{order_id}")
def get_order(order_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return serialize_doc(orders.get_order(db, order_id, current_user))


@router.put("/{order_id}/status")
def update_status(order_id: str, payload: StatusUpdate, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    order = orders.update_order_status(db, order_id, payload.status, current_user, payload.tracking_number, payload.delivery_partner)
    return serialize_doc(order)
