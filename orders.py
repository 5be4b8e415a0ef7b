"""Order lifecycle.

Orders move forward through ``TRANSITIONS``. Visibility and updates are
scoped by role through ``authorize_order``: admins reach every order, sellers
reach orders holding at least one of their products, customers reach their
own orders. A denied order is reported exactly like a missing one.

Handing an order to a delivery partner issues an internal tracking number
(``ZM`` + 9 digits). Candidates are re-rolled on collision, but the unique
index on ``internal_tracking_number`` is what actually keeps them unique.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, get_args

import structlog
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import config
from accounts import find_or_create_guest_user
from database import to_object_id, utcnow
from errors import ConflictError, NotFoundError, PermissionDenied, ServiceError, ValidationError
from schemas import Order as OrderSchema, OrderStatus

logger = structlog.get_logger(__name__)

ORDER_STATUSES = get_args(OrderStatus)
HANDED_OVER = "handed to delivery partner"
TRACKING_PREFIX = "ZM"
TRACKING_DIGITS = 9

TRANSITIONS = {
    "pending": ("paid", "preparing", "cancelled"),
    "paid": ("preparing", "cancelled"),
    "preparing": (HANDED_OVER, "cancelled"),
    HANDED_OVER: ("shipped", "delivered", "completed"),
    "shipped": ("delivered", "completed"),
    "delivered": ("completed",),
    "completed": (),
    "cancelled": (),
}

CREATABLE_STATUSES = ("pending", "paid")


@dataclass(frozen=True)
class OrderAccess:
    outcome: str  # "ok" | "denied" | "not_found"
    order: Optional[dict] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == "ok"


def strip_nulls(value):
    if isinstance(value, dict):
        return {k: strip_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [strip_nulls(v) for v in value if v is not None]
    return value


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, ())


# Tracking numbers

def generate_tracking_number() -> str:
    return f"{TRACKING_PREFIX}{secrets.randbelow(10 ** TRACKING_DIGITS):0{TRACKING_DIGITS}d}"


def tracking_number_candidates(db: Database):
    """Yield tracking numbers not currently used by any order.

    Gives up with a ``ServiceError`` after ``TRACKING_NUMBER_ATTEMPTS`` draws.
    """
    for attempt in range(config.TRACKING_NUMBER_ATTEMPTS):
        candidate = generate_tracking_number()
        if db["order"].find_one({"internal_tracking_number": candidate}, {"_id": 1}) is not None:
            logger.debug("tracking_number_collision", candidate=candidate, attempt=attempt)
            continue
        yield candidate
    raise ServiceError("Could not generate a unique tracking number")


def _is_tracking_collision(db: Database, exc: DuplicateKeyError, candidate: str) -> bool:
    if "internal_tracking_number" in str(exc.details or ""):
        return True
    return db["order"].find_one({"internal_tracking_number": candidate}, {"_id": 1}) is not None


def insert_with_tracking_number(db: Database, doc: Dict[str, Any]) -> Dict[str, Any]:
    for candidate in tracking_number_candidates(db):
        doc["internal_tracking_number"] = candidate
        try:
            db["order"].insert_one(doc)
            return doc
        except DuplicateKeyError as e:
            if not _is_tracking_collision(db, e, candidate):
                raise
            doc.pop("_id", None)
            logger.warning("tracking_number_race", candidate=candidate)
    raise ServiceError("Could not generate a unique tracking number")


# Authorization

def seller_product_ids(db: Database, seller_id: str) -> List[str]:
    return [str(p["_id"]) for p in db["product"].find({"seller_id": seller_id}, {"_id": 1})]


def authorize_order(db: Database, order: Optional[dict], actor: dict) -> OrderAccess:
    if order is None:
        return OrderAccess("not_found")
    role = actor.get("role")
    actor_id = str(actor["_id"])
    if role == "admin":
        return OrderAccess("ok", order)
    if role == "seller":
        own = set(seller_product_ids(db, actor_id))
        if any(item.get("product_id") in own for item in order.get("items", [])):
            return OrderAccess("ok", order)
        return OrderAccess("denied")
    if order.get("user_id") == actor_id:
        return OrderAccess("ok", order)
    return OrderAccess("denied")


def _load_authorized(db: Database, order_id: str, actor: dict) -> dict:
    oid = to_object_id(order_id, "order id")
    access = authorize_order(db, db["order"].find_one({"_id": oid}), actor)
    if not access.allowed:
        if access.outcome == "denied":
            logger.info("order_access_denied", order_id=order_id, actor_id=str(actor["_id"]), role=actor.get("role"))
        raise NotFoundError("Order not found")
    return access.order


# Operations

def create_order(
    db: Database,
    user: dict,
    items: List[dict],
    shipping_address: Optional[dict] = None,
    total: Optional[float] = None,
    status: str = "pending",
    payment_intent_id: Optional[str] = None,
) -> dict:
    if status not in CREATABLE_STATUSES:
        raise ValidationError(f"New orders must be {' or '.join(CREATABLE_STATUSES)}")
    order = OrderSchema(
        user_id=str(user["_id"]),
        items=items,
        shipping_address=shipping_address,
        total=order_total(items) if total is None else total,
        status=status,
        payment_intent_id=payment_intent_id,
    )
    doc = order.model_dump(exclude_none=True)
    now = utcnow()
    doc["created_at"] = doc["updated_at"] = now
    db["order"].insert_one(doc)
    logger.info("order_created", order_id=str(doc["_id"]), user_id=doc["user_id"], status=status)
    return doc


def order_total(items: List[dict]) -> float:
    return round(sum(float(i["price"]) * int(i["quantity"]) for i in items), 2)


def create_guest_order(db: Database, order_data: dict, guest_info: Optional[dict]) -> dict:
    guest_info = guest_info or {}
    if not all(guest_info.get(k) for k in ("full_name", "email", "phone")):
        raise ValidationError("Guest information is required")

    user = find_or_create_guest_user(db, guest_info["full_name"], guest_info["email"], guest_info["phone"])
    data = strip_nulls(order_data)
    items = data.get("items") or []
    order = OrderSchema(
        user_id=str(user["_id"]),
        items=items,
        shipping_address=data.get("shipping_address"),
        total=data["total"] if "total" in data else order_total(items),
        status="paid",
        payment_intent_id=data.get("payment_intent_id"),
    )
    doc = order.model_dump(exclude_none=True)
    now = utcnow()
    doc["created_at"] = doc["updated_at"] = now
    insert_with_tracking_number(db, doc)
    logger.info("guest_order_created", order_id=str(doc["_id"]), tracking_number=doc["internal_tracking_number"])
    return doc


def update_order_status(
    db: Database,
    order_id: str,
    status: str,
    actor: dict,
    tracking_number: Optional[str] = None,
    delivery_partner: Optional[str] = None,
) -> dict:
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status '{status}'")
    order = _load_authorized(db, order_id, actor)
    if actor.get("role") == "customer" and status != "cancelled":
        raise PermissionDenied("Customers can only cancel their orders")

    current = order.get("status", "pending")
    if not can_transition(current, status):
        raise ValidationError(f"Cannot change order status from '{current}' to '{status}'")

    updates: Dict[str, Any] = {"status": status, "updated_at": utcnow()}
    if status == HANDED_OVER:
        if tracking_number and tracking_number.strip():
            updates["tracking_number"] = tracking_number.strip()
        if delivery_partner and delivery_partner.strip():
            updates["delivery_partner"] = delivery_partner.strip()

    # guard on the current status so concurrent transitions cannot both apply
    guard = {"_id": order["_id"], "status": current}
    if status == HANDED_OVER and not order.get("internal_tracking_number"):
        updated = _update_with_tracking_number(db, guard, updates)
    else:
        updated = db["order"].find_one_and_update(guard, {"$set": updates}, return_document=ReturnDocument.AFTER)
    if updated is None:
        raise ConflictError("Order was updated by another request")

    logger.info("order_status_updated", order_id=order_id, previous=current, status=status, actor_role=actor.get("role"))
    return updated


def _update_with_tracking_number(db: Database, guard: dict, updates: dict) -> Optional[dict]:
    for candidate in tracking_number_candidates(db):
        updates["internal_tracking_number"] = candidate
        try:
            return db["order"].find_one_and_update(guard, {"$set": updates}, return_document=ReturnDocument.AFTER)
        except DuplicateKeyError as e:
            if not _is_tracking_collision(db, e, candidate):
                raise
            logger.warning("tracking_number_race", candidate=candidate)
    raise ServiceError("Could not generate a unique tracking number")


def get_order(db: Database, order_id: str, actor: dict) -> dict:
    return _load_authorized(db, order_id, actor)


def list_orders(db: Database, actor: dict) -> List[dict]:
    query = {} if actor.get("role") == "admin" else {"user_id": str(actor["_id"])}
    return list(db["order"].find(query).sort("created_at", DESCENDING))


def list_seller_orders(db: Database, seller: dict) -> List[dict]:
    product_ids = seller_product_ids(db, str(seller["_id"]))
    if not product_ids:
        return []
    return list(db["order"].find({"items.product_id": {"$in": product_ids}}).sort("created_at", DESCENDING))


def get_order_by_tracking_number(db: Database, code: Optional[str]) -> dict:
    code = (code or "").strip().upper()
    if not code:
        raise ValidationError("Tracking number is required")
    order = db["order"].find_one({"internal_tracking_number": code})
    if not order:
        raise NotFoundError("Order not found")
    return order


def complete_stale_handovers(db: Database, now: Optional[datetime] = None) -> int:
    """Complete orders left with the delivery partner for longer than the grace period."""
    now = now or utcnow()
    cutoff = now - timedelta(hours=config.STALE_HANDOVER_HOURS)
    result = db["order"].update_many(
        {"status": HANDED_OVER, "updated_at": {"$lt": cutoff}},
        {"$set": {"status": "completed", "updated_at": now}},
    )
    logger.info("stale_handovers_completed", count=result.modified_count, cutoff=cutoff.isoformat())
    return result.modified_count
