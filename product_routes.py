from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from pymongo import DESCENDING
from pymongo.database import Database

from database import create_document, get_db, serialize_doc, to_object_id, utcnow
from errors import NotFoundError, PermissionDenied, ValidationError
from schemas import CamelModel, Product as ProductSchema
from security import require_role

router = APIRouter(prefix="/api/products", tags=["products"])

MAX_IMAGES = 10


class ProductIn(CamelModel):
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(..., ge=0)
    weight: float = Field(0, ge=0)
    images: List[str] = Field(..., min_length=1)
    colors: List[str] = []
    sizes: List[str] = []


class ProductUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    weight: Optional[float] = Field(None, ge=0)
    images: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    is_active: Optional[bool] = None


def _clean_list(values: List[str]) -> List[str]:
    return [v.strip() for v in values if v and v.strip()]


def _owned_product(db: Database, product_id: str, current_user: dict) -> dict:
    product = db["product"].find_one({"_id": to_object_id(product_id, "product id")})
    if not product:
        raise NotFoundError("Product not found")
    if current_user.get("role") != "admin" and product.get("seller_id") != str(current_user["_id"]):
        raise NotFoundError("Product not found")
    return product


@router.get("")
def list_products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {"is_active": True}
    if category:
        query["category"] = category
    if search:
        query["$or"] = [
            {"name": {"$regex": search, "$options": "i"}},
            {"description": {"$regex": search, "$options": "i"}},
        ]

    collection = db["product"]
    total = collection.count_documents(query)
    cursor = collection.find(query).sort("created_at", DESCENDING).skip((page - 1) * limit).limit(limit)
    items = [serialize_doc(d) for d in cursor]
    return {"items": items, "total": total, "page": page, "pages": (total + limit - 1) // limit}


@router.get("/seller/mine")
def seller_products(current_user: dict = Depends(require_role("seller")), db: Database = Depends(get_db)):
    cursor = db["product"].find({"seller_id": str(current_user["_id"])}).sort("created_at", DESCENDING)
    return [serialize_doc(d) for d in cursor]


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    product = db["product"].find_one({"_id": to_object_id(product_id, "product id")})
    if not product or product.get("is_active") is False:
        raise NotFoundError("Product not found")
    return serialize_doc(product)


@router.post("", status_code=201)
def create_product(data: ProductIn, current_user: dict = Depends(require_role("seller", "admin")), db: Database = Depends(get_db)):
    if not current_user.get("is_approved"):
        raise PermissionDenied("Seller account is awaiting approval")
    images = _clean_list(data.images)[:MAX_IMAGES]
    if not images:
        raise ValidationError("At least one product image is required.")
    product = ProductSchema(
        **data.model_dump(exclude={"images", "colors", "sizes"}),
        seller_id=str(current_user["_id"]),
        images=images,
        colors=_clean_list(data.colors),
        sizes=_clean_list(data.sizes),
    )
    product_id = create_document(db, "product", product)
    return serialize_doc(db["product"].find_one({"_id": to_object_id(product_id)}))


@router.put("/{product_id}")
def update_product(product_id: str, data: ProductUpdate, current_user: dict = Depends(require_role("seller", "admin")), db: Database = Depends(get_db)):
    product = _owned_product(db, product_id, current_user)
    update_dict = data.model_dump(exclude_unset=True, exclude_none=True)
    if not update_dict:
        raise ValidationError("No fields to update")
    if "images" in update_dict:
        update_dict["images"] = _clean_list(update_dict["images"])
        if not update_dict["images"]:
            raise ValidationError("At least one product image is required.")
        if len(update_dict["images"]) > MAX_IMAGES:
            raise ValidationError(f"A product can have at most {MAX_IMAGES} images")
    for key in ("colors", "sizes"):
        if key in update_dict:
            update_dict[key] = _clean_list(update_dict[key])
    update_dict["updated_at"] = utcnow()
    db["product"].update_one({"_id": product["_id"]}, {"$set": update_dict})
    return serialize_doc(db["product"].find_one({"_id": product["_id"]}))


@router.delete("/{product_id}")
def delete_product(product_id: str, current_user: dict = Depends(require_role("seller", "admin")), db: Database = Depends(get_db)):
    product = _owned_product(db, product_id, current_user)
    # soft delete, existing orders keep pointing at the product
    db["product"].update_one({"_id": product["_id"]}, {"$set": {"is_active": False, "updated_at": utcnow()}})
    return {"message": "Product deleted successfully"}
