from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, serialize_doc, to_object_id
from errors import ConflictError, NotFoundError
from schemas import CamelModel, Review as ReviewSchema
from security import get_current_user

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


class ReviewIn(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


@router.get("/product/{product_id}")
def product_reviews(product_id: str, db: Database = Depends(get_db)):
    cursor = db["review"].find({"product_id": product_id}).sort("created_at", DESCENDING)
    return [serialize_doc(x) for x in cursor]


@router.post("/product/{product_id}", status_code=201)
def add_review(product_id: str, rev: ReviewIn, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    product = db["product"].find_one({"_id": to_object_id(product_id, "product id")})
    if not product or product.get("is_active") is False:
        raise NotFoundError("Product not found")
    user_id = str(current_user["_id"])
    if db["review"].find_one({"product_id": product_id, "user_id": user_id}):
        raise ConflictError("You have already reviewed this product")

    review = ReviewSchema(
        product_id=product_id,
        user_id=user_id,
        user_name=current_user.get("name", ""),
        rating=rev.rating,
        comment=rev.comment,
    )
    try:
        review_id = create_document(db, "review", review)
    except DuplicateKeyError:
        raise ConflictError("You have already reviewed this product")
    return serialize_doc(db["review"].find_one({"_id": to_object_id(review_id)}))
