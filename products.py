import logging
import math
import re
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field, ValidationError

from auth import current_user, require_admin
from categories import find_category
from database import (
    collection,
    create_document,
    delete_document,
    get_document,
    get_documents,
    now,
    serialize,
    to_object_id,
    update_document,
)
from schemas import Dimensions, Product, Review
from uploads import delete_image, save_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])

SORTS = {
    "newest": [("created_at", -1)],
    "price_asc": [("price", 1)],
    "price_desc": [("price", -1)],
    "name": [("name", 1)],
    "rating": [("rating", -1), ("num_reviews", -1)],
}


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    price: Optional[float] = Field(None, ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    images: Optional[List[str]] = None
    material: Optional[str] = None
    color: Optional[str] = None
    dimensions: Optional[Dimensions] = None
    featured: Optional[bool] = None


class CreateProductRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=2000)
    price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    stock: int = Field(..., ge=0)
    category: str
    images: List[str] = Field(default_factory=list)
    material: Optional[str] = None
    color: Optional[str] = None
    dimensions: Optional[Dimensions] = None
    featured: bool = False


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=1000)


class ProductPage(BaseModel):
    items: List[dict]
    total: int
    page: int
    limit: int
    pages: int


def check_product_rules(fields: dict) -> dict:
    """Resolve the category reference and check price/discount consistency."""
    category = find_category(fields["category"])
    if not category:
        raise HTTPException(status_code=400, detail="Category does not exist")
    fields["category"] = str(category["_id"])

    discount = fields.get("discount_price")
    if discount is not None and discount > fields["price"]:
        raise HTTPException(status_code=400, detail="Discount price cannot exceed price")
    return fields


def attach_category_names(products: List[dict]) -> List[dict]:
    ids = {to_object_id(p.get("category")) for p in products} - {None}
    names = {}
    if ids:
        names = {str(c["_id"]): c["name"] for c in collection("category").find({"_id": {"$in": list(ids)}})}
    items = []
    for p in products:
        item = serialize(p)
        item["category_name"] = names.get(item.get("category"))
        items.append(item)
    return items


def get_product_or_404(product_id: str) -> dict:
    product = get_document("product", product_id)
    if not product:
        raise HTTPException(status_code=404, detail=f"Product not found with id of {product_id}")
    return product


@router.get("", response_model=ProductPage)
def list_products(
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    in_stock: Optional[bool] = None,
    sort: Literal["newest", "price_asc", "price_desc", "name", "rating"] = "newest",
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
):
    query = {}
    if category:
        found = find_category(category)
        if not found:
            return ProductPage(items=[], total=0, page=page, limit=limit, pages=0)
        query["category"] = str(found["_id"])
    if featured is not None:
        query["featured"] = featured
    if search:
        pattern = re.compile(re.escape(search.strip()), re.IGNORECASE)
        query["$or"] = [{"name": pattern}, {"description": pattern}]
    if min_price is not None or max_price is not None:
        price = {}
        if min_price is not None:
            price["$gte"] = min_price
        if max_price is not None:
            price["$lte"] = max_price
        query["price"] = price
    if in_stock is True:
        query["stock"] = {"$gt": 0}
    elif in_stock is False:
        query["stock"] = 0

    total = collection("product").count_documents(query)
    docs = get_documents("product", query, limit=limit, skip=(page - 1) * limit, sort=SORTS[sort])
    return ProductPage(
        items=attach_category_names(docs),
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit),
    )


@router.get("/{product_id}")
def get_product(product_id: str):
    return attach_category_names([get_product_or_404(product_id)])[0]


@router.post("", status_code=201)
def create_product(payload: CreateProductRequest, admin: dict = Depends(require_admin)):
    fields = check_product_rules(payload.model_dump())
    pid = create_document("product", Product(**fields))
    logger.info("Product %s created by %s", pid, admin["id"])
    return get_product(pid)


@router.put("/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, admin: dict = Depends(require_admin)):
    current = get_product_or_404(product_id)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "discount_price"}

    merged = {**current, **changes}
    check_product_rules(merged)
    try:
        Product(**{k: v for k, v in merged.items() if k in Product.model_fields})
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors()[0]["msg"])
    if "category" in changes:
        changes["category"] = merged["category"]

    update_document("product", product_id, changes)
    logger.info("Product %s updated by %s: %s", product_id, admin["id"], sorted(changes))
    return get_product(product_id)


@router.delete("/{product_id}")
def delete_product(product_id: str, admin: dict = Depends(require_admin)):
    product = get_product_or_404(product_id)
    delete_document("product", product_id)
    for url in product.get("images", []):
        delete_image(url)
    logger.info("Product %s deleted by %s", product_id, admin["id"])
    return {"deleted": True, "id": product_id}


@router.post("/{product_id}/images")
def upload_product_images(
    product_id: str,
    files: List[UploadFile] = File(...),
    admin: dict = Depends(require_admin),
):
    product = get_product_or_404(product_id)
    urls = [save_image(f, "products") for f in files]
    update_document("product", product_id, {"images": product.get("images", []) + urls})
    return get_product(product_id)


@router.delete("/{product_id}/images")
def remove_product_image(product_id: str, url: str, admin: dict = Depends(require_admin)):
    product = get_product_or_404(product_id)
    images = product.get("images", [])
    if url not in images:
        raise HTTPException(status_code=404, detail="Image not found on product")
    update_document("product", product_id, {"images": [i for i in images if i != url]})
    delete_image(url)
    return get_product(product_id)


# Reviews
@router.get("/{product_id}/reviews")
def list_reviews(product_id: str):
    product = get_product_or_404(product_id)
    return {
        "num_reviews": product.get("num_reviews", 0),
        "rating": product.get("rating", 0.0),
        "reviews": [serialize(r) for r in product.get("reviews", [])],
    }


@router.post("/{product_id}/reviews", status_code=201)
def add_review(product_id: str, payload: ReviewRequest, user: dict = Depends(current_user)):
    product = get_product_or_404(product_id)
    review = Review(user_id=user["id"], name=user["name"], rating=payload.rating, comment=payload.comment, created_at=now())

    # the push only matches while this user has no review on the product
    result = collection("product").update_one(
        {"_id": product["_id"], "reviews.user_id": {"$ne": user["id"]}},
        {"$push": {"reviews": review.model_dump()}},
    )
    if result.modified_count != 1:
        raise HTTPException(status_code=400, detail="Product already reviewed")

    refresh_rating(product["_id"])
    logger.info("Review added to product %s by %s", product_id, user["id"])
    return review.model_dump()


def refresh_rating(oid) -> None:
    """Recompute num_reviews and rating from the reviews stored on the product."""
    product = collection("product").find_one({"_id": oid}) or {}
    ratings = [r["rating"] for r in product.get("reviews", [])]
    rating = round(sum(ratings) / len(ratings), 1) if ratings else 0.0
    collection("product").update_one(
        {"_id": oid},
        {"$set": {"num_reviews": len(ratings), "rating": rating, "updated_at": now()}},
    )
