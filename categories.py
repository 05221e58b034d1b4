import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from auth import require_admin
from database import (
    collection,
    count_documents,
    create_document,
    delete_document,
    get_document,
    get_documents,
    serialize,
    update_document,
)
from schemas import Category
from uploads import delete_image, save_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field("", max_length=500)
    image: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = None


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", text.lower())
    slug = re.sub(r"[\s-]+", "-", slug).strip("-")
    return slug or "category"


def unique_slug(name: str, exclude_id=None) -> str:
    """Slug for `name`, suffixed -1, -2, ... until no other category uses it."""
    base = slugify(name)
    slug, counter = base, 1
    while True:
        query = {"slug": slug}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if not collection("category").find_one(query):
            return slug
        slug = f"{base}-{counter}"
        counter += 1


def name_taken(name: str, exclude_id=None) -> bool:
    query = {"name": re.compile(f"^{re.escape(name.strip())}$", re.IGNORECASE)}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return collection("category").find_one(query) is not None


def find_category(id_or_slug: str) -> Optional[dict]:
    return get_document("category", id_or_slug) or collection("category").find_one({"slug": id_or_slug})


def get_category_or_404(id_or_slug: str) -> dict:
    category = find_category(id_or_slug)
    if not category:
        raise HTTPException(status_code=404, detail=f"Category not found with id of {id_or_slug}")
    return category


@router.get("")
def list_categories() -> List[dict]:
    categories = get_documents("category", sort=[("name", 1)])
    counts = {
        row["_id"]: row["count"]
        for row in collection("product").aggregate([{"$group": {"_id": "$category", "count": {"$sum": 1}}}])
    }
    result = []
    for c in categories:
        item = serialize(c)
        item["product_count"] = counts.get(item["id"], 0)
        result.append(item)
    return result


@router.get("/{id_or_slug}")
def get_category(id_or_slug: str):
    category = serialize(get_category_or_404(id_or_slug))
    category["product_count"] = count_documents("product", {"category": category["id"]})
    return category


@router.post("", status_code=201)
def create_category(payload: CategoryCreate, admin: dict = Depends(require_admin)):
    name = payload.name.strip()
    if name_taken(name):
        raise HTTPException(status_code=400, detail="Category with this name already exists")

    category = Category(
        name=name,
        slug=unique_slug(name),
        description=payload.description.strip(),
        image=payload.image,
    )
    cid = create_document("category", category)
    logger.info("Category %s created by %s", cid, admin["id"])
    return serialize(get_document("category", cid))


@router.put("/{category_id}")
def update_category(category_id: str, payload: CategoryUpdate, admin: dict = Depends(require_admin)):
    category = get_document("category", category_id)
    if not category:
        raise HTTPException(status_code=404, detail=f"Category not found with id of {category_id}")

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") is not None:
        name = changes["name"].strip()
        if name.lower() != category["name"].lower() and name_taken(name, exclude_id=category["_id"]):
            raise HTTPException(status_code=400, detail="Category with this name already exists")
        changes["name"] = name
        changes["slug"] = unique_slug(name, exclude_id=category["_id"])
    elif "name" in changes:
        changes.pop("name")
    if changes.get("description") is not None:
        changes["description"] = changes["description"].strip()

    updated = update_document("category", category_id, changes)
    logger.info("Category %s updated by %s", category_id, admin["id"])
    return serialize(updated)


@router.delete("/{category_id}")
def delete_category(category_id: str, admin: dict = Depends(require_admin)):
    category = get_document("category", category_id)
    if not category:
        raise HTTPException(status_code=404, detail=f"Category not found with id of {category_id}")

    products = count_documents("product", {"category": str(category["_id"])})
    if products:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete category that has products. Please remove or reassign the products first.",
        )

    delete_document("category", category_id)
    if category.get("image"):
        delete_image(category["image"])
    logger.info("Category %s deleted by %s", category_id, admin["id"])
    return {"deleted": True, "id": category_id}


@router.post("/{category_id}/image")
def upload_category_image(category_id: str, file: UploadFile = File(...), admin: dict = Depends(require_admin)):
    category = get_document("category", category_id)
    if not category:
        raise HTTPException(status_code=404, detail=f"Category not found with id of {category_id}")

    url = save_image(file, "categories")
    updated = update_document("category", category_id, {"image": url})
    if category.get("image"):
        delete_image(category["image"])
    return serialize(updated)
