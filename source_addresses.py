"""
Source addresses

The warehouse addresses orders ship from. At most one is active; the
storefront reads it publicly, everything else is admin only.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import require_admin
from database import (
    collection,
    create_document,
    delete_document,
    get_document,
    get_documents,
    now,
    serialize,
    update_document,
)
from schemas import SourceAddress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/source-address", tags=["source-address"])


class SourceAddressUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    postal_code: Optional[str] = Field(None, min_length=1)
    country: Optional[str] = None
    phone: Optional[str] = Field(None, pattern=r"^\d{10}$")
    is_active: Optional[bool] = None


def deactivate_addresses(except_id=None) -> None:
    query = {"is_active": True}
    if except_id is not None:
        query["_id"] = {"$ne": except_id}
    collection("sourceaddress").update_many(query, {"$set": {"is_active": False, "updated_at": now()}})


def get_source_address_or_404(address_id: str) -> dict:
    address = get_document("sourceaddress", address_id)
    if not address:
        raise HTTPException(status_code=404, detail=f"Source address not found with id of {address_id}")
    return address


@router.get("/active")
def get_active_source_address():
    address = collection("sourceaddress").find_one({"is_active": True})
    if not address:
        raise HTTPException(status_code=404, detail="No active source address found")
    return serialize(address)


@router.get("")
def list_source_addresses(admin: dict = Depends(require_admin)):
    return [serialize(d) for d in get_documents("sourceaddress", sort=[("created_at", -1)])]


@router.get("/{address_id}")
def get_source_address(address_id: str, admin: dict = Depends(require_admin)):
    return serialize(get_source_address_or_404(address_id))


@router.post("", status_code=201)
def create_source_address(payload: SourceAddress, admin: dict = Depends(require_admin)):
    if payload.is_active:
        deactivate_addresses()
    aid = create_document("sourceaddress", payload)
    logger.info("Source address %s created by %s", aid, admin["id"])
    return serialize(get_document("sourceaddress", aid))


@router.put("/{address_id}")
def update_source_address(address_id: str, payload: SourceAddressUpdate, admin: dict = Depends(require_admin)):
    current = get_source_address_or_404(address_id)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if changes.get("is_active"):
        deactivate_addresses(except_id=current["_id"])
    updated = update_document("sourceaddress", address_id, changes)
    logger.info("Source address %s updated by %s", address_id, admin["id"])
    return serialize(updated)


@router.delete("/{address_id}")
def delete_source_address(address_id: str, admin: dict = Depends(require_admin)):
    if not delete_document("sourceaddress", address_id):
        raise HTTPException(status_code=404, detail=f"Source address not found with id of {address_id}")
    logger.info("Source address %s deleted by %s", address_id, admin["id"])
    return {"deleted": True, "id": address_id}
