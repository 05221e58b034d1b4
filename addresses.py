import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import current_user
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
from schemas import Address, ShippingAddress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shipping-addresses", tags=["shipping-addresses"])


class AddressRequest(Address):
    is_default: bool = False


class AddressUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    postal_code: Optional[str] = Field(None, min_length=1)
    country: Optional[str] = None
    phone: Optional[str] = Field(None, pattern=r"^\d{10}$")
    is_default: Optional[bool] = None


def clear_default(user_id: str, except_id=None) -> None:
    query = {"user_id": user_id, "is_default": True}
    if except_id is not None:
        query["_id"] = {"$ne": except_id}
    collection("shippingaddress").update_many(query, {"$set": {"is_default": False, "updated_at": now()}})


def get_own_address(address_id: str, user: dict) -> dict:
    address = get_document("shippingaddress", address_id)
    if not address or address["user_id"] != user["id"]:
        raise HTTPException(status_code=404, detail=f"Address not found with id of {address_id}")
    return address


@router.get("")
def list_addresses(user: dict = Depends(current_user)):
    docs = get_documents("shippingaddress", {"user_id": user["id"]}, sort=[("is_default", -1), ("created_at", -1)])
    return [serialize(d) for d in docs]


@router.post("", status_code=201)
def create_address(payload: AddressRequest, user: dict = Depends(current_user)):
    # the first saved address becomes the default
    is_default = payload.is_default or collection("shippingaddress").count_documents({"user_id": user["id"]}) == 0
    if is_default:
        clear_default(user["id"])
    address = ShippingAddress(**payload.model_dump(exclude={"is_default"}), user_id=user["id"], is_default=is_default)
    aid = create_document("shippingaddress", address)
    return serialize(get_document("shippingaddress", aid))


@router.put("/{address_id}")
def update_address(address_id: str, payload: AddressUpdate, user: dict = Depends(current_user)):
    address = get_own_address(address_id, user)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if changes.get("is_default"):
        clear_default(user["id"], except_id=address["_id"])
    return serialize(update_document("shippingaddress", address_id, changes))


@router.delete("/{address_id}")
def delete_address(address_id: str, user: dict = Depends(current_user)):
    get_own_address(address_id, user)
    delete_document("shippingaddress", address_id)
    logger.info("Address %s deleted by %s", address_id, user["id"])
    return {"deleted": True, "id": address_id}
