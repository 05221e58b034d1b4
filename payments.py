import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from auth import current_user, is_owner_or_admin, require_admin
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
from orders import mark_paid
from schemas import PaymentMethod, PaymentRequest, PaymentResult, PaymentSettings, PaymentStatus
from uploads import delete_image, save_image

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])

OPEN_STATUSES = ["pending", "completed"]


class CreatePaymentRequest(BaseModel):
    order_id: str
    payment_method: PaymentMethod
    amount: Optional[float] = Field(None, ge=0)
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus
    notes: Optional[str] = None


class PaymentSettingsUpdate(BaseModel):
    account_number: Optional[str] = Field(None, min_length=1)
    ifsc_code: Optional[str] = Field(None, min_length=1)
    account_holder: Optional[str] = Field(None, min_length=1)
    bank_name: Optional[str] = None
    branch_name: Optional[str] = None
    is_active: Optional[bool] = None


def get_request_or_404(request_id: str) -> dict:
    request = get_document("paymentrequest", request_id)
    if not request:
        raise HTTPException(status_code=404, detail=f"Payment request not found with id of {request_id}")
    return request


# Payment requests
@router.post("/payment-requests", status_code=201)
def create_payment_request(payload: CreatePaymentRequest, user: dict = Depends(current_user)):
    order = get_document("order", payload.order_id)
    if not order:
        raise HTTPException(status_code=404, detail=f"Order not found with id of {payload.order_id}")
    if not is_owner_or_admin(user, order["user_id"]):
        raise HTTPException(status_code=403, detail="Not authorized to create payment request for this order")
    if order.get("is_paid"):
        raise HTTPException(status_code=400, detail="Order is already paid")

    existing = collection("paymentrequest").find_one({
        "order_id": payload.order_id,
        "status": {"$in": OPEN_STATUSES},
    })
    if existing:
        raise HTTPException(status_code=400, detail="A payment request already exists for this order")

    request = PaymentRequest(
        user_id=order["user_id"],
        order_id=payload.order_id,
        amount=payload.amount if payload.amount is not None else order["total_price"],
        payment_method=payload.payment_method,
        transaction_id=payload.transaction_id,
        notes=payload.notes,
    )
    rid = create_document("paymentrequest", request)
    logger.info("Payment request %s created for order %s", rid, payload.order_id)
    return serialize(get_document("paymentrequest", rid))


@router.get("/payment-requests/mine")
def my_payment_requests(user: dict = Depends(current_user)):
    docs = get_documents("paymentrequest", {"user_id": user["id"]}, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


@router.get("/payment-requests")
def list_payment_requests(status: Optional[PaymentStatus] = None, admin: dict = Depends(require_admin)):
    query = {"status": status} if status else {}
    return [serialize(d) for d in get_documents("paymentrequest", query, sort=[("created_at", -1)])]


@router.get("/payment-requests/{request_id}")
def get_payment_request(request_id: str, user: dict = Depends(current_user)):
    request = get_request_or_404(request_id)
    if not is_owner_or_admin(user, request["user_id"]):
        raise HTTPException(status_code=403, detail="Not authorized to view this payment request")
    return serialize(request)


@router.put("/payment-requests/{request_id}/status")
def update_payment_request_status(
    request_id: str,
    payload: PaymentStatusUpdate,
    admin: dict = Depends(require_admin),
):
    request = get_request_or_404(request_id)
    if request["status"] != "pending":
        raise HTTPException(status_code=400, detail=f"Payment request is already {request['status']}")

    changes = {"status": payload.status}
    if payload.notes is not None:
        changes["notes"] = payload.notes
    updated = update_document("paymentrequest", request_id, changes, match={"status": "pending"})
    if updated is None:
        raise HTTPException(status_code=409, detail="Payment request was updated concurrently; reload and retry")
    logger.info("Payment request %s set to %s by %s", request_id, payload.status, admin["id"])

    if payload.status == "completed":
        result = PaymentResult(id=request_id, status="completed", update_time=now().isoformat())
        if mark_paid(request["order_id"], result):
            logger.info("Order %s marked paid", request["order_id"])
        else:
            logger.warning("Order %s for payment request %s no longer exists", request["order_id"], request_id)

    return serialize(updated)


@router.post("/payment-requests/{request_id}/proof")
def upload_payment_proof(request_id: str, file: UploadFile = File(...), user: dict = Depends(current_user)):
    request = get_request_or_404(request_id)
    if user["id"] != request["user_id"]:
        raise HTTPException(status_code=403, detail="Not authorized to update this payment request")
    if request["status"] != "pending":
        raise HTTPException(status_code=400, detail=f"Payment request is already {request['status']}")

    url = save_image(file, "payment-proofs")
    updated = update_document("paymentrequest", request_id, {"payment_proof": url})
    if request.get("payment_proof"):
        delete_image(request["payment_proof"])
    return serialize(updated)


# Payment settings
def deactivate_settings(except_id=None) -> None:
    query = {"is_active": True}
    if except_id is not None:
        query["_id"] = {"$ne": except_id}
    collection("paymentsettings").update_many(query, {"$set": {"is_active": False, "updated_at": now()}})


@router.get("/payment-settings")
def get_active_payment_settings():
    settings_doc = collection("paymentsettings").find_one({"is_active": True})
    if not settings_doc:
        raise HTTPException(status_code=404, detail="No payment settings found")
    return serialize(settings_doc)


@router.get("/payment-settings/all")
def list_payment_settings(admin: dict = Depends(require_admin)):
    return [serialize(d) for d in get_documents("paymentsettings", sort=[("created_at", -1)])]


@router.post("/payment-settings", status_code=201)
def create_payment_settings(payload: PaymentSettings, admin: dict = Depends(require_admin)):
    if payload.is_active:
        deactivate_settings()
    sid = create_document("paymentsettings", payload)
    logger.info("Payment settings %s created by %s", sid, admin["id"])
    return serialize(get_document("paymentsettings", sid))


@router.put("/payment-settings/{settings_id}")
def update_payment_settings(settings_id: str, payload: PaymentSettingsUpdate, admin: dict = Depends(require_admin)):
    current = get_document("paymentsettings", settings_id)
    if not current:
        raise HTTPException(status_code=404, detail=f"Payment settings not found with id of {settings_id}")

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if changes.get("is_active"):
        deactivate_settings(except_id=current["_id"])
    updated = update_document("paymentsettings", settings_id, changes)
    logger.info("Payment settings %s updated by %s", settings_id, admin["id"])
    return serialize(updated)


@router.delete("/payment-settings/{settings_id}")
def delete_payment_settings(settings_id: str, admin: dict = Depends(require_admin)):
    if not delete_document("paymentsettings", settings_id):
        raise HTTPException(status_code=404, detail=f"Payment settings not found with id of {settings_id}")
    logger.info("Payment settings %s deleted by %s", settings_id, admin["id"])
    return {"deleted": True, "id": settings_id}
