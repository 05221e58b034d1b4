"""
Orders

Prices are taken from the product records, never from the client. Stock is
reserved with a conditional decrement per line item so two concurrent orders
cannot both take the last unit.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import current_user, is_owner_or_admin, require_admin
from config import settings
from database import (
    collection,
    create_document,
    get_document,
    get_documents,
    now,
    serialize,
    to_object_id,
    update_document,
)
from schemas import Address, Order, OrderItem, OrderStatus, PaymentRequest, PaymentResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])

# Payment methods that are settled by bank transfer and need admin confirmation
AUTO_REQUEST_METHODS = ("upi", "rupay")

TERMINAL_STATUSES = ("delivered", "cancelled")


class OrderLine(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class CreateOrderRequest(BaseModel):
    items: List[OrderLine]
    shipping_address: Address
    payment_method: str = "cod"


class StatusUpdate(BaseModel):
    status: OrderStatus


class PayRequest(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = "completed"
    update_time: Optional[str] = None
    email_address: Optional[str] = None


def price_order(items_price: float) -> dict:
    shipping = 0.0 if items_price > settings.free_shipping_threshold else settings.shipping_fee
    tax = round(settings.tax_rate * items_price, 2)
    return {
        "items_price": round(items_price, 2),
        "shipping_price": shipping,
        "tax_price": tax,
        "total_price": round(items_price + shipping + tax, 2),
    }


def unit_price(product: dict) -> float:
    discount = product.get("discount_price")
    if discount is not None:
        return float(discount)
    return float(product["price"])


def reserve_stock(lines: List[OrderLine], reserved: list) -> List[dict]:
    """Decrement stock line by line, recording each decrement in `reserved`.

    Raises on a missing product or short stock; the caller releases `reserved`.
    """
    products = []
    for line in lines:
        oid = to_object_id(line.product_id)
        product = collection("product").find_one({"_id": oid}) if oid else None
        if not product:
            raise HTTPException(status_code=400, detail=f"Product {line.product_id} does not exist")
        result = collection("product").update_one(
            {"_id": oid, "stock": {"$gte": line.quantity}},
            {"$inc": {"stock": -line.quantity}},
        )
        if result.modified_count != 1:
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {product['name']}")
        reserved.append((oid, line.quantity))
        products.append(product)
    return products


def release_stock(reserved) -> None:
    for oid, quantity in reserved:
        collection("product").update_one({"_id": oid}, {"$inc": {"stock": quantity}})


def merge_lines(lines: List[OrderLine]) -> List[OrderLine]:
    merged = {}
    for line in lines:
        if line.product_id in merged:
            merged[line.product_id].quantity += line.quantity
        else:
            merged[line.product_id] = OrderLine(product_id=line.product_id, quantity=line.quantity)
    return list(merged.values())


def get_order_or_404(order_id: str) -> dict:
    order = get_document("order", order_id)
    if not order:
        raise HTTPException(status_code=404, detail=f"Order not found with id of {order_id}")
    return order


def build_order(user: dict, payload: "CreateOrderRequest", lines: List[OrderLine], products: List[dict]) -> Order:
    items = []
    subtotal = 0.0
    for line, product in zip(lines, products):
        price = unit_price(product)
        subtotal += price * line.quantity
        images = product.get("images") or []
        items.append(OrderItem(
            product_id=line.product_id,
            name=product["name"],
            image=images[0] if images else None,
            quantity=line.quantity,
            price=price,
        ))
    return Order(
        user_id=user["id"],
        items=items,
        shipping_address=payload.shipping_address,
        payment_method=payload.payment_method,
        **price_order(subtotal),
    )


@router.post("", status_code=201)
def create_order(payload: CreateOrderRequest, user: dict = Depends(current_user)):
    if not payload.items:
        raise HTTPException(status_code=400, detail="No order items")

    lines = merge_lines(payload.items)
    reserved = []
    try:
        products = reserve_stock(lines, reserved)
        order = build_order(user, payload, lines, products)
        oid = create_document("order", order)
    except Exception:
        release_stock(reserved)
        raise
    logger.info("Order %s placed by %s for %.2f", oid, user["id"], order.total_price)

    if payload.payment_method in AUTO_REQUEST_METHODS:
        request = PaymentRequest(
            user_id=user["id"],
            order_id=oid,
            amount=order.total_price,
            payment_method=payload.payment_method,
            notes=f"Auto-generated payment request for {payload.payment_method} payment",
        )
        rid = create_document("paymentrequest", request)
        logger.info("Payment request %s created for order %s", rid, oid)

    return serialize(get_document("order", oid))


@router.get("/mine")
def my_orders(user: dict = Depends(current_user)):
    docs = get_documents("order", {"user_id": user["id"]}, sort=[("created_at", -1)])
    return [serialize(d) for d in docs]


@router.get("")
def list_orders(status: Optional[OrderStatus] = None, admin: dict = Depends(require_admin)):
    query = {"status": status} if status else {}
    return [serialize(d) for d in get_documents("order", query, sort=[("created_at", -1)])]


@router.get("/{order_id}")
def get_order(order_id: str, user: dict = Depends(current_user)):
    order = get_order_or_404(order_id)
    if not is_owner_or_admin(user, order["user_id"]):
        raise HTTPException(status_code=403, detail="Not authorized to view this order")
    return serialize(order)


@router.put("/{order_id}/status")
def update_order_status(order_id: str, payload: StatusUpdate, admin: dict = Depends(require_admin)):
    order = get_order_or_404(order_id)
    if order["status"] == payload.status:
        return serialize(order)
    if order["status"] in TERMINAL_STATUSES:
        raise HTTPException(status_code=400, detail=f"Order is already {order['status']}")

    changes = {"status": payload.status}
    if payload.status == "delivered":
        changes["delivered_at"] = now()

    # only the request that still sees the old status gets to move the order
    updated = update_document("order", order_id, changes, match={"status": order["status"]})
    if updated is None:
        raise HTTPException(status_code=409, detail="Order status changed concurrently; reload and retry")
    if payload.status == "cancelled":
        release_stock([(to_object_id(i["product_id"]), i["quantity"]) for i in order["items"]])

    logger.info("Order %s moved %s -> %s by %s", order_id, order["status"], payload.status, admin["id"])
    return serialize(updated)


def mark_paid(order_id: str, result: PaymentResult) -> Optional[dict]:
    return update_document("order", order_id, {
        "is_paid": True,
        "paid_at": now(),
        "payment_result": result.model_dump(),
    })


@router.put("/{order_id}/pay")
def update_order_to_paid(order_id: str, payload: PayRequest, admin: dict = Depends(require_admin)):
    get_order_or_404(order_id)
    result = PaymentResult(
        id=payload.id,
        status=payload.status,
        update_time=payload.update_time or now().isoformat(),
        email_address=payload.email_address,
    )
    updated = mark_paid(order_id, result)
    logger.info("Order %s marked paid by %s", order_id, admin["id"])
    return serialize(updated)
