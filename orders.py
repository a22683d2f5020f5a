import logging
import secrets
import time

from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, now_utc, serialize_doc
from schemas import (
    DEFAULT_PAYMENT_METHOD,
    ORDER_PENDING,
    PAYMENT_PENDING,
    OrderCreate,
    OrderStatusUpdate,
)
from security import TokenPayload, authenticate, authorize_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])

NEWEST_FIRST = [("createdAt", -1)]
ORDER_NUMBER_ATTEMPTS = 3


def generate_order_number() -> str:
    return f"FM{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


def build_order(body: OrderCreate, user_id: str) -> dict:
    """Snapshot the checkout into an order document.

    Items and the shipping address are copied by value so later edits to the
    product or the user's address book do not change the order.
    """
    items = []
    for item in body.items:
        line = item.model_dump(by_alias=True, exclude_none=True)
        line["product"] = ObjectId(item.product)
        items.append(line)

    shipping_cost = body.shipping_cost or 0
    total_amount = body.total_amount
    if not total_amount:
        total_amount = body.subtotal + shipping_cost

    order = {
        "orderNumber": generate_order_number(),
        "user": ObjectId(user_id),
        "items": items,
        "shippingAddress": body.shipping_address.model_dump(by_alias=True),
        "subtotal": body.subtotal,
        "shippingCost": shipping_cost,
        "totalAmount": total_amount,
        "paymentStatus": PAYMENT_PENDING,
        "paymentMethod": body.payment_method or DEFAULT_PAYMENT_METHOD,
        "orderStatus": ORDER_PENDING,
    }
    if body.order_notes:
        order["orderNotes"] = body.order_notes
    return order


@router.post("", status_code=201)
def create_order(body: OrderCreate, user: TokenPayload = Depends(authenticate), db=Depends(get_db)):
    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        try:
            order_id = create_document("order", build_order(body, user.user_id), db)
            break
        except DuplicateKeyError:
            # orderNumber is the only unique key on orders
            if attempt == ORDER_NUMBER_ATTEMPTS:
                raise
            logger.warning("Order number collision, retrying (%d)", attempt)
    order = db["order"].find_one({"_id": ObjectId(order_id)})
    logger.info("Order %s created for user %s (%.2f)", order["orderNumber"], user.user_id, order["totalAmount"])
    return {"message": "Order created successfully", "order": serialize_doc(order)}


@router.get("")
def list_my_orders(user: TokenPayload = Depends(authenticate), db=Depends(get_db)):
    orders = [serialize_doc(o) for o in db["order"].find({"user": ObjectId(user.user_id)}).sort(NEWEST_FIRST)]
    return {"count": len(orders), "orders": orders}


@router.get("/admin/all")
def list_all_orders(admin=Depends(authorize_admin), db=Depends(get_db)):
    orders = list(db["order"].find().sort(NEWEST_FIRST))
    user_ids = list({o["user"] for o in orders if o.get("user") is not None})
    users = {}
    if user_ids:
        for u in db["user"].find({"_id": {"$in": user_ids}}, {"name": 1, "email": 1}):
            users[u["_id"]] = serialize_doc(u)
    out = []
    for order in orders:
        item = serialize_doc(order)
        item["user"] = users.get(order.get("user"), item.get("user"))
        out.append(item)
    return {"count": len(out), "orders": out}


@router.get("/{order_id}")
def get_order(order_id: str, user: TokenPayload = Depends(authenticate), db=Depends(get_db)):
    order = db["order"].find_one({"_id": ObjectId(order_id)})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if str(order.get("user")) != user.user_id and not user.is_admin:
        raise HTTPException(status_code=403, detail="You do not have permission to view this order")
    return {"order": serialize_doc(order)}


@router.put("/{order_id}/status")
def update_order_status(order_id: str, body: OrderStatusUpdate, admin=Depends(authorize_admin), db=Depends(get_db)):
    if body.order_status is None and body.payment_status is None:
        raise HTTPException(status_code=400, detail="orderStatus or paymentStatus is required")
    update = body.model_dump(by_alias=True, exclude_none=True)
    update["updatedAt"] = now_utc()
    oid = ObjectId(order_id)
    res = db["order"].update_one({"_id": oid}, {"$set": update})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Order not found")
    order = db["order"].find_one({"_id": oid})
    return {"message": "Order status updated successfully", "order": serialize_doc(order)}
