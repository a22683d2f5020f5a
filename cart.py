"""
Client-side cart and checkout state, and the order body built from them.
"""
import time
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

FREE_SHIPPING_THRESHOLD = 5000
FLAT_SHIPPING_COST = 150


def shipping_cost(subtotal: float) -> float:
    return 0 if subtotal >= FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_COST


class CartItem(BaseModel):
    id: str = ""
    product_id: str
    product: dict = {}
    variant_id: Optional[str] = None
    variant: Optional[dict] = None
    quantity: int = Field(1, ge=1)
    price: float = Field(..., ge=0)

    def matches(self, product_id: str, variant_id: Optional[str]) -> bool:
        return self.product_id == product_id and self.variant_id == variant_id


class Cart(BaseModel):
    items: List[CartItem] = Field(default_factory=list)

    def add_item(self, item: CartItem) -> CartItem:
        for existing in self.items:
            if existing.matches(item.product_id, item.variant_id):
                existing.quantity += item.quantity
                return existing
        if not item.id:
            item.id = f"{item.product_id}-{item.variant_id or 'no-variant'}-{int(time.time() * 1000)}"
        self.items.append(item)
        return item

    def remove_item(self, product_id: str, variant_id: Optional[str] = None) -> None:
        self.items = [i for i in self.items if not i.matches(product_id, variant_id)]

    def update_quantity(self, product_id: str, quantity: int, variant_id: Optional[str] = None) -> None:
        if quantity <= 0:
            self.remove_item(product_id, variant_id)
            return
        for item in self.items:
            if item.matches(product_id, variant_id):
                item.quantity = quantity

    def clear(self) -> None:
        self.items = []

    def total(self) -> float:
        return sum(i.price * i.quantity for i in self.items)

    def count(self) -> int:
        return sum(i.quantity for i in self.items)


class CheckoutAddress(BaseModel):
    first_name: str = ""
    last_name: str = ""
    address: str = ""
    city: str = ""
    district: str = ""
    postal_code: str = ""
    country: str = "TR"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CheckoutState(BaseModel):
    email: str = ""
    phone: str = ""
    shipping_address: CheckoutAddress = Field(default_factory=CheckoutAddress)
    payment_method: Optional[Literal["credit_card", "bank_transfer"]] = None
    order_notes: Optional[str] = None

    def set_contact_info(self, email: str, phone: str) -> None:
        self.email = email
        self.phone = phone

    def set_shipping_address(self, address: CheckoutAddress) -> None:
        self.shipping_address = address

    def set_payment_method(self, method: Literal["credit_card", "bank_transfer"]) -> None:
        self.payment_method = method

    def clear(self) -> None:
        self.email = ""
        self.phone = ""
        self.shipping_address = CheckoutAddress()
        self.payment_method = None
        self.order_notes = None


def order_item(item: CartItem) -> dict:
    images = item.product.get("images") or [""]
    line = {
        "product": item.product_id,
        "productName": item.product.get("name", ""),
        "productImage": images[0],
        "quantity": item.quantity,
        "unitPrice": item.price,
        "totalPrice": item.price * item.quantity,
    }
    if item.variant_id:
        line["variantId"] = item.variant_id
        line["variantName"] = (item.variant or {}).get("name")
    return line


def build_order_payload(cart: Cart, checkout: CheckoutState) -> dict:
    """Build the POST /api/orders body from the cart and checkout forms."""
    subtotal = cart.total()
    shipping = shipping_cost(subtotal)
    address = checkout.shipping_address
    payload = {
        "items": [order_item(i) for i in cart.items],
        "shippingAddress": {
            "fullName": address.full_name,
            "phone": checkout.phone,
            "city": address.city,
            "district": address.district or address.city,
            "address": address.address,
        },
        "subtotal": subtotal,
        "shippingCost": shipping,
        "totalAmount": subtotal + shipping,
        "paymentMethod": checkout.payment_method or "credit_card",
    }
    if checkout.order_notes:
        payload["orderNotes"] = checkout.order_notes
    return payload
