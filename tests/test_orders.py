import re

from bson.objectid import ObjectId

import orders
from orders import generate_order_number


def order_body(**extra):
    body = {
        "items": [
            {
                "product": str(ObjectId()),
                "productName": "Berjer Koltuk",
                "productImage": "/uploads/berjer.webp",
                "variantId": "v1",
                "variantName": "Yeşil",
                "quantity": 2,
                "unitPrice": 3000,
                "totalPrice": 6000,
            }
        ],
        "shippingAddress": {
            "fullName": "Ayşe Yılmaz",
            "phone": "05551234567",
            "city": "İstanbul",
            "district": "Kadıköy",
            "address": "Moda Caddesi No 5",
        },
        "subtotal": 1000,
    }
    body.update(extra)
    return body


def test_order_number_format():
    assert re.match(r"^FM\d{16}$", generate_order_number())


def test_create_order_defaults(client, customer):
    res = client.post("/api/orders", json=order_body(shippingCost=150), headers=customer["headers"])
    assert res.status_code == 201, res.text
    order = res.json()["order"]
    assert re.match(r"^FM\d{16}$", order["orderNumber"])
    assert order["totalAmount"] == 1150
    assert order["paymentStatus"] == "pending"
    assert order["orderStatus"] == "pending"
    assert order["paymentMethod"] == "credit_card"
    assert order["user"] == customer["id"]
    assert order["items"][0]["productName"] == "Berjer Koltuk"


def test_supplied_total_is_kept(client, customer):
    res = client.post("/api/orders", json=order_body(shippingCost=150, totalAmount=999), headers=customer["headers"])
    assert res.json()["order"]["totalAmount"] == 999


def test_zero_total_is_recomputed(client, customer):
    res = client.post("/api/orders", json=order_body(totalAmount=0), headers=customer["headers"])
    order = res.json()["order"]
    assert order["shippingCost"] == 0
    assert order["totalAmount"] == 1000


def test_create_order_requires_login(client):
    assert client.post("/api/orders", json=order_body()).status_code == 401


def test_create_order_validates_items(client, customer):
    res = client.post("/api/orders", json=order_body(items=[]), headers=customer["headers"])
    assert res.status_code == 400
    assert res.json()["error"] == "Validation Error"


def test_create_order_validates_phone(client, customer):
    body = order_body()
    body["shippingAddress"]["phone"] = "12"
    res = client.post("/api/orders", json=body, headers=customer["headers"])
    assert res.status_code == 400
    assert "shippingAddress.phone" in {d["path"] for d in res.json()["details"]}


def test_list_only_own_orders(client, customer, other_customer):
    other = other_customer["headers"]
    client.post("/api/orders", json=order_body(), headers=customer["headers"])
    client.post("/api/orders", json=order_body(), headers=other)

    res = client.get("/api/orders", headers=customer["headers"])
    assert res.json()["count"] == 1


def test_order_detail_is_owner_or_admin(client, customer, admin_headers, other_customer):
    order = client.post("/api/orders", json=order_body(), headers=customer["headers"]).json()["order"]
    other = other_customer["headers"]

    assert client.get(f"/api/orders/{order['id']}", headers=customer["headers"]).status_code == 200
    assert client.get(f"/api/orders/{order['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/orders/{order['id']}", headers=other).status_code == 403


def test_admin_list_attaches_user(client, customer, admin_headers):
    client.post("/api/orders", json=order_body(), headers=customer["headers"])
    res = client.get("/api/orders/admin/all", headers=admin_headers)
    assert res.status_code == 200
    order = res.json()["orders"][0]
    assert order["user"]["email"] == "ayse@example.com"
    assert "passwordHash" not in order["user"]


def test_admin_list_forbidden_for_customers(client, customer):
    assert client.get("/api/orders/admin/all", headers=customer["headers"]).status_code == 403


def test_update_status(client, customer, admin_headers):
    order = client.post("/api/orders", json=order_body(), headers=customer["headers"]).json()["order"]

    res = client.put(f"/api/orders/{order['id']}/status", json={}, headers=admin_headers)
    assert res.status_code == 400

    res = client.put(
        f"/api/orders/{order['id']}/status",
        json={"orderStatus": "kargolandı", "paymentStatus": "paid"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    updated = res.json()["order"]
    assert updated["orderStatus"] == "kargolandı"
    assert updated["paymentStatus"] == "paid"


def test_update_status_rejects_unknown_value(client, customer, admin_headers):
    order = client.post("/api/orders", json=order_body(), headers=customer["headers"]).json()["order"]
    res = client.put(f"/api/orders/{order['id']}/status", json={"orderStatus": "lost"}, headers=admin_headers)
    assert res.status_code == 400


def test_order_numbers_are_unique(client, customer):
    first = client.post("/api/orders", json=order_body(), headers=customer["headers"]).json()["order"]
    second = client.post("/api/orders", json=order_body(), headers=customer["headers"]).json()["order"]
    assert first["orderNumber"] != second["orderNumber"]


def test_order_number_collision_draws_again(client, customer, monkeypatch):
    numbers = iter(["FM1700000000000001", "FM1700000000000001", "FM1700000000000002"])
    monkeypatch.setattr(orders, "generate_order_number", lambda: next(numbers))

    client.post("/api/orders", json=order_body(), headers=customer["headers"])
    res = client.post("/api/orders", json=order_body(), headers=customer["headers"])
    assert res.status_code == 201
    assert res.json()["order"]["orderNumber"] == "FM1700000000000002"


def test_cancel_reason_alone_is_not_a_status_update(client, customer, admin_headers):
    order = client.post("/api/orders", json=order_body(), headers=customer["headers"]).json()["order"]
    res = client.put(f"/api/orders/{order['id']}/status", json={"cancelReason": "Müşteri vazgeçti"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "orderStatus or paymentStatus is required"


def test_unknown_payment_method_is_rejected(client, customer):
    res = client.post("/api/orders", json=order_body(paymentMethod="cash"), headers=customer["headers"])
    assert res.status_code == 400
