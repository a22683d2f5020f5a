import re

from bson.objectid import ObjectId

from products import DISCOUNT_MESSAGE, MAX_PAGE, generate_sku, parse_sort, to_base36


def product_body(category_id, **extra):
    return {
        "name": "Modern Köşe Koltuk",
        "description": "Geniş ve rahat oturum sağlayan köşe koltuk.",
        "category": category_id,
        "basePrice": 25000,
        "images": ["/uploads/koltuk.webp"],
        "variants": [{"name": "Gri", "stock": 5}, {"name": "Bej", "stock": 3}],
        **extra,
    }


def test_to_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "z"
    assert to_base36(36) == "10"


def test_generated_sku_shape():
    assert re.match(r"^PRD-[0-9A-Z]+$", generate_sku())


def test_parse_sort_ignores_operators():
    assert parse_sort("-basePrice name") == [("basePrice", -1), ("name", 1)]
    assert parse_sort("$where") == [("createdAt", -1)]


def test_create_derives_slug_sku_and_virtuals(client, admin_headers, category_id):
    res = client.post("/api/products", json=product_body(category_id, discountedPrice=22500), headers=admin_headers)
    assert res.status_code == 201, res.text
    product = res.json()["product"]
    assert product["slug"] == "modern-kose-koltuk"
    assert product["sku"].startswith("PRD-")
    assert product["effectivePrice"] == 22500
    assert product["discountPercentage"] == 10
    assert product["totalStock"] == 8
    assert product["category"]["slug"] == "oturma-odasi"


def test_create_rejects_discount_not_below_base(client, admin_headers, category_id):
    res = client.post("/api/products", json=product_body(category_id, discountedPrice=25000), headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == DISCOUNT_MESSAGE


def test_create_rejects_duplicate_slug(client, admin_headers, category_id):
    assert client.post("/api/products", json=product_body(category_id, sku="A-1"), headers=admin_headers).status_code == 201
    res = client.post("/api/products", json=product_body(category_id, sku="A-2"), headers=admin_headers)
    assert res.status_code == 409


def test_create_rejects_unknown_category(client, admin_headers):
    res = client.post("/api/products", json=product_body("0123456789abcdef01234567"), headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Category not found"


def test_create_requires_admin(client, customer, category_id):
    res = client.post("/api/products", json=product_body(category_id), headers=customer["headers"])
    assert res.status_code == 403


def test_list_filters_by_price_range(client, make_product):
    make_product("Ucuz Sehpa", base_price=500)
    make_product("Orta Berjer", base_price=5000)
    make_product("Pahalı Koltuk", base_price=25000)

    res = client.get("/api/products", params={"minPrice": "1000", "maxPrice": "10000"})
    assert res.status_code == 200
    body = res.json()
    assert [p["name"] for p in body["products"]] == ["Orta Berjer"]
    assert body["total"] == 1
    assert body["totalPages"] == 1


def test_list_ignores_unparseable_price(client, make_product):
    make_product("Ucuz Sehpa", base_price=500)
    make_product("Pahalı Koltuk", base_price=25000)
    res = client.get("/api/products", params={"minPrice": "abc"})
    assert res.json()["total"] == 2


def test_list_hides_inactive_and_paginates(client, make_product):
    for i in range(5):
        make_product(f"Sandalye {i}", base_price=100 + i)
    make_product("Gizli Masa", active=False)

    res = client.get("/api/products", params={"limit": "2", "page": "3", "sort": "basePrice"})
    body = res.json()
    assert body["total"] == 5
    assert body["totalPages"] == 3
    assert body["page"] == 3
    assert [p["name"] for p in body["products"]] == ["Sandalye 4"]


def test_get_by_slug_only_active(client, make_product):
    make_product("Berjer Koltuk")
    make_product("Gizli Masa", active=False)
    assert client.get("/api/products/berjer-koltuk").status_code == 200
    assert client.get("/api/products/gizli-masa").status_code == 404


def test_discount_only_update_checked_against_stored_base(client, admin_headers, make_product):
    product_id = make_product(base_price=6000)
    res = client.put(f"/api/products/{product_id}", json={"discountedPrice": 7000}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == DISCOUNT_MESSAGE


def test_base_only_update_checked_against_stored_discount(client, admin_headers, make_product):
    product_id = make_product(base_price=6000, discounted_price=5400)
    res = client.put(f"/api/products/{product_id}", json={"basePrice": 5000}, headers=admin_headers)
    assert res.status_code == 400


def test_discount_set_then_removed(client, admin_headers, make_product):
    product_id = make_product(base_price=6000)

    res = client.put(f"/api/products/{product_id}", json={"discountedPrice": 5400}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["product"]["effectivePrice"] == 5400

    res = client.put(f"/api/products/{product_id}", json={"discountedPrice": None}, headers=admin_headers)
    assert res.status_code == 200
    product = res.json()["product"]
    assert "discountedPrice" not in product
    assert product["effectivePrice"] == 6000
    assert product["discountPercentage"] == 0


def test_update_leaves_unsent_fields_alone(client, admin_headers, make_product):
    product_id = make_product(base_price=6000, featured=True)
    res = client.put(f"/api/products/{product_id}", json={"name": "Yeni İsim"}, headers=admin_headers)
    product = res.json()["product"]
    assert product["name"] == "Yeni İsim"
    assert product["basePrice"] == 6000
    assert product["featured"] is True


def test_delete_by_id(client, admin_headers, make_product):
    product_id = make_product()
    assert client.delete(f"/api/products/{product_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/products/{product_id}", headers=admin_headers).status_code == 404


def test_update_with_malformed_id(client, admin_headers):
    res = client.put("/api/products/123", json={"name": "Masa"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid ID format"


def test_price_range_bounds_are_inclusive(client, make_product):
    make_product("Alt Sınır Berjer", base_price=5000)
    make_product("Üst Sınır Koltuk", base_price=10000)
    make_product("Ucuz Sehpa", base_price=4999)
    make_product("Pahalı Masa", base_price=10001)

    res = client.get("/api/products", params={"minPrice": "5000", "maxPrice": "10000", "sort": "basePrice"})
    assert [p["name"] for p in res.json()["products"]] == ["Alt Sınır Berjer", "Üst Sınır Koltuk"]


def test_rejected_discount_leaves_stored_value(client, admin_headers, make_product, db):
    product_id = make_product(base_price=1000, discounted_price=900)
    res = client.put(f"/api/products/{product_id}", json={"discountedPrice": 1000}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == DISCOUNT_MESSAGE
    assert db["product"].find_one({"_id": ObjectId(product_id)})["discountedPrice"] == 900


def test_huge_page_is_clamped(client, make_product):
    make_product("Berjer Koltuk")
    res = client.get("/api/products", params={"page": str(10**20)})
    assert res.status_code == 200
    body = res.json()
    assert body["page"] == MAX_PAGE
    assert body["products"] == []
