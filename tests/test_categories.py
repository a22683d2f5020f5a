from categories import slugify


def create(client, headers, name, **extra):
    res = client.post("/api/categories", json={"name": name, **extra}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["category"]


def test_slugify_folds_turkish_letters():
    assert slugify("Çalışma Odası") == "calisma-odasi"
    assert slugify("  Yemek   Odası ") == "yemek-odasi"


def test_create_requires_admin(client, customer):
    res = client.post("/api/categories", json={"name": "Yatak Odası"}, headers=customer["headers"])
    assert res.status_code == 403
    assert res.json()["message"] == "Admin access required"


def test_create_derives_slug_and_rejects_duplicates(client, admin_headers):
    cat = create(client, admin_headers, "Yatak Odası")
    assert cat["slug"] == "yatak-odasi"
    assert cat["displayOrder"] == 0

    res = client.post("/api/categories", json={"name": "Yatak Odası"}, headers=admin_headers)
    assert res.status_code == 409


def test_list_and_detail_include_subcategories(client, admin_headers):
    parent = create(client, admin_headers, "Oturma Odası")
    create(client, admin_headers, "Koltuklar", parent=parent["id"])

    listing = client.get("/api/categories").json()
    assert listing["count"] == 2
    by_slug = {c["slug"]: c for c in listing["categories"]}
    assert [s["slug"] for s in by_slug["oturma-odasi"]["subcategories"]] == ["koltuklar"]

    detail = client.get("/api/categories/oturma-odasi").json()["category"]
    assert detail["subcategories"][0]["name"] == "Koltuklar"


def test_unknown_slug_is_404(client):
    res = client.get("/api/categories/yok")
    assert res.status_code == 404
    assert res.json()["message"] == "Category not found"


def test_reorder_then_list_is_sorted_by_display_order(client, admin_headers):
    a = create(client, admin_headers, "Alfa")
    b = create(client, admin_headers, "Beta")
    c = create(client, admin_headers, "Gama")

    res = client.patch(
        "/api/categories/reorder",
        json={"orders": [{"id": c["id"], "displayOrder": 0}, {"id": a["id"], "displayOrder": 1}, {"id": b["id"], "displayOrder": 2}]},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert [x["name"] for x in res.json()["categories"]] == ["Gama", "Alfa", "Beta"]
    assert [x["name"] for x in client.get("/api/categories").json()["categories"]] == ["Gama", "Alfa", "Beta"]


def test_equal_display_order_falls_back_to_name(client, admin_headers):
    create(client, admin_headers, "Zeytin")
    create(client, admin_headers, "Armut")
    assert [x["name"] for x in client.get("/api/categories").json()["categories"]] == ["Armut", "Zeytin"]


def test_parent_must_exist(client, admin_headers):
    res = client.post("/api/categories", json={"name": "Koltuklar", "parent": "0123456789abcdef01234567"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Parent category not found"


def test_update_rejects_cycles(client, admin_headers):
    root = create(client, admin_headers, "Oturma Odası")
    child = create(client, admin_headers, "Koltuklar", parent=root["id"])

    res = client.put(f"/api/categories/{root['id']}", json={"parent": child["id"]}, headers=admin_headers)
    assert res.status_code == 400

    res = client.put(f"/api/categories/{root['id']}", json={"parent": root["id"]}, headers=admin_headers)
    assert res.status_code == 400


def test_update_is_partial(client, admin_headers):
    cat = create(client, admin_headers, "Oturma Odası", description="Eski")
    res = client.put(f"/api/categories/{cat['id']}", json={"description": "Yeni"}, headers=admin_headers)
    assert res.status_code == 200
    updated = res.json()["category"]
    assert updated["description"] == "Yeni"
    assert updated["name"] == "Oturma Odası"


def test_delete_reparents_children(client, admin_headers, db):
    root = create(client, admin_headers, "Oturma Odası")
    child = create(client, admin_headers, "Koltuklar", parent=root["id"])

    res = client.delete(f"/api/categories/{root['id']}", headers=admin_headers)
    assert res.status_code == 200
    detail = client.get("/api/categories/koltuklar").json()["category"]
    assert detail["id"] == child["id"]
    assert detail["parent"] is None


def test_malformed_id_is_400(client, admin_headers):
    res = client.delete("/api/categories/not-an-id", headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid ID format"
