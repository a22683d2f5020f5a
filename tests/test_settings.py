def test_get_creates_defaults_once(client, db):
    first = client.get("/api/settings")
    assert first.status_code == 200
    settings = first.json()["settings"]
    assert settings["key"] == "site"
    assert len(settings["trustBadges"]) == 3
    assert settings["featuredProducts"] == []

    client.get("/api/settings")
    assert db["settings"].count_documents({}) == 1


def test_update_requires_admin(client, customer):
    res = client.put("/api/settings", json={"contact": {"phone": "02120000000"}}, headers=customer["headers"])
    assert res.status_code == 403


def test_update_replaces_only_given_blocks(client, admin_headers):
    res = client.put(
        "/api/settings",
        json={"whatsapp": {"enabled": True, "phoneNumber": "905551112233"}},
        headers=admin_headers,
    )
    assert res.status_code == 200
    settings = res.json()["settings"]
    assert settings["whatsapp"]["enabled"] is True
    assert settings["whatsapp"]["phoneNumber"] == "905551112233"
    assert settings["whatsapp"]["defaultMessage"]
    assert settings["contact"]["email"] == "info@formermobilya.com"


def test_update_with_nothing_is_rejected(client, admin_headers):
    assert client.put("/api/settings", json={}, headers=admin_headers).status_code == 400


def test_featured_products_are_populated_in_order(client, admin_headers, make_product):
    first = make_product("Berjer Koltuk")
    second = make_product("Yemek Masası")
    hidden = make_product("Gizli Masa", active=False)

    res = client.put(
        "/api/settings",
        json={"featuredProducts": [second, first, hidden]},
        headers=admin_headers,
    )
    assert res.status_code == 200
    featured = client.get("/api/settings").json()["settings"]["featuredProducts"]
    assert [p["name"] for p in featured] == ["Yemek Masası", "Berjer Koltuk"]


def test_at_most_four_featured_products(client, admin_headers, make_product):
    ids = [make_product(f"Ürün {i}") for i in range(5)]
    res = client.put("/api/settings", json={"featuredProducts": ids}, headers=admin_headers)
    assert res.status_code == 400
