import pytest


@pytest.fixture
def components(add_stock):
    a = add_stock("A", 10)
    b = add_stock("B", 9)
    return [{"product_id": a["id"], "quantity": 2}, {"product_id": b["id"], "quantity": 3}]


def test_create_kit_with_available_stock(client, components):
    response = client.post("/kits", json={"sku": "kit-1", "name": "Combo", "components": components})

    assert response.status_code == 201
    kit = response.json()
    assert kit["sku"] == "KIT-1"
    assert [(c["sku"], c["quantity"]) for c in kit["components"]] == [("A", 2), ("B", 3)]
    assert kit["available_stock"] == 3


def test_kit_sku_cannot_collide(client, components):
    assert client.post("/kits", json={"sku": "a", "name": "Choca", "components": components}).status_code == 400

    client.post("/kits", json={"sku": "KIT-1", "name": "Combo", "components": components})
    assert client.post("/kits", json={"sku": "kit-1", "name": "Otro", "components": components}).status_code == 400


def test_kit_components_must_exist(client, components):
    bad = components + [{"product_id": 999, "quantity": 1}]
    assert client.post("/kits", json={"sku": "K", "name": "K", "components": bad}).status_code == 400
    assert client.post("/kits", json={"sku": "K", "name": "K", "components": []}).status_code == 422
    assert client.get("/kits").json() == []


def test_availability_follows_stock(client, components, add_stock, sell):
    kit = client.post("/kits", json={"sku": "KIT-1", "name": "Combo", "components": components}).json()

    sell(("B", 4))
    assert client.get(f"/kits/{kit['id']}").json()["available_stock"] == 1

    add_stock("B", 10)
    [listed] = client.get("/kits").json()
    assert listed["available_stock"] == 5


def test_deleted_component_counts_as_zero(client, components):
    kit = client.post("/kits", json={"sku": "KIT-1", "name": "Combo", "components": components}).json()

    client.delete(f"/products/{components[1]['product_id']}")

    assert client.get(f"/kits/{kit['id']}").json()["available_stock"] == 0


def test_update_kit(client, components, add_stock):
    kit = client.post("/kits", json={"sku": "KIT-1", "name": "Combo", "components": components}).json()
    c = add_stock("C", 4)

    response = client.put(f"/kits/{kit['id']}", json={
        "name": "Combo nuevo",
        "components": [{"product_id": c["id"], "quantity": 2}],
    })

    assert response.status_code == 200
    updated = response.json()
    assert updated["sku"] == "KIT-1"
    assert updated["name"] == "Combo nuevo"
    assert [comp["sku"] for comp in updated["components"]] == ["C"]
    assert updated["available_stock"] == 2
    assert client.put("/kits/999", json={"name": "x"}).status_code == 404


def test_delete_kit_keeps_product_stock(client, components):
    kit = client.post("/kits", json={"sku": "KIT-1", "name": "Combo", "components": components}).json()

    assert client.delete(f"/kits/{kit['id']}").status_code == 204

    assert client.get(f"/kits/{kit['id']}").status_code == 404
    assert client.get("/products/by-sku/A").json()["stock_total"] == 10
    assert client.get("/products/by-sku/B").json()["stock_total"] == 9
