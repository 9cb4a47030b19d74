import pytest


def test_entry_creates_new_product(client, published):
    response = client.post("/products/entry", json={"sku": "tor-01", "quantity": 12, "name": "Tornillo", "brand": "Acme"})

    assert response.status_code == 201
    data = response.json()
    assert data["created"] is True
    product = data["product"]
    assert product["sku"] == "TOR-01"
    assert (product["stock_total"], product["stock_reservado"], product["stock_disponible"]) == (12, 0, 12)
    assert published == [("stock.updated", {"skus": ["TOR-01"], "reason": "entry"})]


def test_entry_adds_to_existing_product_case_insensitive(client, add_stock):
    add_stock("TOR-01", 10)

    response = client.post("/products/entry", json={"sku": "Tor-01", "quantity": 5})

    assert response.status_code == 201
    data = response.json()
    assert data["created"] is False
    assert (data["product"]["stock_total"], data["product"]["stock_disponible"]) == (15, 15)

    listed = client.get("/products").json()
    assert listed["meta"]["total"] == 1


def test_entry_keeps_reservation(client, add_stock, sell):
    add_stock("A", 10)
    sell(("A", 4))

    product = client.post("/products/entry", json={"sku": "A", "quantity": 3}).json()["product"]

    assert (product["stock_total"], product["stock_reservado"], product["stock_disponible"]) == (13, 4, 9)


def test_entry_validation(client):
    assert client.post("/products/entry", json={"sku": "NEW", "quantity": 3}).status_code == 400
    assert client.post("/products/entry", json={"sku": "NEW", "quantity": 0, "name": "X"}).status_code == 422
    assert client.post("/products/entry", json={"sku": "NEW", "quantity": 2, "name": "X", "supplier_id": 99}).status_code == 400
    assert client.get("/products").json()["meta"]["total"] == 0


def test_entry_records_movement(client, add_stock):
    add_stock("A", 10)
    client.post("/products/entry", json={"sku": "A", "quantity": 2})

    movements = client.get("/movements").json()

    assert [(m["sku"], m["type"], m["quantity"]) for m in movements] == [("A", "entrada", 2), ("A", "entrada", 10)]


def test_search_and_pagination(client, add_stock):
    add_stock("A-1", 1, name="Martillo", brand="Stanley")
    add_stock("B-1", 1, name="Destornillador", brand="Stanley")
    add_stock("C-1", 1, name="Pinza", brand="Bahco")

    page = client.get("/products", params={"limit": 2, "page": 1}).json()
    assert [p["sku"] for p in page["data"]] == ["A-1", "B-1"]
    assert page["meta"] == {"total": 3, "page": 1, "limit": 2, "total_pages": 2}

    found = client.get("/products", params={"search": "stanley"}).json()
    assert {p["sku"] for p in found["data"]} == {"A-1", "B-1"}

    found = client.get("/products", params={"search": "pinz"}).json()
    assert [p["sku"] for p in found["data"]] == ["C-1"]


def test_get_update_and_delete(client, add_stock):
    product = add_stock("A", 3)

    assert client.get(f"/products/{product['id']}").json()["sku"] == "A"
    assert client.get("/products/by-sku/a").json()["id"] == product["id"]

    response = client.put(f"/products/{product['id']}", json={"name": "Nuevo nombre", "sale_price": "12.50"})
    assert response.status_code == 200
    assert response.json()["name"] == "Nuevo nombre"
    assert response.json()["stock_total"] == 3

    assert client.delete(f"/products/{product['id']}").status_code == 204
    assert client.get(f"/products/{product['id']}").status_code == 404
    assert client.delete(f"/products/{product['id']}").status_code == 404
    assert client.put("/products/999", json={"name": "x"}).status_code == 404


@pytest.mark.parametrize("payload", [{"name": None}, {"name": ""}, {"sale_price": None}])
def test_update_rejects_clearing_required_fields(client, add_stock, payload):
    product = add_stock("A", 3, name="Tornillo")

    response = client.put(f"/products/{product['id']}", json=payload)

    assert response.status_code == 422
    assert client.get(f"/products/{product['id']}").json()["name"] == "Tornillo"


def test_dashboard(client, add_stock):
    client.post("/suppliers", json={"name": "Proveedor Uno", "markup": "10"})
    add_stock("A", 4, rubro="Ferretería", cost_price="2.50")
    add_stock("B", 6, rubro="Ferretería", cost_price="1")
    add_stock("C", 1)

    stats = client.get("/dashboard").json()

    assert stats["total_skus"] == 3
    assert stats["total_units"] == 11
    assert float(stats["total_inventory_value"]) == 16.0
    assert stats["total_suppliers"] == 1
    assert {r["rubro"]: r["stock_total"] for r in stats["stock_by_rubro"]} == {"Ferretería": 10, "Sin rubro": 1}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
