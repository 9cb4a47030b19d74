import asyncio
import json

import httpx

from inventario.models import Publication
from inventario.services.marketplace import MeliClient
from inventario.worker import publishable_quantities, sync_skus


def meli_client(status=200):
    calls = []

    def handler(request: httpx.Request):
        calls.append((request.url.path, json.loads(request.content)))
        return httpx.Response(status, json={})

    client = MeliClient("token", base_url="https://meli.test", backoff=0, transport=httpx.MockTransport(handler))
    return client, calls


def setup_catalog(client, add_stock, sell):
    a = add_stock("A", 10)
    b = add_stock("B", 9)
    client.post("/kits", json={"sku": "KIT-1", "name": "Combo", "components": [
        {"product_id": a["id"], "quantity": 2},
        {"product_id": b["id"], "quantity": 3},
    ]})
    sell(("A", 2))
    client.post("/publications", json={"sku": "A", "meli_item_id": "MLA-A", "safety_stock": 3})
    client.post("/publications", json={"sku": "KIT-1", "meli_item_id": "MLA-K", "meli_variation_id": "V1"})
    client.post("/publications", json={"sku": "B", "meli_item_id": "MLA-B", "safety_stock": 20})


def test_publishable_quantities_include_kits(client, add_stock, sell, sync_session_factory):
    setup_catalog(client, add_stock, sell)

    with sync_session_factory() as db:
        result = {pub.meli_item_id: qty for pub, qty in publishable_quantities(db, ["a"])}

    # A: disponible 8 - seguridad 3; KIT-1: min(8 // 2, 9 // 3)
    assert result == {"MLA-A": 5, "MLA-K": 3}


def test_safety_stock_never_goes_negative(client, add_stock, sell, sync_session_factory):
    setup_catalog(client, add_stock, sell)

    with sync_session_factory() as db:
        result = {pub.meli_item_id: qty for pub, qty in publishable_quantities(db, ["B"])}

    assert result == {"MLA-B": 0, "MLA-K": 3}


def test_sync_pushes_stock_and_records_it(client, add_stock, sell, sync_session_factory):
    setup_catalog(client, add_stock, sell)
    meli, calls = meli_client()

    summary = asyncio.run(sync_skus(["A"], meli, sync_session_factory))

    assert summary == {"updated": 2, "skipped": 0, "failed": 0}
    assert ("/items/MLA-A", {"available_quantity": 5, "status": "active"}) in calls
    assert ("/items/MLA-K/variations", [{"id": "V1", "available_quantity": 3}]) in calls

    with sync_session_factory() as db:
        pub = db.query(Publication).filter(Publication.meli_item_id == "MLA-A").one()
        assert (pub.last_synced_quantity, pub.current_status) == (5, "active")


def test_sync_failures_are_counted(client, add_stock, sell, sync_session_factory):
    setup_catalog(client, add_stock, sell)
    meli, calls = meli_client(status=500)

    summary = asyncio.run(sync_skus(["A"], meli, sync_session_factory))

    assert summary == {"updated": 0, "skipped": 0, "failed": 2}
