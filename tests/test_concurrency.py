import asyncio

import pytest
from sqlalchemy.future import select
from sqlalchemy.orm.exc import StaleDataError

from inventario import crud, database
from inventario.models import Product, SalesOrder
from inventario.services import stock
from inventario.services.fulfillment import validate_transition


async def _load(session, model, *conditions):
    result = await session.execute(select(model).filter(*conditions))
    return result.scalars().one()


def test_concurrent_entries_on_same_product(client, add_stock):
    add_stock("C", 5)

    async def race():
        async with database.AsyncSessionLocal() as first, database.AsyncSessionLocal() as second:
            mine = await _load(first, Product, Product.sku == "C")
            theirs = await _load(second, Product, Product.sku == "C")

            stock.apply_entry(mine, 2)
            stock.apply_entry(theirs, 3)
            await first.commit()
            with pytest.raises(StaleDataError):
                await second.commit()

    asyncio.run(race())

    # Solo el primer ingreso quedó aplicado
    product = client.get("/products/by-sku/C").json()
    assert (product["stock_total"], product["stock_disponible"]) == (7, 7)


def test_concurrent_status_change_on_same_order(client, add_stock, sell):
    add_stock("A", 5)
    order_id = sell(("A", 1))["id"]

    async def race():
        async with database.AsyncSessionLocal() as first, database.AsyncSessionLocal() as second:
            mine = await _load(first, SalesOrder, SalesOrder.id == order_id)
            theirs = await _load(second, SalesOrder, SalesOrder.id == order_id)

            mine.status = validate_transition(mine.status, "En Preparación").value
            theirs.assigned_to = "operario-2"
            await first.commit()
            with pytest.raises(StaleDataError):
                await second.commit()

    asyncio.run(race())

    order = client.get(f"/orders/{order_id}").json()
    assert (order["status"], order["assigned_to"]) == ("En Preparación", None)


def test_stale_write_returns_conflict(client, add_stock, monkeypatch):
    product = add_stock("A", 3)

    async def stale_update(db, product_id, updates):
        raise StaleDataError("UPDATE statement on table 'products' expected to update 1 row(s); 0 were matched.")

    monkeypatch.setattr(crud, "update_product", stale_update)

    response = client.put(f"/products/{product['id']}", json={"name": "Otro"})

    assert response.status_code == 409
    assert "modificado por otra operación" in response.json()["detail"]
