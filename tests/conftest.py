import asyncio
import os
import tempfile

import pytest

# La base de pruebas se configura antes de importar la aplicación
_DB_DIR = tempfile.mkdtemp(prefix="inventario-tests-")
DB_PATH = os.path.join(_DB_DIR, "inventory.db")
os.environ["INVENTORY_DATABASE_URL"] = f"sqlite+aiosqlite:///{DB_PATH}"
os.environ["ENV_MODE"] = "test"
os.environ.pop("RABBITMQ_URL", None)

from fastapi.testclient import TestClient  # noqa: E402

from inventario import database, events  # noqa: E402
from inventario.main import app  # noqa: E402
from inventario.models import Base  # noqa: E402


async def _reset_schema():
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def client():
    asyncio.run(_reset_schema())
    with TestClient(app) as c:
        yield c


@pytest.fixture
def published(monkeypatch):
    """Captura los eventos publicados en lugar de enviarlos a RabbitMQ."""
    sent = []
    monkeypatch.setattr(events, "publish_event", lambda routing_key, data: sent.append((routing_key, data)))
    return sent


@pytest.fixture
def sync_session_factory(client):
    return database.make_sync_session_factory(f"sqlite:///{DB_PATH}")


@pytest.fixture
def add_stock(client):
    def _add(sku, quantity, name=None, **fields):
        payload = {"sku": sku, "quantity": quantity, "name": name or f"Producto {sku}", **fields}
        response = client.post("/products/entry", json=payload)
        assert response.status_code == 201, response.text
        return response.json()["product"]
    return _add


@pytest.fixture
def sell(client):
    def _sell(*lines, shipping_type="mercado_envios", buyer_name="Cliente"):
        payload = {
            "items": [{"sku": sku, "quantity": qty} for sku, qty in lines],
            "shipping_type": shipping_type,
            "buyer_name": buyer_name,
        }
        response = client.post("/sales", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _sell


@pytest.fixture
def advance(client):
    """Avanza un pedido por los estados indicados."""
    def _advance(order_id, *statuses):
        response = None
        for status in statuses:
            response = client.patch(f"/orders/{order_id}/status", json={"status": status})
            assert response.status_code == 200, response.text
        return response.json()
    return _advance
