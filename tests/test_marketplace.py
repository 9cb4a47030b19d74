import asyncio
import json

import httpx
import pytest

from inventario.models import Publication
from inventario.services.marketplace import MeliClient, MeliError


def scripted_transport(*responses):
    """Transporte que devuelve las respuestas en orden y registra los pedidos."""
    calls = []
    pending = list(responses)

    def handler(request: httpx.Request):
        calls.append({"method": request.method, "path": request.url.path, "body": json.loads(request.content)})
        status, body = pending.pop(0) if len(pending) > 1 else pending[0]
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler), calls


def publication(**fields):
    fields.setdefault("sku", "A")
    fields.setdefault("meli_item_id", "MLA1")
    return Publication(**fields)


def update(transport, pub, quantity):
    client = MeliClient("token", base_url="https://meli.test", backoff=0, transport=transport)
    return asyncio.run(client.update_stock(pub, quantity))


def test_simple_item_sets_quantity_and_activates():
    transport, calls = scripted_transport((200, {"id": "MLA1"}))
    pub = publication()

    result = update(transport, pub, 5)

    assert result["success"] is True
    assert calls == [{"method": "PUT", "path": "/items/MLA1", "body": {"available_quantity": 5, "status": "active"}}]
    assert pub.current_status == "active"


def test_zero_quantity_pauses_listing():
    transport, calls = scripted_transport((200, {}))
    pub = publication(current_status="active")

    update(transport, pub, 0)

    assert calls[0]["body"] == {"available_quantity": 0, "status": "paused"}
    assert pub.current_status == "paused"


def test_status_not_sent_when_unchanged():
    transport, calls = scripted_transport((200, {}))

    update(transport, publication(current_status="active"), 3)

    assert calls[0]["body"] == {"available_quantity": 3}


def test_variation_goes_to_variations_endpoint():
    transport, calls = scripted_transport((200, []))

    update(transport, publication(meli_variation_id="V9"), 2)

    assert calls[0]["path"] == "/items/MLA1/variations"
    assert calls[0]["body"] == [{"id": "V9", "available_quantity": 2}]


def test_rate_limit_is_retried():
    transport, calls = scripted_transport((429, {}), (409, {}), (200, {}))

    result = update(transport, publication(), 1)

    assert result["success"] is True
    assert len(calls) == 3


def test_gives_up_after_max_retries():
    transport, calls = scripted_transport((429, {"message": "too many"}))

    with pytest.raises(MeliError):
        update(transport, publication(), 1)
    assert len(calls) == 5


def test_not_modifiable_is_skipped():
    transport, calls = scripted_transport((400, {"cause": [{"code": "field_not_updatable"}]}))
    pub = publication(current_status="active")

    result = update(transport, pub, 1)

    assert result["skipped"] is True
    assert len(calls) == 1
    assert pub.current_status == "active"


def test_other_errors_fail_without_retry():
    transport, calls = scripted_transport((500, {"message": "boom"}))

    with pytest.raises(MeliError, match="500"):
        update(transport, publication(), 1)
    assert len(calls) == 1
