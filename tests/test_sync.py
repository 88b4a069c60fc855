"""Tests for the client sync facade.

The REST side runs against the real app through an ASGI transport, and the
push channel is a stub whose handlers the tests call directly.
"""
import httpx
import pytest

from inventory_sync.client.api import InventoryClient
from inventory_sync.client.sync import InventorySync
from inventory_sync.main import app
from inventory_sync.schemas.events import CHANGES_TOPIC, NOTIFICATIONS_TOPIC


class StubConnection:

    def __init__(self):
        self.handlers = {}
        self.started = False
        self.stopped = False

    async def subscribe(self, topic, handler):
        self.handlers.setdefault(topic, []).append(handler)

    async def unsubscribe(self, topic, handler):
        self.handlers.get(topic, []).remove(handler)

    def start(self):
        self.started = True

    async def stop(self):
        self.stopped = True

    def push(self, topic, data):
        for handler in self.handlers.get(topic, []):
            handler(data)


@pytest.fixture
def connection():
    return StubConnection()


@pytest.fixture
def api(client):
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
    return InventoryClient("http://test", http=http)


@pytest.mark.asyncio
async def test_start_loads_products_and_subscribes(client, api, connection, image):
    client.post("/api/v1/products", data={"name": "Widget", "price": "9.99", "qty": "3"}, files={"image": image})
    sync = InventorySync(api, connection)

    await sync.start()

    assert connection.started is True
    assert set(connection.handlers) == {CHANGES_TOPIC, NOTIFICATIONS_TOPIC}
    assert [p.name for p in sync.products] == ["Widget"]
    assert sync.reconciler.loading is False
    assert sync.reconciler.error == ""

    await sync.stop()
    await api.aclose()
    assert connection.stopped is True
    assert connection.handlers == {CHANGES_TOPIC: [], NOTIFICATIONS_TOPIC: []}


@pytest.mark.asyncio
async def test_failed_load_clears_products_and_reports(connection):
    def handler(request):
        return httpx.Response(500, json={"detail": "database unavailable"})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    sync = InventorySync(InventoryClient("http://test", http=http), connection)

    await sync.reload()

    assert sync.products == []
    assert sync.reconciler.loading is False
    assert sync.reconciler.error.startswith("Failed to fetch products")
    assert sync.reconciler.toasts == [sync.reconciler.error]
    await http.aclose()


@pytest.mark.asyncio
async def test_create_applies_response_and_echo_is_a_no_op(client, api, connection, image):
    sync = InventorySync(api, connection)
    await sync.start()

    product = await sync.create_product("Widget", 9.99, 10, image)

    assert [p.id for p in sync.products] == [product.id]

    connection.push(CHANGES_TOPIC, {"action": "added", "product": product.model_dump(mode="json")})
    assert [p.id for p in sync.products] == [product.id]
    await api.aclose()


@pytest.mark.asyncio
async def test_mutations_report_server_errors(client, api, connection):
    sync = InventorySync(api, connection)
    await sync.start()

    assert await sync.adjust_quantity(999, 1) is False
    assert "not found" in sync.reconciler.error
    assert await sync.delete_product(999) is False
    await api.aclose()


@pytest.mark.asyncio
async def test_pushed_events_patch_local_state(client, api, connection, image):
    created = client.post(
        "/api/v1/products", data={"name": "Widget", "price": "9.99", "qty": "3"}, files={"image": image}
    ).json()
    sync = InventorySync(api, connection)
    await sync.start()

    connection.push(CHANGES_TOPIC, {
        "action": "quantity-adjusted",
        "product": {"id": created["id"], "name": "Widget", "qty": 0, "status": False},
    })
    connection.push(NOTIFICATIONS_TOPIC, "Stock adjusted for 'Widget'")

    assert sync.products[0].qty == 0
    assert sync.products[0].status is False
    assert sync.reconciler.toasts == ["Stock adjusted for 'Widget'"]
    await api.aclose()


@pytest.mark.asyncio
async def test_malformed_pushes_are_ignored(client, api, connection):
    sync = InventorySync(api, connection)
    await sync.start()

    connection.push(CHANGES_TOPIC, {"action": "exploded"})
    connection.push(CHANGES_TOPIC, "not an object")
    connection.push(NOTIFICATIONS_TOPIC, {"text": "wrong shape"})

    assert sync.products == []
    assert sync.reconciler.toasts == []
    await api.aclose()
