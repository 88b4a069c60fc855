"""Tests for the async REST client against a mocked transport."""
import httpx
import pytest

from inventory_sync.client.api import InventoryClient
from inventory_sync.exceptions import (
    ConflictError,
    InsufficientStockError,
    InventoryError,
    MediaStoreError,
    NotFoundError,
    TransportError,
    UploadError,
    ValidationError,
)

PRODUCT = {
    "id": 1,
    "name": "Widget",
    "price": 9.99,
    "qty": 10,
    "status": True,
    "image_url": "https://media.test/w.png",
    "image_id": "inventory/w",
}


def make_client(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return InventoryClient("http://test", http=http)


@pytest.mark.asyncio
async def test_list_products():
    def handler(request):
        assert request.method == "GET"
        assert request.url.path == "/api/v1/products"
        return httpx.Response(200, json=[PRODUCT])

    client = make_client(handler)
    products = await client.list_products()
    await client.aclose()

    assert [p.name for p in products] == ["Widget"]
    assert products[0].status is True


@pytest.mark.asyncio
async def test_create_sends_multipart_form():
    seen = {}

    def handler(request):
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.read()
        return httpx.Response(201, json=PRODUCT)

    client = make_client(handler)
    product = await client.create_product("Widget", 9.99, 10, ("w.png", b"\x89PNG"))
    await client.aclose()

    assert product.id == 1
    assert seen["content_type"].startswith("multipart/form-data")
    assert b'name="image"; filename="w.png"' in seen["body"]
    assert b"Widget" in seen["body"]


@pytest.mark.asyncio
async def test_adjust_quantity_passes_delta():
    def handler(request):
        assert request.method == "PATCH"
        assert request.url.params["delta"] == "-3"
        return httpx.Response(200, json={"id": 1, "name": "Widget", "qty": 7, "status": True})

    client = make_client(handler)
    snapshot = await client.adjust_quantity(1, -3)
    await client.aclose()

    assert snapshot.qty == 7


@pytest.mark.asyncio
async def test_get_product_by_name_escapes_the_name():
    def handler(request):
        assert request.url.raw_path == b"/api/v1/products/by-name/Nuts%2FBolts%3F"
        return httpx.Response(200, json=dict(PRODUCT, name="Nuts/Bolts?"))

    client = make_client(handler)
    product = await client.get_product_by_name("Nuts/Bolts?")
    await client.aclose()

    assert product.name == "Nuts/Bolts?"


@pytest.mark.asyncio
@pytest.mark.parametrize("status, body, error_class", [
    (404, {"detail": "Product with ID 1 not found", "type": "not_found"}, NotFoundError),
    (409, {"detail": "Product with name 'Widget' already exists", "type": "conflict"}, ConflictError),
    (400, {"detail": "Not enough on hand", "type": "insufficient_stock"}, InsufficientStockError),
    (400, {"detail": "Image file is required", "type": "validation_error"}, ValidationError),
    (502, {"detail": "Image upload failed", "type": "upload_error"}, UploadError),
    (502, {"detail": "Image deletion failed", "type": "media_store_error"}, MediaStoreError),
])
async def test_error_type_selects_the_error_class(status, body, error_class):
    client = make_client(lambda request: httpx.Response(status, json=body))

    with pytest.raises(error_class) as exc_info:
        await client.get_product(1)
    await client.aclose()

    assert type(exc_info.value) is error_class
    assert str(exc_info.value) == body["detail"]


@pytest.mark.asyncio
@pytest.mark.parametrize("status, detail, error_class", [
    (404, "Not Found", NotFoundError),
    (409, "Conflict", ConflictError),
    (400, "Insufficient stock. Available: 2", ValidationError),
    (422, [{"loc": ["body", "qty"], "msg": "bad"}], ValidationError),
    (502, "Bad Gateway", MediaStoreError),
])
async def test_untyped_errors_fall_back_to_status(status, detail, error_class):
    client = make_client(lambda request: httpx.Response(status, json={"detail": detail}))

    with pytest.raises(error_class) as exc_info:
        await client.get_product(1)
    await client.aclose()

    assert type(exc_info.value) is error_class


@pytest.mark.asyncio
async def test_unmapped_status_keeps_code():
    client = make_client(lambda request: httpx.Response(503, text="unavailable"))

    with pytest.raises(InventoryError) as exc_info:
        await client.delete_product(1)
    await client.aclose()

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_network_failure_is_a_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)

    with pytest.raises(TransportError):
        await client.list_products()
    await client.aclose()
