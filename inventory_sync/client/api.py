from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import httpx

from inventory_sync.exceptions import (
    ERROR_TYPES,
    ConflictError,
    InventoryError,
    MediaStoreError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from inventory_sync.schemas.product import ProductResponse, QuantitySnapshot

Image = tuple[str, bytes]  # (filename, content)


class InventoryClient:
    """
    Async client for the inventory REST API.

    Error responses are raised as the matching inventory error so callers
    handle local and remote failures the same way.
    """

    def __init__(self, base_url: str, http: Optional[httpx.AsyncClient] = None) -> None:
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=10.0)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def list_products(self) -> list[ProductResponse]:
        response = await self._request("GET", "/api/v1/products")
        return [ProductResponse.model_validate(item) for item in response.json()]

    async def get_product(self, product_id: int) -> ProductResponse:
        response = await self._request("GET", f"/api/v1/products/{product_id}")
        return ProductResponse.model_validate(response.json())

    async def get_product_by_name(self, name: str) -> ProductResponse:
        response = await self._request("GET", f"/api/v1/products/by-name/{quote(name, safe='')}")
        return ProductResponse.model_validate(response.json())

    async def create_product(self, name: str, price: float, qty: int, image: Image) -> ProductResponse:
        response = await self._request(
            "POST",
            "/api/v1/products",
            data={"name": name, "price": str(price), "qty": str(qty)},
            files={"image": image},
        )
        return ProductResponse.model_validate(response.json())

    async def update_product(
        self, product_id: int, name: str, price: float, qty: int, image: Optional[Image] = None
    ) -> None:
        await self._request(
            "PUT",
            f"/api/v1/products/{product_id}",
            data={"name": name, "price": str(price), "qty": str(qty)},
            files={"image": image} if image else None,
        )

    async def delete_product(self, product_id: int) -> None:
        await self._request("DELETE", f"/api/v1/products/{product_id}")

    async def adjust_quantity(self, product_id: int, delta: int) -> QuantitySnapshot:
        response = await self._request(
            "PATCH", f"/api/v1/products/{product_id}/adjust-qty", params={"delta": delta}
        )
        return QuantitySnapshot.model_validate(response.json())

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e
        if response.is_success:
            return response
        raise _error_for(response)


def _error_for(response: httpx.Response) -> InventoryError:
    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}
    detail = body.get("detail", response.text)

    error_class = ERROR_TYPES.get(body.get("type"))
    if error_class is not None:
        return error_class(detail)

    # responses not rendered by the inventory error handler, e.g. 422 from form parsing
    status = response.status_code
    if status == 404:
        return NotFoundError(detail)
    if status == 409:
        return ConflictError(detail)
    if status in (400, 422):
        return ValidationError(detail)
    if status == 502:
        return MediaStoreError(detail)

    error = InventoryError(detail)
    error.status_code = status
    return error
