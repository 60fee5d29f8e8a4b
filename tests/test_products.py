"""
Catalog endpoint tests.
"""

import pytest
from conftest import create_product
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession


@pytest.mark.asyncio
async def test_admin_creates_and_updates_product(async_client: AsyncClient, admin_headers):
    created = await async_client.post(
        "/api/v1/products/",
        json={"name": "Coffee", "price": "120.00", "category": "drinks", "stock": 5},
        headers=admin_headers,
    )
    assert created.status_code == 201
    product = created.json()
    assert product["price"] == pytest.approx(120.0)

    updated = await async_client.put(
        f"/api/v1/products/{product['id']}",
        json={"discount_price": "99.50"},
        headers=admin_headers,
    )
    assert updated.json()["discount_price"] == pytest.approx(99.5)
    assert updated.json()["name"] == "Coffee"


@pytest.mark.asyncio
async def test_product_writes_require_admin(async_client: AsyncClient, user_headers):
    anonymous = await async_client.post("/api/v1/products/", json={"name": "X", "price": "1.00"})
    as_user = await async_client.post(
        "/api/v1/products/", json={"name": "X", "price": "1.00"}, headers=user_headers
    )
    assert anonymous.status_code == 401
    assert as_user.status_code == 403


@pytest.mark.asyncio
async def test_price_must_be_positive(async_client: AsyncClient, admin_headers):
    resp = await async_client.post(
        "/api/v1/products/", json={"name": "Free", "price": "0"}, headers=admin_headers
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_soft_delete_hides_product(
    async_client: AsyncClient, db_session: AsyncSession, admin_headers
):
    keep = await create_product(db_session, "Keep", "5.00", category="snacks")
    drop = await create_product(db_session, "Drop", "6.00", category="snacks")

    resp = await async_client.delete(f"/api/v1/products/{drop.id}", headers=admin_headers)
    assert resp.status_code == 200

    listing = await async_client.get("/api/v1/products/", params={"category": "snacks"})
    assert [p["id"] for p in listing.json()] == [keep.id]
    assert (await async_client.get(f"/api/v1/products/{drop.id}")).status_code == 404
    assert (await async_client.get(f"/api/v1/products/{keep.id}")).status_code == 200
