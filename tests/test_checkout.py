"""
Checkout tests: authoritative pricing, empty carts, cart disposal and
concurrent checkouts of the same cart.
"""

from decimal import Decimal

import pytest
from conftest import TestingSessionLocal, create_product
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import ConflictError, EmptyCart
from backoffice.models.cart import Cart
from backoffice.models.catalog import Product
from backoffice.models.order import Order
from backoffice.services import checkout as checkout_module
from backoffice.services.cart import add_item
from backoffice.services.checkout import CheckoutEngine


@pytest.fixture
async def products(db_session: AsyncSession):
    tea = await create_product(db_session, "Tea", "10.00")
    cake = await create_product(db_session, "Cake", "50.00", discount_price=Decimal("45.50"))
    return tea, cake


async def _fill_cart(client: AsyncClient, user_id: str, headers: dict, lines) -> None:
    for product, qty in lines:
        resp = await client.post(
            "/api/v1/cart/add",
            json={"user_id": user_id, "product_id": product.id, "quantity": qty},
            headers=headers,
        )
        assert resp.status_code == 200


async def _order_count() -> int:
    async with TestingSessionLocal() as session:
        return await session.scalar(select(func.count()).select_from(Order))


async def _cart_for(principal_id: str) -> Cart | None:
    async with TestingSessionLocal() as session:
        result = await session.execute(select(Cart).where(Cart.principal_id == principal_id))
        return result.scalar_one_or_none()


@pytest.mark.asyncio
async def test_total_uses_catalog_prices_not_client_prices(
    async_client: AsyncClient, user, user_headers, products
):
    tea, cake = products
    await _fill_cart(async_client, user.id, user_headers, [(tea, 2), (cake, 1)])

    resp = await async_client.post(
        f"/api/v1/orders/place/{user.id}",
        json={
            "payment_method": "COD",
            "total_amount": 0.01,
            "items": [{"product_id": tea.id, "price": 0.01, "quantity": 2}],
        },
        headers=user_headers,
    )
    assert resp.status_code == 200
    order = resp.json()["order"]
    assert order["total_amount"] == pytest.approx(65.50)
    assert order["status"] == "Pending"
    assert {i["product_id"]: i["unit_price"] for i in order["items"]} == {
        tea.id: pytest.approx(10.0),
        cake.id: pytest.approx(45.5),
    }
    assert order["items"][0]["product"]["name"] in {"Tea", "Cake"}
    assert await _cart_for(user.id) is None


@pytest.mark.asyncio
async def test_price_change_after_adding_is_honoured(
    async_client: AsyncClient, user, user_headers, products
):
    tea, _ = products
    await _fill_cart(async_client, user.id, user_headers, [(tea, 3)])

    async with TestingSessionLocal() as session:
        await session.execute(
            update(Product).where(Product.id == tea.id).values(price=Decimal("12.00"))
        )
        await session.commit()

    resp = await async_client.post(f"/api/v1/orders/place/{user.id}", headers=user_headers)
    assert resp.json()["order"]["total_amount"] == pytest.approx(36.0)


@pytest.mark.asyncio
async def test_online_payment_creates_paid_order(
    async_client: AsyncClient, user, user_headers, products
):
    tea, _ = products
    await _fill_cart(async_client, user.id, user_headers, [(tea, 1)])
    resp = await async_client.post(
        f"/api/v1/orders/place/{user.id}",
        json={"payment_method": "Online", "payment_id": "pay_abc"},
        headers=user_headers,
    )
    order = resp.json()["order"]
    assert order["status"] == "Paid"
    assert order["payment_id"] == "pay_abc"
    assert order["paid_at"] is not None


@pytest.mark.asyncio
async def test_online_payment_reference_cannot_be_reused(
    async_client: AsyncClient, user, user_headers, products
):
    tea, _ = products
    body = {"payment_method": "Online", "payment_id": "pay_once"}
    await _fill_cart(async_client, user.id, user_headers, [(tea, 1)])
    first = await async_client.post(f"/api/v1/orders/place/{user.id}", json=body, headers=user_headers)
    assert first.status_code == 200

    await _fill_cart(async_client, user.id, user_headers, [(tea, 2)])
    second = await async_client.post(f"/api/v1/orders/place/{user.id}", json=body, headers=user_headers)
    assert second.status_code == 409

    cart = await async_client.get(f"/api/v1/cart/{user.id}", headers=user_headers)
    assert [item["quantity"] for item in cart.json()["items"]] == [2]


@pytest.mark.asyncio
async def test_empty_or_absent_cart_creates_no_order(
    async_client: AsyncClient, user, user_headers, products
):
    absent = await async_client.post(f"/api/v1/orders/place/{user.id}", headers=user_headers)
    assert absent.status_code == 400
    assert absent.json()["message"] == "Cart is empty"

    tea, _ = products
    await _fill_cart(async_client, user.id, user_headers, [(tea, 1)])
    await async_client.delete(f"/api/v1/cart/clear/{user.id}", headers=user_headers)
    emptied = await async_client.post(f"/api/v1/orders/place/{user.id}", headers=user_headers)
    assert emptied.status_code == 400
    assert await _order_count() == 0


@pytest.mark.asyncio
async def test_unavailable_product_aborts_and_keeps_cart(
    async_client: AsyncClient, user, user_headers, admin_headers, products
):
    tea, cake = products
    await _fill_cart(async_client, user.id, user_headers, [(tea, 1), (cake, 1)])
    await async_client.delete(f"/api/v1/products/{cake.id}", headers=admin_headers)

    resp = await async_client.post(f"/api/v1/orders/place/{user.id}", headers=user_headers)
    assert resp.status_code == 404
    assert await _order_count() == 0
    assert await _cart_for(user.id) is not None


@pytest.mark.asyncio
async def test_cannot_place_order_for_someone_else(
    async_client: AsyncClient, admin, user_headers
):
    resp = await async_client.post(f"/api/v1/orders/place/{admin.id}", headers=user_headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_failed_cart_delete_still_reports_success(
    async_client: AsyncClient, user, user_headers, products, monkeypatch
):
    tea, _ = products
    await _fill_cart(async_client, user.id, user_headers, [(tea, 1)])

    async def _fail_discard(db, cart):
        return False

    monkeypatch.setattr(checkout_module, "discard_cart", _fail_discard)
    resp = await async_client.post(f"/api/v1/orders/place/{user.id}", headers=user_headers)
    assert resp.status_code == 200

    leftover = await _cart_for(user.id)
    assert leftover is not None
    assert leftover.checked_out_order_id == resp.json()["order"]["id"]

    # The leftover is swept on next access and never re-ordered.
    view = await async_client.get(f"/api/v1/cart/{user.id}", headers=user_headers)
    assert view.json()["items"] == []
    assert await _cart_for(user.id) is None
    again = await async_client.post(f"/api/v1/orders/place/{user.id}", headers=user_headers)
    assert again.status_code == 400
    assert await _order_count() == 1


@pytest.mark.asyncio
async def test_concurrent_checkout_of_same_cart_conflicts(
    db_session: AsyncSession, user, products, monkeypatch
):
    tea, _ = products
    await add_item(db_session, user.id, tea.id, 2)

    real_lookup = checkout_module.get_available_products

    async def _lookup_while_another_checkout_claims(db, ids):
        found = await real_lookup(db, ids)
        async with TestingSessionLocal() as other:
            await other.execute(
                update(Cart)
                .where(Cart.principal_id == user.id)
                .values(version_id=Cart.version_id + 1)
            )
            await other.commit()
        return found

    monkeypatch.setattr(checkout_module, "get_available_products", _lookup_while_another_checkout_claims)

    async with TestingSessionLocal() as session:
        with pytest.raises(ConflictError):
            await CheckoutEngine(session).place_order(user.id)

    assert await _order_count() == 0
    assert await _cart_for(user.id) is not None


@pytest.mark.asyncio
async def test_engine_raises_empty_cart(db_session: AsyncSession, user):
    with pytest.raises(EmptyCart):
        await CheckoutEngine(db_session).place_order(user.id)


@pytest.mark.asyncio
async def test_order_history_newest_first(async_client: AsyncClient, user, user_headers, products):
    tea, cake = products
    await _fill_cart(async_client, user.id, user_headers, [(tea, 1)])
    first = await async_client.post(f"/api/v1/orders/place/{user.id}", headers=user_headers)
    await _fill_cart(async_client, user.id, user_headers, [(cake, 1)])
    second = await async_client.post(f"/api/v1/orders/place/{user.id}", headers=user_headers)

    resp = await async_client.get(f"/api/v1/orders/{user.id}", headers=user_headers)
    ids = [o["id"] for o in resp.json()["orders"]]
    assert ids == [second.json()["order"]["id"], first.json()["order"]["id"]]
