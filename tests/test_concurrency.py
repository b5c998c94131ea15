# tests/test_concurrency.py
import asyncio

import httpx
from conftest import login, stock_of

from posledger import database
from posledger.main import app


async def _sell_task(headers, product_id, quantity=1):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        return await ac.post(
            "/api/sales",
            json={"products": [{"productId": product_id, "quantity": quantity}], "paymentMethod": "cash"},
            headers=headers,
        )


async def _race(*calls):
    return await asyncio.gather(*calls)


def test_concurrent_last_item(client, make_product):
    p = make_product("Last one", stock=1)
    u1 = login(client, "Uma", "u1@shop.com")
    u2 = login(client, "Ugo", "u2@shop.com")

    results = asyncio.run(_race(_sell_task(u1, p["id"]), _sell_task(u2, p["id"])))

    statuses = sorted(r.status_code for r in results)
    assert statuses == [201, 400]
    failed = next(r for r in results if r.status_code == 400)
    assert failed.json()["message"] == "Insufficient stock for: Last one"
    assert stock_of(p["id"]) == 0
    assert len(database.ledger.sales) == 1


def test_concurrent_double_submit_books_once(client, seller_headers, make_product):
    p = make_product(stock=10)

    results = asyncio.run(_race(
        _sell_task(seller_headers, p["id"], 2),
        _sell_task(seller_headers, p["id"], 2),
    ))

    statuses = sorted(r.status_code for r in results)
    assert statuses == [201, 400]
    assert stock_of(p["id"]) == 8


def test_many_concurrent_sales_never_oversell(client, make_product):
    p = make_product(stock=5)
    sellers = [login(client, f"Seller {i}", f"s{i}@shop.com") for i in range(8)]

    results = asyncio.run(_race(*[_sell_task(h, p["id"]) for h in sellers]))

    assert sum(r.status_code == 201 for r in results) == 5
    assert stock_of(p["id"]) == 0
