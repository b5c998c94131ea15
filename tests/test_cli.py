# tests/test_cli.py
import io

import pytest
from rich.console import Console

import cli


@pytest.fixture
def screen(monkeypatch):
    buf = io.StringIO()
    monkeypatch.setattr(cli, "console", Console(file=buf, width=200))
    return buf


def _sale(seller):
    return {
        "id": "abc123",
        "seller": seller,
        "products": [{"productId": "p1", "name": "Tea", "quantity": 2, "price": 1.5, "subtotal": 3.0}],
        "total": 3.0,
        "paymentMethod": "card",
        "status": "completed",
    }


def test_show_sales_accepts_bare_seller_id(screen):
    # PUT /api/sales/{id} answers with the unpopulated sale
    cli.show_sales([_sale("user-42")])

    out = screen.getvalue()
    assert "user-42" in out
    assert "Tea x2" in out


def test_show_sales_prefers_seller_name(screen):
    cli.show_sales([_sale({"id": "user-42", "name": "Sam", "email": "sam@shop.com"})])

    out = screen.getvalue()
    assert "Sam" in out
    assert "user-42" not in out
