# sdk/posclient.py
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx
import requests


def _lines(items: Iterable[Tuple[str, int]]) -> List[Dict[str, Any]]:
    return [{"productId": pid, "quantity": int(qty)} for pid, qty in items]


class PosClient:
    def __init__(self, base_url: str = "http://localhost:8085", timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.timeout = timeout
        self.token: Optional[str] = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def reset(self):
        r = self.session.post(self._url("/reset"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    # Users
    def register(self, name: str, email: str, password: str):
        r = self.session.post(self._url("/api/users/register"), json={
            "name": name, "email": email, "password": password
        }, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def login(self, email: str, password: str):
        # the session keeps the auth cookie; the token is kept for async calls
        r = self.session.post(self._url("/api/users/login"), json={
            "email": email, "password": password
        }, timeout=self.timeout)
        r.raise_for_status()
        body = r.json()
        self.token = body.get("accessToken")
        return body

    def logout(self):
        r = self.session.post(self._url("/api/users/logout"), timeout=self.timeout)
        self.token = None
        self.session.cookies.clear()
        r.raise_for_status()
        return r.json()

    def me(self):
        r = self.session.get(self._url("/api/users/me"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    # Products
    def create_product(self, name: str, price: float, stock: int, category: str = "general",
                       description: Optional[str] = None, image_url: Optional[str] = None):
        payload = {"name": name, "price": price, "stock": stock, "category": category}
        if description:
            payload["description"] = description
        if image_url:
            payload["imageUrl"] = image_url
        r = self.session.post(self._url("/api/products"), json=payload, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def list_products(self):
        r = self.session.get(self._url("/api/products"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def get_product(self, product_id: str):
        r = self.session.get(self._url(f"/api/products/{product_id}"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def update_product(self, product_id: str, **changes):
        r = self.session.put(self._url(f"/api/products/{product_id}"), json=changes, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def delete_product(self, product_id: str):
        r = self.session.delete(self._url(f"/api/products/{product_id}"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    # Sales
    def create_sale(self, items: Iterable[Tuple[str, int]], payment_method: str = "cash"):
        payload = {"products": _lines(items), "paymentMethod": payment_method}
        r = self.session.post(self._url("/api/sales"), json=payload, timeout=self.timeout)
        # no raise_for_status: callers inspect duplicate and stock rejections
        return r

    def list_sales(self):
        r = self.session.get(self._url("/api/sales"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def get_sale(self, sale_id: str):
        r = self.session.get(self._url(f"/api/sales/{sale_id}"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def update_sale(self, sale_id: str, items: Optional[Iterable[Tuple[str, int]]] = None,
                    payment_method: Optional[str] = None, status: Optional[str] = None):
        payload: Dict[str, Any] = {}
        if items is not None:
            payload["products"] = _lines(items)
        if payment_method:
            payload["paymentMethod"] = payment_method
        if status:
            payload["status"] = status
        r = self.session.put(self._url(f"/api/sales/{sale_id}"), json=payload, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def delete_sale(self, sale_id: str):
        r = self.session.delete(self._url(f"/api/sales/{sale_id}"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    # Async sale (used by the concurrency demo)
    async def create_sale_async(self, items: Iterable[Tuple[str, int]], payment_method: str = "cash",
                                token: Optional[str] = None):
        headers = {}
        bearer = token or self.token
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        payload = {"products": _lines(items), "paymentMethod": payment_method}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self._url("/api/sales"), json=payload, headers=headers)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="POS ledger client")
    parser.add_argument("--base-url", default="http://127.0.0.1:8085")
    parser.add_argument("--email", required=True, help="Login email")
    parser.add_argument("--password", required=True, help="Login password")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ---------------------------
    # Product commands
    # ---------------------------
    subparsers.add_parser("list-products", help="List all products")

    gp = subparsers.add_parser("get-product", help="Get a product by its ID")
    gp.add_argument("--product-id", required=True)

    cp = subparsers.add_parser("create-product", help="Register a new product (admin)")
    cp.add_argument("--name", required=True)
    cp.add_argument("--price", type=float, required=True)
    cp.add_argument("--stock", type=int, required=True)
    cp.add_argument("--category", default="general")

    # ---------------------------
    # Sale commands
    # ---------------------------
    sell = subparsers.add_parser("sell", help="Register a sale")
    sell.add_argument("--item", action="append", required=True, metavar="PRODUCT_ID:QTY")
    sell.add_argument("--payment", default="cash", choices=["cash", "card", "transfer"])

    subparsers.add_parser("list-sales", help="List sales with low-stock alerts")

    cs = subparsers.add_parser("cancel-sale", help="Delete a sale and restore stock (admin)")
    cs.add_argument("--sale-id", required=True)

    args = parser.parse_args()
    c = PosClient(base_url=args.base_url)
    c.login(args.email, args.password)

    if args.command == "list-products":
        print(c.list_products())
    elif args.command == "get-product":
        print(c.get_product(args.product_id))
    elif args.command == "create-product":
        print(c.create_product(args.name, args.price, args.stock, args.category))
    elif args.command == "sell":
        pairs = [(raw.split(":")[0], int(raw.split(":")[1])) for raw in args.item]
        print(c.create_sale(pairs, args.payment).json())
    elif args.command == "list-sales":
        print(c.list_sales())
    elif args.command == "cancel-sale":
        print(c.delete_sale(args.sale_id))
