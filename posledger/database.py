import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .errors import InsufficientStockError, NotFoundError, StorageTimeoutError
from .models import Product, Sale, User

# This file holds all the in-memory data stores and concurrency locks.

_LOCKS: Dict[str, asyncio.Lock] = {}


def get_lock(key: str) -> asyncio.Lock:
    if key not in _LOCKS:
        _LOCKS[key] = asyncio.Lock()
    return _LOCKS[key]


def discard_lock(key: str):
    lock = _LOCKS.get(key)
    if lock is not None and not lock.locked():
        del _LOCKS[key]


@asynccontextmanager
async def locked(keys: Iterable[str], timeout: float):
    """Hold the locks for ``keys``, acquired in sorted order, for the body of the block."""
    locks = [get_lock(k) for k in sorted(set(keys))]
    acquired: List[asyncio.Lock] = []
    try:
        for lock in locks:
            try:
                await asyncio.wait_for(lock.acquire(), timeout)
            except asyncio.TimeoutError:
                raise StorageTimeoutError("Timed out waiting for storage", detail={"timeout": timeout})
            acquired.append(lock)
        yield
    finally:
        for lock in reversed(acquired):
            lock.release()


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------
# Inventory
# ---------------------------
class InventoryStore:
    def __init__(self):
        self.products: Dict[str, Product] = {}

    async def get(self, product_id: str) -> Optional[Product]:
        p = self.products.get(product_id)
        return p.model_copy() if p else None

    async def list(self) -> List[Product]:
        return [p.model_copy() for p in self.products.values()]

    async def find_by_name(self, name: str) -> Optional[Product]:
        for p in self.products.values():
            if p.name == name:
                return p.model_copy()
        return None

    async def save(self, product: Product) -> Product:
        self.products[product.id] = product.model_copy()
        return product

    async def delete(self, product_id: str) -> Optional[Product]:
        return self.products.pop(product_id, None)

    async def decrement_stock(self, product_id: str, quantity: int) -> Product:
        # check and write happen without a suspension point in between
        p = self.products.get(product_id)
        if p is None:
            raise NotFoundError(f"Product not found: {product_id}", detail={"productId": product_id})
        if p.stock < quantity:
            raise InsufficientStockError(
                f"Insufficient stock for: {p.name}",
                detail={"productId": product_id, "requested": quantity, "available": p.stock},
            )
        p.stock -= quantity
        p.updated_at = _now()
        return p.model_copy()

    async def increment_stock(self, product_id: str, quantity: int) -> Optional[Product]:
        p = self.products.get(product_id)
        if p is None:
            return None
        p.stock += quantity
        p.updated_at = _now()
        return p.model_copy()

    async def set_stock(self, product_id: str, stock: int) -> Optional[Product]:
        p = self.products.get(product_id)
        if p is None:
            return None
        p.stock = stock
        return p.model_copy()

    def clear(self):
        self.products.clear()


# ---------------------------
# Sales ledger
# ---------------------------
class SaleLedger:
    def __init__(self):
        self.sales: Dict[str, Sale] = {}

    async def find(
        self,
        seller: Optional[str] = None,
        total: Optional[float] = None,
        created_since: Optional[datetime] = None,
    ) -> List[Sale]:
        out = []
        for s in self.sales.values():
            if seller is not None and s.seller != seller:
                continue
            if total is not None and s.total != total:
                continue
            if created_since is not None and s.created_at < created_since:
                continue
            out.append(s.model_copy(deep=True))
        out.sort(key=lambda s: s.created_at, reverse=True)
        return out

    async def get(self, sale_id: str) -> Optional[Sale]:
        s = self.sales.get(sale_id)
        return s.model_copy(deep=True) if s else None

    async def save(self, sale: Sale) -> Sale:
        self.sales[sale.id] = sale.model_copy(deep=True)
        return sale

    async def delete(self, sale_id: str) -> bool:
        return self.sales.pop(sale_id, None) is not None

    def clear(self):
        self.sales.clear()


# ---------------------------
# Users
# ---------------------------
class UserStore:
    def __init__(self):
        self.users: Dict[str, User] = {}

    async def get(self, user_id: str) -> Optional[User]:
        u = self.users.get(user_id)
        return u.model_copy() if u else None

    async def find_by_email(self, email: str) -> Optional[User]:
        for u in self.users.values():
            if u.email == email:
                return u.model_copy()
        return None

    async def list(self) -> List[User]:
        return [u.model_copy() for u in self.users.values()]

    async def save(self, user: User) -> User:
        self.users[user.id] = user.model_copy()
        return user

    async def delete(self, user_id: str) -> bool:
        return self.users.pop(user_id, None) is not None

    def clear(self):
        self.users.clear()


inventory = InventoryStore()
ledger = SaleLedger()
users = UserStore()


def reset_all():
    inventory.clear()
    ledger.clear()
    users.clear()
    _LOCKS.clear()
