"""Sale workflow: pricing, duplicate detection, stock booking and reversal.

All stock changes made on behalf of a sale go through ``SaleWorkflow``. A
mutating operation first takes the lock of the owning seller or sale, then the
locks of every product it touches (sorted by key), and runs its stock changes
inside a unit of work that restores the snapshotted stock levels if any step
fails. The low-stock alert policy lives here as well.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import Settings
from .core import SaleLineIn, money, normalize_payment_method, normalize_status
from .database import InventoryStore, SaleLedger, UserStore, discard_lock, locked
from .errors import DuplicateSaleError, InsufficientStockError, NotFoundError, ValidationError
from .models import (
    Alert, Identity, PopulatedSale, Sale, SaleLineItem, SaleStatus, SellerRef,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _product_keys(product_ids: Iterable[str]) -> List[str]:
    return [f"product:{pid}" for pid in product_ids]


def same_line_items(a: Sequence[SaleLineItem], b: Sequence[SaleLineItem]) -> bool:
    """Basket equality on (product_id, quantity), ignoring order, names and prices."""
    if len(a) != len(b):
        return False

    def key(item):
        return (item.product_id, item.quantity)

    for x, y in zip(sorted(a, key=key), sorted(b, key=key)):
        if x.product_id != y.product_id or x.quantity != y.quantity:
            return False
    return True


class SaleWorkflow:
    def __init__(
        self,
        inventory: InventoryStore,
        ledger: SaleLedger,
        users: UserStore,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.inventory = inventory
        self.ledger = ledger
        self.users = users
        self.settings = settings
        self.clock = clock or _utcnow

    # ---------------------------
    # Shared helpers
    # ---------------------------
    def _locked(self, keys: Iterable[str]):
        return locked(keys, timeout=self.settings.storage_timeout_seconds)

    @asynccontextmanager
    async def _stock_unit_of_work(self, product_ids: Iterable[str]):
        snapshot: Dict[str, int] = {}
        for pid in product_ids:
            product = await self.inventory.get(pid)
            if product is not None:
                snapshot[pid] = product.stock
        try:
            yield
        except BaseException:
            for pid, stock in snapshot.items():
                await self.inventory.set_stock(pid, stock)
            logger.warning(f"Stock rolled back for products {sorted(snapshot)}")
            raise

    async def _price_lines(self, lines: Sequence[SaleLineIn]) -> Tuple[List[SaleLineItem], float]:
        items: List[SaleLineItem] = []
        total = 0.0
        requested: Dict[str, int] = {}
        for line in lines:
            product = await self.inventory.get(line.product_id)
            if product is None:
                raise NotFoundError(
                    f"Product not found: {line.product_id}", detail={"productId": line.product_id}
                )
            # repeated lines for one product draw on the same stock
            requested[product.id] = requested.get(product.id, 0) + line.quantity
            if requested[product.id] > product.stock:
                raise InsufficientStockError(
                    f"Insufficient stock for: {product.name}",
                    detail={
                        "productId": product.id,
                        "requested": requested[product.id],
                        "available": product.stock,
                    },
                )
            subtotal = money(line.quantity * product.price)
            total += subtotal
            items.append(SaleLineItem(
                product_id=product.id,
                name=product.name,
                quantity=line.quantity,
                price=product.price,
                subtotal=subtotal,
            ))
        return items, money(total)

    async def _reject_duplicate(self, seller_id: str, items: List[SaleLineItem], total: float):
        since = self.clock() - timedelta(minutes=self.settings.duplicate_window_minutes)
        recent = await self.ledger.find(seller=seller_id, total=total, created_since=since)
        for sale in recent:
            if same_line_items(sale.products, items):
                logger.warning(f"Duplicate sale rejected for seller {seller_id} (matches sale {sale.id})")
                raise DuplicateSaleError(
                    "Duplicate sale detected. Try again later.", detail={"saleId": sale.id}
                )

    async def _book(self, items: List[SaleLineItem]):
        for item in items:
            await self.inventory.decrement_stock(item.product_id, item.quantity)

    async def _reverse(self, items: List[SaleLineItem]):
        for item in items:
            restored = await self.inventory.increment_stock(item.product_id, item.quantity)
            if restored is None:
                logger.warning(
                    f"Stock not restored for missing product {item.product_id} (quantity {item.quantity})"
                )

    async def low_stock_alerts(self, product_ids: Iterable[str]) -> List[Alert]:
        """Alerts for the products whose live stock is at or below the threshold, one per product."""
        # a product sold on several lines or sales is reported once
        alerts: List[Alert] = []
        seen = set()
        for pid in product_ids:
            if pid in seen:
                continue
            seen.add(pid)
            product = await self.inventory.get(pid)
            if product is not None and product.stock <= self.settings.low_stock_threshold:
                alerts.append(Alert(
                    product_id=product.id,
                    name=product.name,
                    stock=product.stock,
                    message=f'Stock for product "{product.name}" is low: {product.stock} units left',
                ))
        return alerts

    async def _populate(self, sale: Sale) -> PopulatedSale:
        user = await self.users.get(sale.seller)
        seller = SellerRef(
            id=sale.seller,
            name=user.name if user else None,
            email=user.email if user else None,
        )
        return PopulatedSale(**sale.model_dump(exclude={"seller"}), seller=seller)

    # ---------------------------
    # Operations
    # ---------------------------
    async def create_sale(
        self, seller: Identity, lines: Sequence[SaleLineIn], payment_method
    ) -> Tuple[Sale, List[Alert]]:
        if not lines:
            raise ValidationError("At least one product is required")
        method = normalize_payment_method(payment_method)
        product_ids = sorted({line.product_id for line in lines})

        async with self._locked([f"seller:{seller.id}"]):
            async with self._locked(_product_keys(product_ids)):
                items, total = await self._price_lines(lines)
                await self._reject_duplicate(seller.id, items, total)

                now = self.clock()
                sale = Sale(
                    id=uuid.uuid4().hex,
                    seller=seller.id,
                    products=items,
                    total=total,
                    payment_method=method,
                    status=SaleStatus.COMPLETED,
                    created_at=now,
                    updated_at=now,
                )
                async with self._stock_unit_of_work(product_ids):
                    await self._book(items)
                    await self.ledger.save(sale)

                alerts = await self.low_stock_alerts(product_ids)

        logger.info(f"Sale {sale.id} registered by {seller.id}: {len(items)} lines, total {total}")
        return sale, alerts

    async def list_sales(self) -> Tuple[List[PopulatedSale], List[Alert]]:
        sales = await self.ledger.find()
        populated = [await self._populate(s) for s in sales]
        alerts = await self.low_stock_alerts(item.product_id for s in sales for item in s.products)
        return populated, alerts

    async def get_sale(self, sale_id: str) -> Tuple[PopulatedSale, List[Alert]]:
        sale = await self.ledger.get(sale_id)
        if sale is None:
            raise NotFoundError("Sale not found", detail={"saleId": sale_id})
        alerts = await self.low_stock_alerts(item.product_id for item in sale.products)
        return await self._populate(sale), alerts

    async def update_sale(
        self,
        sale_id: str,
        lines: Optional[Sequence[SaleLineIn]] = None,
        payment_method=None,
        status=None,
    ) -> Sale:
        if lines is not None and len(lines) == 0:
            raise ValidationError("At least one product is required")
        changes = {}
        if payment_method is not None:
            changes["payment_method"] = normalize_payment_method(payment_method)
        if status is not None:
            changes["status"] = normalize_status(status)

        async with self._locked([f"sale:{sale_id}"]):
            sale = await self.ledger.get(sale_id)
            if sale is None:
                raise NotFoundError("Sale not found", detail={"saleId": sale_id})
            changes["updated_at"] = self.clock()

            if not lines:
                updated = sale.model_copy(update=changes)
                await self.ledger.save(updated)
            else:
                product_ids = sorted(
                    {item.product_id for item in sale.products} | {line.product_id for line in lines}
                )
                async with self._locked(_product_keys(product_ids)):
                    async with self._stock_unit_of_work(product_ids):
                        # undo the old basket before pricing the new one against the freed stock
                        await self._reverse(sale.products)
                        items, total = await self._price_lines(lines)
                        await self._book(items)
                        changes.update(products=items, total=total)
                        updated = sale.model_copy(update=changes)
                        await self.ledger.save(updated)

        logger.info(f"Sale {sale_id} updated: {sorted(k for k in changes if k != 'updated_at')}")
        return updated

    async def delete_sale(self, sale_id: str) -> Sale:
        async with self._locked([f"sale:{sale_id}"]):
            sale = await self.ledger.get(sale_id)
            if sale is None:
                raise NotFoundError("Sale not found", detail={"saleId": sale_id})
            product_ids = sorted({item.product_id for item in sale.products})
            async with self._locked(_product_keys(product_ids)):
                async with self._stock_unit_of_work(product_ids):
                    await self._reverse(sale.products)
                    await self.ledger.delete(sale_id)

        discard_lock(f"sale:{sale_id}")
        logger.info(f"Sale {sale_id} deleted and stock restored")
        return sale
