"""Order service — checkout and admin-driven status changes.

Checkout is one transaction: for every line the stock of a limited
product is decremented with a conditional UPDATE (same pattern as the
ledger debit), the order total is debited from the buyer through
LedgerStore.debit, and the order plus its items are inserted. Any
failure rolls the whole thing back.

Prices are taken from the catalog at checkout time and frozen into
OrderItem.price_per_item; the client never supplies a total.

Status transitions are validated against a table:
  pending → shipped → delivered
  pending/shipped → cancelled
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.db.models import Order, OrderItem, Product
from ticktee.services.catalog_service import CatalogService
from ticktee.services.errors import (
    InvalidStatusTransitionError,
    NotFoundError,
    OutOfStockError,
    ValidationError,
)
from ticktee.services.ledger import LedgerStore

logger = structlog.get_logger()


VALID_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"shipped", "cancelled"},
    "shipped": {"delivered", "cancelled"},
    "delivered": set(),  # terminal
    "cancelled": set(),  # terminal
}


@dataclass
class OrderLine:
    """One requested line of a checkout."""

    product_id: int
    quantity: int = 1
    size: Optional[str] = None


class OrderService:
    """Business logic for placing and managing orders."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = LedgerStore(db)
        self.catalog = CatalogService(db)

    # ─── Checkout ────────────────────────────────────────

    async def create_order(self, account_id: int, lines: list[OrderLine]) -> Order:
        """Place an order, debiting its total from the buyer.

        Raises ValidationError, NotFoundError, OutOfStockError or
        InsufficientBalanceError with nothing persisted.
        """
        if not lines:
            raise ValidationError("Order must contain at least one item")

        try:
            items: list[OrderItem] = []
            total = 0
            for line in lines:
                product = await self.catalog.get_product(line.product_id)
                if not product:
                    raise NotFoundError(f"Product {line.product_id} not found")
                self._check_line(product, line)

                if not product.unlimited:
                    await self._take_stock(product, line.quantity)

                total += product.price * line.quantity
                items.append(
                    OrderItem(
                        product_id=product.id,
                        quantity=line.quantity,
                        size=line.size,
                        price_per_item=product.price,
                    )
                )

            if total > 0:
                await self.ledger.debit(account_id, total)

            order = Order(
                account_id=account_id,
                total_points=total,
                status="pending",
                items=items,
            )
            self.db.add(order)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "orders.created",
            order_id=order.id,
            account_id=account_id,
            total_points=total,
            items=len(items),
        )
        return order

    @staticmethod
    def _check_line(product: Product, line: OrderLine) -> None:
        if line.quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        if line.size and product.sizes:
            allowed = [s.strip() for s in product.sizes.split(",") if s.strip()]
            if line.size not in allowed:
                raise ValidationError(
                    f"Size {line.size!r} is not available for {product.name}"
                )

    async def _take_stock(self, product: Product, quantity: int) -> None:
        result = await self.db.execute(
            update(Product)
            .where(Product.id == product.id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise OutOfStockError(f"{product.name} is out of stock")

    # ─── Read ────────────────────────────────────────────

    async def get_order(self, order_id: int) -> Optional[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list_orders(self, account_id: Optional[int] = None) -> list[Order]:
        """Orders for one account, or every order when account_id is None."""
        q = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        if account_id is not None:
            q = q.where(Order.account_id == account_id)
        result = await self.db.execute(q.execution_options(populate_existing=True))
        return list(result.scalars().all())

    # ─── Status ──────────────────────────────────────────

    async def update_status(self, order_id: int, new_status: str) -> Order:
        order = await self.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")

        allowed = VALID_TRANSITIONS.get(order.status, set())
        if new_status not in allowed:
            raise InvalidStatusTransitionError(
                f"Cannot move order from '{order.status}' to '{new_status}'. "
                f"Allowed: {sorted(allowed) or 'none (terminal state)'}"
            )

        old_status = order.status
        order.status = new_status
        await self.db.commit()

        logger.info(
            "orders.status_changed",
            order_id=order_id,
            from_status=old_status,
            to_status=new_status,
        )
        return order
