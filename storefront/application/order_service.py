import secrets
import time
from decimal import Decimal
from typing import Optional, Protocol
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from storefront.core.logging_config import get_logger
from storefront.domain.models import Order, OrderItem, Product
from storefront.domain.status import (
    ORDER_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    OrderStatus,
    PaymentStatus,
    can_transition,
)
from storefront.infrastructure.db import atomic
from storefront.infrastructure.storage import MediaStore
from .address_store import AddressStore
from .errors import InternalFailure, InvalidTransition, NotFound, ValidationError
from .notifications import OrderNotifier
from .query import Page, PageRequest, QueryEngine
from .schemas import (
    AddressRead,
    CustomerSummary,
    OrderCreate,
    OrderDetail,
    OrderDetailItem,
    OrderItemRead,
    OrderProduct,
    OrderRead,
    OrderSummary,
    OrderWithItems,
)

logger = get_logger(__name__)

TRACKING_NUMBER_ATTEMPTS = 5

class ProductLookup(Protocol):
    def find(self, product_id: int) -> Optional[Product]: ...

def generate_tracking_number() -> str:
    """Tracking numbers look like ``TRK-<last 8 digits of epoch ms>-<4 random digits>``."""
    timestamp = str(int(time.time() * 1000))[-8:]
    return f"TRK-{timestamp}-{secrets.randbelow(10000):04d}"

class OrderService:
    def __init__(
        self,
        db: Session,
        addresses: AddressStore,
        products: ProductLookup,
        media: MediaStore,
        notifier: OrderNotifier,
    ):
        self.db = db
        self.addresses = addresses
        self.products = products
        self.media = media
        self.notifier = notifier
        self.query = QueryEngine(
            db, Order, search_field="tracking_number",
            order_by=(Order.created_at.desc(), Order.id.desc()),
            options=(selectinload(Order.customer),)
        )

    def _get_or_404(self, order_id: int, for_update: bool = False) -> Order:
        order = self.db.get(Order, order_id, with_for_update=for_update)
        if not order:
            raise NotFound("Order not found")
        return order

    def _insert_order(self, **fields) -> Order:
        """Insert the order shell, drawing a new tracking number when one is already taken."""
        for _ in range(TRACKING_NUMBER_ATTEMPTS):
            order = Order(tracking_number=generate_tracking_number(), **fields)
            try:
                with self.db.begin_nested():
                    self.db.add(order)
                    self.db.flush()
                return order
            except IntegrityError:
                logger.warning(
                    f"Tracking number collision: {order.tracking_number}",
                    extra={'extra_fields': {'tracking_number': order.tracking_number}}
                )
        raise InternalFailure("Could not allocate a tracking number")

    def create(self, data: OrderCreate, customer_id: Optional[int] = None) -> OrderWithItems:
        """Place an order.

        Addresses, the order row and its items are written in one transaction;
        a missing product rolls every write back. Item prices are copied from
        the products as they are now and never recalculated. Stock is not
        reserved or decremented here.
        """
        if not data.items or not data.payment_method or not data.shipping_address or not data.billing_address:
            raise ValidationError("Order items, payment method, shipping and billing address are required")

        with atomic(self.db):
            shipping = self.addresses.create(data.shipping_address)
            billing = self.addresses.create(data.billing_address)

            order = self._insert_order(
                total_amount=Decimal("0"),
                coupon_code=data.coupon_code,
                discount=data.discount,
                payment_method=data.payment_method.value,
                customer_id=customer_id,
                name=data.name,
                email=data.email,
                phone=data.phone,
                notes=data.notes,
                order_status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                shipping_address_id=shipping.id,
                billing_address_id=billing.id,
            )

            total = Decimal("0")
            for item in data.items:
                product = self.products.find(item.product_id)
                if product is None:
                    raise NotFound(f"Product {item.product_id} not found")
                price = Decimal(product.price)
                item_total = price * item.quantity
                self.db.add(OrderItem(
                    order_id=order.id,
                    product_id=product.id,
                    quantity=item.quantity,
                    price=price,
                    item_total=item_total,
                ))
                total += item_total

            order.total_amount = total

        self.db.refresh(order)
        logger.info(
            f"Order placed: {order.tracking_number}",
            extra={'extra_fields': {
                'order_id': order.id,
                'items': len(data.items),
                'total_amount': str(total),
                'guest': customer_id is None,
            }}
        )
        self.notifier.order_placed(order)
        return OrderWithItems.model_validate(order)

    def change_status(self, order_id: int, status: OrderStatus) -> OrderRead:
        order = self._get_or_404(order_id, for_update=True)
        current = OrderStatus(order.order_status)
        if not can_transition(ORDER_TRANSITIONS, current, status):
            self.db.rollback()
            raise InvalidTransition(f"Order can not move from {current.value} to {status.value}")
        with atomic(self.db):
            order.order_status = status.value
        logger.info(
            f"Order {order_id} status {current.value} -> {status.value}",
            extra={'extra_fields': {'order_id': order_id, 'from': current.value, 'to': status.value}}
        )
        return OrderRead.model_validate(order)

    def change_payment_status(self, order_id: int, status: PaymentStatus) -> OrderRead:
        order = self._get_or_404(order_id, for_update=True)
        current = PaymentStatus(order.payment_status)
        if not can_transition(PAYMENT_TRANSITIONS, current, status):
            self.db.rollback()
            raise InvalidTransition(f"Payment can not move from {current.value} to {status.value}")
        with atomic(self.db):
            order.payment_status = status.value
        logger.info(
            f"Order {order_id} payment {current.value} -> {status.value}",
            extra={'extra_fields': {'order_id': order_id, 'from': current.value, 'to': status.value}}
        )
        return OrderRead.model_validate(order)

    def get_details(self, order_id: int) -> OrderDetail:
        order = self.db.scalar(
            select(Order)
            .where(Order.id == order_id)
            .options(
                selectinload(Order.customer),
                selectinload(Order.items).selectinload(OrderItem.product),
                selectinload(Order.shipping_address),
                selectinload(Order.billing_address),
            )
        )
        if not order:
            raise NotFound("Order not found")

        items = []
        for item in order.items:
            # Only the resolved cover image leaves the service, never the raw list
            images = item.product.images or []
            items.append(OrderDetailItem(
                **OrderItemRead.model_validate(item).model_dump(),
                product=OrderProduct(
                    id=item.product.id,
                    name=item.product.name,
                    cover_image=self.media.url_for(images[0]) if images else None,
                ),
            ))

        return OrderDetail(
            **OrderRead.model_validate(order).model_dump(),
            customer=CustomerSummary.model_validate(order.customer) if order.customer else None,
            shipping_address=AddressRead.model_validate(order.shipping_address),
            billing_address=AddressRead.model_validate(order.billing_address),
            items=items,
        )

    def get_all(self, request: PageRequest, status: Optional[OrderStatus] = None) -> Page[OrderSummary]:
        filters = {"order_status": status.value} if status else None
        page = self.query.paginate(request, filters=filters)
        return Page(
            items=[OrderSummary.model_validate(order) for order in page.items],
            pagination=page.pagination,
        )
