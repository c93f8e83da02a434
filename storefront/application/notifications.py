from typing import Protocol
from storefront.core.logging_config import get_logger
from storefront.domain.models import Order

logger = get_logger(__name__)

class OrderNotifier(Protocol):
    def order_placed(self, order: Order) -> None: ...

class LoggingOrderNotifier:
    """Records the confirmation a mailer would send; delivery happens elsewhere."""

    def order_placed(self, order: Order) -> None:
        logger.info(
            f"Order confirmation queued for {order.tracking_number}",
            extra={'extra_fields': {
                'order_id': order.id,
                'tracking_number': order.tracking_number,
                'email': order.email,
                'total_amount': str(order.total_amount),
            }}
        )
