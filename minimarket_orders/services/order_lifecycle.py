"""
Order Lifecycle - state machine for web orders

Every operation validates and commits synchronously, then hands its side
effects (receipt PDF, emails) to the background pipeline through the outbox.
Nothing that happens after the commit can fail the operation.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from minimarket_orders.config import Settings
from minimarket_orders.models.order import Order, OrderFeedback, OrderItem
from minimarket_orders.publishers.job_publisher import JobPublisher
from minimarket_orders.repositories.order_repository import OrderRepository
from minimarket_orders.schemas.notification import (
    DocumentKind,
    NotificationJob,
    NotificationTemplate,
    OrderSnapshot,
)
from minimarket_orders.schemas.order import OrderCreate, OrderListResponse, OrderResponse
from minimarket_orders.services.configuration import ConfigurationProvider
from minimarket_orders.services.exceptions import (
    DuplicateOrderError,
    InvalidStateError,
    InvalidStatusError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

PENDING = "pending"
CONFIRMED = "confirmed"
PREPARING = "preparing"
SHIPPED = "shipped"
READY_FOR_PICKUP = "ready_for_pickup"
DELIVERED = "delivered"
PICKED_UP = "picked_up"
CANCELLED = "cancelled"

TERMINAL_STATUSES = frozenset({PICKED_UP, CANCELLED})
UPDATABLE_STATUSES = frozenset({CONFIRMED, PREPARING, SHIPPED, DELIVERED, READY_FOR_PICKUP, CANCELLED})
STATUS_UPDATE_NOTIFY = frozenset({PREPARING, SHIPPED, READY_FOR_PICKUP})


def receipt_filename(order_number: str) -> str:
    return f"Receipt_{order_number}.pdf"


def generate_order_number(now: datetime) -> str:
    return f"WEB-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


class OrderLifecycleManager:
    """Service layer for web order transitions"""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        publisher: Optional[JobPublisher] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.db = db
        self.repository = OrderRepository(db)
        self.publisher = publisher or JobPublisher()
        self.config = ConfigurationProvider(db, settings)
        self.clock = clock

    # Queries

    def get_order(self, order_id: str) -> OrderResponse:
        return OrderResponse.model_validate(self._get(order_id))

    def list_orders(self, skip: int = 0, limit: int = 100, status: Optional[str] = None) -> OrderListResponse:
        orders = self.repository.get_all(skip=skip, limit=limit, status=status)
        return OrderListResponse(
            orders=[OrderResponse.model_validate(o) for o in orders],
            total=self.repository.count(status=status),
        )

    def get_orders_by_customer(self, email: str) -> List[OrderResponse]:
        return [OrderResponse.model_validate(o) for o in self.repository.get_by_customer_email(email)]

    # Transitions

    def create_order(self, data: OrderCreate) -> OrderResponse:
        """
        Place a web order in ``pending``

        The estimated delivery/pickup date comes from the configured lead
        times. A confirmation email (no attachment) is queued.
        """
        now = self.clock()
        lead_times = self.config.lead_times()
        days = lead_times.delivery_days if data.shipping_method == "delivery" else lead_times.pickup_days

        order_number = data.order_number or generate_order_number(now)
        if self.repository.get_by_number(order_number):
            raise DuplicateOrderError(f"Order number {order_number} already exists")

        order = Order(
            order_number=order_number,
            customer_email=str(data.customer_email),
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            shipping_method=data.shipping_method,
            shipping_address=data.shipping_address,
            shipping_city=data.shipping_city,
            shipping_region=data.shipping_region,
            selected_sede_id=data.selected_sede_id,
            payment_method=data.payment_method,
            wallet_method=data.wallet_method,
            requires_payment_proof=data.requires_payment_proof,
            status=PENDING,
            subtotal=data.subtotal,
            shipping_cost=data.shipping_cost,
            total=data.total,
            estimated_delivery=now + timedelta(days=days),
            created_at=now,
            updated_at=now,
            items=[
                OrderItem(
                    position=index,
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    subtotal=item.subtotal,
                )
                for index, item in enumerate(data.items)
            ],
        )

        try:
            self.repository.add(order)
            entry = self.publisher.stage(self.db, "order_created", NotificationJob(
                order=self._snapshot(order),
                to=order.customer_email,
                template=NotificationTemplate.CONFIRMATION,
            ))
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateOrderError(f"Order number {order_number} already exists") from e

        logger.info("Web order created. OrderNumber: %s, Total: %s", order.order_number, order.total,
                    extra={"order_number": order.order_number})
        self.publisher.publish(entry.id)
        return self.get_order(order.id)

    def approve_order(self, order_id: str, send_payment_verified_email: bool = False) -> OrderResponse:
        """pending -> confirmed, then receipt PDF + approval email"""
        order = self._get(order_id)
        if order.status != PENDING:
            raise InvalidStateError(f"Only pending orders can be approved (current: {order.status})")

        self._transition(order, PENDING, CONFIRMED)

        also_send = []
        if send_payment_verified_email and order.requires_payment_proof and order.payment_proof_url:
            also_send.append(NotificationTemplate.PAYMENT_VERIFIED)

        entry = self.publisher.stage(self.db, "order_approved", NotificationJob(
            order=self._snapshot(order),
            to=order.customer_email,
            template=NotificationTemplate.APPROVAL,
            also_send=also_send,
            document_kind=DocumentKind.ORDER_RECEIPT,
            attachment_filename=receipt_filename(order.order_number),
        ))
        self.db.commit()

        logger.info("Order %s approved", order.order_number, extra={"order_number": order.order_number})
        self.publisher.publish(entry.id)
        return self.get_order(order_id)

    def reject_order(self, order_id: str, reason: str) -> OrderResponse:
        """pending -> cancelled with a reason, then receipt PDF + rejection email"""
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required")

        order = self._get(order_id)
        if order.status != PENDING:
            raise InvalidStateError(f"Only pending orders can be rejected (current: {order.status})")

        self._transition(order, PENDING, CANCELLED, rejection_reason=reason)

        entry = self.publisher.stage(self.db, "order_rejected", NotificationJob(
            order=self._snapshot(order),
            to=order.customer_email,
            template=NotificationTemplate.REJECTION,
            document_kind=DocumentKind.ORDER_RECEIPT,
            attachment_filename=receipt_filename(order.order_number),
            reason=reason,
        ))
        self.db.commit()

        logger.info("Order %s rejected", order.order_number, extra={"order_number": order.order_number})
        self.publisher.publish(entry.id)
        return self.get_order(order_id)

    def update_status(
        self,
        order_id: str,
        status: str,
        tracking_url: Optional[str] = None,
        estimated_delivery: Optional[datetime] = None,
    ) -> OrderResponse:
        """Move a non-terminal order to one of the updatable statuses"""
        if status not in UPDATABLE_STATUSES:
            raise InvalidStatusError(f"Invalid status: {status}")

        order = self._get(order_id)
        if order.status in TERMINAL_STATUSES:
            raise InvalidStateError(f"Order is {order.status} and can no longer change status")

        fields = {}
        if tracking_url and tracking_url.strip():
            fields["tracking_url"] = tracking_url.strip()
        if estimated_delivery is not None:
            fields["estimated_delivery"] = estimated_delivery

        self._transition(order, order.status, status, **fields)

        entry = None
        if status in STATUS_UPDATE_NOTIFY:
            entry = self.publisher.stage(self.db, "order_status_changed", NotificationJob(
                order=self._snapshot(order),
                to=order.customer_email,
                template=NotificationTemplate.STATUS_UPDATE,
                tracking_url=order.tracking_url,
            ))
        self.db.commit()

        logger.info("Order %s status updated to %s", order.order_number, status,
                    extra={"order_number": order.order_number, "status": status})
        if entry is not None:
            self.publisher.publish(entry.id)
        return self.get_order(order_id)

    def mark_as_picked_up(
        self,
        order_id: str,
        rating: int,
        comment: Optional[str] = None,
        would_recommend: bool = False,
    ) -> OrderResponse:
        """ready_for_pickup -> picked_up for pickup orders, recording feedback"""
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer between 1 and 5")

        order = self._get(order_id)
        if order.shipping_method != "pickup":
            raise ValidationError("Only pickup orders can be marked as picked up")
        if order.status != READY_FOR_PICKUP:
            raise InvalidStateError(f"Order must be ready_for_pickup to be picked up (current: {order.status})")

        self._transition(order, READY_FOR_PICKUP, PICKED_UP)
        self.repository.add_feedback(OrderFeedback(
            order_id=order.id,
            rating=rating,
            comment=comment,
            would_recommend=would_recommend,
        ))
        self.db.commit()

        logger.info("Order %s marked as picked up with rating %s", order.order_number, rating,
                    extra={"order_number": order.order_number})
        return self.get_order(order_id)

    def update_payment_proof(self, order_id: str, payment_proof_url: str) -> OrderResponse:
        """Attach the customer's payment proof; status is unchanged"""
        payment_proof_url = (payment_proof_url or "").strip()
        if not payment_proof_url:
            raise ValidationError("Payment proof URL is required")
        order = self._get(order_id)
        self.repository.update_fields(order, payment_proof_url=payment_proof_url)
        self.db.commit()
        return self.get_order(order_id)

    # Helpers

    def _get(self, order_id: str) -> Order:
        order = self.repository.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def _transition(self, order: Order, expected: str, new_status: str, **fields) -> None:
        """Apply the change only if the persisted row is still in ``expected``"""
        if not self.repository.transition_status(order.id, expected, new_status, **fields):
            self.db.rollback()
            raise InvalidStateError(
                f"Order {order.order_number} changed concurrently, expected status {expected}"
            )
        self.db.refresh(order)

    @staticmethod
    def _snapshot(order: Order) -> OrderSnapshot:
        return OrderSnapshot.model_validate(order)
