"""OrderProcessor — checkout, payment, fulfillment and compensation.

The processor is the only place where an order, its stock reservations and
the money collected for it are changed together. Each operation loads the
aggregates it touches, mutates them, saves them against the version it
loaded and returns the order plus every domain event raised along the way.

Failure policy:
    - Checkout reserves all lines or none; acquired reservations are released
      before the error reaches the caller.
    - A failed charge releases the order's reservations and leaves the order
      pending, so the caller may retry. The processor never retries itself.
    - Success is saved only after every reservation is committed. A charge
      that can't be backed by stock, or whose order changed underneath it,
      is refunded and its deductions are put back.
    - Refunds are keyed on the transaction, so retrying a cancellation or
      refund that lost a race never pays the customer twice.
    - A refund that doesn't go through aborts the cancellation or refund and
      leaves the order untouched.
    - Notifications are best-effort and never undo an order change.
    - ConcurrentModificationError is surfaced for the caller to retry.
"""

from dataclasses import dataclass, field

import structlog

from catalogue.port import CatalogPort
from inventory.stock.ledger import ReservationToken, StockLedger
from notifications.channel.port import NotificationKind, NotificationPort
from payments.gateway.port import ChargeResult, PaymentGateway, PaymentGatewayError, RefundResult
from shared.address import Address
from shared.aggregate import DomainEvent
from shared.errors import (
    ConcurrentModificationError,
    CurrencyMismatchError,
    EmptyCartError,
    InsufficientStockError,
    InvalidCouponError,
    InvalidTransitionError,
    PaymentFailedError,
    RefundFailedError,
    ReservationNotActiveError,
    ValidationError,
)
from shared.lines import PricedLine
from shared.money import Money
from shared.repository import InMemoryRepository
from vendors.commission.calculator import CommissionCalculator

from ordering.cart.cart import Cart, CartStatus
from ordering.order.order import Order, OrderItem, generate_order_number
from ordering.order.status import (
    FulfillmentStatus,
    OrderStatus,
    PaymentStatus,
    awaits_payment,
    can_be_cancelled,
    can_be_refunded,
    is_paid,
)
from ordering.pricing.coupons import CouponValidator
from ordering.pricing.engine import PricingEngine

logger = structlog.get_logger(__name__)


@dataclass
class ProcessingResult:
    order: Order
    events: list[DomainEvent] = field(default_factory=list)


class OrderProcessor:
    def __init__(
        self,
        ledger: StockLedger,
        catalog: CatalogPort,
        pricing: PricingEngine,
        coupons: CouponValidator,
        gateway: PaymentGateway,
        notifier: NotificationPort,
        commissions: CommissionCalculator,
        orders: InMemoryRepository[Order] | None = None,
        carts: InMemoryRepository[Cart] | None = None,
        order_number_prefix: str = "ORD",
    ):
        self.ledger = ledger
        self.catalog = catalog
        self.pricing = pricing
        self.coupons = coupons
        self.gateway = gateway
        self.notifier = notifier
        self.commissions = commissions
        self.orders = orders if orders is not None else InMemoryRepository(Order)
        self.carts = carts if carts is not None else InMemoryRepository(Cart)
        self.order_number_prefix = order_number_prefix

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get(self, order_id: str) -> Order:
        return self.orders.get(order_id)

    def find_by_number(self, order_number: str) -> Order | None:
        matches = self.orders.find(lambda o: o.order_number == order_number)
        return matches[0] if matches else None

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _next_order_number(self) -> str:
        while True:
            number = generate_order_number(self.order_number_prefix)
            if self.find_by_number(number) is None:
                return number

    @staticmethod
    def _token_for(order: Order, item: OrderItem) -> ReservationToken | None:
        if item.reservation_id is None:
            return None
        return ReservationToken(
            product_id=item.product_id,
            reservation_id=item.reservation_id,
            quantity=item.quantity,
            order_ref=order.id,
        )

    def _tokens(self, order: Order) -> list[ReservationToken]:
        return [token for token in (self._token_for(order, item) for item in order.items) if token is not None]

    def _release_all(self, tokens: list[ReservationToken], reason: str) -> None:
        for token in tokens:
            self.ledger.release(token, reason=reason)

    def _reserve_item(self, order: Order, item: OrderItem) -> ReservationToken | None:
        if not self.ledger.is_enrolled(item.product_id):
            snapshot = self.catalog.get_product_snapshot(item.product_id)
            if not snapshot.track_inventory:
                return None
        token = self.ledger.reserve(item.product_id, item.quantity, order_ref=order.id)
        order.attach_reservation(item.id, token.reservation_id)
        return token

    def _save(self, order: Order, events: list[DomainEvent]) -> None:
        self.orders.add(order)
        events.extend(order.collect_events())

    def _notify(self, kind: NotificationKind, order: Order, **payload) -> None:
        try:
            outcome = self.notifier.send(
                kind,
                order.customer_ref,
                {"order_id": order.id, "order_number": order.order_number, **payload},
            )
        except Exception as e:
            logger.error("Notification failed", kind=kind.value, order_id=order.id, error=str(e))
            return
        if outcome.get("status") != "sent":
            logger.warning(
                "Notification not delivered",
                kind=kind.value,
                order_id=order.id,
                error=outcome.get("error"),
            )

    def _issue_refund(self, transaction_id: str, amount: Money, reason: str) -> RefundResult:
        """Refund a charge in full. Keyed on the transaction, so a retried call never pays out twice."""
        try:
            return self.gateway.create_refund(
                transaction_id, amount, reason, idempotency_key=f"{transaction_id}:refund"
            )
        except PaymentGatewayError as e:
            return RefundResult(success=False, gateway_status="error", failure_reason=str(e))

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def create_from_cart(
        self,
        cart: Cart,
        billing_address: Address,
        shipping_address: Address,
        payment_method: str | None = None,
        shipping_method: str = "standard",
    ) -> ProcessingResult:
        """Turn an active cart into a pending order with all stock reserved.

        Every line is re-priced against the live catalogue and the cart's
        coupon is re-validated; the amounts cached on the cart are ignored.
        """
        if CartStatus(cart.status) != CartStatus.ACTIVE:
            raise InvalidTransitionError(
                "status",
                CartStatus(cart.status).value,
                CartStatus.CONVERTED.value,
                f"Cart {cart.id} has already been {CartStatus(cart.status).value.lower()}",
            )
        if not cart.items:
            raise EmptyCartError(cart.id)

        items = []
        lines = []
        for line in cart.items:
            snapshot = self.catalog.get_product_snapshot(line.product_id)
            if snapshot.retired:
                raise ValidationError({"product_id": [f"Product {line.product_id} is no longer for sale"]})
            if snapshot.price.currency != cart.currency:
                raise CurrencyMismatchError(cart.currency, snapshot.price.currency)
            items.append(
                {
                    "product_id": line.product_id,
                    "vendor_id": snapshot.vendor_id,
                    "product_name": snapshot.name,
                    "product_sku": snapshot.sku,
                    "quantity": line.quantity,
                    "unit_price": snapshot.price,
                    "category_ids": list(snapshot.category_ids),
                }
            )
            lines.append(
                PricedLine(
                    product_id=line.product_id,
                    vendor_id=snapshot.vendor_id,
                    quantity=line.quantity,
                    unit_price=snapshot.price,
                    category_ids=tuple(snapshot.category_ids),
                )
            )

        discount = Money.zero(cart.currency)
        free_shipping = False
        if cart.coupon_code:
            quote = self.coupons.validate(cart.coupon_code, lines, cart.owner_ref, cart.currency)
            discount, free_shipping = quote.discount, quote.free_shipping

        breakdown = self.pricing.compute_totals(
            lines,
            cart.currency,
            destination=shipping_address,
            shipping_method=shipping_method,
            discount=discount,
            free_shipping=free_shipping,
        )

        order = Order.place(
            order_number=self._next_order_number(),
            customer_ref=cart.owner_ref,
            currency=cart.currency,
            items=items,
            billing_address=billing_address,
            shipping_address=shipping_address,
            tax_amount=breakdown.tax,
            shipping_amount=breakdown.shipping,
            discount_amount=breakdown.discount,
            shipping_method=shipping_method,
            payment_method=payment_method,
            coupon_code=cart.coupon_code,
            free_shipping=free_shipping,
            cart_id=cart.id,
        )

        tokens: list[ReservationToken] = []
        try:
            for item in order.items:
                token = self._reserve_item(order, item)
                if token is not None:
                    tokens.append(token)

            cart.convert(order.id)
            self.carts.add(cart)
            self.orders.add(order)
        except Exception:
            self._release_all(tokens, reason="checkout_failed")
            logger.warning("Checkout rolled back", cart_id=cart.id, released=len(tokens))
            raise

        events = [*order.collect_events(), *cart.collect_events()]
        logger.info(
            "Order placed",
            order_id=order.id,
            order_number=order.order_number,
            customer_ref=order.customer_ref,
            total=str(order.total_amount),
        )
        return ProcessingResult(order=order, events=events)

    # -------------------------------------------------------------------
    # Pending-order changes
    # -------------------------------------------------------------------
    def _reprice(self, order: Order) -> None:
        lines = order.priced_lines()
        discount = Money.zero(order.currency)
        free_shipping = False
        coupon_code = order.coupon_code
        if coupon_code:
            try:
                quote = self.coupons.validate(coupon_code, lines, order.customer_ref, order.currency)
                discount, free_shipping = quote.discount, quote.free_shipping
            except InvalidCouponError as e:
                logger.info("Coupon dropped from order", order_id=order.id, coupon_code=coupon_code, error=e.messages)
                coupon_code = None

        breakdown = self.pricing.compute_totals(
            lines,
            order.currency,
            destination=order.shipping_address,
            shipping_method=order.shipping_method,
            discount=discount,
            free_shipping=free_shipping,
        )
        order.reprice(breakdown.tax, breakdown.shipping, breakdown.discount, coupon_code, free_shipping)

    def change_item_quantity(self, order_id: str, item_id: str, quantity: int) -> ProcessingResult:
        """Change a pending order's line and move its reservation to the new quantity."""
        order = self.orders.get(order_id)
        item = order.item(item_id)
        old_token = self._token_for(order, item)
        previous = order.update_item_quantity(item_id, quantity)

        new_token = None
        if old_token is not None:
            self.ledger.release(old_token, reason="order_modified")
            try:
                new_token = self.ledger.reserve(item.product_id, quantity, order_ref=order.id)
            except InsufficientStockError:
                # The stored order keeps its old, now released, reservation;
                # process_payment re-reserves it before charging.
                logger.warning(
                    "Quantity change refused",
                    order_id=order.id,
                    item_id=item_id,
                    previous=previous,
                    requested=quantity,
                )
                raise
            order.attach_reservation(item_id, new_token.reservation_id)

        self._reprice(order)
        events: list[DomainEvent] = []
        try:
            self._save(order, events)
        except ConcurrentModificationError:
            if new_token is not None:
                self.ledger.release(new_token, reason="order_modified")
            raise

        logger.info("Order item quantity changed", order_id=order.id, item_id=item_id, quantity=quantity)
        return ProcessingResult(order=order, events=events)

    def remove_item(self, order_id: str, item_id: str) -> ProcessingResult:
        order = self.orders.get(order_id)
        removed = order.remove_item(item_id)
        self._reprice(order)

        events: list[DomainEvent] = []
        self._save(order, events)

        token = self._token_for(order, removed)
        if token is not None:
            self.ledger.release(token, reason="order_modified")
        logger.info("Order item removed", order_id=order.id, item_id=item_id)
        return ProcessingResult(order=order, events=events)

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def _ensure_reservations(self, order: Order) -> list[ReservationToken]:
        """Re-acquire reservations that lapsed or were released by an earlier failure."""
        tokens: list[ReservationToken] = []
        acquired: list[ReservationToken] = []
        try:
            for item in order.items:
                token = self._token_for(order, item)
                if token is None:
                    continue
                if not self.ledger.is_active(token):
                    token = self.ledger.reserve(item.product_id, item.quantity, order_ref=order.id)
                    order.attach_reservation(item.id, token.reservation_id)
                    acquired.append(token)
                tokens.append(token)
        except InsufficientStockError:
            self._release_all(acquired, reason="payment_aborted")
            raise
        return tokens

    def _commit(self, order: Order, token: ReservationToken) -> ReservationToken | None:
        """Commit ``token`` and return what was deducted, or None if it was already committed."""
        try:
            return token if self.ledger.commit(token) else None
        except ReservationNotActiveError:
            # Lapsed between the check and the charge: take the units again.
            logger.warning("Reservation lapsed during payment", order_id=order.id, product_id=token.product_id)
            replacement = self.ledger.reserve(token.product_id, token.quantity, order_ref=order.id)
            self.ledger.commit(replacement)
            return replacement

    def _commit_all(self, order: Order, tokens: list[ReservationToken]) -> list[ReservationToken]:
        """Commit every token or none; on a shortfall the units already deducted go back on the shelf."""
        committed: list[ReservationToken] = []
        done = 0
        try:
            for token in tokens:
                deducted = self._commit(order, token)
                done += 1
                if deducted is not None:
                    committed.append(deducted)
        except InsufficientStockError:
            self._release_all(tokens[done:], reason="payment_aborted")
            self._restock(committed)
            raise
        return committed

    def _restock(self, tokens: list[ReservationToken]) -> None:
        for token in tokens:
            self.ledger.receive(token.product_id, token.quantity)

    def _reverse_charge(self, order: Order, transaction_id: str, reason: str) -> None:
        refund = self._issue_refund(transaction_id, order.total_amount, reason)
        if not refund.success:
            logger.error(
                "Refund of aborted payment failed",
                order_id=order.id,
                transaction_id=transaction_id,
                error=refund.failure_reason,
            )

    def process_payment(
        self,
        order_id: str,
        payment_method: str | None = None,
        details: dict | None = None,
    ) -> ProcessingResult:
        """Charge the order's total.

        The coupon redemption is claimed before the charge, so an exhausted
        coupon refuses the payment with CouponNotApplicableError and nothing
        is charged. On success the reservations are committed, the order is
        confirmed and commissions are accrued. A declined charge releases the
        reservations and the coupon claim and raises PaymentFailedError; a
        charge whose stock was sold while it was in flight is refunded and
        InsufficientStockError is raised. Either way the order stays pending
        with payment status FAILED.
        """
        order = self.orders.get(order_id)
        current = OrderStatus(order.status)
        payment_status = PaymentStatus(order.payment_status)
        if current != OrderStatus.PENDING or not awaits_payment(payment_status):
            raise InvalidTransitionError(
                "payment_status",
                payment_status.value,
                PaymentStatus.PAID.value,
                f"Order {order.order_number} is not awaiting payment",
            )

        method = payment_method or order.payment_method
        if not method:
            raise ValidationError({"payment_method": ["A payment method is required"]})

        events: list[DomainEvent] = []
        if order.coupon_code:
            events.extend(self.coupons.record_usage(order.coupon_code, order.customer_ref, order.id))
        claimed = bool(events)

        def release_coupon() -> None:
            if claimed:
                self.coupons.release_usage(order.coupon_code, order.customer_ref, order.id)

        try:
            tokens = self._ensure_reservations(order)
        except InsufficientStockError:
            release_coupon()
            raise

        try:
            charge = self.gateway.create_charge(
                order.total_amount,
                method,
                details or {},
                idempotency_key=f"{order.id}:{order.payment_attempts + 1}",
            )
        except PaymentGatewayError as e:
            charge = ChargeResult(success=False, gateway_status="error", failure_reason=str(e))

        if not charge.success:
            self._release_all(tokens, reason="payment_failed")
            release_coupon()
            order.record_payment_failure(charge.failure_reason or "unknown")
            self._save(order, events)
            logger.warning(
                "Payment failed",
                order_id=order.id,
                attempt=order.payment_attempts,
                reason=charge.failure_reason,
            )
            raise PaymentFailedError(internal_reason=charge.failure_reason)

        try:
            committed = self._commit_all(order, tokens)
        except InsufficientStockError:
            self._reverse_charge(order, charge.transaction_id, "stock_unavailable")
            release_coupon()
            order.record_payment_failure("stock_unavailable")
            self._save(order, events)
            logger.warning("Payment reversed: stock sold while charging", order_id=order.id)
            raise

        order.record_payment_success(charge.transaction_id, method)
        try:
            self._save(order, events)
        except ConcurrentModificationError:
            self._reverse_charge(order, charge.transaction_id, "concurrent_modification")
            self._restock(committed)
            release_coupon()
            raise

        events.extend(self.commissions.accrue(order).events)

        logger.info(
            "Payment captured",
            order_id=order.id,
            transaction_id=order.transaction_id,
            amount=str(order.total_amount),
        )
        self._notify(NotificationKind.ORDER_CONFIRMED, order, total=order.total_amount.display())
        return ProcessingResult(order=order, events=events)

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def mark_processing(self, order_id: str) -> ProcessingResult:
        order = self.orders.get(order_id)
        order.mark_processing()
        events: list[DomainEvent] = []
        self._save(order, events)
        logger.info("Order processing", order_id=order.id)
        return ProcessingResult(order=order, events=events)

    def ship(self, order_id: str, tracking_number: str | None = None) -> ProcessingResult:
        order = self.orders.get(order_id)
        order.ship(tracking_number)
        events: list[DomainEvent] = []
        self._save(order, events)
        logger.info("Order shipped", order_id=order.id, tracking_number=tracking_number)
        self._notify(NotificationKind.ORDER_SHIPPED, order, tracking_number=tracking_number)
        return ProcessingResult(order=order, events=events)

    def deliver(self, order_id: str) -> ProcessingResult:
        order = self.orders.get(order_id)
        order.deliver()
        events: list[DomainEvent] = []
        self._save(order, events)
        logger.info("Order delivered", order_id=order.id)
        self._notify(NotificationKind.ORDER_DELIVERED, order)
        return ProcessingResult(order=order, events=events)

    # -------------------------------------------------------------------
    # Cancellation and refund
    # -------------------------------------------------------------------
    def cancel(self, order_id: str, reason: str, cancelled_by: str = "customer") -> ProcessingResult:
        """Cancel an order that hasn't shipped, refunding it first if it was paid.

        Committed stock is not returned to the shelf; only reservations that
        were never committed are released.
        """
        order = self.orders.get(order_id)
        current = OrderStatus(order.status)
        if not can_be_cancelled(current, FulfillmentStatus(order.fulfillment_status)):
            raise InvalidTransitionError(
                "status",
                current.value,
                OrderStatus.CANCELLED.value,
                f"Order {order.order_number} cannot be cancelled in {current.value} state",
            )

        if is_paid(PaymentStatus(order.payment_status)):
            refund = self._issue_refund(order.transaction_id, order.total_amount, reason)
            if not refund.success:
                logger.error("Refund failed; order not cancelled", order_id=order.id, error=refund.failure_reason)
                raise RefundFailedError(refund.failure_reason)
            order.record_refund(refund.refund_id)

        order.cancel(reason, cancelled_by)
        events: list[DomainEvent] = []
        try:
            self._save(order, events)
        except ConcurrentModificationError:
            if order.refund_id:
                logger.warning(
                    "Cancellation not saved; a retry replays the refund", order_id=order.id, refund_id=order.refund_id
                )
            raise

        self._release_all(self._tokens(order), reason="order_cancelled")
        events.extend(self.commissions.cancel_for_order(order.id, reason).events)

        logger.info("Order cancelled", order_id=order.id, reason=reason, cancelled_by=cancelled_by)
        self._notify(NotificationKind.ORDER_CANCELLED, order, reason=reason)
        return ProcessingResult(order=order, events=events)

    def refund(self, order_id: str, reason: str) -> ProcessingResult:
        """Refund a paid order in full without cancelling it first."""
        order = self.orders.get(order_id)
        current = OrderStatus(order.status)
        if not can_be_refunded(current, PaymentStatus(order.payment_status)):
            raise InvalidTransitionError(
                "status",
                current.value,
                OrderStatus.REFUNDED.value,
                f"Order {order.order_number} cannot be refunded",
            )

        refund = self._issue_refund(order.transaction_id, order.total_amount, reason)
        if not refund.success:
            logger.error("Refund failed", order_id=order.id, error=refund.failure_reason)
            raise RefundFailedError(refund.failure_reason)

        order.refund(refund.refund_id)
        events: list[DomainEvent] = []
        self._save(order, events)
        events.extend(self.commissions.cancel_for_order(order.id, reason).events)

        logger.info("Order refunded", order_id=order.id, refund_id=refund.refund_id)
        self._notify(NotificationKind.ORDER_REFUNDED, order, reason=reason)
        return ProcessingResult(order=order, events=events)
