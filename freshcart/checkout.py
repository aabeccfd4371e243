# freshcart/checkout.py
"""Checkout: validate the delivery form, hand the cart to the payment widget, empty the cart on success.

No order is recorded on the server here; payment collection belongs entirely
to the external widget, and only its success callback moves the flow forward.
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .cart import CartStore
from .config import PAYMENT_CURRENCY, RAZORPAY_KEY_ID, STORE_NAME
from .errors import ValidationError
from .notifications import Notifier
from .schemas import CartSnapshot, CheckoutForm, PaymentOrder, PaymentPrefill, form_errors

logger = logging.getLogger(__name__)


class CheckoutState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    SUCCESS = "success"


class PaymentWidgetUnavailable(Exception):
    """The payment SDK could not be loaded (offline, blocked script, ...)."""


class PaymentWidget(ABC):
    @abstractmethod
    def open(self, order: PaymentOrder, on_success: Callable[[dict], None]) -> None:
        """Show the widget. `on_success` is called with the gateway response once payment completes."""


def build_payment_order(
    snapshot: CartSnapshot,
    form: CheckoutForm,
    user_email: Optional[str] = None,
    key: str = RAZORPAY_KEY_ID,
    currency: str = PAYMENT_CURRENCY,
    name: str = STORE_NAME,
) -> PaymentOrder:
    product_names = ", ".join(line.product.title for line in snapshot.products)
    return PaymentOrder(
        key=key,
        amount=int(round(snapshot.total_cart_price * 100)),  # виджет принимает сумму в пайсах
        currency=currency,
        name=name,
        description=f"Order for {product_names}",
        prefill=PaymentPrefill(email=user_email or "", contact=form.phone),
    )


class CheckoutFlow:
    def __init__(
        self,
        cart: CartStore,
        widget: Optional[PaymentWidget],
        notifier: Optional[Notifier] = None,
        user_email: Optional[str] = None,
    ):
        self.cart = cart
        self.widget = widget
        self.notifier = notifier or cart.notifier
        self.user_email = user_email
        self.state = CheckoutState.IDLE
        self.order: Optional[PaymentOrder] = None
        self.payment_response: Optional[dict] = None
        self._listeners: List[Callable[[CheckoutState], None]] = []

    def on_state_change(self, callback: Callable[[CheckoutState], None]) -> None:
        self._listeners.append(callback)

    def _set_state(self, state: CheckoutState) -> None:
        if state is self.state:
            return
        logger.info("checkout: %s -> %s", self.state.value, state.value)
        self.state = state
        for cb in list(self._listeners):
            cb(state)

    @staticmethod
    def validate(form_data) -> CheckoutForm:
        if isinstance(form_data, CheckoutForm):
            return form_data
        try:
            return CheckoutForm.model_validate(form_data or {})
        except PydanticValidationError as e:
            raise ValidationError("Please fix the highlighted fields", form_errors(e.errors())) from e

    def submit(self, form_data) -> PaymentOrder:
        if self.state is CheckoutState.PROCESSING:
            raise ValidationError("Payment is already in progress")
        self._set_state(CheckoutState.IDLE)

        form = self.validate(form_data)
        snapshot = self.cart.cart
        if not snapshot.products:
            raise ValidationError("Your cart is empty")

        if self.widget is None:
            self.notifier.error("Payment SDK failed to load. Are you online?")
            raise PaymentWidgetUnavailable("payment widget is not loaded")

        order = build_payment_order(snapshot, form, self.user_email)
        self.order = order
        self._set_state(CheckoutState.PROCESSING)
        try:
            self.widget.open(order, self._handle_success)
        except PaymentWidgetUnavailable:
            self.notifier.error("Payment SDK failed to load. Are you online?")
            self._set_state(CheckoutState.IDLE)
            raise
        except Exception:
            logger.exception("checkout: payment widget failed to open")
            self.notifier.error("Payment could not be started. Please try again.")
            self._set_state(CheckoutState.IDLE)
            raise
        return order

    def _handle_success(self, response: Optional[dict] = None) -> None:
        if self.state is not CheckoutState.PROCESSING:
            logger.warning("checkout: ignoring payment callback in state %s", self.state.value)
            return
        self.payment_response = response or {}
        self.cart.empty_cart()
        self._set_state(CheckoutState.SUCCESS)
        self.notifier.success("Payment Successful! Thank you for your order.")

    def reset(self) -> None:
        self.order = None
        self.payment_response = None
        self._set_state(CheckoutState.IDLE)
