# freshcart/cart.py
import logging
import math
from typing import Any, Callable, List, Mapping, Optional, Tuple

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .config import CART_STORAGE_KEY
from .errors import ValidationError
from .notifications import Notifier
from .schemas import CartLine, CartProduct, CartSnapshot, ProductId, form_errors
from .storage import LocalStorage, LoadErrorKind, SnapshotRepository, default_storage

logger = logging.getLogger(__name__)

UNTITLED_PRODUCT = "Untitled Product"


def calculate_total(lines: List[CartLine]) -> float:
    # всегда полный пересчёт, без инкрементальных поправок
    return sum(line.count * line.price for line in lines)


def parse_cart(data: Any) -> CartSnapshot:
    snapshot = CartSnapshot.model_validate(data)
    ids = [line.product.id for line in snapshot.products]
    if len(ids) != len(set(ids)):
        raise ValueError("duplicate product lines in persisted cart")
    # persisted total is never trusted
    return CartSnapshot(products=snapshot.products, total_cart_price=calculate_total(snapshot.products))


def cart_repository(storage: Optional[LocalStorage] = None, key: str = CART_STORAGE_KEY) -> SnapshotRepository[CartSnapshot]:
    return SnapshotRepository(
        storage if storage is not None else default_storage(),
        key,
        parse=parse_cart,
        dump=lambda snapshot: snapshot.model_dump(mode="json", by_alias=True),
        empty=CartSnapshot,
    )


def _product_payload(product) -> dict:
    if isinstance(product, BaseModel):
        return product.model_dump(by_alias=True)
    if isinstance(product, Mapping):
        return dict(product)
    raise ValidationError("Invalid product data")


def parse_cart_product(product) -> Tuple[CartProduct, float]:
    """Validate a catalogue product before it goes into the cart.

    The product needs an id and a finite, non-negative numeric price. A missing
    title becomes "Untitled Product" and a missing image an empty string.
    """
    data = _product_payload(product)
    product_id = data.get("id", data.get("_id"))
    if product_id is None or product_id == "" or isinstance(product_id, bool):
        raise ValidationError("Invalid product data", {"id": "Product id is required"})

    price = data.get("price")
    if isinstance(price, bool) or not isinstance(price, (int, float)) or not math.isfinite(price) or price < 0:
        raise ValidationError("Invalid product data", {"price": "Price must be a number"})

    title = data.get("title")
    image = data.get("imageCoverUrl", data.get("imageCover"))
    try:
        cart_product = CartProduct(
            id=product_id,
            title=UNTITLED_PRODUCT if title is None else title,
            image_cover_url="" if image is None else image,
        )
    except PydanticValidationError as e:
        raise ValidationError("Invalid product data", form_errors(e.errors())) from e
    return cart_product, price


class CartStore:
    """The cart for the current browser session, kept in sync with local storage.

    Every mutation builds a new snapshot, recomputes the total, persists the
    whole snapshot, sends a notification and hands the snapshot to observers.
    """

    def __init__(self, repository: SnapshotRepository[CartSnapshot], notifier: Optional[Notifier] = None):
        self.repository = repository
        self.notifier = notifier or Notifier()
        self.last_load_error: Optional[LoadErrorKind] = None
        self._observers: List[Callable[[CartSnapshot], None]] = []
        self.load()

    @property
    def cart(self) -> CartSnapshot:
        return self._snapshot.model_copy(deep=True)

    @property
    def item_count(self) -> int:
        return sum(line.count for line in self._snapshot.products)

    def get_products(self) -> CartSnapshot:
        return self.cart

    def load(self) -> CartSnapshot:
        result = self.repository.load()
        self.last_load_error = result.error
        if not result.ok:
            logger.warning("cart: falling back to an empty cart (%s)", result.error.value)
            self._snapshot = self.repository.empty()
        else:
            self._snapshot = result.value
        return self.cart

    def subscribe(self, callback: Callable[[CartSnapshot], None]) -> Callable[[], None]:
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _find(self, product_id: ProductId) -> Optional[CartLine]:
        return next((line for line in self._snapshot.products if line.product.id == product_id), None)

    def _commit(self, products: List[CartLine], message: str) -> CartSnapshot:
        snapshot = CartSnapshot(products=products, total_cart_price=calculate_total(products))
        self._snapshot = snapshot
        self.repository.save(snapshot)
        self.notifier.success(message)
        for cb in list(self._observers):
            cb(self.cart)
        return self.cart

    def add_product(self, product) -> CartSnapshot:
        try:
            cart_product, price = parse_cart_product(product)
        except ValidationError as e:
            self.notifier.error(e.message)
            return self.cart

        if self._find(cart_product.id) is not None:
            products = [
                line.model_copy(update={"count": line.count + 1}) if line.product.id == cart_product.id else line
                for line in self._snapshot.products
            ]
        else:
            products = list(self._snapshot.products) + [CartLine(product=cart_product, price=price, count=1)]

        return self._commit(products, f"{cart_product.title} added to cart!")

    def delete_product(self, product_id: ProductId) -> CartSnapshot:
        products = [line for line in self._snapshot.products if line.product.id != product_id]
        return self._commit(products, "Product removed!")

    def update_product_quantity(self, product_id: ProductId, quantity: int) -> CartSnapshot:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            self.notifier.error("Invalid quantity")
            return self.cart
        if quantity <= 0:
            return self.delete_product(product_id)
        if self._find(product_id) is None:
            return self.cart

        products = [
            line.model_copy(update={"count": quantity}) if line.product.id == product_id else line
            for line in self._snapshot.products
        ]
        return self._commit(products, "Quantity updated!")

    def empty_cart(self) -> CartSnapshot:
        return self._commit([], "Cart cleared!")
