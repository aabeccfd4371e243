# freshcart/wishlist.py
import logging
from typing import Any, Callable, List, Optional

from pydantic import TypeAdapter

from .config import WISHLIST_STORAGE_KEY
from .errors import ValidationError
from .notifications import Notifier
from .schemas import Product, ProductId
from .storage import LocalStorage, LoadErrorKind, SnapshotRepository, default_storage

logger = logging.getLogger(__name__)

_products = TypeAdapter(List[Product])


def parse_wishlist(data: Any) -> List[Product]:
    items = _products.validate_python(data)
    unique, seen = [], set()
    for item in items:
        if item.id not in seen:
            seen.add(item.id)
            unique.append(item)
    return unique


def wishlist_repository(
    storage: Optional[LocalStorage] = None, key: str = WISHLIST_STORAGE_KEY
) -> SnapshotRepository[List[Product]]:
    return SnapshotRepository(
        storage if storage is not None else default_storage(),
        key,
        parse=parse_wishlist,
        dump=lambda items: _products.dump_python(items, mode="json", by_alias=True),
        empty=list,
    )


class WishlistStore:
    """Saved products, unique by id, persisted under the "wishlist" key."""

    def __init__(self, repository: SnapshotRepository[List[Product]], notifier: Optional[Notifier] = None):
        self.repository = repository
        self.notifier = notifier or Notifier()
        self.last_load_error: Optional[LoadErrorKind] = None
        self._observers: List[Callable[[List[Product]], None]] = []
        self.load()

    @property
    def wishlist(self) -> List[Product]:
        return [item.model_copy(deep=True) for item in self._items]

    def get_wishlist(self) -> List[Product]:
        return self.wishlist

    def load(self) -> List[Product]:
        result = self.repository.load()
        self.last_load_error = result.error
        if not result.ok:
            logger.warning("wishlist: falling back to an empty wishlist (%s)", result.error.value)
            self._items = self.repository.empty()
        else:
            self._items = result.value
        return self.wishlist

    def subscribe(self, callback: Callable[[List[Product]], None]) -> Callable[[], None]:
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def contains(self, product_id: ProductId) -> bool:
        return any(item.id == product_id for item in self._items)

    def _commit(self, items: List[Product]) -> List[Product]:
        self._items = items
        self.repository.save(items)
        for cb in list(self._observers):
            cb(self.wishlist)
        return self.wishlist

    def add_to_wishlist(self, product) -> List[Product]:
        try:
            item = product if isinstance(product, Product) else Product.model_validate(product)
        except (ValueError, TypeError):
            self.notifier.error("Invalid product data")
            return self.wishlist

        if self.contains(item.id):
            self.notifier.info("Already in wishlist")
            return self.wishlist

        items = self._commit(self._items + [item])
        self.notifier.success("Added to wishlist!")
        return items

    def delete_wishlist_item(self, product_id: ProductId) -> List[Product]:
        items = self._commit([item for item in self._items if item.id != product_id])
        self.notifier.success("Removed from wishlist!")
        return items

    def clear_wishlist(self) -> List[Product]:
        items = self._commit([])
        self.notifier.success("Wishlist cleared!")
        return items

    def move_to_cart(self, product_id: ProductId, cart) -> bool:
        """Add a saved product to `cart`. The wishlist itself is left as is."""
        item = next((i for i in self._items if i.id == product_id), None)
        if item is None:
            raise ValidationError("Product is not in the wishlist", {"id": str(product_id)})
        before = cart.item_count
        cart.add_product(item)
        return cart.item_count > before
