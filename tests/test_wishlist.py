import json

import pytest

from freshcart.errors import ValidationError
from freshcart.notifications import Level
from freshcart.storage import LoadErrorKind
from freshcart.wishlist import WishlistStore, wishlist_repository

MILK = {"id": 1, "title": "Milk", "price": 100, "imageCoverUrl": "milk.png", "brand": "Amul"}
BREAD = {"_id": "b-2", "title": "Bread", "price": 45.5}


def test_add_and_reload(wishlist, storage):
    wishlist.add_to_wishlist(MILK)
    wishlist.add_to_wishlist(BREAD)
    reloaded = WishlistStore(wishlist_repository(storage))
    assert [item.id for item in reloaded.wishlist] == [1, "b-2"]
    assert reloaded.wishlist == wishlist.wishlist


def test_extra_catalogue_fields_are_kept(wishlist, storage):
    wishlist.add_to_wishlist(MILK)
    assert json.loads(storage.get_item("wishlist")) == [
        {"id": 1, "title": "Milk", "price": 100.0, "imageCoverUrl": "milk.png", "brand": "Amul"}
    ]


def test_duplicate_is_noop(wishlist, notifier):
    wishlist.add_to_wishlist(MILK)
    items = wishlist.add_to_wishlist({**MILK, "title": "Milk again"})
    assert len(items) == 1
    assert items[0].title == "Milk"
    assert notifier.history[-1].level is Level.INFO
    assert notifier.history[-1].message == "Already in wishlist"


def test_invalid_payload(wishlist, notifier, storage):
    wishlist.add_to_wishlist({"title": "no id"})
    assert wishlist.wishlist == []
    assert storage.get_item("wishlist") is None
    assert notifier.history[-1].level is Level.ERROR


def test_delete_item(wishlist, notifier):
    wishlist.add_to_wishlist(MILK)
    wishlist.add_to_wishlist(BREAD)
    assert [i.id for i in wishlist.delete_wishlist_item(1)] == ["b-2"]
    assert [i.id for i in wishlist.delete_wishlist_item(1)] == ["b-2"]
    assert notifier.history[-1].message == "Removed from wishlist!"


def test_clear_and_contains(wishlist):
    wishlist.add_to_wishlist(MILK)
    assert wishlist.contains(1)
    assert wishlist.clear_wishlist() == []
    assert not wishlist.contains(1)


def test_corrupted_wishlist_loads_empty(storage):
    storage.set_item("wishlist", '{"products": "nope"}')
    store = WishlistStore(wishlist_repository(storage))
    assert store.wishlist == []
    assert store.last_load_error is LoadErrorKind.CORRUPTED


def test_move_to_cart(wishlist, cart):
    wishlist.add_to_wishlist(MILK)
    assert wishlist.move_to_cart(1, cart)
    assert cart.cart.products[0].product.title == "Milk"
    assert cart.cart.total_cart_price == 100
    assert wishlist.contains(1)
    with pytest.raises(ValidationError):
        wishlist.move_to_cart("missing", cart)


def test_move_to_cart_without_price(wishlist, cart):
    wishlist.add_to_wishlist({"id": 5, "title": "Mystery"})
    assert not wishlist.move_to_cart(5, cart)
    assert cart.cart.products == []
