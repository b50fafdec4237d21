"""Ordering strategies for catalog display."""
from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any

from ..models import Product


class SortOrder(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    RECENT = "recent"
    TITLE = "title"


# order -> (sort key, reverse)
_STRATEGIES: dict[SortOrder, tuple[Callable[[Product], Any], bool]] = {
    SortOrder.PRICE_ASC: (lambda product: product.price, False),
    SortOrder.PRICE_DESC: (lambda product: product.price, True),
    SortOrder.RECENT: (lambda product: product.published_at, True),
    SortOrder.TITLE: (lambda product: product.title.casefold(), False),
}


def sort_products(products: Iterable[Product], order: SortOrder | str) -> list[Product]:
    """Return ``products`` as a new list ordered by ``order``.

    ``order`` may be a ``SortOrder`` or its string value; unknown names raise
    ``ValueError``.
    """

    key, reverse = _STRATEGIES[SortOrder(order)]
    return sorted(products, key=key, reverse=reverse)
