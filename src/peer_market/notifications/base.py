"""Price-change notification channel between products and their subscribers."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models import Product


@dataclass(slots=True)
class PriceAlert:
    """Container describing a price change on a favorited product."""

    product: Product
    old_price: float
    new_price: float

    @property
    def message(self) -> str:
        direction = "dropped" if self.new_price < self.old_price else "rose"
        return (
            f"'{self.product.title}' {direction} from {self.old_price:.2f}€ "
            f"to {self.new_price:.2f}€."
        )


class PriceObserver(ABC):
    """Base class for anything subscribed to a product's price."""

    __slots__ = ()

    @abstractmethod
    def on_price_changed(self, product: Product, old_price: float, new_price: float) -> None:
        """Receive a price change. Called synchronously by the product."""
