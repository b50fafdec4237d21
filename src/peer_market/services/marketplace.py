"""Aggregate wiring the domain managers together."""
from __future__ import annotations

from dataclasses import dataclass, field

from ..models import InvalidArgumentError, Product, User
from .chat_service import ChatRegistry
from .product_service import ProductCatalog
from .sale_service import SaleLedger
from .user_service import UserRegistry


@dataclass(slots=True)
class Marketplace:
    """The in-memory object graph for one session."""

    users: UserRegistry = field(default_factory=UserRegistry)
    products: ProductCatalog = field(default_factory=ProductCatalog)
    sales: SaleLedger = field(default_factory=SaleLedger)
    chats: ChatRegistry = field(default_factory=ChatRegistry)

    def add_favorite(self, user: User, product: Product) -> None:
        """Mark ``product`` as a favorite of ``user``, subscribing to its price."""

        if product.seller == user:
            raise InvalidArgumentError("You cannot add your own products to favorites.")
        user.add_favorite(product)

    def remove_favorite(self, user: User, product: Product) -> None:
        user.remove_favorite(product)
