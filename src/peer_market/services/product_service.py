"""Service owning the product catalog."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..models import InvalidArgumentError, Product, ProductState, User
from .sorting import SortOrder, sort_products


@dataclass(slots=True)
class ProductCatalog:
    """Canonical ordered collection of products known to the marketplace.

    Sold products stay registered so their sale history keeps resolving;
    withdrawn products are dropped.
    """

    products: list[Product] = field(default_factory=list)

    def add_product(self, product: Product) -> None:
        self.products.append(product)

    def contains(self, product: Product) -> bool:
        return product in self.products

    def registered(self, product: Product) -> Optional[Product]:
        """Return the registered instance equal to ``product``, if any."""

        for candidate in self.products:
            if candidate == product:
                return candidate
        return None

    def list_product(self, seller: User, title: str, description: str, price: float) -> Product:
        """Create a product for ``seller`` and register it in the catalog."""

        product = Product(title=title, description=description, seller=seller, price=price)
        if product in seller.listed_products:
            raise InvalidArgumentError("You already have a similar product on sale.")
        self.products.append(product)
        seller.add_listed_product(product)
        return product

    def change_price(self, product: Product, new_price: float) -> None:
        if product not in self.products:
            raise InvalidArgumentError("Product is not registered.")
        product.change_price(new_price)

    def withdraw(self, seller: User, product: Product) -> None:
        if product.seller != seller:
            raise InvalidArgumentError("You cannot withdraw a product you do not own.")
        product.change_state(ProductState.WITHDRAWN)
        if product in self.products:
            self.products.remove(product)
        seller.remove_listed_product(product)

    def catalog(self, order: SortOrder | str | None = None) -> list[Product]:
        """Products currently on sale, optionally sorted."""

        on_sale = [product for product in self.products if product.state is ProductState.FOR_SALE]
        if order is None:
            return on_sale
        return sort_products(on_sale, order)

    def search_by_title(self, query: str) -> list[Product]:
        if query is None or not query.strip():
            raise InvalidArgumentError("Search text must not be empty.")
        needle = query.lower()
        return [product for product in self.products if needle in product.title.lower()]

    def search_by_seller(self, seller: User) -> list[Product]:
        if seller is None:
            raise InvalidArgumentError("Seller must not be empty.")
        return [product for product in self.products if product.seller == seller]

    def find(self, title: str, seller_email: str) -> Optional[Product]:
        for product in self.products:
            if product.title == title and product.seller.email == seller_email:
                return product
        return None

    def all_products(self) -> tuple[Product, ...]:
        return tuple(self.products)
