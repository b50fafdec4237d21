"""Service recording completed sales."""
from __future__ import annotations

from dataclasses import dataclass, field

from ..models import InvalidArgumentError, Product, ProductState, Sale, User


@dataclass(slots=True)
class SaleLedger:
    """Append-only history of sales."""

    sales: list[Sale] = field(default_factory=list)

    def purchase(self, buyer: User, product: Product) -> Sale:
        """Sell ``product`` to ``buyer`` and take it off the seller's listings."""

        if product.seller == buyer:
            raise InvalidArgumentError("You cannot buy your own product.")
        if product.state is not ProductState.FOR_SALE:
            raise InvalidArgumentError("Product is not on sale.")
        sale = Sale(buyer=buyer, seller=product.seller, product=product)
        product.change_state(ProductState.SOLD)
        product.seller.remove_listed_product(product)
        self.sales.append(sale)
        return sale

    def record(self, sale: Sale) -> None:
        self.sales.append(sale)

    def sales_for(self, user: User) -> list[Sale]:
        return [sale for sale in self.sales if user in (sale.buyer, sale.seller)]

    def all_sales(self) -> tuple[Sale, ...]:
        return tuple(self.sales)
