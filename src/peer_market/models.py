"""Domain models used throughout the peer marketplace."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from .notifications.base import PriceAlert, PriceObserver

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[\w.-]+@[\w-]+\.[A-Za-z]{2,}$")
MIN_SECRET_LENGTH = 8
MAX_TITLE_LENGTH = 100
MAX_TEXT_LENGTH = 500
MAX_PRICE = 1_000_000
# Field separator of the stored streams plus line breaks; never allowed in
# names, secrets, titles or descriptions.
RESERVED_CHARACTERS = (";", "\n", "\r")


class InvalidArgumentError(ValueError):
    """Raised whenever a domain invariant is violated."""


class ProductState(str, Enum):
    """Lifecycle of a listed product."""

    FOR_SALE = "FOR_SALE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"
    SHIPPED = "SHIPPED"
    IN_TRANSIT = "IN_TRANSIT"
    IN_RETURN = "IN_RETURN"
    RETURNED = "RETURNED"
    WITHDRAWN = "WITHDRAWN"


ACTIVE_STATES = frozenset({ProductState.FOR_SALE, ProductState.RESERVED})


def _require_text(
    value: str | None, label: str, max_length: int | None = None, check_reserved: bool = True
) -> str:
    if value is None or not value.strip():
        raise InvalidArgumentError(f"{label} must not be empty.")
    if max_length is not None and len(value) > max_length:
        raise InvalidArgumentError(f"{label} must not exceed {max_length} characters.")
    if check_reserved:
        _reject_reserved(value, label)
    return value


def _reject_reserved(value: str, label: str) -> None:
    if any(character in value for character in RESERVED_CHARACTERS):
        raise InvalidArgumentError(f"{label} must not contain ';' or line breaks.")


def _validate_price(price: float) -> float:
    if price <= 0:
        raise InvalidArgumentError("Price must be greater than zero.")
    if price > MAX_PRICE:
        raise InvalidArgumentError(f"Price must not exceed {MAX_PRICE}.")
    return price


@dataclass(slots=True, eq=False)
class User(PriceObserver):
    """A registered marketplace member, identified by email.

    Users are also price observers: every product in ``favorites`` holds the
    user in its subscriber set, and price changes land in ``inbox``.
    """

    name: str
    email: str
    secret: str = field(repr=False)
    inbox: list[PriceAlert] = field(default_factory=list, repr=False)
    _listed: list[Product] = field(default_factory=list, init=False, repr=False)
    _chats: list[Chat] = field(default_factory=list, init=False, repr=False)
    _favorites: list[Product] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self._validate_name(self.name)
        if not self.email or not EMAIL_PATTERN.match(self.email):
            raise InvalidArgumentError("Email address is not valid.")
        self._validate_secret(self.secret)

    @staticmethod
    def _validate_name(name: str | None) -> None:
        if not name:
            raise InvalidArgumentError("Name must not be empty.")
        _reject_reserved(name, "Name")

    @staticmethod
    def _validate_secret(secret: str | None) -> None:
        if not secret:
            raise InvalidArgumentError("Password must not be empty.")
        if len(secret) < MIN_SECRET_LENGTH:
            raise InvalidArgumentError(f"Password must have at least {MIN_SECRET_LENGTH} characters.")
        _reject_reserved(secret, "Password")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        return self.email == other.email

    def __hash__(self) -> int:
        return hash(self.email)

    @property
    def listed_products(self) -> tuple[Product, ...]:
        return tuple(self._listed)

    @property
    def chats(self) -> tuple[Chat, ...]:
        return tuple(self._chats)

    @property
    def favorites(self) -> tuple[Product, ...]:
        return tuple(self._favorites)

    def rename(self, name: str) -> None:
        self._validate_name(name)
        self.name = name

    def change_secret(self, secret: str) -> None:
        self._validate_secret(secret)
        self.secret = secret

    def verify_secret(self, secret: str) -> bool:
        return self.secret == secret

    def add_listed_product(self, product: Product) -> None:
        if product is None or product in self._listed:
            raise InvalidArgumentError("Product is missing or already listed.")
        self._listed.append(product)

    def remove_listed_product(self, product: Product) -> None:
        if product in self._listed:
            self._listed.remove(product)

    def add_chat(self, chat: Chat) -> None:
        if chat is None or chat in self._chats:
            raise InvalidArgumentError("Chat is missing or already registered.")
        self._chats.append(chat)

    def remove_chat(self, chat: Chat) -> None:
        if chat in self._chats:
            self._chats.remove(chat)

    def add_favorite(self, product: Product) -> None:
        """Store ``product`` as a favorite and subscribe to its price changes."""

        if product is None or product in self._favorites:
            raise InvalidArgumentError("Product is missing or already a favorite.")
        self._favorites.append(product)
        product.subscribe(self)

    def remove_favorite(self, product: Product) -> None:
        if product in self._favorites:
            self._favorites.remove(product)
        product.unsubscribe(self)

    def on_price_changed(self, product: Product, old_price: float, new_price: float) -> None:
        alert = PriceAlert(product=product, old_price=old_price, new_price=new_price)
        self.inbox.append(alert)
        logger.info("Notifying %s: %s", self.email, alert.message)


@dataclass(slots=True, eq=False)
class Product:
    """An item listed by a seller.

    Products have no surrogate id; ``key`` (title, description, seller email)
    is their identity everywhere, including the stored streams.
    """

    title: str
    description: str
    seller: User
    price: float
    state: ProductState = ProductState.FOR_SALE
    published_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    _observers: set[PriceObserver] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        _require_text(self.title, "Title", MAX_TITLE_LENGTH)
        _require_text(self.description, "Description", MAX_TEXT_LENGTH)
        if self.seller is None:
            raise InvalidArgumentError("Seller must not be empty.")
        _validate_price(self.price)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.title, self.description, self.seller.email)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Product):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    @property
    def observers(self) -> frozenset[PriceObserver]:
        return frozenset(self._observers)

    @property
    def is_active(self) -> bool:
        """``True`` while the product still belongs in its seller's listings."""

        return self.state in ACTIVE_STATES

    def subscribe(self, observer: PriceObserver) -> None:
        if observer is not None:
            self._observers.add(observer)

    def unsubscribe(self, observer: PriceObserver) -> None:
        self._observers.discard(observer)

    def change_price(self, new_price: float) -> None:
        """Update the price and push the change to every subscriber.

        Sold products reject the change outright. Setting the same price is a
        no-op and notifies nobody.
        """

        if self.state is ProductState.SOLD:
            raise InvalidArgumentError("Cannot change the price of a sold product.")
        _validate_price(new_price)
        if new_price == self.price:
            return
        old_price = self.price
        self.price = new_price
        for observer in list(self._observers):
            observer.on_price_changed(self, old_price, new_price)

    def change_state(self, new_state: ProductState) -> None:
        # Only SOLD -> FOR_SALE is enforced; every other move is accepted.
        if new_state is None:
            raise InvalidArgumentError("State must not be empty.")
        if self.state is ProductState.SOLD and new_state is ProductState.FOR_SALE:
            raise InvalidArgumentError("A sold product cannot go back on sale.")
        self.state = new_state


@dataclass(slots=True, eq=False)
class Sale:
    """Purchase of ``product`` by ``buyer`` from ``seller``."""

    buyer: User
    seller: User
    product: Product
    sold_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if self.buyer is None or self.seller is None or self.product is None:
            raise InvalidArgumentError("Buyer, seller and product are required.")
        if self.buyer == self.seller:
            raise InvalidArgumentError("Buyer and seller must be different users.")


@dataclass(slots=True, eq=False)
class Message:
    """Single chat line. Content is stored trimmed."""

    emitter: User
    recipient: User
    content: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    read: bool = False

    def __post_init__(self) -> None:
        if self.emitter is None or self.recipient is None:
            raise InvalidArgumentError("Emitter and recipient are required.")
        _require_text(self.content, "Message", MAX_TEXT_LENGTH, check_reserved=False)
        if self.emitter == self.recipient:
            raise InvalidArgumentError("Emitter and recipient must be different users.")
        self.content = self.content.strip()


@dataclass(slots=True, eq=False)
class Chat:
    """Conversation between two users about one product."""

    first_user: User
    second_user: User
    product: Product
    _messages: list[Message] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.first_user is None or self.second_user is None or self.product is None:
            raise InvalidArgumentError("Both users and the product are required.")
        if self.first_user == self.second_user:
            raise InvalidArgumentError("A chat needs two different users.")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Chat):
            return NotImplemented
        return (
            frozenset((self.first_user, self.second_user)) == frozenset((other.first_user, other.second_user))
            and self.product == other.product
        )

    def __hash__(self) -> int:
        return hash((frozenset((self.first_user, self.second_user)), self.product))

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last_message(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def participates(self, user: User) -> bool:
        return user == self.first_user or user == self.second_user

    def other_user(self, user: User) -> User:
        if user == self.first_user:
            return self.second_user
        if user == self.second_user:
            return self.first_user
        raise InvalidArgumentError("User does not belong to this chat.")

    def add_message(self, message: Message) -> None:
        if message is None:
            raise InvalidArgumentError("Message must not be empty.")
        if not self.participates(message.emitter):
            raise InvalidArgumentError("Emitter does not belong to this chat.")
        self._messages.append(message)

    def remove_message(self, message: Message) -> None:
        if message not in self._messages:
            raise InvalidArgumentError("Message does not belong to this chat.")
        self._messages.remove(message)

    def mark_read_for(self, user: User) -> int:
        """Mark every message addressed to ``user`` as read; return how many changed."""

        if not self.participates(user):
            raise InvalidArgumentError("User does not belong to this chat.")
        changed = 0
        for message in self._messages:
            if message.recipient == user and not message.read:
                message.read = True
                changed += 1
        return changed

    def unread_count_for(self, user: User) -> int:
        return sum(1 for message in self._messages if message.recipient == user and not message.read)
