"""Delimited-text storage for the marketplace object graph.

The graph is flattened into six streams (users, products, sales, chats,
messages, favorites). Rows reference each other by natural key only, so
loading rebuilds object references through per-stream indexes and has to run
in dependency order. Observer subscriptions are not stored; they come back by
replaying every favorite.
"""
from __future__ import annotations

import csv
import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from ..config import StorageConfig
from ..models import Chat, InvalidArgumentError, Message, Product, ProductState, Sale, User
from ..services.marketplace import Marketplace

logger = logging.getLogger(__name__)

STREAMS = ("users", "products", "sales", "chats", "messages", "favorites")

HEADERS: dict[str, list[str]] = {
    "users": ["name", "email", "secret"],
    "products": ["title", "description", "seller_email", "price", "state", "published_at"],
    "sales": ["buyer_email", "product_title", "seller_email", "sold_at"],
    "chats": ["user_email_1", "user_email_2", "product_title"],
    "messages": ["emitter_email", "receiver_email", "content", "sent_at", "product_title"],
    "favorites": ["user_email", "product_title", "seller_email"],
}


def _parse_timestamp(raw: str) -> datetime:
    """Parse a stored ISO timestamp; values without an offset are taken as UTC."""

    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class DelimitedMarketRepository:
    """Persists a ``Marketplace`` to delimited text files and rebuilds it."""

    def __init__(self, base_path: Path, config: StorageConfig | None = None) -> None:
        config = config or StorageConfig()
        if config.delimiter == config.delimiter_substitute:
            raise ValueError("The delimiter substitute must differ from the delimiter.")
        self._base_path = base_path
        self._delimiter = config.delimiter
        self._substitute = config.delimiter_substitute
        self._paths = {
            "users": base_path / config.users_file,
            "products": base_path / config.products_file,
            "sales": base_path / config.sales_file,
            "chats": base_path / config.chats_file,
            "messages": base_path / config.messages_file,
            "favorites": base_path / config.favorites_file,
        }
        self._format = {
            "delimiter": self._delimiter,
            "quoting": csv.QUOTE_NONE,
            "quotechar": None,
            "escapechar": None,
            "lineterminator": "\n",
        }

    def path_for(self, stream: str) -> Path:
        """Public accessor for the file backing ``stream``."""

        return self._paths[stream]

    def exists(self) -> bool:
        """Whether a previous session left data behind; only the users stream is probed."""

        return self._paths["users"].exists()

    # -- save -------------------------------------------------------------

    def save(self, marketplace: Marketplace) -> None:
        """Flatten ``marketplace`` into the six streams.

        Streams are written one after another with no multi-file commit. An
        error part way leaves the later streams from the previous session.
        Message content is the only field rewritten (delimiter to substitute,
        line breaks to spaces); any other field holding the delimiter raises
        ``InvalidArgumentError`` before a single stream is touched.
        """

        self._check_fields(marketplace)
        self._base_path.mkdir(parents=True, exist_ok=True)
        users = marketplace.users.all_users()
        chats = marketplace.chats.all_chats()

        self._write("users", ([user.name, user.email, user.secret] for user in users))
        self._write(
            "products",
            (
                [
                    product.title,
                    product.description,
                    product.seller.email,
                    repr(float(product.price)),
                    product.state.value,
                    product.published_at.isoformat(),
                ]
                for product in marketplace.products.all_products()
            ),
        )
        self._write(
            "sales",
            (
                [sale.buyer.email, sale.product.title, sale.seller.email, sale.sold_at.isoformat()]
                for sale in marketplace.sales.all_sales()
            ),
        )
        self._write(
            "chats",
            ([chat.first_user.email, chat.second_user.email, chat.product.title] for chat in chats),
        )
        self._write(
            "messages",
            (
                [
                    message.emitter.email,
                    message.recipient.email,
                    message.content,
                    message.sent_at.isoformat(),
                    chat.product.title,
                ]
                for chat in chats
                for message in chat.messages
            ),
            free_text_column=2,
        )
        self._write(
            "favorites",
            (
                [user.email, product.title, product.seller.email]
                for user in users
                for product in user.favorites
            ),
        )

    def _check_fields(self, marketplace: Marketplace) -> None:
        """Refuse to save values the stream format cannot hold unchanged.

        Only message content is rewritten on save; every other field has to
        round-trip exactly. Runs before any file is opened.
        """

        fields = [(user.email, "name", user.name) for user in marketplace.users.all_users()]
        fields += [(user.email, "password", user.secret) for user in marketplace.users.all_users()]
        for product in marketplace.products.all_products():
            fields.append((product.seller.email, "product title", product.title))
            fields.append((product.seller.email, "product description", product.description))
        for owner, label, value in fields:
            if self._delimiter in value or "\n" in value or "\r" in value:
                raise InvalidArgumentError(
                    f"Cannot save {label} of {owner}: it contains {self._delimiter!r} or a line break."
                )

    def _write(self, stream: str, rows: Iterable[Sequence[str]], free_text_column: int | None = None) -> None:
        file_path = self._paths[stream]
        count = 0
        with file_path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.writer(handle, **self._format)
            writer.writerow(HEADERS[stream])
            for row in rows:
                values = list(row)
                if free_text_column is not None:
                    values[free_text_column] = self._sanitize(values[free_text_column])
                writer.writerow(values)
                count += 1
        logger.info("Saved %s %s to %s", count, stream, file_path)

    def _sanitize(self, value: str) -> str:
        # Lossy: the delimiter never comes back on load.
        return value.replace(self._delimiter, self._substitute).replace("\r", " ").replace("\n", " ")

    # -- load -------------------------------------------------------------

    def load(self, marketplace: Marketplace) -> None:
        """Rebuild the object graph from the streams into ``marketplace``.

        Missing streams are skipped, rows with the wrong column count are
        ignored and rows whose references cannot be resolved are dropped.
        Parse and validation errors propagate and abort the load, leaving
        whatever earlier stages already populated.
        """

        users = self._load_users(marketplace)
        products = self._load_products(marketplace, users)
        self._load_sales(marketplace, users, products)
        self._load_chats(marketplace, users, products)
        self._load_messages(marketplace, users, products)
        self._load_favorites(users, products)

    def _read_rows(self, stream: str) -> list[list[str]]:
        file_path = self._paths[stream]
        if not file_path.exists():
            logger.info("No %s stream at %s, skipping", stream, file_path)
            return []

        width = len(HEADERS[stream])
        rows: list[list[str]] = []
        with file_path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.reader(handle, **self._format)
            next(reader, None)  # skip header
            for row in reader:
                if len(row) != width:
                    logger.debug("Skipping malformed %s row on line %s", stream, reader.line_num)
                    continue
                rows.append(row)
        return rows

    def _load_users(self, marketplace: Marketplace) -> dict[str, User]:
        registry = marketplace.users
        index: dict[str, User] = {}
        for name, email, secret in self._read_rows("users"):
            existing = registry.find_by_email(email)
            if existing is not None:
                index[email] = existing
                continue
            user = registry.register(User(name=name, email=email, secret=secret))
            index[email] = user
        logger.info("Loaded %s users", len(index))
        return index

    def _load_products(self, marketplace: Marketplace, users: dict[str, User]) -> dict[str, Product]:
        catalog = marketplace.products
        # Keyed by title alone: a later product with the same title replaces
        # an earlier one from a different seller.
        index: dict[str, Product] = {}
        for title, description, seller_email, raw_price, raw_state, raw_published in self._read_rows("products"):
            price = float(raw_price)
            state = ProductState(raw_state)
            published_at = _parse_timestamp(raw_published)

            seller = users.get(seller_email)
            if seller is None:
                logger.debug("Dropping product %r: unknown seller %s", title, seller_email)
                continue

            product = Product(title=title, description=description, seller=seller, price=price)
            # Stored values are written directly; setters are not replayed.
            product.state = state
            product.published_at = published_at

            canonical = catalog.registered(product)
            if canonical is None:
                catalog.add_product(product)
                canonical = product
            if canonical.is_active and canonical not in seller.listed_products:
                seller.add_listed_product(canonical)
            index[title] = canonical
        logger.info("Loaded %s products", len(catalog.products))
        return index

    def _load_sales(
        self,
        marketplace: Marketplace,
        users: dict[str, User],
        products: dict[str, Product],
    ) -> None:
        loaded = 0
        for buyer_email, title, seller_email, raw_sold_at in self._read_rows("sales"):
            sold_at = _parse_timestamp(raw_sold_at)
            buyer = users.get(buyer_email)
            seller = users.get(seller_email)
            product = products.get(title)
            if buyer is None or seller is None or product is None:
                logger.debug("Dropping sale of %r: unresolved buyer, seller or product", title)
                continue
            marketplace.sales.record(Sale(buyer=buyer, seller=seller, product=product, sold_at=sold_at))
            loaded += 1
        logger.info("Loaded %s sales", loaded)

    def _load_chats(
        self,
        marketplace: Marketplace,
        users: dict[str, User],
        products: dict[str, Product],
    ) -> None:
        registry = marketplace.chats
        loaded = 0
        for first_email, second_email, title in self._read_rows("chats"):
            first = users.get(first_email)
            second = users.get(second_email)
            product = products.get(title)
            if first is None or second is None or product is None:
                logger.debug("Dropping chat about %r: unresolved user or product", title)
                continue
            chat = Chat(first_user=first, second_user=second, product=product)
            if chat in registry.chats:
                continue
            registry.add_chat(chat)
            for participant in (first, second):
                if chat not in participant.chats:
                    participant.add_chat(chat)
            loaded += 1
        logger.info("Loaded %s chats", loaded)

    def _load_messages(
        self,
        marketplace: Marketplace,
        users: dict[str, User],
        products: dict[str, Product],
    ) -> None:
        loaded = 0
        for emitter_email, receiver_email, content, raw_sent_at, title in self._read_rows("messages"):
            sent_at = _parse_timestamp(raw_sent_at)
            emitter = users.get(emitter_email)
            receiver = users.get(receiver_email)
            product = products.get(title)
            if emitter is None or receiver is None or product is None:
                logger.debug("Dropping message about %r: unresolved user or product", title)
                continue
            chat = marketplace.chats.find_chat(product, emitter, receiver)
            if chat is None:
                logger.debug("Dropping message about %r: no matching chat", title)
                continue
            # The stream carries no read flag; reloaded history counts as read.
            chat.add_message(
                Message(emitter=emitter, recipient=receiver, content=content, sent_at=sent_at, read=True)
            )
            loaded += 1
        logger.info("Loaded %s messages", loaded)

    def _load_favorites(self, users: dict[str, User], products: dict[str, Product]) -> None:
        loaded = 0
        for user_email, title, seller_email in self._read_rows("favorites"):
            user = users.get(user_email)
            product = products.get(title)
            if user is None or product is None or product.seller.email != seller_email:
                logger.debug("Dropping favorite %r of %s: unresolved user or product", title, user_email)
                continue
            if product in user.favorites:
                continue
            # Re-creates the price subscription along with the favorite.
            user.add_favorite(product)
            loaded += 1
        logger.info("Loaded %s favorites", loaded)
