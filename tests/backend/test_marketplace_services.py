from __future__ import annotations

import pytest

from peer_market.models import InvalidArgumentError, ProductState, User
from peer_market.services.marketplace import Marketplace


@pytest.fixture
def marketplace() -> Marketplace:
    market = Marketplace()
    market.users.create_user("Ana", "ana@x.com", "password1")
    market.users.create_user("Bob", "bob@x.com", "password1")
    return market


@pytest.fixture
def ana(marketplace: Marketplace) -> User:
    return marketplace.users.find_by_email("ana@x.com")


@pytest.fixture
def bob(marketplace: Marketplace) -> User:
    return marketplace.users.find_by_email("bob@x.com")


def test_register_rejects_duplicate_email(marketplace: Marketplace) -> None:
    with pytest.raises(InvalidArgumentError):
        marketplace.users.create_user("Other Ana", "ana@x.com", "password2")

    assert len(marketplace.users.all_users()) == 2


def test_login_and_logout(marketplace: Marketplace, ana: User) -> None:
    user = marketplace.users.login("ana@x.com", "password1")

    assert user is ana
    assert marketplace.users.current_user is ana

    marketplace.users.logout()
    assert marketplace.users.current_user is None


@pytest.mark.parametrize(("email", "secret"), [("ana@x.com", "wrong-pass"), ("nobody@x.com", "password1")])
def test_login_failures(marketplace: Marketplace, email: str, secret: str) -> None:
    with pytest.raises(InvalidArgumentError):
        marketplace.users.login(email, secret)

    assert marketplace.users.current_user is None


def test_all_users_is_a_snapshot(marketplace: Marketplace) -> None:
    snapshot = marketplace.users.all_users()

    marketplace.users.create_user("Carla", "carla@x.com", "password1")

    assert len(snapshot) == 2
    assert len(marketplace.users.all_users()) == 3


def test_list_product_registers_and_lists(marketplace: Marketplace, bob: User) -> None:
    desk = marketplace.products.list_product(bob, "Desk", "old wooden desk", 50)

    assert marketplace.products.all_products() == (desk,)
    assert bob.listed_products == (desk,)
    assert marketplace.products.find("Desk", "bob@x.com") is desk


def test_list_product_rejects_duplicate_for_seller(marketplace: Marketplace, bob: User) -> None:
    marketplace.products.list_product(bob, "Desk", "old wooden desk", 50)

    with pytest.raises(InvalidArgumentError):
        marketplace.products.list_product(bob, "Desk", "old wooden desk", 60)


def test_change_price_requires_registered_product(marketplace: Marketplace, bob: User) -> None:
    other = Marketplace()
    stray = other.products.list_product(bob, "Lamp", "desk lamp", 20)

    with pytest.raises(InvalidArgumentError):
        marketplace.products.change_price(stray, 10)


def test_withdraw_drops_product(marketplace: Marketplace, ana: User, bob: User) -> None:
    desk = marketplace.products.list_product(bob, "Desk", "old wooden desk", 50)

    with pytest.raises(InvalidArgumentError):
        marketplace.products.withdraw(ana, desk)

    marketplace.products.withdraw(bob, desk)

    assert desk.state is ProductState.WITHDRAWN
    assert marketplace.products.all_products() == ()
    assert bob.listed_products == ()


def test_catalog_only_shows_products_for_sale(marketplace: Marketplace, ana: User, bob: User) -> None:
    desk = marketplace.products.list_product(bob, "Desk", "old wooden desk", 50)
    lamp = marketplace.products.list_product(bob, "Lamp", "desk lamp", 20)
    marketplace.sales.purchase(ana, lamp)

    assert marketplace.products.catalog() == [desk]
    assert marketplace.products.catalog("price_asc") == [desk]
    assert lamp in marketplace.products.all_products()


def test_search(marketplace: Marketplace, ana: User, bob: User) -> None:
    desk = marketplace.products.list_product(bob, "Wooden Desk", "old wooden desk", 50)
    chair = marketplace.products.list_product(ana, "Chair", "plastic chair", 15)

    assert marketplace.products.search_by_title("desk") == [desk]
    assert marketplace.products.search_by_seller(ana) == [chair]
    with pytest.raises(InvalidArgumentError):
        marketplace.products.search_by_title("  ")


def test_purchase_marks_sold_and_unlists(marketplace: Marketplace, ana: User, bob: User) -> None:
    desk = marketplace.products.list_product(bob, "Desk", "old wooden desk", 50)

    sale = marketplace.sales.purchase(ana, desk)

    assert sale.buyer is ana
    assert sale.seller is bob
    assert desk.state is ProductState.SOLD
    assert bob.listed_products == ()
    assert marketplace.sales.all_sales() == (sale,)
    assert marketplace.sales.sales_for(bob) == [sale]


def test_purchase_guards(marketplace: Marketplace, ana: User, bob: User) -> None:
    desk = marketplace.products.list_product(bob, "Desk", "old wooden desk", 50)

    with pytest.raises(InvalidArgumentError):
        marketplace.sales.purchase(bob, desk)

    marketplace.sales.purchase(ana, desk)
    with pytest.raises(InvalidArgumentError):
        marketplace.sales.purchase(ana, desk)


def test_start_chat_wires_both_participants(marketplace: Marketplace, ana: User, bob: User) -> None:
    desk = marketplace.products.list_product(bob, "Desk", "old wooden desk", 50)

    chat = marketplace.chats.start_chat(ana, desk)

    assert ana.chats == (chat,)
    assert bob.chats == (chat,)
    assert marketplace.chats.find_chat(desk, bob, ana) is chat
    with pytest.raises(InvalidArgumentError):
        marketplace.chats.start_chat(ana, desk)
    with pytest.raises(InvalidArgumentError):
        marketplace.chats.start_chat(bob, desk)


def test_send_and_delete_messages(marketplace: Marketplace, ana: User, bob: User) -> None:
    carla = marketplace.users.create_user("Carla", "carla@x.com", "password1")
    desk = marketplace.products.list_product(bob, "Desk", "old wooden desk", 50)
    chat = marketplace.chats.start_chat(ana, desk)

    message = marketplace.chats.send_message(chat, ana, "Is it still available?")

    assert message.recipient is bob
    assert chat.messages == (message,)
    with pytest.raises(InvalidArgumentError):
        marketplace.chats.send_message(chat, carla, "hello")
    with pytest.raises(InvalidArgumentError):
        marketplace.chats.send_message(chat, ana, "")
    with pytest.raises(InvalidArgumentError):
        marketplace.chats.delete_message(chat, bob, message)

    marketplace.chats.delete_message(chat, ana, message)
    assert chat.messages == ()


def test_mark_read(marketplace: Marketplace, ana: User, bob: User) -> None:
    desk = marketplace.products.list_product(bob, "Desk", "old wooden desk", 50)
    chat = marketplace.chats.start_chat(ana, desk)
    marketplace.chats.send_message(chat, ana, "hello")

    assert marketplace.chats.mark_read(chat, bob) == 1
    assert marketplace.chats.mark_read(chat, bob) == 0


def test_favorites(marketplace: Marketplace, ana: User, bob: User) -> None:
    desk = marketplace.products.list_product(bob, "Desk", "old wooden desk", 50)

    with pytest.raises(InvalidArgumentError):
        marketplace.add_favorite(bob, desk)

    marketplace.add_favorite(ana, desk)
    with pytest.raises(InvalidArgumentError):
        marketplace.add_favorite(ana, desk)

    marketplace.products.change_price(desk, 40)
    marketplace.remove_favorite(ana, desk)
    marketplace.products.change_price(desk, 30)

    assert [(alert.old_price, alert.new_price) for alert in ana.inbox] == [(50, 40)]
    assert ana.favorites == ()


def test_managers_reject_separator_in_stored_fields(marketplace: Marketplace, bob: User) -> None:
    with pytest.raises(InvalidArgumentError):
        marketplace.users.create_user("Carla", "carla@x.com", "pass;word1")
    with pytest.raises(InvalidArgumentError):
        marketplace.products.list_product(bob, "Desk; large", "old wooden desk", 50)

    assert marketplace.users.find_by_email("carla@x.com") is None
    assert marketplace.products.all_products() == ()
    assert bob.listed_products == ()
