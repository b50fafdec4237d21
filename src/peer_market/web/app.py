"""Flask web application exposing marketplace operations as JSON."""
from __future__ import annotations

from typing import Any

from flask import Flask, abort, jsonify, request
from werkzeug.exceptions import HTTPException

from ..models import Chat, Product, User
from ..services.marketplace import Marketplace
from ..services.sorting import sort_products


def _product_payload(product: Product) -> dict[str, Any]:
    return {
        "title": product.title,
        "description": product.description,
        "seller": product.seller.email,
        "price": product.price,
        "state": product.state.value,
        "published_at": product.published_at.isoformat(),
    }


def _chat_payload(index: int, chat: Chat, viewer: User) -> dict[str, Any]:
    return {
        "id": index,
        "product": _product_payload(chat.product),
        "with": chat.other_user(viewer).email,
        "unread": chat.unread_count_for(viewer),
        "messages": [
            {
                "from": message.emitter.email,
                "to": message.recipient.email,
                "content": message.content,
                "sent_at": message.sent_at.isoformat(),
                "read": message.read,
            }
            for message in chat.messages
        ],
    }


def create_app(marketplace: Marketplace) -> Flask:
    app = Flask(__name__)
    app.config["marketplace"] = marketplace

    def _form() -> dict[str, Any]:
        return request.get_json(silent=True) or request.form.to_dict()

    def _current_user() -> User:
        user = marketplace.users.current_user
        if user is None:
            abort(401, description="Login required.")
        return user

    def _product_or_404(seller_email: str, title: str) -> Product:
        product = marketplace.products.find(title, seller_email)
        if product is None:
            abort(404, description="Unknown product.")
        return product

    def _chat_or_404(user: User, chat_id: int) -> Chat:
        chats = marketplace.chats.chats_for(user)
        if not 0 <= chat_id < len(chats):
            abort(404, description="Unknown chat.")
        return chats[chat_id]

    @app.errorhandler(ValueError)
    def invalid_argument(exc: ValueError):
        return jsonify(error=str(exc)), 400

    @app.errorhandler(HTTPException)
    def http_error(exc: HTTPException):
        return jsonify(error=exc.description), exc.code

    @app.route("/users", methods=["POST"])
    def register():
        data = _form()
        user = marketplace.users.create_user(data.get("name", ""), data.get("email", ""), data.get("password", ""))
        return jsonify(name=user.name, email=user.email), 201

    @app.route("/session", methods=["POST"])
    def login():
        data = _form()
        user = marketplace.users.login(data.get("email", ""), data.get("password", ""))
        return jsonify(name=user.name, email=user.email)

    @app.route("/session", methods=["DELETE"])
    def logout():
        marketplace.users.logout()
        return "", 204

    @app.route("/catalog")
    def catalog():
        products = marketplace.products.catalog()
        query = request.args.get("q")
        if query:
            matches = marketplace.products.search_by_title(query)
            products = [product for product in products if product in matches]
        sort = request.args.get("sort")
        if sort:
            products = sort_products(products, sort)
        return jsonify(products=[_product_payload(product) for product in products])

    @app.route("/products", methods=["POST"])
    def list_product():
        user = _current_user()
        data = _form()
        product = marketplace.products.list_product(
            user,
            data.get("title", ""),
            data.get("description", ""),
            float(data.get("price") or 0),
        )
        return jsonify(_product_payload(product)), 201

    @app.route("/products/<seller_email>/<title>/price", methods=["POST"])
    def change_price(seller_email: str, title: str):
        user = _current_user()
        product = _product_or_404(seller_email, title)
        if product.seller != user:
            abort(403, description="Only the seller can change the price.")
        marketplace.products.change_price(product, float(_form().get("price") or 0))
        return jsonify(_product_payload(product))

    @app.route("/products/<seller_email>/<title>/withdraw", methods=["POST"])
    def withdraw(seller_email: str, title: str):
        user = _current_user()
        product = _product_or_404(seller_email, title)
        marketplace.products.withdraw(user, product)
        return jsonify(_product_payload(product))

    @app.route("/products/<seller_email>/<title>/favorite", methods=["POST"])
    def add_favorite(seller_email: str, title: str):
        user = _current_user()
        marketplace.add_favorite(user, _product_or_404(seller_email, title))
        return jsonify(favorites=[_product_payload(product) for product in user.favorites])

    @app.route("/products/<seller_email>/<title>/favorite", methods=["DELETE"])
    def remove_favorite(seller_email: str, title: str):
        user = _current_user()
        marketplace.remove_favorite(user, _product_or_404(seller_email, title))
        return jsonify(favorites=[_product_payload(product) for product in user.favorites])

    @app.route("/products/<seller_email>/<title>/purchase", methods=["POST"])
    def purchase(seller_email: str, title: str):
        user = _current_user()
        sale = marketplace.sales.purchase(user, _product_or_404(seller_email, title))
        return jsonify(product=_product_payload(sale.product), sold_at=sale.sold_at.isoformat()), 201

    @app.route("/products/<seller_email>/<title>/chat", methods=["POST"])
    def start_chat(seller_email: str, title: str):
        user = _current_user()
        chat = marketplace.chats.start_chat(user, _product_or_404(seller_email, title))
        index = marketplace.chats.chats_for(user).index(chat)
        return jsonify(_chat_payload(index, chat, user)), 201

    @app.route("/chats")
    def chats():
        user = _current_user()
        return jsonify(
            chats=[_chat_payload(index, chat, user) for index, chat in enumerate(marketplace.chats.chats_for(user))]
        )

    @app.route("/chats/<int:chat_id>/messages", methods=["POST"])
    def send_message(chat_id: int):
        user = _current_user()
        chat = _chat_or_404(user, chat_id)
        marketplace.chats.send_message(chat, user, _form().get("content", ""))
        return jsonify(_chat_payload(chat_id, chat, user)), 201

    @app.route("/chats/<int:chat_id>/read", methods=["POST"])
    def mark_read(chat_id: int):
        user = _current_user()
        chat = _chat_or_404(user, chat_id)
        changed = marketplace.chats.mark_read(chat, user)
        return jsonify(marked=changed)

    @app.route("/notifications")
    def notifications():
        user = _current_user()
        alerts = [
            {
                "product": alert.product.title,
                "old_price": alert.old_price,
                "new_price": alert.new_price,
                "message": alert.message,
            }
            for alert in user.inbox
        ]
        user.inbox.clear()
        return jsonify(notifications=alerts)

    return app
