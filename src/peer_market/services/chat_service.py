"""Service managing chats and their messages."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..models import Chat, InvalidArgumentError, Message, Product, User


@dataclass(slots=True)
class ChatRegistry:
    """Every chat in the marketplace, in creation order."""

    chats: list[Chat] = field(default_factory=list)

    def add_chat(self, chat: Chat) -> None:
        self.chats.append(chat)

    def find_chat(self, product: Product, first: User, second: User) -> Optional[Chat]:
        """Return the first chat about ``product`` between both users, in either order."""

        for chat in self.chats:
            if chat.product == product and chat.participates(first) and chat.participates(second):
                return chat
        return None

    def start_chat(self, user: User, product: Product) -> Chat:
        seller = product.seller
        if user == seller:
            raise InvalidArgumentError("You cannot start a chat with yourself.")
        if self.find_chat(product, user, seller) is not None:
            raise InvalidArgumentError("A chat with this user about this product already exists.")
        chat = Chat(first_user=user, second_user=seller, product=product)
        self.chats.append(chat)
        user.add_chat(chat)
        seller.add_chat(chat)
        return chat

    def send_message(self, chat: Chat, emitter: User, content: str) -> Message:
        if chat not in self.chats:
            raise InvalidArgumentError("Chat is not registered.")
        if not chat.participates(emitter):
            raise InvalidArgumentError("User does not take part in this chat.")
        if not content:
            raise InvalidArgumentError("Message must not be empty.")
        message = Message(emitter=emitter, recipient=chat.other_user(emitter), content=content)
        chat.add_message(message)
        return message

    def delete_message(self, chat: Chat, user: User, message: Message) -> None:
        if chat not in self.chats:
            raise InvalidArgumentError("Chat is not registered.")
        if message not in chat.messages:
            raise InvalidArgumentError("Message does not belong to this chat.")
        if message.emitter != user:
            raise InvalidArgumentError("Only the sender can delete a message.")
        chat.remove_message(message)

    def mark_read(self, chat: Chat, user: User) -> int:
        return chat.mark_read_for(user)

    def chats_for(self, user: User) -> list[Chat]:
        return [chat for chat in self.chats if chat.participates(user)]

    def all_chats(self) -> tuple[Chat, ...]:
        return tuple(self.chats)
