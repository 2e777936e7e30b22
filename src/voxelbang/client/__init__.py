"""Protocol client: one :class:`BotClient` per simulated player."""

from voxelbang.client.bot import BotClient, LoginError, RPCError, create_bot
from voxelbang.client.state import Block, ChatMessage, Entity, Experience, Item, Window

__all__ = [
    "BotClient",
    "LoginError",
    "RPCError",
    "create_bot",
    "Block",
    "ChatMessage",
    "Entity",
    "Experience",
    "Item",
    "Window",
]
