"""
Messaging layer: the RabbitMQ client shared by the sender and receiver,
and the chat message schema.
"""

from .broker_client import BrokerClient, BrokerNotConnectedError
from .schemas import ChatMessage

__all__ = [
    "BrokerClient",
    "BrokerNotConnectedError",
    "ChatMessage"
]
