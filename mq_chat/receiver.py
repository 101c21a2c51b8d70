"""Receiver role: prints and acknowledges every message delivered from a named queue."""

import logging
import threading
from typing import Callable, Optional

import click

from .messaging.broker_client import BrokerClient
from .messaging.schemas import ChatMessage

logger = logging.getLogger(__name__)


class ChatReceiver:

    def __init__(self, client: BrokerClient, queue_name: str, echo: Callable[[str], None] = click.echo):
        self.client = client
        self.queue_name = queue_name
        self.echo = echo
        self.received_count = 0

    def start(self):
        """Connect, declare the source queue and announce that we are listening."""
        if not self.client.is_connected:
            self.client.connect()
        self.client.declare_queue(self.queue_name)
        self.echo(f"📥 Listening on queue: {self.queue_name}")

    def handle_message(self, message: Optional[ChatMessage]):
        # None means the broker cancelled the subscription: nothing to print or ack.
        if message is None:
            return
        self.echo(f"💬 Message: {message.text}")
        self.client.ack(message)
        self.received_count += 1

    def run(self, stop_event: Optional[threading.Event] = None) -> int:
        """Block consuming until stop_event is set or the subscription is cancelled."""
        self.client.consume(self.queue_name, self.handle_message, stop_event=stop_event)
        logger.info(f"Stopped listening on '{self.queue_name}' after {self.received_count} message(s).")
        return self.received_count
