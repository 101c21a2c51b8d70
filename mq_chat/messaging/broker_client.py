import logging
import threading
import time
from typing import Callable, Optional

import pika

from .schemas import ChatMessage
from ..utils.config_manager import ChatSettings

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Optional[ChatMessage]], None]


class BrokerNotConnectedError(RuntimeError):
    """Raised when the client is used before connect() or after close()."""


class BrokerClient:
    """
    Blocking RabbitMQ client owning one connection and one channel.

    All calls must come from the thread that created the connection; pika's
    BlockingConnection is not thread-safe.
    """

    def __init__(self, settings: ChatSettings):
        self.settings = settings
        self.connection: Optional[pika.BlockingConnection] = None
        self.channel: Optional[pika.adapters.blocking_connection.BlockingChannel] = None
        self.consumer_tag: Optional[str] = None
        self._declared = set()

    def connect(self):
        """Open the connection and channel. Failures propagate to the caller."""
        params = pika.URLParameters(self.settings.broker_url)
        try:
            self.connection = pika.BlockingConnection(params)
            self.channel = self.connection.channel()
            if self.settings.publisher_confirms:
                self.channel.confirm_delivery()
            logger.info(f"Successfully connected to RabbitMQ at {self.settings.broker_url}")
        except pika.exceptions.AMQPError as e:
            logger.error(f"Failed to connect to RabbitMQ at {self.settings.broker_url}: {e}")
            self.connection = None
            self.channel = None
            raise
        return self

    @property
    def is_connected(self) -> bool:
        return bool(self.connection and self.connection.is_open and self.channel and self.channel.is_open)

    def _require_channel(self):
        if not self.is_connected:
            raise BrokerNotConnectedError("No open channel. Call connect() first.")
        return self.channel

    def declare_queue(self, queue_name: str):
        """Declare a queue. This is idempotent on the broker side."""
        channel = self._require_channel()
        try:
            channel.queue_declare(queue=queue_name, durable=self.settings.durable_queues)
            self._declared.add(queue_name)
            logger.info(f"Queue '{queue_name}' declared/ensured successfully (durable={self.settings.durable_queues}).")
        except pika.exceptions.AMQPError as e:
            logger.error(f"Failed to declare queue '{queue_name}': {e}")
            raise

    def publish(self, queue_name: str, body: bytes):
        """
        Publish a raw body to a queue through the default exchange.

        With publisher confirms enabled this returns only once the broker
        has accepted the message. Connection failures are retried up to
        settings.publish_retries times (0 by default) before propagating.
        """
        attempt = 0
        while True:
            try:
                if attempt:
                    # a failed reconnect counts as a failed attempt
                    self._reconnect()
                self._basic_publish(queue_name, body)
                logger.debug(f"Message published to queue '{queue_name}' ({len(body)} bytes)")
                return
            except (pika.exceptions.AMQPConnectionError, pika.exceptions.AMQPChannelError) as e:
                attempt += 1
                if attempt > self.settings.publish_retries:
                    logger.error(f"Failed to publish message to queue '{queue_name}': {e}")
                    raise
                logger.warning(f"Publish to '{queue_name}' failed (attempt {attempt}/{self.settings.publish_retries}): {e}. "
                               f"Retrying in {self.settings.retry_delay} seconds...")
                time.sleep(self.settings.retry_delay)
            except pika.exceptions.AMQPError as e:
                # Nacked or unroutable: never retried
                logger.error(f"Broker rejected message for queue '{queue_name}': {e!r}")
                raise

    def _basic_publish(self, queue_name: str, body: bytes):
        channel = self._require_channel()
        delivery_mode = (pika.spec.PERSISTENT_DELIVERY_MODE if self.settings.persistent_messages
                         else pika.spec.TRANSIENT_DELIVERY_MODE)
        channel.basic_publish(
            exchange='',
            routing_key=queue_name,  # default exchange routes by queue name
            body=body,
            properties=pika.BasicProperties(delivery_mode=delivery_mode)
        )

    def _reconnect(self):
        self.close()
        self.connect()
        for queue_name in sorted(self._declared):
            self.declare_queue(queue_name)

    def consume(self, queue_name: str, handler: MessageHandler, stop_event: Optional[threading.Event] = None,
                poll_interval: float = 1.0):
        """
        Subscribe to a queue and dispatch deliveries to handler until stopped.

        handler receives a ChatMessage per delivery and None when the broker
        cancels the subscription, after which the loop ends. The handler is
        responsible for calling ack(). Setting stop_event ends the loop within
        poll_interval seconds.
        """
        channel = self._require_channel()

        def _on_message(ch, method, properties, body):
            handler(ChatMessage(body=body, delivery_tag=method.delivery_tag, redelivered=method.redelivered))

        def _on_cancel(method_frame):
            logger.warning(f"Subscription to queue '{queue_name}' was cancelled by the broker.")
            self.consumer_tag = None
            handler(None)

        try:
            if self.settings.prefetch_count:
                channel.basic_qos(prefetch_count=self.settings.prefetch_count)
            channel.add_on_cancel_callback(_on_cancel)
            self.consumer_tag = channel.basic_consume(
                queue=queue_name,
                on_message_callback=_on_message,
                auto_ack=False  # acknowledged explicitly through ack()
            )
            logger.info(f"Started consuming from queue '{queue_name}' with consumer tag '{self.consumer_tag}'.")
            while self.consumer_tag is not None and not (stop_event and stop_event.is_set()):
                self.connection.process_data_events(time_limit=poll_interval)
        except pika.exceptions.AMQPError as e:
            logger.error(f"Error while consuming from queue '{queue_name}': {e}")
            raise
        finally:
            self.stop_consuming()

    def ack(self, message: ChatMessage):
        """Acknowledge a delivered message. A second ack of the same message is ignored."""
        if message.acked:
            logger.warning(f"Message with delivery tag {message.delivery_tag} already acknowledged; skipping.")
            return
        channel = self._require_channel()
        channel.basic_ack(delivery_tag=message.delivery_tag)
        message.acked = True
        logger.debug(f"Message acknowledged (delivery tag {message.delivery_tag}).")

    def process_events(self, time_limit: float = 0):
        """Service the connection (heartbeats, confirms) without consuming."""
        if self.connection and self.connection.is_open:
            self.connection.process_data_events(time_limit=time_limit)

    def stop_consuming(self):
        if self.consumer_tag and self.channel and self.channel.is_open:
            try:
                self.channel.basic_cancel(self.consumer_tag)
                logger.info(f"Cancelled consumer with tag '{self.consumer_tag}'.")
            except pika.exceptions.AMQPError as e:
                logger.error(f"Error cancelling consumer '{self.consumer_tag}': {e}")
        self.consumer_tag = None

    def close(self):
        """Closes the connection to RabbitMQ."""
        if self.channel and self.channel.is_open:
            try:
                self.channel.close()
                logger.info("RabbitMQ channel closed.")
            except pika.exceptions.AMQPError as e:
                logger.error(f"Error closing RabbitMQ channel: {e}")
        if self.connection and self.connection.is_open:
            try:
                self.connection.close()
                logger.info("RabbitMQ connection closed.")
            except pika.exceptions.AMQPError as e:
                logger.error(f"Error closing RabbitMQ connection: {e}")
        self.channel = None
        self.connection = None

    def __enter__(self):
        if not self.is_connected:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
