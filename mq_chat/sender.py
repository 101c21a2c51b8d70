"""
Sender role: forwards lines typed on standard input to a named queue.

The thread calling run() owns the broker connection. A daemon thread reads
the input stream and hands lines over through a queue.Queue, so the owner
can keep servicing heartbeats while the user is not typing.
"""

import logging
import queue
import threading
from typing import IO, Callable, Optional, Union

import click

from .messaging.broker_client import BrokerClient
from .messaging.schemas import decode_body, encode_line, strip_line_terminator

logger = logging.getLogger(__name__)

_EOF = object()


def _pump_lines(stream: IO, lines: "queue.Queue"):
    try:
        for raw in stream:
            lines.put(strip_line_terminator(raw))
    except Exception as e:  # handed to the owner thread, which re-raises it
        lines.put(e)
    finally:
        lines.put(_EOF)


class ChatSender:
    """Publishes each input line verbatim to one queue."""

    def __init__(self, client: BrokerClient, queue_name: str,
                 echo: Callable[[str], None] = click.echo, idle_interval: float = 1.0):
        self.client = client
        self.queue_name = queue_name
        self.echo = echo
        self.idle_interval = idle_interval
        self.sent_count = 0

    def start(self):
        """Connect, declare the destination queue and announce it."""
        if not self.client.is_connected:
            self.client.connect()
        self.client.declare_queue(self.queue_name)
        self.echo(f"✉️ Chatting to queue: {self.queue_name}")

    def send_line(self, line: Union[str, bytes]):
        """Publish one line. Bytes are sent as-is; the echo shows them decoded with replacement."""
        self.client.publish(self.queue_name, encode_line(line))
        self.sent_count += 1
        shown = line if isinstance(line, str) else decode_body(line)
        self.echo(f"✅ Sent: {shown}")

    def run(self, stream: IO, stop_event: Optional[threading.Event] = None) -> int:
        """
        Publish lines from stream until end of input or until stop_event is set.

        Lines are published one at a time in arrival order; each publish
        completes before the next line is taken. Returns the number sent.
        """
        lines: "queue.Queue" = queue.Queue()
        reader = threading.Thread(target=_pump_lines, args=(stream, lines), name='stdin-reader', daemon=True)
        reader.start()

        while not (stop_event and stop_event.is_set()):
            try:
                item = lines.get(timeout=self.idle_interval)
            except queue.Empty:
                self.client.process_events()
                continue
            if item is _EOF:
                logger.info(f"End of input reached after {self.sent_count} message(s).")
                break
            if isinstance(item, Exception):
                raise item
            self.send_line(item)
        return self.sent_count
