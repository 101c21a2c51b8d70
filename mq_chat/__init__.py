"""Two-process chat over a RabbitMQ queue.

- sender: publishes lines typed on stdin to a named queue
- receiver: prints and acknowledges messages from a named queue

The processes share nothing but the queue name; the broker is the only
integration point.
"""

__version__ = "0.1.0"
