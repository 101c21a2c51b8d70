#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
End-to-end tests against a real RabbitMQ broker.

The broker is taken from MQ_CHAT_BROKER_URL (default amqp://localhost);
every test is skipped when it cannot be reached.
"""

import io
import os
import sys
import threading
import unittest
import uuid

import pika

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from mq_chat.messaging.broker_client import BrokerClient
from mq_chat.receiver import ChatReceiver
from mq_chat.sender import ChatSender
from mq_chat.utils.config_manager import ConfigManager


class BrokerRoundTripTests(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.settings = ConfigManager().to_settings()
        try:
            BrokerClient(cls.settings).connect().close()
        except pika.exceptions.AMQPError as e:
            raise unittest.SkipTest(f"RabbitMQ not reachable at {cls.settings.broker_url}: {e}")

    def setUp(self):
        self.queue_name = f"mq_chat_test_{uuid.uuid4().hex[:8]}"
        self.clients = []

    def tearDown(self):
        cleanup = self._client()
        cleanup.channel.queue_delete(queue=self.queue_name)
        for client in self.clients:
            client.close()

    def _client(self):
        client = BrokerClient(self.settings).connect()
        self.clients.append(client)
        return client

    def _receive(self, expected_count, timeout=10.0):
        stop_event = threading.Event()
        lines = []

        def collect(line):
            lines.append(line)
            if len(lines) > expected_count:
                stop_event.set()

        receiver = ChatReceiver(self._client(), self.queue_name, echo=collect)
        receiver.start()
        timer = threading.Timer(timeout, stop_event.set)
        timer.start()
        try:
            receiver.run(stop_event)
        finally:
            timer.cancel()
        return lines[1:]

    def test_lines_arrive_exactly_and_in_order(self):
        sender = ChatSender(self._client(), self.queue_name, echo=lambda line: None)
        sender.start()
        sender.run(io.StringIO("a\nb\nc\nxin chào 👋\n"))

        self.assertEqual(self._receive(4), [
            "💬 Message: a", "💬 Message: b", "💬 Message: c", "💬 Message: xin chào 👋",
        ])
        # Everything was acked: the queue is empty afterwards.
        probe = self._client()
        self.assertEqual(probe.channel.queue_declare(queue=self.queue_name, passive=True).method.message_count, 0)

    def test_declaring_same_queue_twice(self):
        first, second = self._client(), self._client()
        first.declare_queue(self.queue_name)
        second.declare_queue(self.queue_name)
        first.declare_queue(self.queue_name)

    def test_competing_consumers_each_get_distinct_messages(self):
        publisher = self._client()
        publisher.declare_queue(self.queue_name)
        bodies = [f"m{i}".encode() for i in range(6)]
        for body in bodies:
            publisher.publish(self.queue_name, body)

        consumers = [self._client(), self._client()]
        seen = [[], []]
        remaining = True
        while remaining:
            remaining = False
            for index, consumer in enumerate(consumers):
                method, _properties, body = consumer.channel.basic_get(queue=self.queue_name)
                if method is not None:
                    consumer.channel.basic_ack(delivery_tag=method.delivery_tag)
                    seen[index].append(body)
                    remaining = True

        self.assertFalse(set(seen[0]) & set(seen[1]))
        self.assertEqual(sorted(seen[0] + seen[1]), sorted(bodies))


if __name__ == '__main__':
    unittest.main()
