#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Command-line entry points for the chat sender and receiver.

    mq-chat-send <queue_name>      publish lines from stdin to a queue
    mq-chat-receive <queue_name>   print messages arriving on a queue
"""

import logging
import signal
import threading

import click

from .messaging.broker_client import BrokerClient
from .receiver import ChatReceiver
from .sender import ChatSender
from .utils.config_manager import ConfigManager
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def chat_options(f):
    """Arguments and options shared by both roles."""
    f = click.option('--debug', is_flag=True, help='Enable debug logging.')(f)
    f = click.option('--broker-url', default=None,
                     help='AMQP URL of the broker (overrides config and MQ_CHAT_BROKER_URL).')(f)
    f = click.option('--config', 'config_file', default=None,
                     type=click.Path(exists=True, dir_okay=False),
                     help='Path to the YAML configuration file.')(f)
    # Optional here so a missing name gets our usage message and exit code 1
    f = click.argument('queue_name', required=False)(f)
    return f


def require_queue_name(ctx: click.Context, queue_name):
    if not queue_name:
        click.echo(f"❌ Usage: {ctx.info_name} <queue_name>")
        ctx.exit(1)
    return queue_name


def build_client(config_file, broker_url, debug) -> BrokerClient:
    config = ConfigManager.load_config(config_file)
    setup_logging(config, level_override='DEBUG' if debug else None)
    settings = config.to_settings(broker_url=broker_url)
    logger.debug(f"Using broker settings: {settings}")
    return BrokerClient(settings)


def serve(ctx: click.Context, client: BrokerClient, work):
    """
    Run work(stop_event) and always close the client afterwards.

    SIGTERM sets the stop event so the running loop ends cleanly; Ctrl+C
    exits with status 130. Broker errors are not caught here.
    """
    stop_event = threading.Event()

    def _on_sigterm(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        stop_event.set()

    previous = signal.signal(signal.SIGTERM, _on_sigterm)
    try:
        work(stop_event)
    except KeyboardInterrupt:
        click.echo("\nShutdown requested by user", err=True)
        ctx.exit(130)
    finally:
        signal.signal(signal.SIGTERM, previous)
        client.close()


@click.command('mq-chat-send')
@chat_options
@click.pass_context
def send_cli(ctx, queue_name, config_file, broker_url, debug):
    """Publish every line typed on standard input to QUEUE_NAME."""
    queue_name = require_queue_name(ctx, queue_name)
    client = build_client(config_file, broker_url, debug)
    sender = ChatSender(client, queue_name)

    def work(stop_event):
        sender.start()
        sender.run(click.get_binary_stream('stdin'), stop_event)

    serve(ctx, client, work)


@click.command('mq-chat-receive')
@chat_options
@click.pass_context
def receive_cli(ctx, queue_name, config_file, broker_url, debug):
    """Print and acknowledge every message delivered from QUEUE_NAME."""
    queue_name = require_queue_name(ctx, queue_name)
    client = build_client(config_file, broker_url, debug)
    receiver = ChatReceiver(client, queue_name)

    def work(stop_event):
        receiver.start()
        receiver.run(stop_event)

    serve(ctx, client, work)
