#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Chat sender: python sender.py <queue_name>"""

from mq_chat.cli import send_cli

if __name__ == '__main__':
    send_cli()
