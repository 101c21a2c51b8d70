#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Chat receiver: python receiver.py <queue_name>"""

from mq_chat.cli import receive_cli

if __name__ == '__main__':
    receive_cli()
