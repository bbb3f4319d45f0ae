# -*- coding: utf-8 -*-
"""
Batch processing: stream every message of the mailbox through extraction
and rendering, then delete the whole batch.

Mailbox adapter interface used here:
    mailbox.fetch(seq) -> raw bytes or None
    mailbox.store_deleted(first, last)
    mailbox.expunge()
"""

import logging
import queue
import sys
import threading

import config_data
import email_utils
import template_utils
from errors import RenderError

logger = logging.getLogger(__name__)

END = object()


def fetch_range(mailbox, first, last, items, done, stop):
    """
    Producer: put (seq, raw) for every sequence number into `items`,
    blocking while the queue is full. Stops early once `stop` is set.
    The outcome goes to `done`.
    """
    error = None
    try:
        for seq in range(first, last + 1):
            if stop.is_set():
                logger.debug("Fetch stopped before message %d", seq)
                break
            items.put((seq, mailbox.fetch(seq)))
    except Exception as e:
        error = e
    finally:
        done.put(error)
        items.put(END)


def drain(items):
    """Discard queued items up to and including END."""
    while items.get() is not END:
        pass


def cleanup(mailbox, first, last):
    """Flag the sequence range deleted and expunge it."""
    mailbox.store_deleted(first, last)
    mailbox.expunge()
    logger.info("Deleted messages %d:%d", first, last)


def process_batch(mailbox, state, template, out=None):
    """
    Process every message currently in the mailbox.

    Messages are rendered in ascending sequence order. A render failure
    is logged and the message is deleted with the rest of the batch.
    The fetch thread has always finished when this returns or raises,
    so the connection is free for the caller.

    Args:
        mailbox: Mailbox adapter
        state: notifier.MailboxState with the current message count
        template: Template source text
        out: Output stream (default: sys.stdout)

    Returns:
        Number of messages rendered successfully

    Raises:
        StructureError: a message's MIME tree is broken; nothing is deleted
        Any fetch error from the mailbox adapter; nothing is deleted
    """
    if state.messages == 0:
        return 0

    if out is None:
        out = sys.stdout
    first, last = 1, state.messages
    logger.info("Processing messages %d:%d of %s", first, last, state.name)

    items = queue.Queue(config_data.fetch_queue_size)
    done = queue.Queue(1)
    stop = threading.Event()
    producer = threading.Thread(
        target=fetch_range,
        args=(mailbox, first, last, items, done, stop),
        name="imappipe-fetch",
        daemon=True,
    )
    producer.start()

    captured_at = email_utils.capture_time()
    rendered = 0

    try:
        while True:
            item = items.get()
            if item is END:
                break

            seq, raw = item
            if raw is None:
                logger.debug("Server didn't return message body: %d", seq)
                continue

            message = email_utils.parse_message(raw, captured_at)
            logger.debug("Message %d: %s", seq, message.header.subject)

            try:
                template_utils.render(message, template, out)
                rendered += 1
            except RenderError as e:
                logger.warning("Message %d: %s", seq, e)
    except BaseException:
        stop.set()
        drain(items)
        raise
    finally:
        producer.join()

    error = done.get()
    if error is not None:
        raise error

    cleanup(mailbox, first, last)
    return rendered
