# -*- coding: utf-8 -*-
"""
Change notification: block until the server reports a mailbox change.

The mailbox's wait mechanism (IDLE or NOOP polling) runs in a worker thread
and publishes what it observes to a Subscription. The notifier consumes that
subscription; the first relevant item decides the outcome.
"""

import enum
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional

import config_data
from errors import WaitFailed
from errors import WaitTerminated

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailboxState:
    name: str
    messages: int = 0


class UpdateKind(enum.Enum):
    MAILBOX_CHANGED = "mailbox_changed"
    OTHER = "other"


@dataclass(frozen=True)
class Update:
    kind: UpdateKind
    mailbox: Optional[MailboxState] = None
    detail: str = ""


class Signal(enum.Enum):
    UPDATE = "update"
    DONE = "done"


class Subscription:
    """
    Ordered stream of updates from a wait mechanism, terminated by a single
    completion marker.
    """

    def __init__(self, size=config_data.update_queue_size):
        self._queue = queue.Queue(size)

    def publish(self, update):
        self._queue.put((Signal.UPDATE, update))

    def complete(self, error=None):
        self._queue.put((Signal.DONE, error))

    def receive(self):
        return self._queue.get()


def _run_wait(wait, stop, poll_timeout, subscription):
    error = None
    try:
        wait(stop, poll_timeout, subscription.publish)
    except Exception as e:
        error = e
    finally:
        subscription.complete(error)


def _acknowledge(subscription, state):
    """
    Drain the subscription up to the completion marker.

    Blocks until the wait mechanism honours the stop signal. Returns the
    latest mailbox state seen while draining.
    """
    while True:
        signal, payload = subscription.receive()
        if signal is Signal.DONE:
            if payload is not None:
                logger.debug("Wait ended after stop with: %s", payload)
            return state
        if payload.kind is UpdateKind.MAILBOX_CHANGED:
            state = payload.mailbox


def wait_for_change(wait, subscription, poll_timeout=0):
    """
    Block until the mailbox changes and return its fresh state.

    Args:
        wait: Cancellable wait mechanism, called as
              wait(stop_event, poll_timeout, publish)
        subscription: Subscription the mechanism publishes to
        poll_timeout: Self-polling interval in seconds, 0 to disable

    Returns:
        MailboxState from the first MAILBOX_CHANGED update

    Raises:
        WaitTerminated: the wait completed without a mailbox change
        WaitFailed: the wait mechanism raised
    """
    stop = threading.Event()
    worker = threading.Thread(
        target=_run_wait,
        args=(wait, stop, poll_timeout, subscription),
        name="imappipe-wait",
        daemon=True,
    )
    worker.start()

    while True:
        signal, payload = subscription.receive()
        if signal is Signal.DONE:
            if payload is not None:
                raise WaitFailed(f"wait failed: {payload}") from payload
            raise WaitTerminated()

        if payload.kind is UpdateKind.MAILBOX_CHANGED:
            logger.debug("Mailbox update: %s", payload.mailbox)
            stop.set()
            state = _acknowledge(subscription, payload.mailbox)
            worker.join()
            return state

        logger.debug("Ignoring update: %s", payload.detail)
