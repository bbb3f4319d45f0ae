# -*- coding: utf-8 -*-
"""
IMAP protocol utilities: IDLE implementation, mailbox adapter, connection
helpers, main run loop.
"""

import imaplib
import logging
import select
import sys
import time

import batch
import config_data
import notifier
from errors import CommandError

logger = logging.getLogger(__name__)

CRLF = b"\r\n"
imaplib.Commands.setdefault("IDLE", ("AUTH", "SELECTED"))


def _check(typ, data, command):
    if typ != "OK":
        raise CommandError(f"{command} failed: {typ} {data!r}")


def quote(name):
    """Quote a mailbox name as an IMAP string."""
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


def idle(connection, stop, timeout=config_data.idle_renew_interval):
    """
    Implements IMAP IDLE extension as described in RFC 2177.
    Waits until the server sends something, `stop` is set, or `timeout`
    elapses, then leaves IDLE.

    Args:
        connection: IMAP4 connection
        stop: threading.Event checked every config_data.idle_stop_check seconds
        timeout: Maximum idle time in seconds (default: 29 minutes)

    Returns:
        untagged responses collected while idling
    """
    if "IDLE" not in connection.capabilities:
        raise connection.error("server does not support IDLE command.")

    connection.untagged_responses = {}
    tag = connection._command("IDLE")
    connection._get_response()

    deadline = time.monotonic() + timeout
    while not stop.is_set():
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        readable, _, _ = select.select(
            [connection.socket()], [], [], min(remaining, config_data.idle_stop_check)
        )
        if readable:
            break

    connection.send(b"DONE" + CRLF)
    typ, data = connection._command_complete("IDLE", tag)
    _check(typ, data, "IDLE")
    return connection.untagged_responses


class ImapMailbox:
    """Selected mailbox on an imaplib connection."""

    def __init__(self, connection, name):
        self.connection = connection
        self.name = name

    def select(self):
        typ, data = self.connection.select(quote(self.name))
        _check(typ, data, "SELECT")
        return notifier.MailboxState(self.name, int(data[0]))

    def fetch(self, seq):
        """Full RFC 822 body of message `seq`, or None if the server sent none."""
        typ, data = self.connection.fetch(str(seq), "(BODY[])")
        _check(typ, data, "FETCH")
        for ret in data:
            if isinstance(ret, (list, tuple)) and len(ret) > 1:
                return ret[1]
        return None

    def store_deleted(self, first, last):
        typ, data = self.connection.store(
            f"{first}:{last}", "+FLAGS.SILENT", r"(\Deleted)"
        )
        _check(typ, data, "STORE")

    def expunge(self):
        typ, data = self.connection.expunge()
        _check(typ, data, "EXPUNGE")

    def publish_untagged(self, responses, publish):
        """Turn collected untagged responses into notifier updates."""
        exists = responses.pop("EXISTS", None)
        for name in responses:
            publish(notifier.Update(notifier.UpdateKind.OTHER, detail=name))
        if exists:
            state = notifier.MailboxState(self.name, int(exists[-1]))
            publish(notifier.Update(notifier.UpdateKind.MAILBOX_CHANGED, state))

    def wait(self, stop, poll_timeout, publish):
        """
        Wait for mailbox changes until `stop` is set.

        IDLE is re-issued every `poll_timeout` seconds, or every 29 minutes
        when it is 0. Servers without IDLE are polled with NOOP every
        `poll_timeout` seconds.
        """
        if "IDLE" in self.connection.capabilities:
            renew = poll_timeout or config_data.idle_renew_interval
            while not stop.is_set():
                responses = idle(self.connection, stop, renew)
                self.connection.untagged_responses = {}
                self.publish_untagged(responses, publish)
            return

        if not poll_timeout:
            raise self.connection.error(
                "server does not support IDLE command and no poll timeout is set."
            )

        self.connection.untagged_responses = {}
        while not stop.wait(poll_timeout):
            typ, data = self.connection.noop()
            _check(typ, data, "NOOP")
            responses = self.connection.untagged_responses
            self.connection.untagged_responses = {}
            self.publish_untagged(responses, publish)


def dial(settings):
    if settings.no_tls:
        return imaplib.IMAP4(settings.host, settings.port)
    return imaplib.IMAP4_SSL(settings.host, settings.port)


def disconnect(connection):
    """Log out; failures are logged, not raised"""
    try:
        connection.logout()
    except (imaplib.IMAP4.error, OSError) as e:
        logger.debug("Logout failed: %s", e)


def connect_and_select(settings):
    """
    Connect to IMAP server and select the mailbox.

    Args:
        settings: settings.Settings

    Returns:
        (connection, ImapMailbox, MailboxState) tuple

    Raises:
        OSError, imaplib.IMAP4.error, CommandError on connection failures
    """
    connection = dial(settings)
    try:
        connection.login(settings.username, settings.password)
        mailbox = ImapMailbox(connection, settings.mailbox)
        state = mailbox.select()
    except BaseException:
        disconnect(connection)
        raise
    logger.info("Selected %s: %d messages", state.name, state.messages)
    return connection, mailbox, state


def process_forever(mailbox, state, settings, out):
    """
    Alternate batch processing and change waits until an error occurs.

    Every error is fatal: there is no retry.
    """
    subscription = notifier.Subscription()
    while True:
        batch.process_batch(mailbox, state, settings.template, out)
        if settings.once:
            return
        logger.debug("Waiting for changes on %s", mailbox.name)
        state = notifier.wait_for_change(
            mailbox.wait, subscription, settings.poll_timeout
        )


def run(settings, out=None):
    """
    Run the mailbox pipe.

    Args:
        settings: settings.Settings
        out: Output stream (default: sys.stdout)
    """
    if out is None:
        out = sys.stdout
    connection, mailbox, state = connect_and_select(settings)
    try:
        process_forever(mailbox, state, settings, out)
    finally:
        disconnect(connection)
