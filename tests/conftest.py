# -*- coding: utf-8 -*-
"""
Shared test fixtures: raw message builders and a simulated mailbox.
"""

import email.message
import email.policy
import sys
from pathlib import Path

# Ensure project root is importable without pip install
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from notifier import MailboxState


def make_raw_email(
    from_addr="Sender <sender@example.com>",
    to_addr="recipient@example.com",
    subject="Test Subject",
    body="Test body",
    date="Mon, 02 Jan 2006 15:04:05 +0000",
    attachments=(),
):
    """Create raw email bytes for testing."""
    msg = email.message.EmailMessage(policy=email.policy.default)
    if from_addr is not None:
        msg["From"] = from_addr
    if to_addr is not None:
        msg["To"] = to_addr
    if subject is not None:
        msg["Subject"] = subject
    if date is not None:
        msg["Date"] = date
    msg.set_content(body)
    for filename, data in attachments:
        msg.add_attachment(
            data, maintype="application", subtype="octet-stream", filename=filename
        )
    return msg.as_bytes()


class FakeMailbox:
    """In-memory mailbox with sequence-number semantics."""

    def __init__(self, messages, name="INBOX"):
        self.name = name
        self.messages = list(messages)
        self.flagged = set()
        self.fetched = []
        self.calls = []

    def state(self):
        return MailboxState(self.name, len(self.messages))

    def fetch(self, seq):
        self.calls.append(("fetch", seq))
        self.fetched.append(seq)
        return self.messages[seq - 1]

    def store_deleted(self, first, last):
        self.calls.append(("store", first, last))
        self.flagged.update(range(first, last + 1))

    def expunge(self):
        self.calls.append(("expunge",))
        self.messages = [
            m for seq, m in enumerate(self.messages, 1) if seq not in self.flagged
        ]
        self.flagged = set()


@pytest.fixture
def raw_email():
    """Factory fixture for raw message bytes."""
    return make_raw_email


@pytest.fixture
def fake_mailbox():
    """Factory fixture for simulated mailboxes."""

    def _make_mailbox(messages, name="INBOX"):
        return FakeMailbox(messages, name=name)

    return _make_mailbox
