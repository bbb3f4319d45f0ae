# -*- coding: utf-8 -*-
"""
Email utilities: the normalized message record and its extraction from raw
RFC 822 bytes. Uses the modern EmailMessage API (Python 3.6+).
"""

import datetime
import email.errors
import email.parser
import email.policy
import enum
import logging
from dataclasses import dataclass
from dataclasses import field
from types import MappingProxyType
from typing import Mapping

from errors import StructureError

logger = logging.getLogger(__name__)

EMAIL_POLICY = email.policy.EmailPolicy(utf8=True)

# Failure modes of the header parser on malformed input
HEADER_ERRORS = (
    email.errors.MessageError,
    ValueError,
    TypeError,
    IndexError,
    AttributeError,
)

# Multipart containers carrying any of these cannot be split into parts
STRUCTURAL_DEFECTS = (
    email.errors.NoBoundaryInMultipartDefect,
    email.errors.StartBoundaryNotFoundDefect,
    email.errors.MultipartInvariantViolationDefect,
)


# ============================================================================
# Message record
# ============================================================================


class PartKind(enum.Enum):
    INLINE = "inline"
    ATTACHMENT = "attachment"


@dataclass(frozen=True)
class Header:
    date: str
    from_addrs: tuple = ()
    to_addrs: tuple = ()
    subject: str = ""
    fields: Mapping[str, tuple] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class Attachment:
    name: str = ""
    # Attachment bytes are never buffered
    content: str = ""


@dataclass(frozen=True)
class Message:
    date: str
    header: Header
    body: tuple = ()
    attachments: tuple = ()


# ============================================================================
# Timestamps
# ============================================================================


def format_timestamp(value):
    """RFC 3339 rendering in local time, second precision."""
    return value.astimezone().replace(microsecond=0).isoformat()


def capture_time():
    return format_timestamp(datetime.datetime.now().astimezone())


# ============================================================================
# Envelope parsing
# ============================================================================


def parse_date(msg, default):
    """
    Message date in RFC 3339 local time.

    Returns default when the header is missing or cannot be parsed.
    """
    try:
        header = msg["Date"]
        if header is None or header.datetime is None:
            return default
        return format_timestamp(header.datetime)
    except HEADER_ERRORS as e:
        logger.warning("Unparseable Date header: %s", e)
        return default


def parse_address_list(msg, name):
    """
    Addresses of every `name` header in display form, in header order.

    Returns an empty tuple when the header is missing or cannot be parsed.
    """
    try:
        addresses = []
        for header in msg.get_all(name, []):
            addresses.extend(str(address) for address in header.addresses)
        return tuple(addresses)
    except HEADER_ERRORS as e:
        logger.warning("Unparseable %s header: %s", name, e)
        return ()


def parse_subject(msg):
    try:
        subject = msg["Subject"]
        return "" if subject is None else str(subject)
    except HEADER_ERRORS as e:
        logger.warning("Unparseable Subject header: %s", e)
        return ""


def unfold(value):
    """Remove header folding (line breaks before continuation whitespace)."""
    return "".join(value.splitlines()).strip()


def sanitize(value):
    """
    Turn undecodable 8-bit header bytes, kept by the parser as surrogate
    escapes, back into text. Invalid UTF-8 becomes U+FFFD.
    """
    return value.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def canonical_name(name):
    """
    Canonical header name: first letter and every letter after a hyphen
    upper case, the rest lower case ("message-ID" -> "Message-Id").

    Names that are not plain ASCII tokens are returned unchanged.
    """
    if not name.isascii() or any(c.isspace() or c == ":" for c in name):
        return name
    return "-".join(word[:1].upper() + word[1:].lower() for word in name.split("-"))


def header_map(msg):
    """
    Raw header values grouped by canonical name, in header order.

    Values stay MIME-encoded, only unfolded.
    """
    fields = {}
    for name, value in msg.raw_items():
        key = canonical_name(sanitize(name))
        fields.setdefault(key, []).append(unfold(sanitize(str(value))))
    return MappingProxyType({key: tuple(values) for key, values in fields.items()})


# ============================================================================
# MIME parts
# ============================================================================


def classify_part(part):
    """
    Inline when explicitly inline, or text without an attachment
    disposition. Everything else is an attachment.
    """
    disposition = part.get_content_disposition()
    if disposition == "inline":
        return PartKind.INLINE
    if disposition != "attachment" and part.get_content_maintype() == "text":
        return PartKind.INLINE
    return PartKind.ATTACHMENT


def iter_parts(msg):
    """
    Depth-first walk over the leaf parts of a message.

    Only multipart containers are descended into; an attached message/rfc822
    is a single leaf.

    Yields:
        (PartKind, part) tuples in declaration order

    Raises:
        StructureError: a multipart container cannot be split
    """
    if msg.get_content_maintype() != "multipart":
        yield classify_part(msg), msg
        return

    defects = [d for d in msg.defects if isinstance(d, STRUCTURAL_DEFECTS)]
    if defects or not msg.is_multipart():
        reasons = ", ".join(type(d).__name__ for d in defects) or "no subparts"
        raise StructureError(f"broken {msg.get_content_type()} part: {reasons}")

    for part in msg.iter_parts():
        yield from iter_parts(part)


def decode_part(part):
    """
    Decode a single MIME part to string.

    Tries the declared charset, then UTF-8. ISO-8859-1 maps every byte,
    so it is the last resort.

    Args:
        part: MIME part

    Returns:
        Decoded string or None when the payload cannot be read
    """
    try:
        payload = part.get_payload(decode=True)
    except (ValueError, TypeError, LookupError) as e:
        logger.warning("Cannot decode part payload: %s", e)
        return None
    if payload is None:
        return None

    charset = part.get_content_charset() or "utf-8"

    for encoding in [charset, "utf-8"]:
        try:
            return payload.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue

    return payload.decode("iso-8859-1")


def attachment_name(part):
    try:
        return sanitize(part.get_filename() or "")
    except HEADER_ERRORS + (LookupError,) as e:
        logger.warning("Cannot decode attachment filename: %s", e)
        return ""


# ============================================================================
# Extraction
# ============================================================================


def parse_message(raw, captured_at):
    """
    Build the normalized record for one raw message.

    Envelope fields degrade to defaults on failure, an unreadable inline
    part yields an empty body entry, and attachment content is never read.

    Args:
        raw: Message bytes as returned by BODY[]
        captured_at: Capture timestamp, also the fallback message date

    Returns:
        Message

    Raises:
        StructureError: the MIME tree cannot be walked
    """
    msg = email.parser.BytesParser(policy=EMAIL_POLICY).parsebytes(raw)

    header = Header(
        date=parse_date(msg, captured_at),
        from_addrs=parse_address_list(msg, "From"),
        to_addrs=parse_address_list(msg, "To"),
        subject=parse_subject(msg),
        fields=header_map(msg),
    )

    body = []
    attachments = []
    for kind, part in iter_parts(msg):
        if kind is PartKind.INLINE:
            text = decode_part(part)
            if text is None:
                logger.warning("Unreadable %s part", part.get_content_type())
                text = ""
            body.append(text)
        elif kind is PartKind.ATTACHMENT:
            attachments.append(Attachment(name=attachment_name(part)))

    return Message(
        date=captured_at,
        header=header,
        body=tuple(body),
        attachments=tuple(attachments),
    )
