# -*- coding: utf-8 -*-
"""
Template rendering: expose a message record to a Jinja2 template together
with a small function library, and write the result to the output sink.
"""

import re
from collections.abc import Mapping

import jinja2

import html_utils
from email_utils import canonical_name
from errors import RenderError


# ============================================================================
# Template functions
# ============================================================================


def match(pattern, text):
    """True when `pattern` matches anywhere in `text`. Compiled on every call."""
    return re.compile(pattern).search(text) is not None


def join(separator, items):
    return separator.join(items)


FUNCTIONS = {
    "re": match,
    "join": join,
    "strip": html_utils.strip,
}


# ============================================================================
# Rendering
# ============================================================================


class HeaderFields(Mapping):
    """
    Read-only view of the header map for templates.

    Lookups canonicalize the name, so "list-id" finds "List-Id". A header
    the message lacks reads as an empty list.
    """

    def __init__(self, fields):
        self._fields = {name: list(values) for name, values in fields.items()}

    def __getitem__(self, name):
        if not isinstance(name, str):
            raise KeyError(name)
        return self._fields.get(canonical_name(name), [])

    def __contains__(self, name):
        return isinstance(name, str) and canonical_name(name) in self._fields

    def __iter__(self):
        return iter(self._fields)

    def __len__(self):
        return len(self._fields)

    def __repr__(self):
        return f"HeaderFields({self._fields!r})"


def template_data(message):
    """Message record as seen by templates."""
    header = message.header
    return {
        "Date": message.date,
        "Header": {
            "From": list(header.from_addrs),
            "To": list(header.to_addrs),
            "Date": header.date,
            "Subject": header.subject,
            "Map": HeaderFields(header.fields),
        },
        "Body": list(message.body),
        "Attachment": [
            {"Name": attachment.name, "Content": attachment.content}
            for attachment in message.attachments
        ],
    }


def make_environment():
    env = jinja2.Environment(
        autoescape=False,
        keep_trailing_newline=True,
        undefined=jinja2.StrictUndefined,
    )
    env.globals.update(FUNCTIONS)
    return env


def render(message, source, out):
    """
    Render one message and write it to `out`.

    The template is compiled on every call. Nothing is written when
    compilation or execution fails, or when the output stream cannot
    encode the result.

    Args:
        message: email_utils.Message
        source: Template source text
        out: Text stream receiving the rendered output

    Raises:
        RenderError: compilation, execution or encoding failed
    """
    try:
        template = make_environment().from_string(source)
        text = template.render(template_data(message))
    except jinja2.TemplateError as e:
        raise RenderError(f"template: {e}") from e
    except Exception as e:
        # Anything a template expression or function raises stays local
        raise RenderError(f"template execution: {type(e).__name__}: {e}") from e

    encoding = getattr(out, "encoding", None)
    if encoding:
        try:
            text.encode(encoding, getattr(out, "errors", None) or "strict")
        except UnicodeEncodeError as e:
            raise RenderError(f"output encoding {encoding}: {e}") from e

    out.write(text)
    out.flush()
