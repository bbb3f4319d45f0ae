# -*- coding: utf-8 -*-
"""
HTML transformation: reduce marked-up text to plain text.
"""

import html

import lxml.etree
import lxml.html
import lxml.html.clean

# Drops every element whose text must not survive (scripts, styles, forms...)
ourCleaner = lxml.html.clean.Cleaner(
    scripts=True,
    javascript=True,
    comments=True,
    style=True,
    inline_style=True,
    links=True,
    meta=True,
    page_structure=False,
    processing_instructions=True,
    embedded=True,
    frames=True,
    forms=True,
    annoying_tags=True,
    remove_unknown_tags=True,
    add_nofollow=False,
)

ourParser = lxml.html.HTMLParser(encoding="utf-8")


def strip_once(text):
    """Remove markup and decode entities in a single pass."""
    if not text.strip():
        return ""
    try:
        tree = lxml.html.document_fromstring(text.encode("utf-8"), parser=ourParser)
    except lxml.etree.ParserError:
        # Nothing but markup that the parser discards
        return ""
    tree = ourCleaner.clean_html(tree)
    return html.unescape(tree.text_content())


def strip(text):
    """
    Reduce marked-up text to plain text.

    Every tag is removed (script and style contents with it) and HTML
    entities are decoded. Passes repeat until the text no longer changes,
    so text that decodes into new markup is stripped as well and
    strip(strip(x)) == strip(x).
    """
    previous = None
    while text != previous:
        previous, text = text, strip_once(text)
    return text
