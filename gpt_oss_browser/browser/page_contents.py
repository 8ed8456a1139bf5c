"""
HTML to plain-text conversion for fetched pages.

Fetched documents are stored in sessions as plain text and addressed by
0-based line numbers, so the conversion has to be deterministic and produce
reasonably short lines.

Processing Pipeline:
--------------------
1. Remove Unicode characters from the Supplementary Multilingual Plane
   (lxml.html cannot handle them)
2. Parse into an lxml tree
3. Drop non-content nodes (script, style, noscript, template, math)
4. Replace <img> tags with numbered placeholders: [Image 0: alt text]
5. Render the tree to text with html2text (no links, no emphasis, no wrapping)
6. Clean up whitespace and collapse runs of blank lines
7. Wrap lines to 80 characters so every line stays citable
"""

from __future__ import annotations

import logging
import re
import textwrap
from contextlib import contextmanager
from typing import Any, Iterator

import html2text
import lxml.etree
import lxml.html

logger = logging.getLogger(__name__)

SUPERSCRIPT_RE = re.compile(r"<sup( [^>]*)?>([\w\-]+)</sup>")
SUBSCRIPT_RE = re.compile(r"<sub( [^>]*)?>([\w\-]+)</sub>")
ADJACENT_TAGS_RE = re.compile(r"(?<=\w)((<[^>]*>)+)(?=\w)")
WHITESPACE_LINE_RE = re.compile(r"^\s+$", flags=re.MULTILINE)
BLANK_RUN_RE = re.compile(r"\n(\s*\n)+")
SMP_RE = re.compile(r"[\U00010000-\U0001FFFF]", re.UNICODE)

NON_CONTENT_TAGS = ("script", "style", "noscript", "template", "math")
LINE_WIDTH = 80


def remove_unicode_smp(text: str) -> str:
    """Strips characters from the Supplementary Multilingual Plane (emoji and friends)."""
    return SMP_RE.sub("", text)


def _splice_text(node: lxml.html.HtmlElement, text: str) -> None:
    """Removes `node` from the tree, leaving `text` and the node's tail in its place."""
    replacement = text + (node.tail or "")
    parent = node.getparent()
    previous = node.getprevious()
    if previous is not None:
        previous.tail = (previous.tail or "") + replacement
    else:
        parent.text = (parent.text or "") + replacement
    parent.remove(node)


def _number_images(root: lxml.html.HtmlElement) -> None:
    images = [img for img in root.iter("img") if img.getparent() is not None]
    for index, img in enumerate(images):
        label = img.get("alt") or img.get("title")
        _splice_text(img, f"[Image {index}: {label}]" if label else f"[Image {index}]")


def _drop_non_content(root: lxml.html.HtmlElement) -> None:
    for tag in NON_CONTENT_TAGS:
        for node in list(root.iter(tag)):
            if node.getparent() is not None:
                # drop_tree keeps the node's tail text
                node.drop_tree()


def _unescaped(text: str, *args: Any, **kwargs: Any) -> str:
    return text


@contextmanager
def _markdown_escaping_disabled() -> Iterator[None]:
    # html2text has no option for this, so its escaping helpers are swapped out
    saved = html2text.utils.escape_md, html2text.utils.escape_md_section
    html2text.utils.escape_md = _unescaped
    html2text.utils.escape_md_section = _unescaped
    try:
        yield
    finally:
        html2text.utils.escape_md, html2text.utils.escape_md_section = saved


def _converter() -> html2text.HTML2Text:
    converter = html2text.HTML2Text()
    converter.body_width = 0
    converter.ignore_links = True
    converter.ignore_images = True
    converter.ignore_tables = True
    converter.ignore_emphasis = True
    converter.unicode_snob = True
    return converter


def html_to_text(html: str) -> str:
    """Renders an HTML fragment as unwrapped plain text."""
    html = SUPERSCRIPT_RE.sub(r"^{\2}", html)
    html = SUBSCRIPT_RE.sub(r"_{\2}", html)
    # keeps table cells and inline tags from gluing words together
    html = ADJACENT_TAGS_RE.sub(r" \1", html)
    with _markdown_escaping_disabled():
        return _converter().handle(html).strip()


def wrap_lines(text: str, width: int = LINE_WIDTH) -> list[str]:
    wrapped: list[str] = []
    for line in text.split("\n"):
        if not line:
            wrapped.append("")
            continue
        wrapped.extend(
            textwrap.wrap(line, width=width, replace_whitespace=False, drop_whitespace=False)
        )
    return wrapped


def process_html(html: str) -> str:
    """
    Convert raw HTML into the plain text stored in a browsing session.

    Args:
        html: Raw HTML string

    Returns:
        Plain text, wrapped to LINE_WIDTH columns, lines separated by "\\n".
        An empty or whitespace-only document yields "".

    Example:
        >>> process_html("<p>Hello <b>world</b></p>")
        'Hello world'
    """
    html = remove_unicode_smp(html)
    if not html.strip():
        return ""
    try:
        root = lxml.html.fromstring(html)
    except lxml.etree.ParserError:
        logger.debug("Could not parse HTML document, treating as empty")
        return ""

    _drop_non_content(root)
    _number_images(root)

    text = html_to_text(lxml.etree.tostring(root, encoding="unicode"))
    text = WHITESPACE_LINE_RE.sub("", text)
    # at most one blank line between blocks
    text = BLANK_RUN_RE.sub("\n\n", text)
    return "\n".join(wrap_lines(text))


def process_plaintext(text: str) -> str:
    """Normalizes line endings of a non-HTML body and wraps it like HTML output."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return "\n".join(wrap_lines(text.strip("\n")))
