"""User content sanitization.

All free text that reaches the database (chat messages, link titles and
descriptions, task titles and descriptions) goes through :func:`clean_text`
or one of the ``validate_*`` helpers below.  Markup is removed with nh3
(ammonia bindings) using an empty tag allowlist: tags are dropped, their
text is kept, and ``<script>`` / ``<style>`` bodies are removed entirely.

Stored content is plain text, not HTML: ``Q&A`` is kept as ``Q&A`` rather
than ``Q&amp;A``, so clients escape it once when rendering.  Output is
stable under re-cleaning.
"""

from __future__ import annotations

import html

import nh3

from builderspace.server.errors import ValidationError

MAX_MESSAGE_LENGTH = 5000
MAX_TITLE_LENGTH = 200
MAX_LINK_DESCRIPTION_LENGTH = 1000
MAX_TASK_DESCRIPTION_LENGTH = 2000


def _strip_markup(text: str) -> str:
    return html.unescape(nh3.clean(text, tags=set(), attributes={}))


def clean_text(text: str) -> str:
    """Strip all markup from *text* and trim surrounding whitespace.

    nh3 escapes the text it keeps, so each pass is unescaped back to plain
    text.  Unescaping can expose markup that was entity-encoded in the input
    (``&lt;b&gt;``), so passes repeat until the text stops changing.
    """
    previous, cleaned = text, _strip_markup(text)
    while cleaned != previous:
        previous, cleaned = cleaned, _strip_markup(cleaned)
    return cleaned.strip()


def validate_content(text: str | None, *, field: str, max_length: int) -> str:
    """Return the cleaned, non-empty form of a required text field.

    Raises ``ValidationError`` when the value is empty before or after
    cleaning, or longer than *max_length* once cleaned.
    """
    if text is None or not text.strip():
        msg = f"{field} cannot be empty"
        raise ValidationError(msg)

    cleaned = clean_text(text)
    if not cleaned:
        msg = f"{field} cannot be empty after sanitization"
        raise ValidationError(msg)

    if len(cleaned) > max_length:
        msg = f"{field} cannot exceed {max_length} characters"
        raise ValidationError(msg)
    return cleaned


def validate_optional(text: str | None, *, field: str, max_length: int) -> str | None:
    """Like :func:`validate_content` but blank input becomes ``None``."""
    if text is None or not text.strip():
        return None
    cleaned = clean_text(text)
    if len(cleaned) > max_length:
        msg = f"{field} cannot exceed {max_length} characters"
        raise ValidationError(msg)
    return cleaned or None


def validate_message(text: str | None) -> str:
    return validate_content(text, field="Message content", max_length=MAX_MESSAGE_LENGTH)


def validate_title(text: str | None) -> str:
    return validate_content(text, field="Title", max_length=MAX_TITLE_LENGTH)
