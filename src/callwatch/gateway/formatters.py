"""
Telegram message formatting utilities.

Handles splitting long messages and deriving plain text from Telegram HTML.
"""

import re
from html import escape, unescape

TELEGRAM_MESSAGE_LIMIT = 4096
TELEGRAM_CAPTION_LIMIT = 1024

_TAG = re.compile(r"<[^>]+>")


def format_for_telegram(response: str, max_length: int = TELEGRAM_MESSAGE_LIMIT) -> list[str]:
    """
    Split long messages for Telegram's 4096-character limit.

    Args:
        response: The message text to format
        max_length: Maximum length per message (default: 4096)

    Returns:
        List of message chunks, each under max_length characters

    Examples:
        >>> format_for_telegram("Short message")
        ['Short message']

        >>> long_msg = "\\n".join(["Line " + str(i) for i in range(2000)])
        >>> chunks = format_for_telegram(long_msg)
        >>> all(len(chunk) <= 4096 for chunk in chunks)
        True
    """
    if len(response) <= max_length:
        return [response]

    messages = []
    current = ""

    # Split on newlines so HTML tags (always single-line here) stay intact
    for line in response.split("\n"):
        if len(line) > max_length:
            *pieces, line = _wrap_overlong_line(line, max_length)
            if current:
                messages.append(current)
                current = ""
            messages.extend(pieces)

        if len(current) + len(line) + 1 > max_length:
            if current:
                messages.append(current)
            current = line
        else:
            current += "\n" + line if current else line

    if current:
        messages.append(current)

    return messages


def fits_caption(text: str) -> bool:
    """Whether ``text`` can be sent as a photo caption."""
    return len(text) <= TELEGRAM_CAPTION_LIMIT


def html_to_plain(text: str) -> str:
    """Strip Telegram HTML tags and unescape entities.

    >>> html_to_plain("<b>A &amp; B</b>")
    'A & B'
    """
    return unescape(_TAG.sub("", text))


def _wrap_overlong_line(line: str, max_length: int) -> list[str]:
    """
    Hard-wrap a single line longer than ``max_length``.

    Tags cannot span messages, so the line's formatting is dropped and the
    plain text is re-escaped. Cuts never fall inside an entity (&amp; &lt;
    &gt;). The last piece may be shorter than the limit, or empty.
    """
    text = escape(html_to_plain(line), quote=False)
    pieces = []
    while len(text) > max_length:
        cut = max_length
        amp = text.rfind("&", cut - 4, cut)
        if amp != -1 and ";" not in text[amp:cut]:
            cut = amp
        pieces.append(text[:cut])
        text = text[cut:]
    pieces.append(text)
    return pieces
