"""
Scraped-text sanitizer.

Strips link markup and URLs from scraped markdown and caps its size. The
result never contains an http(s) URL, so a second pass has nothing left to
remove and sanitize() is idempotent.
"""

import re

MAX_CONTENT_CHARS = 80_000

_TITLE = r'(?:\s+"[^"]*")?'
_IMAGE_LINK = re.compile(r"!\[([^\]]*)\]\((https?://[^\s)]+)" + _TITLE + r"\)")
_LINK = re.compile(r"\[([^\]]*)\]\((https?://[^\s)]+)" + _TITLE + r"\)")
_REFERENCE_DEFINITION = re.compile(r"^\[[^\]]+\]:\s*https?://\S+" + _TITLE + r"$", re.MULTILINE)
_ANGLE_URL = re.compile(r"<(https?://[^>]+)>")
_BARE_URL = re.compile(r"https?://\S+")


def sanitize(raw_text: str | None, max_chars: int = MAX_CONTENT_CHARS) -> str:
    """
    Remove links and URLs from scraped markdown and truncate it.

    Image and hyperlink markup keep their text, reference-style definitions,
    angle-bracketed URLs and bare URLs are dropped.

    Args:
        raw_text: Scraped markdown (None or non-string yields "")
        max_chars: Maximum length of the result

    Returns:
        Cleaned text, at most max_chars long
    """
    if not isinstance(raw_text, str):
        return ""

    text = _IMAGE_LINK.sub(r"\1", raw_text)
    text = _LINK.sub(r"\1", text)
    text = _REFERENCE_DEFINITION.sub("", text)
    text = _ANGLE_URL.sub("", text)
    text = _BARE_URL.sub("", text)

    # Strip again after the cut so the result is a fixed point
    return text.strip()[:max_chars].strip()
