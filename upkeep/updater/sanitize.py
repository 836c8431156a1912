"""Sanitizers applied to untrusted update-server data and outbound request values.

``sanitize_html`` keeps a post-content safe subset of HTML: an allowlist of
tags and attributes, ``script``/``style`` bodies dropped, URL attributes
restricted to http(s)/mailto/relative targets.
"""

from __future__ import annotations

import html as html_lib
import re
from html.parser import HTMLParser
from typing import Any
from urllib.parse import urlsplit

_ALLOWED_TAGS: dict[str, set[str]] = {
    "a": {"href", "title", "target", "rel"},
    "abbr": {"title"},
    "b": set(),
    "blockquote": {"cite"},
    "br": set(),
    "code": set(),
    "dd": set(),
    "del": set(),
    "div": {"class"},
    "dl": set(),
    "dt": set(),
    "em": set(),
    "h1": set(), "h2": set(), "h3": set(), "h4": set(), "h5": set(), "h6": set(),
    "hr": set(),
    "i": set(),
    "img": {"src", "alt", "title", "width", "height"},
    "li": set(),
    "ol": set(),
    "p": set(),
    "pre": set(),
    "s": set(),
    "span": {"class"},
    "strong": set(),
    "sub": set(),
    "sup": set(),
    "table": set(), "thead": set(), "tbody": set(), "tr": set(), "th": set(), "td": set(),
    "u": set(),
    "ul": set(),
}
_VOID_TAGS = {"br", "hr", "img"}
_DROP_CONTENT_TAGS = {"script", "style", "noscript", "iframe", "object", "template"}
_URL_ATTRS = {"href", "src", "cite"}
_SAFE_URL_SCHEMES = {"", "http", "https", "mailto"}

_TRUE_STRINGS = {"1", "yes", "true", "on"}


class _AllowlistSanitizer(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._out: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _DROP_CONTENT_TAGS:
            self._skip_depth += 1
            return
        if self._skip_depth or tag not in _ALLOWED_TAGS:
            return
        self._out.append(self._render_open(tag, attrs))

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self._skip_depth or tag not in _ALLOWED_TAGS:
            return
        self._out.append(self._render_open(tag, attrs))

    def handle_endtag(self, tag: str) -> None:
        if tag in _DROP_CONTENT_TAGS:
            if self._skip_depth:
                self._skip_depth -= 1
            return
        if self._skip_depth or tag not in _ALLOWED_TAGS or tag in _VOID_TAGS:
            return
        self._out.append(f"</{tag}>")

    def handle_data(self, data: str) -> None:
        if self._skip_depth:
            return
        self._out.append(html_lib.escape(data, quote=False))

    def _render_open(self, tag: str, attrs: list[tuple[str, str | None]]) -> str:
        allowed = _ALLOWED_TAGS[tag]
        parts = [tag]
        for name, value in attrs:
            name = name.lower()
            if name not in allowed or value is None:
                continue
            if name in _URL_ATTRS:
                value = safe_url(value)
                if not value:
                    continue
            parts.append(f'{name}="{html_lib.escape(value, quote=True)}"')
        return "<" + " ".join(parts) + ">"

    def result(self) -> str:
        return "".join(self._out)


def sanitize_html(value: Any) -> str:
    """Reduce ``value`` to the allowed HTML subset. Non-strings become text."""
    if value is None:
        return ""
    parser = _AllowlistSanitizer()
    parser.feed(str(value))
    parser.close()
    return parser.result()


def safe_url(value: Any) -> str:
    """Return ``value`` when it is an http(s)/mailto/relative URL, else ``""``."""
    url = str(value or "").strip()
    if not url:
        return ""
    # control characters can smuggle "java\tscript:" past scheme parsing
    if re.search(r"[\x00-\x20]", url.replace(" ", "%20")):
        return ""
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError:
        return ""
    return url if scheme in _SAFE_URL_SCHEMES else ""


def sanitize_text(value: Any) -> str:
    """Single-line plain text: tags stripped, whitespace collapsed, trimmed."""
    if value is None:
        return ""
    text = str(value)
    text = re.sub(r"<(script|style)[^>]*?>.*?</\1>", "", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<[^>]*>", "", text)
    text = re.sub(r"%[a-fA-F0-9]{2}", "", text)
    text = re.sub(r"[\r\n\t ]+", " ", text)
    return text.strip()


def sanitize_deep(value: Any) -> Any:
    """Apply :func:`sanitize_text` to every scalar in nested dicts/lists."""
    if isinstance(value, dict):
        return {sanitize_text(k): sanitize_deep(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_deep(v) for v in value]
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float)):
        return value
    return sanitize_text(value)


def absint(value: Any) -> int:
    """Non-negative integer. Unparsable input becomes 0."""
    try:
        return abs(int(float(str(value).strip())))
    except (TypeError, ValueError, OverflowError):
        return 0


def string_to_boolean(value: Any) -> bool:
    """Permissive boolean: ``yes``/``1``/``true``/``on`` (any case) are true."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value or "").strip().lower() in _TRUE_STRINGS
