"""Request and response values, and resolution of content-related headers."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from urllib.parse import urlsplit

log = logging.getLogger(__name__)

_FLOAT = re.compile(
    r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|[+-]?(?:inf|infinity|nan)",
    re.IGNORECASE,
)


def _header(headers: Mapping[str, object] | None, name: str) -> str:
    """Return the first value of a header, matched case-insensitively, or ""."""
    if not headers:
        return ""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() != wanted:
            continue
        if isinstance(value, str):
            return value
        if isinstance(value, Iterable):
            return next(iter(value), "")
        return str(value)
    return ""


@dataclass
class AcceptLanguage:
    """A single language range from an Accept-Language header."""

    language: str
    quality: float = 1.0


def resolve_content_type(headers: Mapping[str, object] | None) -> str:
    """Return the bare, lower-cased media type of Content-Type, or "text/html"."""
    content_type = _header(headers, "Content-Type")
    if not content_type:
        return "text/html"
    return content_type.split(";")[0].strip().lower()


def resolve_format(headers: Mapping[str, object] | None) -> str:
    """Map the Accept header to one of "html", "json", "xml" or "txt"."""
    accept = _header(headers, "Accept")
    if (
        not accept
        or accept.startswith("*/*")
        or "application/xhtml" in accept
        or "text/html" in accept
    ):
        return "html"
    if "application/json" in accept or "text/javascript" in accept:
        return "json"
    if "application/xml" in accept or "text/xml" in accept:
        return "xml"
    if "text/plain" in accept:
        return "txt"
    return "html"


def _parse_quality(text: str) -> float:
    if not _FLOAT.fullmatch(text):
        raise ValueError(f"invalid quality value {text!r}")
    return float(text)


def resolve_accept_language(headers: Mapping[str, object] | None) -> list[AcceptLanguage]:
    """Return the Accept-Language ranges, most qualified first."""
    header = _header(headers, "Accept-Language")
    if not header:
        return []
    languages = []
    for language_range in header.split(","):
        parts = language_range.split(";q=")
        if len(parts) != 2:
            languages.append(AcceptLanguage(language_range, 1.0))
            continue
        try:
            quality = _parse_quality(parts[1])
        except ValueError:
            log.warning(
                "Detected malformed Accept-Language header quality in '%s', "
                "assuming quality is 1",
                language_range,
            )
            quality = 1.0
        languages.append(AcceptLanguage(parts[0], quality))
    return sorted(languages, key=lambda item: -item.quality)


def format_accept_languages(languages: Iterable[AcceptLanguage]) -> str:
    """Render languages as "lang (q), lang (q)"."""
    return ", ".join(f"{item.language} ({item.quality:1.1f})" for item in languages)


@dataclass
class Request:
    """An incoming request with its content type, format and languages resolved."""

    method: str = "GET"
    url: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    locale: str = ""
    content_type: str = field(init=False)
    format: str = field(init=False)
    accept_languages: list[AcceptLanguage] = field(init=False)

    def __post_init__(self) -> None:
        self.content_type = resolve_content_type(self.headers)
        self.format = resolve_format(self.headers)
        self.accept_languages = resolve_accept_language(self.headers)

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def query(self) -> str:
        return urlsplit(self.url).query

    def header(self, name: str) -> str:
        """Return the named header's value, or "" if absent."""
        return _header(self.headers, name)

    def cookie(self, name: str) -> str | None:
        """Return the value of the named cookie, or None if it is not sent."""
        for pair in self.header("Cookie").split(";"):
            key, sep, value = pair.strip().partition("=")
            if not sep or key.strip() != name:
                continue
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] == '"':
                value = value[1:-1]
            return value
        return None


@dataclass
class Response:
    """An outgoing response; status and content type may be preset by the action."""

    status: int = 0
    content_type: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: bytearray = field(default_factory=bytearray)
    written_status: int | None = None

    def write_header(self, default_status: int, default_content_type: str) -> None:
        """Send the status line, falling back to the defaults for unset values."""
        if self.status == 0:
            self.status = default_status
        if not self.content_type:
            self.content_type = default_content_type
        self.headers["Content-Type"] = self.content_type
        self.written_status = self.status