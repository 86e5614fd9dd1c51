"""Message catalogues loaded from per-language message files."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from pathlib import Path

from .http import Request

log = logging.getLogger(__name__)

CURRENT_LOCALE_RENDER_ARG = "currentLocale"
DEFAULT_SECTION = "DEFAULT"

_MESSAGE_FILE = re.compile(r"^\w+\.[a-zA-Z]{2}$", re.ASCII)
_SECTION = re.compile(r"^\[(?P<name>[^\]]+)\]$")
_REFERENCE = re.compile(r"%\(([a-zA-Z0-9_.\-]+)\)s")
_MAX_DEPTH = 200

Sections = dict[str, dict[str, str]]


def _unknown(key: str) -> str:
    return f"??? {key} ???"


def parse_locale(locale: str) -> tuple[str, str]:
    """Split "lang-REGION" into (lang, REGION); a bare language has region ""."""
    if "-" in locale:
        parts = locale.split("-")
        return parts[0], parts[1]
    return locale, ""


def parse_message_file(text: str) -> Sections:
    """Parse "key = value" lines grouped in [sections]; leading keys go to DEFAULT."""
    sections: Sections = {DEFAULT_SECTION: {}}
    current = DEFAULT_SECTION
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line[0] in "#;":
            continue
        match = _SECTION.match(line)
        if match:
            current = match.group("name").strip()
            sections.setdefault(current, {})
            continue
        positions = [pos for pos in (line.find("="), line.find(":")) if pos >= 0]
        if not positions:
            raise ValueError(f"line {number}: expected 'key = value', got {line!r}")
        split = min(positions)
        key = line[:split].strip()
        if not key:
            raise ValueError(f"line {number}: missing key")
        sections[current][key] = line[split + 1 :].strip()
    return sections


def _raw_value(sections: Sections, section: str, key: str) -> str:
    for name in (section, DEFAULT_SECTION):
        options = sections.get(name)
        if options and key in options:
            return options[key]
    raise KeyError(key)


def _lookup(sections: Sections, section: str, key: str, depth: int = 0) -> str:
    if depth > _MAX_DEPTH:
        raise ValueError(f"too many nested references resolving {key!r}")
    raw = _raw_value(sections, section, key)
    return _REFERENCE.sub(
        lambda match: _lookup(sections, section, match.group(1), depth + 1), raw
    )


def _walk(path: Path) -> Iterator[Path]:
    if path.is_dir() and not path.is_symlink():
        for child in sorted(path.iterdir(), key=lambda item: item.name):
            yield from _walk(child)
    else:
        yield path


class MessageCatalog:
    """Translated messages by language, with regional sections."""

    def __init__(self, default_language: str | None = None) -> None:
        self.default_language = default_language
        self._messages: dict[str, Sections] = {}

    def load(self, path: str | Path) -> None:
        """Replace the catalogue with every message file found under path."""
        self._messages = {}
        root = Path(path)
        if not root.exists():
            return
        try:
            for file in _walk(root):
                self._load_file(file)
        except (OSError, ValueError) as exc:
            log.error("Error reading messages files: %s", exc)

    def _load_file(self, file: Path) -> None:
        if not _MESSAGE_FILE.match(file.name):
            log.debug("Ignoring file %s because it did not have a valid extension", file.name)
            return
        sections = parse_message_file(file.read_text(encoding="utf-8"))
        locale = file.suffix[1:].lower()
        existing = self._messages.get(locale)
        if existing is None:
            self._messages[locale] = sections
        else:
            for name, options in sections.items():
                existing.setdefault(name, {}).update(options)
            log.debug("Merged messages for locale '%s'", locale)

    def languages(self) -> list[str]:
        """Return the loaded languages, sorted."""
        return sorted(self._messages)

    def message(self, locale: str, key: str, *args: object) -> str:
        """Look up key for locale and format it with args; unknowns give "??? key ???"."""
        language, region = parse_locale(locale)
        sections = self._messages.get(language)
        if sections is None:
            if not self.default_language:
                log.warning(
                    "No default language; messages for unsupported locale '%s' "
                    "will never be translated",
                    locale,
                )
                return _unknown(key)
            sections = self._messages.get(self.default_language)
            if sections is None:
                log.warning(
                    "Unsupported default language '%s' for message '%s'",
                    self.default_language,
                    key,
                )
                return _unknown(key)
        try:
            value = _lookup(sections, region, key)
        except (KeyError, ValueError):
            log.warning("Unknown message '%s' for locale '%s'", key, locale)
            return _unknown(key)
        if args:
            try:
                value = value % args
            except (TypeError, ValueError) as exc:
                log.warning("Could not format message '%s' with %r: %s", key, args, exc)
        return value


def resolve_locale(request: Request, cookie_name: str) -> str:
    """Pick the locale from the cookie, else the best Accept-Language, else ""."""
    locale = request.cookie(cookie_name)
    if locale is None:
        locale = request.accept_languages[0].language if request.accept_languages else ""
    request.locale = locale
    return locale