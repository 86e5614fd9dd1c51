"""A unified view of request parameters from route, query string and body."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from email.parser import BytesParser
from email.utils import collapse_rfc2231_value
from urllib.parse import parse_qsl

from .http import Request

log = logging.getLogger(__name__)

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


@dataclass(frozen=True)
class UploadedFile:
    """A file uploaded in a multipart form."""

    filename: str
    content_type: str
    content: bytes


@dataclass
class Params:
    """Parameters by source; values() merges them in a fixed order."""

    fixed: dict[str, list[str]] = field(default_factory=dict)
    route: dict[str, list[str]] = field(default_factory=dict)
    query: dict[str, list[str]] = field(default_factory=dict)
    form: dict[str, list[str]] = field(default_factory=dict)
    files: dict[str, list[UploadedFile]] = field(default_factory=dict)

    def values(self) -> dict[str, list[str]]:
        """Merge fixed, query, route and form parameters, in that order."""
        merged: dict[str, list[str]] = {}
        for source in (self.fixed, self.query, self.route, self.form):
            for key, values in source.items():
                merged.setdefault(key, []).extend(values)
        return merged

    def get(self, name: str) -> str:
        """Return the first value of the named parameter, or ""."""
        found = self.values().get(name)
        return found[0] if found else ""


def _parse_query(text: str) -> dict[str, list[str]]:
    values: dict[str, list[str]] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        values.setdefault(key, []).append(value)
    return values


def _parse_multipart(
    content_type: str, body: bytes
) -> tuple[dict[str, list[str]], dict[str, list[UploadedFile]]]:
    head = b"Content-Type: " + content_type.encode("latin-1") + b"\r\n\r\n"
    message = BytesParser().parsebytes(head + body)
    if message.get_boundary() is None:
        raise ValueError("no multipart boundary param in Content-Type")
    if not message.is_multipart():
        raise ValueError("malformed multipart body")
    values: dict[str, list[str]] = {}
    files: dict[str, list[UploadedFile]] = {}
    for part in message.get_payload():
        name = part.get_param("name", header="content-disposition")
        if not name:
            continue
        name = collapse_rfc2231_value(name)
        content = part.get_payload(decode=True) or b""
        filename = part.get_filename()
        if filename is None:
            values.setdefault(name, []).append(content.decode("utf-8", "replace"))
        else:
            files.setdefault(name, []).append(
                UploadedFile(filename, part.get_content_type(), content)
            )
    return values, files


def parse_params(request: Request) -> Params:
    """Collect the query string and, for form content types, the body parameters."""
    params = Params(query=_parse_query(request.query))
    if request.content_type == "application/x-www-form-urlencoded":
        form: dict[str, list[str]] = {}
        if request.method.upper() in _BODY_METHODS:
            form = _parse_query(request.body.decode("utf-8", "replace"))
        for key, values in params.query.items():
            form.setdefault(key, []).extend(values)
        params.form = form
    elif request.content_type == "multipart/form-data":
        try:
            values, files = _parse_multipart(request.header("Content-Type"), request.body)
        except ValueError as exc:
            log.warning("Error parsing request body: %s", exc)
        else:
            params.form = values
            params.files = files
    return params