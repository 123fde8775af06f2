"""
Input validators: framework-agnostic pure functions.

Used by the request DTOs and, for stored field names, by the event pipeline.
"""

from __future__ import annotations

import re

import validators as _validators

TAG_UID_MIN_LENGTH = 4
TAG_UID_MAX_LENGTH = 32

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


def validate_tag_uid(uid: str) -> bool:
    """Return True if *uid* is a hexadecimal tag identifier of 4–32 chars."""
    if not isinstance(uid, str):
        return False
    if not TAG_UID_MIN_LENGTH <= len(uid) <= TAG_UID_MAX_LENGTH:
        return False
    return bool(_HEX_RE.match(uid))


def validate_url(url: str) -> bool:
    """Return True if *url* is a syntactically valid HTTP/S URL.

    The ``validators`` package rejects bare hosts and unknown schemes, which
    covers what tag payloads are allowed to carry.
    """
    if not isinstance(url, str) or not url:
        return False
    if not url.lower().startswith(("http://", "https://")):
        return False
    return bool(_validators.url(url))


def validate_field_name(name: str) -> bool:
    """Return True if *name* can be stored as a top-level document field.

    MongoDB reads a leading ``$`` as an operator and a ``.`` as a path into a
    nested document, so neither may appear in client-supplied keys.
    """
    if not isinstance(name, str) or not name:
        return False
    return not name.startswith("$") and "." not in name
