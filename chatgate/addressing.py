"""Content addressing for uploaded files.

An object key is a pure function of the original filename and the bytes:
``<sanitized base>_<first 8 hex of sha256>.<extension>``.
"""

from __future__ import annotations

import hashlib
import re

DEFAULT_EXTENSION = "bin"
DIGEST_PREFIX_LEN = 8

_EXTENSION = re.compile(r"\.[^/.]+$")
_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")
_UNDERSCORES = re.compile(r"_{2,}")


def content_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sanitize_base_name(filename: str) -> str:
    base = _EXTENSION.sub("", filename)
    base = _UNSAFE.sub("_", base)
    base = _UNDERSCORES.sub("_", base)
    return base.strip("_")


def file_extension(filename: str) -> str:
    _, dot, ext = filename.rpartition(".")
    return ext if dot and ext else DEFAULT_EXTENSION


def derive_object_key(filename: str, digest: str) -> str:
    return f"{sanitize_base_name(filename)}_{digest[:DIGEST_PREFIX_LEN]}.{file_extension(filename)}"
