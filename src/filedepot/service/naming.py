"""Stored-name generation for incoming uploads.

A stored name looks like ``<epoch-ms>-<8 hex chars>-<basename><ext>``: it
sorts by creation time, carries a random component drawn from
:mod:`secrets`, and keeps a readable trace of the client's filename.
"""

from __future__ import annotations

import posixpath
import re
import secrets
import time
import unicodedata

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_basename(name: str) -> str:
    """Return a filesystem-safe, lowercase version of *name*.

    Accents are removed (``Relatório`` -> ``relatorio``) and every character
    outside ``[A-Za-z0-9._-]`` becomes ``-``.
    """
    return _UNSAFE_CHARS.sub("-", _strip_diacritics(name)).lower()


def split_original_name(original_name: str) -> tuple[str, str]:
    """Split a client filename into ``(basename, extension)``.

    Any directory part the client sent is discarded, so ``../../x.txt`` yields
    ``("x", ".txt")``.
    """
    leaf = posixpath.basename(original_name.replace("\\", "/"))
    return posixpath.splitext(leaf)


def generate_stored_name(original_name: str, *, now_ms: int | None = None) -> str:
    """Build a unique stored name for *original_name*."""
    basename, ext = split_original_name(original_name)
    timestamp = now_ms if now_ms is not None else time.time_ns() // 1_000_000
    unique_id = secrets.token_hex(4)
    return f"{timestamp}-{unique_id}-{normalize_basename(basename)}{_UNSAFE_CHARS.sub('-', ext)}"
