"""Text transformations: hashing and diacritic removal."""

from __future__ import annotations

import unicodedata

_FNV32_OFFSET = 2166136261
_FNV32_PRIME = 16777619


def fnv32a(text: str) -> int:
    """Return the 32-bit FNV-1a hash of the UTF-8 bytes of ``text``."""
    h = _FNV32_OFFSET
    for byte in text.encode("utf-8"):
        h ^= byte
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    return h


def remove_diacritics(text: str) -> str:
    """Strip combining marks, turning e.g. "žůžo" into "zuzo"."""
    decomposed = unicodedata.normalize("NFD", text)
    kept = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", kept)