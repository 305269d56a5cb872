"""Approximate matching of company names."""

from __future__ import annotations

from collections.abc import Sequence

from rapina.parsers.transform import remove_diacritics


def levenshtein(a: str, b: str) -> int:
    """Return the Levenshtein edit distance between ``a`` and ``b``."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def _fix(text: str) -> str:
    text = text.upper().replace("BCO ", "BANCO ", 1)
    return remove_diacritics(text)


def fuzzy_find(source: str, targets: Sequence[str], max_distance: int) -> str:
    """Return the target closest to ``source`` within ``max_distance``, or ""."""
    src = _fix(source)
    found = ""
    for target in targets:
        trg = _fix(target)
        if src.startswith(trg) or trg.startswith(src):
            return target
        distance = levenshtein(src, trg)
        if distance <= max_distance:
            max_distance = distance
            found = target

    if not found:
        src_words = src.split(" ")
        for target in targets:
            trg_words = _fix(target).split(" ")
            if len(src_words) > 2 and len(trg_words) > 2 and src_words[:2] == trg_words[:2]:
                return target

    return found


def fuzzy_match(source: str, targets: Sequence[str], distance: int) -> bool:
    """Return True if some target lies within ``distance`` of ``source``."""
    return fuzzy_find(source, targets, distance) != ""