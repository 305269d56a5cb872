"""MD5 bookkeeping of files that were already imported."""

from __future__ import annotations

import hashlib
import sqlite3
from pathlib import Path


def md5_from_file(filename: str | Path) -> str:
    """Return the hex MD5 digest of the file contents."""
    digest = hashlib.md5()
    with open(filename, "rb") as fh:
        for chunk in iter(lambda: fh.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def is_new_file(db: sqlite3.Connection, filename: str | Path) -> bool:
    """Return False only if the file's digest is already stored.

    Any error while hashing or querying counts as a new file, so the file
    gets processed.
    """
    try:
        digest = md5_from_file(filename)
        row = db.execute("SELECT md5 FROM md5 WHERE md5 = ?", (digest,)).fetchone()
    except (OSError, sqlite3.Error):
        return True
    return row is None


def store_file(db: sqlite3.Connection, filename: str | Path) -> str:
    """Record the file's digest and return it, or "" on failure."""
    try:
        digest = md5_from_file(filename)
        db.execute("INSERT OR IGNORE INTO md5 (md5) VALUES (?)", (digest,))
        db.commit()
    except (OSError, sqlite3.Error):
        return ""
    return digest