"""Extraction of the relevant files from downloaded zip archives."""

from __future__ import annotations

import os
import sys
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import humanize

_CHUNK = 64 * 1024
_WANTED = ("_bpa_", "_bpp_", "_dfc_", "_dre_", "_dva_", "fre_", "cotahist_")


@dataclass
class WriteCounter:
    """Counts bytes written and shows the running total."""

    total: int = 0
    out: TextIO | None = None

    def write(self, data: bytes) -> int:
        n = len(data)
        self.total += n
        out = self.out if self.out is not None else sys.stdout
        out.write(f"\r[  {humanize.naturalsize(self.total):>7}")
        out.flush()
        return n


def is_wanted(filename: str) -> bool:
    """Return True for consolidated statement, FRE and quote files."""
    name = filename.lower()
    if "_ind_" in name:
        return False
    return any(item in name for item in _WANTED)


def unzip(src: str | Path, dest: str | Path, verbose: bool = False) -> list[str]:
    """Extract the wanted members of ``src`` into ``dest``; return their paths."""
    dest = os.fspath(dest)
    root = os.path.join(os.path.abspath(dest), "")
    filenames: list[str] = []

    with zipfile.ZipFile(src) as archive:
        for info in archive.infolist():
            if not is_wanted(info.filename):
                continue

            fpath = os.path.normpath(os.path.join(dest, info.filename))
            if not os.path.abspath(fpath).startswith(root):
                raise ValueError(f"{fpath}: illegal file path")
            filenames.append(fpath)

            if info.is_dir():
                os.makedirs(fpath, exist_ok=True)
                continue

            os.makedirs(os.path.dirname(fpath) or ".", exist_ok=True)
            counter = WriteCounter() if verbose else None
            if verbose:
                print(f"[          ] Unziping {fpath}", end="", flush=True)
            try:
                with archive.open(info) as source, open(fpath, "wb") as target:
                    while chunk := source.read(_CHUNK):
                        target.write(chunk)
                        if counter is not None:
                            counter.write(chunk)
            finally:
                if verbose:
                    print()

    return filenames