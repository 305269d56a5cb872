"""Download of CVM statement archives and their import into the database."""

from __future__ import annotations

import contextlib
import os
import sqlite3
from collections.abc import Callable, Sequence
from datetime import date
from pathlib import Path
from zipfile import BadZipFile

import requests

from rapina.fetch.archive import WriteCounter, unzip
from rapina.fetch.httpfetch import HTTP_TIMEOUT
from rapina.parsers.financial import import_csv
from rapina.parsers.sectors import sectors_to_yaml

_CVM_URL = "http://dados.cvm.gov.br/dados/CIA_ABERTA/DOC"
_STATEMENTS = ("BPA", "BPP", "DRE", "DFC_MD", "DFC_MI", "DVA")
_CHUNK = 64 * 1024

YearProcessor = Callable[[sqlite3.Connection, str, int], None]


class RemoteFileNotFoundError(OSError):
    """Raised when a remote archive cannot be downloaded."""

    def __init__(self, message: str = "file not found") -> None:
        super().__init__(message)


class ItemNotFoundError(LookupError):
    """Raised when no item of a list matches the wanted name."""

    def __init__(self, message: str = "item not found") -> None:
        super().__init__(message)


def cvm(db: sqlite3.Connection, data_dir: str | Path) -> None:
    """Fetch and import the quarterly, annual and reference form reports."""
    data_dir = os.fspath(data_dir)
    now = date.today().year
    retry_years(
        process_quarterly_report, db, data_dir, "Arquivo ITR não encontrado", now, now - 1, 2
    )
    retry_years(
        process_annual_report, db, data_dir, "Arquivo DFP não encontrado", now - 1, 2010, 2
    )
    retry_years(
        process_fre_report, db, data_dir, "Arquivo FRE não encontrado", now - 1, 2010, 2
    )


def retry_years(
    func: YearProcessor,
    db: sqlite3.Connection,
    data_dir: str,
    err_msg: str,
    start: int,
    limit: int,
    n: int,
) -> None:
    """Run ``func`` for each year from ``start`` down to ``limit``.

    Stops after ``n`` consecutive failures; a success resets the count.
    """
    tries = n
    year = start
    while tries > 0 and year >= limit:
        print(f"[>] {year} ---------------------")
        try:
            func(db, data_dir, year)
        except RemoteFileNotFoundError:
            print(f"[x] {err_msg}")
            tries -= 1
        except Exception as exc:  # any failure counts as a try, as with network errors
            print(f"[x] Erro ao processar arquivo de {year}: {exc}")
            tries -= 1
        else:
            tries = n
        year -= 1


def _import_archive(
    db: sqlite3.Connection,
    data_dir: str,
    url: str,
    zip_path: str,
    label: str,
    imports: Sequence[tuple[str, str]],
) -> None:
    print(f"[          ] Download do arquivo {label}", end="", flush=True)
    files = fetch_files(url, data_dir, zip_path)
    try:
        for pattern, data_type in imports:
            try:
                wanted = find_file(files, pattern)
            except ItemNotFoundError:
                raise ItemNotFoundError(f"arquivo {pattern} não encontrado") from None
            import_csv(db, data_type, wanted)
    finally:
        files_cleanup(files)


def process_annual_report(db: sqlite3.Connection, data_dir: str | Path, year: int) -> None:
    """Download the annual (DFP) archive of ``year`` and import its statements."""
    data_dir = os.fspath(data_dir)
    _import_archive(
        db,
        data_dir,
        f"{_CVM_URL}/DFP/DADOS/dfp_cia_aberta_{year}.zip",
        os.path.join(data_dir, f"dfp_{year}.zip"),
        "DFP",
        [(f"dfp_cia_aberta_{dt}_con_{year}.csv", dt) for dt in _STATEMENTS],
    )


def process_quarterly_report(db: sqlite3.Connection, data_dir: str | Path, year: int) -> None:
    """Download the quarterly (ITR) archive of ``year`` and import its statements."""
    data_dir = os.fspath(data_dir)
    _import_archive(
        db,
        data_dir,
        f"{_CVM_URL}/ITR/DADOS/ITR_CIA_ABERTA_{year}.zip",
        os.path.join(data_dir, f"itr_{year}.zip"),
        "ITR",
        # The _ITR suffix makes the import use the quarterly table
        [(f"ITR_CIA_ABERTA_{dt}_con_{year}.csv", f"{dt}_ITR") for dt in _STATEMENTS],
    )


def process_fre_report(db: sqlite3.Connection, data_dir: str | Path, year: int) -> None:
    """Download the reference form (FRE) archive of ``year`` and import it."""
    data_dir = os.fspath(data_dir)
    _import_archive(
        db,
        data_dir,
        f"{_CVM_URL}/FRE/DADOS/fre_cia_aberta_{year}.zip",
        os.path.join(data_dir, f"fre_{year}.zip"),
        "FRE",
        [(f"fre_cia_aberta_distribuicao_capital_{year}.csv", "FRE")],
    )


def fetch_files(
    url: str, data_dir: str | Path, zipfile: str | Path, verbose: bool = True
) -> list[str]:
    """Download the archive at ``url`` to ``zipfile`` and extract it into ``data_dir``.

    The archive itself is removed afterwards; the extracted paths are returned.
    """
    try:
        download_file(url, zipfile, verbose)
    except OSError as exc:
        raise RemoteFileNotFoundError() from exc
    finally:
        if verbose:
            print()

    try:
        return unzip(zipfile, data_dir, verbose)
    except (OSError, BadZipFile, ValueError) as exc:
        raise OSError(f"could not unzip file: {exc}") from exc
    finally:
        with contextlib.suppress(OSError):
            os.remove(zipfile)


def download_file(url: str, filepath: str | Path, verbose: bool = False) -> None:
    """Save the body of ``url`` into ``filepath``, showing progress if verbose."""
    Path(filepath).parent.mkdir(parents=True, exist_ok=True)
    with requests.get(url, stream=True, timeout=HTTP_TIMEOUT) as response:
        if response.status_code != 200:
            raise requests.HTTPError(
                f"bad status: {response.status_code} {response.reason}", response=response
            )
        counter = WriteCounter() if verbose else None
        with open(filepath, "wb") as out:
            for chunk in response.iter_content(_CHUNK):
                out.write(chunk)
                if counter is not None:
                    counter.write(chunk)


def sectors(yaml_file: str | Path) -> None:
    """Write the companies grouped by sector into ``yaml_file``."""
    sectors_to_yaml(yaml_file)


def files_cleanup(files: Sequence[str | Path]) -> None:
    """Delete ``files``, reporting the ones that could not be removed."""
    for name in files:
        try:
            os.remove(name)
        except OSError:
            print("could not delete file", name)


def find_file(files: Sequence[str], pattern: str) -> str:
    """Return the first path whose base name equals ``pattern``, ignoring case."""
    wanted = pattern.casefold()
    for name in files:
        if os.path.basename(name).casefold() == wanted:
            return name
    raise ItemNotFoundError()