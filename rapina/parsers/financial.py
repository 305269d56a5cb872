"""Import of CVM financial statement CSV files into the database."""

from __future__ import annotations

import functools
import sqlite3
from collections.abc import Iterator, Mapping, Sequence
from datetime import date
from pathlib import Path

from rapina.parsers.accounts import acct_code
from rapina.parsers.checksum import is_new_file, store_file
from rapina.parsers.companies import (
    Company,
    load_companies,
    save_companies,
    update_companies,
)
from rapina.parsers.fre import populate_fre
from rapina.parsers.tables import (
    CURRENT_DB_VERSION,
    create_table,
    db_version,
    what_table,
    wipe_table,
)
from rapina.parsers.transform import fnv32a

_SPINNER = ("/", "-", "\\", "|", "-", "\\")
_EPOCH = date(1970, 1, 1)
_SECONDS_PER_DAY = 24 * 60 * 60


class AccumulatedITRError(Exception):
    """Raised for quarterly rows that hold accumulated (non-quarter) results."""

    def __init__(self, message: str = "accumulated quarterly results") -> None:
        super().__init__(message)


def import_csv(db: sqlite3.Connection, data_type: str, file: str | Path) -> int:
    """Import ``file`` as ``data_type``, creating tables as needed.

    Returns the number of lines processed, or 0 if the file was imported before.
    """
    create_table(db, "STATUS")
    create_table(db, "COMPANIES")

    for dt in (data_type, "MD5"):
        version, table = db_version(db, dt)
        if version != CURRENT_DB_VERSION:
            if version > 0:
                print(
                    f"[i] Apagando tabela {table} versão {version} "
                    f"(versão atual: {CURRENT_DB_VERSION})"
                )
            wipe_table(db, dt)
        create_table(db, dt)

    if not is_new_file(db, file):
        print(f"[ ] {data_type} já processado anteriormente")
        return 0

    try:
        if data_type == "FRE":
            count = populate_fre(db, file)
        else:
            count = populate_table(db, data_type, file)
    except Exception:
        print("\r[x")
        raise

    print(f"\r[√] {data_type + ':':<7} {count:7d} linhas processadas")
    store_file(db, file)
    return count


def _read_lines(file: str | Path) -> Iterator[str]:
    with open(file, "rb") as fh:
        for raw in fh:
            line = raw.decode("latin-1")
            yield line.removesuffix("\n").removesuffix("\r")


def populate_table(db: sqlite3.Connection, data_type: str, file: str | Path) -> int:
    """Insert the statement rows of ``file``; return the number of lines processed."""
    table = what_table(data_type)
    try:
        companies = load_companies(db)
    except sqlite3.Error:
        companies = {}

    insert = (
        f"INSERT OR IGNORE INTO {table} ("
        "ID, ID_CIA, CODE, YEAR, DATA_TYPE, VERSAO, MOEDA, ESCALA_MOEDA, "
        "DT_FIM_EXERC, CD_CONTA, DS_CONTA, VL_CONTA"
        ") VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);"
    )

    header: dict[str, int] = {}
    count = 0
    spin = 0
    print(f"[ ] Processando arquivo {data_type}", end="", flush=True)
    try:
        for line in _read_lines(file):
            if not line:
                continue
            fields = line.split(";")
            if not header:
                header = {name: i for i, name in enumerate(fields)}
            else:
                if len(fields) <= 12:
                    continue

                # The penultimate year is only used from the 2010 file, for 2009 data
                if _value(header, fields, "ORDEM_EXERC") == "PENÚLTIMO":
                    end = _value(header, fields, "DT_FIM_EXERC")
                    if len(end) < 4 or end[:4] != "2009":
                        continue

                n1 = header.get("CNPJ_CIA")
                n2 = header.get("DENOM_CIA")
                if n1 is not None and n2 is not None and n1 < len(fields) and n2 < len(fields):
                    update_companies(companies, fields[n1], fields[n2])

                try:
                    prepared = prepare_fields(data_type, header, fields, companies)
                except AccumulatedITRError:
                    continue
                except (ValueError, IndexError) as exc:
                    raise ValueError(f"falha ao preparar registro: {exc}") from exc
                db.execute(insert, prepared[:4] + (data_type,) + prepared[4:])

            count += 1
            if count % 1000 == 0:
                print(f"\r[{_SPINNER[spin % 6]}", end="", flush=True)
                spin += 1
    except BaseException:
        db.rollback()
        raise

    print("\r[*", end="", flush=True)
    db.commit()
    save_companies(db, companies)
    return count


def _value(header: Mapping[str, int], fields: Sequence[str], key: str) -> str:
    index = header.get(key)
    if index is None or index >= len(fields):
        return ""
    return fields[index]


@functools.lru_cache(maxsize=None)
def _unix_time(text: str) -> int:
    """Return the Unix time of a YYYY-MM-DD date at UTC midnight, or 0."""
    try:
        day = date.fromisoformat(text)
    except ValueError:
        return 0
    return (day - _EPOCH).days * _SECONDS_PER_DAY


def prepare_fields(
    data_type: str,
    header: Mapping[str, int],
    fields: Sequence[str],
    companies: Mapping[str, Company],
) -> tuple:
    """Return the column values of one statement row.

    Order: ID, ID_CIA, CODE, YEAR, VERSAO, MOEDA, ESCALA_MOEDA, DT_FIM_EXERC,
    CD_CONTA, DS_CONTA, VL_CONTA. DT_FIM_EXERC is a Unix timestamp.
    """

    def val(key: str) -> str:
        return _value(header, fields, key)

    def tim(key: str) -> int:
        if key not in header:
            return 0
        return _unix_time(val(key))

    if "DT_FIM_EXERC" not in header:
        raise ValueError("DT_FIM_EXERC não encontrado")
    end = val("DT_FIM_EXERC")
    if len(end) < 4 or tim("DT_FIM_EXERC") == 0:
        raise ValueError(f"DT_FIM_EXERC incorreto: {end}")

    # Quarterly data must span about 90 days, except for balance sheets
    if data_type not in ("BPA_ITR", "BPP_ITR") and data_type.endswith("_ITR"):
        days = int((tim("DT_FIM_EXERC") - tim("DT_INI_EXERC")) / _SECONDS_PER_DAY)
        if days < 80 or days > 100:
            raise AccumulatedITRError()
    year = end[:4]

    cnpj = val("CNPJ_CIA")
    company = companies.get(cnpj)
    if company is None:
        raise ValueError(f"CNPJ {cnpj} não encontrado")

    row_hash = fnv32a(
        cnpj
        + val("GRUPO_DFP")
        + val("DT_FIM_EXERC")
        + val("VERSAO")
        + val("CD_CONTA")
        + val("VL_CONTA")
    )

    return (
        row_hash,
        company.id,
        int(acct_code(val("CD_CONTA"), val("DS_CONTA"))),
        year,
        val("VERSAO"),
        val("MOEDA"),
        val("ESCALA_MOEDA"),
        tim("DT_FIM_EXERC"),
        val("CD_CONTA"),
        val("DS_CONTA"),
        val("VL_CONTA"),
    )