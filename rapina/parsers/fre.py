"""Import of the reference form (FRE) share distribution file."""

from __future__ import annotations

import math
import sqlite3
import struct
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path

from rapina.parsers.companies import Company, load_companies
from rapina.parsers.tables import what_table
from rapina.parsers.transform import fnv32a

_SPINNER = ("/", "-", "\\", "|", "-", "\\")


class CNPJNotFoundError(LookupError):
    """Raised when a row's CNPJ is not among the known companies."""


def _f32(value: float) -> float:
    """Round ``value`` to single precision."""
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _parse_float(text: str) -> float | None:
    if not text or text != text.strip() or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _read_lines(file: str | Path) -> Iterator[str]:
    with open(file, "rb") as fh:
        for raw in fh:
            line = raw.decode("latin-1")
            yield line.removesuffix("\n").removesuffix("\r")


def populate_fre(db: sqlite3.Connection, file: str | Path) -> int:
    """Insert the rows of an FRE file into the ``fre`` table; return lines processed."""
    table = what_table("FRE")
    try:
        companies = load_companies(db)
    except sqlite3.Error:
        companies = {}

    insert = (
        f"INSERT OR IGNORE INTO {table} ("
        "ID, ID_CIA, YEAR, Versao, "
        "Quantidade_Total_Acoes_Circulacao, Percentual_Total_Acoes_Circulacao"
        ") VALUES (?, ?, ?, ?, ?, ?);"
    )

    header: dict[str, int] = {}
    count = 0
    spin = 0
    print("[ ] Processando arquivo FRE", end="", flush=True)
    try:
        for line in _read_lines(file):
            if not line:
                continue
            fields = [f for f in line.split(";") if f]
            if not header:
                header = {name: i for i, name in enumerate(fields)}
            else:
                if len(fields) <= 12:
                    continue
                try:
                    row = prepare_fre_fields(header, fields, companies)
                except CNPJNotFoundError:
                    continue
                except ValueError as exc:
                    print(line)
                    print(f"\r[x] Falha ao preparar registro: {exc}")
                    print("[ ] Processando arquivo FRE", end="", flush=True)
                    continue
                db.execute(insert, row)
            count += 1
            if count % 60 == 0:
                print(f"\r[{_SPINNER[spin % 6]}", end="", flush=True)
                spin += 1
    except BaseException:
        db.rollback()
        raise

    print("\r[*", end="", flush=True)
    db.commit()
    return count


def prepare_fre_fields(
    header: Mapping[str, int],
    fields: Sequence[str],
    companies: Mapping[str, Company],
) -> tuple:
    """Return (ID, ID_CIA, YEAR, Versao, total shares, free float) for one row."""
    if len(fields) < len(header) - 1:
        raise ValueError(f"len(fields)={len(fields)} != len(header)={len(header)}")

    def val(key: str) -> str:
        index = header.get(key)
        if index is None or index >= len(fields):
            return ""
        return fields[index]

    if "Data_Referencia" not in header:
        raise ValueError("Data_Referencia não encontrado")
    reference = val("Data_Referencia")
    if len(reference) != 10:
        raise ValueError(f"DT_FIM_EXERC incorreto: {reference}")
    year = reference[:4]

    cnpj = val("CNPJ_Companhia")
    company = companies.get(cnpj)
    if company is None:
        raise CNPJNotFoundError(f"CNPJ {cnpj} not found")

    free_float = 0.0
    percent = _parse_float(val("Percentual_Total_Acoes_Circulacao"))
    if percent is not None:
        free_float = _f32(_f32(percent) / 100)

    total_shares = 0.0
    shares = _parse_float(val("Quantidade_Total_Acoes_Circulacao"))
    if shares is not None and free_float > 0:
        total_shares = _f32(_f32(shares) / free_float)

    row_hash = fnv32a(
        cnpj
        + val("Data_Referencia")
        + val("Versao")
        + val("ID_Documento")
        + val("Quantidade_Total_Acoes_Circulacao")
    )

    return (row_hash, company.id, year, val("Versao"), total_shares, free_float)