"""SQLite storage of FII details and dividends."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Mapping

from rapina import progress
from rapina.models import Dividend, FIIDetails, parse_fii_details
from rapina.parsers.tables import create_all_tables, create_table, has_table


class DatabaseUnsetError(RuntimeError):
    """Raised when no database connection is available."""


class NotFoundError(LookupError):
    """Raised when the requested data is not in the database."""


def _details_column(code: str) -> str:
    if len(code) == 4:
        return "acronym"
    if len(code) == 6:
        return "trading_code"
    raise ValueError(f"invalid code '{code}'")


class FIIParser:
    """Stores and reads FII data in a SQLite database."""

    def __init__(self, db: sqlite3.Connection | None) -> None:
        self.db = db
        self._lock = threading.Lock()
        create_all_tables(db)

    def _connection(self) -> sqlite3.Connection:
        if self.db is None:
            raise DatabaseUnsetError("database not set")
        return self.db

    def save_details(self, stream: bytes | str) -> None:
        """Parse the JSON ``stream`` and store it as FII details."""
        db = self._connection()
        if not has_table(db, "fii_details"):
            create_table(db, "fii_details")
        if isinstance(stream, (bytes, bytearray)):
            stream = bytes(stream).decode("utf-8")
        details = parse_fii_details(stream)
        trim_fii_details(details)
        fund = details.detail_fund
        if not fund.cnpj:
            raise ValueError("CNPJ não encontrado")
        with self._lock:
            db.execute(
                "INSERT OR IGNORE INTO fii_details (cnpj, acronym, trading_code, json) "
                "VALUES (?,?,?,?);",
                (fund.cnpj, fund.acronym, fund.trading_code, stream),
            )
            db.commit()

    def details(self, code: str) -> FIIDetails:
        """Return the stored details for a 4-letter acronym or 6-char trading code."""
        db = self._connection()
        column = _details_column(code)
        row = db.execute(
            f"SELECT json FROM fii_details WHERE {column}=?", (code,)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"FII {code} not found")
        raw = row[0]
        try:
            return parse_fii_details(raw)
        except ValueError as exc:
            text = raw.decode("utf-8", "replace") if isinstance(raw, bytes) else raw
            progress.error_msg(f"FII details [{exc}]: {text}")
            raise

    def dividends(self, code: str, month_year: str) -> list[Dividend]:
        """Return the dividends of ``code`` whose base date starts with ``month_year``."""
        db = self._connection()
        rows = db.execute(
            "SELECT trading_code, base_date, value FROM fii_dividends "
            "WHERE trading_code=? AND base_date LIKE ?;",
            (code, month_year + "%"),
        ).fetchall()
        found = [Dividend(code=c, date=d, val=float(v)) for c, d, v in rows]
        if not found:
            raise NotFoundError("dividendos não encontrados")
        return found

    def save_dividend(self, stream: Mapping[str, str]) -> Dividend:
        """Store the dividend found in the report fields and return it."""
        db = self._connection()
        create_table(db, "fii_dividends")
        dividend = Dividend(
            code=map_finder("Código de negociação da cota", stream),
            date=fix_date(map_finder("Data-base", stream)),
            val=comma_to_dot(map_finder("Valor do provento", stream)),
        )
        payment_date = fix_date(map_finder("Data do pagamento", stream))
        with self._lock:
            db.execute(
                "INSERT OR IGNORE INTO fii_dividends "
                "(trading_code, base_date, payment_date, value) VALUES (?,?,?,?)",
                (dividend.code, dividend.date, payment_date, dividend.val),
            )
            db.commit()
        return dividend

    def select_fii_details(self, code: str) -> FIIDetails:
        """Return details holding only CNPJ, acronym and trading code."""
        db = self._connection()
        column = _details_column(code)
        row = db.execute(
            f"SELECT cnpj, acronym, trading_code FROM fii_details WHERE {column}=?",
            (code,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"FII {code} not found")
        details = FIIDetails()
        details.detail_fund.cnpj, details.detail_fund.acronym, details.detail_fund.trading_code = row
        return details


def trim_fii_details(details: FIIDetails) -> FIIDetails:
    """Trim CNPJ and acronym, and keep only the first trading code."""
    fund = details.detail_fund
    fund.cnpj = fund.cnpj.strip()
    fund.acronym = fund.acronym.strip()
    fund.trading_code = fund.trading_code.strip().split(" ")[0]
    return details


def map_finder(key: str, mapping: Mapping[str, str]) -> str:
    """Return the value of the first entry whose key contains ``key``."""
    return next((value for name, value in mapping.items() if key in name), "")


def comma_to_dot(value: str) -> float:
    """Parse a Brazilian number such as "1.230,56"; 0 if it is not a number."""
    text = value.replace(".", "").replace(",", ".")
    if not text or text != text.strip() or "_" in text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return 0.0


def fix_date(date: str) -> str:
    """Convert DD/MM/YYYY into YYYY-MM-DD; other input is returned as is."""
    if len(date) != len("26/04/2021") or date.count("/") != 2:
        return date
    return f"{date[6:10]}-{date[3:5]}-{date[0:2]}"