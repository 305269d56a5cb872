"""Parsing and SQLite storage of stock quotes and stock trading codes."""

from __future__ import annotations

import io
import re
import sqlite3
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from rapina import progress
from rapina.parsers.checksum import is_new_file, store_file
from rapina.parsers.fiidb import DatabaseUnsetError, NotFoundError
from rapina.parsers.tables import create_table

_INTEGER = re.compile(r"[+-]?[0-9]+")

_INSERT_QUOTE = (
    "INSERT OR IGNORE INTO stock_quotes "
    "(stock, date, open, high, low, close, volume) VALUES (?,?,?,?,?,?,?);"
)
_INSERT_CODE = (
    "INSERT OR IGNORE INTO stock_codes "
    "(trading_code, company_name, SpcfctnCd, CorpGovnLvlNm) VALUES (?,?,?,?);"
)

# Field ranges (byte offsets) of the B3 historical quotes layout
_B3_NUMBERS = (
    (56, 69),  # PREABE = open
    (69, 82),  # PREMAX = high
    (82, 95),  # PREMIN = low
    (108, 121),  # PREULT = close
    (170, 188),  # VOLTOT = volume
)


@dataclass
class StockQuote:
    """Daily quote of one stock."""

    stock: str
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass
class StockCode:
    """Trading code of a listed instrument and its company."""

    tckr_symb: str
    sgmt_nm: str
    scty_ctgy_nm: str
    crpn_nm: str
    spcfctn_cd: str
    corp_govn_lvl_nm: str


class Provider(Enum):
    """Kind of data stream, detected from its header line."""

    NONE = 0
    ALPHA_VANTAGE = 1
    YAHOO = 2
    B3_QUOTES = 3
    B3_CODES = 4


def _strip_eol(line: str) -> str:
    return line.removesuffix("\n").removesuffix("\r")


def _parse_float(text: str) -> float:
    if not text or text != text.strip() or "_" in text:
        raise ValueError(f"campo inválido: {text!r}")
    try:
        return float(text)
    except ValueError:
        raise ValueError(f"campo inválido: {text!r}") from None


def _atoi(text: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"número inválido: {text!r}")
    return int(text)


def detect_provider(header: str) -> Provider:
    """Return the stream type given its first line."""
    if header == "timestamp,open,high,low,close,volume":
        return Provider.ALPHA_VANTAGE
    if header == "Date,Open,High,Low,Close,Adj Close,Volume":
        return Provider.YAHOO
    if header.startswith("00COTAHIST."):
        return Provider.B3_QUOTES
    if header.startswith("RptDt;TckrSymb;Asst;AsstDesc;SgmtNm;MktNm;SctyCtgyNm;XprtnDt;"):
        return Provider.B3_CODES
    return Provider.NONE


def parse_alpha_vantage(line: str, code: str) -> StockQuote:
    """Parse a line of timestamp,open,high,low,close,volume for ``code``."""
    fields = line.split(",")
    if len(fields) != 6:
        raise ValueError("linha inválida")
    open_, high, low, close, volume = (_parse_float(f) for f in fields[1:6])
    return StockQuote(code, fields[0], open_, high, low, close, volume)


def parse_yahoo(line: str, code: str) -> StockQuote:
    """Parse a line of Date,Open,High,Low,Close,Adj Close,Volume for ``code``."""
    fields = line.split(",")
    if len(fields) != 7:
        raise ValueError("linha inválida")
    open_, high, low, close, _adj_close, volume = (_parse_float(f) for f in fields[1:7])
    return StockQuote(code, fields[0], open_, high, low, close, volume)


def parse_b3_quote(line: str) -> StockQuote:
    """Parse a 245-byte record of the B3 historical quotes file.

    Only type "01" records of the standard lot or fund markets (BDI 02, 12,
    13, 14) in the cash or odd-lot markets (010, 020) are accepted.
    """
    raw = line.encode("utf-8")
    if len(raw) != 245:
        raise ValueError("linha deve conter 245 bytes")

    def part(start: int, end: int) -> str:
        return raw[start:end].decode("utf-8", "replace")

    rec_type = part(0, 2)
    if rec_type != "01":
        raise ValueError(f"registro {rec_type} ignorado")
    cod_bdi = part(10, 12)
    if cod_bdi not in ("02", "12", "13", "14"):
        raise ValueError(f"BDI {cod_bdi} ignorado")
    tp_merc = part(24, 27)
    if tp_merc not in ("010", "020"):
        raise ValueError(f"tipo de mercado {tp_merc} ignorado")

    date = f"{part(2, 6)}-{part(6, 8)}-{part(8, 10)}"
    code = part(12, 24).strip()
    open_, high, low, close, volume = (
        _atoi(part(start, end)) / 100 for start, end in _B3_NUMBERS
    )
    return StockQuote(code, date, open_, high, low, close, volume)


def parse_b3_code(line: str) -> StockCode:
    """Parse a line of the B3 instruments file; only cash shares, units and funds."""
    fields = line.split(";")
    if len(fields) != 52:
        raise ValueError(f"linha inválida {len(fields)}")
    code = StockCode(
        tckr_symb=fields[1],
        sgmt_nm=fields[4],
        scty_ctgy_nm=fields[6],
        crpn_nm=fields[47],
        spcfctn_cd=fields[46],
        corp_govn_lvl_nm=fields[51],
    )
    if code.sgmt_nm != "CASH" or code.scty_ctgy_nm not in ("SHARES", "FUNDS", "UNIT"):
        raise ValueError("linha ignorada")
    return code


def _row(record: StockQuote | StockCode) -> tuple:
    if isinstance(record, StockCode):
        return (record.tckr_symb, record.crpn_nm, record.spcfctn_cd, record.corp_govn_lvl_nm)
    return (
        record.stock,
        record.date,
        record.open,
        record.high,
        record.low,
        record.close,
        record.volume,
    )


class StockParser:
    """Stores and reads stock quotes and codes in a SQLite database."""

    def __init__(self, db: sqlite3.Connection) -> None:
        for table in ("status", "stock_quotes", "stock_codes"):
            create_table(db, table)
        self.db = db

    def quote(self, code: str, date: str) -> float:
        """Return the closing price of ``code`` on ``date`` (YYYY-MM-DD)."""
        row = self.db.execute(
            "SELECT close FROM stock_quotes WHERE stock=? AND date=?;", (code, date)
        ).fetchone()
        if row is None:
            raise NotFoundError("não encontrado no bd")
        return float(row[0])

    def code(self, company_name: str, stock_type: str) -> str:
        """Return the trading code of a company for a type such as ON, PN, UNT or CI."""
        row = self.db.execute(
            "SELECT trading_code FROM stock_codes "
            "WHERE company_name LIKE ? AND SpcfctnCd LIKE ?;",
            (f"%{company_name}%", (stock_type + "%").upper()),
        ).fetchone()
        if row is None:
            raise NotFoundError("não encontrado no bd")
        return row[0]

    def save_b3_quotes(self, filename: str | Path) -> None:
        """Read a B3 quotes file, unless it was imported before."""
        if not is_new_file(self.db, filename):
            progress.warning(f"{filename} já processado anteriormente")
            raise ValueError("este arquivo de cotações já foi importado anteriormente")
        self._populate_stock_quotes(filename)
        store_file(self.db, filename)

    def _populate_stock_quotes(self, filename: str | Path) -> None:
        with open(filename, encoding="latin-1", newline="") as fh:
            for raw in fh:
                line = _strip_eol(raw)
                if not line:
                    continue
                try:
                    quote = parse_b3_quote(line)
                except ValueError:
                    continue
                print(quote)

    def save(self, stream: Iterable[str] | str | None, code: str) -> int:
        """Parse ``stream`` and store its quotes or codes; return rows saved.

        The first line tells the format. Quote streams from Yahoo and Alpha
        Vantage carry no stock name, so ``code`` is used for them.
        """
        if self.db is None:
            raise DatabaseUnsetError("bd inválido")
        if stream is None:
            raise ValueError("sem dados")
        lines = iter(io.StringIO(stream) if isinstance(stream, str) else stream)

        provider = detect_provider(_strip_eol(next(lines, "")))
        parsers: dict[Provider, Callable[[str], StockQuote | StockCode]] = {
            Provider.B3_QUOTES: parse_b3_quote,
            Provider.YAHOO: lambda line: parse_yahoo(line, code),
            Provider.ALPHA_VANTAGE: lambda line: parse_alpha_vantage(line, code),
            Provider.B3_CODES: parse_b3_code,
        }
        parse = parsers.get(provider)
        if parse is None:
            return 0
        insert = _INSERT_CODE if provider is Provider.B3_CODES else _INSERT_QUOTE

        count = 0
        for raw in lines:
            try:
                record = parse(_strip_eol(raw))
            except ValueError:
                continue
            try:
                cursor = self.db.execute(insert, _row(record))
            except sqlite3.Error:
                continue
            if cursor.rowcount > 0:
                count += 1
        self.db.commit()
        return count