"""SQLite table definitions, versions and helpers."""

from __future__ import annotations

import sqlite3

CURRENT_DB_VERSION = 210514
CURRENT_FII_DB_VERSION = 210426
CURRENT_STOCK_CODES_VERSION = 210518
CURRENT_STOCK_QUOTES_VERSION = 210305

_FINANCIAL_COLUMNS = """
    (
        "ID" PRIMARY KEY,
        "ID_CIA" integer,
        "CODE" integer,
        "YEAR" string,
        "DATA_TYPE" string,

        "VERSAO" integer,
        "MOEDA" varchar(4),
        "ESCALA_MOEDA" varchar(7),
        "DT_FIM_EXERC" integer,
        "CD_CONTA" varchar(18),
        "DS_CONTA" varchar(100),
        "VL_CONTA" real
    );"""

CREATE_TABLE: dict[str, str] = {
    "dfp": "CREATE TABLE IF NOT EXISTS dfp" + _FINANCIAL_COLUMNS,
    "itr": "CREATE TABLE IF NOT EXISTS itr" + _FINANCIAL_COLUMNS,
    "fre": """CREATE TABLE IF NOT EXISTS fre
    (
        "ID" PRIMARY KEY,
        "ID_CIA" integer,
        "YEAR" string,

        "Versao" integer,
        "Quantidade_Total_Acoes_Circulacao" integer,
        "Percentual_Total_Acoes_Circulacao" real
    );""",
    "codes": """CREATE TABLE IF NOT EXISTS codes
    (
        "CODE" INTEGER NOT NULL PRIMARY KEY,
        "NAME" varchar(100)
    );""",
    "companies": """CREATE TABLE IF NOT EXISTS companies
    (
        "ID" INTEGER NOT NULL PRIMARY KEY,
        "CNPJ" varchar(20),
        "NAME" varchar(100)
    );""",
    "stock_codes": """CREATE TABLE IF NOT EXISTS stock_codes
    (
        "trading_code"  VARCHAR NOT NULL PRIMARY KEY,
        "company_name"  VARCHAR,
        "SpcfctnCd"     VARCHAR,
        "CorpGovnLvlNm" VARCHAR
    );""",
    "md5": """CREATE TABLE IF NOT EXISTS md5
    (
        md5 NOT NULL PRIMARY KEY
    );""",
    "fii_details": """CREATE TABLE IF NOT EXISTS fii_details
    (
        cnpj TEXT NOT NULL PRIMARY KEY,
        acronym varchar(4),
        trading_code varchar(6),
        json varchar
    );""",
    "stock_quotes": """CREATE TABLE IF NOT EXISTS stock_quotes
    (
        stock varchar(12) NOT NULL,
        date   varchar(10) NOT NULL,
        open   real,
        high   real,
        low    real,
        close  real,
        volume real
    );""",
    "fii_dividends": """CREATE TABLE IF NOT EXISTS fii_dividends
    (
        trading_code varchar(12) NOT NULL,
        base_date varchar(10) NOT NULL,
        payment_date varchar(10),
        value real
    );""",
    "status": """CREATE TABLE IF NOT EXISTS status
    (
        table_name TEXT NOT NULL PRIMARY KEY,
        version integer
    );""",
}

_TABLE_FOR_TYPE: dict[str, str] = {
    **dict.fromkeys(("dfp", "BPA", "BPP", "DRE", "DFC_MD", "DFC_MI", "DVA"), "dfp"),
    **dict.fromkeys(
        ("itr", "BPA_ITR", "BPP_ITR", "DRE_ITR", "DFC_MD_ITR", "DFC_MI_ITR", "DVA_ITR"),
        "itr",
    ),
    "fre": "fre",
    "FRE": "fre",
    "codes": "codes",
    "CODES": "codes",
    "md5": "md5",
    "MD5": "md5",
    "status": "status",
    "STATUS": "status",
    "companies": "companies",
    "COMPANIES": "companies",
    "fii_details": "fii_details",
    "fii_dividends": "fii_dividends",
    "stock_codes": "stock_codes",
    "stock_quotes": "stock_quotes",
}

_VERSIONS: dict[str, int] = {
    "fii_details": CURRENT_FII_DB_VERSION,
    "fii_dividends": CURRENT_FII_DB_VERSION,
    "stock_codes": CURRENT_STOCK_CODES_VERSION,
    "stock_quotes": CURRENT_STOCK_QUOTES_VERSION,
}

_INDEXES: dict[str, tuple[str, ...]] = {
    "dfp": (
        "CREATE INDEX IF NOT EXISTS dfp_metrics ON dfp (CODE, ID_CIA, YEAR, VL_CONTA);",
        "CREATE INDEX IF NOT EXISTS dfp_year_ver ON dfp (ID_CIA, YEAR, VERSAO);",
    ),
    "itr": (
        "CREATE INDEX IF NOT EXISTS itr_metrics ON itr (CODE, ID_CIA, YEAR, VL_CONTA);",
        "CREATE INDEX IF NOT EXISTS itr_quarter_ver ON itr (ID_CIA, DT_FIM_EXERC, VERSAO);",
    ),
    "stock_quotes": (
        "CREATE UNIQUE INDEX IF NOT EXISTS stock_quotes_stockdate ON stock_quotes (stock, date);",
    ),
    "fii_dividends": (
        "CREATE UNIQUE INDEX IF NOT EXISTS fii_dividends_pk ON fii_dividends (trading_code, base_date);",
    ),
}


class UnknownDataTypeError(ValueError):
    """Raised for a data type that maps to no table."""


def all_tables() -> list[str]:
    """Return the names of every known table."""
    return list(CREATE_TABLE)


def what_table(data_type: str) -> str:
    """Return the table that stores ``data_type``."""
    try:
        return _TABLE_FOR_TYPE[data_type]
    except KeyError:
        raise UnknownDataTypeError(f"tipo de informação inexistente: {data_type}") from None


def create_indexes(db: sqlite3.Connection, table: str) -> None:
    """Create the indexes that belong to ``table``."""
    for statement in _INDEXES.get(table, ()):
        db.execute(statement)


def create_table(db: sqlite3.Connection, data_type: str) -> None:
    """Create the table for ``data_type`` if needed and record its version."""
    table = what_table(data_type)
    db.execute(CREATE_TABLE[table])
    create_indexes(db, table)
    if data_type.upper() == "STATUS":
        db.commit()
        return
    version = _VERSIONS.get(data_type, CURRENT_DB_VERSION)
    db.execute(
        "INSERT OR REPLACE INTO status (table_name, version) VALUES (?, ?)",
        (table, version),
    )
    db.commit()


def create_all_tables(db: sqlite3.Connection) -> None:
    """Create the status table and then every other table."""
    create_table(db, "status")
    for table in all_tables():
        if table != "status":
            create_table(db, table)


def db_version(db: sqlite3.Connection, data_type: str) -> tuple[int, str]:
    """Return (stored version, table name); version is 0 when unknown."""
    try:
        table = what_table(data_type)
    except UnknownDataTypeError:
        return 0, ""
    try:
        row = db.execute(
            "SELECT version FROM status WHERE table_name = ?", (table,)
        ).fetchone()
    except sqlite3.Error:
        return 0, table
    if row is None or row[0] is None:
        return 0, table
    return int(row[0]), table


def wipe_table(db: sqlite3.Connection, data_type: str) -> None:
    """Drop the table for ``data_type``."""
    table = what_table(data_type)
    db.execute("DROP TABLE IF EXISTS " + table)
    db.commit()


def has_table(db: sqlite3.Connection, table_name: str) -> bool:
    """Return True if a table named ``table_name`` exists."""
    try:
        row = db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;",
            (table_name,),
        ).fetchone()
    except sqlite3.Error:
        return False
    return row is not None and row[0] == table_name