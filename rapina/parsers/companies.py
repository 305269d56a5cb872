"""Company registry kept in the ``companies`` table."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass


@dataclass(frozen=True)
class Company:
    """A company id and name, keyed elsewhere by CNPJ."""

    id: int
    name: str


def load_companies(db: sqlite3.Connection) -> dict[str, Company]:
    """Return the stored companies keyed by CNPJ."""
    rows = db.execute("SELECT ID, CNPJ, NAME FROM companies")
    return {cnpj: Company(company_id, name) for company_id, cnpj, name in rows}


def save_companies(db: sqlite3.Connection, companies: dict[str, Company]) -> None:
    """Insert the companies that are not stored yet."""
    db.executemany(
        "INSERT OR IGNORE INTO companies (ID, CNPJ, NAME) VALUES (?, ?, ?);",
        ((c.id, cnpj, c.name) for cnpj, c in companies.items()),
    )
    db.commit()


def update_companies(companies: dict[str, Company], cnpj: str, name: str) -> None:
    """Add a company to ``companies`` unless its CNPJ is already there."""
    if cnpj not in companies:
        companies[cnpj] = Company(len(companies) + 100, name)