"""Stock quotes and trading codes, fetched from B3, Yahoo or Alpha Vantage."""

from __future__ import annotations

import os
import re
import sqlite3
import time
import warnings
from collections.abc import Callable
from datetime import date as _date
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import requests

from rapina import progress
from rapina.common import is_date, last_business_day
from rapina.fetch.cvm import download_file, fetch_files, files_cleanup
from rapina.fetch.httpfetch import HTTP_TIMEOUT, HTTPFetch
from rapina.parsers.fiidb import NotFoundError
from rapina.parsers.stock import StockParser

_B3_QUOTES_URL = "http://bvmf.bmfbovespa.com.br/InstDados/SerHist/COTAHIST_D{}.ZIP"
_B3_CODES_NAME_URL = (
    "https://arquivos.b3.com.br/api/download/requestname"
    "?fileName=InstrumentsConsolidated&date="
)
_B3_CODES_DOWNLOAD_URL = "https://arquivos.b3.com.br/api/download/?token={}"
_BRT = timezone(timedelta(hours=-3))
_ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_FAILURES = (OSError, ValueError, LookupError, sqlite3.Error)


class API(Enum):
    """Quote API providers."""

    NONE = 0
    ALPHA_VANTAGE = 1
    YAHOO = 2


class QuoteNotFoundError(LookupError):
    """Raised when no provider has the requested quote."""


class StockFetcher:
    """Returns stock quotes and codes, fetching them when not stored yet."""

    def __init__(
        self, db: sqlite3.Connection, api_key: str = "", data_dir: str | Path = ".data"
    ) -> None:
        self.store = StockParser(db)
        self.api_key = api_key
        self.data_dir = os.fspath(data_dir)
        # Avoids repeated downloads from Alpha Vantage
        self._cache: dict[str, API] = {}

    def quote(self, code: str, date: str) -> float:
        """Return the closing price of ``code`` on ``date`` (YYYY-MM-DD)."""
        if len(code) < len("CODE3"):
            raise ValueError(f"código inválido: {code!r}")
        if not is_date(date):
            raise ValueError(f"data inválida: {date!r}")

        try:
            return self.store.quote(code, date)
        except NotFoundError:
            pass

        loaders: list[Callable[[], None]] = [
            lambda: self._quote_from_b3(date),
            lambda: self._quote_from_api(code, date, API.YAHOO),
        ]
        if self.api_key:
            loaders.append(lambda: self._quote_from_api(code, date, API.ALPHA_VANTAGE))
        for load in loaders:
            try:
                load()
                return self.store.quote(code, date)
            except _FAILURES:
                continue

        if self.api_key:
            raise QuoteNotFoundError(
                "cotação não encontrada em nenhum provedor (B3, Yahoo e Alpha Vantage)"
            )
        raise QuoteNotFoundError("cotação não encontrada em nenhum provedor (B3 e Yahoo)")

    def _quote_from_b3(self, date: str) -> None:
        """Download and store the quotes of all companies on ``date``."""
        if len(date) != len("2021-05-03"):
            raise ValueError(f"data com formato inválido: {date}")
        conv = date[8:10] + date[5:7] + date[0:4]
        zip_path = os.path.join(self.data_dir, f"COTAHIST_D{conv}.ZIP")
        files = fetch_files(_B3_QUOTES_URL.format(conv), self.data_dir, zip_path, verbose=False)
        try:
            for name in files:
                with open(name, encoding="latin-1", newline="") as fh:
                    self.store.save(fh, "")
        finally:
            files_cleanup(files)

    def _quote_from_api(self, code: str, date: str, provider: API) -> None:
        """Download and store the daily quote history of ``code``."""
        if provider is API.ALPHA_VANTAGE and self._cache.get(code) is API.ALPHA_VANTAGE:
            return

        url = api_url(provider, self.api_key, code, date)
        if not url:
            raise ValueError("URL do API server")
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", message="Unverified HTTPS request")
            response = requests.get(
                url,
                timeout=HTTP_TIMEOUT,
                verify=False,
                headers={"Accept-Encoding": "identity"},
            )
        with response:
            if response.status_code != 200:
                raise requests.HTTPError(
                    f"{response.status_code} {response.reason}", response=response
                )
            self._cache[code] = provider

            # A JSON body is an error response
            if response.headers.get("Content-Type") == "application/json":
                data = response.json()
                raise ValueError(map_to_str(data) if isinstance(data, dict) else str(data))

            progress.running("Armazendo cotações no banco de dados...")
            try:
                self.store.save(response.text, code)
            except _FAILURES as exc:
                progress.run_fail()
                raise ValueError(f"armazenando cotações de {code}: {exc}") from exc
            progress.run_ok()

    def code(self, company_name: str, stock_type: str) -> str:
        """Return the trading code of a company, refreshing the codes if needed."""
        try:
            return self.store.code(company_name, stock_type)
        except NotFoundError:
            pass
        self.update_stock_codes()
        return self.store.code(company_name, stock_type)

    def update_stock_codes(self) -> None:
        """Download the latest B3 instruments file and store its trading codes."""
        info = HTTPFetch().json(_B3_CODES_NAME_URL + last_business_day(2))
        token = info.get("token", "") if isinstance(info, dict) else ""

        path = os.path.join(self.data_dir, "codes.csv")
        url = _B3_CODES_DOWNLOAD_URL.format(token)
        tries = 3
        for attempt in range(1, tries + 1):
            progress.download("Download do arquivo de códigos")
            try:
                download_file(url, path, False)
                break
            except OSError:
                if attempt == tries:
                    raise
                time.sleep(2)

        try:
            with open(path, encoding="latin-1", newline="") as fh:
                self.store.save(fh, "")
        finally:
            files_cleanup([path])


def _yahoo_period(day: str, hour: int, minute: int, second: int) -> int | None:
    if not _ISO_DATE.fullmatch(day):
        return None
    try:
        parsed = _date.fromisoformat(day)
    except ValueError:
        return None
    moment = datetime(parsed.year, parsed.month, parsed.day, hour, minute, second, tzinfo=_BRT)
    return int(moment.timestamp())


def api_url(provider: API, api_key: str, code: str, date: str) -> str:
    """Return the quote download URL of ``provider``, or "" if none applies."""
    if provider is API.ALPHA_VANTAGE:
        params = {
            "function": "TIME_SERIES_DAILY",
            "symbol": code + ".SA",
            "apikey": api_key,
            "outputsize": "full",
            "datatype": "csv",
        }
        return "https://www.alphavantage.co/query?" + urlencode(sorted(params.items()))

    if provider is API.YAHOO:
        start = _yahoo_period(date, 0, 0, 0)
        end = _yahoo_period(date, 23, 59, 59)
        if start is None or end is None:
            return ""
        params = {
            "period1": str(start),
            "period2": str(end),
            "interval": "1d",
            "events": "history",
            "includeAdjustedClose": "true",
        }
        return (
            f"https://query1.finance.yahoo.com/v7/finance/download/{code}.SA?"
            + urlencode(sorted(params.items()))
        )

    return ""


def map_to_str(data: dict[str, Any]) -> str:
    """Render a mapping as "key: value" lines."""
    return "".join(f"{key}: {value}\n" for key, value in data.items())