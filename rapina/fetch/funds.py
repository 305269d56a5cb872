"""Real estate fund (FII) details and dividends, from the database or from B3."""

from __future__ import annotations

import base64
import sqlite3
import time
import warnings
from collections.abc import Sequence
from datetime import date
from enum import Enum
from urllib.parse import urlencode

import requests
from bs4 import BeautifulSoup

from rapina import progress
from rapina.common import join_url, months_from_today
from rapina.fetch.httpfetch import HTTP_TIMEOUT, get_json
from rapina.models import Dividend, FIIDetails
from rapina.parsers.fiidb import DatabaseUnsetError, FIIParser, NotFoundError

MAX_N = 200

_FNET_URL = "https://fnet.bmfbovespa.com.br/fnet/publico"
_DOCUMENT_URL = _FNET_URL + "/exibirDocumento"
_SEARCH_URL = _FNET_URL + "/pesquisarGerenciadorDocumentosDados"
_DETAILS_URL = "https://sistemaswebb3-listados.b3.com.br/fundsProxy/fundsCall/GetDetailFundSIG/"

_STORAGE_FAILURES = (NotFoundError, DatabaseUnsetError, LookupError, ValueError, sqlite3.Error)


class ReportType(Enum):
    """Kinds of fund reports listed on the documents server."""

    MONTHLY = 1
    DIVIDENDS = 2


def clamp(n: int, low: int, high: int) -> int:
    """Return ``n`` limited to the range [low, high]."""
    if n < low:
        return low
    if n > high:
        return high
    return n


def extract_fields(html: str, numeric_names: bool = True) -> dict[str, str]:
    """Return the name/value pairs laid out in the table cells of ``html``.

    In each row, non-empty cells alternate between a field name and its value.
    Unless ``numeric_names`` is set, cells starting with a digit are not taken
    as names.
    """
    fields: dict[str, str] = {}
    soup = BeautifulSoup(html, "html.parser")
    for row in soup.find_all("tr"):
        name = ""
        for cell in row.find_all("td"):
            value = cell.get_text().strip(" \r\n")
            if not value:
                continue
            if not name:
                if numeric_names or not "0" <= value[0] <= "9":
                    name = value
            else:
                fields[name] = value
                name = ""
    return fields


def _get(url: str, headers: dict[str, str] | None = None) -> requests.Response:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", message="Unverified HTTPS request")
        return requests.get(url, timeout=HTTP_TIMEOUT, verify=False, headers=headers)


def _document(report_id: int) -> str:
    """Return the HTML of one report from the documents server."""
    url = f"{_DOCUMENT_URL}?id={report_id}&cvm=true"
    progress.debug(f"Relatórios: {url}")
    with _get(url, {"Accept": "text/html"}) as response:
        if response.status_code >= 400:
            progress.error_msg(
                f"Request URL: {url} failed with response: {response.text}\n"
                f"Error: {response.status_code} {response.reason}"
            )
            raise requests.HTTPError(
                f"{response.status_code} {response.reason}", response=response
            )
        return response.text


class FIIFetcher:
    """Returns fund data from the database, fetching it from B3 when missing."""

    def __init__(self, db: sqlite3.Connection) -> None:
        self.storage = FIIParser(db)

    def dividends(self, code: str, n: int) -> list[Dividend]:
        """Return the dividends of ``code`` for the latest ``n`` months."""
        try:
            found, months = self._dividends_from_db(code, n)
            if months >= n:
                return found
        except _STORAGE_FAILURES:
            pass

        self._dividends_from_server(code, n)
        # Read back from the database to get the data sorted by date
        found, _ = self._dividends_from_db(code, n)
        return found

    def _dividends_from_db(self, code: str, n: int) -> tuple[list[Dividend], int]:
        found: list[Dividend] = []
        months = 0
        for month_year in months_from_today(n + 2):
            try:
                found.extend(self.storage.dividends(code, month_year))
                months += 1
            except _STORAGE_FAILURES:
                pass
            if months == n:
                break
        if not found:
            raise NotFoundError("dividendos não encontrados")
        return found, months

    def _dividends_from_server(self, code: str, n: int) -> list[Dividend]:
        """Fetch the dividend reports, widening the search while some are missing.

        Reports of follow-on offerings may take the place of dividend reports,
        so more reports are requested until ``n`` dividends are found or no
        new ones show up.
        """
        n = min(n, MAX_N)
        wanted = n
        last_len = -1
        found: list[Dividend] = []
        while len(found) < n and wanted <= MAX_N:
            progress.status(f"Relatórios de dividendos: {code}")
            ids = self._report_ids(ReportType.DIVIDENDS, code, wanted)
            progress.debug(f"Report IDs: {ids}")
            found = self._dividend_report(code, ids)
            progress.debug(f"Dividends ({len(found)}): {found}")
            if last_len == len(found):
                break
            last_len = len(found)
            wanted += 2 * (n - len(found))
        return found

    def _dividend_report(self, code: str, ids: Sequence[int]) -> list[Dividend]:
        fields: dict[str, str] = {}
        found: list[Dividend] = []
        for report_id in ids:
            page = extract_fields(_document(report_id), numeric_names=True)
            for name, value in page.items():
                if "Código de negociação" in name or "Data da informação" in name:
                    progress.debug(f"[{code}] {name:<30} => {value}")
            fields.update(page)
            try:
                dividend = self.storage.save_dividend(dict(fields))
            except (ValueError, sqlite3.Error) as exc:
                progress.error(exc)
                continue
            if dividend.code == code:
                found.append(dividend)
        return found

    def monthly_report_ids(self, code: str, n: int) -> list[int]:
        """Return the ids of the latest ``n`` monthly reports, printing their fields."""
        ids = self._report_ids(ReportType.MONTHLY, code, n)
        self._monthly_report(ids)
        return ids

    def _monthly_report(self, ids: Sequence[int]) -> None:
        for report_id in ids:
            page = extract_fields(_document(report_id), numeric_names=False)
            for name, value in page.items():
                print(f"{name:<30} => {value}")
            progress.status("----------------------")

    def details(self, fii_code: str) -> FIIDetails:
        """Return the fund details, fetching and storing them if not in the database."""
        if len(fii_code) not in (4, 6):
            raise ValueError(f"wrong code '{fii_code}'")

        try:
            stored = self.storage.details(fii_code)
            if stored is not None and stored.detail_fund.cnpj:
                return stored
        except _STORAGE_FAILURES:
            pass

        progress.warning(f"Detalhes do {fii_code} não encontrado no bd. Consultando web...")

        payload = f'{{"typeFund":7,"cnpj":"0","identifierFund":"{fii_code[0:4]}"}}'
        encoded = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")
        url = join_url(_DETAILS_URL, encoded)

        with _get(url, {"Accept-Encoding": "identity"}) as response:
            if response.status_code != 200:
                raise requests.HTTPError(
                    f"{response.status_code} {response.reason}: {url}", response=response
                )
            body = response.content

        try:
            self.storage.save_details(body)
        except (ValueError, sqlite3.Error) as exc:
            raise ValueError(f"armazenando detalhes do FII: {exc}") from exc

        return self.storage.details(fii_code)

    def _report_ids(self, report_type: ReportType, code: str, n: int) -> list[int]:
        """Return the ids of the active reports of ``report_type`` for ``code``."""
        n = clamp(n, 1, MAX_N)
        timestamp = str(time.time_ns() // 1_000_000)
        today = date.today()
        month_index = today.year * 12 + today.month - 1 - n
        start = date(month_index // 12, month_index % 12 + 1, 1)
        cnpj = self.details(code).detail_fund.cnpj

        if report_type is ReportType.MONTHLY:
            doc_type, doc_category, d = "40", "6", "0"
        elif report_type is ReportType.DIVIDENDS:
            doc_type, doc_category, d = "41", "14", "2"
        else:
            raise ValueError("invalid report type")

        params = {
            "tipoFundo": "1",
            "cnpjFundo": cnpj,
            "idTipoDocumento": doc_type,
            "idCategoriaDocumento": doc_category,
            "d": d,
            "idEspecieDocumento": "0",
            "situacao": "A",
            "s": "0",
            # More than n reports, as other codes of the fund may show up
            "l": "200",
            "dataFinal": today.strftime("%d/%m/%Y"),
            "dataInicial": start.strftime("%d/%m/%Y"),
            "o[0][dataReferencia]": "asc",
            "_": timestamp,
        }
        url = _SEARCH_URL + "?" + urlencode(sorted(params.items()))
        progress.debug(f"* Report IDs: {url}")
        report = get_json(url)

        documents = report.get("data") if isinstance(report, dict) else None
        return [
            int(doc["id"])
            for doc in documents or []
            if isinstance(doc, dict) and doc.get("situacaoDocumento") == "A"
        ]