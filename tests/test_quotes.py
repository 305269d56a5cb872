import io
import re
import sqlite3
import zipfile
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from urllib.parse import parse_qsl

import pytest
import requests
import responses

from rapina.fetch.quotes import API, QuoteNotFoundError, StockFetcher, api_url, map_to_str

B3_LINE = (
    "012021010412NSLU11      010FII LOURDES CI  ER       R$  "
    "000000002840000000000284000000000027700000000002809000000000281900000000028029"
    "000000002819000168000000000000001381000000000038793560000000000000009999123100"
    "000010000000000000BRNSLUCTF008272"
)
CODES_HEADER = (
    "RptDt;TckrSymb;Asst;AsstDesc;SgmtNm;MktNm;SctyCtgyNm;XprtnDt;XprtnCd;"
    "TradgStartDt;TradgEndDt"
)
ALPA_LINE = (
    "2021-05-13;ALPA3;ALPA;ALPA;CASH;EQUITY-CASH;SHARES;;;2020-02-17;9999-12-31;;;;;"
    "BRALPAACNOR0;ESVUFR;;;;;;1;BRL;;;;;;;;;;;;;;;;;229;1;2;;;;ON      N1;"
    "ALPARGATAS S.A.;9999-12-31;FUNGIBLE;302010689;NIVEL 1"
)
YAHOO = re.compile(r"https://query1\.finance\.yahoo\.com/v7/finance/download/PETR4\.SA\?.*")
ALPHA = re.compile(r"https://www\.alphavantage\.co/query\?.*")
B3_0305 = "http://bvmf.bmfbovespa.com.br/InstDados/SerHist/COTAHIST_D03052021.ZIP"


@pytest.fixture
def db():
    conn = sqlite3.connect(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def test_api_url_alpha_vantage():
    url = api_url(API.ALPHA_VANTAGE, "placeholder", "PETR4", "2021-05-03")
    base, query = url.split("?", 1)
    pairs = parse_qsl(query)
    assert base == "https://www.alphavantage.co/query"
    assert [k for k, _ in pairs] == sorted(k for k, _ in pairs)
    assert dict(pairs) == {
        "function": "TIME_SERIES_DAILY",
        "symbol": "PETR4.SA",
        "apikey": "placeholder",
        "outputsize": "full",
        "datatype": "csv",
    }


def test_api_url_yahoo_covers_the_day():
    url = api_url(API.YAHOO, "", "PETR4", "2021-05-03")
    base, query = url.split("?", 1)
    params = dict(parse_qsl(query))
    assert base == "https://query1.finance.yahoo.com/v7/finance/download/PETR4.SA"
    assert params["interval"] == "1d"
    assert params["events"] == "history"
    assert params["includeAdjustedClose"] == "true"
    start, end = int(params["period1"]), int(params["period2"])
    assert end - start == 23 * 3600 + 59 * 60 + 59
    brt = timezone(timedelta(hours=-3))
    assert datetime.fromtimestamp(start, brt) == datetime(2021, 5, 3, tzinfo=brt)


@pytest.mark.parametrize("day", ["2021-5-03", "2021-02-30", "03/05/2021"])
def test_api_url_yahoo_invalid_date(day):
    assert api_url(API.YAHOO, "", "PETR4", day) == ""


def test_api_url_no_provider():
    assert api_url(API.NONE, "placeholder", "PETR4", "2021-05-03") == ""


def test_map_to_str():
    assert map_to_str({"Note": "limit", "Info": "x"}) == "Note: limit\nInfo: x\n"


def test_quote_rejects_short_code(db, tmp_path):
    fetcher = StockFetcher(db, "", tmp_path)
    with pytest.raises(ValueError, match="código inválido"):
        fetcher.quote("ABC", "2021-05-03")


def test_quote_rejects_bad_date(db, tmp_path):
    fetcher = StockFetcher(db, "", tmp_path)
    with pytest.raises(ValueError, match="data inválida"):
        fetcher.quote("PETR4", "2021-04-31")


def test_quote_from_database_needs_no_network(mocked, db, tmp_path):
    fetcher = StockFetcher(db, "", tmp_path)
    fetcher.store.save(
        "timestamp,open,high,low,close,volume\n2021-05-03,1,2,0.5,1.5,100\n", "PETR4"
    )
    assert fetcher.quote("PETR4", "2021-05-03") == 1.5
    assert len(mocked.calls) == 0


def test_quote_from_b3_archive(mocked, db, tmp_path):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        content = "00COTAHIST.2021BOVESPA 20210104\n" + B3_LINE + "\n"
        archive.writestr("COTAHIST_D04012021.TXT", content.encode("latin-1"))
    mocked.add(
        responses.GET,
        "http://bvmf.bmfbovespa.com.br/InstDados/SerHist/COTAHIST_D04012021.ZIP",
        body=buf.getvalue(),
    )
    data_dir = tmp_path / "data"
    fetcher = StockFetcher(db, "", data_dir)
    assert fetcher.quote("NSLU11", "2021-01-04") == 281.9
    assert list(data_dir.iterdir()) == []


def test_quote_falls_back_to_yahoo(mocked, db, tmp_path):
    mocked.add(responses.GET, B3_0305, status=404)
    mocked.add(
        responses.GET,
        YAHOO,
        body="Date,Open,High,Low,Close,Adj Close,Volume\n2021-05-03,10.0,11.0,9.5,10.5,10.5,1000\n",
        content_type="text/csv",
    )
    fetcher = StockFetcher(db, "", tmp_path)
    assert fetcher.quote("PETR4", "2021-05-03") == 10.5


def test_quote_not_found_without_api_key(mocked, db, tmp_path):
    mocked.add(responses.GET, B3_0305, status=404)
    mocked.add(responses.GET, YAHOO, json={"chart": {"error": "no data"}})
    fetcher = StockFetcher(db, "", tmp_path)
    with pytest.raises(QuoteNotFoundError, match=r"\(B3 e Yahoo\)"):
        fetcher.quote("PETR4", "2021-05-03")


def test_quote_falls_back_to_alpha_vantage(mocked, db, tmp_path):
    mocked.add(responses.GET, B3_0305, status=404)
    mocked.add(responses.GET, YAHOO, status=404)
    mocked.add(
        responses.GET,
        ALPHA,
        body="timestamp,open,high,low,close,volume\n2021-05-03,20,21,19,20.5,500\n",
        content_type="text/csv",
    )
    fetcher = StockFetcher(db, "placeholder", tmp_path)
    assert fetcher.quote("PETR4", "2021-05-03") == 20.5


def test_alpha_vantage_is_fetched_once_per_code(mocked, db, tmp_path):
    mocked.add(responses.GET, re.compile(r"http://bvmf\.bmfbovespa\.com\.br/.*"), status=404)
    mocked.add(responses.GET, YAHOO, status=404)
    mocked.add(
        responses.GET,
        ALPHA,
        body="timestamp,open,high,low,close,volume\n2021-05-03,20,21,19,20.5,500\n",
        content_type="text/csv",
    )
    fetcher = StockFetcher(db, "placeholder", tmp_path)
    assert fetcher.quote("PETR4", "2021-05-03") == 20.5
    with pytest.raises(QuoteNotFoundError, match="Alpha Vantage"):
        fetcher.quote("PETR4", "2021-05-04")
    alpha_calls = [c for c in mocked.calls if "alphavantage" in c.request.url]
    assert len(alpha_calls) == 1


def test_code_from_database(db, tmp_path):
    fetcher = StockFetcher(db, "", tmp_path)
    fetcher.store.save(CODES_HEADER + "\n" + ALPA_LINE + "\n", "")
    assert fetcher.code("ALPARGATAS", "ON") == "ALPA3"


def test_code_updates_stock_codes(mocked, db, tmp_path):
    mocked.add(
        responses.GET,
        re.compile(r"https://arquivos\.b3\.com\.br/api/download/requestname.*"),
        json={"token": "token"},
    )
    mocked.add(
        responses.GET,
        re.compile(r"https://arquivos\.b3\.com\.br/api/download/\?token=token"),
        body=(CODES_HEADER + "\n" + ALPA_LINE + "\n").encode("latin-1"),
    )
    data_dir = tmp_path / "data"
    fetcher = StockFetcher(db, "", data_dir)
    assert fetcher.code("ALPARGATAS", "ON") == "ALPA3"
    assert not (data_dir / "codes.csv").exists()


@patch("time.sleep")
def test_update_stock_codes_gives_up_after_three_tries(sleep, mocked, db, tmp_path):
    mocked.add(
        responses.GET,
        re.compile(r"https://arquivos\.b3\.com\.br/api/download/requestname.*"),
        json={"token": "token"},
    )
    mocked.add(
        responses.GET,
        re.compile(r"https://arquivos\.b3\.com\.br/api/download/\?token=token"),
        status=500,
    )
    fetcher = StockFetcher(db, "", tmp_path)
    with pytest.raises(requests.HTTPError):
        fetcher.update_stock_codes()
    assert len(mocked.calls) == 4
    assert sleep.call_count == 2