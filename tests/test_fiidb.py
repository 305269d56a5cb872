import json
import sqlite3

import pytest

from rapina.models import FIIDetails
from rapina.parsers.fiidb import (
    DatabaseUnsetError,
    FIIParser,
    NotFoundError,
    comma_to_dot,
    fix_date,
    map_finder,
    trim_fii_details,
)


@pytest.fixture
def parser():
    conn = sqlite3.connect(":memory:")
    yield FIIParser(conn)
    conn.close()


def _details_json(cnpj=" 11111111000111 ", trading_code="ABCD11 ABCD12"):
    return json.dumps(
        {
            "detailFund": {
                "acronym": "ABCD ",
                "tradingName": "FII ABCD",
                "tradingCode": trading_code,
                "cnpj": cnpj,
                "codes": ["ABCD11"],
            },
            "shareHolder": {"shareHolderName": "ADMIN"},
        }
    ).encode("utf-8")


@pytest.mark.parametrize("val, want", [("1.230,56", 1230.56), ("shouldbeanum", 0)])
def test_comma_to_dot(val, want):
    assert comma_to_dot(val) == want


@pytest.mark.parametrize(
    "date, want", [("01/02/2021", "2021-02-01"), ("wrong/date", "wrong/date")]
)
def test_fix_date(date, want):
    assert fix_date(date) == want


def test_map_finder():
    mapping = {"Data-base (último dia de negociação)": "01/02/2021", "Outro": "x"}
    assert map_finder("Data-base", mapping) == "01/02/2021"
    assert map_finder("Inexistente", mapping) == ""


def test_trim_fii_details():
    details = FIIDetails()
    details.detail_fund.cnpj = " 123 "
    details.detail_fund.acronym = " ABCD "
    details.detail_fund.trading_code = " ABCD11 ABCD12 "
    trim_fii_details(details)
    assert (details.detail_fund.cnpj, details.detail_fund.acronym) == ("123", "ABCD")
    assert details.detail_fund.trading_code == "ABCD11"


def test_save_and_read_details(parser):
    parser.save_details(_details_json())
    by_acronym = parser.details("ABCD")
    by_code = parser.details("ABCD11")
    assert by_acronym == by_code
    assert by_acronym.detail_fund.trading_name == "FII ABCD"
    assert by_acronym.share_holder.share_holder_name == "ADMIN"


def test_select_fii_details(parser):
    parser.save_details(_details_json())
    got = parser.select_fii_details("ABCD11")
    assert got.detail_fund.cnpj == "11111111000111"
    assert got.detail_fund.acronym == "ABCD"
    assert got.detail_fund.trading_code == "ABCD11"


def test_save_details_without_cnpj(parser):
    with pytest.raises(ValueError):
        parser.save_details(_details_json(cnpj="  "))


def test_save_details_bad_json(parser):
    with pytest.raises(ValueError):
        parser.save_details(b"{not json")


def test_details_invalid_code(parser):
    with pytest.raises(ValueError):
        parser.details("ABC")


def test_details_not_found(parser):
    with pytest.raises(NotFoundError):
        parser.details("ZZZZ")


def test_details_db_unset(parser):
    parser.db = None
    with pytest.raises(DatabaseUnsetError):
        parser.details("ABCD")


def test_save_dividend_and_read_back(parser):
    stream = {
        "Código de negociação da cota": "ABCD11",
        "Data-base": "01/02/2021",
        "Data do pagamento": "12/02/2021",
        "Valor do provento": "1.230,56",
    }
    dividend = parser.save_dividend(stream)
    assert (dividend.code, dividend.date, dividend.val) == ("ABCD11", "2021-02-01", 1230.56)
    assert parser.dividends("ABCD11", "2021-02") == [dividend]


def test_dividends_not_found(parser):
    with pytest.raises(NotFoundError):
        parser.dividends("ABCD11", "2021-02")