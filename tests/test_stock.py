import sqlite3

import pytest

from rapina.parsers.fiidb import NotFoundError
from rapina.parsers.stock import (
    Provider,
    StockCode,
    StockParser,
    StockQuote,
    detect_provider,
    parse_alpha_vantage,
    parse_b3_code,
    parse_b3_quote,
    parse_yahoo,
)
from rapina.parsers.tables import create_table

B3_LINES = [
    "012021010412NSLU11      010FII LOURDES CI  ER       R$  000000002840000000000284000000000027700000000002809000000000281900000000028029000000002819000168000000000000001381000000000038793560000000000000009999123100000010000000000000BRNSLUCTF008272",
    "012021010412NVHO11      010FII NOVOHORICI  ER       R$  000000000154000000000015900000000001535000000000153700000000015400000000001536000000000154000092000000000000006200000000000009533490000000000000009999123100000010000000000000BRNVHOCTF003186",
    "012021010412ONEF11      010FII THE ONE CI           R$  000000001478800000000148000000000014717000000001478900000000147360000000014735000000001478700035000000000000002546000000000037652878000000000000009999123100000010000000000000BRONEFCTF003200",
]

B3_WANT = [
    StockQuote("NSLU11", "2021-01-04", 284, 284, 277, 281.9, 387935.6),
    StockQuote("NVHO11", "2021-01-04", 15.4, 15.9, 15.35, 15.4, 95334.9),
    StockQuote("ONEF11", "2021-01-04", 147.88, 148, 147.17, 147.36, 376528.78),
]

FUNDS_LINE = "2021-05-13;ALMI11;ALMI;ALMI;CASH;EQUITY-CASH;FUNDS;;;2018-09-24;9999-12-31;;;;;BRALMICTF003;CICIRU;;;;;;1;BRL;;;;;;;;;;;;;;;;;250;1;2;;;;CI;FDO INV IMOB - FII TORRE ALMIRANTE;9999-12-31;FUNGIBLE;111177;"
UNIT_LINE = "2021-05-13;ALUP11;ALUP;ALUP;CASH;EQUITY-CASH;UNIT;;;2021-04-28;9999-12-31;;;;;BRALUPCDAM15;EMXXXR;;;;;;1;BRL;;;;;;;;;;;;;;;;;112;1;2;;;;UNT     N2;ALUPAR INVESTIMENTO S/A;9999-12-31;FUNGIBLE;136606616;NIVEL 2"
SHARES_LINE = "2021-05-13;ALPA3;ALPA;ALPA;CASH;EQUITY-CASH;SHARES;;;2020-02-17;9999-12-31;;;;;BRALPAACNOR0;ESVUFR;;;;;;1;BRL;;;;;;;;;;;;;;;;;229;1;2;;;;ON      N1;ALPARGATAS S.A.;9999-12-31;FUNGIBLE;302010689;NIVEL 1"
ODD_LOT_LINE = "2021-05-13;ANIM3F;ANIM;ANIM;ODD LOT;EQUITY-CASH;SHARES;;;2021-02-19;9999-12-31;;;;;BRANIMACNOR6;ESVUFR;;;;;;1;BRL;;;;;;;;;;;;;;;;;107;1;2;;;;ON      NM;ANIMA HOLDING S.A.;9999-12-31;FUNGIBLE;403868805;NOVO MERCADO"
BDR_LINE = "2021-05-13;AMZO34;AMZO;AMZO;CASH;EQUITY-CASH;BDR;;;2020-11-09;9999-12-31;;;;;BRAMZOBDR002;EDSXPR;;;;;;1;BRL;;;;;;;;;;;;;;;;;102;1;2;;;;DRN;AMAZON.COM, INC;9999-12-31;FUNGIBLE;79059664651;"

CODES_HEADER = "RptDt;TckrSymb;Asst;AsstDesc;SgmtNm;MktNm;SctyCtgyNm;XprtnDt;XprtnCd;TradgStartDt"


@pytest.fixture
def parser():
    db = sqlite3.connect(":memory:")
    yield StockParser(db)
    db.close()


@pytest.mark.parametrize("line,want", list(zip(B3_LINES, B3_WANT)))
def test_parse_b3_quote(line, want):
    assert parse_b3_quote(line) == want


def test_parse_b3_quote_rejects_wrong_length():
    with pytest.raises(ValueError):
        parse_b3_quote(B3_LINES[0][:-1])


def test_parse_b3_quote_rejects_other_record_type():
    with pytest.raises(ValueError, match="registro 00"):
        parse_b3_quote("00" + B3_LINES[0][2:])


def test_parse_b3_quote_rejects_other_bdi():
    line = B3_LINES[0][:10] + "96" + B3_LINES[0][12:]
    with pytest.raises(ValueError, match="BDI 96"):
        parse_b3_quote(line)


def test_parse_b3_quote_rejects_other_market():
    line = B3_LINES[0][:24] + "070" + B3_LINES[0][27:]
    with pytest.raises(ValueError, match="070"):
        parse_b3_quote(line)


@pytest.mark.parametrize(
    "line,want",
    [
        (
            FUNDS_LINE,
            StockCode("ALMI11", "CASH", "FUNDS", "FDO INV IMOB - FII TORRE ALMIRANTE", "CI", ""),
        ),
        (
            UNIT_LINE,
            StockCode("ALUP11", "CASH", "UNIT", "ALUPAR INVESTIMENTO S/A", "UNT     N2", "NIVEL 2"),
        ),
        (
            SHARES_LINE,
            StockCode("ALPA3", "CASH", "SHARES", "ALPARGATAS S.A.", "ON      N1", "NIVEL 1"),
        ),
    ],
)
def test_parse_b3_code(line, want):
    assert parse_b3_code(line) == want


@pytest.mark.parametrize("line", [ODD_LOT_LINE, BDR_LINE, "a;b;c"])
def test_parse_b3_code_rejects(line):
    with pytest.raises(ValueError):
        parse_b3_code(line)


@pytest.mark.parametrize(
    "header,want",
    [
        ("timestamp,open,high,low,close,volume", Provider.ALPHA_VANTAGE),
        ("Date,Open,High,Low,Close,Adj Close,Volume", Provider.YAHOO),
        ("00COTAHIST.2021BOVESPA 20210104", Provider.B3_QUOTES),
        (CODES_HEADER, Provider.B3_CODES),
        ("something else", Provider.NONE),
    ],
)
def test_detect_provider(header, want):
    assert detect_provider(header) is want


def test_parse_alpha_vantage():
    got = parse_alpha_vantage("2021-05-03,10.0,11.5,9.5,10.5,1000", "PETR4")
    assert got == StockQuote("PETR4", "2021-05-03", 10.0, 11.5, 9.5, 10.5, 1000.0)


def test_parse_alpha_vantage_rejects_bad_field():
    with pytest.raises(ValueError):
        parse_alpha_vantage("2021-05-03,x,11.5,9.5,10.5,1000", "PETR4")


def test_parse_yahoo_uses_last_column_as_volume():
    got = parse_yahoo("2021-04-29,10,11,9,10.25,10.2,500", "HGLG11")
    assert got == StockQuote("HGLG11", "2021-04-29", 10, 11, 9, 10.25, 500)


def test_parse_yahoo_rejects_null_and_short_lines():
    with pytest.raises(ValueError):
        parse_yahoo("2021-04-29,null,null,null,null,null,null", "HGLG11")
    with pytest.raises(ValueError):
        parse_yahoo("2021-04-29,10,11", "HGLG11")


def test_save_alpha_vantage_and_quote(parser):
    stream = (
        "timestamp,open,high,low,close,volume\n"
        "2021-05-03,10.0,11.0,9.5,10.5,1000\n"
        "2021-05-04,bad,1,1,1,1\n"
    )
    assert parser.save(stream, "PETR4") == 1
    assert parser.quote("PETR4", "2021-05-03") == 10.5
    assert parser.save(stream, "PETR4") == 0


def test_save_yahoo_stores_volume(parser):
    stream = ["Date,Open,High,Low,Close,Adj Close,Volume\r\n", "2021-04-29,10,11,9,10.25,10.2,500\r\n"]
    assert parser.save(stream, "HGLG11") == 1
    row = parser.db.execute(
        "SELECT close, volume FROM stock_quotes WHERE stock='HGLG11'"
    ).fetchone()
    assert row == (10.25, 500.0)


def test_save_b3_quotes_stream(parser):
    stream = "00COTAHIST.2021BOVESPA 20210104\n" + "\n".join(B3_LINES) + "\n"
    assert parser.save(stream, "") == 3
    assert parser.quote("ONEF11", "2021-01-04") == 147.36


def test_quote_not_found(parser):
    with pytest.raises(NotFoundError):
        parser.quote("XXXX3", "2021-01-04")


def test_save_codes_and_code_lookup(parser):
    stream = "\n".join([CODES_HEADER, SHARES_LINE, BDR_LINE, FUNDS_LINE])
    assert parser.save(stream, "") == 2
    assert parser.code("ALPARGATAS", "on") == "ALPA3"
    assert parser.code("TORRE ALMIRANTE", "CI") == "ALMI11"
    with pytest.raises(NotFoundError):
        parser.code("ALPARGATAS", "PN")


def test_save_unknown_stream_stores_nothing(parser):
    assert parser.save("unknown header\n2021-05-03,1,1,1,1,1\n", "PETR4") == 0
    assert parser.db.execute("SELECT COUNT(*) FROM stock_quotes").fetchone()[0] == 0


def test_save_without_stream(parser):
    with pytest.raises(ValueError, match="sem dados"):
        parser.save(None, "PETR4")


def test_save_b3_quotes_file_only_once(parser, tmp_path, capsys):
    create_table(parser.db, "md5")
    path = tmp_path / "COTAHIST_D04012021.TXT"
    path.write_text("00COTAHIST.2021\n" + "\n".join(B3_LINES) + "\n", encoding="latin-1")

    parser.save_b3_quotes(path)
    out = capsys.readouterr().out
    assert "NSLU11" in out and "ONEF11" in out

    with pytest.raises(ValueError, match="importado anteriormente"):
        parser.save_b3_quotes(path)