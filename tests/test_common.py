from datetime import date, datetime

import pytest

from rapina.common import (
    is_date,
    is_url,
    join_url,
    last_business_day,
    last_business_day_of_year,
    months_from_today,
)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2021-04-26", True),
        ("2030-12-31", True),
        ("2021-04-31", False),
        ("20/12/2000", False),
        ("2021-07-32", False),
    ],
)
def test_is_date(text, expected):
    assert is_date(text) is expected


def test_is_date_rejects_out_of_range_year():
    assert is_date("1969-01-01") is False
    assert is_date("2201-01-01") is False


@pytest.mark.parametrize(
    "text, expected",
    [("http://example.com/path", True), ("example.com/path", False)],
)
def test_is_url(text, expected):
    assert is_url(text) is expected


def test_join_url_trims_slashes():
    assert join_url("https://example.com/", "/a", "b") == "https://example.com/a/b"


def test_join_url_without_paths():
    assert join_url("https://example.com/") == "https://example.com/"


@pytest.mark.parametrize(
    "n, today, expected",
    [
        (3, datetime(2009, 11, 10, 23), ["2009-11", "2009-10", "2009-09"]),
        (2, datetime(2009, 3, 31, 23), ["2009-03", "2009-02"]),
    ],
)
def test_months_from_today(n, today, expected):
    assert months_from_today(n, today) == expected


def test_months_from_today_clamps():
    today = date(2009, 11, 10)
    assert months_from_today(0, today) == ["2009-11"]
    assert len(months_from_today(500, today)) == 100


def test_months_from_today_crosses_year():
    assert months_from_today(2, date(2021, 1, 5)) == ["2021-01", "2020-12"]


@pytest.mark.parametrize(
    "year, expected",
    [
        (2024, "2024-12-27"),
        (2020, "2020-12-29"),
        (2017, "2017-12-29"),
        (2016, "2016-12-29"),
    ],
)
def test_last_business_day_of_year(year, expected):
    assert last_business_day_of_year(year, date(2030, 1, 1)) == expected


def test_last_business_day_of_current_year_uses_today():
    today = date(2021, 5, 3)
    assert last_business_day_of_year(2021, today) == last_business_day(1, today)


def test_last_business_day_skips_weekend():
    assert last_business_day(1, date(2021, 5, 3)) == "2021-04-30"
    assert last_business_day(0, date(2021, 5, 1)) == "2021-04-30"