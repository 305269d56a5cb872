"""Domain records for real estate investment funds (FII)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from typing import Any


@dataclass
class Dividend:
    """A dividend ``val`` paid by stock ``code`` with base date ``date``."""

    code: str = ""
    date: str = ""
    val: float = 0.0


def _str(key: str) -> Any:
    return field(default="", metadata={"json": key, "kind": "str"})


@dataclass
class DetailFund:
    """Fund section of the FII details document."""

    acronym: str = _str("acronym")
    trading_name: str = _str("tradingName")
    trading_code: str = _str("tradingCode")
    trading_code_others: str = _str("tradingCodeOthers")
    cnpj: str = _str("cnpj")
    classification: str = _str("classification")
    web_site: str = _str("webSite")
    fund_address: str = _str("fundAddress")
    fund_phone_number_ddd: str = _str("fundPhoneNumberDDD")
    fund_phone_number: str = _str("fundPhoneNumber")
    fund_phone_number_fax: str = _str("fundPhoneNumberFax")
    position_manager: str = _str("positionManager")
    manager_name: str = _str("managerName")
    company_address: str = _str("companyAddress")
    company_phone_number_ddd: str = _str("companyPhoneNumberDDD")
    company_phone_number: str = _str("companyPhoneNumber")
    company_phone_number_fax: str = _str("companyPhoneNumberFax")
    company_email: str = _str("companyEmail")
    company_name: str = _str("companyName")
    quota_count: str = _str("quotaCount")
    quota_date_approved: str = _str("quotaDateApproved")
    codes: list[str] = field(
        default_factory=list, metadata={"json": "codes", "kind": "strlist"}
    )
    codes_other: Any = field(default=None, metadata={"json": "codesOther", "kind": "any"})
    segment: Any = field(default=None, metadata={"json": "segment", "kind": "any"})


@dataclass
class ShareHolder:
    """Shareholder (administrator) section of the FII details document."""

    share_holder_name: str = _str("shareHolderName")
    share_holder_address: str = _str("shareHolderAddress")
    share_holder_phone_number_ddd: str = _str("shareHolderPhoneNumberDDD")
    share_holder_phone_number: str = _str("shareHolderPhoneNumber")
    share_holder_fax_number: str = _str("shareHolderFaxNumber")
    share_holder_email: str = _str("shareHolderEmail")


@dataclass
class FIIDetails:
    """FII details, identified by ``detail_fund.cnpj``."""

    detail_fund: DetailFund = field(default_factory=DetailFund)
    share_holder: ShareHolder = field(default_factory=ShareHolder)


def _lookup(obj: dict, key: str) -> Any:
    if key in obj:
        return obj[key]
    folded = key.lower()
    for name, value in obj.items():
        if isinstance(name, str) and name.lower() == folded:
            return value
    return None


def _build(cls: type, obj: Any) -> Any:
    if obj is None:
        return cls()
    if not isinstance(obj, dict):
        raise ValueError(f"expected an object for {cls.__name__}")
    values = {}
    for fld in fields(cls):
        value = _lookup(obj, fld.metadata["json"])
        if value is None:
            continue
        kind = fld.metadata["kind"]
        if kind == "str" and not isinstance(value, str):
            raise ValueError(f"field {fld.metadata['json']!r} must be a string")
        if kind == "strlist" and not (
            isinstance(value, list) and all(isinstance(v, str) for v in value)
        ):
            raise ValueError(f"field {fld.metadata['json']!r} must be a list of strings")
        values[fld.name] = value
    return cls(**values)


def parse_fii_details(data: str | bytes | dict) -> FIIDetails:
    """Parse a JSON document (text, bytes or decoded dict) into FIIDetails."""
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data).decode("utf-8")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ValueError(f"json unmarshal: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("FII details must be a JSON object")
    return FIIDetails(
        detail_fund=_build(DetailFund, _lookup(data, "detailFund")),
        share_holder=_build(ShareHolder, _lookup(data, "shareHolder")),
    )