"""Company classification by sector, subsector and segment."""

from __future__ import annotations

import hashlib
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

import requests
import yaml
from bs4 import BeautifulSoup, UnicodeDammit

from rapina.parsers.fuzzy import fuzzy_match

_BASE_URL = "http://bvmf.bmfbovespa.com.br/cias-listadas/empresas-listadas/"
_SECTORS_URL = _BASE_URL + "BuscaEmpresaListada.aspx?opcao=1&indiceAba=1&Idioma=pt-br"
_CACHE_DIR = Path(".data") / "cache"
_TIMEOUT = 30.0
_SPINNER = ("/", "-", "\\", "|", "-", "\\")

_YAML_INVALID_CHARS = re.compile(r"[^/\t\n\f\r .A-zÀ-ú0-9&():-]")


class FileNotUpdatedError(Exception):
    """Raised when the user declines to overwrite the sectors file."""


@dataclass
class Segment:
    """Companies from the same sector, subsector and segment."""

    name: str = ""
    companies: list[str] = field(default_factory=list)


@dataclass
class Subsector:
    """A subsector, divided into segments."""

    name: str = ""
    segments: list[Segment] = field(default_factory=list)


@dataclass
class Sector:
    """A sector, divided into subsectors."""

    name: str = ""
    subsectors: list[Subsector] = field(default_factory=list)


def remove_yaml_invalid_chars(text: str) -> str:
    """Remove characters that are not safe in a plain YAML scalar."""
    return _YAML_INVALID_CHARS.sub("", text)


def overwrite_prompt(filename: str | Path) -> bool:
    """Ask before overwriting an existing file; True if it may be written."""
    if not Path(filename).exists():
        return True
    print(f'\n[?] Deseja sobrescrever o arquivo "{filename}"? (s/N) ', end="", flush=True)
    answer = sys.stdin.readline()
    return answer.lower() in ("s\n", "sim\n", "s\r\n", "sim\r\n")


def _decode(response: requests.Response) -> str:
    content_type = response.headers.get("Content-Type", "")
    match = re.search(r"charset=([\w.:-]+)", content_type, re.IGNORECASE)
    if match:
        try:
            return response.content.decode(match.group(1), "replace")
        except LookupError:
            pass
    return UnicodeDammit(response.content, is_html=True).unicode_markup or ""


def _fetch(url: str) -> str:
    """GET ``url``, keeping successful pages in the on-disk cache."""
    key = hashlib.sha1(url.encode("utf-8")).hexdigest()
    cached = _CACHE_DIR / key[:2] / key
    if cached.is_file():
        return cached.read_text(encoding="utf-8")
    response = requests.get(url, timeout=_TIMEOUT)
    response.raise_for_status()
    text = _decode(response)
    cached.parent.mkdir(parents=True, exist_ok=True)
    cached.write_text(text, encoding="utf-8")
    return text


def _fill_blanks(items: list[str]) -> list[str]:
    """Replace empty items with the previous non-empty one."""
    filled = []
    last = items[0] if items else ""
    for item in items:
        item = item or last
        filled.append(item)
        last = item
    return filled


def _write_companies(out: TextIO, url: str) -> None:
    page = BeautifulSoup(_fetch(url), "html.parser")
    for row in page.find_all("tr"):
        link = row.find("a")
        if link is not None and "ResumoEmpresaPrincipal.aspx" in link.get("href", ""):
            out.write(f"              - {remove_yaml_invalid_chars(link.get_text())}\n")


def _write_row(out: TextIO, row: Any, spin: int) -> int:
    subsectors: list[str] = []
    for index, cell in enumerate(row.find_all("td")):
        html = cell.decode_contents()
        if index == 0:
            out.write(f"  - Setor: {html}\n    Subsetores:\n")
        elif index == 1:
            subsectors = _fill_blanks(html.split("<br/>"))

        last_sub = ""
        for i, link in enumerate(cell.find_all("a", href=True)):
            href = link["href"]
            if "BuscaEmpresaListada.aspx" in href:
                sub = subsectors[i] if i < len(subsectors) else ""
                if sub != last_sub:
                    out.write(f"      - Subsetor: {sub}\n        Segmentos:\n")
                last_sub = sub
                out.write(f"          - Segmento: {remove_yaml_invalid_chars(link.get_text())}\n")
                out.write("            Empresas:\n")
                try:
                    _write_companies(out, _BASE_URL + href)
                except requests.RequestException:
                    pass
            print(f"\r[{_SPINNER[spin % 6]}]", end="", flush=True)
            spin += 1
    return spin


def sectors_to_yaml(yaml_file: str | Path) -> None:
    """Read the B3 listing and write companies grouped by sector to ``yaml_file``."""
    if not overwrite_prompt(yaml_file):
        raise FileNotUpdatedError(f"arquivo {yaml_file} não atualizado")
    try:
        out = open(yaml_file, "w", encoding="utf-8")
    except OSError as exc:
        raise OSError(f"falha ao criar arquivo {yaml_file}: {exc}") from exc

    with out:
        print("[ ] Lendo informações do site da B3", end="", flush=True)
        out.write("Setores:\n")
        try:
            page = BeautifulSoup(_fetch(_SECTORS_URL), "html.parser")
            spin = 0
            for row in page.find_all("tr"):
                spin = _write_row(out, row, spin)
        finally:
            print()


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _items(value: Any) -> list:
    return value if isinstance(value, list) else []


def _mapping(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _load_sectors(yaml_file: str | Path) -> list[Sector]:
    data = yaml.safe_load(Path(yaml_file).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{yaml_file}: formato inválido")
    return [
        Sector(
            name=_text(_mapping(sector).get("Setor")),
            subsectors=[
                Subsector(
                    name=_text(_mapping(sub).get("Subsetor")),
                    segments=[
                        Segment(
                            name=_text(_mapping(seg).get("Segmento")),
                            companies=[_text(c) for c in _items(_mapping(seg).get("Empresas"))],
                        )
                        for seg in _items(_mapping(sub).get("Segmentos"))
                    ],
                )
                for sub in _items(_mapping(sector).get("Subsetores"))
            ],
        )
        for sector in _items(data.get("Setores"))
    ]


def from_sector(company: str, yaml_file: str | Path) -> tuple[list[str], str]:
    """Return the companies in the same segment as ``company`` and the sector path.

    The path reads "sector > subsector > segment"; ([], "") if not found.
    """
    for sector in _load_sectors(yaml_file):
        for subsector in sector.subsectors:
            for segment in subsector.segments:
                if fuzzy_match(company, segment.companies, 2):
                    name = " > ".join((sector.name, subsector.name, segment.name))
                    return segment.companies, name
    return [], ""