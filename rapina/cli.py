"""Command line entry point: updates the database with CVM and B3 data."""

from __future__ import annotations

import argparse
import json
import os
import sqlite3
import sys
from pathlib import Path

import yaml

from rapina import progress
from rapina.fetch.cvm import cvm, sectors
from rapina.fetch.quotes import StockFetcher
from rapina.parsers.sectors import FileNotUpdatedError

DATA_DIR = ".data"
YAML_FILE = "./setores.yml"

_DESCRIPTION = (
    "Este programa coleta informações sobre os dados financeiros do site da CVM "
    "e os exporta para uma planilha. Dados usados: balanço patrimonial ativo e "
    "passivo, e também o demonstrativo de resultado do exercício (DRE)."
)


def open_database(data_dir: str | Path = DATA_DIR) -> sqlite3.Connection:
    """Open (creating if needed) the database kept in ``data_dir``."""
    os.makedirs(data_dir, exist_ok=True)
    db = sqlite3.connect(os.path.join(os.fspath(data_dir), "rapina.db"), timeout=5.0)
    db.execute("PRAGMA journal_mode=WAL")
    return db


def output_filename(path: str, name: str) -> str:
    """Return a free .xlsx path for ``name`` inside ``path``, creating ``path``.

    Spaces, commas and slashes in the name become underscores; if the file
    exists, "(1)", "(2)"... up to 50 are tried.
    """
    path = path.removesuffix("/")
    name = name.removesuffix(".")
    name = name.translate(str.maketrans({" ": "_", ",": "_", "/": "_", "\\": "_"}))
    fpath = (path + "/" + name + ".xlsx").replace("/", os.sep)

    limit = 50
    for attempt in range(1, limit + 2):
        if attempt > limit:
            raise FileExistsError(f"remova o arquivo {path}/{name}.xlsx antes de continuar")
        try:
            os.stat(fpath)
        except FileNotFoundError:
            break
        except OSError as exc:
            raise OSError(f"file {fpath} stat error: {exc}") from exc
        fpath = f"{path}/{name}({attempt}).xlsx"

    try:
        os.mkdir(path)
    except OSError:
        pass
    if not os.path.exists(path):
        raise OSError(f"diretório não pode ser criado: {path}")
    return fpath


def update(
    db: sqlite3.Connection,
    data_dir: str = DATA_DIR,
    yaml_file: str = YAML_FILE,
    sectors_only: bool = False,
    api_key: str = "",
) -> None:
    """Download the sectors file, the CVM reports and the B3 stock codes."""
    print("[√] Coletando dados ===========")
    try:
        sectors(yaml_file)
    except FileNotUpdatedError:
        pass
    except Exception as exc:
        print("[x]", exc)
        return
    else:
        print("[√] Arquivo salvo:", yaml_file)
    print()

    if sectors_only:
        return

    try:
        cvm(db, data_dir)
    except Exception as exc:
        print("[x]", exc)
        return

    try:
        stock = StockFetcher(db, api_key, data_dir)
    except (sqlite3.Error, ValueError) as exc:
        progress.error(exc)
        return
    try:
        stock.update_stock_codes()
    except Exception as exc:
        progress.debug(f"códigos de ações não atualizados: {exc}")


def _api_key() -> str:
    """Return the API key from the environment or from a config file."""
    key = os.environ.get("APIKEY")
    if key:
        return key
    for folder in (Path.home(), Path(".")):
        for ext in ("yml", "yaml", "json"):
            config = folder / f"config.{ext}"
            if not config.is_file():
                continue
            try:
                text = config.read_text(encoding="utf-8")
                data = json.loads(text) if ext == "json" else yaml.safe_load(text)
            except (OSError, ValueError, yaml.YAMLError):
                continue
            print(f"[INFO]  Usando arquivo de configuração {config}\n", file=sys.stderr)
            if isinstance(data, dict):
                return str(data.get("apikey", "") or "")
            return ""
    return ""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rapina",
        description="Dados Financeiros de Empresas via CVM.",
        epilog=_DESCRIPTION,
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Mostrar mensagens de execução"
    )
    commands = parser.add_subparsers(dest="command", title="Comandos Disponíveis")
    get = commands.add_parser(
        "update",
        aliases=["get"],
        help="Baixa os arquivos da CVM e atualiza o bando de dados",
        description="Baixa os arquivos do site da CVM, processa e os armazena no bando de dados.",
    )
    get.add_argument(
        "-s",
        "--sectors",
        action="store_true",
        help="Baixa a classificação setorial das empresas e fundos negociados na B3",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command line; return the exit status."""
    print("Rapina - Dados Financeiros de Empresas Brasileiras\n", file=sys.stderr)
    parser = _build_parser()
    args = parser.parse_args(argv)

    progress.cursor(False)
    try:
        if args.command is None:
            parser.print_help()
            return 0
        progress.set_debug(args.verbose)
        db = open_database(DATA_DIR)
        try:
            update(db, DATA_DIR, YAML_FILE, args.sectors, _api_key())
        finally:
            db.close()
        return 0
    except KeyboardInterrupt:
        return 0
    except Exception as exc:
        print(f"Exception: {exc}", file=sys.stderr)
        return 1
    finally:
        progress.cursor(True)


if __name__ == "__main__":
    sys.exit(main())