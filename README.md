# rapina

Collects financial data about Brazilian listed companies and real-estate
investment funds (FII) from the public CVM and B3 servers and keeps it in a
local SQLite database.

## Installation

```
pip install .
```

Python 3.10 or later is required.

## Command line

```
rapina update
```

`rapina update` (alias `rapina get`) opens the database `.data/rapina.db`
in the current directory (creating it if needed) and then:

1. Reads the B3 listing of companies by sector, subsector and segment and
   writes it to `./setores.yml`. If the file already exists you are asked
   whether to overwrite it (answer `s` or `sim`).
2. Downloads the CVM archives and imports them: quarterly statements (ITR)
   for the current and the previous year, annual statements (DFP) and
   reference forms (FRE) from last year back to 2010. A year that fails is
   skipped; the download stops after two failures in a row. Files already
   imported (same MD5) are not imported again.
3. Downloads the B3 instruments file and stores the trading codes of cash
   shares, units and funds.

Only refresh the sector classification file:

```
rapina update -s
```

`-v` / `--verbose` shows debug messages. Messages are in Portuguese; progress
goes to standard error.

An Alpha Vantage API key, used as a last fallback for stock quotes, is read
from the `APIKEY` environment variable, or from the `apikey` entry of a
`config.yml`, `config.yaml` or `config.json` file in the home directory or
the current directory.

## Library use

Small helpers:

```python
from rapina.common import is_date, months_from_today
from rapina.parsers.fuzzy import fuzzy_find
from rapina.parsers.fiidb import comma_to_dot, fix_date

is_date("2021-04-26")                          # True
fix_date("01/02/2021")                         # "2021-02-01"
comma_to_dot("1.230,56")                       # 1230.56
fuzzy_find("BCO ABC", ["XYZ", "BANCO ABC"], 0) # "BANCO ABC"
```

Stock quote files in the B3 historical layout, Yahoo Finance CSV, Alpha
Vantage CSV and the B3 instruments file are read by
`rapina.parsers.stock.StockParser`, which stores them in a SQLite connection
you supply. The first line of the stream tells the format:

```python
import sqlite3
from rapina.parsers.stock import StockParser

db = sqlite3.connect("quotes.db")
parser = StockParser(db)
with open("COTAHIST_D04012021.TXT", encoding="latin-1") as stream:
    parser.save(stream, "")
print(parser.quote("NSLU11", "2021-01-04"))
```

`rapina.fetch.quotes.StockFetcher` returns a quote from the database, or
fetches it from B3, then Yahoo Finance, then Alpha Vantage (if an API key is
given), raising `QuoteNotFoundError` when none has it.

`rapina.fetch.funds.FIIFetcher` returns fund details (`details`) and the
dividends of the latest months (`dividends`), reading the database first and
the B3 servers when something is missing.

Companies of the same segment as a given one can be looked up in the YAML
file written by `rapina update`:

```python
from rapina.parsers.sectors import from_sector

companies, sector = from_sector("GRENDENE S.A.", "setores.yml")
```

## What it does not do

The package fills the database but does not produce reports from it: there
is no spreadsheet or terminal report of a company, no command to list
companies, sectors or profits, no command to show fund dividends or monthly
reports, and no web server. `rapina.cli.output_filename` picks a free
`.xlsx` file name, but nothing in the package writes spreadsheets.

## Running the tests

```
pip install ".[test]"
pytest
```