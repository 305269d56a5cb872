[build-system]
requires = ["hatchling>=1.18"]
build-backend = "hatchling.build"

[project]
name = "rapina"
version = "0.1.0"
description = "Financial data of Brazilian listed companies and real-estate funds (FII), collected from CVM and B3 into a local SQLite database."
requires-python = ">=3.10"
keywords = [
    "finance",
    "investment",
    "cvm",
    "b3",
    "bovespa",
    "fii",
    "dividends",
    "financial-statements",
    "stock-quotes",
    "sqlite",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: Financial and Insurance Industry",
    "Natural Language :: Portuguese (Brazilian)",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
]
dependencies = [
    "requests>=2.28",
    "beautifulsoup4>=4.11",
    "pyyaml>=6.0",
    "humanize>=4.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
rapina = "rapina.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["rapina"]

[tool.hatch.build.targets.sdist]
include = [
    "rapina",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
