"""Parsing of downloaded data and its storage in SQLite."""