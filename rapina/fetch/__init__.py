"""Downloading of statements, quotes, stock codes and fund data from CVM and B3."""