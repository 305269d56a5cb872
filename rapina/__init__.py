"""Financial data of Brazilian listed companies and real-estate funds."""

__version__ = "0.1.0"