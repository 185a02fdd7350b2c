"""Periodic notification digest: ingest, classify, summarise."""

__version__ = "0.1.0"
