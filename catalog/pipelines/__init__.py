"""Pipelines for catalog ingestion, search, and text normalization.

Each step is callable on its own so the HTTP handlers and the command-line
scripts share the same code.
"""
