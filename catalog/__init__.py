"""Backend package: DB models, pipelines, APIs.

This package serves the course catalog: CSV ingestion, filtered search,
comparison, and natural-language questions translated to filters.
"""
