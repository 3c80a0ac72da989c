"""Pipelines for retrieval, generation and persistence.

Each step is callable on its own so the API routes, the cron endpoint and
the ingest script can share them.
"""
