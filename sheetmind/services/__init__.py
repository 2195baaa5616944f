"""Ingestion services: fetching, reading, normalization and merging."""
