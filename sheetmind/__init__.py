"""
SheetMind Ingest
================

Spreadsheet ingestion and normalization pipeline.

Features:
- Google Sheets loading with API key / OAuth / public export fallbacks
- Batched range reads that preserve IMAGE formulas
- xlsx, CSV and clipboard HTML parsing
- Normalized tables with chunked, non-blocking building
- IMPORTRANGE cross-reference detection
"""

__version__ = "1.0.0"
