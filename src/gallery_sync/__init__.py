"""Photo ingestion and sync pipeline for the portfolio gallery."""

__version__ = "0.1.0"
