"""finsync - multi-provider bank data ingestion and sync."""

__version__ = "0.1.0"
