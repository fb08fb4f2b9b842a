"""file-report-server: ingestion and query service for directory inventory reports."""

__version__ = "1.0.0"
