"""
Web interface for the field provenance viewer.

This module provides the FastAPI web application for:
- Document viewer with provenance highlight overlays
- Field selection, page navigation and zoom endpoints
- Field panel and extraction failure summaries
"""

__version__ = "1.0.0"
