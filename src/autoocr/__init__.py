"""
autoocr package.

Watches an input directory for scans, converts them through a pluggable
converter and exposes upload, live progress and download over a small
FastAPI application.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
