"""
CLI Interface - Command-line tools for Maktaba.

Provides commands for:
- Search queries
- Running the API server
- Database initialization
"""

from .main import app, main

__all__ = ["app", "main"]
