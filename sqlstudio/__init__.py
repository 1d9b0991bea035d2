"""
SQL Studio - a single-database SQL explorer served over HTTP.
"""

__version__ = "0.1.0"
