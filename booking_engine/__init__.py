"""Availability and booking engine for law firm scheduling."""

__version__ = "0.1.0"
