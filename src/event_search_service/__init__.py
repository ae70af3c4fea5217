"""Hybrid event search ranking with query analytics and clustering."""

__version__ = "0.1.0"
