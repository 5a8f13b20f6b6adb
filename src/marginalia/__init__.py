"""Durable text anchors and annotation reconciliation for markdown documents."""

__version__ = "0.1.0"
