"""Enrichment of transcription factor targets in GO terms."""

__version__ = "0.1.0"
