"""Reconciler of AWS event sources and their receive adapters."""

__version__ = "0.1.0"
