"""Psychiki backend: account verification, sessions and the daily step ledger."""

__version__ = "0.1.0"
