"""Demonstration client for the transference counter program."""

__version__ = "0.1.0"
