"""Racket Tournament Manager: group stage to single-elimination progression."""

__version__ = "0.1.0"
