"""Audience hub: cohort filters compiled to warehouse SQL."""

__version__ = "0.1.0"
