"""USML: declarative API response to database mapping, with consistency checks."""

__version__ = "0.1.0"
