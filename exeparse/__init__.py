"""Byte buffers, executable addressing and MZ parsing, with an inspection shell."""

__version__ = "0.1.0"