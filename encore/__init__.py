"""Encore: a concert logging and social backend."""

__version__ = "0.1.0"
