"""Library circulation backend: books, users and loans."""

__version__ = "0.1.0"
