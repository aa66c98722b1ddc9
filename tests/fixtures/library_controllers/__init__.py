"""Controllers for a small in-memory book catalogue, used by the host tests."""

from .books import BooksController

__all__ = ["BooksController"]
