"""
API Route modules.
"""

from . import auth, users, authors, categories, books, loans, recommendations

__all__ = [
    "auth",
    "users",
    "authors",
    "categories",
    "books",
    "loans",
    "recommendations",
]
