"""
Catalog Module for Librarium

Authors, categories and books:
- AuthorService: author records
- CategoryService: uniquely named categories
- BookService: books, their references and stock edits
"""

from librarium.catalog.service import (
    AuthorService,
    CategoryService,
    BookService,
)

__all__ = [
    "AuthorService",
    "CategoryService",
    "BookService",
]
