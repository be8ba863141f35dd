"""
Librarium: library management service.

Catalog, loan lifecycle with consistent inventory, and rule-based
book recommendations behind a FastAPI surface.
"""

__version__ = "1.0.0"
