"""
Librarium Test Suite

Tests are organized into:
- unit/: Services, repositories and middleware helpers
- integration/: HTTP tests against the FastAPI application
"""
