"""
Librarium - FastAPI Backend.

REST API for catalog management, loans and recommendations.
"""

from .main import app, create_app, main
from .dependencies import (
    Settings,
    get_settings,
    get_service_container,
    ServiceContainer,
    Identity,
    get_current_identity,
    require_admin,
)

__all__ = [
    # Application
    "app",
    "create_app",
    "main",
    # Dependencies
    "Settings",
    "get_settings",
    "get_service_container",
    "ServiceContainer",
    "Identity",
    "get_current_identity",
    "require_admin",
]
