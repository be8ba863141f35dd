"""
CORS Configuration

Browser front-ends allowed to call the Librarium API, per environment.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

API_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]

# Sent by the catalog front-end
REQUEST_HEADERS = ["Authorization", "Content-Type", "Accept", "X-Request-ID"]

# Readable by the front-end (login lockout countdown, request tracing)
RESPONSE_HEADERS = ["X-Request-ID", "X-Rate-Limit-Remaining", "Retry-After"]


@dataclass
class CORSConfig:
    """Origins and preflight settings for one deployment."""

    allowed_origins: List[str] = field(default_factory=list)
    allow_credentials: bool = True
    preflight_max_age: int = 600

    # Any origin, without credentials
    allow_any_origin: bool = False

    def middleware_options(self) -> dict:
        if self.allow_any_origin:
            origins, credentials = ["*"], False
        else:
            origins, credentials = self.allowed_origins, self.allow_credentials

        return {
            "allow_origins": origins,
            "allow_credentials": credentials,
            "allow_methods": API_METHODS,
            "allow_headers": REQUEST_HEADERS,
            "expose_headers": RESPONSE_HEADERS,
            "max_age": self.preflight_max_age,
        }


CORS_CONFIGS = {
    "development": CORSConfig(allow_any_origin=True),
    "staging": CORSConfig(allowed_origins=["https://staging.librarium.example.com"]),
    "production": CORSConfig(
        allowed_origins=["https://librarium.example.com"],
        preflight_max_age=3600,
    ),
}


def get_cors_config(environment: str = "development", extra_origins: str = "") -> CORSConfig:
    """
    CORS configuration for ``environment``.

    Args:
        environment: development, staging or production; anything else
            falls back to development
        extra_origins: Comma-separated origins appended to the preset
    """
    preset = CORS_CONFIGS.get(environment, CORS_CONFIGS["development"])
    extra = [origin.strip() for origin in extra_origins.split(",") if origin.strip()]
    return replace(preset, allowed_origins=preset.allowed_origins + extra)


def setup_cors(app: FastAPI, config: Optional[CORSConfig] = None) -> None:
    app.add_middleware(CORSMiddleware, **(config or get_cors_config()).middleware_options())
