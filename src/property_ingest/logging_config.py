"""Centralized logging configuration with Pydantic Logfire integration."""

import logging
from typing import Any

import logfire
from fastapi import FastAPI

from property_ingest.config import get_settings


def configure_logging(service_name: str = "property-ingest") -> None:
    """
    Configure Logfire and stdlib logging without a web app.

    Used by the CLI; the FastAPI app calls setup_logfire instead so request
    tracing is instrumented as well.
    """
    settings = get_settings()

    logfire_config: dict[str, Any] = {
        "environment": settings.env,
        "service_name": service_name,
        # Without a token, stay local rather than prompting for a project
        "send_to_logfire": "if-token-present",
    }
    if settings.logfire_token:
        logfire_config["token"] = settings.logfire_token

    logfire.configure(**logfire_config)
    logfire.instrument_pydantic_ai()
    _configure_stdlib_logging(settings.env, settings.log_level)


def setup_logfire(app: FastAPI) -> None:
    """
    Initialize and configure Pydantic Logfire for the API.

    Sets up:
    - FastAPI instrumentation (request/response tracing)
    - Pydantic instrumentation (model validation logging)
    - PydanticAI instrumentation (token usage per generation call)
    - Environment-aware stdlib logging format
    """
    settings = get_settings()

    logfire_config: dict[str, Any] = {
        "environment": settings.env,
        "send_to_logfire": "if-token-present",
    }
    if settings.logfire_token:
        logfire_config["token"] = settings.logfire_token

    logfire.configure(**logfire_config)

    logfire.instrument_fastapi(app)
    logfire.instrument_pydantic()
    logfire.instrument_pydantic_ai()

    _configure_stdlib_logging(settings.env, settings.log_level)


def _configure_stdlib_logging(env: str, log_level: str) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    if env == "local":
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    else:
        # Logfire handles structured formatting
        logging.basicConfig(level=level, format="%(message)s")


def redact_secret(value: str | None, visible_chars: int = 4) -> str:
    """
    Redact an API key or token for logging.

    Args:
        value: Secret to redact
        visible_chars: Number of leading characters to keep

    Returns:
        Redacted string such as 'abcd***'
    """
    if not value:
        return ""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "***"

