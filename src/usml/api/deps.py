"""Dependency injection for FastAPI: validator singleton and settings."""

from __future__ import annotations

from fastapi import Request

from usml.parser.loader import TrackedLoader
from usml.parser.validator import SemanticValidator
from usml.settings import Settings

# Stateless, safe to share between requests
_loader = TrackedLoader()
_validator = SemanticValidator()


def get_loader() -> TrackedLoader:
    """FastAPI ``Depends`` provider for the YAML loader."""
    return _loader


def get_validator() -> SemanticValidator:
    """FastAPI ``Depends`` provider for SemanticValidator."""
    return _validator


def get_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    settings: Settings = request.app.state.settings
    return settings
