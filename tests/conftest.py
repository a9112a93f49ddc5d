"""Shared test fixtures for USML."""

from __future__ import annotations

from pathlib import Path

import pytest

from usml.models.document import UsmlDocument
from usml.parser.loader import TrackedLoader, load_document, load_document_string
from usml.parser.resolver import ReferenceResolver
from usml.parser.validator import SemanticValidator

FIXTURES_DIR = Path(__file__).parent / "fixtures"
USERS_DOCUMENT = FIXTURES_DIR / "users.usml.yaml"
POSTS_DOCUMENT = FIXTURES_DIR / "posts.usml.yaml"
SCHEMA_DBML = FIXTURES_DIR / "schema.dbml"
API_YAML = FIXTURES_DIR / "api.yaml"


@pytest.fixture
def loader() -> TrackedLoader:
    return TrackedLoader()


@pytest.fixture
def resolver() -> ReferenceResolver:
    return ReferenceResolver()


@pytest.fixture
def validator() -> SemanticValidator:
    return SemanticValidator()


@pytest.fixture
def users_document() -> UsmlDocument:
    doc, _ = load_document(USERS_DOCUMENT)
    return doc


@pytest.fixture
def posts_document() -> UsmlDocument:
    doc, _ = load_document(POSTS_DOCUMENT)
    return doc


def parse(yaml_content: str) -> UsmlDocument:
    """Parse an inline USML document."""
    doc, _ = load_document_string(yaml_content)
    return doc


SAMPLE_DOCUMENT_YAML = """\
version: "0.1"
import:
  openapi: ./api.yaml#paths["/users"].get.responses["200"]
  dbml:
    - ./schema.dbml#tables["users"]
    - ./schema.dbml#tables["profiles"]
usecase:
  name: List users
  response_mapping:
    - field: id
      source: users.id
    - field: avatar_url
      source: profiles.avatar_url
      join:
        table: profiles
        on: users.id = profiles.user_id
  transforms:
    - target: avatar_url
      type: COALESCE
      sources:
        - profiles.avatar_url
      fallback: "/default.png"
"""
