"""Shared pytest fixtures for json-render unit tests."""

import pytest
from pydantic import BaseModel

from json_render.runtime.catalog import Catalog, create_catalog
from json_render.runtime.data_store import DataStore


class CardProps(BaseModel):
    title: str
    description: str | None = None


class TextProps(BaseModel):
    content: str


class SaveParams(BaseModel):
    documentId: str


@pytest.fixture
def catalog() -> Catalog:
    """Small catalog with a container, a leaf, an untyped component and two actions."""
    return create_catalog(
        components={
            "Card": {"props": CardProps, "hasChildren": True, "description": "Container"},
            "Text": {"props": TextProps},
            "Button": None,
        },
        actions={
            "save_changes": {"params": SaveParams, "description": "Persist the document"},
            "refresh": None,
        },
        validation_functions={"isValidPhone": "Phone number format"},
    )


@pytest.fixture
def store() -> DataStore:
    """Data store seeded with a user, a form and a cart."""
    return DataStore(
        {
            "user": {"name": "Ada", "role": "admin", "age": 36},
            "form": {"email": "", "tags": []},
            "cart": {"total": 120},
        }
    )
