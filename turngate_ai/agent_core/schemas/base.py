"""Pydantic base schema shared by the engine models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base Pydantic model for engine schemas.

    - ``populate_by_name=True``: allow initialization by alias or field name.
    - ``extra="forbid"``: unknown fields are rejected instead of silently dropped.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
    )
