"""Declarative base shared by API-facing models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Pydantic model that reads and writes the cluster's camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_api(self) -> dict[str, Any]:
        """Return the API representation of the model."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
