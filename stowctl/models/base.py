"""Base model for values exchanged with the storage REST API."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel as PydanticBaseModel
from pydantic import ConfigDict

M = TypeVar("M", bound="BaseModel")


class BaseModel(PydanticBaseModel):
    """Immutable model that reads and writes the API's camelCase names.

    Instances are frozen so snapshots can hand them to observers without
    copying.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
        frozen=True,
    )

    @classmethod
    def from_api(cls: type[M], data: Any) -> M:
        """Build from a decoded JSON response body."""
        return cls.model_validate(data)

    def to_api_dict(self, **kwargs: Any) -> dict[str, Any]:
        """Dump set fields under their wire names as JSON-compatible values."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json", **kwargs)
