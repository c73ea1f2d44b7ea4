"""
Base Schema Models for the Permit Swap Pipeline

This module defines the base class every pipeline artifact inherits from.
It provides deterministic serialization so that artifacts (permits, routes,
transaction descriptors) can be logged, hashed and compared reliably.

Core Classes:
    - CanonicalModel: RFC8785-style Pydantic base model with canonical JSON output
    - FrozenModel: Immutable variant used for per-swap artifacts and configuration

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from typing import Dict, Any

from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Ensures a consistent, deterministic JSON representation: sorted keys and
    no extra whitespace. Large integers (token amounts, uint256 values) are
    kept as JSON integers so no precision is lost.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json")
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class FrozenModel(CanonicalModel):
    """
    Immutable canonical model.

    Per-swap artifacts are created once by the stage that owns them and are
    never mutated afterwards; any change requires building a new instance.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)
