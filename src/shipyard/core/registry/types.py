"""Registry document model."""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from shipyard.core.atomic import dump_json
from shipyard.core.errors import InvalidConfig


class RegistryDocument(BaseModel):
    """The canonical name → identifier mapping for one network.

    Attributes:
        network: Network the identifiers are deployed on
        updated_at: ISO timestamp of the last mutation, None if never mutated
        contracts: Logical name → deployed identifier
        metadata: Free-form string annotations carried through merge and restore
    """

    model_config = ConfigDict(extra="ignore")

    network: str
    updated_at: str | None = None
    contracts: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @staticmethod
    def empty(network: str) -> "RegistryDocument":
        return RegistryDocument(network=network)

    @staticmethod
    def parse(text: str, source: str) -> "RegistryDocument":
        """Parse a registry document from JSON text.

        Raises:
            InvalidConfig: If the text is not a valid registry document
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidConfig(f"{source} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidConfig(f"{source} must contain a JSON object")
        try:
            return RegistryDocument.model_validate(data)
        except ValidationError as e:
            raise InvalidConfig(f"{source} is not a valid registry document:\n{e}") from e

    def render(self) -> str:
        return dump_json(self.model_dump(mode="json"))
