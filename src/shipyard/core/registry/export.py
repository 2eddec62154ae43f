"""Read-only transforms of a registry document into other formats."""

from typing import Literal

import yaml

from shipyard.core.registry.types import RegistryDocument

ExportFormat = Literal["document", "key-value", "structured"]
EXPORT_FORMATS: tuple[ExportFormat, ...] = ("document", "key-value", "structured")


def export_document(document: RegistryDocument, fmt: ExportFormat) -> str:
    """Render ``document`` as JSON, shell ``export`` lines or YAML."""
    if fmt == "document":
        return document.render()
    if fmt == "key-value":
        lines = [
            f"export {name.upper()}_CONTRACT={identifier}"
            for name, identifier in sorted(document.contracts.items())
        ]
        return "\n".join(lines) + ("\n" if lines else "")
    if fmt == "structured":
        return yaml.safe_dump(
            {
                "network": document.network,
                "updated_at": document.updated_at,
                "contracts": dict(sorted(document.contracts.items())),
                "metadata": document.metadata,
            },
            sort_keys=False,
            default_flow_style=False,
        )
    raise ValueError(f"Unknown export format: {fmt}")
