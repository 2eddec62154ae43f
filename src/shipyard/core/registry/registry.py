"""Per-network artifact registry with backup-before-mutate discipline."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from shipyard.core.atomic import atomic_write_text
from shipyard.core.backups import Backup, BackupStore
from shipyard.core.errors import InvalidIdentifier, NotFound, ShipyardError
from shipyard.core.lock import WriteLock
from shipyard.core.registry.export import ExportFormat, export_document
from shipyard.core.registry.grammar import check_network, identifier_error, validate_identifier
from shipyard.core.registry.types import RegistryDocument
from shipyard.core.time.abc import Time

logger = logging.getLogger(__name__)

SOURCE_DOCUMENT_TYPE = "registry"


@dataclass(frozen=True)
class RegistryValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class MutationResult:
    """What a mutating call did: the backup taken and the document written."""

    backup: Backup
    document: RegistryDocument


class ArtifactRegistry:
    """Canonical logical-name → deployed-identifier mapping, one document per network.

    Every mutating call (set, remove, merge, restore) writes exactly one backup
    of the whole current document, durably, before the new document becomes
    visible. Documents are replaced atomically, so readers only ever see the
    state before or after a mutation.
    """

    def __init__(
        self, *, registry_dir: Path, backups: BackupStore, lock: WriteLock, time: Time
    ) -> None:
        self.registry_dir = registry_dir
        self.backups = backups
        self.lock = lock
        self.time = time

    def document_path(self, network: str) -> Path:
        return self.registry_dir / f"{check_network(network)}.json"

    def load(self, network: str) -> RegistryDocument:
        """Current document for ``network`` (empty if none has been written)."""
        path = self.document_path(network)
        if not path.exists():
            return RegistryDocument.empty(network)
        return RegistryDocument.parse(path.read_text(encoding="utf-8"), str(path))

    def list_entries(self, network: str) -> dict[str, str]:
        return dict(sorted(self.load(network).contracts.items()))

    def get(self, network: str, name: str) -> str:
        """Identifier registered for ``name`` on ``network``.

        Raises:
            NotFound: If ``name`` has no entry
        """
        contracts = self.load(network).contracts
        if name not in contracts:
            raise NotFound(
                f"No registry entry '{name}' on network '{network}'",
                last_good_backup_id=self.backups.latest_id(network),
            )
        return contracts[name]

    def set(self, network: str, name: str, identifier: str) -> MutationResult:
        """Register ``identifier`` under ``name``, replacing any previous entry.

        Raises:
            InvalidIdentifier: If name or identifier fails the network grammar
        """
        try:
            validate_identifier(network, name, identifier)
        except InvalidIdentifier as e:
            raise e.with_backup(self.backups.latest_id(network)) from None

        def apply(document: RegistryDocument) -> RegistryDocument:
            contracts = dict(document.contracts)
            contracts[name] = identifier
            return document.model_copy(update={"contracts": contracts})

        return self._mutate(network, f"set {name}", apply)

    def remove(self, network: str, name: str) -> MutationResult:
        """Delete the entry for ``name``.

        Raises:
            NotFound: If ``name`` has no entry (nothing is backed up or written)
        """

        def apply(document: RegistryDocument) -> RegistryDocument:
            if name not in document.contracts:
                raise NotFound(
                    f"No registry entry '{name}' on network '{network}'",
                    last_good_backup_id=self.backups.latest_id(network),
                )
            contracts = {key: value for key, value in document.contracts.items() if key != name}
            return document.model_copy(update={"contracts": contracts})

        return self._mutate(network, f"remove {name}", apply)

    def merge(self, network: str, other: RegistryDocument) -> MutationResult:
        """Deep-merge ``other`` into the current document; ``other`` wins collisions.

        Raises:
            InvalidIdentifier: If any incoming entry fails the network grammar
        """
        errors = [
            error
            for name, identifier in sorted(other.contracts.items())
            if (error := identifier_error(network, name, identifier)) is not None
        ]
        if errors:
            raise InvalidIdentifier(
                "Cannot merge registry with invalid entries:\n  " + "\n  ".join(errors),
                last_good_backup_id=self.backups.latest_id(network),
            )
        if other.network != network:
            logger.warning("Merging registry for network '%s' into '%s'", other.network, network)

        def apply(document: RegistryDocument) -> RegistryDocument:
            return document.model_copy(
                update={
                    "contracts": {**document.contracts, **other.contracts},
                    "metadata": _deep_merge(document.metadata, other.metadata),
                }
            )

        return self._mutate(network, f"merge {len(other.contracts)} entries", apply)

    def restore(self, backup_id: str) -> MutationResult:
        """Replace a network's document with the contents of ``backup_id``.

        The current document is backed up first, so a restore can itself be
        undone by restoring that new backup.

        Raises:
            NotFound: If the backup does not exist or is not a registry backup
        """
        backup = self.backups.get(backup_id)
        if backup.source_document_type != SOURCE_DOCUMENT_TYPE:
            raise NotFound(f"Backup {backup_id} is not a registry backup")
        network = backup.subject
        path = self.document_path(network)
        restored_text = backup.contents or RegistryDocument.empty(network).render()
        restored = RegistryDocument.parse(restored_text, f"backup {backup_id}")

        with self.lock.hold(f"registry restore {backup_id}"):
            pre_restore = self._snapshot(network, f"restore {backup_id}")
            atomic_write_text(path, restored_text)

        logger.debug("Restored %s from %s", path, backup_id)
        return MutationResult(backup=pre_restore, document=restored)

    def validate(self, network: str) -> RegistryValidation:
        """Check every entry against the network grammar. Never mutates."""
        try:
            document = self.load(network)
        except ShipyardError as e:
            return RegistryValidation(valid=False, errors=[e.message])
        errors: list[str] = []
        if document.network != network:
            errors.append(f"Document declares network '{document.network}', expected '{network}'")
        for name, identifier in sorted(document.contracts.items()):
            error = identifier_error(network, name, identifier)
            if error is not None:
                errors.append(error)
        return RegistryValidation(valid=not errors, errors=errors)

    def export(self, network: str, fmt: ExportFormat) -> str:
        return export_document(self.load(network), fmt)

    def list_backups(self, network: str | None = None) -> list[Backup]:
        if network is not None:
            check_network(network)
        return self.backups.list_backups(network)

    def _snapshot(self, network: str, description: str) -> Backup:
        path = self.document_path(network)
        if path.exists():
            contents = path.read_text(encoding="utf-8")
        else:
            contents = RegistryDocument.empty(network).render()
        return self.backups.create(
            subject=network,
            source_document_type=SOURCE_DOCUMENT_TYPE,
            contents=contents,
            description=description,
        )

    def _mutate(
        self,
        network: str,
        description: str,
        apply: Callable[[RegistryDocument], RegistryDocument],
    ) -> MutationResult:
        with self.lock.hold(f"registry {description} on {network}"):
            current = self.load(network)
            updated = apply(current)
            updated = updated.model_copy(
                update={"network": network, "updated_at": self.time.now().isoformat()}
            )
            backup = self._snapshot(network, description)
            atomic_write_text(self.document_path(network), updated.render())

        logger.debug("Registry %s: %s (backup %s)", network, description, backup.id)
        return MutationResult(backup=backup, document=updated)


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
