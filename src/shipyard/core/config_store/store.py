"""Per-environment configuration documents with backup and restore."""

import logging
import stat
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

import tomlkit

from shipyard.core.atomic import atomic_write_text
from shipyard.core.backups import Backup, BackupStore
from shipyard.core.config_store.defaults import SecretFactory, build_template, generate_secret
from shipyard.core.config_store.rules import (
    REQUIRED_FILE_MODE,
    DocumentFacts,
    SecurityIssue,
    ValidationResult,
    consistency_check,
    security_scan,
    validate_document,
)
from shipyard.core.config_store.schema import coerce, field_for, get_path, shape_error
from shipyard.core.errors import InvalidConfig, NotFound
from shipyard.core.lock import WriteLock
from shipyard.core.project import normalize_environment
from shipyard.core.time.abc import Time

logger = logging.getLogger(__name__)

SOURCE_DOCUMENT_TYPE = "config"
DEFAULT_RETENTION_DAYS = 30


@dataclass(frozen=True)
class ConfigDocument:
    """A parsed configuration document for one environment."""

    environment: str
    values: dict[str, Any]
    path: Path


@dataclass(frozen=True)
class GenerateResult:
    path: Path
    backup: Backup | None


@dataclass(frozen=True)
class RestoreResult:
    environment: str
    pre_restore_backup: Backup
    restored_from: Backup


class ConfigStore:
    """Reads, writes, validates and backs up ``config/<env>.toml`` documents.

    Documents are always written with owner-only permissions (0600). Every
    write that replaces an existing document is preceded by a durable backup
    of the previous text.
    """

    def __init__(
        self,
        *,
        config_dir: Path,
        root: Path,
        backups: BackupStore,
        lock: WriteLock,
        time: Time,
        environ: Mapping[str, str],
        new_secret: SecretFactory = generate_secret,
    ) -> None:
        self.config_dir = config_dir
        self.root = root
        self.backups = backups
        self.lock = lock
        self.time = time
        self.environ = environ
        self.new_secret = new_secret

    def document_path(self, environment: str) -> Path:
        return self.config_dir / f"{normalize_environment(environment)}.toml"

    def exists(self, environment: str) -> bool:
        return self.document_path(environment).exists()

    def load(self, environment: str) -> ConfigDocument:
        """Parse the document for ``environment``.

        Raises:
            NotFound: If the document does not exist
            InvalidConfig: If it is not valid TOML
        """
        env = normalize_environment(environment)
        path = self.document_path(env)
        if not path.exists():
            raise NotFound(
                f"No configuration for '{env}' at {path}. "
                f"Run 'shipyard config generate {env}' to create one.",
                last_good_backup_id=self.backups.latest_id(env),
            )
        try:
            with path.open("rb") as f:
                values = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise InvalidConfig(
                f"Cannot parse {path}: {e}", last_good_backup_id=self.backups.latest_id(env)
            ) from e
        return ConfigDocument(environment=env, values=values, path=path)

    def generate(self, environment: str) -> GenerateResult:
        """Write a fresh document with environment defaults.

        An existing document is backed up before being overwritten; the very
        first generation has nothing to back up.
        """
        env = normalize_environment(environment)
        template = build_template(env, self.new_secret)
        doc = tomlkit.document()
        doc.add(tomlkit.comment(f"shipyard configuration for the {env} environment"))
        doc.add(tomlkit.comment("Secrets are owner-readable only; keep this file mode 0600"))
        for table_name, table_values in template.items():
            table = tomlkit.table()
            for key, value in table_values.items():
                table[key] = value
            doc[table_name] = table

        with self.lock.hold(f"config generate {env}"):
            backup = None
            if self.exists(env):
                backup = self._snapshot(env, "generate")
            self._write(env, tomlkit.dumps(doc))

        logger.debug("Generated configuration for %s", env)
        return GenerateResult(path=self.document_path(env), backup=backup)

    def validate(self, environment: str) -> ValidationResult:
        """Check the document; findings are returned, never raised.

        Raises:
            NotFound: Only if the document is missing entirely
        """
        env = normalize_environment(environment)
        try:
            return validate_document(self._facts(env))
        except InvalidConfig as e:
            return ValidationResult(errors=[e.message])

    def consistency_check(self, environment: str) -> list[str]:
        return consistency_check(self._facts(normalize_environment(environment)))

    def security_scan(self, environment: str) -> list[SecurityIssue]:
        return security_scan(self._facts(normalize_environment(environment)))

    def get(self, environment: str, key: str) -> Any:
        """Value at dotted ``key``.

        Raises:
            NotFound: If the document or the key is missing
        """
        document = self.load(environment)
        value = get_path(document.values, key)
        if value is None:
            raise NotFound(f"Key '{key}' is not set in the {document.environment} configuration")
        return value

    def set(self, environment: str, key: str, raw_value: str) -> Backup:
        """Set dotted ``key`` to ``raw_value`` (converted to the key's type).

        Raises:
            InvalidConfig: If the key is unknown or the value has the wrong shape
            NotFound: If the document does not exist
        """
        env = normalize_environment(environment)
        spec = field_for(key)
        value = coerce(spec, raw_value)
        error = shape_error(spec, value)
        if error is not None:
            raise InvalidConfig(error, last_good_backup_id=self.backups.latest_id(env))

        with self.lock.hold(f"config set {env} {key}"):
            document = self.load(env)
            doc = tomlkit.parse(document.path.read_text(encoding="utf-8"))
            container: Any = doc
            parts = key.split(".")
            for part in parts[:-1]:
                if part not in container:
                    container[part] = tomlkit.table()
                container = container[part]
            container[parts[-1]] = value
            backup = self._snapshot(env, f"set {key}")
            self._write(env, tomlkit.dumps(doc))

        logger.debug("Set %s in %s configuration (backup %s)", key, env, backup.id)
        return backup

    def backup(self, environment: str, description: str = "manual backup") -> Backup:
        """Snapshot the current document.

        Raises:
            NotFound: If there is no document to back up
        """
        env = normalize_environment(environment)
        if not self.exists(env):
            raise NotFound(f"No configuration for '{env}' to back up")
        with self.lock.hold(f"config backup {env}"):
            return self._snapshot(env, description)

    def restore(self, backup_id: str) -> RestoreResult:
        """Replace a document with a backup's contents, backing up the current one first.

        Raises:
            NotFound: If the backup does not exist or is not a config backup
        """
        backup = self.backups.get(backup_id)
        if backup.source_document_type != SOURCE_DOCUMENT_TYPE:
            raise NotFound(f"Backup {backup_id} is not a configuration backup")
        env = backup.subject

        with self.lock.hold(f"config restore {backup_id}"):
            pre_restore = self._snapshot(env, f"restore {backup_id}")
            if backup.contents is None:
                self.document_path(env).unlink(missing_ok=True)
            else:
                self._write(env, backup.contents)

        logger.debug("Restored %s configuration from %s", env, backup_id)
        return RestoreResult(environment=env, pre_restore_backup=pre_restore, restored_from=backup)

    def list_backups(self, environment: str | None = None) -> list[Backup]:
        subject = None if environment is None else normalize_environment(environment)
        return self.backups.list_backups(subject)

    def cleanup(
        self, retention_days: int = DEFAULT_RETENTION_DAYS, dry_run: bool = False
    ) -> list[str]:
        """Delete backups older than ``retention_days``. Irreversible.

        Raises:
            InvalidConfig: If ``retention_days`` is negative
        """
        if retention_days < 0:
            raise InvalidConfig(f"Retention must be zero or more days, got {retention_days}")
        cutoff = self.time.now() - timedelta(days=retention_days)
        with self.lock.hold("config cleanup"):
            removed = self.backups.delete_older_than(cutoff, dry_run=dry_run)
        logger.debug("Cleanup removed %d configuration backups", len(removed))
        return removed

    def _facts(self, env: str) -> DocumentFacts:
        document = self.load(env)
        return DocumentFacts(
            environment=env,
            values=document.values,
            file_mode=stat.S_IMODE(document.path.stat().st_mode),
            root=self.root,
            environ=self.environ,
        )

    def _snapshot(self, env: str, description: str) -> Backup:
        path = self.document_path(env)
        contents = path.read_text(encoding="utf-8") if path.exists() else None
        return self.backups.create(
            subject=env,
            source_document_type=SOURCE_DOCUMENT_TYPE,
            contents=contents,
            description=description,
        )

    def _write(self, env: str, text: str) -> None:
        atomic_write_text(self.document_path(env), text, mode=REQUIRED_FILE_MODE)
