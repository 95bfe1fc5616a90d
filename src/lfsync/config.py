"""Load and validate the storage configuration of a repository."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

import dacite
import yaml

from .errors import ConfigurationError

CONFIG_DIRNAME: Final[str] = ".lfsync"
CONFIG_FILENAME: Final[str] = "config.yaml"

SUPPORTED_PROVIDERS: Final[tuple[str, ...]] = ("s3",)


@dataclass(frozen=True, kw_only=True)
class CredentialsConfig:
    """Inline credentials. When absent we use the provider's default chain."""

    access_key_id: str = ""
    secret_access_key: str = ""


@dataclass(frozen=True, kw_only=True)
class StorageConfig:
    """Settings of the remote content store."""

    provider: str = ""
    bucket: str = ""
    region: str = ""
    prefix: str | None = None
    endpoint: str | None = None
    credentials: CredentialsConfig | None = None


@dataclass(frozen=True, kw_only=True)
class TransferConfig:
    """
    Attributes:
        jobs: maximum number of files transferred in parallel
        timeout: per-attempt network timeout in seconds
        max_attempts: attempts per network call, including the first one
    """

    jobs: int = 8
    timeout: float = 60.0
    max_attempts: int = 4


@dataclass(frozen=True, kw_only=True)
class LFSyncConfig:
    """Top-level configuration stored in `.lfsync/config.yaml`."""

    version: int = 0
    storage: StorageConfig = field(default_factory=StorageConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)

    def validate(self) -> None:
        """
        Ensure the configuration can be used to create a content store.

        Raises:
            ConfigurationError: on missing or invalid settings.
        """
        if self.version != 0:
            raise ConfigurationError(f"unsupported config version: {self.version}")
        storage = self.storage
        for name in ("provider", "bucket", "region"):
            if not getattr(storage, name).strip():
                raise ConfigurationError(f"missing required field: storage.{name}")
        if storage.provider not in SUPPORTED_PROVIDERS:
            raise ConfigurationError(f"unsupported storage provider: {storage.provider}")
        creds = storage.credentials
        if creds is not None and (not creds.access_key_id or not creds.secret_access_key):
            raise ConfigurationError(
                "storage.credentials requires both access_key_id and secret_access_key"
            )
        transfer = self.transfer
        if transfer.jobs < 1:
            raise ConfigurationError(f"transfer.jobs must be positive, got {transfer.jobs}")
        if transfer.timeout <= 0:
            raise ConfigurationError(f"transfer.timeout must be positive, got {transfer.timeout}")
        if transfer.max_attempts < 1:
            raise ConfigurationError(
                f"transfer.max_attempts must be positive, got {transfer.max_attempts}"
            )


def config_path_for_root(root: str | Path) -> Path:
    """Return the config file path for the working tree at root."""
    return Path(root) / CONFIG_DIRNAME / CONFIG_FILENAME


def parse_config(data: dict[str, Any]) -> LFSyncConfig:
    """Convert the given mapping into a validated LFSyncConfig."""
    try:
        config = dacite.from_dict(
            LFSyncConfig,
            data,
            config=dacite.Config(type_hooks={float: float}, strict=True),
        )
    except (dacite.DaciteError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid config: {exc}") from exc
    config.validate()
    return config


def load_config(path: str | Path) -> LFSyncConfig:
    """
    Load the configuration from the given YAML file.

    Raises:
        ConfigurationError: if the file is missing, unreadable or invalid.
    """
    path = Path(path)
    try:
        content = path.read_text()
    except FileNotFoundError as exc:
        raise ConfigurationError(f"config not found: {path}") from exc
    except OSError as exc:
        raise ConfigurationError(f"cannot read {path}: {exc}") from exc

    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"config must be a mapping: {path}")

    return parse_config(data)
