"""Settings loaded from the environment, and wiring helpers built on them."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any

from s3fm.fs.exceptions import ConfigurationError
from s3fm.fs.memory_store import MemoryObjectStore
from s3fm.fs.object_fs import ObjectStorageBackend
from s3fm.fs.permissions import AllowAllAccessPolicy, Permission, PrefixAccessPolicy
from s3fm.fs.s3_store import S3ObjectStore
from s3fm.responses import DEFAULT_ROOT_ALIAS

if TYPE_CHECKING:
    from collections.abc import Mapping

    from s3fm.fs.permissions import AccessPolicy

logger = logging.getLogger(__name__)

_ENV_PREFIX = "S3FM_"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

STORAGE_S3 = "s3"
STORAGE_MEMORY = "memory"

_POLICIES = {
    "allow_all": None,
    "read_only": Permission.READ,
    "deny_all": Permission.NONE,
}


@dataclass
class Settings:
    """Process configuration.

    Every field maps to an ``S3FM_<FIELD>`` environment variable, e.g.
    ``S3FM_S3_BUCKET``.  Explicit keyword arguments to ``from_env`` win
    over the environment.
    """

    storage: str = STORAGE_S3
    s3_endpoint: str = ""
    s3_access_key: str = ""
    s3_secret_key: str = ""
    s3_bucket: str = ""
    s3_region: str = "us-east-1"
    root_alias: str = DEFAULT_ROOT_ALIAS
    access_policy: str = "allow_all"
    audit_database_url: str | None = None
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000
    max_upload_bytes: int = 512_000_000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> Settings:
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(_ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            if f.name in ("port", "max_upload_bytes"):
                try:
                    values[f.name] = int(raw)
                except ValueError as e:
                    raise ConfigurationError(
                        f"{_ENV_PREFIX}{f.name.upper()} must be an integer, got {raw!r}"
                    ) from e
            else:
                values[f.name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def validate(self) -> None:
        """Raise ``ConfigurationError`` naming every missing or invalid setting."""
        problems: list[str] = []
        if self.storage not in (STORAGE_S3, STORAGE_MEMORY):
            problems.append(f"{_ENV_PREFIX}STORAGE must be 's3' or 'memory', got {self.storage!r}")
        if self.storage == STORAGE_S3:
            for name in ("s3_endpoint", "s3_access_key", "s3_secret_key", "s3_bucket"):
                if not getattr(self, name):
                    problems.append(f"{_ENV_PREFIX}{name.upper()} is required")
        if self.access_policy not in _POLICIES:
            allowed = ", ".join(sorted(_POLICIES))
            problems.append(f"{_ENV_PREFIX}ACCESS_POLICY must be one of {allowed}")
        if problems:
            raise ConfigurationError("; ".join(problems))


def configure_logging(level: str = "INFO") -> None:
    """Install a root handler once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=_LOG_FORMAT)
    root.setLevel(level.upper())


def build_backend(settings: Settings) -> ObjectStorageBackend:
    """Select the storage backend named in *settings*."""
    if settings.storage == STORAGE_MEMORY:
        logger.warning("Using in-memory object store; data is lost on restart")
        return ObjectStorageBackend(MemoryObjectStore())
    store = S3ObjectStore(
        bucket=settings.s3_bucket,
        endpoint_url=settings.s3_endpoint,
        access_key=settings.s3_access_key,
        secret_key=settings.s3_secret_key,
        region=settings.s3_region,
    )
    return ObjectStorageBackend(store)


def build_policy(settings: Settings) -> AccessPolicy:
    """Select the access policy named in *settings*."""
    if settings.access_policy not in _POLICIES:
        raise ConfigurationError(f"Unknown access policy: {settings.access_policy!r}")
    default = _POLICIES[settings.access_policy]
    if default is None:
        logger.warning("Access policy 'allow_all' grants every permission to every user")
        return AllowAllAccessPolicy()
    return PrefixAccessPolicy([], default=default)
