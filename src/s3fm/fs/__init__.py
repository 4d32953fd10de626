"""Storage layer: path mapping, object stores, engines, and permissions."""

from s3fm.fs.exceptions import (
    AuthorizationDenied,
    ConfigurationError,
    PathNotFoundError,
    S3fmError,
    StorageFailure,
    ValidationError,
)
from s3fm.fs.listing import ListingEngine
from s3fm.fs.memory_store import MemoryObjectStore
from s3fm.fs.mutations import MutationEngine
from s3fm.fs.object_fs import ObjectStorageBackend
from s3fm.fs.permissions import (
    AccessPolicy,
    AccessRule,
    AllowAllAccessPolicy,
    EffectivePermissions,
    Permission,
    PermissionGate,
    PrefixAccessPolicy,
)
from s3fm.fs.protocol import ObjectStore, StorageBackend
from s3fm.fs.types import FileEntry, ObjectInfo, ObjectListing, UserContext
from s3fm.fs.utils import canonicalize, key_to_path, parent_of, path_to_key

__all__ = [
    "AccessPolicy",
    "AccessRule",
    "AllowAllAccessPolicy",
    "AuthorizationDenied",
    "ConfigurationError",
    "EffectivePermissions",
    "FileEntry",
    "ListingEngine",
    "MemoryObjectStore",
    "MutationEngine",
    "ObjectInfo",
    "ObjectListing",
    "ObjectStorageBackend",
    "ObjectStore",
    "PathNotFoundError",
    "Permission",
    "PermissionGate",
    "PrefixAccessPolicy",
    "S3fmError",
    "StorageBackend",
    "StorageFailure",
    "UserContext",
    "ValidationError",
    "canonicalize",
    "key_to_path",
    "parent_of",
    "path_to_key",
]
